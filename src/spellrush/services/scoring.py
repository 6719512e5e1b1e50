"""Scoring rules and level curves.

Everything here is a pure function of its arguments. Level curves read their
constants from ``GameSettings`` so a session can be tuned without touching
the round logic.
"""
import math
from typing import Optional, Tuple

from spellrush.config import GameSettings, settings
from spellrush.models.game_models import Difficulty, SpeedTier

# (upper bound in percent of the deadline, multiplier, tier); bounds are exclusive
SPEED_TIERS = (
    (30.0, 2.0, SpeedTier.LIGHTNING),
    (50.0, 1.5, SpeedTier.FAST),
    (70.0, 1.25, SpeedTier.GOOD),
)

# (minimum combo, multiplier), checked top-down
COMBO_TIERS = (
    (5, 1.5),
    (4, 1.3),
    (3, 1.2),
    (2, 1.1),
)


def base_score(attempt_count: int) -> int:
    """Points for a correct answer by number of attempts it took."""
    if attempt_count == 1:
        return 20
    if attempt_count == 2:
        return 10
    if attempt_count == 3:
        return 5
    return 2


def speed_tier(response_time_ms: float, deadline_ms: float) -> Tuple[float, SpeedTier]:
    """Speed multiplier and tier for the share of the deadline that was used.

    A value exactly on a boundary falls into the slower tier.
    """
    if deadline_ms <= 0:
        return 1.0, SpeedTier.NORMAL

    percentage = response_time_ms * 100 / deadline_ms
    for upper_bound, multiplier, tier in SPEED_TIERS:
        if percentage < upper_bound:
            return multiplier, tier
    return 1.0, SpeedTier.NORMAL


def speed_multiplier(response_time_ms: float, deadline_ms: float) -> float:
    """Speed multiplier only."""
    return speed_tier(response_time_ms, deadline_ms)[0]


def combo_multiplier(combo_count: int) -> float:
    """Multiplier for consecutive first-try correct rounds."""
    for minimum, multiplier in COMBO_TIERS:
        if combo_count >= minimum:
            return multiplier
    return 1.0


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values."""
    return int(math.floor(value + 0.5))


def final_score(attempt_count: int, speed_mult: float, combo_mult: float) -> int:
    """Rounded score of a correct answer."""
    return round_half_up(base_score(attempt_count) * speed_mult * combo_mult)


def obstacle_speed_for_level(level: int, game: Optional[GameSettings] = None) -> int:
    """Total obstacle travel time in ms; shrinks each level down to a floor."""
    game = game or settings.game
    return max(
        game.min_obstacle_speed_ms,
        game.base_obstacle_speed_ms - (level - 1) * game.obstacle_speed_step_ms,
    )


def deadline_for_level(level: int, game: Optional[GameSettings] = None) -> float:
    """Time in ms until the obstacle reaches the character."""
    game = game or settings.game
    return obstacle_speed_for_level(level, game) * game.obstacle_reach_fraction


def difficulty_for_level(level: int) -> Difficulty:
    """Word tier that is active at a level."""
    if level <= 3:
        return Difficulty.EASY
    if level <= 6:
        return Difficulty.MEDIUM
    return Difficulty.HARD
