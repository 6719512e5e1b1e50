"""Timing of a single round."""
import asyncio
import logging
import time
from typing import Callable, Optional

from spellrush.config import GameSettings, settings
from spellrush.services.scoring import deadline_for_level, obstacle_speed_for_level

logger = logging.getLogger(__name__)


class RoundClock:
    """Tracks narration and obstacle timestamps in game milliseconds.

    Game time comes from ``now_ms``. By default it is the monotonic clock
    divided by ``time_scale``, so a sleep of N game ms always advances game
    time by N ms whatever the scale.
    """

    def __init__(
        self,
        now_ms: Optional[Callable[[], float]] = None,
        time_scale: Optional[float] = None,
        game: Optional[GameSettings] = None,
    ):
        self.game = game or settings.game
        self.time_scale = time_scale if time_scale is not None else self.game.time_scale
        self._now_ms = now_ms or self._monotonic_ms
        self.narration_start_ms: Optional[float] = None
        self.narration_end_ms: Optional[float] = None
        self.obstacle_start_ms: Optional[float] = None
        self.obstacle_speed_ms: float = 0
        self.deadline_ms: float = 0
        self._timer: Optional[asyncio.TimerHandle] = None

    def _monotonic_ms(self) -> float:
        return time.monotonic() * 1000 / self.time_scale

    def now(self) -> float:
        """Current game time in ms."""
        return self._now_ms()

    def mark_narration_start(self) -> None:
        self.narration_start_ms = self.now()

    def mark_narration_end(self) -> None:
        self.narration_end_ms = self.now()

    @property
    def narration_duration_ms(self) -> float:
        if self.narration_start_ms is None or self.narration_end_ms is None:
            return 0
        return self.narration_end_ms - self.narration_start_ms

    def start_obstacle(self, level: int) -> None:
        """Launch the obstacle for a level; the deadline runs from now."""
        self.obstacle_start_ms = self.now()
        self.obstacle_speed_ms = obstacle_speed_for_level(level, self.game)
        self.deadline_ms = deadline_for_level(level, self.game)
        logger.debug(
            "Obstacle started: travel %sms, reach after %.0fms",
            self.obstacle_speed_ms,
            self.deadline_ms,
        )

    def elapsed_ms(self) -> float:
        """Game time since the obstacle started."""
        if self.obstacle_start_ms is None:
            return 0
        return self.now() - self.obstacle_start_ms

    def remaining_until_reach_ms(self) -> float:
        """Game time until the obstacle reaches the character."""
        return max(0, self.deadline_ms - self.elapsed_ms())

    def remaining_travel_ms(self) -> float:
        """Game time until the obstacle leaves the screen."""
        return max(0, self.obstacle_speed_ms - self.elapsed_ms())

    def to_seconds(self, ms: float) -> float:
        """Real seconds for a game duration."""
        return max(0, ms) * self.time_scale / 1000

    async def sleep(self, ms: float) -> None:
        """Suspend for a game duration."""
        await asyncio.sleep(self.to_seconds(ms))

    def arm_deadline(self, callback: Callable[[], None]) -> None:
        """Call ``callback`` when the obstacle reaches the character.

        Re-arming clears any earlier timer.
        """
        self.cancel_deadline()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.to_seconds(self.remaining_until_reach_ms()), callback)

    def cancel_deadline(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    @property
    def deadline_armed(self) -> bool:
        return self._timer is not None and not self._timer.cancelled()

    def reset(self) -> None:
        """Clear the round's timestamps and timer."""
        self.cancel_deadline()
        self.narration_start_ms = None
        self.narration_end_ms = None
        self.obstacle_start_ms = None
        self.obstacle_speed_ms = 0
        self.deadline_ms = 0
