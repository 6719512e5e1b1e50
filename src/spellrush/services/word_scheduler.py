"""Priority-biased word ordering for a session."""
import logging
import random
from datetime import datetime, UTC
from typing import Dict, List, Mapping, Optional, Sequence

from spellrush.config import settings
from spellrush.exceptions import EmptySchedule, NotInitialized
from spellrush.models.game_models import Difficulty, PerformanceMap, WordEntry

logger = logging.getLogger(__name__)

UNSEEN_WORD_SCORE = 1000
BASE_SCORE = 100
CORRECT_FIRST_TRY_WEIGHT = 30
TIMEOUT_WEIGHT = 100  # Timeouts = word not memorized at all
MISTAKE_WEIGHT = 80  # Mistakes = word partially learned
LOW_SUCCESS_RATE_BONUS = 50
LOW_SUCCESS_RATE = 0.5
LOW_SUCCESS_MIN_ATTEMPTS = 2
RECENCY_POINTS_PER_DAY = 3
RECENCY_MAX_BONUS = 15


def calculate_priority_score(
    entry: WordEntry,
    performance: PerformanceMap,
    now: Optional[datetime] = None,
) -> float:
    """Priority of a word (higher = needs more practice).

    Words with mistakes and timeouts dominate; a small bonus resurfaces words
    that were not seen for more than a day.
    """
    perf = performance.get(entry.key)
    if perf is None:
        return UNSEEN_WORD_SCORE

    score: float = BASE_SCORE
    score -= perf.times_correct_first_try * CORRECT_FIRST_TRY_WEIGHT
    score += perf.times_timeout * TIMEOUT_WEIGHT
    score += perf.times_mistakes * MISTAKE_WEIGHT

    success_rate = perf.times_correct_first_try / max(perf.total_attempts, 1)
    if success_rate < LOW_SUCCESS_RATE and perf.total_attempts >= LOW_SUCCESS_MIN_ATTEMPTS:
        score += LOW_SUCCESS_RATE_BONUS

    if perf.last_seen is not None:
        now = now or datetime.now(UTC)
        days_since_last_seen = (now - perf.last_seen).total_seconds() / 86400
        if days_since_last_seen > 1:
            score += min(days_since_last_seen * RECENCY_POINTS_PER_DAY, RECENCY_MAX_BONUS)

    return max(score, 0)


def bucketed_shuffle(
    entries: Sequence[WordEntry],
    scores: Sequence[float],
    bucket_size: int,
    rng: random.Random,
) -> List[WordEntry]:
    """Sort by score descending, then shuffle inside consecutive buckets."""
    # sorted() is stable, so equal scores keep their configured order
    ranked = [entry for entry, _ in sorted(zip(entries, scores), key=lambda pair: -pair[1])]

    result: List[WordEntry] = []
    for start in range(0, len(ranked), bucket_size):
        bucket = ranked[start:start + bucket_size]
        # Fisher-Yates
        for i in range(len(bucket) - 1, 0, -1):
            j = rng.randint(0, i)
            bucket[i], bucket[j] = bucket[j], bucket[i]
        result.extend(bucket)
    return result


class WordScheduler:
    """Serves one tier's words in a biased order, cycling forever."""

    def __init__(self, bucket_size: Optional[int] = None, rng: Optional[random.Random] = None):
        self.bucket_size = bucket_size or settings.game.bucket_size
        self.rng = rng or random.Random()
        self._order: Optional[List[WordEntry]] = None
        self._cursor = 0

    @property
    def is_initialized(self) -> bool:
        return self._order is not None

    @property
    def order(self) -> List[WordEntry]:
        """Copy of the session order."""
        if self._order is None:
            raise NotInitialized("Word scheduler used before initialize()")
        return list(self._order)

    def initialize(
        self,
        word_entries: Sequence[WordEntry],
        performance: PerformanceMap,
        now: Optional[datetime] = None,
    ) -> None:
        """Build the session order from a performance snapshot."""
        now = now or datetime.now(UTC)
        scores = [calculate_priority_score(entry, performance, now) for entry in word_entries]
        self._order = bucketed_shuffle(word_entries, scores, self.bucket_size, self.rng)
        self._cursor = 0
        logger.debug("Session order: %s", [entry.text for entry in self._order])

    def next(self) -> WordEntry:
        """Get the entry at the cursor and advance, wrapping at the end."""
        if self._order is None:
            raise NotInitialized("Word scheduler used before initialize()")
        if not self._order:
            raise EmptySchedule()

        if self._cursor >= len(self._order):
            self._cursor = 0

        entry = self._order[self._cursor]
        self._cursor += 1
        return entry

    def reset(self) -> None:
        """Forget the session order."""
        self._order = None
        self._cursor = 0


class TieredWordScheduler:
    """One WordScheduler per difficulty tier, built once per session."""

    def __init__(self, bucket_size: Optional[int] = None, rng: Optional[random.Random] = None):
        self.bucket_size = bucket_size
        self.rng = rng or random.Random()
        self._schedulers: Dict[Difficulty, WordScheduler] = {}

    def initialize(
        self,
        word_entries: Mapping[Difficulty, Sequence[WordEntry]],
        performance: PerformanceMap,
        now: Optional[datetime] = None,
    ) -> None:
        """Build every tier's order from the same snapshot."""
        now = now or datetime.now(UTC)
        self._schedulers.clear()
        for difficulty in Difficulty:
            scheduler = WordScheduler(self.bucket_size, self.rng)
            scheduler.initialize(word_entries.get(difficulty, []), performance, now)
            self._schedulers[difficulty] = scheduler
        logger.info(
            "Initialized session words: %s",
            {d.value: len(s.order) for d, s in self._schedulers.items()},
        )

    def next(self, difficulty: Difficulty) -> WordEntry:
        """Next word of a tier."""
        scheduler = self._schedulers.get(difficulty)
        if scheduler is None:
            raise NotInitialized("Word scheduler used before initialize()")
        try:
            return scheduler.next()
        except EmptySchedule:
            raise EmptySchedule(difficulty.value) from None

    def reset(self) -> None:
        """Forget all tier orders."""
        self._schedulers.clear()

    def word_count(self, difficulty: Difficulty) -> int:
        """Number of words in a tier's session order."""
        scheduler = self._schedulers.get(difficulty)
        if scheduler is None:
            raise NotInitialized("Word scheduler used before initialize()")
        return len(scheduler.order)
