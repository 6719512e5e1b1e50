"""Per-learner word performance history."""
import logging
from dataclasses import replace
from datetime import datetime, UTC
from typing import Dict, Optional

from spellrush.exceptions import PersistenceFailure
from spellrush.models.game_models import PerformanceMap, RoundResult, WordPerformance
from spellrush.services.storage_service import StorageService

logger = logging.getLogger(__name__)

PERFORMANCE_KEY_PREFIX = "performance:"


def normalize_learner_id(learner_id: str) -> str:
    """Learner ids are case-insensitive."""
    return learner_id.strip().lower()


class PerformanceStore:
    """Durable map learner -> word -> WordPerformance.

    Storage failures are logged and the in-memory copy keeps serving, so a
    session never stops because the database is unavailable.
    """

    def __init__(self, storage: StorageService):
        """Initialize the store with a storage backend."""
        self.storage = storage
        self._cache: Dict[str, PerformanceMap] = {}

    @staticmethod
    def _key(learner_id: str) -> str:
        return f"{PERFORMANCE_KEY_PREFIX}{normalize_learner_id(learner_id)}"

    def _load(self, learner_id: str) -> PerformanceMap:
        learner = normalize_learner_id(learner_id)
        if learner in self._cache:
            return self._cache[learner]

        performance: PerformanceMap = {}
        try:
            stored = self.storage.get(self._key(learner)) or {}
            performance = {word: WordPerformance.from_data(data) for word, data in stored.items()}
        except PersistenceFailure:
            logger.warning("Performance history of %s unavailable, starting empty", learner)
        self._cache[learner] = performance
        return performance

    def _save(self, learner_id: str) -> None:
        learner = normalize_learner_id(learner_id)
        data = {word: perf.to_data() for word, perf in self._cache.get(learner, {}).items()}
        try:
            self.storage.set(self._key(learner), data)
        except PersistenceFailure:
            logger.warning("Performance of %s kept in memory only", learner)

    def get_performance(self, learner_id: str) -> PerformanceMap:
        """Snapshot of a learner's history; later updates do not change it."""
        return {word: replace(perf) for word, perf in self._load(learner_id).items()}

    def get_word(self, learner_id: str, word: str) -> Optional[WordPerformance]:
        """History of one word, if the learner has seen it."""
        perf = self._load(learner_id).get(word.lower())
        return replace(perf) if perf else None

    def record_result(
        self,
        learner_id: str,
        result: RoundResult,
        now: Optional[datetime] = None,
    ) -> WordPerformance:
        """Count a resolved round in exactly one bucket and persist it."""
        performance = self._load(learner_id)
        key = result.word.lower()
        perf = performance.get(key)
        if perf is None:
            perf = WordPerformance(word=key)
            performance[key] = perf

        if result.timed_out:
            perf.times_timeout += 1
        elif result.first_try_correct:
            perf.times_correct_first_try += 1
        else:
            perf.times_mistakes += 1

        perf.total_attempts += 1
        perf.last_seen = now or datetime.now(UTC)

        logger.debug("Updated performance of %s for %s: %s", learner_id, key, perf)
        self._save(learner_id)
        return replace(perf)

    def clear(self, learner_id: Optional[str] = None) -> None:
        """Reset one learner's history, or everyone's when no learner is given."""
        if learner_id is not None:
            learner = normalize_learner_id(learner_id)
            self._cache[learner] = {}
            try:
                self.storage.remove(self._key(learner))
            except PersistenceFailure:
                logger.warning("Could not remove stored performance of %s", learner)
            logger.info("Cleared performance of %s", learner)
            return

        self._cache.clear()
        try:
            for key in self.storage.load_all(PERFORMANCE_KEY_PREFIX):
                self.storage.remove(key)
        except PersistenceFailure:
            logger.warning("Could not remove all stored performance")
        logger.info("Cleared performance of all learners")

    def get_all(self) -> Dict[str, PerformanceMap]:
        """Every learner's history, keyed by learner id."""
        result: Dict[str, PerformanceMap] = {}
        try:
            for key in self.storage.load_all(PERFORMANCE_KEY_PREFIX):
                learner = key[len(PERFORMANCE_KEY_PREFIX):]
                result[learner] = self.get_performance(learner)
        except PersistenceFailure:
            logger.warning("Stored performance unavailable, returning cached learners")
        for learner in self._cache:
            result.setdefault(learner, self.get_performance(learner))
        return result
