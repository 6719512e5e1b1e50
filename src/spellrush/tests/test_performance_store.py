"""Tests for the performance store."""
from datetime import datetime, timedelta, UTC
from typing import Optional
from unittest.mock import MagicMock

import pytest
from faker import Faker

from spellrush.exceptions import PersistenceFailure
from spellrush.models.game_models import (
    Difficulty,
    Failure,
    RoundOutcome,
    RoundResult,
    SpeedTier,
    Success,
    Timeout,
    WordAttempt,
)
from spellrush.services.performance_store import PerformanceStore
from spellrush.services.storage_service import StorageService

fake = Faker()

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def make_result(word: str, outcome: RoundOutcome, attempts: Optional[list[bool]] = None) -> RoundResult:
    """Build a round result for a word."""
    return RoundResult.from_outcome(
        outcome,
        word=word,
        difficulty=Difficulty.EASY,
        attempts=[WordAttempt(word, ok, NOW) for ok in (attempts or [])],
        level=1,
        round_start_time=NOW,
        round_end_time=NOW,
        deadline_ms=4800,
    )


def success(attempt_count: int = 1) -> Success:
    return Success(
        attempt_count=attempt_count,
        response_time_ms=1000,
        speed_multiplier=2.0,
        speed_tier=SpeedTier.LIGHTNING,
        combo_multiplier=1.0,
        combo_count=1,
        score=40,
    )


@pytest.fixture
def store(storage: StorageService) -> PerformanceStore:
    """Create a performance store instance."""
    return PerformanceStore(storage)


def test_empty_history(store: PerformanceStore) -> None:
    """Test a learner without history."""
    assert store.get_performance(fake.email()) == {}


def test_each_round_counts_one_bucket(store: PerformanceStore) -> None:
    """Test bucket counting and the total invariant."""
    learner = fake.email()
    store.record_result(learner, make_result("Cat", success(1), [True]), NOW)
    store.record_result(learner, make_result("cat", success(2), [False, True]), NOW)
    store.record_result(learner, make_result("cat", Timeout()), NOW)
    store.record_result(learner, make_result("cat", Failure("cat"), [False, False, False]), NOW)

    perf = store.get_performance(learner)["cat"]
    assert perf.times_correct_first_try == 1
    assert perf.times_mistakes == 2
    assert perf.times_timeout == 1
    assert perf.total_attempts == 4
    assert perf.total_attempts == perf.times_correct_first_try + perf.times_mistakes + perf.times_timeout
    assert perf.last_seen == NOW


def test_history_is_persisted(store: PerformanceStore, storage: StorageService) -> None:
    """Test that a new store reads what an earlier one wrote."""
    store.record_result("Ann@Example.com", make_result("dog", Timeout()), NOW)

    reloaded = PerformanceStore(storage).get_performance("ann@example.com")
    assert reloaded["dog"].times_timeout == 1
    assert reloaded["dog"].last_seen == NOW


def test_snapshot_is_not_changed_by_updates(store: PerformanceStore) -> None:
    """Test that a snapshot is a copy."""
    learner = fake.email()
    store.record_result(learner, make_result("sun", Timeout()), NOW)
    snapshot = store.get_performance(learner)

    store.record_result(learner, make_result("sun", Timeout()), NOW + timedelta(days=1))
    assert snapshot["sun"].times_timeout == 1
    assert store.get_word(learner, "SUN").times_timeout == 2


def test_clear_one_learner(store: PerformanceStore, storage: StorageService) -> None:
    """Test resetting one learner only."""
    store.record_result("ann@example.com", make_result("cat", Timeout()), NOW)
    store.record_result("bob@example.com", make_result("dog", Timeout()), NOW)

    store.clear("ann@example.com")

    assert store.get_performance("ann@example.com") == {}
    assert "dog" in PerformanceStore(storage).get_performance("bob@example.com")


def test_clear_all(store: PerformanceStore, storage: StorageService) -> None:
    """Test resetting every learner."""
    store.record_result("ann@example.com", make_result("cat", Timeout()), NOW)
    store.record_result("bob@example.com", make_result("dog", Timeout()), NOW)

    store.clear()

    assert store.get_all() == {}
    assert PerformanceStore(storage).get_all() == {}


def test_get_all(store: PerformanceStore) -> None:
    """Test listing every learner's history."""
    store.record_result("ann@example.com", make_result("cat", Timeout()), NOW)
    store.record_result("bob@example.com", make_result("dog", success(), [True]), NOW)

    everything = store.get_all()
    assert set(everything) == {"ann@example.com", "bob@example.com"}
    assert everything["bob@example.com"]["dog"].times_correct_first_try == 1


def test_storage_failure_keeps_memory() -> None:
    """Test that results are kept in memory when storage fails."""
    storage = MagicMock(spec=StorageService)
    storage.get.side_effect = PersistenceFailure("performance:ann")
    storage.set.side_effect = PersistenceFailure("performance:ann")
    store = PerformanceStore(storage)

    store.record_result("ann", make_result("cat", Timeout()), NOW)

    assert store.get_performance("ann")["cat"].times_timeout == 1
