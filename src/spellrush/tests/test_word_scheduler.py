"""Tests for the word scheduler."""
import random
from datetime import datetime, timedelta, UTC

import pytest
from faker import Faker

from spellrush.exceptions import EmptySchedule, NotInitialized
from spellrush.models.game_models import Difficulty, WordEntry, WordPerformance
from spellrush.services.word_scheduler import (
    TieredWordScheduler,
    WordScheduler,
    bucketed_shuffle,
    calculate_priority_score,
)

fake = Faker()

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def entries(*words: str) -> list[WordEntry]:
    return [WordEntry(text=word) for word in words]


def test_unseen_word_scores_highest() -> None:
    """Test that a word never played gets the unseen score."""
    for word in fake.words(nb=10, unique=True):
        assert calculate_priority_score(WordEntry(text=word), {}, NOW) == 1000


def test_timeouts_and_low_success_rate() -> None:
    """Test two timeouts out of two attempts."""
    performance = {"cat": WordPerformance(word="cat", times_timeout=2, total_attempts=2)}
    assert calculate_priority_score(WordEntry(text="cat"), performance, NOW) == 350


def test_lookup_is_case_insensitive() -> None:
    """Test that the entry text is matched case-insensitively."""
    performance = {"cat": WordPerformance(word="cat", times_mistakes=1, total_attempts=1)}
    assert calculate_priority_score(WordEntry(text="Cat"), performance, NOW) == 180


def test_score_decreases_with_first_try_successes() -> None:
    """Test that each first-try success lowers the score down to zero."""
    scores = []
    for correct in range(0, 12):
        performance = {
            "cat": WordPerformance(
                word="cat",
                times_correct_first_try=correct,
                times_mistakes=2,
                total_attempts=correct + 2,
            )
        }
        scores.append(calculate_priority_score(WordEntry(text="cat"), performance, NOW))

    positive = [score for score in scores if score > 0]
    assert positive == sorted(positive, reverse=True)
    assert len(set(positive)) == len(positive)
    assert min(scores) == 0


def test_score_is_floored_at_zero() -> None:
    """Test that many successes never give a negative score."""
    performance = {"cat": WordPerformance(word="cat", times_correct_first_try=50, total_attempts=50)}
    assert calculate_priority_score(WordEntry(text="cat"), performance, NOW) == 0


def test_recency_bonus() -> None:
    """Test the bonus for words not seen for more than a day."""
    def score(days: float) -> float:
        performance = {
            "cat": WordPerformance(
                word="cat",
                times_correct_first_try=1,
                total_attempts=1,
                last_seen=NOW - timedelta(days=days),
            )
        }
        return calculate_priority_score(WordEntry(text="cat"), performance, NOW)

    assert score(0.5) == 70
    assert score(1) == 70
    assert score(2) == pytest.approx(76)
    assert score(30) == pytest.approx(85)


def test_bucketed_shuffle_keeps_buckets() -> None:
    """Test that shuffling never moves a word across buckets."""
    words = entries("a", "b", "c", "d", "e", "f")
    scores = [1, 6, 2, 5, 3, 4]
    for seed in range(50):
        order = bucketed_shuffle(words, scores, 2, random.Random(seed))
        texts = [entry.text for entry in order]
        assert set(texts[0:2]) == {"b", "d"}
        assert set(texts[2:4]) == {"f", "e"}
        assert set(texts[4:6]) == {"c", "a"}


def test_bucketed_shuffle_is_a_permutation() -> None:
    """Test that every entry appears exactly once."""
    words = entries(*fake.words(nb=25, unique=True))
    order = bucketed_shuffle(words, [0] * len(words), 10, random.Random(1))
    assert sorted(e.text for e in order) == sorted(e.text for e in words)


def test_struggling_word_comes_before_mastered_word() -> None:
    """Test that a word with mistakes is served before a mastered one."""
    pool = entries("sun", "dog", "tree", "cat", "fish")
    performance = {
        "dog": WordPerformance(word="dog", times_mistakes=3, total_attempts=3),
        "cat": WordPerformance(word="cat", times_correct_first_try=10, total_attempts=10),
    }
    dog_score = calculate_priority_score(WordEntry(text="dog"), performance, NOW)
    cat_score = calculate_priority_score(WordEntry(text="cat"), performance, NOW)
    assert dog_score > cat_score

    dog_first = 0
    for seed in range(100):
        scheduler = WordScheduler(bucket_size=2, rng=random.Random(seed))
        scheduler.initialize(pool, performance, NOW)
        served = [scheduler.next().text for _ in pool]
        if served.index("dog") < served.index("cat"):
            dog_first += 1
    assert dog_first > 50


def test_next_wraps_around() -> None:
    """Test that the order repeats after the last word."""
    scheduler = WordScheduler(rng=random.Random(3))
    scheduler.initialize(entries("cat", "dog"), {}, NOW)
    first = scheduler.next()
    second = scheduler.next()
    assert {first.text, second.text} == {"cat", "dog"}
    assert scheduler.next() == first
    assert scheduler.next() == second


def test_order_is_fixed_for_the_session() -> None:
    """Test that cycling does not reshuffle."""
    scheduler = WordScheduler(rng=random.Random(5))
    words = entries(*fake.words(nb=12, unique=True))
    scheduler.initialize(words, {}, NOW)
    first_cycle = [scheduler.next() for _ in words]
    second_cycle = [scheduler.next() for _ in words]
    assert first_cycle == second_cycle == scheduler.order


def test_next_before_initialize() -> None:
    """Test that serving requires a session order."""
    scheduler = WordScheduler()
    with pytest.raises(NotInitialized):
        scheduler.next()


def test_next_after_reset() -> None:
    """Test that reset forgets the order."""
    scheduler = WordScheduler()
    scheduler.initialize(entries("cat"), {}, NOW)
    scheduler.reset()
    assert not scheduler.is_initialized
    with pytest.raises(NotInitialized):
        scheduler.next()


def test_next_without_words() -> None:
    """Test that an empty tier cannot serve words."""
    scheduler = WordScheduler()
    scheduler.initialize([], {}, NOW)
    with pytest.raises(EmptySchedule):
        scheduler.next()


def test_tiered_scheduler() -> None:
    """Test one order per difficulty."""
    scheduler = TieredWordScheduler(rng=random.Random(2))
    scheduler.initialize(
        {
            Difficulty.EASY: entries("cat", "dog"),
            Difficulty.MEDIUM: entries("house"),
            Difficulty.HARD: [],
        },
        {},
        NOW,
    )

    assert scheduler.word_count(Difficulty.EASY) == 2
    assert scheduler.next(Difficulty.MEDIUM).text == "house"
    assert scheduler.next(Difficulty.EASY).text in {"cat", "dog"}

    with pytest.raises(EmptySchedule) as excinfo:
        scheduler.next(Difficulty.HARD)
    assert excinfo.value.difficulty == "hard"

    scheduler.reset()
    with pytest.raises(NotInitialized):
        scheduler.next(Difficulty.EASY)
