"""Tests for word list loading and custom words."""
import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from faker import Faker

from spellrush.exceptions import InvalidWordConfig, PersistenceFailure
from spellrush.models.game_models import Difficulty, WordEntry
from spellrush.services.storage_service import StorageService
from spellrush.services.word_source import (
    CUSTOM_WORDS_KEY,
    WordSourceService,
    clean_word_lines,
    load_word_config,
    parse_word_entry,
    parse_word_list,
    word_config_from_data,
)

fake = Faker()


@pytest.fixture
def words_file(tmp_path: Path) -> Path:
    """Create a word list file."""
    path = tmp_path / "words.json"
    path.write_text(
        json.dumps(
            {
                "easy": ["cat - a small furry pet", "dog"],
                "medium": ["house"],
                "hard": ["elephant – a large animal"],
            }
        ),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def word_source(storage: StorageService, words_file: Path) -> WordSourceService:
    """Create a word source service instance."""
    return WordSourceService(storage, words_file)


def test_parse_entry_with_description() -> None:
    """Test splitting text and description."""
    assert parse_word_entry("cat - a small furry pet") == WordEntry(text="cat", description="a small furry pet")


def test_parse_plain_entry() -> None:
    """Test an entry without description."""
    assert parse_word_entry("cat") == WordEntry(text="cat", description=None)
    assert parse_word_entry("  cat  ") == WordEntry(text="cat")


def test_parse_entry_without_text() -> None:
    """Test that a missing word keeps the raw entry as text."""
    assert parse_word_entry(" - desc") == WordEntry(text=" - desc", description=None)


def test_parse_entry_with_empty_description() -> None:
    """Test that an empty description is dropped."""
    assert parse_word_entry("cat - ") == WordEntry(text="cat", description=None)


@pytest.mark.parametrize("separator", [" - ", " – ", " — "])
def test_parse_entry_separators(separator: str) -> None:
    """Test hyphen, en dash and em dash separators."""
    assert parse_word_entry(f"sun{separator}it shines") == WordEntry(text="sun", description="it shines")


def test_parse_entry_earliest_separator_wins() -> None:
    """Test that later dashes stay in the description."""
    entry = parse_word_entry("well-known — famous - widely known")
    assert entry == WordEntry(text="well-known", description="famous - widely known")


def test_parse_entry_hyphenated_word() -> None:
    """Test that a dash without spaces is part of the word."""
    assert parse_word_entry("ice-cream") == WordEntry(text="ice-cream")


def test_parse_empty_entry() -> None:
    """Test that a blank entry is rejected."""
    with pytest.raises(InvalidWordConfig):
        parse_word_entry("   ")


def test_parse_word_list_skips_blank_lines() -> None:
    """Test parsing a list with blank lines."""
    assert parse_word_list(["cat", "", "  ", "dog - barks"]) == [
        WordEntry(text="cat"),
        WordEntry(text="dog", description="barks"),
    ]


def test_clean_word_lines() -> None:
    """Test trimming editor lines."""
    assert clean_word_lines([" cat ", "", "dog", "   "]) == ["cat", "dog"]


def test_flat_word_list_is_shared_by_all_tiers() -> None:
    """Test a config given as a flat list."""
    config = word_config_from_data(["cat", "dog"])
    assert all(config[difficulty] == ["cat", "dog"] for difficulty in Difficulty)


def test_tiered_config_with_missing_tier() -> None:
    """Test that a missing tier is empty."""
    config = word_config_from_data({"easy": ["cat"]})
    assert config[Difficulty.EASY] == ["cat"]
    assert config[Difficulty.HARD] == []


def test_invalid_config() -> None:
    """Test configs with the wrong shape."""
    with pytest.raises(InvalidWordConfig):
        word_config_from_data("cat")
    with pytest.raises(InvalidWordConfig):
        word_config_from_data({"easy": "cat"})


def test_load_missing_file(tmp_path: Path) -> None:
    """Test loading a file that does not exist."""
    with pytest.raises(InvalidWordConfig):
        load_word_config(tmp_path / "missing.json")


def test_bundled_words_load() -> None:
    """Test that the bundled word list has words in every tier."""
    from spellrush.config import DEFAULT_WORDS_FILE

    config = load_word_config(DEFAULT_WORDS_FILE)
    assert all(config[difficulty] for difficulty in Difficulty)


def test_default_words(word_source: WordSourceService) -> None:
    """Test reading the configured default words."""
    entries = word_source.get_word_entries()
    assert entries[Difficulty.EASY][0] == WordEntry(text="cat", description="a small furry pet")
    assert entries[Difficulty.HARD] == [WordEntry(text="elephant", description="a large animal")]
    assert word_source.get_word_counts() == {
        Difficulty.EASY: 2,
        Difficulty.MEDIUM: 1,
        Difficulty.HARD: 1,
    }


def test_custom_words_override_defaults(word_source: WordSourceService) -> None:
    """Test that saved custom words take precedence."""
    easy = fake.words(nb=3, unique=True)
    word_source.save_custom_words(
        {
            Difficulty.EASY: easy + [""],
            Difficulty.MEDIUM: ["table"],
            Difficulty.HARD: ["mountain"],
        }
    )

    assert word_source.get_custom_words()[Difficulty.EASY] == easy
    assert word_source.get_current_words()[Difficulty.MEDIUM] == ["table"]
    assert word_source.get_custom_words_modified() is not None

    word_source.reset_custom_words()
    assert word_source.get_custom_words() is None
    assert word_source.get_current_words()[Difficulty.MEDIUM] == ["house"]


def test_custom_words_require_every_tier(word_source: WordSourceService) -> None:
    """Test that each tier needs at least one word."""
    with pytest.raises(InvalidWordConfig) as excinfo:
        word_source.save_custom_words(
            {
                Difficulty.EASY: ["cat"],
                Difficulty.MEDIUM: ["  "],
                Difficulty.HARD: [],
            }
        )
    assert "Medium, Hard" in str(excinfo.value)
    assert word_source.get_custom_words() is None


def test_malformed_custom_words_are_ignored(word_source: WordSourceService, storage: StorageService) -> None:
    """Test falling back to defaults when stored custom words are broken."""
    storage.set(CUSTOM_WORDS_KEY, {"easy": "cat"})
    assert word_source.get_custom_words() is None
    assert word_source.get_current_words()[Difficulty.EASY] == ["cat - a small furry pet", "dog"]


def test_custom_words_kept_in_memory_when_storage_fails(words_file: Path) -> None:
    """Test that custom words stay in effect when they cannot be stored."""
    storage = MagicMock(spec=StorageService)
    storage.get.return_value = None
    storage.set.side_effect = PersistenceFailure(CUSTOM_WORDS_KEY)
    storage.remove.side_effect = PersistenceFailure(CUSTOM_WORDS_KEY)
    word_source = WordSourceService(storage, words_file)

    word_source.save_custom_words(
        {
            Difficulty.EASY: ["sun"],
            Difficulty.MEDIUM: ["table"],
            Difficulty.HARD: ["mountain"],
        }
    )
    assert word_source.get_current_words()[Difficulty.EASY] == ["sun"]
    assert word_source.get_custom_words_modified() is not None

    word_source.reset_custom_words()
    assert word_source.get_custom_words() is None
    assert word_source.get_current_words()[Difficulty.MEDIUM] == ["house"]
