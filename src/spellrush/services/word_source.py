"""Service for loading and overriding the configured word lists."""
import json
import logging
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from spellrush.config import settings
from spellrush.exceptions import InvalidWordConfig, PersistenceFailure
from spellrush.models.game_models import Difficulty, WordEntry
from spellrush.services.storage_service import StorageService

logger = logging.getLogger(__name__)

CUSTOM_WORDS_KEY = "custom-words"

# Hyphen, en dash and em dash, each surrounded by spaces
DESCRIPTION_SEPARATORS = (" - ", " – ", " — ")

WordConfig = Dict[Difficulty, List[str]]


def parse_word_entry(raw: str) -> WordEntry:
    """Split ``"<text> - <description>"`` into a WordEntry.

    The earliest separator wins, so dashes inside the description are kept.
    An entry with nothing before the separator is taken literally.
    """
    positions = [
        (raw.find(separator), separator)
        for separator in DESCRIPTION_SEPARATORS
        if separator in raw
    ]
    if not positions:
        text = raw.strip()
        if not text:
            raise InvalidWordConfig("Word entry is empty")
        return WordEntry(text=text)

    index, separator = min(positions)
    text = raw[:index].strip()
    description = raw[index + len(separator):].strip()

    if not text:
        return WordEntry(text=raw)
    return WordEntry(text=text, description=description or None)


def parse_word_list(raw_entries: Iterable[str]) -> List[WordEntry]:
    """Parse raw entries, skipping blank lines."""
    return [parse_word_entry(raw) for raw in raw_entries if raw.strip()]


def clean_word_lines(lines: Iterable[str]) -> List[str]:
    """Trim lines and drop empty ones, as typed into a word editor."""
    return [line.strip() for line in lines if line.strip()]


def word_config_from_data(data: Any) -> WordConfig:
    """Build a tiered config from ``{easy, medium, hard}`` or a flat list.

    A flat list is shared by all tiers.
    """
    if isinstance(data, list):
        words = [str(word) for word in data]
        return {difficulty: list(words) for difficulty in Difficulty}

    if not isinstance(data, dict):
        raise InvalidWordConfig("Word list must be a JSON object or array")

    config: WordConfig = {}
    for difficulty in Difficulty:
        words = data.get(difficulty.value, [])
        if not isinstance(words, list):
            raise InvalidWordConfig(f"Words for {difficulty.value} must be a list")
        config[difficulty] = [str(word) for word in words]
    return config


def word_config_to_data(config: WordConfig) -> Dict[str, List[str]]:
    """Convert a tiered config to its JSON shape."""
    return {difficulty.value: list(config.get(difficulty, [])) for difficulty in Difficulty}


def load_word_config(path: Path) -> WordConfig:
    """Load a word list JSON file."""
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.error("Could not load words from %s: %s", path, e)
        raise InvalidWordConfig(f"Could not load words from {path}") from e
    return word_config_from_data(data)


class WordSourceService:
    """Resolves the active word lists: custom overrides first, then defaults."""

    def __init__(self, storage: StorageService, words_file: Optional[Path] = None):
        """Initialize the service with a storage backend and default word file."""
        self.storage = storage
        self.words_file = Path(words_file or settings.paths.words_file)
        self._default_words: Optional[WordConfig] = None
        # Custom words that could not be written; an empty dict is an unsaved reset
        self._unsaved_custom: Optional[Dict[str, Any]] = None

    def get_default_words(self) -> WordConfig:
        """Get the word lists shipped in the words file."""
        if self._default_words is None:
            self._default_words = load_word_config(self.words_file)
            logger.info(
                "Loaded default words from %s: %s",
                self.words_file,
                {d.value: len(w) for d, w in self._default_words.items()},
            )
        return self._default_words

    def _stored_custom(self) -> Optional[Dict[str, Any]]:
        if self._unsaved_custom is not None:
            return self._unsaved_custom or None
        try:
            return self.storage.get(CUSTOM_WORDS_KEY)
        except PersistenceFailure:
            logger.warning("Custom words unavailable, using defaults")
            return None

    def get_custom_words(self) -> Optional[WordConfig]:
        """Get the learner-edited word lists, if any were saved."""
        stored = self._stored_custom()
        if not stored:
            return None
        try:
            return word_config_from_data(stored)
        except InvalidWordConfig as e:
            logger.error("Ignoring malformed custom words: %s", e)
            return None

    def get_custom_words_modified(self) -> Optional[datetime]:
        """When the custom word lists were last saved."""
        stored = self._stored_custom()
        if not stored or not stored.get("last_modified"):
            return None
        return datetime.fromisoformat(stored["last_modified"])

    def save_custom_words(self, config: WordConfig) -> WordConfig:
        """Validate and store custom word lists.

        Every tier must keep at least one word.
        """
        cleaned = {difficulty: clean_word_lines(config.get(difficulty, [])) for difficulty in Difficulty}
        empty = [difficulty.value.capitalize() for difficulty, words in cleaned.items() if not words]
        if empty:
            raise InvalidWordConfig(
                f"{', '.join(empty)} difficulty level(s) must have at least one word"
            )

        data = word_config_to_data(cleaned)
        data["last_modified"] = datetime.now(UTC).isoformat()
        try:
            self.storage.set(CUSTOM_WORDS_KEY, data)
            self._unsaved_custom = None
        except PersistenceFailure:
            logger.error("Could not save custom words, keeping them in memory")
            self._unsaved_custom = data
        logger.info("Saved %d custom words", sum(len(words) for words in cleaned.values()))
        return cleaned

    def reset_custom_words(self) -> None:
        """Drop custom word lists and fall back to the defaults."""
        try:
            self.storage.remove(CUSTOM_WORDS_KEY)
            self._unsaved_custom = None
        except PersistenceFailure:
            logger.error("Could not remove stored custom words, resetting in memory")
            self._unsaved_custom = {}
        logger.info("Custom words reset to defaults")

    def get_current_words(self) -> WordConfig:
        """Get the raw word lists in effect."""
        return self.get_custom_words() or self.get_default_words()

    def get_word_entries(self) -> Dict[Difficulty, List[WordEntry]]:
        """Get parsed entries for every tier."""
        return {difficulty: parse_word_list(words) for difficulty, words in self.get_current_words().items()}

    def get_word_counts(self) -> Dict[Difficulty, int]:
        """Number of words per tier."""
        return {difficulty: len(words) for difficulty, words in self.get_current_words().items()}
