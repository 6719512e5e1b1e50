"""Exceptions raised by the game core."""


class SpellRushError(Exception):
    """Base exception for the game."""
    pass


class EmptySchedule(SpellRushError):
    """Raised when the active tier has no words configured."""
    def __init__(self, difficulty: str = "", message: str = "No words available"):
        self.difficulty = difficulty
        if difficulty:
            message = f"{message} for difficulty: {difficulty}"
        super().__init__(message)


class NotInitialized(SpellRushError):
    """Raised when the scheduler is used before session setup."""
    pass


class NarrationFailure(SpellRushError):
    """Raised by a narrator when speech synthesis or playback fails."""
    def __init__(self, text: str, message: str = "Narration failed"):
        self.text = text
        super().__init__(f"{message}: {text!r}")


class PersistenceFailure(SpellRushError):
    """Raised by the storage layer when a read or write fails."""
    def __init__(self, key: str, message: str = "Storage operation failed"):
        self.key = key
        super().__init__(f"{message} (key: {key})")


class InputDisabled(SpellRushError):
    """Raised when an attempt is submitted outside the waiting-input phase."""
    def __init__(self, phase: str):
        self.phase = phase
        super().__init__(f"Input is disabled during phase: {phase}")


class InvalidWordConfig(SpellRushError):
    """Raised when a word list does not have the expected shape."""
    pass


class ProfileError(SpellRushError):
    """Raised when a learner profile operation is rejected."""
    pass
