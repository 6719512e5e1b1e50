"""Models for game-related data structures."""
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


class Difficulty(Enum):
    """Word tiers, selected from the current level."""
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class GamePhase(Enum):
    """Phases of the round state machine."""
    IDLE = "idle"
    SPEAKING = "speaking"
    WAITING_INPUT = "waiting-input"
    VALIDATING = "validating"
    JUMPING = "jumping"  # Correct answer, character clears the obstacle
    CRASHING = "crashing"  # Wrong answer or timeout
    LEVEL_UP = "level-up"
    GAME_OVER = "game-over"


class SpeedTier(Enum):
    """Speed bonus tiers by share of the deadline used."""
    LIGHTNING = "lightning"
    FAST = "fast"
    GOOD = "good"
    NORMAL = "normal"


def _dt_to_str(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _dt_from_str(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass(frozen=True)
class WordEntry:
    """A configured word with an optional learner-facing description."""
    text: str
    description: Optional[str] = None

    @property
    def key(self) -> str:
        """Lookup key used by the performance store."""
        return self.text.lower()


@dataclass
class WordPerformance:
    """Per-learner history of one word."""
    word: str
    times_correct_first_try: int = 0
    times_mistakes: int = 0
    times_timeout: int = 0
    total_attempts: int = 0
    last_seen: Optional[datetime] = None

    def to_data(self) -> Dict[str, Any]:
        """Convert to a JSON-compatible dict."""
        return {
            "word": self.word,
            "times_correct_first_try": self.times_correct_first_try,
            "times_mistakes": self.times_mistakes,
            "times_timeout": self.times_timeout,
            "total_attempts": self.total_attempts,
            "last_seen": _dt_to_str(self.last_seen),
        }

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "WordPerformance":
        """Create an instance from stored data."""
        return cls(
            word=data["word"],
            times_correct_first_try=data.get("times_correct_first_try", 0),
            times_mistakes=data.get("times_mistakes", 0),
            times_timeout=data.get("times_timeout", 0),
            total_attempts=data.get("total_attempts", 0),
            last_seen=_dt_from_str(data.get("last_seen")),
        )


PerformanceMap = Dict[str, WordPerformance]


@dataclass(frozen=True)
class WordAttempt:
    """One submitted spelling."""
    typed_text: str
    is_correct: bool
    timestamp: datetime

    def to_data(self) -> Dict[str, Any]:
        return {
            "typed_text": self.typed_text,
            "is_correct": self.is_correct,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "WordAttempt":
        return cls(
            typed_text=data["typed_text"],
            is_correct=data["is_correct"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


@dataclass(frozen=True)
class Success:
    """Round resolved by a correct spelling."""
    attempt_count: int
    response_time_ms: float
    speed_multiplier: float
    speed_tier: SpeedTier
    combo_multiplier: float
    combo_count: int
    score: int

    @property
    def first_try(self) -> bool:
        return self.attempt_count == 1


@dataclass(frozen=True)
class Failure:
    """Round ended on a wrong spelling (no lives left) or was abandoned."""
    correct_spelling: str


@dataclass(frozen=True)
class Timeout:
    """The deadline expired before an attempt was submitted."""
    pass


RoundOutcome = Union[Success, Failure, Timeout]


def outcome_name(outcome: RoundOutcome) -> str:
    """Short name of an outcome, used in records and metrics."""
    if isinstance(outcome, Success):
        return "success"
    if isinstance(outcome, Timeout):
        return "timeout"
    return "failure"


@dataclass(frozen=True)
class RoundResult:
    """Immutable record of one round, appended to the session ledger."""
    word: str
    difficulty: Difficulty
    attempts: Tuple[WordAttempt, ...]
    outcome: str
    score_earned: int
    speed_multiplier: float
    speed_tier: SpeedTier
    combo_multiplier: float
    combo_count_at_resolution: int
    response_time_ms: float
    round_start_time: datetime
    round_end_time: datetime
    level: int
    timed_out: bool

    @classmethod
    def from_outcome(
        cls,
        outcome: RoundOutcome,
        word: str,
        difficulty: Difficulty,
        attempts: List[WordAttempt],
        level: int,
        round_start_time: datetime,
        round_end_time: datetime,
        deadline_ms: float,
    ) -> "RoundResult":
        """Flatten a tagged outcome into a ledger record."""
        if isinstance(outcome, Success):
            return cls(
                word=word,
                difficulty=difficulty,
                attempts=tuple(attempts),
                outcome=outcome_name(outcome),
                score_earned=outcome.score,
                speed_multiplier=outcome.speed_multiplier,
                speed_tier=outcome.speed_tier,
                combo_multiplier=outcome.combo_multiplier,
                combo_count_at_resolution=outcome.combo_count,
                response_time_ms=outcome.response_time_ms,
                round_start_time=round_start_time,
                round_end_time=round_end_time,
                level=level,
                timed_out=False,
            )

        # No answer counts as using the full deadline
        return cls(
            word=word,
            difficulty=difficulty,
            attempts=tuple(attempts),
            outcome=outcome_name(outcome),
            score_earned=0,
            speed_multiplier=1.0,
            speed_tier=SpeedTier.NORMAL,
            combo_multiplier=1.0,
            combo_count_at_resolution=0,
            response_time_ms=deadline_ms,
            round_start_time=round_start_time,
            round_end_time=round_end_time,
            level=level,
            timed_out=isinstance(outcome, Timeout),
        )

    @property
    def first_try_correct(self) -> bool:
        return bool(self.attempts) and self.attempts[0].is_correct and not self.timed_out

    def to_data(self) -> Dict[str, Any]:
        """Convert to a JSON-compatible dict."""
        return {
            "word": self.word,
            "difficulty": self.difficulty.value,
            "attempts": [attempt.to_data() for attempt in self.attempts],
            "outcome": self.outcome,
            "score_earned": self.score_earned,
            "speed_multiplier": self.speed_multiplier,
            "speed_tier": self.speed_tier.value,
            "combo_multiplier": self.combo_multiplier,
            "combo_count_at_resolution": self.combo_count_at_resolution,
            "response_time_ms": self.response_time_ms,
            "round_start_time": self.round_start_time.isoformat(),
            "round_end_time": self.round_end_time.isoformat(),
            "level": self.level,
            "timed_out": self.timed_out,
        }

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "RoundResult":
        """Create an instance from stored data."""
        return cls(
            word=data["word"],
            difficulty=Difficulty(data["difficulty"]),
            attempts=tuple(WordAttempt.from_data(a) for a in data["attempts"]),
            outcome=data["outcome"],
            score_earned=data["score_earned"],
            speed_multiplier=data["speed_multiplier"],
            speed_tier=SpeedTier(data["speed_tier"]),
            combo_multiplier=data["combo_multiplier"],
            combo_count_at_resolution=data["combo_count_at_resolution"],
            response_time_ms=data["response_time_ms"],
            round_start_time=datetime.fromisoformat(data["round_start_time"]),
            round_end_time=datetime.fromisoformat(data["round_end_time"]),
            level=data["level"],
            timed_out=data["timed_out"],
        )


@dataclass
class GameState:
    """Mutable session state owned by a single RoundStateMachine."""
    lives: int
    current_word: Optional[WordEntry] = None
    difficulty: Difficulty = Difficulty.EASY
    attempts: List[WordAttempt] = field(default_factory=list)
    score: int = 0
    level: int = 1
    words_completed_correctly: int = 0
    combo_count: int = 0
    is_playing: bool = False
    is_game_over: bool = False


@dataclass
class SessionRecord:
    """One played session as written to storage."""
    learner_id: str
    session_id: str
    start_time: datetime
    difficulty: Difficulty
    lives_remaining: int
    total_score: int = 0
    end_time: Optional[datetime] = None
    rounds_played: List[RoundResult] = field(default_factory=list)

    @property
    def max_level(self) -> int:
        """Highest level reached in this session."""
        return max((r.level for r in self.rounds_played), default=1)

    def to_data(self) -> Dict[str, Any]:
        return {
            "learner_id": self.learner_id,
            "session_id": self.session_id,
            "start_time": self.start_time.isoformat(),
            "end_time": _dt_to_str(self.end_time),
            "difficulty": self.difficulty.value,
            "total_score": self.total_score,
            "lives_remaining": self.lives_remaining,
            "rounds_played": [r.to_data() for r in self.rounds_played],
        }

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "SessionRecord":
        return cls(
            learner_id=data["learner_id"],
            session_id=data["session_id"],
            start_time=datetime.fromisoformat(data["start_time"]),
            end_time=_dt_from_str(data.get("end_time")),
            difficulty=Difficulty(data["difficulty"]),
            total_score=data["total_score"],
            lives_remaining=data["lives_remaining"],
            rounds_played=[RoundResult.from_data(r) for r in data["rounds_played"]],
        )


@dataclass(frozen=True)
class VoiceSettings:
    """Narration preferences of a learner."""
    voice: str = ""
    rate: float = 0.6
    pitch: float = 1.0
    auto_repeat: bool = False
    auto_repeat_delay: int = 3  # seconds

    def merged(self, **changes: Any) -> "VoiceSettings":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)


@dataclass
class LearnerProfile:
    """A learner known to this installation."""
    email: str
    nickname: str
    avatar: str
    initial_difficulty: Difficulty
    voice: VoiceSettings
    created_at: datetime
    last_used: datetime

    def to_data(self) -> Dict[str, Any]:
        return {
            "email": self.email,
            "nickname": self.nickname,
            "avatar": self.avatar,
            "initial_difficulty": self.initial_difficulty.value,
            "voice": {
                "voice": self.voice.voice,
                "rate": self.voice.rate,
                "pitch": self.voice.pitch,
                "auto_repeat": self.voice.auto_repeat,
                "auto_repeat_delay": self.voice.auto_repeat_delay,
            },
            "created_at": self.created_at.isoformat(),
            "last_used": self.last_used.isoformat(),
        }

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "LearnerProfile":
        return cls(
            email=data["email"],
            nickname=data["nickname"],
            avatar=data["avatar"],
            initial_difficulty=Difficulty(data["initial_difficulty"]),
            voice=VoiceSettings(**data.get("voice", {})),
            created_at=datetime.fromisoformat(data["created_at"]),
            last_used=datetime.fromisoformat(data["last_used"]),
        )
