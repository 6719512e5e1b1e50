"""Session records: the current game and the stored history."""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, UTC
from typing import Any, List, Optional, Tuple

from spellrush.exceptions import PersistenceFailure
from spellrush.models.game_models import Difficulty, RoundResult, SessionRecord
from spellrush.services.performance_store import normalize_learner_id
from spellrush.services.scoring import round_half_up
from spellrush.services.storage_service import StorageService

logger = logging.getLogger(__name__)

SESSIONS_KEY = "sessions"


@dataclass(frozen=True)
class HistorySummary:
    """How a finished game compares with the learner's earlier games."""
    games_played: int
    best_score: int
    average_score: int
    best_level: int
    new_high_score: bool
    new_level_record: bool

    @property
    def first_game(self) -> bool:
        return self.games_played == 0


class SessionLedger:
    """Accumulates round results of the current session and stores it on end."""

    def __init__(self, storage: StorageService):
        """Initialize the ledger with a storage backend."""
        self.storage = storage
        self.current_session: Optional[SessionRecord] = None
        # Sessions that could not be written are kept here
        self._unsaved: List[SessionRecord] = []

    def create_session(
        self,
        learner_id: str,
        difficulty: Difficulty,
        lives: int,
        now: Optional[datetime] = None,
    ) -> SessionRecord:
        """Start a new session; any unfinished one is dropped."""
        if self.current_session is not None:
            logger.warning("Dropping unfinished session %s", self.current_session.session_id)

        self.current_session = SessionRecord(
            learner_id=learner_id,
            session_id=str(uuid.uuid4()),
            start_time=now or datetime.now(UTC),
            difficulty=difficulty,
            lives_remaining=lives,
        )
        logger.info("Created session %s for %s", self.current_session.session_id, learner_id)
        return self.current_session

    def add_round_result(self, result: RoundResult) -> None:
        if self.current_session is None:
            logger.warning("Round result for %s outside a session ignored", result.word)
            return
        self.current_session.rounds_played.append(result)

    def update_score(self, score: int) -> None:
        if self.current_session is not None:
            self.current_session.total_score = score

    def update_lives(self, lives: int) -> None:
        if self.current_session is not None:
            self.current_session.lives_remaining = lives

    def end_session(self, now: Optional[datetime] = None) -> Optional[SessionRecord]:
        """Stamp the end time and persist the current session."""
        session = self.current_session
        if session is None:
            return None

        session.end_time = now or datetime.now(UTC)
        self.current_session = None

        sessions, skipped, loaded = self._load()
        sessions = self._with_unsaved(sessions)
        sessions.append(session)
        # Without the stored history, writing would replace it
        if loaded and self._save(sessions, skipped):
            self._unsaved.clear()
        else:
            self._unsaved.append(session)

        logger.info(
            "Ended session %s: score %d, %d rounds",
            session.session_id,
            session.total_score,
            len(session.rounds_played),
        )
        return session

    def _save(self, sessions: List[SessionRecord], skipped: List[Any]) -> bool:
        try:
            self.storage.set(SESSIONS_KEY, skipped + [session.to_data() for session in sessions])
            return True
        except PersistenceFailure:
            logger.error("Could not save %d sessions, keeping them in memory", len(sessions))
            return False

    def _load(self) -> Tuple[List[SessionRecord], List[Any], bool]:
        """Stored sessions, the raw entries that could not be read and whether loading worked.

        Unreadable entries are written back untouched on the next save.
        """
        try:
            stored = self.storage.get(SESSIONS_KEY) or []
        except PersistenceFailure:
            logger.error("Could not load sessions")
            return [], [], False
        if not isinstance(stored, list):
            logger.error("Stored sessions are not a list, leaving them untouched")
            return [], [], False

        sessions: List[SessionRecord] = []
        skipped: List[Any] = []
        for data in stored:
            try:
                sessions.append(SessionRecord.from_data(data))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.error("Skipping malformed stored session: %s", e)
                skipped.append(data)
        return sessions, skipped, True

    def _with_unsaved(self, sessions: List[SessionRecord]) -> List[SessionRecord]:
        known = {session.session_id for session in sessions}
        return sessions + [s for s in self._unsaved if s.session_id not in known]

    def get_all_sessions(self) -> List[SessionRecord]:
        """Every readable ended session, oldest first."""
        sessions, _, _ = self._load()
        return self._with_unsaved(sessions)

    def sessions_by_learner(self, learner_id: str) -> List[SessionRecord]:
        learner = normalize_learner_id(learner_id)
        return [s for s in self.get_all_sessions() if normalize_learner_id(s.learner_id) == learner]

    def delete_session(self, session_id: str) -> bool:
        """Remove one stored session; returns whether it existed."""
        sessions, skipped, loaded = self._load()
        sessions = self._with_unsaved(sessions)
        kept = [s for s in sessions if s.session_id != session_id]
        if len(kept) == len(sessions):
            return False
        self._unsaved = [s for s in self._unsaved if s.session_id != session_id]
        if loaded:
            self._save(kept, skipped)
        logger.info("Deleted session %s", session_id)
        return True

    def clear_all(self) -> None:
        self._unsaved.clear()
        try:
            self.storage.remove(SESSIONS_KEY)
        except PersistenceFailure:
            logger.error("Could not clear stored sessions")
        logger.info("Cleared all sessions")

    def history_summary(
        self,
        learner_id: str,
        score: int,
        level: int,
        exclude_session_id: Optional[str] = None,
    ) -> HistorySummary:
        """Compare a score and level with the learner's earlier ended games."""
        previous = [
            s for s in self.sessions_by_learner(learner_id)
            if s.end_time is not None and s.session_id != exclude_session_id
        ]
        if not previous:
            return HistorySummary(0, 0, 0, 0, new_high_score=False, new_level_record=False)

        scores = [s.total_score for s in previous]
        best_score = max(scores)
        best_level = max(s.max_level for s in previous)
        return HistorySummary(
            games_played=len(previous),
            best_score=best_score,
            average_score=round_half_up(sum(scores) / len(scores)),
            best_level=best_level,
            new_high_score=score > best_score,
            new_level_record=level > best_level,
        )
