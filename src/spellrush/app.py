"""Console application wiring the game services together."""
import asyncio
import logging
import sys
from pathlib import Path
from typing import Callable, Optional

from sqlalchemy.orm import Session

from spellrush.config import settings
from spellrush.exceptions import InputDisabled, ProfileError
from spellrush.models.base import SessionLocal, init_db
from spellrush.models.game_models import GamePhase, GameState, LearnerProfile, SessionRecord
from spellrush.services.narration_service import (
    GttsNarrator,
    NarrationService,
    Narrator,
    SilentNarrator,
)
from spellrush.services.performance_store import PerformanceStore
from spellrush.services.profile_service import ProfileService
from spellrush.services.round_machine import RoundStateMachine
from spellrush.services.session_ledger import SessionLedger
from spellrush.services.storage_service import StorageService
from spellrush.services.word_scheduler import TieredWordScheduler
from spellrush.services.word_source import WordSourceService

QUIT_COMMAND = ":q"
REPEAT_COMMAND = ":r"
DEFAULT_AVATAR = "🙂"


class SpellRushApp:
    """Main application class: one learner, one session at a time."""

    def __init__(
        self,
        learner_email: Optional[str] = None,
        words_file: Optional[Path] = None,
        narrator: Optional[Narrator] = None,
        output: Callable[[str], None] = print,
    ):
        """Initialize the application."""
        self.learner_email = learner_email
        self.words_file = words_file
        self.narrator = narrator
        self.output = output
        self.db: Optional[Session] = None
        self.profiles: Optional[ProfileService] = None
        self.word_source: Optional[WordSourceService] = None
        self.performance: Optional[PerformanceStore] = None
        self.ledger: Optional[SessionLedger] = None
        self.machine: Optional[RoundStateMachine] = None
        self.logger = logging.getLogger(__name__)

    def start(self) -> None:
        """Open the database and build the services."""
        init_db()
        self.db = SessionLocal()
        self.logger.info("Database initialized")

        storage = StorageService(self.db)
        self.profiles = ProfileService(storage)
        self.word_source = WordSourceService(storage, self.words_file)
        self.performance = PerformanceStore(storage)
        self.ledger = SessionLedger(storage)

        if self.narrator is None:
            self.narrator = GttsNarrator() if settings.narration.enabled else SilentNarrator()

    def stop(self) -> None:
        """Release the database session."""
        if self.db is not None:
            self.db.close()
            self.db = None
        self.logger.info("Application stopped")

    async def _read_line(self, prompt: str = "") -> Optional[str]:
        """Read a line from stdin without blocking the event loop; None on EOF."""
        if prompt:
            self.output(prompt)
        line = await asyncio.get_running_loop().run_in_executor(None, sys.stdin.readline)
        if not line:
            return None
        return line.rstrip("\n")

    async def choose_profile(self) -> LearnerProfile:
        """Select the learner given on the command line, the last one, or ask."""
        email = self.learner_email
        if email is None and self.profiles.current_profile is not None:
            return self.profiles.select_profile(self.profiles.current_profile.email)

        while True:
            if email is None:
                email = await self._read_line("Email:")
                if email is None:
                    raise ProfileError("No learner given")

            if self.profiles.get_profile(email) is not None:
                return self.profiles.select_profile(email)

            nickname = email.split("@")[0]
            try:
                self.profiles.create_profile(email, nickname, DEFAULT_AVATAR)
                return self.profiles.select_profile(email)
            except ProfileError as e:
                self.output(f"⚠️ {e}")
                if self.learner_email is not None:
                    raise
                email = None

    def _on_phase(self, phase: GamePhase, state: GameState) -> None:
        word = state.current_word
        if phase is GamePhase.SPEAKING:
            self.output(
                f"\n🔊 Level {state.level} | ❤️ {state.lives} | ⭐ {state.score} | combo {state.combo_count}"
            )
            if word is not None and word.description:
                self.output(f"💡 {word.description}")
        elif phase is GamePhase.WAITING_INPUT:
            self.output(f"✏️ Type the word ({REPEAT_COMMAND} repeat, {QUIT_COMMAND} quit):")
        elif phase is GamePhase.JUMPING:
            self.output("✅ Correct!")
        elif phase is GamePhase.CRASHING and word is not None:
            self.output(f"💥 Crash! The word is: {word.text}")
        elif phase is GamePhase.LEVEL_UP:
            self.output(f"🚀 Level {state.level}!")
        elif phase is GamePhase.GAME_OVER:
            self.output(f"\n🏁 Game over! Score: {state.score}, level: {state.level}")

    async def _handle_input(self) -> None:
        machine = self.machine
        while machine.state.is_playing:
            line = await self._read_line()
            if not machine.state.is_playing:
                break
            if line is None or line.strip() == QUIT_COMMAND:
                machine.quit()
                break
            if line.strip() == REPEAT_COMMAND:
                try:
                    await machine.repeat_word()
                except InputDisabled:
                    self.output("⏳ Wait for the word...")
                continue
            try:
                machine.submit_attempt(line)
            except InputDisabled:
                self.output("⏳ Wait for the word...")

    async def play(self) -> Optional[SessionRecord]:
        """Play one session in the terminal."""
        profile = await self.choose_profile()
        self.output(f"{profile.avatar} Hi {profile.nickname}!")

        self.machine = RoundStateMachine(
            learner_id=profile.email,
            scheduler=TieredWordScheduler(),
            ledger=self.ledger,
            performance_store=self.performance,
            narration=NarrationService(self.narrator, profile.voice),
            difficulty=profile.initial_difficulty,
        )
        self.machine.add_listener(self._on_phase)
        await self.machine.start(self.word_source.get_word_entries())

        input_task = asyncio.create_task(self._handle_input())
        try:
            session = await self.machine.wait_until_over()
        except BaseException:
            input_task.cancel()
            raise

        # The reader thread is still blocked on stdin
        if not input_task.done():
            self.output("Press Enter to finish.")
        await input_task

        if session is not None:
            self._show_history(profile, session)
        return session

    def _show_history(self, profile: LearnerProfile, session: SessionRecord) -> None:
        summary = self.ledger.history_summary(
            profile.email,
            session.total_score,
            self.machine.state.level,
            exclude_session_id=session.session_id,
        )
        if summary.first_game:
            self.output("This is your first game! 🎮")
            return

        self.output(
            f"Games played: {summary.games_played} | best score: {summary.best_score} | "
            f"average score: {summary.average_score} | best level: {summary.best_level}"
        )
        if summary.new_high_score:
            self.output("🎉 New High Score! 🎉")
        if summary.new_level_record:
            self.output("🚀 New Level Record! 🚀")
