"""Round orchestration: narration, countdown, validation and resolution."""
import asyncio
import logging
from datetime import datetime, UTC
from typing import Callable, List, Mapping, Optional, Sequence

from spellrush.config import GameSettings, settings
from spellrush.exceptions import EmptySchedule, InputDisabled, NarrationFailure, NotInitialized
from spellrush.models.game_models import (
    Difficulty,
    Failure,
    GamePhase,
    GameState,
    RoundOutcome,
    RoundResult,
    SessionRecord,
    Success,
    Timeout,
    WordAttempt,
    WordEntry,
)
from spellrush.monitoring import (
    error_count,
    level_ups,
    points_awarded,
    response_time,
    rounds_resolved,
    sessions_ended,
    sessions_started,
)
from spellrush.services.narration_service import NarrationService
from spellrush.services.performance_store import PerformanceStore
from spellrush.services.round_clock import RoundClock
from spellrush.services.scoring import (
    combo_multiplier,
    deadline_for_level,
    difficulty_for_level,
    final_score,
    speed_tier,
)
from spellrush.services.session_ledger import SessionLedger
from spellrush.services.word_scheduler import TieredWordScheduler

logger = logging.getLogger(__name__)

PhaseListener = Callable[[GamePhase, GameState], None]


def normalize_answer(text: str) -> str:
    """Spelling comparison ignores surrounding blanks and case."""
    return text.strip().casefold()


class RoundStateMachine:
    """Plays one session, one round at a time, until no lives are left or quit.

    Every phase change is reported to the registered listeners. A listener may
    call ``submit_attempt`` as soon as it sees ``WAITING_INPUT``.
    """

    def __init__(
        self,
        learner_id: str,
        scheduler: TieredWordScheduler,
        ledger: SessionLedger,
        performance_store: PerformanceStore,
        narration: NarrationService,
        clock: Optional[RoundClock] = None,
        game: Optional[GameSettings] = None,
        difficulty: Difficulty = Difficulty.EASY,
    ):
        self.learner_id = learner_id
        self.scheduler = scheduler
        self.ledger = ledger
        self.performance_store = performance_store
        self.narration = narration
        self.game = game or settings.game
        self.clock = clock or RoundClock(game=self.game)
        self.difficulty = difficulty

        self.state = GameState(lives=self.game.starting_lives)
        self.phase = GamePhase.IDLE
        self.session: Optional[SessionRecord] = None
        self.error: Optional[Exception] = None

        self._listeners: List[PhaseListener] = []
        self._task: Optional[asyncio.Task] = None
        self._answer: Optional[asyncio.Future] = None
        self._submitted_at_ms: float = 0
        self._round_start_time: Optional[datetime] = None
        self._round_open = False
        self._pending_success: Optional[Success] = None
        self._timed_out = False
        self._score_applied = False

    def add_listener(self, listener: PhaseListener) -> None:
        self._listeners.append(listener)

    def _set_phase(self, phase: GamePhase) -> None:
        self.phase = phase
        logger.debug("Phase: %s", phase.value)
        for listener in self._listeners:
            listener(phase, self.state)

    async def start(self, word_entries: Mapping[Difficulty, Sequence[WordEntry]]) -> SessionRecord:
        """Build the session order from the learner's history and start playing."""
        if self._task is not None:
            raise RuntimeError("Session already started")

        performance = self.performance_store.get_performance(self.learner_id)
        self.scheduler.initialize(word_entries, performance)

        first_tier = difficulty_for_level(self.state.level)
        if self.scheduler.word_count(first_tier) == 0:
            raise EmptySchedule(first_tier.value)

        self.session = self.ledger.create_session(self.learner_id, self.difficulty, self.state.lives)
        self.state.is_playing = True
        sessions_started.inc()

        self._task = asyncio.create_task(self._run())
        return self.session

    async def wait_until_over(self) -> Optional[SessionRecord]:
        """Wait for game over or quit.

        A scheduling error that stopped the session is raised here, after the
        session was ended and stored.
        """
        if self._task is not None:
            await asyncio.wait([self._task])
            if not self._task.cancelled() and self._task.exception() is not None:
                raise self._task.exception()
        if self.error is not None:
            raise self.error
        return self.session

    async def _run(self) -> None:
        try:
            while not self.state.is_game_over:
                await self._play_round()
        except (EmptySchedule, NotInitialized) as e:
            error_count.labels(error_type="scheduling").inc()
            logger.error("Session stopped: %s", e)
            self.error = e
            self._end("error")

    async def _play_round(self) -> None:
        state = self.state
        state.difficulty = difficulty_for_level(state.level)
        entry = self.scheduler.next(state.difficulty)

        state.current_word = entry
        state.attempts = []
        self._round_start_time = datetime.now(UTC)
        self._round_open = True
        self._pending_success = None
        self._timed_out = False
        self._score_applied = False
        logger.info("Round: %r (%s, level %d)", entry.text, state.difficulty.value, state.level)

        while True:
            typed = await self._present(entry)
            if typed is None:
                await self._resolve_timeout()
                return

            attempt = WordAttempt(
                typed_text=typed.strip(),
                is_correct=normalize_answer(typed) == normalize_answer(entry.text),
                timestamp=datetime.now(UTC),
            )
            state.attempts.append(attempt)

            if attempt.is_correct:
                await self._resolve_success()
                return

            await self._crash_on_wrong_answer()
            if state.lives == 0:
                self._record(Failure(correct_spelling=entry.text))
                self._end("game_over")
                return
            logger.info("Wrong answer %r for %r, retrying", attempt.typed_text, entry.text)

    async def _present(self, entry: WordEntry) -> Optional[str]:
        """Speak the word, launch the obstacle and wait for input or expiry."""
        self._set_phase(GamePhase.SPEAKING)
        self.clock.reset()
        self.clock.mark_narration_start()
        try:
            await self.narration.speak(entry.text)
        except NarrationFailure as e:
            logger.error("Narration failed, round continues: %s", e)
        self.clock.mark_narration_end()

        self.clock.start_obstacle(self.state.level)
        self._answer = asyncio.get_running_loop().create_future()
        self.clock.arm_deadline(self._on_deadline)
        self._set_phase(GamePhase.WAITING_INPUT)
        return await self._answer

    def submit_attempt(self, text: str) -> None:
        """Hand in a spelling; accepted once per presented word.

        Raises InputDisabled outside the waiting-input phase.
        """
        if self.phase is not GamePhase.WAITING_INPUT or self._answer is None or self._answer.done():
            raise InputDisabled(self.phase.value)

        self._submitted_at_ms = self.clock.now()
        self.clock.cancel_deadline()
        self.narration.stop()
        self._set_phase(GamePhase.VALIDATING)
        self._answer.set_result(text)

    def _on_deadline(self) -> None:
        if self._answer is None or self._answer.done():
            return
        self.clock.cancel_deadline()
        self.state.combo_count = 0
        self._timed_out = True
        self.narration.stop()
        self._set_phase(GamePhase.CRASHING)
        self._answer.set_result(None)

    async def repeat_word(self) -> None:
        """Say the current word again while waiting for input."""
        if self.phase is not GamePhase.WAITING_INPUT or self.state.current_word is None:
            raise InputDisabled(self.phase.value)
        try:
            await self.narration.speak(self.state.current_word.text)
        except NarrationFailure as e:
            logger.error("Narration failed: %s", e)

    async def _resolve_success(self) -> None:
        state = self.state
        self._set_phase(GamePhase.JUMPING)

        attempt_count = len(state.attempts)
        if attempt_count == 1:
            state.combo_count += 1
        else:
            state.combo_count = 0

        obstacle_start = self.clock.obstacle_start_ms
        response_ms = 0 if obstacle_start is None else self._submitted_at_ms - obstacle_start
        speed_mult, tier = speed_tier(response_ms, self.clock.deadline_ms)
        combo_mult = combo_multiplier(state.combo_count)
        outcome = Success(
            attempt_count=attempt_count,
            response_time_ms=response_ms,
            speed_multiplier=speed_mult,
            speed_tier=tier,
            combo_multiplier=combo_mult,
            combo_count=state.combo_count,
            score=final_score(attempt_count, speed_mult, combo_mult),
        )
        self._pending_success = outcome
        state.words_completed_correctly += 1
        response_time.observe(response_ms / 1000)

        # Points show up once the character has cleared the obstacle
        await self.clock.sleep(self.clock.remaining_until_reach_ms() + self.game.feedback_hold_ms)
        self._apply_score(outcome)
        await self.clock.sleep(self.game.score_animation_ms)
        await self.clock.sleep(self.clock.remaining_travel_ms())
        self._record(outcome)

        if state.words_completed_correctly % self.game.words_per_level == 0:
            state.level += 1
            level_ups.inc()
            logger.info("Level up: %d", state.level)
            self._set_phase(GamePhase.LEVEL_UP)
            await self.clock.sleep(self.game.level_up_delay_ms)

    async def _crash_on_wrong_answer(self) -> None:
        self.state.combo_count = 0
        self._set_phase(GamePhase.CRASHING)
        await self.clock.sleep(self.clock.remaining_until_reach_ms())
        await self.clock.sleep(self.game.crash_delay_ms)
        self._lose_life()
        await self.clock.sleep(self.game.correction_display_ms)
        await self.clock.sleep(self.clock.remaining_travel_ms())

    async def _resolve_timeout(self) -> None:
        await self.clock.sleep(self.game.crash_delay_ms)
        self._lose_life()
        await self.clock.sleep(self.game.correction_display_ms)
        await self.clock.sleep(self.clock.remaining_travel_ms())
        self._record(Timeout())
        if self.state.lives == 0:
            self._end("game_over")

    def _lose_life(self) -> None:
        self.state.lives = max(0, self.state.lives - 1)
        self.ledger.update_lives(self.state.lives)
        logger.info("Life lost, %d left", self.state.lives)

    def _apply_score(self, outcome: Success) -> None:
        if self._score_applied:
            return
        self._score_applied = True
        self.state.score += outcome.score
        self.ledger.update_score(self.state.score)
        points_awarded.inc(outcome.score)

    def _record(self, outcome: RoundOutcome) -> RoundResult:
        """Append the round to the ledger and the learner's word history."""
        state = self.state
        result = RoundResult.from_outcome(
            outcome,
            word=state.current_word.text,
            difficulty=state.difficulty,
            attempts=state.attempts,
            level=state.level,
            round_start_time=self._round_start_time or datetime.now(UTC),
            round_end_time=datetime.now(UTC),
            deadline_ms=deadline_for_level(state.level, self.game),
        )
        self._round_open = False
        self._pending_success = None
        self.ledger.add_round_result(result)
        self.performance_store.record_result(self.learner_id, result)
        rounds_resolved.labels(outcome=result.outcome).inc()
        logger.info("Round resolved: %s %r, %d points", result.outcome, result.word, result.score_earned)
        return result

    def _end(self, reason: str) -> None:
        state = self.state
        state.is_playing = False
        state.is_game_over = True
        self.clock.cancel_deadline()
        self.narration.stop()
        self.session = self.ledger.end_session() or self.session
        sessions_ended.labels(reason=reason).inc()
        logger.info("Game over (%s): score %d, level %d", reason, state.score, state.level)
        self._set_phase(GamePhase.GAME_OVER)

    def quit(self) -> Optional[SessionRecord]:
        """Abandon the session, keeping whatever the current round achieved."""
        if not self.state.is_playing:
            return self.session

        self.clock.cancel_deadline()
        self.narration.stop()
        if self._task is not None and not self._task.done():
            self._task.cancel()

        if self._round_open and self.state.current_word is not None:
            pending = self._pending_success
            if pending is not None:
                self._apply_score(pending)
                self._record(pending)
            elif self._timed_out:
                self._record(Timeout())
            else:
                self._record(Failure(correct_spelling=self.state.current_word.text))

        self._end("quit")
        return self.session

