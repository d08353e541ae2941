"""Quiz session state machine.

Phases: Landing -> Sourcing -> Active -> Finished. Every transition is a
plain synchronous method, so on a single event loop no two transitions can
interleave; the only await is the resolver call inside ``start``.
"""
import logging
from typing import Any, Awaitable, Callable, Optional, Sequence

from prep_portal.errors import PortalError, PreconditionError, SchemaError
from prep_portal.models import OPTION_COUNT, Mode, Phase, Question, SessionConfig
from prep_portal.services.scoring import compute_score
from prep_portal.services.ticker import Cancellable, Scheduler, every_second

logger = logging.getLogger(__name__)

GENERIC_SOURCING_ERROR = "Please try a smaller number of questions or try again."


class QuizSession:
    """One quiz attempt for one chat."""

    def __init__(
        self,
        resolver=None,
        scheduler: Scheduler = every_second,
        on_timeout: Optional[Callable[["QuizSession"], Awaitable[Any]]] = None,
        config: Optional[SessionConfig] = None,
    ):
        self._resolver = resolver
        self._schedule = scheduler
        self._on_timeout = on_timeout
        self.config = config or SessionConfig()
        self._ticker: Optional[Cancellable] = None
        self._sourcing_token: Optional[object] = None
        self._clear()

    def _clear(self) -> None:
        self._stop_ticker()
        self._sourcing_token = None
        self.phase = Phase.LANDING
        self.questions: tuple[Question, ...] = ()
        self.current_index = 0
        self.answers: dict[int, int] = {}
        self.revealed: set[int] = set()
        self.remaining_seconds = 0
        self.error: Optional[str] = None
        # Set once by ResultRecorder; doubles as the persistence latch
        self.result = None

    # ------------------------------------------------------------------
    # Sourcing
    # ------------------------------------------------------------------

    def begin_sourcing(self, config: Optional[SessionConfig] = None) -> object:
        """Landing -> Sourcing. Returns a token identifying this sourcing run."""
        if self.phase is not Phase.LANDING:
            raise PreconditionError(f"Cannot start a session from phase {self.phase.value}")
        if config is not None:
            self.config = config
        self.config.validate()

        self.error = None
        self.phase = Phase.SOURCING
        self._sourcing_token = object()
        return self._sourcing_token

    def sourcing_succeeded(self, questions: Sequence[Question], token: Optional[object] = None) -> bool:
        """Sourcing -> Active. A batch of the wrong size fails sourcing instead."""
        if not self._is_current(token):
            logger.info("Discarding questions for %r: session moved on", self.config.topic)
            return False

        if len(questions) == 0 or len(questions) != self.config.question_count:
            self.sourcing_failed(SchemaError(
                f"Expected {self.config.question_count} questions, got {len(questions)}"
            ), token)
            return False

        self._sourcing_token = None
        self.questions = tuple(questions)
        self.current_index = 0
        self.answers = {}
        self.revealed = set()
        self.phase = Phase.ACTIVE

        if self.config.is_timed:
            self.remaining_seconds = self.config.duration_minutes * 60
            self._ticker = self._schedule(self._handle_tick)

        logger.info(
            "Session active: %d questions on %r (%s, %s)",
            len(self.questions), self.config.topic, self.config.mode.value, self.config.source_mode.value,
        )
        return True

    def sourcing_failed(self, error: Exception, token: Optional[object] = None) -> bool:
        """Sourcing -> Landing, keeping the config so the user can retry."""
        if not self._is_current(token):
            logger.info("Ignoring sourcing failure for %r: session moved on (%s)", self.config.topic, error)
            return False

        logger.error(
            "Sourcing failed (topic=%r, phase=%s, source=%s): %s: %s",
            self.config.topic, self.phase.value, self.config.source_mode.value, type(error).__name__, error,
        )
        self._sourcing_token = None
        self.phase = Phase.LANDING
        self.error = error.user_message if isinstance(error, PortalError) else GENERIC_SOURCING_ERROR
        return True

    async def start(self, config: Optional[SessionConfig] = None) -> bool:
        """Run Landing -> Sourcing -> Active (True) or back to Landing (False)."""
        if self._resolver is None:
            raise PreconditionError("Session has no question resolver")

        token = self.begin_sourcing(config)
        try:
            questions = await self._resolver.resolve(self.config)
        except Exception as e:
            if not isinstance(e, PortalError):
                logger.exception("Unexpected error while sourcing %r", self.config.topic)
            self.sourcing_failed(e, token)
            return False
        return self.sourcing_succeeded(questions, token)

    def _is_current(self, token: Optional[object]) -> bool:
        if self.phase is not Phase.SOURCING:
            return False
        return token is None or token is self._sourcing_token

    # ------------------------------------------------------------------
    # Active
    # ------------------------------------------------------------------

    @property
    def current_question(self) -> Optional[Question]:
        if self.phase in (Phase.ACTIVE, Phase.FINISHED) and self.questions:
            return self.questions[self.current_index]
        return None

    @property
    def is_last(self) -> bool:
        return self.current_index == len(self.questions) - 1

    def is_revealed(self, index: Optional[int] = None) -> bool:
        if index is None:
            index = self.current_index
        return index in self.revealed

    def select_option(self, option_index: int) -> bool:
        """Record the answer for the current question.

        Practice: reveals and freezes the question. Timed: moves on unless
        this is the last question. Returns False when the answer is refused.
        """
        if not 0 <= option_index < OPTION_COUNT:
            raise PreconditionError(f"Option index out of range: {option_index}")
        if self.phase is not Phase.ACTIVE:
            return False

        index = self.current_index
        if self.config.mode is Mode.PRACTICE:
            if index in self.revealed:
                return False
            self.answers[index] = option_index
            self.revealed.add(index)
        else:
            self.answers[index] = option_index
            if not self.is_last:
                self.current_index += 1
        return True

    def advance(self) -> bool:
        """Next question, or finish when already on the last one."""
        if self.phase is not Phase.ACTIVE:
            return False
        if self.current_index + 1 < len(self.questions):
            self.current_index += 1
            return True
        return self.finish()

    def retreat(self) -> bool:
        """Previous question. Refused on a revealed practice question."""
        if self.phase is not Phase.ACTIVE or self.current_index == 0:
            return False
        if self.config.mode is Mode.PRACTICE and self.current_index in self.revealed:
            return False
        self.current_index -= 1
        return True

    def finish(self) -> bool:
        """Active -> Finished. A second call is a no-op and returns False."""
        if self.phase is not Phase.ACTIVE:
            return False
        self.phase = Phase.FINISHED
        self._stop_ticker()
        # Practice review shows every explanation once the session is over
        self.revealed = set(range(len(self.questions)))
        logger.info(
            "Session finished on %r: %d/%d answered",
            self.config.topic, len(self.answers), len(self.questions),
        )
        return True

    def score(self) -> tuple[int, int, int]:
        """(correct_count, total_count, score) for the current answers."""
        return compute_score(self.questions, self.answers)

    # ------------------------------------------------------------------
    # Timer
    # ------------------------------------------------------------------

    def tick(self) -> bool:
        """One second elapsed. Returns True only for the tick that ends the session."""
        if self.phase is not Phase.ACTIVE or not self.config.is_timed:
            return False
        self.remaining_seconds = max(0, self.remaining_seconds - 1)
        if self.remaining_seconds == 0:
            return self.finish()
        return False

    def _handle_tick(self):
        if self.tick() and self._on_timeout is not None:
            return self._on_timeout(self)
        return None

    def _stop_ticker(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Discard the attempt and return to Landing. The config is kept."""
        if self.phase is not Phase.LANDING:
            logger.info("Session on %r reset from %s", self.config.topic, self.phase.value)
        self._clear()
