import logging
from typing import Awaitable, Callable, Mapping, Optional, Sequence

from prep_portal.db.stores import HistoryStore
from prep_portal.errors import PersistenceError, PreconditionError
from prep_portal.models import Phase, Question, ResultRecord

logger = logging.getLogger(__name__)


def count_correct(questions: Sequence[Question], answers: Mapping[int, int]) -> int:
    return sum(
        1 for i, choice in answers.items()
        if 0 <= i < len(questions) and choice == questions[i].correct_option_index
    )


def percent(correct: int, total: int) -> int:
    """100 * correct / total rounded half up, as an int in [0, 100]."""
    if total <= 0:
        raise PreconditionError("Cannot score an empty question set")
    # Integer form of floor(100 * correct / total + 0.5)
    return (200 * correct + total) // (2 * total)


def compute_score(questions: Sequence[Question], answers: Mapping[int, int]) -> tuple[int, int, int]:
    """Return (correct_count, total_count, score)."""
    total = len(questions)
    correct = count_correct(questions, answers)
    return correct, total, percent(correct, total)


def score_comment(score: int) -> str:
    """Short verdict shown under the score."""
    if score >= 90:
        return "🏆 Excellent result!"
    elif score >= 75:
        return "👍 Good result!"
    elif score >= 50:
        return "📖 Not bad, but there is room to improve."
    return "💪 Keep practicing. You'll get there!"


class ResultRecorder:
    """Builds the ResultRecord of a finished session and persists it once.

    Signed-in owners go to ``remote``; guests go to ``local`` unless
    ``persist_anonymous_remote`` is set. Write failures are logged and passed
    to ``notify``; the record is returned either way.
    """

    def __init__(
        self,
        remote: HistoryStore,
        local: HistoryStore,
        persist_anonymous_remote: bool = False,
        notify: Optional[Callable[[PersistenceError], Awaitable[None]]] = None,
    ):
        self.remote = remote
        self.local = local
        self.persist_anonymous_remote = persist_anonymous_remote
        self._notify = notify

    def store_for(self, owner_id: Optional[int]) -> HistoryStore:
        if owner_id is not None or self.persist_anonymous_remote:
            return self.remote
        return self.local

    async def record(
        self,
        session,
        owner_id: Optional[int] = None,
        key: Optional[int] = None,
        notify: Optional[Callable[[PersistenceError], Awaitable[None]]] = None,
    ) -> ResultRecord:
        """
        Persist the session result exactly once.

        Args:
            session: A QuizSession in the Finished phase
            owner_id: Signed-in user id, None for guests
            key: Identity the record is listed under (chat id for guests)
            notify: Overrides the recorder-wide failure notifier for this call
        """
        if session.phase is not Phase.FINISHED:
            raise PreconditionError(f"Cannot record a session in phase {session.phase.value}")

        # One-shot latch: set before the write so a re-entry during the await is a no-op
        if session.result is not None:
            return session.result

        config = session.config
        correct, total, score = compute_score(session.questions, session.answers)
        record = ResultRecord(
            topic=config.topic,
            score=score,
            correct_count=correct,
            total_count=total,
            mode=config.mode,
            difficulty=config.difficulty,
            source=config.source_mode,
            owner_id=owner_id,
        )
        session.result = record

        store = self.store_for(owner_id)
        try:
            await store.append(record, key=owner_id if owner_id is not None else key)
        except Exception as e:
            logger.exception(
                "Saving result failed (topic=%r, phase=%s, source=%s, owner=%s)",
                config.topic, session.phase.value, config.source_mode.value, owner_id,
            )
            error = PersistenceError(f"Result write failed: {e}")
            notify = notify or self._notify
            if notify:
                try:
                    await notify(error)
                except Exception:
                    logger.exception("Persistence failure notification could not be delivered")
        else:
            logger.info(
                "Saved result %d%% (%d/%d) for %r, owner=%s",
                score, correct, total, config.topic, owner_id,
            )
        return record
