import logging
from typing import Any, Awaitable, Callable, Optional

from prep_portal.config import settings
from prep_portal.db.stores import (
    HistoryStore, LocalHistoryStore, QuestionPool, SqliteHistoryStore, SqliteQuestionPool,
)
from prep_portal.llm.client import GenerationClient
from prep_portal.models import SessionConfig
from prep_portal.services.pool_writer import PoolWriter
from prep_portal.services.question_source import QuestionGenerator, QuestionSourceResolver
from prep_portal.services.scoring import ResultRecorder
from prep_portal.services.session_machine import QuizSession
from prep_portal.services.ticker import Scheduler, every_second

logger = logging.getLogger(__name__)


class Portal:
    """Wires the collaborators together and keeps one live session per chat."""

    def __init__(
        self,
        generator: QuestionGenerator,
        pool: QuestionPool,
        remote_history: HistoryStore,
        local_history: HistoryStore,
        persist_anonymous_remote: bool = False,
        scheduler: Scheduler = every_second,
    ):
        self.generator = generator
        self.pool = pool
        self.pool_writer = PoolWriter(pool)
        self.resolver = QuestionSourceResolver(generator, pool, self.pool_writer)
        self.remote_history = remote_history
        self.local_history = local_history
        self.recorder = ResultRecorder(remote_history, local_history, persist_anonymous_remote)
        self._scheduler = scheduler
        self._sessions: dict[int, QuizSession] = {}

    def get_session(self, chat_id: int) -> Optional[QuizSession]:
        return self._sessions.get(chat_id)

    def new_session(
        self,
        chat_id: int,
        config: SessionConfig,
        on_timeout: Optional[Callable[[QuizSession], Awaitable[Any]]] = None,
    ) -> QuizSession:
        """Replace the chat's session. The old one is reset so its timer stops."""
        self.discard(chat_id)
        session = QuizSession(
            resolver=self.resolver,
            scheduler=self._scheduler,
            on_timeout=on_timeout,
            config=config,
        )
        self._sessions[chat_id] = session
        return session

    def reset(self, chat_id: int) -> None:
        """Return the chat's session to Landing, keeping its config for a retry."""
        session = self._sessions.get(chat_id)
        if session is not None:
            session.reset()

    def discard(self, chat_id: int) -> None:
        session = self._sessions.pop(chat_id, None)
        if session is not None:
            session.reset()

    def history_for(self, owner_id: Optional[int]) -> HistoryStore:
        # Anonymous rows in the remote store carry no owner and are not listed back
        return self.remote_history if owner_id is not None else self.local_history

    async def shutdown(self) -> None:
        for chat_id in list(self._sessions):
            self.discard(chat_id)
        await self.pool_writer.drain()
        logger.info("Portal stopped")


def build_portal() -> Portal:
    return Portal(
        generator=GenerationClient(),
        pool=SqliteQuestionPool(),
        remote_history=SqliteHistoryStore(),
        local_history=LocalHistoryStore(max_per_key=settings.HISTORY_LIMIT),
        persist_anonymous_remote=settings.PERSIST_ANONYMOUS_REMOTE,
    )
