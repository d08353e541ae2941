import asyncio
import logging
from typing import Iterable

from prep_portal.db.stores import QuestionPool
from prep_portal.models import Question

logger = logging.getLogger(__name__)


class PoolWriter:
    """Publishes freshly generated batches to the shared pool in the background.

    Writes are detached tasks: the caller never awaits them and a failure is
    logged and dropped, never retried.
    """

    def __init__(self, pool: QuestionPool):
        self._pool = pool
        self._tasks: set[asyncio.Task] = set()

    def publish(self, questions: Iterable[Question]) -> asyncio.Task:
        batch = list(questions)
        task = asyncio.create_task(self._write(batch))
        # Keep a strong reference until the write is done
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for outstanding writes (used on shutdown)."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def _write(self, batch: list[Question]) -> None:
        if not batch:
            return
        topic = batch[0].topic
        try:
            written = await self._pool.append_batch(batch)
        except Exception:
            logger.exception("Pool write of %d questions for %r failed, dropping batch", len(batch), topic)
            return
        logger.info("Published %d/%d generated questions for %r to the pool", written, len(batch), topic)
