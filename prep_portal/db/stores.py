"""Storage collaborators used by the sourcing and scoring services.

The services only depend on the two protocols below, so tests and other
deployments can substitute their own stores.
"""
import json
import logging
from collections import defaultdict, deque
from datetime import datetime
from typing import Optional, Protocol

from prep_portal.db import queries
from prep_portal.models import (
    Difficulty, Mode, Origin, Question, ResultRecord, SourceMode,
)

logger = logging.getLogger(__name__)


class QuestionPool(Protocol):
    """Shared multi-writer question store keyed by topic."""

    async def read_topic(self, topic: str) -> list[Question]: ...

    async def append_batch(self, questions: list[Question]) -> int: ...


class HistoryStore(Protocol):
    """Per-identity result history. ``key`` is the identity results are listed under."""

    async def append(self, record: ResultRecord, key: Optional[int] = None) -> None: ...

    async def recent(self, key: int, limit: int) -> list[ResultRecord]: ...


class SqliteQuestionPool:
    async def read_topic(self, topic: str) -> list[Question]:
        rows = await queries.get_pool_questions(topic)
        questions = []
        for row in rows:
            try:
                questions.append(Question(
                    text=row["text"],
                    options=tuple(json.loads(row["options"])),
                    correct_option_index=row["correct_option_index"],
                    explanation=row["explanation"],
                    topic=row["topic"],
                    origin=Origin.POOL,
                    generated_at=datetime.fromisoformat(row["created_at"]),
                ))
            except (ValueError, TypeError) as e:
                # Other clients write here too; skip what we cannot read
                logger.warning("Skipping unreadable pool row %s for %r: %s", row["id"], topic, e)
        return questions

    async def append_batch(self, questions: list[Question]) -> int:
        return await queries.add_pool_questions(questions)


def _record_from_row(row: dict) -> ResultRecord:
    return ResultRecord(
        topic=row["topic"],
        score=row["score"],
        correct_count=row["correct_count"],
        total_count=row["total_count"],
        mode=Mode.parse(row["mode"]),
        difficulty=Difficulty.parse(row["difficulty"]),
        source=SourceMode.parse(row["source"]),
        created_at=datetime.fromisoformat(row["created_at"]),
        owner_id=row["owner_id"],
    )


class SqliteHistoryStore:
    """Remote history. Rows are keyed by ``record.owner_id``."""

    async def append(self, record: ResultRecord, key: Optional[int] = None) -> None:
        await queries.save_result(record)

    async def recent(self, key: int, limit: int) -> list[ResultRecord]:
        rows = await queries.get_recent_results(key, limit)
        return [_record_from_row(row) for row in rows]


class LocalHistoryStore:
    """In-process history for guests, keyed by chat. Lost on restart."""

    def __init__(self, max_per_key: int = 20):
        self._items: dict[int, deque] = defaultdict(lambda: deque(maxlen=max_per_key))

    async def append(self, record: ResultRecord, key: Optional[int] = None) -> None:
        if key is None:
            key = record.owner_id
        if key is None:
            raise ValueError("Local history needs a chat key for anonymous results")
        self._items[key].appendleft(record)

    async def recent(self, key: int, limit: int) -> list[ResultRecord]:
        return list(self._items.get(key, ()))[:limit]
