"""Tests for the SQLite queries and the history and pool stores."""
from datetime import datetime, timedelta, timezone

import pytest

from conftest import make_question
from prep_portal.db import queries
from prep_portal.db.stores import LocalHistoryStore, SqliteHistoryStore, SqliteQuestionPool
from prep_portal.models import Difficulty, Mode, Origin, ResultRecord, SourceMode


def _record(score=50, owner_id=42, topic="Economics", minutes_ago=0):
    return ResultRecord(
        topic=topic,
        score=score,
        correct_count=score // 10,
        total_count=10,
        mode=Mode.PRACTICE,
        difficulty=Difficulty.HARD,
        source=SourceMode.AI,
        created_at=datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc) - timedelta(minutes=minutes_ago),
        owner_id=owner_id,
    )


# ============================================================================
# USERS AND FEEDBACK
# ============================================================================


class TestUsers:
    """Sign-up flag and feedback."""

    async def test_signup_and_signout(self, db):
        await queries.ensure_user(42, "ada", "Ada")
        assert await queries.is_registered(42) is False

        await queries.set_registered(42, True)
        assert await queries.is_registered(42) is True

        await queries.set_registered(42, False)
        assert await queries.is_registered(42) is False

    async def test_unknown_user_is_guest(self, db):
        assert await queries.is_registered(999) is False

    async def test_feedback_saved(self, db):
        await queries.save_feedback(42, "More Economics questions please")

        cursor = await db.execute("SELECT user_id, text FROM feedback")
        rows = await cursor.fetchall()
        assert [tuple(r) for r in rows] == [(42, "More Economics questions please")]


# ============================================================================
# RESULTS
# ============================================================================


class TestResults:
    """Result history queries."""

    async def test_recent_newest_first(self, db):
        store = SqliteHistoryStore()
        await store.append(_record(score=40, minutes_ago=10))
        await store.append(_record(score=90, minutes_ago=0))
        await store.append(_record(score=70, owner_id=7))

        recent = await store.recent(42, 20)

        assert [r.score for r in recent] == [90, 40]
        assert recent[0].mode is Mode.PRACTICE
        assert recent[0].created_at == datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)

    async def test_recent_limit(self, db):
        store = SqliteHistoryStore()
        for i in range(5):
            await store.append(_record(minutes_ago=i))

        assert len(await store.recent(42, 3)) == 3

    async def test_weak_topics_and_stats(self, db):
        await queries.save_result(_record(score=40, topic="Economics"))
        await queries.save_result(_record(score=60, topic="Economics"))
        await queries.save_result(_record(score=90, topic="Marketing"))

        weak = await queries.get_weak_topics(42)
        stats = await queries.get_stats_summary(42)

        assert [w["topic"] for w in weak] == ["Economics"]
        assert weak[0]["avg_score"] == 50
        assert stats["total_tests"] == 3
        assert stats["total_questions_answered"] == 30

    async def test_anonymous_rows_not_listed(self, db):
        """Guest rows in the database have no owner and never show up in a history."""
        store = SqliteHistoryStore()
        await store.append(_record(owner_id=None), key=1001)

        assert await store.recent(1001, 20) == []


# ============================================================================
# SHARED POOL
# ============================================================================


class TestPool:
    """Pool reads and appends."""

    async def test_append_and_read(self, db):
        pool = SqliteQuestionPool()
        batch = [make_question(i, topic="Marketing", correct=i % 4) for i in range(3)]

        assert await pool.append_batch(batch) == 3
        stored = await pool.read_topic("Marketing")

        assert len(stored) == 3
        assert all(q.origin is Origin.POOL for q in stored)
        assert {q.text for q in stored} == {q.text for q in batch}
        assert sorted(q.correct_option_index for q in stored) == [0, 1, 2]
        assert await pool.read_topic("Accounting") == []

    async def test_counts(self, db):
        pool = SqliteQuestionPool()
        await pool.append_batch([make_question(i, topic="Marketing") for i in range(2)])
        await pool.append_batch([make_question(i, topic="Economics") for i in range(3)])

        assert await queries.count_pool_questions() == {"Economics": 3, "Marketing": 2}

    async def test_unreadable_row_skipped(self, db, caplog):
        """Rows written by other clients that do not form a question are skipped."""
        await SqliteQuestionPool().append_batch([make_question(1, topic="Marketing")])
        await db.execute(
            """INSERT INTO pool_questions
               (topic, text, options, correct_option_index, explanation, origin, created_at)
               VALUES ('Marketing', 'Broken?', '["only one"]', 0, 'x', 'ai', '2026-05-01T12:00:00+00:00')"""
        )
        await db.commit()

        stored = await SqliteQuestionPool().read_topic("Marketing")

        assert len(stored) == 1
        assert "Skipping unreadable pool row" in caplog.text


# ============================================================================
# LOCAL HISTORY
# ============================================================================


class TestLocalHistory:
    """In-memory guest history."""

    async def test_per_chat_newest_first(self):
        store = LocalHistoryStore()
        await store.append(_record(score=10, owner_id=None), key=1)
        await store.append(_record(score=20, owner_id=None), key=1)
        await store.append(_record(score=30, owner_id=None), key=2)

        assert [r.score for r in await store.recent(1, 10)] == [20, 10]
        assert [r.score for r in await store.recent(2, 10)] == [30]
        assert await store.recent(3, 10) == []

    async def test_bounded(self):
        store = LocalHistoryStore(max_per_key=2)
        for score in (10, 20, 30):
            await store.append(_record(score=score, owner_id=None), key=1)

        assert [r.score for r in await store.recent(1, 10)] == [30, 20]

    async def test_needs_a_key(self):
        with pytest.raises(ValueError):
            await LocalHistoryStore().append(_record(owner_id=None))
