import json
from datetime import datetime, timezone

from prep_portal.db.database import get_db
from prep_portal.db.models import PoolRow, ResultRow
from prep_portal.models import Question, ResultRecord


def _iso(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat()


async def ensure_user(user_id: int, username: str | None = None, first_name: str | None = None):
    """Create or update a user record."""
    db = await get_db()
    await db.execute(
        """INSERT INTO users (user_id, username, first_name)
           VALUES (?, ?, ?)
           ON CONFLICT(user_id) DO UPDATE SET
               username = excluded.username,
               first_name = excluded.first_name,
               last_active = datetime('now')""",
        (user_id, username, first_name),
    )
    await db.commit()


async def set_registered(user_id: int, registered: bool) -> None:
    """Sign a user up (results saved remotely) or back out to guest mode."""
    db = await get_db()
    await db.execute(
        """INSERT INTO users (user_id, registered)
           VALUES (?, ?)
           ON CONFLICT(user_id) DO UPDATE SET
               registered = excluded.registered,
               last_active = datetime('now')""",
        (user_id, 1 if registered else 0),
    )
    await db.commit()


async def is_registered(user_id: int) -> bool:
    db = await get_db()
    cursor = await db.execute("SELECT registered FROM users WHERE user_id = ?", (user_id,))
    row = await cursor.fetchone()
    return bool(row and row["registered"])


# ============================================================================
# RESULTS
# ============================================================================

async def save_result(record: ResultRecord) -> int:
    """Append a finished-session result. Results are never updated."""
    db = await get_db()
    cursor = await db.execute(
        """INSERT INTO results
           (owner_id, topic, score, correct_count, total_count, mode, difficulty, source, created_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            record.owner_id,
            record.topic,
            record.score,
            record.correct_count,
            record.total_count,
            record.mode.value,
            record.difficulty.value,
            record.source.value,
            _iso(record.created_at),
        ),
    )
    await db.commit()
    return cursor.lastrowid


async def get_recent_results(owner_id: int, limit: int = 20) -> list[ResultRow]:
    """Get the most recent results of one signed-in owner."""
    db = await get_db()
    cursor = await db.execute(
        """SELECT id, owner_id, topic, score, correct_count, total_count,
                  mode, difficulty, source, created_at
           FROM results
           WHERE owner_id = ?
           ORDER BY created_at DESC, id DESC
           LIMIT ?""",
        (owner_id, limit),
    )
    rows = await cursor.fetchall()
    return [dict(row) for row in rows]


async def get_weak_topics(owner_id: int) -> list[dict]:
    """Get topics where the owner scored below 70%, sorted by weakest first."""
    db = await get_db()
    cursor = await db.execute(
        """SELECT topic, AVG(score) as avg_score, COUNT(*) as attempts
           FROM results
           WHERE owner_id = ?
           GROUP BY topic
           HAVING avg_score < 70
           ORDER BY avg_score ASC""",
        (owner_id,),
    )
    rows = await cursor.fetchall()
    return [dict(row) for row in rows]


async def get_stats_summary(owner_id: int) -> dict:
    """Get overall stats for an owner."""
    db = await get_db()
    cursor = await db.execute(
        """SELECT
               COUNT(*) as total_tests,
               AVG(score) as avg_score,
               SUM(total_count) as total_questions_answered,
               SUM(correct_count) as total_correct
           FROM results
           WHERE owner_id = ?""",
        (owner_id,),
    )
    row = await cursor.fetchone()
    return dict(row) if row else {}


# ============================================================================
# SHARED POOL
# ============================================================================

async def get_pool_questions(topic: str) -> list[PoolRow]:
    """Get every pooled question for a topic, in no particular order."""
    db = await get_db()
    cursor = await db.execute(
        """SELECT id, topic, text, options, correct_option_index, explanation, origin, created_at
           FROM pool_questions
           WHERE topic = ?""",
        (topic,),
    )
    rows = await cursor.fetchall()
    return [dict(row) for row in rows]


async def add_pool_questions(questions: list[Question]) -> int:
    """Append a batch of questions to the pool. Returns rows written."""
    db = await get_db()
    now = _iso(datetime.now(timezone.utc))
    await db.executemany(
        """INSERT INTO pool_questions
           (topic, text, options, correct_option_index, explanation, origin, created_at)
           VALUES (?, ?, ?, ?, ?, ?, ?)""",
        [
            (
                q.topic,
                q.text,
                json.dumps(list(q.options), ensure_ascii=False),
                q.correct_option_index,
                q.explanation,
                q.origin.value,
                now,
            )
            for q in questions
        ],
    )
    await db.commit()
    return len(questions)


async def count_pool_questions() -> dict[str, int]:
    """Get pool size per topic."""
    db = await get_db()
    cursor = await db.execute(
        "SELECT topic, COUNT(*) as total FROM pool_questions GROUP BY topic ORDER BY topic",
    )
    rows = await cursor.fetchall()
    return {row["topic"]: row["total"] for row in rows}


# ============================================================================
# FEEDBACK
# ============================================================================

async def save_feedback(user_id: int | None, text: str) -> None:
    db = await get_db()
    await db.execute(
        "INSERT INTO feedback (user_id, text) VALUES (?, ?)",
        (user_id, text),
    )
    await db.commit()
