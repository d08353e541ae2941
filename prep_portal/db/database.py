import logging
import os
import aiosqlite

from prep_portal.config import settings

logger = logging.getLogger(__name__)

_db: aiosqlite.Connection | None = None


async def get_db() -> aiosqlite.Connection:
    """Get or create the database connection."""
    global _db
    if _db is None:
        db_dir = os.path.dirname(settings.DB_PATH)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)
        _db = await aiosqlite.connect(settings.DB_PATH)
        _db.row_factory = aiosqlite.Row
        await _create_tables(_db)
        logger.info("Database ready at %s", settings.DB_PATH)
    return _db


async def close_db():
    """Close the database connection."""
    global _db
    if _db:
        await _db.close()
        _db = None


async def _create_tables(db: aiosqlite.Connection):
    await db.executescript("""
        CREATE TABLE IF NOT EXISTS users (
            user_id       INTEGER PRIMARY KEY,
            username      TEXT,
            first_name    TEXT,
            registered    INTEGER NOT NULL DEFAULT 0,
            created_at    TEXT DEFAULT (datetime('now')),
            last_active   TEXT DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS results (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            owner_id        INTEGER,
            topic           TEXT NOT NULL,
            score           INTEGER NOT NULL,
            correct_count   INTEGER NOT NULL,
            total_count     INTEGER NOT NULL,
            mode            TEXT NOT NULL,
            difficulty      TEXT NOT NULL,
            source          TEXT NOT NULL,
            created_at      TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_results_owner
            ON results (owner_id, created_at);

        CREATE TABLE IF NOT EXISTS pool_questions (
            id                    INTEGER PRIMARY KEY AUTOINCREMENT,
            topic                 TEXT NOT NULL,
            text                  TEXT NOT NULL,
            options               TEXT NOT NULL,
            correct_option_index  INTEGER NOT NULL,
            explanation           TEXT NOT NULL,
            origin                TEXT NOT NULL DEFAULT 'ai',
            created_at            TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_pool_topic
            ON pool_questions (topic);

        CREATE TABLE IF NOT EXISTS feedback (
            id          INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id     INTEGER,
            text        TEXT NOT NULL,
            created_at  TEXT DEFAULT (datetime('now'))
        );
    """)
    await db.commit()
