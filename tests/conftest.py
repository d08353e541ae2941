"""Shared fixtures for the quiz portal tests."""
import pytest

from prep_portal.config import settings
from prep_portal.db import database
from prep_portal.models import Mode, Origin, Question, SessionConfig, SourceMode


def make_question(n: int = 0, topic: str = "Accounting", correct: int = 0, origin: Origin = Origin.AI) -> Question:
    return Question(
        text=f"Question {n}?",
        options=(f"first {n}", f"second {n}", f"third {n}", f"fourth {n}"),
        correct_option_index=correct,
        explanation=f"Because {n}.",
        topic=topic,
        origin=origin,
    )


def make_raw(n: int = 0, correct: int = 0) -> dict:
    """Question dict in the shape returned by the parser."""
    return {
        "text": f"Question {n}?",
        "options": [f"first {n}", f"second {n}", f"third {n}", f"fourth {n}"],
        "correct_option_index": correct,
        "explanation": f"Because {n}.",
    }


class FakeGenerator:
    def __init__(self, raw=None, error=None):
        self.raw = raw
        self.error = error
        self.calls = []

    async def generate(self, topic, count, difficulty):
        self.calls.append((topic, count, difficulty))
        if self.error is not None:
            raise self.error
        if self.raw is not None:
            return self.raw
        return [make_raw(i) for i in range(count)]


class FakePool:
    def __init__(self, questions=None, read_error=None, write_error=None):
        self.questions = list(questions or [])
        self.read_error = read_error
        self.write_error = write_error
        self.batches = []

    async def read_topic(self, topic):
        if self.read_error is not None:
            raise self.read_error
        return [q for q in self.questions if q.topic == topic]

    async def append_batch(self, questions):
        if self.write_error is not None:
            raise self.write_error
        self.batches.append(list(questions))
        self.questions.extend(questions)
        return len(questions)


class FakeHistory:
    def __init__(self, error=None):
        self.error = error
        self.appended = []

    async def append(self, record, key=None):
        if self.error is not None:
            raise self.error
        self.appended.append((record, key))

    async def recent(self, key, limit):
        return [r for r, k in self.appended if k == key][:limit]


class FakeTicker:
    def __init__(self, callback):
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True

    def fire(self):
        """Simulate one elapsed second, even after cancellation."""
        return self.callback()


class FakeScheduler:
    """Scheduler that records tickers instead of starting real timers."""

    def __init__(self):
        self.tickers = []

    def __call__(self, callback):
        ticker = FakeTicker(callback)
        self.tickers.append(ticker)
        return ticker

    @property
    def last(self):
        return self.tickers[-1]


class StaticResolver:
    def __init__(self, questions=None, error=None):
        self.questions = questions
        self.error = error

    async def resolve(self, config):
        if self.error is not None:
            raise self.error
        if self.questions is not None:
            return tuple(self.questions)
        return tuple(make_question(i, topic=config.topic) for i in range(config.question_count))


@pytest.fixture
def questions():
    """Five questions, every correct answer is option 0."""
    return [make_question(i) for i in range(5)]


@pytest.fixture
def practice_config():
    return SessionConfig(topic="Accounting", mode=Mode.PRACTICE, question_count=5)


@pytest.fixture
def timed_config():
    return SessionConfig(topic="Accounting", mode=Mode.TIMED, question_count=5, duration_minutes=5)


@pytest.fixture
def pool_config():
    return SessionConfig(topic="Accounting", question_count=5, source_mode=SourceMode.POOL)


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
async def db(tmp_path, monkeypatch):
    """Fresh SQLite database per test."""
    monkeypatch.setattr(settings, "DB_PATH", str(tmp_path / "test.db"))
    await database.close_db()
    conn = await database.get_db()
    yield conn
    await database.close_db()
