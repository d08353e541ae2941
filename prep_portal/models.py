"""Data models for questions, session configuration and results."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple

from prep_portal.config import DURATION_RANGE, QUESTION_COUNT_RANGE, TOPICS
from prep_portal.errors import PreconditionError

OPTION_COUNT = 4


class _ChoiceEnum(str, Enum):
    """String enum parsed case-insensitively from user or config input."""

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            allowed = ", ".join(m.value for m in cls)
            raise PreconditionError(f"Unknown {cls.__name__} {value!r}, expected one of: {allowed}")


class Mode(_ChoiceEnum):
    PRACTICE = "practice"
    TIMED = "timed"


class Difficulty(_ChoiceEnum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class SourceMode(_ChoiceEnum):
    AI = "ai"
    POOL = "pool"


class Origin(_ChoiceEnum):
    AI = "ai"
    POOL = "pool"


class Phase(str, Enum):
    LANDING = "landing"
    SOURCING = "sourcing"
    ACTIVE = "active"
    FINISHED = "finished"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Question:
    """Single multiple-choice question. Immutable once sourced."""
    text: str
    options: Tuple[str, ...]
    correct_option_index: int
    explanation: str
    topic: str
    origin: Origin
    generated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        object.__setattr__(self, "options", tuple(self.options))
        if len(self.options) != OPTION_COUNT:
            raise ValueError(f"Question needs exactly {OPTION_COUNT} options, got {len(self.options)}")
        if not 0 <= self.correct_option_index < OPTION_COUNT:
            raise ValueError(f"correct_option_index out of range: {self.correct_option_index}")
        if not self.text or not self.explanation:
            raise ValueError("Question text and explanation must be non-empty")

    @property
    def correct_option(self) -> str:
        return self.options[self.correct_option_index]


@dataclass(frozen=True)
class SessionConfig:
    """Quiz settings collected before sourcing.

    ``topic`` may be empty while the user is still configuring; ``validate``
    is the guard applied when a session starts.
    """
    topic: str = ""
    mode: Mode = Mode.PRACTICE
    question_count: int = 20
    duration_minutes: int = 25
    difficulty: Difficulty = Difficulty.HARD
    source_mode: SourceMode = SourceMode.AI

    def __post_init__(self):
        object.__setattr__(self, "mode", Mode.parse(self.mode))
        object.__setattr__(self, "difficulty", Difficulty.parse(self.difficulty))
        object.__setattr__(self, "source_mode", SourceMode.parse(self.source_mode))

    @property
    def is_timed(self) -> bool:
        return self.mode is Mode.TIMED

    def validate(self) -> None:
        """Raise PreconditionError if the config cannot start a session."""
        if not self.topic or not self.topic.strip():
            raise PreconditionError("Topic must be selected", user_message="Please choose a topic first.")
        if self.topic not in TOPICS:
            raise PreconditionError(f"Unknown topic {self.topic!r}", user_message="Please choose a topic from the list.")

        low, high = QUESTION_COUNT_RANGE
        if not low <= self.question_count <= high:
            raise PreconditionError(
                f"question_count {self.question_count} outside [{low}, {high}]",
                user_message=f"Question count must be between {low} and {high}.",
            )
        if self.is_timed:
            low, high = DURATION_RANGE
            if not low <= self.duration_minutes <= high:
                raise PreconditionError(
                    f"duration_minutes {self.duration_minutes} outside [{low}, {high}]",
                    user_message=f"Duration must be between {low} and {high} minutes.",
                )


@dataclass(frozen=True)
class ResultRecord:
    """Outcome of a finished session. Append-only, never mutated."""
    topic: str
    score: int
    correct_count: int
    total_count: int
    mode: Mode
    difficulty: Difficulty
    source: SourceMode
    created_at: datetime = field(default_factory=utcnow)
    owner_id: Optional[int] = None

    @property
    def is_anonymous(self) -> bool:
        return self.owner_id is None
