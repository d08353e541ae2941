import logging
import random
from dataclasses import replace
from typing import Optional, Protocol

from prep_portal.db.stores import QuestionPool
from prep_portal.errors import EmptyPoolError, SchemaError, SourcingError
from prep_portal.models import (
    Difficulty, Origin, Question, SessionConfig, SourceMode, utcnow,
)
from prep_portal.services.pool_writer import PoolWriter

logger = logging.getLogger(__name__)


class QuestionGenerator(Protocol):
    async def generate(self, topic: str, count: int, difficulty: Difficulty) -> list[dict]: ...


def build_questions(raw: list[dict], topic: str) -> list[Question]:
    """Turn generated dicts into AI-tagged Questions."""
    now = utcnow()
    try:
        return [
            Question(
                text=item["text"],
                options=tuple(item["options"]),
                correct_option_index=item["correct_option_index"],
                explanation=item["explanation"],
                topic=topic,
                origin=Origin.AI,
                generated_at=now,
            )
            for item in raw
        ]
    except (KeyError, TypeError, ValueError) as e:
        raise SchemaError(f"Generated question does not match the question shape: {e}") from e


class QuestionSourceResolver:
    """Decides where a session's questions come from.

    Pool mode never falls back to generation: a topic with fewer pooled
    questions than requested fails with EmptyPoolError.
    """

    def __init__(
        self,
        generator: QuestionGenerator,
        pool: QuestionPool,
        pool_writer: Optional[PoolWriter] = None,
        rng: Optional[random.Random] = None,
    ):
        self._generator = generator
        self._pool = pool
        self._pool_writer = pool_writer
        self._rng = rng or random.Random()

    async def resolve(self, config: SessionConfig) -> tuple[Question, ...]:
        """
        Get exactly ``config.question_count`` questions.

        Raises:
            EmptyPoolError: pool mode and not enough pooled questions
            TransportError, ServiceError, ParseError, SchemaError: from generation
        """
        config.validate()
        logger.info(
            "Sourcing %d %s questions for %r from %s",
            config.question_count, config.difficulty.value, config.topic, config.source_mode.value,
        )

        if config.source_mode is SourceMode.POOL:
            questions = await self._from_pool(config)
        else:
            questions = await self._from_generator(config)

        if len(questions) != config.question_count:
            raise SchemaError(f"Expected {config.question_count} questions, got {len(questions)}")
        return tuple(questions)

    async def _from_pool(self, config: SessionConfig) -> list[Question]:
        try:
            entries = await self._pool.read_topic(config.topic)
        except Exception as e:
            raise SourcingError(
                f"Pool read for {config.topic!r} failed: {e}",
                user_message="Community questions are unavailable right now. Please try again.",
            ) from e

        if len(entries) < config.question_count:
            raise EmptyPoolError(config.topic, len(entries), config.question_count)

        # Uniform sample without replacement; order is random too
        picked = self._rng.sample(entries, config.question_count)
        return [q if q.origin is Origin.POOL else replace(q, origin=Origin.POOL) for q in picked]

    async def _from_generator(self, config: SessionConfig) -> list[Question]:
        raw = await self._generator.generate(config.topic, config.question_count, config.difficulty)
        questions = build_questions(raw, config.topic)

        if self._pool_writer is not None and len(questions) == config.question_count:
            # Fire-and-forget: the session does not wait for the pool
            self._pool_writer.publish(questions)
        return questions
