import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

import openai
from openai import AsyncOpenAI

from prep_portal.config import settings
from prep_portal.errors import (
    ParseError, PreconditionError, SchemaError, ServiceError, TransportError,
)
from prep_portal.llm.parser import parse_questions
from prep_portal.llm.prompts import build_system_prompt, build_user_prompt, response_format
from prep_portal.models import Difficulty

logger = logging.getLogger(__name__)

T = TypeVar("T")

# SchemaError is never retried
RETRYABLE_ERRORS = (TransportError, ServiceError, ParseError)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = 5,
    base_delay: float = 1.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    label: str = "request",
) -> T:
    """
    Run ``operation`` up to ``max_attempts`` times.

    The delay before retry n is ``base_delay * 2 ** (n - 1)``. SchemaError
    and anything outside RETRYABLE_ERRORS propagate immediately; after the
    last attempt the last error is raised unchanged.
    """
    if max_attempts < 1:
        raise PreconditionError(f"max_attempts must be positive, got {max_attempts}")

    delay = base_delay
    for attempt in range(1, max_attempts + 1):
        try:
            return await operation()
        except SchemaError as e:
            logger.error("%s returned malformed data on attempt %d, not retrying: %s", label, attempt, e)
            raise
        except RETRYABLE_ERRORS as e:
            if attempt == max_attempts:
                logger.error("%s failed after %d attempts: %s", label, attempt, e)
                raise
            logger.warning(
                "%s attempt %d/%d failed (%s: %s), retrying in %.1fs",
                label, attempt, max_attempts, type(e).__name__, e, delay,
            )
            await sleep(delay)
            delay *= 2

    raise AssertionError("unreachable")


class GenerationClient:
    """Async client for the question-generation service."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        max_attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Args:
            client: Pre-built SDK client; by default one is created from settings
                with SDK-level retries disabled.
            model: Model name, LLM_MODEL by default
            max_attempts: Attempts per logical request, GENERATION_MAX_ATTEMPTS by default
            base_delay: First retry delay in seconds, GENERATION_BASE_DELAY by default
            sleep: Coroutine used to wait between attempts
        """
        self._client = client or AsyncOpenAI(
            base_url=settings.LLM_BASE_URL,
            api_key=settings.LLM_API_KEY,
            timeout=settings.LLM_TIMEOUT,
            max_retries=0,
        )
        self.model = model or settings.LLM_MODEL
        self.max_attempts = max_attempts or settings.GENERATION_MAX_ATTEMPTS
        self.base_delay = settings.GENERATION_BASE_DELAY if base_delay is None else base_delay
        self._sleep = sleep

    async def generate(self, topic: str, count: int, difficulty: Difficulty | str) -> list[dict]:
        """
        Generate a batch of questions.

        Args:
            topic: Topic the questions are about
            count: Exact number of questions wanted
            difficulty: easy / medium / hard

        Returns:
            ``count`` dicts with text, options, correct_option_index, explanation

        Raises:
            TransportError, ServiceError, ParseError: after the final attempt
            SchemaError: on the first malformed batch
        """
        if count <= 0:
            raise PreconditionError(f"Question count must be positive, got {count}")
        difficulty = Difficulty.parse(difficulty)

        return await retry_with_backoff(
            lambda: self._request_once(topic, count, difficulty),
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            sleep=self._sleep,
            label=f"Generation of {count} {difficulty.value} questions for {topic!r}",
        )

    async def _request_once(self, topic: str, count: int, difficulty: Difficulty) -> list[dict]:
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": build_system_prompt(topic, count, difficulty.value)},
                    {"role": "user", "content": build_user_prompt(topic, count)},
                ],
                temperature=0.7,
                response_format=response_format(),
            )
        except openai.APIConnectionError as e:
            # APITimeoutError is a subclass
            raise TransportError(f"Generation service unreachable: {e}") from e
        except openai.APIStatusError as e:
            raise ServiceError(
                f"Generation service returned {e.status_code}: {e.message}",
                status_code=e.status_code,
            ) from e

        if not response.choices:
            raise ParseError("Generation service returned no choices")

        return parse_questions(response.choices[0].message.content, count)
