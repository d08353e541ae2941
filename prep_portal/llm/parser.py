import json
import logging
import re

from prep_portal.errors import ParseError, SchemaError
from prep_portal.models import OPTION_COUNT

logger = logging.getLogger(__name__)

TEXT_KEYS = ("question", "text")
INDEX_KEYS = ("correctAnswerIndex", "correctOptionIndex", "correctAnswer", "correct")

_letter_re = re.compile(r"^[A-Da-d][).:]\s*")


def parse_questions(raw_text: str | None, count: int) -> list[dict]:
    """Parse LLM output into exactly ``count`` normalized question dicts.

    Raises ParseError when no JSON can be recovered from the text and
    SchemaError when the JSON does not describe ``count`` valid questions.
    """
    if not raw_text or not raw_text.strip():
        raise ParseError("Generation service returned an empty text payload")

    # Try direct JSON parse
    data = _try_parse_json(raw_text)

    # Try extracting from markdown code block
    if data is None:
        match = re.search(r"```(?:json)?\s*([\[{].+?[\]}])\s*```", raw_text, re.DOTALL)
        if match:
            data = _try_parse_json(match.group(1))

    # Try finding array in the text
    if data is None:
        match = re.search(r"(\[\s*\{.+}\s*])", raw_text, re.DOTALL)
        if match:
            data = _try_parse_json(match.group(1))

    if data is None:
        logger.error("Failed to parse LLM response as JSON")
        raise ParseError("Response is not valid JSON")

    questions = _unwrap(data)
    if len(questions) != count:
        raise SchemaError(f"Expected {count} questions, got {len(questions)}")

    return [_normalize_question(q, i) for i, q in enumerate(questions)]


def _try_parse_json(text: str):
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None


def _unwrap(data) -> list:
    """Accept a bare array or an object wrapping it under "questions"."""
    if isinstance(data, dict) and "questions" in data:
        data = data["questions"]
    if not isinstance(data, list):
        raise SchemaError(f"Expected a JSON array of questions, got {type(data).__name__}")
    return data


def _normalize_question(q, position: int) -> dict:
    if not isinstance(q, dict):
        raise SchemaError(f"Question #{position + 1} is not an object")

    text = _first(q, TEXT_KEYS)
    explanation = q.get("explanation")
    options = q.get("options")

    if not isinstance(text, str) or not text.strip():
        raise SchemaError(f"Question #{position + 1} has no text")
    if not isinstance(explanation, str) or not explanation.strip():
        raise SchemaError(f"Question #{position + 1} has no explanation")
    if not isinstance(options, list) or len(options) != OPTION_COUNT:
        raise SchemaError(f"Question #{position + 1} must have exactly {OPTION_COUNT} options")
    if not all(isinstance(opt, str) and opt.strip() for opt in options):
        raise SchemaError(f"Question #{position + 1} has an empty option")

    # Strip letter prefixes like "A) ", "a. ", "B: " from options
    cleaned = [_letter_re.sub("", opt).strip() for opt in options]

    index = _resolve_index(_first(q, INDEX_KEYS), cleaned)
    if index is None:
        raise SchemaError(f"Question #{position + 1} has no valid correct answer index")

    return {
        "text": text.strip(),
        "options": cleaned,
        "correct_option_index": index,
        "explanation": explanation.strip(),
    }


def _first(q: dict, keys: tuple):
    for key in keys:
        if key in q:
            return q[key]
    return None


def _resolve_index(correct, options: list[str]) -> int | None:
    """Map an index, a letter (A-D) or the option text itself to 0..3."""
    if isinstance(correct, bool):
        return None
    if isinstance(correct, float) and correct.is_integer():
        correct = int(correct)
    if isinstance(correct, int):
        return correct if 0 <= correct < len(options) else None
    if not isinstance(correct, str):
        return None

    value = correct.strip()
    if value.isdigit():
        idx = int(value)
        return idx if 0 <= idx < len(options) else None

    # If correct is a single letter (A/B/C/D), resolve to its position
    if re.match(r"^[A-Da-d]$", value):
        return ord(value.upper()) - ord("A")

    value = _letter_re.sub("", value).strip()
    if value in options:
        return options.index(value)
    return None
