"""Tests for parsing generated question batches."""
import json

import pytest

from prep_portal.errors import ParseError, SchemaError
from prep_portal.llm.parser import parse_questions


def _item(n=0, **overrides):
    item = {
        "question": f"What is {n}?",
        "options": ["Asset", "Liability", "Equity", "Revenue"],
        "correctAnswerIndex": 2,
        "explanation": "Owner's claim on assets.",
    }
    item.update(overrides)
    return item


# ============================================================================
# RECOVERING JSON FROM THE TEXT
# ============================================================================


class TestParseQuestions:
    """Recovering a question batch from model output."""

    def test_wrapped_object(self):
        """{"questions": [...]} is unwrapped and normalized."""
        raw = json.dumps({"questions": [_item(1), _item(2)]})

        result = parse_questions(raw, 2)

        assert len(result) == 2
        assert result[0] == {
            "text": "What is 1?",
            "options": ["Asset", "Liability", "Equity", "Revenue"],
            "correct_option_index": 2,
            "explanation": "Owner's claim on assets.",
        }

    def test_bare_array(self):
        """A bare JSON array is accepted too."""
        result = parse_questions(json.dumps([_item()]), 1)

        assert result[0]["correct_option_index"] == 2

    def test_markdown_code_fence(self):
        """JSON inside a ```json fence is extracted."""
        raw = "Here you go:\n```json\n" + json.dumps({"questions": [_item()]}) + "\n```\nGood luck!"

        result = parse_questions(raw, 1)

        assert result[0]["text"] == "What is 0?"

    def test_array_embedded_in_prose(self):
        """An array surrounded by chatter is found."""
        raw = "Sure! " + json.dumps([_item(), _item(1)]) + " Let me know if you need more."

        assert len(parse_questions(raw, 2)) == 2

    @pytest.mark.parametrize("raw", ["", "   ", None])
    def test_empty_payload(self, raw):
        """Missing text payload is a ParseError."""
        with pytest.raises(ParseError):
            parse_questions(raw, 1)

    def test_not_json(self):
        """Unrecoverable text is a ParseError."""
        with pytest.raises(ParseError):
            parse_questions("I cannot help with that.", 1)


# ============================================================================
# SHAPE CHECKS
# ============================================================================


class TestQuestionShape:
    """Batches that parse but do not describe valid questions."""

    def test_count_mismatch(self):
        """Fewer questions than asked for is a SchemaError."""
        with pytest.raises(SchemaError):
            parse_questions(json.dumps([_item()]), 2)

    def test_not_a_list(self):
        """An object without a questions array is a SchemaError."""
        with pytest.raises(SchemaError):
            parse_questions(json.dumps({"items": []}), 1)

    def test_three_options(self):
        """Anything but four options is a SchemaError."""
        with pytest.raises(SchemaError):
            parse_questions(json.dumps([_item(options=["a", "b", "c"])]), 1)

    def test_index_out_of_range(self):
        """correctAnswerIndex outside 0..3 is a SchemaError."""
        with pytest.raises(SchemaError):
            parse_questions(json.dumps([_item(correctAnswerIndex=4)]), 1)

    def test_missing_explanation(self):
        """An empty explanation is a SchemaError."""
        with pytest.raises(SchemaError):
            parse_questions(json.dumps([_item(explanation="  ")]), 1)

    def test_boolean_index_rejected(self):
        """true is not a valid index even though bool is an int."""
        with pytest.raises(SchemaError):
            parse_questions(json.dumps([_item(correctAnswerIndex=True)]), 1)


# ============================================================================
# NORMALIZATION
# ============================================================================


class TestNormalization:
    """Lenient handling of common model quirks."""

    def test_letter_prefixes_stripped(self):
        """"A) Asset" becomes "Asset"."""
        item = _item(options=["A) Asset", "B) Liability", "C) Equity", "D) Revenue"])

        result = parse_questions(json.dumps([item]), 1)

        assert result[0]["options"] == ["Asset", "Liability", "Equity", "Revenue"]

    def test_option_starting_with_letter_kept(self):
        """An option that merely starts with A is not stripped."""
        item = _item(options=["A bond", "B shares", "Cash", "Debt"])

        result = parse_questions(json.dumps([item]), 1)

        assert result[0]["options"][0] == "A bond"

    def test_letter_answer(self):
        """correctAnswer given as a letter resolves to its position."""
        item = _item()
        del item["correctAnswerIndex"]
        item["correctAnswer"] = "B"

        assert parse_questions(json.dumps([item]), 1)[0]["correct_option_index"] == 1

    def test_answer_as_option_text(self):
        """correctAnswer given as the option text resolves to its position."""
        item = _item()
        del item["correctAnswerIndex"]
        item["correctAnswer"] = "Revenue"

        assert parse_questions(json.dumps([item]), 1)[0]["correct_option_index"] == 3

    def test_digit_string_index(self):
        """"1" is read as index 1."""
        result = parse_questions(json.dumps([_item(correctAnswerIndex="1")]), 1)

        assert result[0]["correct_option_index"] == 1
