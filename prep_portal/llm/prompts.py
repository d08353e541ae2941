QUESTION_SCHEMA = {
    "type": "object",
    "properties": {
        "questions": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "question": {"type": "string"},
                    "options": {
                        "type": "array",
                        "items": {"type": "string"},
                        "minItems": 4,
                        "maxItems": 4,
                    },
                    "correctAnswerIndex": {"type": "integer", "minimum": 0, "maximum": 3},
                    "explanation": {"type": "string"},
                },
                "required": ["question", "options", "correctAnswerIndex", "explanation"],
            },
        },
    },
    "required": ["questions"],
}


def response_format() -> dict:
    """Structured-output constraint sent with every generation request."""
    return {
        "type": "json_schema",
        "json_schema": {"name": "question_batch", "schema": QUESTION_SCHEMA},
    }


def build_system_prompt(topic: str, count: int, difficulty: str) -> str:
    return f"""You are a high-level FBLA competitive events judge.

Create a {difficulty} difficulty, competition-level practice test for the FBLA event "{topic}".
Generate exactly {count} multiple choice questions.

Rules:
1. Every question has exactly 4 answer options. Exactly one is correct.
2. "options" must contain the actual answer TEXT, NOT letters like A, B, C, D. Do NOT prefix options with "A)", "B)" etc.
3. "correctAnswerIndex" is the 0-based index (0-3) of the correct option.
4. Make distractors plausible but clearly wrong.
5. Keep the explanation short, simple, and engaging (max 2 sentences). Avoid long, boring paragraphs.
6. No two questions should test the same fact.

Output format — a JSON object with a single key "questions" holding an array of objects:
{{"questions": [{{"question": "...", "options": ["...", "...", "...", "..."], "correctAnswerIndex": 1, "explanation": "..."}}]}}

Output ONLY the JSON, no extra text before or after."""


def build_user_prompt(topic: str, count: int) -> str:
    return f"Generate {count} FBLA {topic} questions."
