from typing import Optional, TypedDict


class PoolRow(TypedDict):
    id: int
    topic: str
    text: str
    options: str  # JSON array of 4 strings
    correct_option_index: int
    explanation: str
    origin: str
    created_at: str


class ResultRow(TypedDict):
    id: int
    owner_id: Optional[int]
    topic: str
    score: int
    correct_count: int
    total_count: int
    mode: str
    difficulty: str
    source: str
    created_at: str
