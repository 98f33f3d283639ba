from typing import NotRequired, TypedDict


class ChatMessageDict(TypedDict):
    """Single chat message payload."""

    role: str
    content: str


class LLMReviewResult(TypedDict, total=False):
    """LLM response content plus metadata."""

    content: str
    provider: str
    model: str
    elapsed_seconds: float
    input_tokens: NotRequired[int]
    output_tokens: NotRequired[int]
    total_tokens: NotRequired[int]
