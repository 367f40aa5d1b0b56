"""Base completion backend interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterable, Optional


@dataclass
class CompletionRequest:
    """Request to a completion backend."""
    prompt: str
    system_prompt: Optional[str] = None
    model: Optional[str] = None  # None = backend default
    max_tokens: int = 8192
    temperature: float = 0.7


@dataclass
class CompletionResponse:
    """Response from a completion backend."""
    content: str
    model_used: str
    input_tokens: int = 0
    output_tokens: int = 0
    finish_reason: str = "stop"
    latency_ms: float = 0.0


class CompletionBackend(ABC):
    """Abstract base class for completion backends.

    Implementations raise instead of returning a failed response:
    ``RequestTimeoutError`` on deadline, ``UpstreamHttpError`` on a rejected
    call, ``UnexpectedResponseError`` on an unusable payload.
    """

    @abstractmethod
    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        """Send a single completion request."""


def join_text_segments(segments: Iterable[Any]) -> str:
    """Concatenate every text-typed segment of a multi-part response.

    Segments may be dicts (``{"type": "text", "text": ...}``) or objects with
    ``type``/``text`` attributes; anything else is skipped.
    """
    texts = []
    for segment in segments:
        if isinstance(segment, dict):
            seg_type, text = segment.get("type"), segment.get("text")
        else:
            seg_type, text = getattr(segment, "type", None), getattr(segment, "text", None)
        if seg_type == "text" and isinstance(text, str):
            texts.append(text)
    return "\n".join(texts)
