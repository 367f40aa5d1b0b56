"""Completion backend implementations."""

from .anthropic_backend import AnthropicBackend
from .base import CompletionBackend, CompletionRequest, CompletionResponse, join_text_segments
from ..core.config import LLMConfig


def create_backend(config: LLMConfig) -> CompletionBackend:
    """Build the backend selected by ``config.mode``."""
    if config.mode == "litellm":
        from .litellm_backend import LiteLLMBackend
        return LiteLLMBackend(
            model=config.model,
            api_key=config.api_key,
            api_base=config.api_base,
            timeout=config.timeout,
        )
    return AnthropicBackend(
        api_key=config.api_key,
        model=config.model,
        api_base=config.api_base,
        timeout=config.timeout,
    )


__all__ = [
    "AnthropicBackend",
    "CompletionBackend",
    "CompletionRequest",
    "CompletionResponse",
    "create_backend",
    "join_text_segments",
]
