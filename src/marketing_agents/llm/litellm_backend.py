"""LiteLLM backend implementation.

Text-only completion through the litellm library, for non-Anthropic providers
or a LiteLLM proxy.
"""

import asyncio
import logging
import time
from typing import Optional

import litellm

from .base import CompletionBackend, CompletionRequest, CompletionResponse, join_text_segments
from ..errors import RequestTimeoutError, UnexpectedResponseError, UpstreamHttpError
from ..utils.http import sanitize_url

logger = logging.getLogger(__name__)


class LiteLLMBackend(CompletionBackend):
    """Completion backend using ``litellm.acompletion``."""

    DEFAULT_TIMEOUT = 120.0

    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.model = model
        self.api_key = api_key
        self.api_base = api_base
        self.timeout = timeout

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        """Send a completion request via litellm.acompletion().

        Builds messages from system_prompt + prompt, calls the API,
        and maps the response to CompletionResponse.
        """
        start_time = time.time()
        model = request.model or self.model

        messages = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": request.prompt})

        kwargs = {
            "model": model,
            "messages": messages,
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
        }
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base

        target = sanitize_url(self.api_base) if self.api_base else model
        try:
            response = await asyncio.wait_for(
                litellm.acompletion(**kwargs),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise RequestTimeoutError(
                f"LLM call timed out after {self.timeout:g}s: {target}",
                url=target,
                timeout=self.timeout,
            ) from e
        except Exception as e:
            status = getattr(e, "status_code", None)
            # Provider messages can echo request details; keep them short
            message = str(e)[:500]
            raise UpstreamHttpError(
                f"LLM call failed ({type(e).__name__}, status {status}) on {target}: {message}",
                status=status,
                body=message,
                url=target,
            ) from e

        try:
            choice = response.choices[0]
        except (AttributeError, IndexError, TypeError) as e:
            raise UnexpectedResponseError("LiteLLM response has no choices") from e

        content = choice.message.content or ""
        if isinstance(content, list):
            content = join_text_segments(content)

        usage = getattr(response, "usage", None)
        latency_ms = (time.time() - start_time) * 1000

        return CompletionResponse(
            content=content,
            model_used=model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            finish_reason=choice.finish_reason or "stop",
            latency_ms=latency_ms,
        )
