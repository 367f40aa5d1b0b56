"""Anthropic Messages API backend over the secure HTTP wrapper."""

import asyncio
import logging
import time
from typing import Optional

import requests

from .base import CompletionBackend, CompletionRequest, CompletionResponse, join_text_segments
from ..errors import UnexpectedResponseError
from ..utils.http import secure_request_ok

logger = logging.getLogger(__name__)


class AnthropicBackend(CompletionBackend):
    """Direct HTTPS calls to ``/v1/messages``.

    The blocking ``requests`` call runs in a worker thread so the event loop
    keeps serving the poll scheduler while the model is generating.
    """

    DEFAULT_API_BASE = "https://api.anthropic.com"
    API_VERSION = "2023-06-01"

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        api_base: Optional[str] = None,
        timeout: float = 120.0,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.api_base = (api_base or self.DEFAULT_API_BASE).rstrip("/")
        self.timeout = timeout
        self.session = session

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        return await asyncio.to_thread(self._complete_sync, request)

    def _complete_sync(self, request: CompletionRequest) -> CompletionResponse:
        start_time = time.time()
        model = request.model or self.model

        payload = {
            "model": model,
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
            "messages": [{"role": "user", "content": request.prompt}],
        }
        if request.system_prompt:
            payload["system"] = request.system_prompt

        response = secure_request_ok(
            "POST",
            f"{self.api_base}/v1/messages",
            timeout=self.timeout,
            session=self.session,
            headers={
                "Content-Type": "application/json",
                "x-api-key": self.api_key,
                "anthropic-version": self.API_VERSION,
            },
            json=payload,
        )

        try:
            data = response.json()
        except ValueError as e:
            raise UnexpectedResponseError("Completion API returned non-JSON body") from e

        segments = data.get("content") if isinstance(data, dict) else None
        if not isinstance(segments, list):
            raise UnexpectedResponseError(
                "Completion API response has no 'content' segment list"
            )

        usage = data.get("usage") or {}
        latency_ms = (time.time() - start_time) * 1000
        logger.debug(
            f"Completion from {model} in {latency_ms / 1000:.1f}s "
            f"({usage.get('input_tokens', 0)} in / {usage.get('output_tokens', 0)} out)"
        )

        return CompletionResponse(
            content=join_text_segments(segments),
            model_used=data.get("model", model),
            input_tokens=usage.get("input_tokens", 0),
            output_tokens=usage.get("output_tokens", 0),
            finish_reason=data.get("stop_reason") or "stop",
            latency_ms=latency_ms,
        )
