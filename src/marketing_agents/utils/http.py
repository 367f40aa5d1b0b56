"""Timeout-bounded HTTP calls with credential-safe error messages."""

import asyncio
import logging
import re
from typing import Awaitable, Callable, Iterable, Optional, TypeVar
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import requests

from ..errors import RequestTimeoutError, UpstreamHttpError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT = 30.0
MAX_ERROR_BODY_CHARS = 500

SENSITIVE_QUERY_KEYS = frozenset(
    {"key", "token", "api_key", "apikey", "secret", "password", "auth"}
)
_REDACTED = "***"
_FALLBACK_PATTERN = re.compile(
    r"((?:api_?key|key|token|secret|password|auth)=)[^&#\s]+", re.IGNORECASE
)

RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})


def sanitize_url(url: str) -> str:
    """Mask sensitive query parameters so the URL is safe to log."""
    try:
        parts = urlsplit(url)
        if not parts.query:
            return url
        query = [
            (k, _REDACTED if k.lower() in SENSITIVE_QUERY_KEYS else v)
            for k, v in parse_qsl(parts.query, keep_blank_values=True)
        ]
        return urlunsplit(parts._replace(query=urlencode(query, safe="*")))
    except Exception:
        # Unparseable URL: redact anything that looks like a credential
        return _FALLBACK_PATTERN.sub(rf"\g<1>{_REDACTED}", url)


def secure_request(
    method: str,
    url: str,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    session: Optional[requests.Session] = None,
    **kwargs,
) -> requests.Response:
    """Issue an HTTP request with an enforced timeout.

    Raises:
        RequestTimeoutError: The call exceeded ``timeout`` seconds.
        UpstreamHttpError: Transport failure (DNS, refused connection, ...).
    """
    http = session or requests
    safe_url = sanitize_url(url)
    try:
        return http.request(method, url, timeout=timeout, **kwargs)
    except requests.exceptions.Timeout as e:
        raise RequestTimeoutError(
            f"HTTP request timed out after {timeout:g}s: {method} {safe_url}",
            url=safe_url,
            timeout=timeout,
        ) from e
    except requests.exceptions.RequestException as e:
        # requests embeds the full URL (with credentials) in its messages
        detail = type(e).__name__
        raise UpstreamHttpError(
            f"HTTP request failed ({detail}, connection error): {method} {safe_url}",
            url=safe_url,
        ) from e


def secure_request_ok(
    method: str,
    url: str,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    session: Optional[requests.Session] = None,
    **kwargs,
) -> requests.Response:
    """``secure_request`` that also rejects non-2xx responses.

    The first ``MAX_ERROR_BODY_CHARS`` characters of the body are kept for
    diagnostics.
    """
    response = secure_request(method, url, timeout=timeout, session=session, **kwargs)
    if not response.ok:
        safe_url = sanitize_url(url)
        try:
            body = response.text[:MAX_ERROR_BODY_CHARS]
        except Exception:
            body = "(unreadable body)"
        raise UpstreamHttpError(
            f"HTTP {response.status_code} {response.reason or ''} on {method} {safe_url}: {body}",
            status=response.status_code,
            body=body,
            url=safe_url,
        )
    return response


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    max_retries: int = 3,
    initial_delay: float = 1.0,
    retryable_statuses: Iterable[int] = RETRYABLE_STATUSES,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run ``operation`` with exponential backoff.

    Only timeouts and upstream errors whose status is retryable (or unknown,
    i.e. transport failures) are retried. Opt-in: nothing in the polling path
    calls this implicitly.
    """
    statuses = frozenset(retryable_statuses)
    attempt = 0
    while True:
        try:
            return await operation()
        except (RequestTimeoutError, UpstreamHttpError) as e:
            status = getattr(e, "status", None)
            if status is not None and status not in statuses:
                raise
            if attempt >= max_retries:
                raise
            delay = initial_delay * (2 ** attempt)
            attempt += 1
            logger.warning(
                f"[retry] Attempt {attempt}/{max_retries} failed ({e}), retrying in {delay:g}s..."
            )
            await sleep(delay)
