"""Exception taxonomy for the orchestration layer."""

from typing import Iterable, Optional


class MarketingAgentsError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(MarketingAgentsError):
    """A required setting is missing or invalid. Fatal at startup."""

    def __init__(self, message: str, missing: Optional[Iterable[str]] = None):
        super().__init__(message)
        self.missing = list(missing or [])


class ValidationError(MarketingAgentsError, ValueError):
    """A value fell outside its closed enumeration."""

    def __init__(self, kind: str, value: object, allowed: Iterable[str]):
        self.kind = kind
        self.value = value
        self.allowed = list(allowed)
        super().__init__(
            f'Invalid {kind} "{value}". Valid {kind}s: {", ".join(self.allowed)}'
        )


class UpstreamHttpError(MarketingAgentsError):
    """Non-timeout failure from an external API.

    The URL is always stored in its redacted form and the body is truncated.
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        body: str = "",
        url: str = "",
    ):
        super().__init__(message)
        self.status = status
        self.body = body
        self.url = url


class RequestTimeoutError(MarketingAgentsError, TimeoutError):
    """An outbound call exceeded its deadline."""

    def __init__(self, message: str, url: str = "", timeout: Optional[float] = None):
        super().__init__(message)
        self.url = url
        self.timeout = timeout


class UnexpectedResponseError(MarketingAgentsError):
    """A remote call succeeded but returned a shape we cannot use."""


class PathTraversalError(MarketingAgentsError):
    """A resolved artifact path escaped its configured root. Never corrected silently."""


class DispatchError(MarketingAgentsError):
    """No agent or board list exists for a task's domain or stage."""


class TaskInterruptedError(MarketingAgentsError):
    """The orchestrator stopped while a task was still running."""
