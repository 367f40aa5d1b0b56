"""Error taxonomy and translation to user-friendly messages."""

from .exceptions import (
    ConfigurationError,
    DispatchError,
    MarketingAgentsError,
    PathTraversalError,
    RequestTimeoutError,
    TaskInterruptedError,
    UnexpectedResponseError,
    UpstreamHttpError,
    ValidationError,
)
from .translator import ErrorTranslator, UserFriendlyError

__all__ = [
    "ConfigurationError",
    "DispatchError",
    "MarketingAgentsError",
    "PathTraversalError",
    "RequestTimeoutError",
    "TaskInterruptedError",
    "UnexpectedResponseError",
    "UpstreamHttpError",
    "ValidationError",
    "ErrorTranslator",
    "UserFriendlyError",
]
