"""Shared utility functions for the marketing agents."""

from .error_handling import ErrorContext, log_and_ignore
from .sanitizer import prepare_user_input, safe_path, safe_slug, sanitize_prompt_input
from .validators import validate_card_id, validate_domain, validate_priority, validate_stage

__all__ = [
    "ErrorContext",
    "log_and_ignore",
    "prepare_user_input",
    "safe_path",
    "safe_slug",
    "sanitize_prompt_input",
    "validate_card_id",
    "validate_domain",
    "validate_priority",
    "validate_stage",
]
