"""Sanitization of untrusted text before it reaches a prompt or the filesystem.

Prompt-side defence has two stages: known instruction-override phrasings are
replaced with a placeholder, then the text is fenced between sentinels the
prompt template declares as inert data. Pattern stripping is best-effort; the
fence is what the model is told to rely on.
"""

import re
import unicodedata
from pathlib import Path
from typing import Union

from ..errors import PathTraversalError

USER_DATA_OPEN = "<<BEGIN_USER_DATA>>"
USER_DATA_CLOSE = "<<END_USER_DATA>>"
FILTERED_PLACEHOLDER = "[FILTERED]"

_SPOOFABLE_MARKERS = (
    USER_DATA_OPEN,
    USER_DATA_CLOSE,
    "<<BEGIN_SYSTEM>>",
    "<<END_SYSTEM>>",
)

INJECTION_PATTERNS = [
    re.compile(r"ignore\s+(all\s+)?(previous|above|prior)\s+(instructions?|prompts?|rules?)", re.IGNORECASE),
    re.compile(r"ignore\s+tout\s+(ce\s+qui\s+pr[ée]c[èe]de|instructions?|r[èe]gles?)", re.IGNORECASE),
    re.compile(r"disregard\s+(all\s+)?(previous|above|prior)\s+(instructions?|prompts?|rules?)", re.IGNORECASE),
    re.compile(r"you\s+are\s+now\s+", re.IGNORECASE),
    re.compile(r"tu\s+es\s+maintenant\s+", re.IGNORECASE),
    re.compile(r"new\s+(system\s+)?instructions?:", re.IGNORECASE),
    re.compile(r"nouvelles?\s+instructions?:", re.IGNORECASE),
    re.compile(r"override\s+(system|instructions?)", re.IGNORECASE),
    re.compile(r"system\s*prompt", re.IGNORECASE),
    re.compile(r"\[SYSTEM\]", re.IGNORECASE),
    re.compile(r"\[INST\]", re.IGNORECASE),
    re.compile(r"</?system>", re.IGNORECASE),
    re.compile(r"###\s?(SYSTEM|ADMIN|ROOT|OVERRIDE)", re.IGNORECASE),
]

DEFAULT_SLUG_LENGTH = 128


def sanitize_prompt_input(text: str) -> str:
    """Replace known instruction-override phrasings with a neutral placeholder."""
    sanitized = text or ""
    for pattern in INJECTION_PATTERNS:
        sanitized = pattern.sub(FILTERED_PLACEHOLDER, sanitized)
    return sanitized


def wrap_user_data(text: str) -> str:
    """Fence ``text`` between data sentinels, removing any spoofed sentinel first.

    Removal repeats until nothing changes, so nested or split markers cannot
    reassemble into a real one.
    """
    cleaned = text or ""
    previous = None
    while cleaned != previous:
        previous = cleaned
        for marker in _SPOOFABLE_MARKERS:
            cleaned = cleaned.replace(marker, "")
    return f"{USER_DATA_OPEN}\n{cleaned}\n{USER_DATA_CLOSE}"


def prepare_user_input(text: str) -> str:
    """Full pipeline: strip injection patterns, then wrap with boundary markers."""
    return wrap_user_data(sanitize_prompt_input(text))


def safe_path(base_dir: Union[str, Path], untrusted_relative: str) -> Path:
    """Resolve ``untrusted_relative`` under ``base_dir`` or raise PathTraversalError.

    Absolute inputs, ``..`` escapes and symlinks leading outside the base all
    fail closed.
    """
    if "\0" in untrusted_relative:
        raise PathTraversalError("Security: null byte in path")

    resolved_base = Path(base_dir).resolve()
    resolved_target = (resolved_base / untrusted_relative).resolve()

    if resolved_target != resolved_base and resolved_base not in resolved_target.parents:
        raise PathTraversalError(
            f'Security: path traversal detected, "{untrusted_relative}" escapes base directory'
        )

    return resolved_target


def safe_slug(text: str, max_length: int = DEFAULT_SLUG_LENGTH) -> str:
    """Derive a lowercase, dash-separated, ASCII-alphanumeric slug.

    Accents are folded (``café`` -> ``cafe``) before stripping.
    """
    folded = unicodedata.normalize("NFKD", text or "")
    ascii_text = folded.encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9]+", "-", ascii_text.lower()).strip("-")
    slug = slug[:max_length].rstrip("-")
    return slug or "untitled"
