"""Fixed-grammar parser for structured model responses.

The model is asked to answer with ``### SUMMARY``, ``### DELIVERABLE_TITLE``,
``### DELIVERABLE_CONTENT`` and ``### NEXT_STEPS`` sections, optionally
followed by ``### DELEGATE ... ### END_DELEGATE`` blocks. Everything here is
pure string processing with no I/O, so it can be exercised with arbitrary
text in isolation.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Union

from ..utils.validators import is_valid_domain, is_valid_priority
from .task import Domain, Priority

SECTION_MARKERS = (
    "SUMMARY",
    "DELIVERABLE_TITLE",
    "DELIVERABLE_CONTENT",
    "NEXT_STEPS",
    "DELEGATE",
    "END_DELEGATE",
)

DELEGATE_BLOCK_PATTERN = re.compile(r"### DELEGATE\n(.*?)### END_DELEGATE", re.DOTALL)
_BULLET_PATTERN = re.compile(r"^(?:[-*•]|\d+[.)])\s+")

MAX_DELEGATION_TITLE = 200
MAX_DELEGATION_DESCRIPTION = 2000


@dataclass(frozen=True)
class ParsedDelegation:
    """A well-formed DELEGATE block."""
    domain: Domain
    title: str
    description: str
    priority: Priority
    # Raw priority text when it was present but not recognized
    invalid_priority: Optional[str] = None


@dataclass(frozen=True)
class MalformedDelegation:
    """A DELEGATE block that must be skipped."""
    reason: str
    raw: str


DelegationBlock = Union[ParsedDelegation, MalformedDelegation]


def extract_section(text: str, name: str) -> str:
    """Body of ``### <name>`` up to the next known marker (or end of text).

    Markers are upper-case and must start a line. Other headings inside the
    body, including ``### Summary`` or ``#### SUMMARY``, are kept verbatim.
    Returns "" when absent.
    """
    others = "|".join(m for m in SECTION_MARKERS if m != name)
    pattern = re.compile(
        rf"^###[ \t]*{re.escape(name)}[ \t]*\n(.*?)(?=^###[ \t]*(?:{others})\b|\Z)",
        re.MULTILINE | re.DOTALL,
    )
    match = pattern.search(text or "")
    return match.group(1).strip() if match else ""


def extract_inline_field(text: str, field: str) -> str:
    """Value of a ``**field**: value`` line (case-insensitive), or ""."""
    match = re.search(rf"\*\*{re.escape(field)}\*\*:\s*(.+)", text or "", re.IGNORECASE)
    return match.group(1).strip() if match else ""


def extract_next_steps(text: str) -> List[str]:
    """Bullet or numbered items of the NEXT_STEPS section.

    Without any list markup, each non-empty line counts as one step.
    """
    lines = [line.strip() for line in extract_section(text, "NEXT_STEPS").splitlines()]
    lines = [line for line in lines if line]
    bullets = [_BULLET_PATTERN.sub("", line).strip() for line in lines if _BULLET_PATTERN.match(line)]
    if bullets:
        return [b for b in bullets if b]
    return lines


def parse_delegation_block(block: str) -> DelegationBlock:
    domain = extract_inline_field(block, "domain").lower()
    title = extract_inline_field(block, "title")
    description = extract_inline_field(block, "description")
    priority_text = extract_inline_field(block, "priority").lower()

    if not is_valid_domain(domain):
        return MalformedDelegation(reason=f'invalid domain "{domain}"', raw=block)
    if not title or not description:
        return MalformedDelegation(reason="missing title or description", raw=block)

    invalid_priority = None
    if is_valid_priority(priority_text):
        priority = Priority(priority_text)
    else:
        priority = Priority.MEDIUM
        invalid_priority = priority_text or None

    return ParsedDelegation(
        domain=Domain(domain),
        title=title[:MAX_DELEGATION_TITLE],
        description=description[:MAX_DELEGATION_DESCRIPTION],
        priority=priority,
        invalid_priority=invalid_priority,
    )


def parse_delegation_blocks(text: str) -> List[DelegationBlock]:
    """Every DELEGATE block in order, each tagged parsed or malformed."""
    return [parse_delegation_block(m.group(1)) for m in DELEGATE_BLOCK_PATTERN.finditer(text or "")]
