"""Closed-set validation for enumerations, card ids and branch names.

Two failure policies share these helpers: ``validate_*`` raises (CLI input,
abort loudly) while ``is_valid_*`` only answers (model output, skip and log).
"""

import re
from enum import Enum
from typing import Type, TypeVar

from ..core.task import DeliverableType, Domain, Priority, Stage
from ..errors import ValidationError

E = TypeVar("E", bound=Enum)

VALID_DOMAINS = frozenset(d.value for d in Domain)
VALID_STAGES = frozenset(s.value for s in Stage)
VALID_PRIORITIES = frozenset(p.value for p in Priority)
VALID_DELIVERABLE_TYPES = frozenset(t.value for t in DeliverableType)


def _is_member(value: object, enum_cls: Type[Enum]) -> bool:
    if isinstance(value, enum_cls):
        return True
    return isinstance(value, str) and value in {m.value for m in enum_cls}


def _validate(value: object, enum_cls: Type[E], kind: str) -> E:
    if _is_member(value, enum_cls):
        return enum_cls(value)
    raise ValidationError(kind, value, [m.value for m in enum_cls])


def is_valid_domain(value: object) -> bool:
    return _is_member(value, Domain)


def is_valid_stage(value: object) -> bool:
    return _is_member(value, Stage)


def is_valid_priority(value: object) -> bool:
    return _is_member(value, Priority)


def is_valid_deliverable_type(value: object) -> bool:
    return _is_member(value, DeliverableType)


def validate_domain(value: object) -> Domain:
    """Return the Domain for ``value`` or raise ValidationError."""
    return _validate(value, Domain, "domain")


def validate_stage(value: object) -> Stage:
    return _validate(value, Stage, "stage")


def validate_priority(value: object) -> Priority:
    return _validate(value, Priority, "priority")


def validate_deliverable_type(value: object) -> DeliverableType:
    return _validate(value, DeliverableType, "deliverable type")


def validate_card_id(card_id: str) -> str:
    """
    Validate a board card id passed on the command line.

    Args:
        card_id: Card identifier to validate

    Returns:
        Validated card id

    Raises:
        ValidationError: If the id is empty or not alphanumeric
    """
    if not card_id or not re.match(r'^[a-zA-Z0-9]+$', card_id):
        raise ValidationError("card id", card_id, ["<alphanumeric characters only>"])

    if len(card_id) > 64:
        raise ValidationError("card id", card_id, ["<at most 64 characters>"])

    return card_id


def validate_branch_name(branch_name: str) -> str:
    """
    Validate and sanitize git branch name.

    Args:
        branch_name: Branch name to validate

    Returns:
        Validated branch name

    Raises:
        ValueError: If branch name is invalid
    """
    if not branch_name:
        raise ValueError("Branch name cannot be empty")

    # Strict whitelist
    if not re.match(r'^[a-zA-Z0-9/_-]+$', branch_name):
        raise ValueError(f"Invalid branch name: {branch_name}")

    if branch_name.startswith('/') or branch_name.endswith('/'):
        raise ValueError("Branch name cannot start or end with /")

    if '..' in branch_name or '@{' in branch_name or '//' in branch_name:
        raise ValueError("Branch name contains invalid sequence")

    if len(branch_name) > 255:
        raise ValueError("Branch name too long")

    return branch_name
