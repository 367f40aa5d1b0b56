"""Card -> Task parsing rules."""

import logging
import re
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, Optional, TypeVar, Union

from ...core.task import TARGET_DOMAIN_KEY, BoardCard, DeliverableType, Domain, Priority, Stage, Task
from .mappings import (
    DEFAULT_DELIVERABLE_TYPE,
    DEFAULT_DOMAIN,
    DEFAULT_PRIORITY,
    DEFAULT_STAGE,
    DELIVERABLE_KEYWORDS,
    DUE_DATE_PRIORITY_DAYS,
    LABEL_TO_DOMAIN,
    LIST_NAME_TO_STAGE,
    PRIORITY_LABEL_KEYWORDS,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

CONTEXT_LINE_PATTERN = re.compile(r"\*\*([^*]+)\*\*\s*:\s*(.+)")


class Unmapped(Enum):
    """Tagged result for input that no mapping table recognizes."""
    UNMAPPED = "unmapped"


UNMAPPED = Unmapped.UNMAPPED


def resolve(value: Union[T, Unmapped], default: T) -> T:
    """Replace the unmapped tag with the documented fallback."""
    return default if value is UNMAPPED else value


def _contains_word(text: str, keyword: str) -> bool:
    return re.search(rf"(?<!\w){re.escape(keyword)}(?!\w)", text) is not None


def lookup_stage(list_name: Optional[str]) -> Union[Stage, Unmapped]:
    if not list_name:
        return UNMAPPED
    return LIST_NAME_TO_STAGE.get(list_name.strip().lower(), UNMAPPED)


class CardParser:
    """Normalizes raw board cards into Tasks.

    Args:
        list_names: list id -> list name, filled by the board client on initialize
        now: clock used for due-date priority (injectable for tests)
    """

    def __init__(
        self,
        list_names: Optional[Dict[str, str]] = None,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.list_names: Dict[str, str] = list_names if list_names is not None else {}
        self._now = now

    def parse(self, card: BoardCard) -> Task:
        return Task(
            id=f"task_{card.id}",
            title=card.name,
            description=card.desc,
            domain=self.detect_domain(card),
            stage=self.detect_stage(card.id_list),
            priority=self.detect_priority(card),
            card_id=card.id,
            card_url=card.url,
            due_date=card.due,
            context=self.extract_context(card.desc),
            deliverable_type=self.detect_deliverable_type(card),
        )

    def match_domain(self, card: BoardCard) -> Union[Domain, Unmapped]:
        """Labels first, then a ``**domain**:`` context line, then whole-word keywords."""
        for label in card.labels:
            domain = LABEL_TO_DOMAIN.get(label.name.strip().lower())
            if domain is not None:
                return domain

        declared = self.extract_context(card.desc).get(TARGET_DOMAIN_KEY)
        if declared:
            domain = LABEL_TO_DOMAIN.get(declared.strip().lower())
            if domain is not None:
                return domain

        text = f"{card.name} {card.desc}".lower()
        for keyword, domain in LABEL_TO_DOMAIN.items():
            if _contains_word(text, keyword):
                return domain
        return UNMAPPED

    def detect_domain(self, card: BoardCard) -> Domain:
        return resolve(self.match_domain(card), DEFAULT_DOMAIN)

    def detect_stage(self, list_id: str) -> Stage:
        return resolve(lookup_stage(self.list_names.get(list_id)), DEFAULT_STAGE)

    def match_priority(self, card: BoardCard) -> Union[Priority, Unmapped]:
        for label in card.labels:
            name = label.name.lower()
            for keyword, priority in PRIORITY_LABEL_KEYWORDS:
                if keyword in name:
                    return priority

        if card.due is not None:
            due = card.due if card.due.tzinfo else card.due.replace(tzinfo=timezone.utc)
            days_until_due = (due - self._now()).total_seconds() / 86400
            for threshold, priority in DUE_DATE_PRIORITY_DAYS:
                if days_until_due < threshold:
                    return priority
        return UNMAPPED

    def detect_priority(self, card: BoardCard) -> Priority:
        return resolve(self.match_priority(card), DEFAULT_PRIORITY)

    def match_deliverable_type(self, card: BoardCard) -> Union[DeliverableType, Unmapped]:
        text = f"{card.name} {card.desc}".lower()
        for keywords, deliverable_type in DELIVERABLE_KEYWORDS:
            if any(_contains_word(text, k) for k in keywords):
                return deliverable_type
        return UNMAPPED

    def detect_deliverable_type(self, card: BoardCard) -> DeliverableType:
        return resolve(self.match_deliverable_type(card), DEFAULT_DELIVERABLE_TYPE)

    @staticmethod
    def extract_context(description: str) -> Dict[str, str]:
        """Collect ``**Key**: Value`` lines; keys are lowercased, later lines win."""
        context: Dict[str, str] = {}
        for match in CONTEXT_LINE_PATTERN.finditer(description or ""):
            context[match.group(1).strip().lower()] = match.group(2).strip()
        return context

