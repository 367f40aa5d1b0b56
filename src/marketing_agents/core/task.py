"""Task, deliverable and board card models."""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Domain(str, Enum):
    """Marketing specialties, one agent per domain."""
    SEO = "seo"
    CONTENT = "content"
    ADS = "ads"
    ANALYTICS = "analytics"
    SOCIAL = "social"
    EMAIL = "email"
    BRAND = "brand"
    STRATEGY = "strategy"


class Stage(str, Enum):
    """Workflow stages, each mapped to a board list."""
    BACKLOG = "backlog"
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    DONE = "done"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        """Sort key: lower runs first."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    Priority.URGENT: 0,
    Priority.HIGH: 1,
    Priority.MEDIUM: 2,
    Priority.LOW: 3,
}


class DeliverableType(str, Enum):
    DOCUMENT = "document"
    PULL_REQUEST = "pull_request"
    REVIEW_REQUEST = "review_request"
    REPORT = "report"
    CAMPAIGN_CONFIG = "campaign_config"


class ResultStatus(str, Enum):
    SUCCESS = "success"
    NEEDS_REVIEW = "needs_review"
    FAILED = "failed"


# Context keys written into created card descriptions so the card keeps its
# target agent and lineage across poll cycles.
TARGET_DOMAIN_KEY = "domain"
PARENT_CARD_KEY = "parent_card"
DELEGATION_DEPTH_KEY = "delegation_depth"


class BoardLabel(BaseModel):
    id: str = ""
    name: str = ""
    color: Optional[str] = None


class BoardList(BaseModel):
    id: str
    name: str


class BoardCard(BaseModel):
    """Raw card as returned by the board API (only the fields we read)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    name: str = ""
    desc: str = ""
    id_list: str = Field(default="", alias="idList")
    labels: List[BoardLabel] = Field(default_factory=list)
    due: Optional[datetime] = None
    url: str = ""


class Task(BaseModel):
    """Normalized unit of work parsed from a board card.

    Immutable: a fresh Task is parsed on every poll cycle.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str = ""
    domain: Domain
    stage: Stage = Stage.TODO
    priority: Priority = Priority.MEDIUM
    card_id: str
    card_url: str = ""
    due_date: Optional[datetime] = None
    context: Dict[str, str] = Field(default_factory=dict)
    deliverable_type: DeliverableType = DeliverableType.DOCUMENT

    @property
    def delegation_depth(self) -> int:
        """Generation of this task in a delegation chain (0 for human-created cards)."""
        raw = self.context.get(DELEGATION_DEPTH_KEY, "0")
        try:
            return max(0, int(raw))
        except ValueError:
            return 0

    @property
    def parent_card_id(self) -> Optional[str]:
        return self.context.get(PARENT_CARD_KEY)


class Deliverable(BaseModel):
    """Output artifact of an agent run.

    ``location`` is a suggestion only; the producer re-derives any path from it.
    """

    type: DeliverableType
    title: str
    content: str
    location: str
    metadata: Dict[str, str] = Field(default_factory=dict)


class AgentResult(BaseModel):
    task_id: str
    domain: Domain
    status: ResultStatus
    deliverable: Deliverable
    summary: str
    comment: str
    next_steps: List[str] = Field(default_factory=list)
    delegated_cards: List["CardCreationResult"] = Field(default_factory=list)


class CardCreationRequest(BaseModel):
    """A request to create one new card (a delegation when ``parent_card_id`` is set)."""

    title: str
    description: str
    stage: Stage = Stage.TODO
    target_domain: Domain
    priority: Priority = Priority.MEDIUM
    due_date: Optional[datetime] = None
    checklist: List[str] = Field(default_factory=list)
    parent_card_id: Optional[str] = None
    delegation_depth: int = 0


class CardCreationResult(BaseModel):
    card_id: str
    card_url: str
    title: str
    target_domain: Domain


AgentResult.model_rebuild()
