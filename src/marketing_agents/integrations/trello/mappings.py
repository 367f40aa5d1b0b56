"""Board vocabulary tables (English and French synonyms).

Plain data only; lookup and fallback rules live in ``parser.py``.
Insertion order matters where a text scan can hit several entries.
"""

from typing import Dict, Tuple

from ...core.task import DeliverableType, Domain, Priority, Stage

# Normalized list name -> workflow stage
LIST_NAME_TO_STAGE: Dict[str, Stage] = {
    "backlog": Stage.BACKLOG,
    "à faire": Stage.TODO,
    "todo": Stage.TODO,
    "to do": Stage.TODO,
    "en cours": Stage.IN_PROGRESS,
    "in progress": Stage.IN_PROGRESS,
    "in_progress": Stage.IN_PROGRESS,
    "review": Stage.REVIEW,
    "en review": Stage.REVIEW,
    "à valider": Stage.REVIEW,
    "done": Stage.DONE,
    "terminé": Stage.DONE,
    "fait": Stage.DONE,
}

# Lowercased label name (or description keyword) -> domain
LABEL_TO_DOMAIN: Dict[str, Domain] = {
    "seo": Domain.SEO,
    "référencement": Domain.SEO,
    "content": Domain.CONTENT,
    "contenu": Domain.CONTENT,
    "rédaction": Domain.CONTENT,
    "ads": Domain.ADS,
    "publicité": Domain.ADS,
    "paid media": Domain.ADS,
    "analytics": Domain.ANALYTICS,
    "data": Domain.ANALYTICS,
    "social": Domain.SOCIAL,
    "réseaux sociaux": Domain.SOCIAL,
    "email": Domain.EMAIL,
    "emailing": Domain.EMAIL,
    "crm": Domain.EMAIL,
    "brand": Domain.BRAND,
    "marque": Domain.BRAND,
    "strategy": Domain.STRATEGY,
    "stratégie": Domain.STRATEGY,
}

# Substrings searched in label names, first hit wins
PRIORITY_LABEL_KEYWORDS: Tuple[Tuple[str, Priority], ...] = (
    ("urgent", Priority.URGENT),
    ("high", Priority.HIGH),
    ("prioritaire", Priority.HIGH),
    ("low", Priority.LOW),
    ("bas", Priority.LOW),
)

# Due-date proximity thresholds in days, checked in order
DUE_DATE_PRIORITY_DAYS: Tuple[Tuple[float, Priority], ...] = (
    (1.0, Priority.URGENT),
    (3.0, Priority.HIGH),
)

# Whole-word keywords in title + description -> deliverable type, checked in order
DELIVERABLE_KEYWORDS: Tuple[Tuple[Tuple[str, ...], DeliverableType], ...] = (
    (("pull request", "pr", "code"), DeliverableType.PULL_REQUEST),
    (("review", "valider"), DeliverableType.REVIEW_REQUEST),
    (("rapport", "report", "analyse"), DeliverableType.REPORT),
    (("campagne", "campaign"), DeliverableType.CAMPAIGN_CONFIG),
)

DEFAULT_DOMAIN = Domain.STRATEGY
DEFAULT_STAGE = Stage.TODO
DEFAULT_PRIORITY = Priority.MEDIUM
DEFAULT_DELIVERABLE_TYPE = DeliverableType.DOCUMENT
