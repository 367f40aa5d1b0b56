"""Core models, configuration and orchestration."""

from .task import (
    AgentResult,
    CardCreationRequest,
    CardCreationResult,
    Deliverable,
    DeliverableType,
    Domain,
    Priority,
    ResultStatus,
    Stage,
    Task,
)
from .config import SystemConfig, load_config

__all__ = [
    "AgentResult",
    "CardCreationRequest",
    "CardCreationResult",
    "Deliverable",
    "DeliverableType",
    "Domain",
    "Priority",
    "ResultStatus",
    "Stage",
    "Task",
    "SystemConfig",
    "load_config",
]
