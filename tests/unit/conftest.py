"""Shared builders for unit tests."""

from marketing_agents.core.task import (
    BoardCard,
    BoardLabel,
    DeliverableType,
    Domain,
    Priority,
    Stage,
    Task,
)


def make_card(card_id="abc123", name="Write a blog post", desc="", labels=None, **kwargs):
    """Board card as the Trello API would return it."""
    return BoardCard(
        id=card_id,
        name=name,
        desc=desc,
        idList=kwargs.pop("id_list", "list-todo"),
        labels=[BoardLabel(**label) for label in (labels or [])],
        url=kwargs.pop("url", f"https://trello.com/c/{card_id}"),
        **kwargs,
    )


def make_task(card_id="abc123", title="Write a blog post", **kwargs):
    defaults = dict(
        id=f"task_{card_id}",
        title=title,
        description="Two thousand words on local SEO",
        domain=Domain.CONTENT,
        stage=Stage.TODO,
        priority=Priority.MEDIUM,
        card_id=card_id,
        card_url=f"https://trello.com/c/{card_id}",
        deliverable_type=DeliverableType.DOCUMENT,
    )
    defaults.update(kwargs)
    return Task(**defaults)
