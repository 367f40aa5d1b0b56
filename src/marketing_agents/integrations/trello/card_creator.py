"""Creates board cards from delegation requests or generated prompts."""

import logging
from typing import TYPE_CHECKING, List, Optional

from ...core.agents_catalog import AGENT_MAP
from ...core.task import (
    DELEGATION_DEPTH_KEY,
    PARENT_CARD_KEY,
    TARGET_DOMAIN_KEY,
    CardCreationRequest,
    CardCreationResult,
    Domain,
    Priority,
    Stage,
)
from .client import TrelloClient

if TYPE_CHECKING:
    from ...core.prompt_generator import GeneratedPrompt

logger = logging.getLogger(__name__)

CHECKLIST_NAME = "Acceptance criteria"


class CardCreator:
    """Bridge between agent output and the board."""

    def __init__(self, board: TrelloClient):
        self.board = board

    async def create_from_request(self, request: CardCreationRequest) -> CardCreationResult:
        """Create one card, its checklist and the parent/child cross-links.

        Any board failure propagates; the caller decides whether a partial
        batch is acceptable.
        """
        label_ids = []
        domain_label = self._find_domain_label(request.target_domain)
        if domain_label:
            label_ids.append(domain_label)
        priority_label = self.board.find_label_id(request.priority.value)
        if priority_label:
            label_ids.append(priority_label)

        card = await self.board.create_card(
            request.stage,
            request.title,
            self.build_description(request),
            label_ids=label_ids,
            due=request.due_date,
        )

        if request.checklist:
            await self.board.add_checklist(card.id, CHECKLIST_NAME, request.checklist)

        if request.parent_card_id:
            await self.board.add_comment(
                request.parent_card_id,
                f"➡️ Sub-task created: **{request.title}**\n"
                f"Card: {card.url}\n"
                f"Target agent: {request.target_domain.value}",
            )
            await self.board.add_comment(
                card.id,
                f"⬆️ Parent card: https://trello.com/c/{request.parent_card_id}",
            )

        logger.info(
            f"🆕 Card created: \"{request.title}\" → {request.target_domain.value} "
            f"({request.stage.value})"
        )
        return CardCreationResult(
            card_id=card.id,
            card_url=card.url,
            title=request.title,
            target_domain=request.target_domain,
        )

    async def create_from_prompts(
        self,
        prompts: List["GeneratedPrompt"],
        parent_card_id: Optional[str] = None,
    ) -> List[CardCreationResult]:
        """Create one card per generated prompt, in the review list for a human to validate."""
        results = []
        for prompt in prompts:
            result = await self.create_from_request(CardCreationRequest(
                title=prompt.title,
                description=self.format_prompt_description(prompt),
                stage=Stage.REVIEW,
                target_domain=prompt.target_domain,
                priority=Priority.MEDIUM,
                checklist=prompt.acceptance_criteria,
                parent_card_id=parent_card_id,
                delegation_depth=1 if parent_card_id else 0,
            ))
            results.append(result)
        return results

    @staticmethod
    def build_description(request: CardCreationRequest) -> str:
        """Request description plus the target domain and, for delegated cards, lineage lines.

        The domain line keeps routing stable on boards without a matching label.
        """
        lines = [f"**{TARGET_DOMAIN_KEY}**: {request.target_domain.value}"]
        if request.parent_card_id:
            lines.append(f"**{PARENT_CARD_KEY}**: {request.parent_card_id}")
            lines.append(f"**{DELEGATION_DEPTH_KEY}**: {request.delegation_depth}")
        return f"{request.description}\n\n---\n" + "\n".join(lines)

    @staticmethod
    def format_prompt_description(prompt: "GeneratedPrompt") -> str:
        context_block = "\n".join(f"**{k}**: {v}" for k, v in prompt.context.items())
        criteria_block = "\n".join(f"- [ ] {c}" for c in prompt.acceptance_criteria)

        parts = ["## Instructions", "", prompt.instructions, ""]
        if context_block:
            parts += ["## Context", context_block, ""]
        parts += [
            "## Expected deliverable",
            prompt.expected_deliverable.value,
            "",
            "## Acceptance criteria",
            criteria_block,
            "",
            "---",
            "*Card generated automatically by the marketing agents*",
        ]
        return "\n".join(parts)

    def _find_domain_label(self, domain: Domain) -> Optional[str]:
        """Label named after the domain, else the agent's configured colour."""
        label_id = self.board.find_label_id(domain.value)
        if label_id:
            return label_id
        definition = AGENT_MAP.get(domain)
        return self.board.find_label_id(definition.label_color) if definition else None
