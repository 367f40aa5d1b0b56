"""Decomposes a marketing objective into per-agent card prompts."""

import logging
import re
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from ..llm.base import CompletionBackend, CompletionRequest
from ..safeguards.rate_limiter import RateLimiter
from ..utils.validators import is_valid_deliverable_type, is_valid_domain
from .agents_catalog import AGENT_MAP
from .task import DeliverableType, Domain

logger = logging.getLogger(__name__)

TASK_START = "---TASK_START---"
TASK_END = "---TASK_END---"

SYSTEM_PROMPT = (
    "You are an expert marketing project manager. You break objectives down into "
    "precise, actionable tasks for specialist agents."
)

DOMAIN_KEYWORDS: Dict[Domain, Sequence[str]] = {
    Domain.SEO: ("seo", "référencement", "mots-clés", "keywords", "backlink", "search"),
    Domain.CONTENT: ("contenu", "content", "article", "blog", "rédaction", "editorial"),
    Domain.ADS: ("ads", "publicité", "campagne", "google ads", "meta ads", "paid"),
    Domain.ANALYTICS: ("analytics", "data", "dashboard", "tracking", "kpi", "metrics"),
    Domain.SOCIAL: ("social", "réseaux sociaux", "instagram", "linkedin", "tiktok", "community"),
    Domain.EMAIL: ("email", "newsletter", "emailing", "crm", "automation", "nurturing"),
    Domain.BRAND: ("marque", "brand", "identité", "positionnement", "logo", "charte"),
    Domain.STRATEGY: ("stratégie", "strategy", "plan", "budget", "growth", "marché"),
}

FALLBACK_DOMAINS = (Domain.STRATEGY, Domain.CONTENT)


class GeneratedPrompt(BaseModel):
    """One card's worth of instructions for a target agent."""
    target_domain: Domain
    title: str
    instructions: str
    context: Dict[str, str] = Field(default_factory=dict)
    expected_deliverable: DeliverableType = DeliverableType.DOCUMENT
    acceptance_criteria: List[str] = Field(default_factory=list)


def _extract_field(text: str, field: str) -> str:
    match = re.search(rf"^{field}:[ \t]*(.+)$", text, re.MULTILINE)
    return match.group(1).strip() if match else ""


def _extract_multiline_field(text: str, field: str) -> str:
    match = re.search(
        rf"^{field}:[ \t]*\n(.*?)(?=\n[A-Z_]+:|{re.escape(TASK_END)}|\Z)",
        text,
        re.MULTILINE | re.DOTALL,
    )
    return match.group(1).strip() if match else ""


def _list_items(text: str) -> List[str]:
    return [item for item in (re.sub(r"^[-*]\s*", "", line.strip()).strip() for line in text.splitlines()) if item]


def _context_pairs(text: str) -> Dict[str, str]:
    context = {}
    for line in text.splitlines():
        match = re.match(r"^([^:]+):\s*(.+)$", line.strip())
        if match:
            context[match.group(1).strip()] = match.group(2).strip()
    return context


def _format_context(context: Optional[Dict[str, str]]) -> str:
    if not context:
        return "No additional context."
    return "\n".join(f"- **{k}**: {v}" for k, v in context.items())


class PromptGenerator:
    """Asks the model to split an objective into ``---TASK_START---`` blocks."""

    def __init__(
        self,
        backend: CompletionBackend,
        rate_limiter: RateLimiter,
        model: Optional[str] = None,
        max_tokens: int = 4096,
    ):
        self.backend = backend
        self.rate_limiter = rate_limiter
        self.model = model
        self.max_tokens = max_tokens

    async def _complete(self, prompt: str) -> str:
        await self.rate_limiter.acquire()
        response = await self.backend.complete(CompletionRequest(
            prompt=prompt,
            system_prompt=SYSTEM_PROMPT,
            model=self.model,
            max_tokens=self.max_tokens,
        ))
        return response.content

    async def generate_from_objective(
        self,
        objective: str,
        context: Optional[Dict[str, str]] = None,
        target_domains: Optional[Sequence[Domain]] = None,
    ) -> List[GeneratedPrompt]:
        domains = list(target_domains) if target_domains else self.detect_relevant_domains(objective)
        agents = "\n".join(
            f"- **{AGENT_MAP[d].name}** ({d.value}): {AGENT_MAP[d].description}. "
            f"Capabilities: {', '.join(AGENT_MAP[d].capabilities)}"
            for d in domains
        )
        prompt = f"""You must break an objective down into concrete tasks assigned to specialist agents.

## Objective
{objective}

## Context
{_format_context(context)}

## Available agents
{agents}

## Instructions
For EACH relevant agent, emit one block in exactly this format:

{TASK_START}
TARGET_DOMAIN: <domain>
TITLE: <short, actionable task title>
DELIVERABLE_TYPE: <document|pull_request|review_request|report|campaign_config>
INSTRUCTIONS:
<detailed instructions: what to produce, constraints, available inputs, output format>
CONTEXT_KEY_VALUES:
<key1>: <value1>
ACCEPTANCE_CRITERIA:
- <criterion 1>
- <criterion 2>
{TASK_END}

Only generate relevant tasks. Be precise and actionable."""

        logger.info(f"🧩 Decomposing objective for {', '.join(d.value for d in domains)}")
        prompts = self.parse_generated_prompts(await self._complete(prompt))
        logger.info(f"Generated {len(prompts)} prompt(s)")
        return prompts

    async def generate_for_agent(
        self,
        domain: Domain,
        objective: str,
        context: Optional[Dict[str, str]] = None,
    ) -> GeneratedPrompt:
        """Single prompt for a known target agent."""
        definition = AGENT_MAP[domain]
        prompt = f"""Write precise instructions for a specialist agent.

## Target agent
**{definition.name}**: {definition.description}
Capabilities: {', '.join(definition.capabilities)}

## Objective
{objective}

## Context
{_format_context(context)}

## Instructions
Emit one block:

TITLE: <short, actionable title>
DELIVERABLE_TYPE: <document|pull_request|review_request|report|campaign_config>
INSTRUCTIONS:
<complete instructions: expected deliverable, format, data to use, quality bar>
ACCEPTANCE_CRITERIA:
- <criterion 1>
- <criterion 2>"""

        response = await self._complete(prompt)
        deliverable = _extract_field(response, "DELIVERABLE_TYPE").lower()
        return GeneratedPrompt(
            target_domain=domain,
            title=_extract_field(response, "TITLE") or "Generated task",
            instructions=_extract_multiline_field(response, "INSTRUCTIONS") or response,
            expected_deliverable=(
                DeliverableType(deliverable) if is_valid_deliverable_type(deliverable)
                else DeliverableType.DOCUMENT
            ),
            acceptance_criteria=_list_items(_extract_multiline_field(response, "ACCEPTANCE_CRITERIA")),
        )

    @staticmethod
    def detect_relevant_domains(objective: str) -> List[Domain]:
        """Domains whose keywords appear in the objective (strategy + content if none)."""
        text = (objective or "").lower()
        domains = [d for d, keywords in DOMAIN_KEYWORDS.items() if any(k in text for k in keywords)]
        return domains or list(FALLBACK_DOMAINS)

    @staticmethod
    def parse_generated_prompts(response: str) -> List[GeneratedPrompt]:
        """Blocks with an unknown domain or deliverable type are skipped and logged."""
        prompts = []
        for block in (response or "").split(TASK_START)[1:]:
            content = block.split(TASK_END)[0]

            domain = _extract_field(content, "TARGET_DOMAIN").lower()
            title = _extract_field(content, "TITLE")
            deliverable = _extract_field(content, "DELIVERABLE_TYPE").lower() or DeliverableType.DOCUMENT.value

            if not title:
                logger.warning("Skipping generated task without a title")
                continue
            if not is_valid_domain(domain):
                logger.warning(f'Skipping generated task "{title}": invalid domain "{domain}"')
                continue
            if not is_valid_deliverable_type(deliverable):
                logger.warning(f'Skipping generated task "{title}": invalid deliverable type "{deliverable}"')
                continue

            prompts.append(GeneratedPrompt(
                target_domain=Domain(domain),
                title=title,
                instructions=_extract_multiline_field(content, "INSTRUCTIONS"),
                context=_context_pairs(_extract_multiline_field(content, "CONTEXT_KEY_VALUES")),
                expected_deliverable=DeliverableType(deliverable),
                acceptance_criteria=_list_items(_extract_multiline_field(content, "ACCEPTANCE_CRITERIA")),
            ))
        return prompts
