"""Built-in agent definitions, one per marketing domain."""

from typing import Dict, List

from pydantic import BaseModel, Field

from .task import Domain


class AgentDefinition(BaseModel):
    """Static description of a domain agent."""
    domain: Domain
    name: str
    description: str
    system_prompt: str
    capabilities: List[str] = Field(default_factory=list)
    # Board label colour used when a label named after the domain does not exist
    label_color: str


_COMMON_RULES = (
    "Write in the language of the card. Be concrete and actionable: figures, "
    "examples and deadlines rather than generic advice."
)


def _prompt(role: str) -> str:
    return f"You are {role}. {_COMMON_RULES}"


AGENT_DEFINITIONS: List[AgentDefinition] = [
    AgentDefinition(
        domain=Domain.SEO,
        name="SEO Specialist Agent",
        description="Organic search: technical audits, keyword strategy, on-page optimization",
        label_color="green",
        capabilities=[
            "keyword_research",
            "technical_audit",
            "content_optimization",
            "competitor_analysis",
            "backlink_strategy",
        ],
        system_prompt=_prompt("a senior SEO consultant for B2B and B2C websites"),
    ),
    AgentDefinition(
        domain=Domain.CONTENT,
        name="Content Strategist Agent",
        description="Content strategy, copywriting, editorial calendar",
        label_color="blue",
        capabilities=[
            "editorial_calendar",
            "content_writing",
            "content_audit",
            "tone_of_voice",
            "content_repurposing",
        ],
        system_prompt=_prompt("a content strategist and senior copywriter"),
    ),
    AgentDefinition(
        domain=Domain.ADS,
        name="Paid Media Agent",
        description="Paid acquisition: Google Ads, Meta Ads, campaign budgets",
        label_color="red",
        capabilities=[
            "campaign_setup",
            "ad_copywriting",
            "budget_optimization",
            "audience_targeting",
            "performance_reporting",
        ],
        system_prompt=_prompt("a paid media manager running search and social campaigns"),
    ),
    AgentDefinition(
        domain=Domain.ANALYTICS,
        name="Analytics Agent",
        description="Web analytics, dashboards, reporting, data analysis",
        label_color="orange",
        capabilities=[
            "dashboard_creation",
            "data_analysis",
            "conversion_tracking",
            "attribution_modeling",
            "reporting",
        ],
        system_prompt=_prompt(
            "a web analytics lead; base every conclusion on the analytics data provided"
        ),
    ),
    AgentDefinition(
        domain=Domain.SOCIAL,
        name="Social Media Agent",
        description="Social media strategy, community management, publishing calendar",
        label_color="purple",
        capabilities=[
            "social_strategy",
            "community_management",
            "social_calendar",
            "influencer_strategy",
            "social_listening",
        ],
        system_prompt=_prompt("a social media manager"),
    ),
    AgentDefinition(
        domain=Domain.EMAIL,
        name="Email Marketing Agent",
        description="Email marketing, automation, CRM, nurturing",
        label_color="yellow",
        capabilities=[
            "email_campaigns",
            "automation_workflows",
            "segmentation",
            "ab_testing",
            "deliverability",
        ],
        system_prompt=_prompt("an email marketing and CRM automation specialist"),
    ),
    AgentDefinition(
        domain=Domain.BRAND,
        name="Brand Strategy Agent",
        description="Brand positioning, identity, messaging",
        label_color="sky",
        capabilities=[
            "brand_positioning",
            "brand_guidelines",
            "competitive_analysis",
            "brand_messaging",
            "brand_audit",
        ],
        system_prompt=_prompt("a brand strategist"),
    ),
    AgentDefinition(
        domain=Domain.STRATEGY,
        name="Marketing Strategy Agent",
        description="Overall marketing plan, budget allocation, growth strategy",
        label_color="black",
        capabilities=[
            "marketing_plan",
            "budget_allocation",
            "market_research",
            "growth_strategy",
            "okr_definition",
        ],
        system_prompt=_prompt(
            "a marketing director; split large objectives into work for the specialist agents"
        ),
    ),
]

AGENT_MAP: Dict[Domain, AgentDefinition] = {d.domain: d for d in AGENT_DEFINITIONS}
