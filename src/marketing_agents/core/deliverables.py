"""Turns parsed deliverables into files, pull requests and review issues."""

import asyncio
import json
import logging
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Optional, Union

from ..errors import ConfigurationError
from ..utils.sanitizer import safe_path, safe_slug
from ..utils.validators import is_valid_domain
from .task import Deliverable, DeliverableType

if TYPE_CHECKING:
    from ..integrations.github import GitHubClient

logger = logging.getLogger(__name__)

DOCS_DIR = "deliverables/docs"
REPORTS_DIR = "deliverables/reports"
REVIEWS_DIR = "deliverables/reviews"
CAMPAIGNS_DIR = "deliverables/campaigns"

PR_BODY_PREVIEW_CHARS = 500
ISSUE_BODY_PREVIEW_CHARS = 1000


class DeliverableProducer:
    """Persists a Deliverable and returns where it ended up (path or URL).

    ``deliverable.location`` is model-adjacent data: only its last segment is
    used, re-slugged, and every local path is checked against ``output_dir``
    with ``safe_path``.
    """

    def __init__(
        self,
        github: Optional["GitHubClient"],
        output_dir: Union[str, Path] = "./output",
        branch_prefix: str = "feature",
        labels: Optional[list] = None,
    ):
        self.github = github
        self.output_dir = Path(output_dir)
        self.branch_prefix = branch_prefix
        self.labels = labels if labels is not None else ["ai-agent"]

    async def produce(self, deliverable: Deliverable) -> str:
        if deliverable.type == DeliverableType.PULL_REQUEST:
            return await self.create_pull_request(deliverable)
        if deliverable.type == DeliverableType.REVIEW_REQUEST:
            return await self.create_review_request(deliverable)
        if deliverable.type == DeliverableType.CAMPAIGN_CONFIG:
            return str(self.write_campaign_config(deliverable))
        if deliverable.type == DeliverableType.REPORT:
            return str(self.write_document(deliverable, REPORTS_DIR))
        return str(self.write_document(deliverable, DOCS_DIR))

    @staticmethod
    def slug_for(deliverable: Deliverable) -> str:
        """Slug re-derived from the last segment of the suggested location."""
        stem = PurePosixPath(deliverable.location.replace("\\", "/")).stem
        return safe_slug(stem or deliverable.title)

    @staticmethod
    def domain_for(deliverable: Deliverable) -> str:
        domain = deliverable.metadata.get("domain", "")
        return domain if is_valid_domain(domain) else "general"

    def _resolve(self, relative: str) -> Path:
        path = safe_path(self.output_dir, relative)
        path.parent.mkdir(parents=True, exist_ok=True)
        return path

    def write_document(self, deliverable: Deliverable, directory: str = DOCS_DIR) -> Path:
        """Write markdown under ``output_dir/<directory>/<slug>.md``."""
        path = self._resolve(f"{directory}/{self.slug_for(deliverable)}.md")
        meta = deliverable.metadata
        header = (
            f"# {deliverable.title}\n\n"
            f"> Generated by **{meta.get('agent', 'unknown')}** on {meta.get('generated_at', '')}\n"
            f"> Domain: {meta.get('domain', '')} | Task: {meta.get('task_id', '')}\n\n"
            "---\n\n"
        )
        path.write_text(header + deliverable.content, encoding="utf-8")
        logger.info(f"📄 Document written: {path}")
        return path

    def write_campaign_config(self, deliverable: Deliverable) -> Path:
        """Write JSON as-is when it parses, otherwise wrap the text in a JSON envelope."""
        path = self._resolve(f"{CAMPAIGNS_DIR}/{self.slug_for(deliverable)}.json")
        try:
            json.loads(deliverable.content)
            payload = deliverable.content
        except ValueError:
            payload = json.dumps(
                {
                    "title": deliverable.title,
                    "generated_by": deliverable.metadata.get("agent"),
                    "generated_at": deliverable.metadata.get("generated_at"),
                    "config": deliverable.content,
                },
                indent=2,
                ensure_ascii=False,
            )
        path.write_text(payload, encoding="utf-8")
        logger.info(f"⚙️  Campaign config written: {path}")
        return path

    def _require_github(self) -> "GitHubClient":
        if self.github is None:
            raise ConfigurationError(
                "GitHub is not configured; pull_request and review_request deliverables need it",
                missing=["GITHUB_TOKEN", "GITHUB_OWNER", "GITHUB_REPO"],
            )
        return self.github

    async def create_pull_request(self, deliverable: Deliverable) -> str:
        """Branch from the default branch, commit the content, open a PR."""
        github = self._require_github()
        slug = self.slug_for(deliverable)
        domain = self.domain_for(deliverable)
        branch = f"{self.branch_prefix}/{slug}"
        file_path = f"deliverables/{domain}/{slug}.md"
        meta = deliverable.metadata

        base = await asyncio.to_thread(github.get_default_branch)
        await asyncio.to_thread(github.create_branch, branch, base)
        await asyncio.to_thread(
            github.commit_file, branch, file_path, deliverable.content, f"[AI Agent] {deliverable.title}"
        )

        preview = deliverable.content[:PR_BODY_PREVIEW_CHARS]
        body = (
            "## 🤖 Automated deliverable\n\n"
            f"**Agent**: {meta.get('agent', '')}\n"
            f"**Domain**: {domain}\n"
            f"**Task**: {meta.get('task_id', '')}\n\n"
            f"---\n\n{preview}...\n\n---\n"
            "*This PR was created automatically by the marketing agents.*"
        )
        return await asyncio.to_thread(
            github.create_pull_request,
            github.format_pr_title(domain.upper(), deliverable.title),
            body,
            branch,
            base,
            self.labels,
        )

    async def create_review_request(self, deliverable: Deliverable) -> str:
        """Write the document locally, then open a review issue pointing at it."""
        github = self._require_github()
        doc_path = self.write_document(deliverable, REVIEWS_DIR)
        domain = self.domain_for(deliverable)

        body = (
            "## 📋 Review request\n\n"
            f"**Agent**: {deliverable.metadata.get('agent', '')}\n"
            f"**Domain**: {domain}\n"
            f"**Document**: `{doc_path}`\n\n"
            f"### Summary\n{deliverable.content[:ISSUE_BODY_PREVIEW_CHARS]}\n\n---\n"
            "*Please review this deliverable and approve it or request changes.*"
        )
        return await asyncio.to_thread(
            github.create_issue, f"[Review] {deliverable.title}", body, ["review", domain]
        )
