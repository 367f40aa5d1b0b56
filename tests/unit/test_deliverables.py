"""Tests for DeliverableProducer: local files, PRs and review issues."""

import json
from unittest.mock import MagicMock

import pytest

from marketing_agents.core.deliverables import DeliverableProducer
from marketing_agents.core.task import Deliverable, DeliverableType
from marketing_agents.errors import ConfigurationError

META = {
    "agent": "SEO Specialist Agent",
    "domain": "seo",
    "task_id": "task_c1",
    "generated_at": "2025-03-10T12:00:00+00:00",
}


def _make_deliverable(type=DeliverableType.DOCUMENT, location="deliverables/docs/seo-audit.md", **kwargs):
    defaults = dict(
        type=type,
        title="SEO audit",
        content="# Findings\n- Slow LCP",
        location=location,
        metadata=dict(META),
    )
    defaults.update(kwargs)
    return Deliverable(**defaults)


def _make_github():
    github = MagicMock()
    github.get_default_branch.return_value = "main"
    github.create_branch.return_value = "sha1"
    github.commit_file.return_value = "sha2"
    github.create_pull_request.return_value = "https://github.com/acme/site/pull/7"
    github.create_issue.return_value = "https://github.com/acme/site/issues/8"
    github.format_pr_title.side_effect = lambda domain, title: f"[{domain}] {title}"
    return github


class TestLocalFiles:
    @pytest.mark.asyncio
    async def test_document_written_with_header(self, tmp_path):
        producer = DeliverableProducer(None, output_dir=tmp_path)

        location = await producer.produce(_make_deliverable())

        path = tmp_path / "deliverables/docs/seo-audit.md"
        assert location == str(path.resolve())
        text = path.read_text(encoding="utf-8")
        assert text.startswith("# SEO audit\n")
        assert "Generated by **SEO Specialist Agent**" in text
        assert text.endswith("# Findings\n- Slow LCP")

    @pytest.mark.asyncio
    async def test_report_goes_to_reports(self, tmp_path):
        producer = DeliverableProducer(None, output_dir=tmp_path)

        await producer.produce(_make_deliverable(
            type=DeliverableType.REPORT, location="deliverables/reports/traffic.md"
        ))

        assert (tmp_path / "deliverables/reports/traffic.md").exists()

    @pytest.mark.asyncio
    async def test_campaign_valid_json_kept(self, tmp_path):
        producer = DeliverableProducer(None, output_dir=tmp_path)
        content = '{"budget": 5000, "channels": ["meta"]}'

        await producer.produce(_make_deliverable(
            type=DeliverableType.CAMPAIGN_CONFIG, location="deliverables/campaigns/spring.json", content=content
        ))

        assert (tmp_path / "deliverables/campaigns/spring.json").read_text() == content

    @pytest.mark.asyncio
    async def test_campaign_text_wrapped(self, tmp_path):
        producer = DeliverableProducer(None, output_dir=tmp_path)

        await producer.produce(_make_deliverable(
            type=DeliverableType.CAMPAIGN_CONFIG, location="deliverables/campaigns/spring.json",
            content="Budget: 5000€",
        ))

        data = json.loads((tmp_path / "deliverables/campaigns/spring.json").read_text(encoding="utf-8"))
        assert data["config"] == "Budget: 5000€"
        assert data["generated_by"] == "SEO Specialist Agent"

    @pytest.mark.asyncio
    async def test_hostile_location_stays_inside_output_dir(self, tmp_path):
        output = tmp_path / "out"
        producer = DeliverableProducer(None, output_dir=output)

        location = await producer.produce(_make_deliverable(location="../../../etc/passwd"))

        assert location == str((output / "deliverables/docs/passwd.md").resolve())
        assert not (tmp_path / "etc").exists()

    def test_slug_falls_back_to_title(self):
        deliverable = _make_deliverable(location="", title="Stratégie été")
        assert DeliverableProducer.slug_for(deliverable) == "strategie-ete"

    def test_unknown_domain_is_general(self):
        deliverable = _make_deliverable(metadata={"domain": "../x"})
        assert DeliverableProducer.domain_for(deliverable) == "general"


class TestGitHubDeliverables:
    @pytest.mark.asyncio
    async def test_pull_request(self, tmp_path):
        github = _make_github()
        producer = DeliverableProducer(github, output_dir=tmp_path, branch_prefix="marketing", labels=["ai-agent"])

        url = await producer.produce(_make_deliverable(
            type=DeliverableType.PULL_REQUEST, location="feature/seo-audit"
        ))

        assert url == "https://github.com/acme/site/pull/7"
        github.create_branch.assert_called_once_with("marketing/seo-audit", "main")
        branch, path, content, message = github.commit_file.call_args.args
        assert (branch, path, content) == ("marketing/seo-audit", "deliverables/seo/seo-audit.md", "# Findings\n- Slow LCP")
        assert message == "[AI Agent] SEO audit"
        title, body, head, base, labels = github.create_pull_request.call_args.args
        assert title == "[SEO] SEO audit"
        assert "**Agent**: SEO Specialist Agent" in body
        assert (head, base, labels) == ("marketing/seo-audit", "main", ["ai-agent"])

    @pytest.mark.asyncio
    async def test_review_request_writes_doc_and_opens_issue(self, tmp_path):
        github = _make_github()
        producer = DeliverableProducer(github, output_dir=tmp_path)

        url = await producer.produce(_make_deliverable(
            type=DeliverableType.REVIEW_REQUEST, location="review/seo-audit"
        ))

        assert url == "https://github.com/acme/site/issues/8"
        assert (tmp_path / "deliverables/reviews/seo-audit.md").exists()
        title, body, labels = github.create_issue.call_args.args
        assert title == "[Review] SEO audit"
        assert labels == ["review", "seo"]
        assert "## 📋 Review request" in body

    @pytest.mark.asyncio
    async def test_github_required(self, tmp_path):
        producer = DeliverableProducer(None, output_dir=tmp_path)

        with pytest.raises(ConfigurationError):
            await producer.produce(_make_deliverable(type=DeliverableType.PULL_REQUEST))

    @pytest.mark.asyncio
    async def test_github_failure_propagates(self, tmp_path):
        github = _make_github()
        github.create_branch.side_effect = RuntimeError("422 Reference already exists")
        producer = DeliverableProducer(github, output_dir=tmp_path)

        with pytest.raises(RuntimeError):
            await producer.produce(_make_deliverable(type=DeliverableType.PULL_REQUEST))
        github.create_pull_request.assert_not_called()
