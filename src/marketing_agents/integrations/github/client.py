"""GitHub client for deliverable pull requests and review issues."""

import logging
from typing import List, Optional

from github import Github
from github.Repository import Repository

from ...core.config import GitHubConfig
from ...errors import UnexpectedResponseError
from ...utils.validators import validate_branch_name

logger = logging.getLogger(__name__)


class GitHubClient:
    """GitHub API client for PR and issue operations.

    Every value read back from the API is checked; a missing branch name,
    SHA or URL raises UnexpectedResponseError instead of flowing on as None.
    """

    def __init__(self, config: GitHubConfig, gh: Optional[Github] = None):
        self.config = config
        self.gh = gh or Github(config.token, base_url=config.api_base)
        self._repo: Optional[Repository] = None

    @property
    def repo(self) -> Repository:
        # Lazy so that constructing the producer never touches the network
        if self._repo is None:
            self._repo = self.gh.get_repo(f"{self.config.owner}/{self.config.repo}")
        return self._repo

    def get_default_branch(self) -> str:
        branch = self.repo.default_branch
        if not branch:
            raise UnexpectedResponseError(
                f"Repository {self.config.owner}/{self.config.repo} has no default branch"
            )
        return branch

    def create_branch(self, branch_name: str, from_branch: str) -> str:
        """Create a new branch pointing at the head of ``from_branch``.

        Returns:
            SHA the new branch was created from
        """
        validate_branch_name(branch_name)
        source_branch = self.repo.get_branch(from_branch)
        sha = getattr(getattr(source_branch, "commit", None), "sha", None)
        if not sha:
            raise UnexpectedResponseError(f"Branch '{from_branch}' has no head commit SHA")
        self.repo.create_git_ref(ref=f"refs/heads/{branch_name}", sha=sha)
        return sha

    def commit_file(self, branch_name: str, path: str, content: str, message: str) -> str:
        """Create ``path`` on ``branch_name``; returns the commit SHA."""
        result = self.repo.create_file(path=path, message=message, content=content, branch=branch_name)
        commit = result.get("commit") if isinstance(result, dict) else None
        sha = getattr(commit, "sha", None)
        if not sha:
            raise UnexpectedResponseError(f"Commit of {path} returned no SHA")
        return sha

    def create_pull_request(
        self,
        title: str,
        body: str,
        head_branch: str,
        base_branch: str,
        labels: Optional[List[str]] = None,
    ) -> str:
        """Create a pull request and return its URL."""
        pr = self.repo.create_pull(
            title=title,
            body=body,
            head=head_branch,
            base=base_branch,
        )
        if not getattr(pr, "html_url", None):
            raise UnexpectedResponseError(f"Pull request for {head_branch} returned no URL")

        if labels:
            pr.add_to_labels(*labels)

        logger.info(f"🔀 Opened PR #{pr.number}: {pr.html_url}")
        return pr.html_url

    def create_issue(self, title: str, body: str, labels: Optional[List[str]] = None) -> str:
        """Create an issue and return its URL."""
        issue = self.repo.create_issue(title=title, body=body, labels=labels or [])
        if not getattr(issue, "html_url", None):
            raise UnexpectedResponseError(f"Issue '{title}' returned no URL")
        logger.info(f"📝 Opened issue #{issue.number}: {issue.html_url}")
        return issue.html_url

    def format_pr_title(self, domain: str, title: str) -> str:
        """Format PR title according to pattern."""
        return self.config.pr_title_pattern.format(domain=domain, title=title)
