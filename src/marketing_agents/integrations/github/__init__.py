"""GitHub integration."""

from .client import GitHubClient

__all__ = ["GitHubClient"]
