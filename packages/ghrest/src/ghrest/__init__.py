"""GitHub API client utilities."""

from .client import GitHubClient, get_token
from .models import PullRequest

__all__ = ["GitHubClient", "PullRequest", "get_token"]
