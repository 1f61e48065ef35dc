"""GitHub API client."""

import logging
import os
import subprocess
from typing import Any, Callable

import httpx
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    before_sleep_log,
)

from .models import PullRequest

logger = logging.getLogger(__name__)

# Retry configuration
DEFAULT_MAX_RETRIES = 3
DEFAULT_MIN_WAIT = 1  # seconds
DEFAULT_MAX_WAIT = 10  # seconds

# Retryable exceptions
RETRYABLE_EXCEPTIONS = (
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.ReadTimeout,
    httpx.WriteTimeout,
    httpx.PoolTimeout,
    httpx.NetworkError,
)

# Failures that happen before a request reaches the server
UNSENT_EXCEPTIONS = (
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.PoolTimeout,
)


def is_retryable(exc: BaseException) -> bool:
    """Network failures and 5xx responses are retried, 4xx are not."""
    if isinstance(exc, RETRYABLE_EXCEPTIONS):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return False


def is_unsent(exc: BaseException) -> bool:
    """Only connection failures are safe to retry for non-idempotent requests."""
    return isinstance(exc, UNSENT_EXCEPTIONS)


def get_token_from_gh_cli() -> str | None:
    """
    Get GitHub token from gh cli.

    Returns:
        Token string or None if gh cli not available/authenticated
    """
    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0 and result.stdout.strip():
            logger.info("Using token from gh cli")
            return result.stdout.strip()
    except (subprocess.TimeoutExpired, FileNotFoundError) as e:
        logger.debug("gh cli not available: %s", e)
    return None


def get_token(token: str | None = None, use_gh_cli: bool = False) -> str | None:
    """
    Get GitHub token from various sources.

    Priority:
    1. Explicitly provided token
    2. Environment variable GH_TOKEN / GITHUB_TOKEN
    3. gh cli (`gh auth token`) - only if use_gh_cli=True

    Args:
        token: Explicitly provided token
        use_gh_cli: Whether to use gh cli credentials (requires user consent)

    Returns:
        GitHub token or None
    """
    if token:
        logger.debug("Using explicitly provided token")
        return token

    env_token = os.environ.get("GH_TOKEN") or os.environ.get("GITHUB_TOKEN")
    if env_token:
        logger.info("Using token from environment variable")
        return env_token

    if use_gh_cli:
        return get_token_from_gh_cli()

    return None


def create_retry_decorator(
    max_retries: int = DEFAULT_MAX_RETRIES,
    min_wait: float = DEFAULT_MIN_WAIT,
    predicate: Callable[[BaseException], bool] = is_retryable,
):
    """Create a retry decorator with specified max retries."""
    return retry(
        retry=retry_if_exception(predicate),
        stop=stop_after_attempt(max_retries),
        wait=wait_exponential(multiplier=min_wait, min=min_wait, max=DEFAULT_MAX_WAIT),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


class GitHubClient:
    """GitHub REST API client with retry support."""

    BASE_URL = "https://api.github.com"

    def __init__(
        self,
        token: str | None = None,
        base_url: str | None = None,
        timeout: float = 30.0,
        max_retries: int = DEFAULT_MAX_RETRIES,
        min_wait: float = DEFAULT_MIN_WAIT,
        transport: httpx.BaseTransport | None = None,
    ):
        """
        Initialize GitHub client.

        Args:
            token: GitHub personal access token (optional, falls back to
                GH_TOKEN / GITHUB_TOKEN)
            base_url: Custom base URL (defaults to GitHub API)
            timeout: Request timeout in seconds
            max_retries: Maximum number of retry attempts (default: 3)
            min_wait: Minimum wait between retries in seconds
            transport: Custom httpx transport (used by tests)
        """
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.min_wait = min_wait
        self.transport = transport
        self.headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": "reposync-github-client",
        }

        resolved_token = get_token(token)

        if resolved_token:
            self.headers["Authorization"] = f"token {resolved_token}"
            logger.debug("GitHub client initialized with token")
        else:
            logger.warning("GitHub client initialized without token (rate limited)")
        logger.info("GitHub client ready, base_url=%s, max_retries=%d", self.base_url, max_retries)

    def _request(
        self, method: str, endpoint: str, idempotent: bool = True, **kwargs: Any
    ) -> httpx.Response:
        """
        Make HTTP request to GitHub API with retry.

        Non-idempotent requests are retried only when the connection could
        not be made, never after the server may have acted on them.
        """
        url = f"{self.base_url}{endpoint}"
        predicate = is_retryable if idempotent else is_unsent

        @create_retry_decorator(self.max_retries, self.min_wait, predicate)
        def do_request() -> httpx.Response:
            logger.debug("Request: %s %s", method, url)
            with httpx.Client(
                timeout=self.timeout, headers=self.headers, transport=self.transport
            ) as client:
                response = client.request(method, url, **kwargs)
                logger.debug(
                    "Response: %s %s (status=%d)",
                    method,
                    endpoint,
                    response.status_code,
                )
                if response.status_code >= 500 and idempotent:
                    logger.warning("Server error %d, will retry", response.status_code)
                response.raise_for_status()
                return response

        return do_request()

    def branch_exists(self, owner: str, repo: str, branch: str) -> bool:
        """Check whether a branch exists on the remote."""
        try:
            self._request("GET", f"/repos/{owner}/{repo}/branches/{branch}")
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                logger.debug("Branch not found: %s/%s@%s", owner, repo, branch)
                return False
            raise
        return True

    def create_pull_request(
        self,
        owner: str,
        repo: str,
        title: str,
        head: str,
        base: str,
        body: str = "",
    ) -> PullRequest:
        """
        Open a pull request.

        Args:
            owner: Repository owner
            repo: Repository name
            title: Pull request title
            head: Branch containing the changes
            base: Branch the changes should be merged into
            body: Pull request description

        Returns:
            The created PullRequest

        Raises:
            httpx.HTTPStatusError: if GitHub rejects the request (e.g. 422
                when there is no diff between head and base). A 5xx is raised
                as well, without a retry: the pull request may already exist.
        """
        logger.info("Creating pull request: %s/%s %s -> %s", owner, repo, head, base)
        payload = {"title": title, "body": body, "head": head, "base": base}
        try:
            response = self._request(
                "POST", f"/repos/{owner}/{repo}/pulls", idempotent=False, json=payload
            )
        except httpx.HTTPStatusError as e:
            logger.error(
                "Pull request rejected (status=%d): %s",
                e.response.status_code,
                e.response.text,
            )
            raise
        pr = PullRequest(**response.json())
        logger.info("Pull request #%d created: %s", pr.number, pr.html_url)
        return pr
