"""Pushing local edits back to the remote repository."""

import logging

import httpx
from ghrest import GitHubClient
from git import Actor, Commit, GitCommandError
from git.remote import PushInfo

from .errors import SyncError, SyncErrorReason
from .mirror import RepositoryMirror
from .models import CommitResult, CommitSpec, FileEdit, PullRequestResult, PullRequestSpec

logger = logging.getLogger(__name__)

PUSH_FAILURE_FLAGS = PushInfo.ERROR | PushInfo.REJECTED | PushInfo.REMOTE_REJECTED


class WriteBackCoordinator:
    """
    Applies file edits to a mirror and publishes them, either as a direct
    commit on the checked-out branch or as a pull request.

    Nothing is rolled back on failure: edits written before a failed commit
    or push stay in the working copy, and a commit whose push was rejected
    stays on the local branch. The next caller has to clean up.
    """

    def __init__(self, mirror: RepositoryMirror, client: GitHubClient | None = None):
        self.mirror = mirror
        self.config = mirror.config
        self._client = client

    @property
    def client(self) -> GitHubClient:
        if self._client is None:
            self._client = GitHubClient(
                token=self.config.token.get_secret_value(),
                base_url=self.config.api_base_url,
            )
        return self._client

    def commit_and_push(self, spec: CommitSpec) -> CommitResult:
        """
        Write the edits, commit them and push the current branch.

        Args:
            spec: Commit message and edits

        Returns:
            CommitResult with the new commit sha

        Raises:
            SyncError: PUSH_REJECTED if the remote refuses the push
        """
        branch = self.mirror.current_branch()
        if branch is None:
            raise SyncError(SyncErrorReason.PUSH_REJECTED, "No branch is checked out, nothing to push to")

        commit = self._write_and_commit(spec.edits, spec.message, spec.description)
        self._push(branch, SyncErrorReason.PUSH_REJECTED)
        logger.info("Pushed %s to %s", commit.hexsha[:8], branch)
        return CommitResult(commit_sha=commit.hexsha, branch=branch, paths=[e.path for e in spec.edits])

    def open_pull_request(self, spec: PullRequestSpec) -> PullRequestResult:
        """
        Commit the edits on a new branch, push it and open a pull request.

        The mirror returns to the branch it was on once the new branch has
        been pushed.

        Args:
            spec: Title, head branch name, edits and optional description/base

        Returns:
            PullRequestResult with the number and URL GitHub assigned

        Raises:
            SyncError: BRANCH_CREATE_FAILED if the branch already exists (locally,
                on GitHub or on origin) or its push is rejected,
                PULL_REQUEST_REJECTED if GitHub refuses the request
        """
        base = spec.base_branch or self.config.branch or "main"
        previous = self.mirror.current_branch()

        self._ensure_remote_branch_free(spec.branch)
        self.mirror.create_branch(spec.branch)
        commit = self._write_and_commit(spec.edits, spec.title, spec.description)
        self._push(spec.branch, SyncErrorReason.BRANCH_CREATE_FAILED, set_upstream=True)

        try:
            pr = self.client.create_pull_request(
                owner=self.config.owner,
                repo=self.config.repo,
                title=spec.title,
                head=spec.branch,
                base=base,
                body=spec.description or spec.title,
            )
        except httpx.HTTPError as e:
            raise SyncError(
                SyncErrorReason.PULL_REQUEST_REJECTED,
                f"GitHub rejected pull request {spec.branch} -> {base}: {e}",
            ) from e
        finally:
            if previous:
                self.mirror.checkout(previous)

        return PullRequestResult(
            number=pr.number,
            url=pr.url,
            html_url=pr.html_url,
            head=spec.branch,
            base=base,
            commit_sha=commit.hexsha,
        )

    # ============ Internals ============

    def _ensure_remote_branch_free(self, branch: str) -> None:
        try:
            exists = self.client.branch_exists(self.config.owner, self.config.repo, branch)
        except httpx.HTTPError as e:
            raise SyncError(
                SyncErrorReason.BRANCH_CREATE_FAILED, f"Unable to check remote branch {branch}: {e}"
            ) from e
        if exists:
            raise SyncError(
                SyncErrorReason.BRANCH_CREATE_FAILED,
                f"Branch already exists on {self.config.owner}/{self.config.repo}: {branch}",
            )

    def _write_and_commit(self, edits: list[FileEdit], message: str, description: str | None) -> Commit:
        repo = self.mirror.repo
        for edit in edits:
            target = self.mirror.path / edit.path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(edit.content, encoding="utf-8")
            logger.debug("Wrote %s (%d chars)", edit.path, len(edit.content))

        repo.git.add(".")
        full_message = f"{message}\n\n{description}" if description else message
        actor = Actor(self.config.author_name, self.config.author_email)
        commit = repo.index.commit(full_message, author=actor, committer=actor)
        logger.info("Committed %d file(s) as %s: %s", len(edits), commit.hexsha[:8], message)
        return commit

    def _push(self, branch: str, failure: SyncErrorReason, set_upstream: bool = False) -> None:
        origin = self.mirror.repo.remotes.origin
        logger.info("Pushing %s to %s", branch, self.config.remote_url)
        try:
            infos = origin.push(refspec=f"{branch}:{branch}", set_upstream=set_upstream)
        except GitCommandError as e:
            raise SyncError(failure, f"Push of {branch} failed") from e

        if not infos:
            raise SyncError(failure, f"Push of {branch} returned no result")
        for info in infos:
            if info.flags & PUSH_FAILURE_FLAGS:
                summary = info.summary.strip() if info.summary else "rejected"
                logger.error("Push of %s rejected: %s", branch, summary)
                raise SyncError(failure, f"Push of {branch} rejected: {summary}")
