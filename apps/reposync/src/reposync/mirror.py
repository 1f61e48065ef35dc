"""Local working copy of a remote repository."""

import logging
import shutil
from pathlib import Path

from git import GitCommandError, Repo
from git.exc import InvalidGitRepositoryError, NoSuchPathError
from tenacity import RetryCallState, RetryError, retry, retry_if_exception_type, stop_after_attempt, wait_none

from .config import SyncConfig
from .errors import SyncError, SyncErrorReason
from .models import MirrorHandle

logger = logging.getLogger(__name__)

DEFAULT_CLONE_ATTEMPTS = 3


class RepositoryMirror:
    """
    Owns the clone at ``config.mirror_path``.

    One mirror path must only be driven by one caller at a time; nothing
    here locks.
    """

    def __init__(self, config: SyncConfig, clone_attempts: int = DEFAULT_CLONE_ATTEMPTS):
        self.config = config
        self.clone_attempts = clone_attempts
        self._repo: Repo | None = None

    @property
    def handle(self) -> MirrorHandle:
        return MirrorHandle(local_path=self.config.mirror_path, remote_url=self.config.remote_url)

    @property
    def path(self) -> Path:
        return self.config.mirror_path

    @property
    def repo(self) -> Repo:
        """Opened repository; the mirror must exist."""
        if self._repo is None:
            if not self.path.exists():
                raise RuntimeError(f"Mirror does not exist yet: {self.path}")
            self._repo = Repo(self.path)
        return self._repo

    def ensure_ready(self) -> MirrorHandle:
        """
        Clone the repository or fast-forward the existing mirror, then check
        out the configured branch.

        Returns:
            MirrorHandle of the ready mirror

        Raises:
            SyncError: CLONE_EXHAUSTED, PULL_FAILED or BRANCH_NOT_FOUND
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)

        if not self.path.exists():
            self._clone()
        else:
            self._pull()

        branch = self.config.branch
        if branch and branch != self.current_branch():
            self.checkout(branch)

        logger.info("Mirror ready: %s (branch=%s)", self.path, self.current_branch())
        return self.handle

    def current_branch(self) -> str | None:
        """Name of the checked-out branch, None for a detached HEAD."""
        try:
            return self.repo.active_branch.name
        except TypeError:
            return None

    def checkout(self, branch: str) -> None:
        logger.info("Checking out branch: %s", branch)
        try:
            self.repo.git.checkout(branch)
        except GitCommandError as e:
            raise SyncError(
                SyncErrorReason.BRANCH_NOT_FOUND,
                f"Branch {branch} does not exist in {self.config.remote_url}",
            ) from e

    def create_branch(self, name: str) -> None:
        """
        Create and check out a new branch from HEAD.

        Raises:
            SyncError: BRANCH_CREATE_FAILED if the branch already exists
                locally or on the remote
        """
        if name in [head.name for head in self.repo.heads]:
            raise SyncError(SyncErrorReason.BRANCH_CREATE_FAILED, f"Branch {name} already exists locally")
        try:
            remote_heads = self.repo.git.ls_remote("--heads", "origin", name)
        except GitCommandError as e:
            raise SyncError(
                SyncErrorReason.BRANCH_CREATE_FAILED, f"Unable to query remote branches for {name}"
            ) from e
        if remote_heads.strip():
            raise SyncError(SyncErrorReason.BRANCH_CREATE_FAILED, f"Branch {name} already exists on the remote")

        logger.info("Creating branch: %s", name)
        try:
            self.repo.git.checkout("-b", name)
        except GitCommandError as e:
            raise SyncError(SyncErrorReason.BRANCH_CREATE_FAILED, f"Unable to create branch {name}") from e

    # ============ Internals ============

    def _clone(self) -> None:
        remote_url = self.config.remote_url
        attempts = self.clone_attempts

        def log_failure(retry_state: RetryCallState) -> None:
            logger.error(
                "Failed to clone repository from %s (attempt %d/%d): %s",
                remote_url,
                retry_state.attempt_number,
                attempts,
                retry_state.outcome.exception() if retry_state.outcome else None,
            )

        @retry(
            retry=retry_if_exception_type(Exception),
            stop=stop_after_attempt(attempts),
            wait=wait_none(),
            after=log_failure,
        )
        def do_clone() -> Repo:
            try:
                return Repo.clone_from(self.config.authenticated_remote_url, self.path)
            except Exception:
                # A failed clone may leave a half-written directory behind
                shutil.rmtree(self.path, ignore_errors=True)
                raise

        logger.info("Cloning %s into %s", remote_url, self.path)
        try:
            self._repo = do_clone()
        except RetryError as e:
            raise SyncError(
                SyncErrorReason.CLONE_EXHAUSTED,
                f"Unable to clone repository from {remote_url} after {attempts} attempts",
            ) from e.last_attempt.exception()
        logger.info("Successfully cloned repository from %s", remote_url)

    def _pull(self) -> None:
        logger.info("Pulling latest changes into %s", self.path)
        try:
            repo = self.repo
            if "origin" in [remote.name for remote in repo.remotes]:
                repo.remotes.origin.set_url(self.config.authenticated_remote_url)
            repo.git.pull("--ff-only")
        except (GitCommandError, InvalidGitRepositoryError, NoSuchPathError) as e:
            self._repo = None
            raise SyncError(
                SyncErrorReason.PULL_FAILED, f"Unable to update mirror at {self.path}"
            ) from e
