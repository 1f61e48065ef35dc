"""Errors raised by the synchronization engine."""

from enum import Enum


class SyncErrorReason(str, Enum):
    """Why a sync or write-back step failed."""

    CLONE_EXHAUSTED = "clone_exhausted"
    PULL_FAILED = "pull_failed"
    BRANCH_NOT_FOUND = "branch_not_found"
    FILE_READ_FAILED = "file_read_failed"
    PUSH_REJECTED = "push_rejected"
    BRANCH_CREATE_FAILED = "branch_create_failed"
    PULL_REQUEST_REJECTED = "pull_request_rejected"


class SyncError(Exception):
    """A failed repository operation, tagged with its reason."""

    def __init__(self, reason: SyncErrorReason, message: str, path: str | None = None):
        super().__init__(message)
        self.reason = reason
        self.message = message
        self.path = path

    def __str__(self) -> str:
        if self.path:
            return f"[{self.reason.value}] {self.message} ({self.path})"
        return f"[{self.reason.value}] {self.message}"


class ConfigError(ValueError):
    """Configuration is missing or invalid."""
