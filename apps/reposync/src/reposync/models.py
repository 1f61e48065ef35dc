"""Repository sync data models."""

import uuid
from pathlib import Path, PurePosixPath

from pydantic import BaseModel, ConfigDict, Field, field_validator

SOURCE_TAG = "github"

# Fixed namespace so identifiers stay stable across processes
KNOWLEDGE_NAMESPACE = uuid.UUID("5c1c7e2a-8a57-4f55-9d0e-3b2f6f1e4a10")


def knowledge_id(owner: str, repo: str, relative_path: str) -> str:
    """Deterministic knowledge identifier for a repository file."""
    return str(uuid.uuid5(KNOWLEDGE_NAMESPACE, f"github-{owner}-{repo}-{relative_path}"))


class MirrorHandle(BaseModel):
    """Location of a local mirror and the remote it tracks."""

    model_config = ConfigDict(frozen=True)

    local_path: Path
    remote_url: str


class FileRecord(BaseModel):
    """A scanned file with its content fingerprint."""

    model_config = ConfigDict(frozen=True)

    relative_path: str  # POSIX style, relative to the mirror root
    fingerprint: str  # SHA-256 hex digest of the raw bytes
    source_tag: str = SOURCE_TAG
    content: bytes = Field(repr=False)


class FileEdit(BaseModel):
    """Full replacement content for one repository path."""

    path: str
    content: str

    @field_validator("path")
    @classmethod
    def _relative_inside_repo(cls, value: str) -> str:
        normalized = value.replace("\\", "/").strip()
        posix = PurePosixPath(normalized)
        if not posix.parts or posix.is_absolute():
            raise ValueError(f"edit path must be relative: {value!r}")
        if ".." in posix.parts:
            raise ValueError(f"edit path escapes the repository: {value!r}")
        if posix.parts[0] == ".git":
            raise ValueError(f"edit path points into .git: {value!r}")
        return posix.as_posix()


class CommitSpec(BaseModel):
    """A set of edits committed directly to the checked-out branch."""

    message: str = Field(min_length=1)
    edits: list[FileEdit] = Field(min_length=1)
    description: str | None = None


class PullRequestSpec(BaseModel):
    """A set of edits proposed on a new branch."""

    title: str = Field(min_length=1)
    branch: str = Field(min_length=1)
    edits: list[FileEdit] = Field(min_length=1)
    description: str | None = None
    base_branch: str | None = None


class CommitResult(BaseModel):
    """Outcome of a pushed commit."""

    commit_sha: str
    branch: str
    paths: list[str]


class PullRequestResult(BaseModel):
    """Outcome of an opened pull request."""

    number: int
    url: str
    html_url: str
    head: str
    base: str
    commit_sha: str


class KnowledgeMetadata(BaseModel):
    """Where a knowledge record came from."""

    path: str
    repo: str
    owner: str


class KnowledgeRecord(BaseModel):
    """Document stored in the knowledge sink."""

    id: str
    content: str
    fingerprint: str
    source_tag: str = SOURCE_TAG
    metadata: KnowledgeMetadata


class SyncReport(BaseModel):
    """Counters of one ingestion pass."""

    scanned: int = 0
    upserted: int = 0
    skipped: int = 0
    failed: list[str] = Field(default_factory=list)
    upserted_ids: list[str] = Field(default_factory=list)
