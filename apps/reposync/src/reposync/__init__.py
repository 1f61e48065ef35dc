"""Repository mirroring, change detection and write-back."""

from .config import SyncConfig
from .detector import ChangeDetector, fingerprint
from .errors import ConfigError, SyncError, SyncErrorReason
from .ingest import KnowledgeIngestor, RepositorySync
from .mirror import RepositoryMirror
from .models import (
    CommitResult,
    CommitSpec,
    FileEdit,
    FileRecord,
    KnowledgeMetadata,
    KnowledgeRecord,
    MirrorHandle,
    PullRequestResult,
    PullRequestSpec,
    SyncReport,
    knowledge_id,
)
from .sink import InMemoryKnowledgeSink, JsonKnowledgeSink, KnowledgeSink
from .writeback import WriteBackCoordinator

__all__ = [
    "SyncConfig",
    "ChangeDetector",
    "fingerprint",
    "ConfigError",
    "SyncError",
    "SyncErrorReason",
    "KnowledgeIngestor",
    "RepositorySync",
    "RepositoryMirror",
    "CommitResult",
    "CommitSpec",
    "FileEdit",
    "FileRecord",
    "KnowledgeMetadata",
    "KnowledgeRecord",
    "MirrorHandle",
    "PullRequestResult",
    "PullRequestSpec",
    "SyncReport",
    "knowledge_id",
    "InMemoryKnowledgeSink",
    "JsonKnowledgeSink",
    "KnowledgeSink",
    "WriteBackCoordinator",
]
