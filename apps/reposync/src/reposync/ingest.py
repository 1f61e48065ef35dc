"""Scan-and-upsert pipeline from a mirror into a knowledge sink."""

import logging
from pathlib import Path

from .config import SyncConfig
from .detector import ChangeDetector
from .errors import SyncError
from .mirror import RepositoryMirror
from .models import FileRecord, KnowledgeMetadata, KnowledgeRecord, SyncReport, knowledge_id
from .sink import KnowledgeSink

logger = logging.getLogger(__name__)


class KnowledgeIngestor:
    """Publishes new or changed files of a mirror into a knowledge sink."""

    def __init__(
        self,
        config: SyncConfig,
        sink: KnowledgeSink,
        detector: ChangeDetector | None = None,
    ):
        self.config = config
        self.sink = sink
        self.detector = detector or ChangeDetector()

    def ingest(self, mirror_path: Path | str) -> SyncReport:
        """
        Scan the mirror under the configured path and upsert changed files.

        A file is upserted when the sink has no record for its identifier or
        the stored fingerprint differs; unchanged files are skipped, so a
        second pass over an unchanged tree upserts nothing.

        Args:
            mirror_path: Root of the local mirror

        Returns:
            SyncReport with scan/upsert/skip counts and unreadable paths
        """
        report = SyncReport()
        errors: list[SyncError] = []
        for record in self.detector.scan(mirror_path, self.config.path, errors):
            report.scanned += 1
            record_id = knowledge_id(self.config.owner, self.config.repo, record.relative_path)

            existing = self.sink.get_by_id(record_id)
            if existing is not None and existing.fingerprint == record.fingerprint:
                report.skipped += 1
                continue

            logger.info("Processing knowledge for %s (%s)", record.relative_path, record_id)
            self.sink.upsert(self._to_knowledge(record_id, record))
            report.upserted += 1
            report.upserted_ids.append(record_id)

        report.failed = [error.path for error in errors if error.path]
        logger.info(
            "Ingestion done: scanned=%d, upserted=%d, skipped=%d, failed=%d",
            report.scanned, report.upserted, report.skipped, len(report.failed),
        )
        return report

    def _to_knowledge(self, record_id: str, record: FileRecord) -> KnowledgeRecord:
        return KnowledgeRecord(
            id=record_id,
            content=record.content.decode("utf-8", errors="replace"),
            fingerprint=record.fingerprint,
            source_tag=record.source_tag,
            metadata=KnowledgeMetadata(
                path=record.relative_path,
                repo=self.config.repo,
                owner=self.config.owner,
            ),
        )


class RepositorySync:
    """Makes the mirror ready, then ingests it."""

    def __init__(
        self,
        config: SyncConfig,
        sink: KnowledgeSink,
        mirror: RepositoryMirror | None = None,
        detector: ChangeDetector | None = None,
    ):
        self.config = config
        self.mirror = mirror or RepositoryMirror(config)
        self.ingestor = KnowledgeIngestor(config, sink, detector)

    def run(self) -> SyncReport:
        """
        One sync cycle.

        Raises:
            SyncError: when the mirror cannot be cloned, pulled or checked out;
                nothing is upserted in that case
        """
        logger.info("Starting sync of %s/%s", self.config.owner, self.config.repo)
        handle = self.mirror.ensure_ready()
        return self.ingestor.ingest(handle.local_path)
