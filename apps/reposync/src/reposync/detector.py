"""Content fingerprinting of the mirrored tree."""

import hashlib
import logging
from pathlib import Path
from typing import Iterator

from .errors import SyncError, SyncErrorReason
from .models import FileRecord

logger = logging.getLogger(__name__)


def fingerprint(data: bytes) -> str:
    """SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


class ChangeDetector:
    """Walks a mirror and fingerprints every file under a path filter."""

    def __init__(self) -> None:
        # Errors of the most recently started scan
        self.errors: list[SyncError] = []

    def scan(
        self,
        mirror_path: Path | str,
        path_filter: str = "",
        errors: list[SyncError] | None = None,
    ) -> Iterator[FileRecord]:
        """
        Lazily fingerprint every regular file under ``mirror_path/path_filter``.

        Hidden entries below the scan root (including ``.git``) are skipped,
        and so are symlinks: a link could point anywhere on the host.
        Unreadable files are logged, collected and skipped; the scan goes on.

        Args:
            mirror_path: Root of the local mirror
            path_filter: Sub-directory (or single file) to scan, empty for the root
            errors: List that collects this scan's read failures. A new list
                is used when omitted; ``self.errors`` points at the list of
                the latest scan either way.

        Yields:
            FileRecord per readable file, in path order

        Raises:
            ValueError: if the filter points outside the mirror
        """
        root = Path(mirror_path).resolve()
        start = (root / path_filter).resolve() if path_filter else root
        if start != root and root not in start.parents:
            raise ValueError(f"Path filter escapes the mirror: {path_filter}")

        if errors is None:
            errors = []
        self.errors = errors
        if not start.exists():
            logger.warning("Scan path does not exist: %s", start)
            return

        logger.info("Scanning %s", start)
        candidates = [start] if start.is_file() else sorted(start.rglob("*"))
        count = 0
        failed = 0
        for file_path in candidates:
            if any(part.startswith(".") for part in file_path.relative_to(start).parts):
                continue
            if file_path.is_symlink():
                logger.warning("Skipping symlink: %s", file_path.relative_to(root).as_posix())
                continue
            if not file_path.is_file():
                continue
            if root not in file_path.resolve().parents:
                # reached through a symlinked directory
                logger.warning("Skipping file outside the mirror: %s", file_path)
                continue

            relative_path = file_path.relative_to(root).as_posix()
            try:
                data = file_path.read_bytes()
            except OSError as e:
                logger.error("Failed to read %s: %s", relative_path, e)
                error = SyncError(SyncErrorReason.FILE_READ_FAILED, str(e), path=relative_path)
                error.__cause__ = e
                errors.append(error)
                failed += 1
                continue

            count += 1
            yield FileRecord(relative_path=relative_path, fingerprint=fingerprint(data), content=data)

        logger.info("Scanned %d files under %s (%d unreadable)", count, start, failed)
