"""Knowledge sink contract and bundled implementations."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, Field

from .models import KnowledgeRecord

logger = logging.getLogger(__name__)


@runtime_checkable
class KnowledgeSink(Protocol):
    """Key/value store of knowledge records keyed by a stable identifier."""

    def get_by_id(self, record_id: str) -> KnowledgeRecord | None: ...

    def upsert(self, record: KnowledgeRecord) -> None: ...


class InMemoryKnowledgeSink:
    """Dict-backed sink that remembers every upsert."""

    def __init__(self) -> None:
        self.records: dict[str, KnowledgeRecord] = {}
        self.upserts: list[str] = []

    def get_by_id(self, record_id: str) -> KnowledgeRecord | None:
        return self.records.get(record_id)

    def upsert(self, record: KnowledgeRecord) -> None:
        self.records[record.id] = record
        self.upserts.append(record.id)


class KnowledgeStore(BaseModel):
    """On-disk layout of JsonKnowledgeSink."""

    version: int = 1
    updated_at: datetime = Field(default_factory=datetime.now)
    records: dict[str, KnowledgeRecord] = Field(default_factory=dict)  # id -> record


class JsonKnowledgeSink:
    """Sink persisted to a JSON file, rewritten after every upsert."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self.store = self._load()

    def get_by_id(self, record_id: str) -> KnowledgeRecord | None:
        return self.store.records.get(record_id)

    def upsert(self, record: KnowledgeRecord) -> None:
        self.store.records[record.id] = record
        self.store.updated_at = datetime.now()
        self._save()

    def __len__(self) -> int:
        return len(self.store.records)

    def _load(self) -> KnowledgeStore:
        if self.path.exists():
            logger.debug("Loading knowledge store: %s", self.path)
            with self.path.open("r", encoding="utf-8") as f:
                return KnowledgeStore(**json.load(f))
        return KnowledgeStore()

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(self.store.model_dump(mode="json"), f, ensure_ascii=False, indent=2)
        tmp_path.replace(self.path)
