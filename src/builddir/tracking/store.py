"""Tracking store protocol and the JSON file-backed implementation."""

from __future__ import annotations

import json
import logging
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, Protocol

from pydantic import ValidationError

from ..context import Endpoint, JobContext
from .models import (
    GC_DIRECTORY,
    TOP_LEVEL_TRACKING_FILE,
    TRACKING_FILE,
    TRACKING_ROOT,
    GarbageCollectionMarker,
    LegacyTrackingRecord,
    TopLevelTrackingConfig,
    TrackingRecord,
    parse_record,
    serialize_record,
)

logger = logging.getLogger(__name__)

AnyRecord = TrackingRecord | LegacyTrackingRecord


class TrackingStore(Protocol):
    """Persistence for tracking records, isolated per (collection, definition)."""

    def load_if_exists(self, collection_id: str, definition_id: str) -> AnyRecord | None:
        ...

    def create_new(self, job: JobContext, endpoint: Endpoint, hash_key: str) -> TrackingRecord:
        ...

    def refresh_job_run_metadata(self, job: JobContext, record: TrackingRecord) -> TrackingRecord:
        ...

    def mark_for_garbage_collection(self, record: AnyRecord) -> AnyRecord:
        ...


def allocate_build_directory(
    work_directory: Path,
    last_number: int,
    used: Iterable[str],
) -> int:
    """Return the next build directory number not used by a record or on disk."""

    taken = {str(name) for name in used}
    candidate = last_number + 1
    while str(candidate) in taken or (Path(work_directory) / str(candidate)).exists():
        candidate += 1
    return candidate


def _write_atomic(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
    temp_path.write_text(text, encoding="utf-8")
    os.replace(temp_path, path)


class FileTrackingStore:
    """Store tracking records as JSON files beneath ``<work>/SourceRootMapping``."""

    def __init__(
        self,
        work_directory: Path,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._work_directory = Path(work_directory)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def work_directory(self) -> Path:
        return self._work_directory

    @property
    def root(self) -> Path:
        return self._work_directory / TRACKING_ROOT

    def tracking_file(self, collection_id: str, definition_id: str) -> Path:
        return self.root / collection_id / definition_id / TRACKING_FILE

    def _read_record(self, path: Path) -> AnyRecord | None:
        try:
            document = json.loads(path.read_text(encoding="utf-8"))
            return parse_record(document)
        except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as exc:
            logger.warning(
                "Ignoring unreadable tracking file",
                extra={"path": str(path), "error": str(exc)},
            )
            return None

    def load_if_exists(self, collection_id: str, definition_id: str) -> AnyRecord | None:
        path = self.tracking_file(collection_id, definition_id)
        logger.debug("Loading tracking file if exists", extra={"path": str(path)})
        if not path.is_file():
            return None

        record = self._read_record(path)
        if record is None:
            return None
        if (record.collection_id, record.definition_id) != (collection_id, definition_id):
            logger.warning(
                "Tracking file identity does not match its location",
                extra={
                    "path": str(path),
                    "collection_id": record.collection_id,
                    "definition_id": record.definition_id,
                },
            )
            return None
        return record

    def _load_top_level(self) -> TopLevelTrackingConfig:
        path = self.root / TOP_LEVEL_TRACKING_FILE
        if not path.is_file():
            return TopLevelTrackingConfig()
        try:
            return TopLevelTrackingConfig.model_validate_json(path.read_text(encoding="utf-8"))
        except (ValidationError, UnicodeDecodeError) as exc:
            logger.warning(
                "Resetting unreadable top-level tracking file",
                extra={"path": str(path), "error": str(exc)},
            )
            return TopLevelTrackingConfig()

    def create_new(self, job: JobContext, endpoint: Endpoint, hash_key: str) -> TrackingRecord:
        top_level = self._load_top_level()
        used = [record.build_directory for record in self.list_records()]
        number = allocate_build_directory(
            self._work_directory, top_level.last_build_directory_number, used
        )

        record = TrackingRecord.for_build_directory(
            collection_id=job.collection_id,
            definition_id=job.definition_id,
            hash_key=hash_key,
            build_directory=str(number),
            definition_name=job.definition_name,
            repository_url=endpoint.url or None,
            system="build",
            last_run_on=self._clock(),
        )

        _write_atomic(
            self.root / TOP_LEVEL_TRACKING_FILE,
            TopLevelTrackingConfig(last_build_directory_number=number).model_dump_json(indent=2),
        )
        _write_atomic(self.tracking_file(record.collection_id, record.definition_id), serialize_record(record))
        logger.info(
            "Created tracking record",
            extra={
                "collection_id": record.collection_id,
                "definition_id": record.definition_id,
                "build_directory": record.build_directory,
            },
        )
        return record

    def refresh_job_run_metadata(self, job: JobContext, record: TrackingRecord) -> TrackingRecord:
        updated = record.model_copy(
            update={
                "last_run_on": self._clock(),
                "definition_name": job.definition_name or record.definition_name,
            }
        )
        _write_atomic(
            self.tracking_file(updated.collection_id, updated.definition_id),
            serialize_record(updated),
        )
        return updated

    def mark_for_garbage_collection(self, record: AnyRecord) -> AnyRecord:
        marked = record.model_copy(
            update={"garbage_collection": GarbageCollectionMarker(marked_on=self._clock())}
        )
        path = self.root / GC_DIRECTORY / f"{uuid.uuid4().hex}.json"
        _write_atomic(path, serialize_record(marked))
        logger.info(
            "Marked tracking record for garbage collection",
            extra={"path": str(path), "build_directory": record.build_directory},
        )
        return marked

    def list_records(self, *, include_garbage: bool = True) -> list[AnyRecord]:
        """Return live records followed by GC-marked ones, skipping unreadable files."""

        records: list[AnyRecord] = []
        if not self.root.is_dir():
            return records

        for path in sorted(self.root.glob(f"*/*/{TRACKING_FILE}")):
            record = self._read_record(path)
            if record is not None:
                records.append(record)

        if include_garbage:
            for path in sorted((self.root / GC_DIRECTORY).glob("*.json")):
                record = self._read_record(path)
                if record is not None:
                    records.append(record)
        return records


__all__ = [
    "AnyRecord",
    "FileTrackingStore",
    "TrackingStore",
    "allocate_build_directory",
]
