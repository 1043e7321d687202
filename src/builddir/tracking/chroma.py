"""Chroma-based tracking store."""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Protocol

from pydantic import ValidationError

from ..context import Endpoint, JobContext
from .models import GarbageCollectionMarker, TrackingRecord, parse_record
from .store import AnyRecord, allocate_build_directory

logger = logging.getLogger(__name__)

SAVED_EVENT = "tracking_saved"
GC_EVENT = "tracking_gc_marked"


class ChromaUnavailableError(RuntimeError):
    """Raised when the Chroma client cannot be constructed."""


class CollectionProtocol(Protocol):
    """Protocol for the minimal Chroma collection API used by the tracking store."""

    def add(
        self,
        *,
        documents: Iterable[str],
        metadatas: Iterable[dict[str, Any]],
        ids: Iterable[str],
    ) -> None:
        ...

    def get(
        self,
        *,
        ids: Iterable[str] | None = None,
        where: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> dict[str, list[Any]]:
        ...


class ClientProtocol(Protocol):
    """Protocol for the minimal Chroma client API used by the tracking store."""

    def get_or_create_collection(self, name: str) -> CollectionProtocol:
        ...


@dataclass(slots=True)
class TrackingEvent:
    """A stored tracking event."""

    id: str
    identity: str
    event_type: str
    document: str
    metadata: dict[str, Any]
    timestamp: datetime


def identity_key(collection_id: str, definition_id: str) -> str:
    return f"{collection_id}/{definition_id}"


class ChromaTrackingStore:
    """Event-sourced tracking records persisted in a Chroma collection.

    Every save appends a ``tracking_saved`` event; garbage collection appends a
    ``tracking_gc_marked`` event for the superseded build directory. The live
    record for an identity is the latest saved record not marked for GC.
    """

    def __init__(
        self,
        path: Path,
        *,
        work_directory: Path,
        collection_name: str = "builddir_tracking",
        client_factory: Callable[[], ClientProtocol] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._path = Path(path)
        self._work_directory = Path(work_directory)
        self._collection_name = collection_name
        self._client_factory = client_factory or self._default_client_factory
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._client: ClientProtocol | None = None
        self._collection: CollectionProtocol | None = None

    def _default_client_factory(self) -> ClientProtocol:
        try:
            import chromadb
        except ImportError as exc:  # pragma: no cover - depends on environment
            raise ChromaUnavailableError(
                "chromadb package is not installed; install builddir with the chroma extra"
            ) from exc

        return chromadb.PersistentClient(path=str(self._path))

    def _ensure_collection(self) -> CollectionProtocol:
        if self._collection is None:
            client = self._client or self._client_factory()
            self._client = client
            self._collection = client.get_or_create_collection(self._collection_name)
        return self._collection

    def ping(self) -> bool:
        """Verify that the underlying collection can be obtained."""

        self._ensure_collection()
        return True

    def _convert_result(self, result: dict[str, list[Any]]) -> list[TrackingEvent]:
        events: list[TrackingEvent] = []
        ids = result.get("ids", [])
        documents = result.get("documents", [])
        metadatas = result.get("metadatas", [])
        for event_id, document, metadata in zip(ids, documents, metadatas):
            timestamp_raw = metadata.get("timestamp")
            timestamp = (
                datetime.fromisoformat(timestamp_raw)
                if isinstance(timestamp_raw, str)
                else self._clock()
            )
            events.append(
                TrackingEvent(
                    id=event_id,
                    identity=metadata.get("identity", ""),
                    event_type=metadata.get("event_type", ""),
                    document=document,
                    metadata=metadata,
                    timestamp=timestamp,
                )
            )
        events.sort(key=lambda event: (event.metadata.get("sequence", 0), event.timestamp))
        return events

    def _events(self, where: dict[str, Any] | None = None) -> list[TrackingEvent]:
        collection = self._ensure_collection()
        return self._convert_result(collection.get(where=where))

    def _append(self, event_type: str, record: AnyRecord) -> TrackingEvent:
        collection = self._ensure_collection()
        identity = identity_key(record.collection_id, record.definition_id)
        sequence = len(self._events({"identity": identity})) + 1
        timestamp = self._clock()
        event_id = f"{identity}:{uuid.uuid4().hex}"
        document = record.model_dump_json()
        metadata = {
            "identity": identity,
            "event_type": event_type,
            "build_directory": record.build_directory,
            "hash_key": record.hash_key,
            "timestamp": timestamp.isoformat(),
            "sequence": sequence,
        }
        collection.add(documents=[document], metadatas=[metadata], ids=[event_id])
        return TrackingEvent(
            id=event_id,
            identity=identity,
            event_type=event_type,
            document=document,
            metadata=metadata,
            timestamp=timestamp,
        )

    def _parse(self, event: TrackingEvent) -> AnyRecord | None:
        try:
            return parse_record(json.loads(event.document))
        except (json.JSONDecodeError, ValidationError) as exc:
            logger.warning(
                "Ignoring unreadable tracking event",
                extra={"event_id": event.id, "error": str(exc)},
            )
            return None

    def _replay(self, events: list[TrackingEvent]) -> tuple[dict[str, AnyRecord], dict[str, AnyRecord]]:
        """Fold events into (live, garbage) records keyed by build directory."""

        live: dict[str, AnyRecord] = {}
        garbage: dict[str, AnyRecord] = {}
        for event in events:
            record = self._parse(event)
            if record is None:
                continue
            if event.event_type == GC_EVENT:
                live.pop(record.build_directory, None)
                garbage[record.build_directory] = record
            elif event.event_type == SAVED_EVENT and record.build_directory not in garbage:
                live.pop(record.build_directory, None)
                live[record.build_directory] = record
        return live, garbage

    def load_if_exists(self, collection_id: str, definition_id: str) -> AnyRecord | None:
        events = self._events({"identity": identity_key(collection_id, definition_id)})
        live, _ = self._replay(events)
        if not live:
            return None
        return list(live.values())[-1]

    def create_new(self, job: JobContext, endpoint: Endpoint, hash_key: str) -> TrackingRecord:
        used = [record.build_directory for record in self.list_records()]
        numbers = [int(name) for name in used if name.isdigit()]
        number = allocate_build_directory(self._work_directory, max(numbers, default=0), used)

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
        self._append(SAVED_EVENT, record)
        return record

    def refresh_job_run_metadata(self, job: JobContext, record: TrackingRecord) -> TrackingRecord:
        updated = record.model_copy(
            update={
                "last_run_on": self._clock(),
                "definition_name": job.definition_name or record.definition_name,
            }
        )
        self._append(SAVED_EVENT, updated)
        return updated

    def mark_for_garbage_collection(self, record: AnyRecord) -> AnyRecord:
        marked = record.model_copy(
            update={"garbage_collection": GarbageCollectionMarker(marked_on=self._clock())}
        )
        self._append(GC_EVENT, marked)
        return marked

    def list_records(self, *, include_garbage: bool = True) -> list[AnyRecord]:
        live, garbage = self._replay(self._events())
        records = list(live.values())
        if include_garbage:
            records.extend(garbage.values())
        return records


__all__ = [
    "ChromaTrackingStore",
    "ChromaUnavailableError",
    "GC_EVENT",
    "SAVED_EVENT",
    "TrackingEvent",
    "identity_key",
]
