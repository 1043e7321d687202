"""Tracking records and their stores."""

from .chroma import ChromaTrackingStore, ChromaUnavailableError
from .models import (
    GarbageCollectionMarker,
    LegacyTrackingRecord,
    TrackingRecord,
    parse_record,
    serialize_record,
)
from .store import FileTrackingStore, TrackingStore

__all__ = [
    "ChromaTrackingStore",
    "ChromaUnavailableError",
    "FileTrackingStore",
    "GarbageCollectionMarker",
    "LegacyTrackingRecord",
    "TrackingRecord",
    "TrackingStore",
    "parse_record",
    "serialize_record",
]
