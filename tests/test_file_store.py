from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

import pytest

from builddir.context import Endpoint, JobContext
from builddir.tracking import FileTrackingStore, LegacyTrackingRecord, TrackingRecord, serialize_record

FIXED_TIME = datetime.fromisoformat("2025-01-01T00:00:00+00:00")


def make_job(definition_id: str = "1") -> JobContext:
    return JobContext(
        variables={
            "system.collectionId": "collection",
            "system.definitionId": definition_id,
            "system.definitionName": "CI",
        }
    )


@pytest.fixture()
def store(tmp_path: Path) -> FileTrackingStore:
    return FileTrackingStore(tmp_path, clock=lambda: FIXED_TIME)


ENDPOINT = Endpoint(name="repo", url="https://example.com/repo.git")


def test_load_missing_returns_none(store: FileTrackingStore) -> None:
    assert store.load_if_exists("collection", "1") is None


def test_create_new_persists_record(store: FileTrackingStore) -> None:
    record = store.create_new(make_job(), ENDPOINT, "hash-1")

    loaded = store.load_if_exists("collection", "1")
    assert isinstance(loaded, TrackingRecord)
    assert loaded == record
    assert record.build_directory == "1"
    assert record.definition_name == "CI"
    assert record.repository_url == "https://example.com/repo.git"
    assert record.last_run_on == FIXED_TIME


def test_build_directory_numbers_increment(store: FileTrackingStore) -> None:
    first = store.create_new(make_job("1"), ENDPOINT, "hash-1")
    second = store.create_new(make_job("2"), ENDPOINT, "hash-2")

    assert (first.build_directory, second.build_directory) == ("1", "2")
    mappings = json.loads((store.root / "Mappings.json").read_text(encoding="utf-8"))
    assert mappings["last_build_directory_number"] == 2


def test_allocation_skips_directories_already_on_disk(store: FileTrackingStore, tmp_path: Path) -> None:
    (tmp_path / "1").mkdir()
    (tmp_path / "2").mkdir()

    record = store.create_new(make_job(), ENDPOINT, "hash-1")

    assert record.build_directory == "3"


def test_allocation_skips_directories_of_garbage_records(store: FileTrackingStore) -> None:
    old = store.create_new(make_job(), ENDPOINT, "hash-1")
    store.mark_for_garbage_collection(old)
    (store.root / "Mappings.json").unlink()

    record = store.create_new(make_job(), ENDPOINT, "hash-2")

    assert record.build_directory != old.build_directory


def test_corrupt_tracking_file_is_treated_as_missing(store: FileTrackingStore) -> None:
    path = store.tracking_file("collection", "1")
    path.parent.mkdir(parents=True)
    path.write_text("{not json", encoding="utf-8")

    assert store.load_if_exists("collection", "1") is None


def test_invalid_tracking_document_is_treated_as_missing(store: FileTrackingStore) -> None:
    path = store.tracking_file("collection", "1")
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps({"collection_id": "collection"}), encoding="utf-8")

    assert store.load_if_exists("collection", "1") is None


def test_mismatched_identity_is_treated_as_missing(store: FileTrackingStore) -> None:
    record = store.create_new(make_job("1"), ENDPOINT, "hash-1")
    path = store.tracking_file("collection", "9")
    path.parent.mkdir(parents=True)
    path.write_text(serialize_record(record), encoding="utf-8")

    assert store.load_if_exists("collection", "9") is None


def test_legacy_tracking_file_is_loaded(store: FileTrackingStore) -> None:
    legacy = LegacyTrackingRecord(
        collection_id="collection", definition_id="1", hash_key="hash-1", build_directory="c0ffee"
    )
    path = store.tracking_file("collection", "1")
    path.parent.mkdir(parents=True)
    path.write_text(serialize_record(legacy), encoding="utf-8")

    assert store.load_if_exists("collection", "1") == legacy


def test_refresh_updates_job_run_metadata(tmp_path: Path) -> None:
    times = iter(
        [
            datetime.fromisoformat("2025-01-01T00:00:00+00:00"),
            datetime.fromisoformat("2025-02-01T00:00:00+00:00"),
        ]
    )
    store = FileTrackingStore(tmp_path, clock=lambda: next(times))
    record = store.create_new(make_job(), ENDPOINT, "hash-1")

    refreshed = store.refresh_job_run_metadata(make_job(), record)

    assert refreshed.last_run_on == datetime.fromisoformat("2025-02-01T00:00:00+00:00")
    assert store.load_if_exists("collection", "1") == refreshed


def test_mark_for_garbage_collection_writes_gc_copy(store: FileTrackingStore) -> None:
    record = store.create_new(make_job(), ENDPOINT, "hash-1")

    marked = store.mark_for_garbage_collection(record)

    assert marked.marked_for_garbage_collection
    assert marked.garbage_collection is not None
    assert marked.garbage_collection.marked_on == FIXED_TIME
    gc_files = list((store.root / "GC").glob("*.json"))
    assert len(gc_files) == 1
    assert store.load_if_exists("collection", "1") == record


def test_list_records_includes_garbage(store: FileTrackingStore) -> None:
    old = store.create_new(make_job("1"), ENDPOINT, "hash-1")
    store.create_new(make_job("2"), ENDPOINT, "hash-2")
    store.mark_for_garbage_collection(old)

    everything = store.list_records()
    live = store.list_records(include_garbage=False)

    assert len(everything) == 3
    assert len(live) == 2
    assert sum(record.marked_for_garbage_collection for record in everything) == 1
