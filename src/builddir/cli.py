"""builddir command-line interface."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from .clean import resolve_clean_option
from .config import BuildDirSettings, get_settings
from .fs import OperationCancelledError
from .jobs import JobDefinitionLoadError, load_job_definition
from .preparer import DirectoryPreparer
from .sources import RepositoryHashKeyProvider
from .tracking import ChromaTrackingStore, ChromaUnavailableError, FileTrackingStore


def configure_logging(level: str) -> None:
    """Configure root logging for the CLI."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def load_store(settings: BuildDirSettings) -> FileTrackingStore | ChromaTrackingStore:
    if settings.tracking_backend == "chroma":
        try:
            store = ChromaTrackingStore(
                settings.chroma_persist_path,
                work_directory=settings.work_directory,
            )
            store.ping()
        except ChromaUnavailableError as exc:
            print(f"Chroma unavailable: {exc}")
            raise SystemExit(1)
        return store
    return FileTrackingStore(settings.work_directory)


def _load_job(path: Path):
    try:
        return load_job_definition(path).to_context()
    except JobDefinitionLoadError as exc:
        print(f"Invalid job definition: {exc}")
        raise SystemExit(2)


def cmd_prepare(args: argparse.Namespace) -> None:
    settings = get_settings()
    store = load_store(settings)
    job, endpoint = _load_job(args.job)

    preparer = DirectoryPreparer(store, settings.work_directory, naming_rules=settings.naming_rules())
    try:
        record = preparer.prepare(job, endpoint, RepositoryHashKeyProvider())
    except OperationCancelledError as exc:
        print(f"Cancelled: {exc}")
        raise SystemExit(130)
    except OSError as exc:
        print(f"Failed to prepare build directory: {exc}")
        raise SystemExit(1)

    payload = record.model_dump(mode="json")
    payload["sources_directory"] = record.sources_directory
    payload["binaries_directory"] = record.binaries_directory
    print(json.dumps(payload, indent=2))


def cmd_clean_option(args: argparse.Namespace) -> None:
    job, endpoint = _load_job(args.job)
    print(resolve_clean_option(job, endpoint).value)


def cmd_records(args: argparse.Namespace) -> None:
    settings = get_settings()
    store = load_store(settings)
    records = store.list_records(include_garbage=not args.live_only)
    if args.json:
        print(json.dumps([record.model_dump(mode="json") for record in records], indent=2))
        return
    for record in records:
        flag = " [gc]" if record.marked_for_garbage_collection else ""
        print(
            f"{record.collection_id}/{record.definition_id} -> {record.build_directory} "
            f"({record.format}){flag}"
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Build directory preparation")
    sub = parser.add_subparsers(dest="cmd")

    p_prepare = sub.add_parser("prepare", help="Prepare the build directory for a job")
    p_prepare.add_argument("--job", type=Path, required=True, help="Path to a YAML job definition")
    p_prepare.set_defaults(func=cmd_prepare)

    p_clean = sub.add_parser("clean-option", help="Show the resolved clean option for a job")
    p_clean.add_argument("--job", type=Path, required=True, help="Path to a YAML job definition")
    p_clean.set_defaults(func=cmd_clean_option)

    p_records = sub.add_parser("records", help="List tracking records")
    p_records.add_argument("--json", action="store_true", help="Output JSON")
    p_records.add_argument(
        "--live-only",
        action="store_true",
        help="Hide records marked for garbage collection",
    )
    p_records.set_defaults(func=cmd_records)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    configure_logging(get_settings().log_level)
    args.func(args)


if __name__ == "__main__":
    main()
