from __future__ import annotations

import pytest

from builddir.clean import (
    CleanOption,
    RepositoryCleanOption,
    parse_clean_option,
    parse_repository_clean_option,
    resolve_clean_option,
)
from builddir.context import Endpoint, JobContext


def make_job(**variables: str) -> JobContext:
    base = {"system.collectionId": "collection", "system.definitionId": "1"}
    base.update(variables)
    return JobContext(variables=base)


def test_explicit_variable_overrides_endpoint() -> None:
    job = make_job(**{"build.clean": "All"})
    endpoint = Endpoint(name="repo", data={"clean": "true", "cleanOptions": "SourceAndOutput"})

    assert resolve_clean_option(job, endpoint) is CleanOption.ALL


def test_agent_variable_is_used_when_build_clean_is_unset() -> None:
    job = make_job(**{"agent.clean.buildDirectory": "source"})

    assert resolve_clean_option(job, Endpoint(name="repo")) is CleanOption.SOURCE


def test_variable_names_are_case_insensitive() -> None:
    job = make_job(**{"BUILD.CLEAN": "binary"})

    assert resolve_clean_option(job, Endpoint(name="repo")) is CleanOption.BINARY


def test_malformed_variable_falls_through_to_endpoint() -> None:
    job = make_job(**{"build.clean": "everything"})
    endpoint = Endpoint(name="repo", data={"clean": "True", "cleanOptions": "All"})

    assert resolve_clean_option(job, endpoint) is CleanOption.ALL


@pytest.mark.parametrize(
    ("clean_options", "expected"),
    [
        ("All", CleanOption.ALL),
        ("SourceAndOutput", CleanOption.BINARY),
        ("2", CleanOption.ALL),
        ("1", CleanOption.BINARY),
        ("Source", CleanOption.NONE),
        ("garbage", CleanOption.NONE),
    ],
)
def test_endpoint_clean_options(clean_options: str, expected: CleanOption) -> None:
    endpoint = Endpoint(name="repo", data={"clean": "true", "cleanOptions": clean_options})

    assert resolve_clean_option(make_job(), endpoint) is expected


def test_endpoint_clean_disabled_yields_none() -> None:
    endpoint = Endpoint(name="repo", data={"clean": "false", "cleanOptions": "All"})

    assert resolve_clean_option(make_job(), endpoint) is CleanOption.NONE


def test_missing_endpoint_metadata_yields_none() -> None:
    assert resolve_clean_option(make_job(), Endpoint(name="repo")) is CleanOption.NONE


def test_parsers_reject_unknown_values() -> None:
    assert parse_clean_option(None) is None
    assert parse_clean_option("nope") is None
    assert parse_clean_option(" all ") is CleanOption.ALL
    assert parse_repository_clean_option("sourceandoutput") is RepositoryCleanOption.SOURCE_AND_OUTPUT
    assert parse_repository_clean_option("7") is None
    assert parse_repository_clean_option("") is None
