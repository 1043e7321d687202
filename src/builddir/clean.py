"""Build directory clean policy resolution."""

from __future__ import annotations

import enum
import logging

from .context import AGENT_CLEAN_VARIABLE, BUILD_CLEAN_VARIABLE, Endpoint, JobContext

logger = logging.getLogger(__name__)

ENDPOINT_CLEAN_KEY = "clean"
ENDPOINT_CLEAN_OPTIONS_KEY = "cleanOptions"

_TRUE_VALUES = {"true", "1", "$true"}


class CleanOption(enum.Enum):
    """Which subtrees are wiped before a build directory is reused."""

    NONE = "None"
    SOURCE = "Source"
    BINARY = "Binary"
    ALL = "All"


class RepositoryCleanOption(enum.Enum):
    """Clean options selectable on the repository endpoint."""

    SOURCE = 0
    SOURCE_AND_OUTPUT = 1
    ALL = 2


_REPOSITORY_NAMES = {
    "source": RepositoryCleanOption.SOURCE,
    "sourceandoutput": RepositoryCleanOption.SOURCE_AND_OUTPUT,
    "all": RepositoryCleanOption.ALL,
}


def parse_clean_option(value: str | None) -> CleanOption | None:
    """Parse a clean option by name, case-insensitively. Unknown values yield None."""

    if value is None:
        return None
    needle = value.strip().lower()
    for option in CleanOption:
        if option.value.lower() == needle:
            return option
    return None


def parse_repository_clean_option(value: str | None) -> RepositoryCleanOption | None:
    """Parse an endpoint clean option by name or numeric value."""

    if value is None:
        return None
    text = value.strip()
    option = _REPOSITORY_NAMES.get(text.lower())
    if option is not None:
        return option
    try:
        return RepositoryCleanOption(int(text))
    except ValueError:
        return None


def convert_to_boolean(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in _TRUE_VALUES


def resolve_clean_option(job: JobContext, endpoint: Endpoint) -> CleanOption:
    """Resolve the clean scope for this job.

    An explicit job variable wins. Otherwise the endpoint's ``cleanOptions`` is
    consulted, but only when the endpoint has ``clean`` enabled.
    """

    for variable in (BUILD_CLEAN_VARIABLE, AGENT_CLEAN_VARIABLE):
        raw = job.get_variable(variable)
        option = parse_clean_option(raw)
        if option is not None:
            return option
        if raw is not None:
            logger.warning(
                "Ignoring unrecognized clean option",
                extra={"variable": variable, "value": raw},
            )

    if convert_to_boolean(endpoint.get_data(ENDPOINT_CLEAN_KEY)):
        repository_option = parse_repository_clean_option(
            endpoint.get_data(ENDPOINT_CLEAN_OPTIONS_KEY)
        )
        if repository_option is RepositoryCleanOption.ALL:
            return CleanOption.ALL
        if repository_option is RepositoryCleanOption.SOURCE_AND_OUTPUT:
            return CleanOption.BINARY

    return CleanOption.NONE


__all__ = [
    "CleanOption",
    "RepositoryCleanOption",
    "convert_to_boolean",
    "parse_clean_option",
    "parse_repository_clean_option",
    "resolve_clean_option",
]
