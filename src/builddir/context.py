"""Job execution context and repository endpoint."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Mapping


COLLECTION_ID_VARIABLE = "system.collectionId"
DEFINITION_ID_VARIABLE = "system.definitionId"
DEFINITION_NAME_VARIABLE = "system.definitionName"
BUILD_CLEAN_VARIABLE = "build.clean"
AGENT_CLEAN_VARIABLE = "agent.clean.buildDirectory"

_debug_logger = logging.getLogger("builddir.job")


@dataclass(slots=True)
class Endpoint:
    """Repository endpoint the job checks sources out from."""

    name: str
    url: str = ""
    data: dict[str, str] = field(default_factory=dict)

    def get_data(self, key: str) -> str | None:
        return self.data.get(key)


@dataclass(slots=True)
class JobContext:
    """Variables, cancellation signal and debug sink for one job run."""

    variables: dict[str, str] = field(default_factory=dict)
    cancellation: threading.Event = field(default_factory=threading.Event)
    debug_sink: logging.Logger = field(default=_debug_logger)

    def get_variable(self, name: str) -> str | None:
        """Look up a job variable; names are case-insensitive."""

        if name in self.variables:
            return self.variables[name]
        lowered = name.lower()
        for key, value in self.variables.items():
            if key.lower() == lowered:
                return value
        return None

    def _require(self, name: str) -> str:
        value = self.get_variable(name)
        if value is None or not str(value).strip():
            raise ValueError(f"Job variable '{name}' is required")
        return str(value).strip()

    @property
    def collection_id(self) -> str:
        return self._require(COLLECTION_ID_VARIABLE)

    @property
    def definition_id(self) -> str:
        return self._require(DEFINITION_ID_VARIABLE)

    @property
    def definition_name(self) -> str | None:
        return self.get_variable(DEFINITION_NAME_VARIABLE)

    @property
    def cancelled(self) -> bool:
        return self.cancellation.is_set()

    def cancel(self) -> None:
        self.cancellation.set()

    def debug(self, message: str, **extra: Any) -> None:
        self.debug_sink.debug(message, extra=extra or None)


def variables_from_mapping(values: Mapping[str, Any] | None) -> dict[str, str]:
    """Normalize arbitrary YAML/JSON scalars into string job variables."""

    normalized: dict[str, str] = {}
    for key, value in (values or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            normalized[str(key)] = "true" if value else "false"
        else:
            normalized[str(key)] = str(value)
    return normalized


__all__ = [
    "AGENT_CLEAN_VARIABLE",
    "BUILD_CLEAN_VARIABLE",
    "COLLECTION_ID_VARIABLE",
    "DEFINITION_ID_VARIABLE",
    "DEFINITION_NAME_VARIABLE",
    "Endpoint",
    "JobContext",
    "variables_from_mapping",
]
