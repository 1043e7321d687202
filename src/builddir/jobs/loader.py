"""Job definition loading utilities."""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import JobDefinition


class JobDefinitionLoadError(RuntimeError):
    """Raised when a job definition file cannot be read or validated."""


def load_job_definition(path: Path) -> JobDefinition:
    """Load and validate a single YAML job definition."""

    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise JobDefinitionLoadError(f"Cannot read job definition {path}: {exc}") from exc

    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise JobDefinitionLoadError(f"Failed to parse YAML in {path}: {exc}") from exc

    if document is None:
        raise JobDefinitionLoadError(f"Job definition {path} is empty")

    try:
        return JobDefinition.model_validate(document)
    except ValidationError as exc:
        raise JobDefinitionLoadError(f"Job definition validation error in {path}: {exc}") from exc


__all__ = ["JobDefinitionLoadError", "load_job_definition"]
