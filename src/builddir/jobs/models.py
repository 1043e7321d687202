"""Job definition models loaded from YAML."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

from ..context import (
    COLLECTION_ID_VARIABLE,
    DEFINITION_ID_VARIABLE,
    Endpoint,
    JobContext,
    variables_from_mapping,
)


class EndpointDefinition(BaseModel):
    """Repository endpoint as written in a job definition file."""

    name: str = Field(..., description="Endpoint name, used for legacy sources directory names.")
    url: str = Field(default="", description="Repository URL the sources come from.")
    data: dict[str, str] = Field(
        default_factory=dict,
        description="Endpoint metadata such as 'clean' and 'cleanOptions'.",
    )

    @field_validator("name")
    @classmethod
    def _normalize_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("Endpoint name must not be empty")
        return normalized

    @field_validator("data", mode="before")
    @classmethod
    def _stringify_data(cls, value: Any):
        if value is None:
            return {}
        if isinstance(value, dict):
            return variables_from_mapping(value)
        raise TypeError("Endpoint data must be a mapping")


class JobDefinition(BaseModel):
    """Variables and endpoint for one job run."""

    variables: dict[str, str] = Field(
        default_factory=dict,
        validate_default=True,
        description="Job variables; must include system.collectionId and system.definitionId.",
    )
    endpoint: EndpointDefinition

    @field_validator("variables", mode="before")
    @classmethod
    def _stringify_variables(cls, value: Any):
        if value is None:
            return {}
        if isinstance(value, dict):
            return variables_from_mapping(value)
        raise TypeError("Job variables must be a mapping")

    @field_validator("variables")
    @classmethod
    def _require_identity(cls, value: dict[str, str]) -> dict[str, str]:
        lowered = {key.lower(): item for key, item in value.items()}
        for required in (COLLECTION_ID_VARIABLE, DEFINITION_ID_VARIABLE):
            if not lowered.get(required.lower(), "").strip():
                raise ValueError(f"Job variable '{required}' is required")
        return value

    def to_context(self) -> tuple[JobContext, Endpoint]:
        job = JobContext(variables=dict(self.variables))
        endpoint = Endpoint(name=self.endpoint.name, url=self.endpoint.url, data=dict(self.endpoint.data))
        return job, endpoint


__all__ = ["EndpointDefinition", "JobDefinition"]
