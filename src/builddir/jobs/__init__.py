"""Job definition models and loader exports."""

from .loader import JobDefinitionLoadError, load_job_definition
from .models import EndpointDefinition, JobDefinition

__all__ = [
    "EndpointDefinition",
    "JobDefinition",
    "JobDefinitionLoadError",
    "load_job_definition",
]
