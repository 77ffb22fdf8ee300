"""Pipeline stages for tagrel.

Each stage returns a Result; the orchestrator turns stage errors into a
single run outcome.
"""

from tagrel.services.orchestrator import Pipeline, RunPlan, create_pipeline
from tagrel.services.outcome import (
    BuildFailed,
    DocsFailed,
    InputRejected,
    ReleaseFailed,
    RunOutcome,
    Success,
)
from tagrel.services.version import VersionRef, derive_version

__all__ = [
    # Orchestration
    "Pipeline",
    "RunPlan",
    "create_pipeline",
    # Outcomes
    "RunOutcome",
    "Success",
    "InputRejected",
    "BuildFailed",
    "ReleaseFailed",
    "DocsFailed",
    # Versioning
    "VersionRef",
    "derive_version",
]
