from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

StageErrorKind = Literal[
    "invalid_tag",
    "build_failed",
    "artifact_missing",
    "gh_missing",
    "gh_auth_required",
    "release_exists",
    "release_create_failed",
    "duplicate_asset",
    "upload_failed",
    "docs_generate_failed",
    "docs_output_missing",
    "docs_deploy_failed",
]


@dataclass(frozen=True, slots=True)
class StageError:
    """Failure of one pipeline stage operation.

    `returncode` is set when the failure comes from an external command.
    """

    kind: StageErrorKind
    message: str
    hint: str | None = None
    returncode: int | None = None

    def pretty(self) -> str:
        if self.hint:
            return f"{self.message} (hint: {self.hint})"
        return self.message


@dataclass(frozen=True, slots=True)
class CacheError:
    """Best-effort cache failure; logged, never fatal."""

    scope: str
    message: str
