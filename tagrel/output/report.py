"""Run outcome presentation.

Centralized outcome formatting and exit code mapping for consistent UX.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from tagrel.core.errors import ExitCode
from tagrel.output.console import Style
from tagrel.services.outcome import (
    BuildFailed,
    DocsFailed,
    InputRejected,
    ReleaseFailed,
    RunOutcome,
    Success,
)

if TYPE_CHECKING:
    from tagrel.output.console import ConsoleProtocol
    from tagrel.services.errors import StageError

__all__ = ["outcome_exit_code", "print_outcome"]


def _print_error(error: StageError, console: ConsoleProtocol) -> None:
    console.error(error.message)
    if error.hint:
        console.print(f"hint: {error.hint}", Style.DIM)


def print_outcome(outcome: RunOutcome, console: ConsoleProtocol) -> None:
    """Print the run summary: status, failed stage, release visibility."""
    console.header(f"status: {outcome.status}")
    match outcome:
        case Success(version=version, release=release, docs_location=docs):
            console.success(f"release {version.tag} is public: {release.title}")
            if release.url:
                console.print(release.url, Style.DIM)
            if docs:
                console.print(f"docs: {docs}", Style.DIM)
        case InputRejected(ref=ref, error=error):
            _print_error(error, console)
            console.print(f"trigger '{ref}' rejected; nothing was built or published", Style.DIM)
        case BuildFailed(error=error):
            _print_error(error, console)
            console.print("no release was created", Style.DIM)
        case ReleaseFailed(
            release_id=release_id, stage=stage, release_created=created, error=error
        ):
            _print_error(error, console)
            console.print(f"failed stage: {stage}; release: {release_id}", Style.DIM)
            if created:
                state = "is public" if outcome.release_public else "exists"
                console.warning(
                    f"release {release_id} {state} with incomplete assets; "
                    "inspect it and delete or re-run with --policy overwrite-assets"
                )
            console.print("the build succeeded; docs were not published", Style.DIM)
        case DocsFailed(release=release, stage=stage, error=error):
            _print_error(error, console)
            console.print(f"failed stage: {stage}", Style.DIM)
            if outcome.release_public:
                console.warning(f"release {release.tag} is public and complete; only docs failed")


def outcome_exit_code(outcome: RunOutcome) -> int:
    """Get the process exit code for a run outcome."""
    match outcome:
        case Success():
            return int(ExitCode.OK)
        case InputRejected():
            return int(ExitCode.INPUT_REJECTED)
        case BuildFailed():
            return int(ExitCode.BUILD_FAILED)
        case ReleaseFailed():
            return int(ExitCode.RELEASE_FAILED)
        case DocsFailed(isolated=True):
            return int(ExitCode.OK)
        case DocsFailed():
            return int(ExitCode.DOCS_FAILED)
    raise AssertionError(f"unexpected outcome: {outcome!r}")
