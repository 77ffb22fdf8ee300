"""Exit codes for a pipeline run.

Each fatal stage maps to its own code so CI logs and wrapping scripts can
tell where a run stopped without parsing output.
"""

from enum import IntEnum

__all__ = ["ExitCode"]


class ExitCode(IntEnum):
    """Process exit codes for tagrel commands.

    These values are part of the CLI contract and must remain stable:
    - 0: Success (also partial success when docs are isolated)
    - 1: Input rejected (tag does not match the trigger pattern, bad config)
    - 2: Environment error (gh missing, not authenticated)
    - 3: Build failed
    - 4: Release creation or asset upload failed
    - 5: Documentation generation or deployment failed
    """

    OK = 0
    INPUT_REJECTED = 1
    ENV_ERROR = 2
    BUILD_FAILED = 3
    RELEASE_FAILED = 4
    DOCS_FAILED = 5

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ExitCode.OK
