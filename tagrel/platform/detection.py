"""Execution environment detection.

Cache keys are scoped by a coarse environment class (os name) so a cache
written on one runner class is only restored on the same class.
"""

from __future__ import annotations

import sys as _sys
from enum import Enum, auto
from functools import lru_cache

__all__ = ["Platform", "detect_platform", "environment_class"]


class Platform(Enum):
    """Operating system platform."""

    LINUX = auto()
    MACOS = auto()
    WINDOWS = auto()
    UNKNOWN = auto()

    def __str__(self) -> str:
        return self.name.lower()


@lru_cache(maxsize=1)
def detect_platform() -> Platform:
    """Detect the current operating system (cached)."""
    # NOTE: avoid platform.system() on Windows, it may query WMI and hang.
    system = _sys.platform.lower()
    if system.startswith("linux"):
        return Platform.LINUX
    if system.startswith("darwin"):
        return Platform.MACOS
    if system.startswith(("win32", "cygwin", "msys")):
        return Platform.WINDOWS
    return Platform.UNKNOWN


def environment_class(override: str | None = None) -> str:
    """Cache environment class: the configured override, else the os name."""
    if override:
        return override
    return str(detect_platform())
