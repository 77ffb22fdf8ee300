"""Platform layer: subprocesses and filesystem helpers."""

from .files import atomic_write_bytes, is_within, replace_tree
from .process import ProcessError, run, run_streaming

__all__ = [
    "ProcessError",
    "atomic_write_bytes",
    "is_within",
    "replace_tree",
    "run",
    "run_streaming",
]
