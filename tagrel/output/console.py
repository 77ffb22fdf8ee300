"""Console output abstraction.

Pipeline stages report progress through `ConsoleProtocol` rather than a
logger, so a run prints one readable transcript in CI and tests can assert on
exactly what was reported. `RichConsole` is the production backend;
`MockConsole` records output in memory.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Protocol

__all__ = [
    "Style",
    "ConsoleProtocol",
    "RichConsole",
    "MockConsole",
    "OutputRecord",
    "format_command",
]


class Style(Enum):
    """Text styles for console output."""

    DEFAULT = auto()
    SUCCESS = auto()
    ERROR = auto()
    WARNING = auto()
    INFO = auto()
    DIM = auto()  # echoed commands, hints
    HEADER = auto()  # stage banners

    def __str__(self) -> str:
        return self.name.lower()


def format_command(cmd: Sequence[str]) -> str:
    """Render a command line for echoing (not for execution)."""
    return " ".join(cmd)


class ConsoleProtocol(Protocol):
    """Where pipeline stages write their progress.

    Stages only ever see this protocol. The CLI hands them a RichConsole,
    tests hand them a MockConsole and assert on the records.
    """

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        """Print one line of progress.

        Args:
            message: Plain text; it is never parsed as markup.
            style: How the backend should render it.
        """
        ...

    def success(self, message: str) -> None:
        """Report a completed step (artifact built, release published)."""
        ...

    def error(self, message: str) -> None:
        """Report the failure that decided the outcome."""
        ...

    def warning(self, message: str) -> None:
        """Report a best-effort failure that does not change the outcome."""
        ...

    def info(self, message: str) -> None:
        """Report something worth knowing that is neither good nor bad."""
        ...

    def header(self, message: str) -> None:
        """Announce the start of a stage."""
        ...

    def newline(self) -> None:
        """Print a blank line."""
        ...


class RichConsole:
    """Console implementation backed by Rich.

    Used by the CLI. Messages are escaped before any markup is added, so
    tags, paths and command lines print verbatim.
    """

    def __init__(self, *, stderr: bool = False) -> None:
        # Import Rich lazily to avoid import-time dependency
        from rich.console import Console

        self._console = Console(stderr=stderr, highlight=False)
        self._style_map = {
            Style.DEFAULT: "",
            Style.SUCCESS: "green",
            Style.ERROR: "red bold",
            Style.WARNING: "yellow",
            Style.INFO: "cyan",
            Style.DIM: "dim",
            Style.HEADER: "blue bold",
        }

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        rich_style = self._style_map.get(style, "")
        # Commands and paths may contain [brackets]; never parse them as markup.
        if rich_style:
            self._console.print(message, style=rich_style, markup=False)
        else:
            self._console.print(message, markup=False)

    def success(self, message: str) -> None:
        self._console.print(f"[green]OK[/green] {_escape(message)}")

    def error(self, message: str) -> None:
        self._console.print(f"[red bold]error:[/red bold] {_escape(message)}")

    def warning(self, message: str) -> None:
        self._console.print(f"[yellow]warning:[/yellow] {_escape(message)}")

    def info(self, message: str) -> None:
        self._console.print(f"[cyan]info:[/cyan] {_escape(message)}")

    def header(self, message: str) -> None:
        self._console.print(f"\n[blue bold]==> {_escape(message)}[/blue bold]")

    def newline(self) -> None:
        self._console.print()


def _escape(message: str) -> str:
    """Escape Rich markup in text that comes from outside (stderr, paths)."""
    from rich.markup import escape

    return escape(message)


@dataclass
class OutputRecord:
    """A single output record for MockConsole."""

    message: str
    style: Style


def _empty_outputs() -> list[OutputRecord]:
    return []


@dataclass
class MockConsole:
    """Console that captures output for tests.

    Nothing is printed; every call becomes an OutputRecord so a test can
    check which stages ran and what was reported.
    """

    outputs: list[OutputRecord] = field(default_factory=_empty_outputs)

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        self.outputs.append(OutputRecord(message, style))

    def success(self, message: str) -> None:
        self.outputs.append(OutputRecord(f"OK {message}", Style.SUCCESS))

    def error(self, message: str) -> None:
        self.outputs.append(OutputRecord(f"error: {message}", Style.ERROR))

    def warning(self, message: str) -> None:
        self.outputs.append(OutputRecord(f"warning: {message}", Style.WARNING))

    def info(self, message: str) -> None:
        self.outputs.append(OutputRecord(f"info: {message}", Style.INFO))

    def header(self, message: str) -> None:
        self.outputs.append(OutputRecord(message, Style.HEADER))

    def newline(self) -> None:
        self.outputs.append(OutputRecord("", Style.DEFAULT))

    # Test helpers

    @property
    def messages(self) -> list[str]:
        """Every captured message, prefixes included."""
        return [o.message for o in self.outputs]

    @property
    def text(self) -> str:
        """All messages joined with newlines."""
        return "\n".join(self.messages)

    @property
    def headers(self) -> list[str]:
        """Stage banners in the order they were printed."""
        return [o.message for o in self.outputs if o.style == Style.HEADER]

    def has_error(self) -> bool:
        """True when any error was reported."""
        return any(o.style == Style.ERROR for o in self.outputs)

    def has_warning(self) -> bool:
        """True when any warning was reported."""
        return any(o.style == Style.WARNING for o in self.outputs)

    def find(self, substring: str) -> list[OutputRecord]:
        """Records whose message contains substring."""
        return [o for o in self.outputs if substring in o.message]
