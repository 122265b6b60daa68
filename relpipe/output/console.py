"""Console output abstraction.

Stages report progress through ConsoleProtocol so they never depend on Rich
directly. Build jobs run on worker threads, so every implementation must be
safe to call concurrently; ScopedConsole prefixes each line with the stage
name to keep interleaved output readable.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Protocol

__all__ = [
    "Style",
    "ConsoleProtocol",
    "RichConsole",
    "ScopedConsole",
    "MockConsole",
]


class Style(Enum):
    """Text styles for console output."""

    DEFAULT = auto()
    SUCCESS = auto()
    ERROR = auto()
    WARNING = auto()
    INFO = auto()
    DIM = auto()
    HEADER = auto()

    def __str__(self) -> str:
        return self.name.lower()


class ConsoleProtocol(Protocol):
    def print(self, message: str, style: Style = Style.DEFAULT) -> None: ...

    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def info(self, message: str) -> None: ...

    def header(self, message: str) -> None: ...

    def newline(self) -> None: ...


class RichConsole:
    """Production console backed by rich (thread-safe)."""

    def __init__(self, *, stderr: bool = False) -> None:
        from rich.console import Console
        from rich.text import Text

        self._text = Text
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

    def _labelled(self, label: str, style: str, message: str) -> None:
        # Text keeps brackets in commit subjects from being read as markup.
        self._console.print(self._text.assemble((label, style), " ", message))

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        rich_style = self._style_map.get(style, "")
        if rich_style:
            self._console.print(message, style=rich_style, markup=False)
        else:
            self._console.print(message, markup=False)

    def success(self, message: str) -> None:
        self._labelled("OK", "green", message)

    def error(self, message: str) -> None:
        self._labelled("error:", "red bold", message)

    def warning(self, message: str) -> None:
        self._labelled("warning:", "yellow", message)

    def info(self, message: str) -> None:
        self._labelled("info:", "cyan", message)

    def header(self, message: str) -> None:
        self._console.print()
        self._console.print(message, style="blue bold", markup=False)

    def newline(self) -> None:
        self._console.print()


@dataclass(frozen=True, slots=True)
class ScopedConsole:
    """Prefix every message with `[scope]` before forwarding it."""

    inner: ConsoleProtocol
    scope: str

    def _p(self, message: str) -> str:
        return f"[{self.scope}] {message}"

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        self.inner.print(self._p(message), style)

    def success(self, message: str) -> None:
        self.inner.success(self._p(message))

    def error(self, message: str) -> None:
        self.inner.error(self._p(message))

    def warning(self, message: str) -> None:
        self.inner.warning(self._p(message))

    def info(self, message: str) -> None:
        self.inner.info(self._p(message))

    def header(self, message: str) -> None:
        self.inner.header(self._p(message))

    def newline(self) -> None:
        self.inner.newline()


@dataclass
class OutputRecord:
    message: str
    style: Style


def _empty_outputs() -> list[OutputRecord]:
    return []


@dataclass
class MockConsole:
    """Console that captures output for tests."""

    outputs: list[OutputRecord] = field(default_factory=_empty_outputs)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def _add(self, message: str, style: Style) -> None:
        with self._lock:
            self.outputs.append(OutputRecord(message, style))

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        self._add(message, style)

    def success(self, message: str) -> None:
        self._add(f"OK {message}", Style.SUCCESS)

    def error(self, message: str) -> None:
        self._add(f"error: {message}", Style.ERROR)

    def warning(self, message: str) -> None:
        self._add(f"warning: {message}", Style.WARNING)

    def info(self, message: str) -> None:
        self._add(f"info: {message}", Style.INFO)

    def header(self, message: str) -> None:
        self._add(message, Style.HEADER)

    def newline(self) -> None:
        self._add("", Style.DEFAULT)

    @property
    def messages(self) -> list[str]:
        with self._lock:
            return [o.message for o in self.outputs]

    @property
    def text(self) -> str:
        return "\n".join(self.messages)

    def has_error(self) -> bool:
        with self._lock:
            return any(o.style == Style.ERROR for o in self.outputs)

    def has_warning(self) -> bool:
        with self._lock:
            return any(o.style == Style.WARNING for o in self.outputs)

    def find(self, substring: str) -> list[OutputRecord]:
        with self._lock:
            return [o for o in self.outputs if substring in o.message]
