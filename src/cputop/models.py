"""Data models for cputop."""

import math
from dataclasses import dataclass, field
from enum import Enum


class ViewMode(Enum):
    """Whether keys drive navigation or edit the search query."""

    NORMAL = "normal"
    SEARCH = "search"


class KeyEventKind(Enum):
    """Key transition reported by the terminal."""

    PRESS = "press"
    REPEAT = "repeat"
    RELEASE = "release"


@dataclass(slots=True, frozen=True)
class KeyEvent:
    """A single key event with its modifier set."""

    code: str  # Printable character ("a", " ") or key name ("escape", "left")
    modifiers: frozenset[str] = field(default_factory=frozenset)
    kind: KeyEventKind = KeyEventKind.PRESS

    @property
    def is_printable(self) -> bool:
        """True for a single printable character."""
        return len(self.code) == 1 and self.code.isprintable()

    @property
    def plain(self) -> bool:
        """True when no ctrl/alt modifier is held."""
        return not (self.modifiers & {"ctrl", "alt"})

    def is_ctrl(self, *codes: str) -> bool:
        """Check for ctrl held together with one of ``codes``."""
        return "ctrl" in self.modifiers and self.code in codes


@dataclass(slots=True, frozen=True)
class Sample:
    """One (tick, CPU%) point of the usage history."""

    tick: int
    value: float  # 0.0 - 100.0


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """Immutable snapshot of one process."""

    pid: int
    name: str
    cpu_percent: float | None  # None when the OS would not report it

    @property
    def cpu_text(self) -> str:
        """CPU usage as shown in the table."""
        return format_cpu(self.cpu_percent)

    def cells(self) -> tuple[str, str, str]:
        """Displayed field values, in column order."""
        return (str(self.pid), self.name, self.cpu_text)


def cpu_value(value: object) -> float:
    """Return ``value`` as a float, or 0.0 if it is missing or not a number."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    if math.isnan(value):
        return 0.0
    return float(value)


def format_cpu(value: object) -> str:
    """Format a CPU percentage with one decimal, "-" when unavailable."""
    if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
        return "-"
    return f"{value:.1f}"
