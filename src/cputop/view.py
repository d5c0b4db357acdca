"""Ranked, filtered projection of the process snapshot."""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from cputop.models import ProcessRecord, cpu_value


def rank_processes(records: Iterable[ProcessRecord]) -> list[ProcessRecord]:
    """
    Sort processes by CPU usage, highest first.

    The sort is stable, so processes with equal usage keep their snapshot
    order. Missing or non-numeric readings rank as 0.0.
    """
    return sorted(records, key=lambda p: cpu_value(p.cpu_percent), reverse=True)


def matches(record: ProcessRecord, query: str) -> bool:
    """Check whether any displayed cell contains ``query``, ignoring case."""
    needle = query.lower()
    return any(needle in cell.lower() for cell in record.cells())


def filter_processes(records: Iterable[ProcessRecord], query: str) -> list[ProcessRecord]:
    """Keep the records matching ``query``, preserving order."""
    if not query:
        return list(records)
    return [record for record in records if matches(record, query)]


@dataclass(slots=True, frozen=True)
class DisplayedProcesses:
    """Rows ready for the table plus the highlighted row."""

    rows: tuple[ProcessRecord, ...]
    selected: int | None


class ProcessView:
    """
    Derives the displayed process list and owns the selection.

    The selection is a raw row position: when the snapshot changes, the
    same index stays highlighted even if a different process now sits
    there. It is only re-clamped when the number of displayed rows changes.
    """

    def __init__(self) -> None:
        """Initialize ProcessView."""
        self._selected: int | None = 0
        self._length: int | None = None

    @property
    def selected(self) -> int | None:
        """Get the selected row index, None when nothing is displayed."""
        return self._selected

    def display(self, records: Sequence[ProcessRecord], query: str) -> DisplayedProcesses:
        """Rank then filter ``records`` and clamp the selection to the result."""
        rows = tuple(filter_processes(rank_processes(records), query))
        if len(rows) != self._length:
            self._length = len(rows)
            self._clamp()
        return DisplayedProcesses(rows=rows, selected=self._selected)

    def select_next(self) -> None:
        """Move the selection down one row, stopping at the last row."""
        self._move(1)

    def select_previous(self) -> None:
        """Move the selection up one row, stopping at the first row."""
        self._move(-1)

    def _move(self, delta: int) -> None:
        # Nothing displayed yet, or nothing to select
        if self._selected is None or not self._length:
            return
        self._selected += delta
        self._clamp()

    def _clamp(self) -> None:
        if self._length == 0:
            self._selected = None
            return
        if self._selected is None:
            self._selected = 0
        self._selected = max(0, min(self._selected, self._length - 1))
