"""CPU usage history for the chart."""

from collections import deque

from cputop.models import Sample

Y_BOUNDS: tuple[float, float] = (0.0, 100.0)


class HistoryBuffer:
    """
    Ordered (tick, CPU%) samples.

    Unbounded by default: every tick appends and nothing is evicted, so the
    length equals the number of ticks recorded. With a ``capacity`` the
    buffer keeps only the newest ``capacity`` samples.
    """

    def __init__(self, capacity: int | None = None) -> None:
        """
        Initialize the HistoryBuffer.

        Args:
            capacity: Maximum samples to keep. None (or 0) keeps everything.
        """
        if capacity is not None and capacity < 0:
            raise ValueError(f"capacity must be >= 0, got {capacity}")
        self._capacity = capacity or None
        self._samples: deque[Sample] = deque(maxlen=self._capacity)

    @property
    def capacity(self) -> int | None:
        """Get the capacity, None when unbounded."""
        return self._capacity

    @property
    def first_tick(self) -> int | None:
        """Tick of the oldest retained sample."""
        return self._samples[0].tick if self._samples else None

    @property
    def latest(self) -> Sample | None:
        """The most recent sample."""
        return self._samples[-1] if self._samples else None

    def __len__(self) -> int:
        return len(self._samples)

    def append(self, sample: Sample) -> None:
        """Append a sample, evicting the oldest one when full."""
        if self._samples and sample.tick <= self._samples[-1].tick:
            raise ValueError(
                f"tick {sample.tick} does not follow tick {self._samples[-1].tick}"
            )
        self._samples.append(sample)

    def as_series(self) -> list[tuple[int, float]]:
        """Get the retained history as (tick, value) pairs, oldest first."""
        return [(s.tick, s.value) for s in self._samples]

    def snapshot(self) -> tuple[tuple[int, float], ...]:
        """Get the retained history as an immutable tuple for a frame."""
        return tuple((s.tick, s.value) for s in self._samples)

    def x_bounds(self) -> tuple[int, int]:
        """Chart x axis bounds."""
        if self._capacity is not None:
            return (0, self._capacity)
        return (0, len(self._samples))
