"""The tick loop: sample, record, render, then wait briefly for one key."""

import threading
from dataclasses import dataclass
from queue import Empty, Queue
from typing import Protocol

import structlog

from cputop.history import Y_BOUNDS, HistoryBuffer
from cputop.keys import Action, InputStateMachine
from cputop.models import KeyEvent, KeyEventKind, ProcessRecord, Sample, ViewMode
from cputop.monitor import MetricSource
from cputop.view import ProcessView

log = structlog.get_logger(__name__)

PROCESS_REFRESH_INTERVAL = 60  # Ticks between full process refreshes
POLL_TIMEOUT = 0.016  # Seconds, roughly one frame at 60 Hz


@dataclass(slots=True, frozen=True)
class Frame:
    """Everything the renderer needs for one tick."""

    tick: int
    series: tuple[tuple[int, float], ...]
    x_bounds: tuple[int, int]
    y_bounds: tuple[float, float]
    rows: tuple[ProcessRecord, ...]
    selected: int | None
    mode: ViewMode
    query: str
    cursor: int


class Renderer(Protocol):
    """Draws a frame. Any exception it raises ends the loop."""

    def render(self, frame: Frame) -> None: ...


class InputSource(Protocol):
    """Terminal input, read one event at a time."""

    def poll(self, timeout: float) -> bool:
        """Wait up to ``timeout`` seconds for an event; True if one is ready."""
        ...

    def read(self) -> object:
        """Return the next event (a KeyEvent, or anything to be ignored)."""
        ...


class KeyQueue:
    """
    Thread-safe input source fed by another thread.

    The UI thread pushes events; the loop thread polls and reads them.
    """

    def __init__(self) -> None:
        """Initialize KeyQueue."""
        self._queue: Queue[object] = Queue()
        self._pending: list[object] = []

    def push(self, event: object) -> None:
        """Queue an event for the loop thread."""
        self._queue.put(event)

    def poll(self, timeout: float) -> bool:
        """Wait up to ``timeout`` seconds for an event."""
        if self._pending:
            return True
        try:
            self._pending.append(self._queue.get(timeout=timeout))
        except Empty:
            return False
        return True

    def read(self) -> object:
        """Return the next event, blocking if none was polled."""
        if self._pending:
            return self._pending.pop()
        return self._queue.get()


class TickLoop:
    """
    Single-threaded sampling and presentation loop.

    Each step runs these phases in order:

    1. refresh the process snapshot, only every ``process_refresh_interval`` ticks
    2. refresh global CPU usage
    3. append the CPU sample to the history
    4. render a frame
    5. poll for at most one key event, waiting up to ``poll_timeout``

    All state lives on the thread calling :meth:`run`. Errors from the
    renderer or the input source are not retried: they end the loop.
    """

    def __init__(
        self,
        source: MetricSource,
        renderer: Renderer,
        input_source: InputSource,
        history: HistoryBuffer | None = None,
        process_refresh_interval: int = PROCESS_REFRESH_INTERVAL,
        poll_timeout: float = POLL_TIMEOUT,
    ) -> None:
        """
        Initialize the TickLoop.

        Args:
            source: Supplies CPU and process readings.
            renderer: Receives one Frame per tick.
            input_source: Polled once per tick for a key event.
            history: Sample store; a new unbounded one by default.
            process_refresh_interval: Ticks between process refreshes. Default 60.
            poll_timeout: Longest wait for input per tick (seconds). Default 0.016s.
        """
        if process_refresh_interval < 1:
            raise ValueError(
                f"process_refresh_interval must be >= 1, got {process_refresh_interval}"
            )
        self._source = source
        self._renderer = renderer
        self._input = input_source
        self._history = history if history is not None else HistoryBuffer()
        self._refresh_interval = process_refresh_interval
        self._poll_timeout = poll_timeout
        self._stop_event = threading.Event()
        self._tick = 0
        self._processes: list[ProcessRecord] = []
        self._keys = InputStateMachine()
        self._view = ProcessView()

    @property
    def history(self) -> HistoryBuffer:
        """Get the CPU history."""
        return self._history

    @property
    def keys(self) -> InputStateMachine:
        """Get the input state machine."""
        return self._keys

    @property
    def view(self) -> ProcessView:
        """Get the process view."""
        return self._view

    @property
    def processes(self) -> list[ProcessRecord]:
        """Get the latest process snapshot, unranked."""
        return self._processes

    @property
    def ticks(self) -> int:
        """Number of completed ticks."""
        return self._tick

    @property
    def is_stopped(self) -> bool:
        """Check if a quit or stop has been requested."""
        return self._stop_event.is_set()

    def stop(self) -> None:
        """Ask the loop to exit after the current tick. Safe from any thread."""
        self._stop_event.set()

    def run(self) -> None:
        """Run ticks until stopped."""
        log.info(
            "tick_loop_started",
            process_refresh_interval=self._refresh_interval,
            poll_timeout=self._poll_timeout,
            history_capacity=self._history.capacity,
        )
        try:
            while not self._stop_event.is_set():
                self.step()
        except Exception:
            log.exception("tick_loop_failed", tick=self._tick)
            raise
        log.info("tick_loop_stopped", ticks=self._tick)

    def step(self) -> None:
        """Run one tick."""
        tick = self._tick
        self.refresh_processes_if_due(tick)
        value = self.refresh_cpu()
        self.record_sample(tick, value)
        self.render()
        self.poll_input()
        self._tick = tick + 1

    def process_refresh_due(self, tick: int) -> bool:
        """Check if ``tick`` is a process refresh tick."""
        return tick % self._refresh_interval == 0

    def refresh_processes_if_due(self, tick: int) -> bool:
        """Refresh the process snapshot on refresh ticks; True if refreshed."""
        if not self.process_refresh_due(tick):
            return False
        self._processes = list(self._source.refresh_processes())
        return True

    def refresh_cpu(self) -> float:
        """Read global CPU usage."""
        return self._source.refresh_cpu()

    def record_sample(self, tick: int, value: float) -> Sample:
        """Append the tick's CPU reading to the history."""
        sample = Sample(tick=tick, value=value)
        self._history.append(sample)
        return sample

    def build_frame(self) -> Frame:
        """Derive the frame for the current state."""
        displayed = self._view.display(self._processes, self._keys.query)
        return Frame(
            tick=self._tick,
            series=self._history.snapshot(),
            x_bounds=self._history.x_bounds(),
            y_bounds=Y_BOUNDS,
            rows=displayed.rows,
            selected=displayed.selected,
            mode=self._keys.mode,
            query=self._keys.query,
            cursor=self._keys.cursor,
        )

    def render(self) -> Frame:
        """Build a frame and hand it to the renderer."""
        frame = self.build_frame()
        self._renderer.render(frame)
        return frame

    def poll_input(self) -> Action:
        """Wait briefly for one input event and apply it."""
        if not self._input.poll(self._poll_timeout):
            return Action.NONE
        event = self._input.read()
        if not isinstance(event, KeyEvent) or event.kind is KeyEventKind.RELEASE:
            return Action.NONE
        return self.apply(self._keys.handle(event))

    def apply(self, action: Action) -> Action:
        """Carry out an action from the input state machine."""
        if action is Action.QUIT:
            log.info("quit_requested", tick=self._tick)
            self.stop()
        elif action is Action.SELECT_NEXT:
            self._view.select_next()
        elif action is Action.SELECT_PREVIOUS:
            self._view.select_previous()
        return action
