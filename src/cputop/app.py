"""cputop - Main Textual application."""

from collections.abc import Sequence

from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.containers import Container
from textual.widgets import DataTable, Static
from textual.worker import Worker

from cputop.config import Config
from cputop.history import Y_BOUNDS, HistoryBuffer
from cputop.loop import Frame, KeyQueue, TickLoop
from cputop.models import KeyEvent, ProcessRecord, ViewMode
from cputop.monitor import MetricSource, PsutilMetricSource

BARS = " ▁▂▃▄▅▆▇█"


def key_event_from_textual(event: events.Key) -> KeyEvent:
    """Translate a Textual key event ("ctrl+c", "escape", "a") to a KeyEvent."""
    *modifiers, name = event.key.split("+")
    if event.is_printable and event.character:
        # Shift is already folded into the character
        return KeyEvent(event.character, frozenset(m for m in modifiers if m != "shift"))
    return KeyEvent(name, frozenset(modifiers))


def chart_columns(
    series: Sequence[tuple[int, float]],
    x_bounds: tuple[int, int],
    width: int,
) -> list[float | None]:
    """
    Pick one value per chart column.

    The x axis spans ``x_bounds``; samples are placed by their position in
    the series. Columns past the last sample are None.
    """
    span = x_bounds[1] - x_bounds[0]
    if width <= 0:
        return []
    if span <= 0 or not series:
        return [None] * width
    columns: list[float | None] = []
    for column in range(width):
        index = column * span // width
        columns.append(series[index][1] if index < len(series) else None)
    return columns


def chart_rows(
    columns: Sequence[float | None],
    y_bounds: tuple[float, float],
    height: int,
) -> list[str]:
    """Draw column values as block bars, ``height`` rows tall, top row first."""
    low, high = y_bounds
    levels = height * 8
    fills = []
    for value in columns:
        if value is None or high <= low:
            fills.append(0)
            continue
        ratio = (min(max(value, low), high) - low) / (high - low)
        fills.append(round(ratio * levels))

    rows = []
    for row in range(height):
        base = (height - 1 - row) * 8
        rows.append("".join(BARS[max(0, min(8, fill - base))] for fill in fills))
    return rows


class CpuChart(Static):
    """Global CPU usage over time, y axis fixed at 0-100%."""

    DEFAULT_CSS = """
    CpuChart {
        height: 25%;
        min-height: 5;
        border: solid $primary;
        color: $accent;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize CpuChart."""
        super().__init__(*args, **kwargs)
        self._series: Sequence[tuple[int, float]] = ()
        self._x_bounds: tuple[int, int] = (0, 0)
        self._y_bounds: tuple[float, float] = Y_BOUNDS
        self.border_title = "CPU"

    def update_series(
        self,
        series: Sequence[tuple[int, float]],
        x_bounds: tuple[int, int],
        y_bounds: tuple[float, float] = Y_BOUNDS,
    ) -> None:
        """Replace the plotted samples."""
        self._series = series
        self._x_bounds = x_bounds
        self._y_bounds = y_bounds
        if series:
            self.border_title = f"CPU {series[-1][1]:5.1f}%"
        self.refresh()

    def render(self) -> Text:
        """Render the chart to fit the widget."""
        width, height = self.content_size
        columns = chart_columns(self._series, self._x_bounds, width)
        return Text("\n".join(chart_rows(columns, self._y_bounds, height)))


class SearchBar(Static):
    """Query entry box, shown in search mode."""

    DEFAULT_CSS = """
    SearchBar {
        height: 3;
        border: solid $accent;
        display: none;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize SearchBar."""
        super().__init__(*args, **kwargs)
        self._shown: tuple[str, int] | None = None
        self.border_title = "Search"

    def show(self, query: str, cursor: int) -> None:
        """Display ``query`` with the cursor highlighted."""
        if self._shown == (query, cursor):
            return
        self._shown = (query, cursor)
        text = Text(query[:cursor])
        text.append(query[cursor : cursor + 1] or " ", style="reverse")
        text.append(query[cursor + 1 :])
        self.update(text)


class ProcessTable(Container):
    """Container for the process data table."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ProcessTable."""
        super().__init__(*args, **kwargs)
        self._rows: tuple[ProcessRecord, ...] | None = None
        self._selected: int | None = None
        self.border_title = "Processes"

    @property
    def rows(self) -> tuple[ProcessRecord, ...]:
        """Get the rows currently shown."""
        return self._rows or ()

    @property
    def selected(self) -> int | None:
        """Get the highlighted row."""
        return self._selected

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        self._ensure_columns(self.query_one("#process-table", DataTable))

    def _ensure_columns(self, table: DataTable) -> None:
        if table.columns:
            return
        table.cursor_type = "row"
        # Keys are handled by the tick loop, not by the table
        table.can_focus = False
        table.add_column("PID", key="pid", width=10)
        table.add_column("Name", key="name")
        table.add_column("CPU%", key="cpu", width=8)

    def show(self, rows: tuple[ProcessRecord, ...], selected: int | None) -> None:
        """
        Show ``rows`` with ``selected`` highlighted.

        The table is only rebuilt when the rows changed since the last call.
        """
        table = self.query_one("#process-table", DataTable)
        self._ensure_columns(table)

        if rows != self._rows:
            table.clear()
            for proc in rows:
                table.add_row(*proc.cells())
            self._rows = rows
            self._selected = None

        if selected != self._selected:
            table.show_cursor = selected is not None
            if selected is not None:
                table.move_cursor(row=selected)
            self._selected = selected


class AppRenderer:
    """Renderer handed to the tick loop; forwards frames to the UI thread."""

    def __init__(self, app: "CputopApp") -> None:
        """Initialize AppRenderer for the app whose widgets show the frames."""
        self._app = app

    def render(self, frame: Frame) -> None:
        """Hand ``frame`` to the app. Runs on the loop thread."""
        self._app.deliver_frame(frame)


class CputopApp(App):
    """Main cputop application."""

    TITLE = "cputop"
    SUB_TITLE = "CPU and process monitor"
    AUTO_FOCUS = None
    ENABLE_COMMAND_PALETTE = False

    CSS = """
    Screen {
        layout: vertical;
    }

    #help {
        dock: bottom;
        height: 1;
        background: $panel;
        padding: 0 1;
    }
    """

    def __init__(self, config: Config | None = None, source: MetricSource | None = None) -> None:
        """
        Initialize the CputopApp.

        Args:
            config: Settings; defaults when omitted.
            source: Metric source; psutil when omitted.
        """
        super().__init__()
        self._config = config or Config()
        loop_config = self._config.loop
        self._keys = KeyQueue()
        self._worker: Worker[None] | None = None
        self._tick_loop = TickLoop(
            source if source is not None else PsutilMetricSource(loop_config.cpu_min_interval),
            AppRenderer(self),
            self._keys,
            history=HistoryBuffer(self._config.history.capacity),
            process_refresh_interval=loop_config.process_refresh_interval,
            poll_timeout=loop_config.poll_timeout,
        )

    @property
    def tick_loop(self) -> TickLoop:
        """Get the tick loop driving this app."""
        return self._tick_loop

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield CpuChart(id="cpu-chart")
        yield SearchBar(id="search")
        yield ProcessTable()
        yield Static("q/Esc quit  s search  j/k move", id="help")

    def on_mount(self) -> None:
        """Start the tick loop once the widgets exist."""
        self._worker = self.run_worker(
            self._run_tick_loop,
            name="TickLoop",
            thread=True,
            exclusive=True,
        )

    def on_unmount(self) -> None:
        """Stop the tick loop on shutdown."""
        self._tick_loop.stop()

    def on_key(self, event: events.Key) -> None:
        """Forward every key to the tick loop."""
        event.prevent_default()
        event.stop()
        self._keys.push(key_event_from_textual(event))

    def _run_tick_loop(self) -> None:
        """Worker body: run the loop, then close the app."""
        self._tick_loop.run()
        if self.is_running:
            self.call_from_thread(self.exit)

    def deliver_frame(self, frame: Frame) -> None:
        """Paint ``frame`` on the UI thread. Called from the loop thread."""
        if not self.is_running:
            self._tick_loop.stop()
            return
        try:
            self.call_from_thread(self.paint_frame, frame)
        except RuntimeError:
            # The app can stop between the check above and the call
            if self.is_running:
                raise
            self._tick_loop.stop()

    def paint_frame(self, frame: Frame) -> None:
        """Update the widgets from a frame."""
        if not self.is_running:
            return
        self.query_one(CpuChart).update_series(frame.series, frame.x_bounds, frame.y_bounds)
        self.query_one(ProcessTable).show(frame.rows, frame.selected)
        search = self.query_one(SearchBar)
        search.display = frame.mode is ViewMode.SEARCH
        search.show(frame.query, frame.cursor)

    def action_quit(self) -> None:
        """Handle quit action by stopping the tick loop, which closes the app."""
        if self._worker is None or self._worker.is_finished:
            self.exit()
        else:
            self._tick_loop.stop()

    def action_help_quit(self) -> None:
        """Treat ctrl+c bindings like quit."""
        self.action_quit()


def run_app(config: Config) -> int:
    """Run the TUI until it exits and return its exit code."""
    app = CputopApp(config)
    app.run()
    return app.return_code or 0
