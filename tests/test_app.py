"""Tests for cputop application."""

import asyncio
import time
from types import SimpleNamespace

import pytest

from cputop.app import (
    CpuChart,
    CputopApp,
    ProcessTable,
    SearchBar,
    chart_columns,
    chart_rows,
    key_event_from_textual,
)
from cputop.config import Config
from cputop.models import KeyEvent, ProcessRecord, ViewMode

PROCESSES = [
    ProcessRecord(pid=1, name="a", cpu_percent=50.0),
    ProcessRecord(pid=2, name="bash", cpu_percent=10.0),
    ProcessRecord(pid=3, name="cat", cpu_percent=90.0),
]


class FakeSource:
    """Metric source with a fixed process list."""

    def refresh_cpu(self) -> float:
        return 42.0

    def refresh_processes(self) -> list[ProcessRecord]:
        return list(PROCESSES)


def make_app() -> CputopApp:
    """Build an app with the fake source and a fast loop."""
    config = Config()
    config.loop.poll_timeout = 0.005
    return CputopApp(config, source=FakeSource())


async def wait_for(predicate, timeout: float = 3.0) -> bool:
    """Let the app run until ``predicate()`` holds or the timeout passes."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            return False
        await asyncio.sleep(0.02)
    return True


def textual_key(key: str, character: str | None) -> SimpleNamespace:
    """Mimic the parts of textual.events.Key used for translation."""
    printable = character is not None and character.isprintable()
    return SimpleNamespace(key=key, character=character, is_printable=printable)


class TestKeyTranslation:
    """Tests for key_event_from_textual."""

    def test_plain_character(self):
        """Test a letter becomes its character."""
        assert key_event_from_textual(textual_key("q", "q")) == KeyEvent("q")

    def test_shifted_character(self):
        """Test shift is folded into the character."""
        assert key_event_from_textual(textual_key("shift+s", "S")) == KeyEvent("S")

    def test_ctrl_combination(self):
        """Test ctrl+c keeps the modifier."""
        event = key_event_from_textual(textual_key("ctrl+c", "\x03"))
        assert event == KeyEvent("c", frozenset({"ctrl"}))

    def test_named_key(self):
        """Test named keys keep their name."""
        assert key_event_from_textual(textual_key("escape", "\x1b")) == KeyEvent("escape")
        assert key_event_from_textual(textual_key("left", None)) == KeyEvent("left")

    def test_space(self):
        """Test space is typed as a character."""
        assert key_event_from_textual(textual_key("space", " ")) == KeyEvent(" ")


class TestChart:
    """Tests for the chart drawing helpers."""

    def test_columns_span_whole_width(self):
        """Test an unbounded series is stretched over the width."""
        series = [(0, 10.0), (1, 20.0)]
        assert chart_columns(series, (0, 2), 4) == [10.0, 10.0, 20.0, 20.0]

    def test_columns_compress_long_series(self):
        """Test a long series is sampled down to one value per column."""
        series = [(t, float(t)) for t in range(100)]
        columns = chart_columns(series, (0, 100), 10)
        assert columns == [float(t) for t in range(0, 100, 10)]

    def test_bounded_series_leaves_space(self):
        """Test a partly filled capacity leaves empty columns on the right."""
        series = [(0, 50.0), (1, 60.0)]
        assert chart_columns(series, (0, 4), 4) == [50.0, 60.0, None, None]

    def test_empty_series(self):
        """Test no samples give empty columns."""
        assert chart_columns([], (0, 0), 3) == [None, None, None]
        assert chart_columns([(0, 1.0)], (0, 1), 0) == []

    def test_rows_fixed_scale(self):
        """Test bars are scaled against 0-100, not the data maximum."""
        rows = chart_rows([0.0, 50.0, 100.0, None], (0.0, 100.0), 2)
        assert rows == [" " + " " + "█" + " ", " " + "█" + "█" + " "]

    def test_rows_partial_blocks(self):
        """Test values between levels use partial blocks."""
        rows = chart_rows([25.0], (0.0, 100.0), 1)
        assert rows == ["▂"]

    def test_rows_clamp_out_of_range(self):
        """Test values outside the y bounds are clamped."""
        rows = chart_rows([150.0, -10.0], (0.0, 100.0), 1)
        assert rows == ["█ "]


@pytest.mark.asyncio
async def test_app_creation():
    """Test CputopApp can be instantiated."""
    app = make_app()
    assert app.title == "cputop"
    assert app.sub_title == "CPU and process monitor"
    assert app.tick_loop is not None


@pytest.mark.asyncio
async def test_app_compose():
    """Test CputopApp composes correctly."""
    app = make_app()
    async with app.run_test() as pilot:
        assert pilot.app.query_one("#cpu-chart") is not None
        assert pilot.app.query_one("#process-table") is not None
        assert pilot.app.query_one("#search") is not None


@pytest.mark.asyncio
async def test_app_shows_ranked_processes():
    """Test the table shows the processes highest CPU first."""
    app = make_app()
    async with app.run_test() as pilot:
        table = pilot.app.query_one(ProcessTable)
        assert await wait_for(lambda: len(table.rows) == 3)
        assert [p.pid for p in table.rows] == [3, 1, 2]
        assert table.selected == 0


@pytest.mark.asyncio
async def test_app_records_history():
    """Test the loop keeps ticking and feeding the chart."""
    app = make_app()
    async with app.run_test():
        assert await wait_for(lambda: len(app.tick_loop.history) >= 5)
        assert app.tick_loop.history.latest.value == 42.0
        chart = app.query_one(CpuChart)
        assert await wait_for(lambda: "42.0" in str(chart.border_title))


@pytest.mark.asyncio
async def test_app_quit_key():
    """Test that 'q' stops the loop and exits."""
    app = make_app()
    async with app.run_test() as pilot:
        await pilot.press("q")
        assert await wait_for(lambda: app.tick_loop.is_stopped)


@pytest.mark.asyncio
async def test_app_escape_quits():
    """Test that escape stops the loop."""
    app = make_app()
    async with app.run_test() as pilot:
        await pilot.press("escape")
        assert await wait_for(lambda: app.tick_loop.is_stopped)


@pytest.mark.asyncio
async def test_app_navigation():
    """Test j moves the highlighted row."""
    app = make_app()
    async with app.run_test() as pilot:
        table = pilot.app.query_one(ProcessTable)
        assert await wait_for(lambda: len(table.rows) == 3)

        await pilot.press("j")
        assert await wait_for(lambda: table.selected == 1)

        await pilot.press("k", "k")
        assert await wait_for(lambda: table.selected == 0)


@pytest.mark.asyncio
async def test_app_search_filters_table():
    """Test typing in search mode filters the table and shows the search box."""
    app = make_app()
    async with app.run_test() as pilot:
        table = pilot.app.query_one(ProcessTable)
        search = pilot.app.query_one(SearchBar)
        assert await wait_for(lambda: len(table.rows) == 3)
        assert not search.display

        await pilot.press("s")
        assert await wait_for(lambda: app.tick_loop.keys.mode is ViewMode.SEARCH)
        assert await wait_for(lambda: search.display)

        await pilot.press("b", "a")
        assert await wait_for(lambda: [p.pid for p in table.rows] == [2])
        assert app.tick_loop.keys.query == "ba"

        # The "s" is typed, then search mode ends with the filter kept
        await pilot.press("s")
        assert await wait_for(lambda: not search.display)
        assert app.tick_loop.keys.query == "bas"
        assert [p.pid for p in table.rows] == [2]


@pytest.mark.asyncio
async def test_app_quit_action_stops_loop():
    """Test the quit action goes through the tick loop."""
    app = make_app()
    async with app.run_test():
        assert await wait_for(lambda: app.tick_loop.ticks > 0)
        app.action_quit()
        assert await wait_for(lambda: app.tick_loop.is_stopped)


@pytest.mark.asyncio
async def test_deliver_frame_after_shutdown_stops_loop():
    """Test a frame arriving while the app shuts down stops the loop quietly."""
    app = make_app()
    frame = app.tick_loop.build_frame()

    app.deliver_frame(frame)

    assert app.tick_loop.is_stopped


@pytest.mark.asyncio
async def test_deliver_frame_tolerates_shutdown_race(monkeypatch: pytest.MonkeyPatch):
    """Test call_from_thread failing because the app just stopped is not an error."""
    app = make_app()
    running = iter([True, False])
    monkeypatch.setattr(CputopApp, "is_running", property(lambda self: next(running)))

    def closed(*args, **kwargs):
        raise RuntimeError("App is not running")

    monkeypatch.setattr(app, "call_from_thread", closed)

    app.deliver_frame(app.tick_loop.build_frame())

    assert app.tick_loop.is_stopped


@pytest.mark.asyncio
async def test_deliver_frame_reraises_while_running(monkeypatch: pytest.MonkeyPatch):
    """Test other RuntimeErrors from call_from_thread still propagate."""
    app = make_app()
    monkeypatch.setattr(CputopApp, "is_running", property(lambda self: True))

    def broken(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(app, "call_from_thread", broken)

    with pytest.raises(RuntimeError, match="boom"):
        app.deliver_frame(app.tick_loop.build_frame())
    assert not app.tick_loop.is_stopped
