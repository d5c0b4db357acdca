"""Verification Test: Chaos Monkey - Random process termination resilience.

Processes may exit at any point while the process list is being read.
The metric source must skip them instead of raising NoSuchProcess, and a
tick loop sampling the real system must keep running throughout.
"""

import multiprocessing
import random
import threading
import time

from cputop.loop import Frame, KeyQueue, TickLoop
from cputop.monitor import PsutilMetricSource


def dummy_worker(duration: float = 60.0) -> None:
    """A dummy worker process that sleeps for a given duration."""
    try:
        time.sleep(duration)
    except (KeyboardInterrupt, SystemExit):
        pass


class CountingRenderer:
    """Renderer that only remembers the latest frame."""

    def __init__(self) -> None:
        self.count = 0
        self.last: Frame | None = None

    def render(self, frame: Frame) -> None:
        self.count += 1
        self.last = frame


def spawn(count: int, duration: float = 60.0) -> list[multiprocessing.Process]:
    """Start ``count`` sleeping processes."""
    processes = []
    for _ in range(count):
        p = multiprocessing.Process(target=dummy_worker, args=(duration,))
        p.start()
        processes.append(p)
    return processes


def reap(processes: list[multiprocessing.Process]) -> None:
    """Terminate and join all processes."""
    for p in processes:
        if p.is_alive():
            p.terminate()
    for p in processes:
        p.join(timeout=1.0)


class TestChaosMonkey:
    """Chaos Monkey verification suite tests."""

    def test_refresh_survives_process_termination(self):
        """
        Test that refreshing doesn't crash when processes die mid-read.

        Processes are terminated between and during refreshes.
        """
        processes = spawn(30)
        source = PsutilMetricSource()

        try:
            snapshot = source.refresh_processes()
            spawned = {p.pid for p in processes}
            assert spawned <= {r.pid for r in snapshot}

            victims = random.sample(processes, 15)

            def kill_all() -> None:
                for p in victims:
                    p.terminate()
                    time.sleep(0.01)

            killer = threading.Thread(target=kill_all, daemon=True)
            killer.start()

            for _ in range(10):
                snapshot = source.refresh_processes()
                assert isinstance(snapshot, list)

            killer.join(timeout=5.0)
            for p in victims:
                p.join(timeout=1.0)

            # Terminated processes are gone from the next snapshot
            remaining = {r.pid for r in source.refresh_processes()}
            assert not {p.pid for p in victims} & remaining
        finally:
            reap(processes)

    def test_tick_loop_runs_during_churn(self):
        """Test a real tick loop keeps ticking while processes come and go."""
        renderer = CountingRenderer()
        loop = TickLoop(
            PsutilMetricSource(),
            renderer,
            KeyQueue(),
            process_refresh_interval=2,
            poll_timeout=0.005,
        )
        thread = threading.Thread(target=loop.run, daemon=True)
        thread.start()

        try:
            for _ in range(5):
                batch = spawn(5, duration=0.2)
                time.sleep(0.05)
                reap(batch)
        finally:
            loop.stop()
            thread.join(timeout=5.0)

        assert not thread.is_alive()
        assert renderer.count > 0
        assert len(loop.history) == loop.ticks
        assert renderer.last is not None
        assert len(renderer.last.rows) > 0
