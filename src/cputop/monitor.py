"""Metric sources feeding the tick loop."""

import time
from typing import Protocol

import psutil
import structlog

from cputop.models import ProcessRecord

log = structlog.get_logger(__name__)


class MetricSource(Protocol):
    """Point-in-time CPU and process readings."""

    def refresh_cpu(self) -> float:
        """Return global CPU utilisation in percent."""
        ...

    def refresh_processes(self) -> list[ProcessRecord]:
        """Return a fresh snapshot of the process list."""
        ...


class PsutilMetricSource:
    """
    Metric source backed by psutil.

    CPU readings are non-blocking (``interval=None``): each call reports
    usage since the previous call. Calls closer together than
    ``cpu_min_interval`` return the previous reading, since shorter windows
    mostly measure scheduler tick granularity.
    """

    def __init__(self, cpu_min_interval: float = 0.2) -> None:
        """
        Initialize the PsutilMetricSource.

        Args:
            cpu_min_interval: Shortest window (seconds) between two real
                CPU measurements. Default 0.2s.
        """
        self._cpu_min_interval = max(0.0, cpu_min_interval)
        # First call returns 0.0, it only establishes the baseline
        psutil.cpu_percent(interval=None)
        self._last_cpu = 0.0
        self._last_cpu_time = time.monotonic()

    @property
    def cpu_min_interval(self) -> float:
        """Get the minimum CPU measurement window."""
        return self._cpu_min_interval

    def refresh_cpu(self) -> float:
        """Return global CPU usage, re-measured at most every cpu_min_interval."""
        now = time.monotonic()
        if now - self._last_cpu_time >= self._cpu_min_interval:
            self._last_cpu = float(psutil.cpu_percent(interval=None))
            self._last_cpu_time = now
        return self._last_cpu

    def refresh_processes(self) -> list[ProcessRecord]:
        """
        Collect a snapshot of all running processes.

        Processes that exit or deny access mid-read are skipped. A process
        whose CPU usage cannot be read is kept with ``cpu_percent=None``.
        """
        started = time.perf_counter()
        processes: list[ProcessRecord] = []
        seen: set[int] = set()

        for proc in psutil.process_iter(attrs=["pid", "name", "cpu_percent"]):
            try:
                info = proc.info
                pid = info.get("pid", proc.pid)
                if pid in seen:
                    continue
                seen.add(pid)
                processes.append(
                    ProcessRecord(
                        pid=pid,
                        name=info.get("name") or "",
                        cpu_percent=info.get("cpu_percent"),
                    )
                )
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue

        log.debug(
            "processes_refreshed",
            count=len(processes),
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return processes
