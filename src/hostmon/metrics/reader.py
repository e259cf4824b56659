"""
Host metric reader built on psutil.

One call to MetricReader.read() produces one Sample. Each subsystem is read
by an independent probe; if any probe fails the whole read fails with a
ProbeError naming that probe. There is no partial sample and no retry.

Disk and network values are cumulative byte counters summed over every
device or interface, not per-interval rates.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

import psutil

from hostmon.errors import ProbeError
from hostmon.logging import get_logger
from hostmon.metrics.storage import Sample

logger = get_logger(__name__)

# Probe names reported in ProbeError.details["probe"]
PROBE_CPU = "cpu"
PROBE_MEMORY = "memory"
PROBE_LOAD = "load"
PROBE_DISK = "disk"
PROBE_NETWORK = "network"

DEFAULT_CPU_INTERVAL = 0.1  # seconds


def read_cpu_usage(interval: float = DEFAULT_CPU_INTERVAL) -> float:
    """Aggregate CPU usage percentage over a short blocking window."""
    return float(psutil.cpu_percent(interval=interval))


def read_memory_usage() -> float:
    """Virtual memory usage percentage."""
    return float(psutil.virtual_memory().percent)


def read_load_average() -> float:
    """1-minute load average."""
    return float(psutil.getloadavg()[0])


def read_disk_io() -> float:
    """Total bytes read plus written across all disks."""
    counters = psutil.disk_io_counters(perdisk=True) or {}
    return float(sum(c.read_bytes + c.write_bytes for c in counters.values()))


def read_network_io() -> float:
    """Total bytes sent plus received across all interfaces."""
    counters = psutil.net_io_counters(pernic=True) or {}
    return float(sum(c.bytes_sent + c.bytes_recv for c in counters.values()))


class MetricReader:
    """
    Produces one normalized Sample per invocation.

    Example:
        >>> reader = MetricReader(timezone.utc)
        >>> sample = reader.read()
        >>> sample.cpu_usage
        12.5
    """

    def __init__(
        self,
        reference_tz: timezone = timezone.utc,
        cpu_interval: float = DEFAULT_CPU_INTERVAL,
    ) -> None:
        self.reference_tz = reference_tz
        self.cpu_interval = cpu_interval

    def _probe(self, name: str, func: Callable[[], float]) -> float:
        try:
            return func()
        except (psutil.Error, OSError, RuntimeError, AttributeError) as e:
            logger.debug("Probe failed", extra={"probe": name, "error": str(e)})
            raise ProbeError(
                name,
                f"Failed to read {name} metrics: {e}",
                details={"error": str(e)},
            ) from e

    def read(self) -> Sample:
        """
        Read all probes and build a Sample.

        Returns:
            A Sample without an ID, timestamped in the reference offset.

        Raises:
            ProbeError: If any probe fails.
        """
        timestamp = datetime.now(self.reference_tz)
        cpu_usage = self._probe(PROBE_CPU, lambda: read_cpu_usage(self.cpu_interval))
        mem_usage = self._probe(PROBE_MEMORY, read_memory_usage)
        load_average = self._probe(PROBE_LOAD, read_load_average)
        disk_io = self._probe(PROBE_DISK, read_disk_io)
        network_io = self._probe(PROBE_NETWORK, read_network_io)

        return Sample(
            timestamp=timestamp,
            cpu_usage=cpu_usage,
            mem_usage=mem_usage,
            load_average=load_average,
            disk_io=disk_io,
            network_io=network_io,
        )
