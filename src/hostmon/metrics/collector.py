"""
Background sample collector using asyncio.

The collector runs one perpetual cycle, WAIT(interval) -> SAMPLE -> PERSIST,
until it is stopped. A failed tick is logged and skipped; the loop never
exits because of a single failure and never retries a tick immediately.
"""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

from hostmon.errors import FailedPreconditionError, InvalidArgumentError
from hostmon.logging import get_logger

if TYPE_CHECKING:
    from hostmon.metrics.reader import MetricReader
    from hostmon.metrics.storage import Sample, SampleStore

logger = get_logger(__name__)

DEFAULT_INTERVAL_SECONDS = 1.0
STOP_TIMEOUT_SECONDS = 10.0


class CollectorStatus(str, Enum):
    """Status of the collector."""

    STOPPED = "stopped"
    RUNNING = "running"
    STOPPING = "stopping"


@dataclass
class CollectorState:
    """
    Snapshot of the collector state.

    Attributes:
        status: Current collector status.
        interval_seconds: Time between ticks.
        started_at: When the collector was started.
        last_sample_at: Timestamp of the last persisted sample.
        sample_count: Number of samples persisted since start.
        error_count: Number of failed ticks since start.
        last_error: Message of the last failure, if any.
    """

    status: CollectorStatus = CollectorStatus.STOPPED
    interval_seconds: float = DEFAULT_INTERVAL_SECONDS
    started_at: datetime | None = None
    last_sample_at: datetime | None = None
    sample_count: int = 0
    error_count: int = 0
    last_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "status": self.status.value,
            "interval_seconds": self.interval_seconds,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "last_sample_at": (
                self.last_sample_at.isoformat() if self.last_sample_at else None
            ),
            "sample_count": self.sample_count,
            "error_count": self.error_count,
            "last_error": self.last_error,
        }


class Collector:
    """
    Fixed-interval sampler feeding a SampleStore.

    Example:
        >>> collector = Collector(store, MetricReader(tz), interval_seconds=1.0, reference_tz=tz)
        >>> await collector.start()
        >>> await collector.stop()
    """

    def __init__(
        self,
        store: SampleStore,
        reader: MetricReader,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        reference_tz: timezone = timezone.utc,
    ) -> None:
        """
        Initialize the Collector.

        Args:
            store: Store receiving every sample.
            reader: Reader producing one sample per tick.
            interval_seconds: Time between ticks, must be positive.
            reference_tz: Offset used for the start timestamp.

        Raises:
            InvalidArgumentError: If the interval is not positive.
        """
        if interval_seconds <= 0:
            raise InvalidArgumentError(
                "interval_seconds must be positive",
                details={"interval_seconds": interval_seconds},
            )
        self._store = store
        self._reader = reader
        self._reference_tz = reference_tz
        self._state = CollectorState(interval_seconds=interval_seconds)
        self._task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()

    @property
    def is_running(self) -> bool:
        """Check if the collector is currently running."""
        return self._state.status == CollectorStatus.RUNNING

    def get_status(self) -> CollectorState:
        """Return a copy of the current state."""
        return CollectorState(**vars(self._state))

    async def start(self) -> CollectorState:
        """
        Start the background collection task.

        Raises:
            FailedPreconditionError: If the collector is already running.
        """
        if self._task is not None:
            raise FailedPreconditionError(
                "Collector is already running",
                details={"status": self._state.status.value},
            )

        self._state.status = CollectorStatus.RUNNING
        self._state.started_at = datetime.now(self._reference_tz)
        self._state.sample_count = 0
        self._state.error_count = 0
        self._state.last_error = None
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run(), name="hostmon-collector")

        logger.info(
            "Collector started",
            extra={"interval_seconds": self._state.interval_seconds},
        )
        return self.get_status()

    async def stop(self) -> CollectorState:
        """
        Stop the collection task.

        An in-flight tick gets up to STOP_TIMEOUT_SECONDS to finish before
        the task is cancelled.
        """
        if self._task is None:
            return self.get_status()

        self._state.status = CollectorStatus.STOPPING
        self._stop_event.set()

        try:
            await asyncio.wait_for(asyncio.shield(self._task), timeout=STOP_TIMEOUT_SECONDS)
        except TimeoutError:
            logger.warning("Collector task did not stop gracefully, cancelling")
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        finally:
            self._task = None
            self._state.status = CollectorStatus.STOPPED

        logger.info(
            "Collector stopped",
            extra={
                "sample_count": self._state.sample_count,
                "error_count": self._state.error_count,
            },
        )
        return self.get_status()

    async def tick(self) -> Sample | None:
        """
        Run one SAMPLE + PERSIST cycle.

        Failures are logged and counted, never raised.

        Returns:
            The persisted sample, or None if the tick failed.
        """
        try:
            sample = await asyncio.get_running_loop().run_in_executor(
                None, self._reader.read
            )
            await self._store.append(sample)
        except Exception as e:
            self._state.error_count += 1
            self._state.last_error = str(e)
            logger.error(
                "Collector tick failed",
                extra={"error": str(e), "error_type": type(e).__name__},
            )
            return None

        self._state.sample_count += 1
        self._state.last_sample_at = sample.timestamp
        logger.debug("Sample persisted", extra={"sample_id": sample.id})
        return sample

    async def _run(self) -> None:
        """Main loop: wait for the interval or the stop signal, then tick."""
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(),
                    timeout=self._state.interval_seconds,
                )
                break
            except TimeoutError:
                pass

            await self.tick()
