"""
SQLite storage layer for monitor samples.

This module implements the SampleStore class that handles:
- SQLite database initialization with proper schema
- Appending samples (append-only, no update or delete)
- Querying samples by inclusive time range

Concurrency model:
    Every operation is serialized through one asyncio.Lock owned by the
    store and executed on a single dedicated worker thread that owns the
    connection. A call that exceeds the configured timeout raises
    StorageTimeoutError; the worker still finishes it before running the
    next call, so two statements never overlap.

SQLite Schema:
    CREATE TABLE monitor_samples (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        timestamp INTEGER,       -- microseconds since the Unix epoch
        cpu_usage REAL,
        mem_usage REAL,
        load_average REAL,
        disk_io REAL,            -- cumulative bytes, all disks
        network_io REAL          -- cumulative bytes, all interfaces
    );
    CREATE INDEX idx_monitor_samples_timestamp ON monitor_samples(timestamp);
"""

from __future__ import annotations

import asyncio
import sqlite3
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, TypeVar

from hostmon.errors import StorageError, StorageTimeoutError
from hostmon.logging import get_logger
from hostmon.metrics.timerange import normalize

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT_SECONDS = 5.0

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MICROSECOND = timedelta(microseconds=1)


def to_epoch_micros(instant: datetime) -> int:
    """Convert an aware datetime to integer microseconds since the epoch."""
    return (normalize(instant, timezone.utc) - _EPOCH) // _MICROSECOND


def from_epoch_micros(value: int, reference_tz: timezone) -> datetime:
    """Convert epoch microseconds back to an aware datetime in reference_tz."""
    return (_EPOCH + value * _MICROSECOND).astimezone(reference_tz)

# =============================================================================
# Data Models
# =============================================================================


@dataclass
class Sample:
    """A single host resource sample.

    Attributes:
        timestamp: Aware datetime the sample represents.
        cpu_usage: CPU usage percentage over the sampling window.
        mem_usage: Virtual memory usage percentage.
        load_average: 1-minute load average.
        disk_io: Cumulative bytes read plus written, summed over all disks.
        network_io: Cumulative bytes sent plus received, summed over all interfaces.
        id: Database ID (set after insertion).
    """

    timestamp: datetime
    cpu_usage: float
    mem_usage: float
    load_average: float
    disk_io: float
    network_io: float
    id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "cpu_usage": self.cpu_usage,
            "mem_usage": self.mem_usage,
            "load_average": self.load_average,
            "disk_io": self.disk_io,
            "network_io": self.network_io,
        }


# =============================================================================
# SQLite Schema
# =============================================================================

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS monitor_samples (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp INTEGER NOT NULL,
    cpu_usage REAL NOT NULL,
    mem_usage REAL NOT NULL,
    load_average REAL NOT NULL,
    disk_io REAL NOT NULL,
    network_io REAL NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_monitor_samples_timestamp
    ON monitor_samples(timestamp);
"""

_COLUMNS = "id, timestamp, cpu_usage, mem_usage, load_average, disk_io, network_io"


# =============================================================================
# SampleStore Class
# =============================================================================


class SampleStore:
    """
    Concurrency-guarded, append-only store for monitor samples.

    The collector and the query path share one instance. Callers never
    manage locking themselves.

    Example:
        >>> store = SampleStore("/var/lib/hostmon/monitor.db")
        >>> await store.initialize()
        >>> await store.append(sample)
        >>> samples = await store.query(start, end)
        >>> await store.close()
    """

    def __init__(
        self,
        db_path: str | Path,
        *,
        reference_tz: timezone = timezone.utc,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        """
        Initialize the SampleStore.

        Args:
            db_path: Path to the SQLite database file.
            reference_tz: Offset timestamps are normalized to.
            timeout_seconds: Upper bound for a single storage call.
        """
        self.db_path = Path(db_path)
        self.reference_tz = reference_tz
        self.timeout_seconds = timeout_seconds
        self._conn: sqlite3.Connection | None = None
        self._executor: ThreadPoolExecutor | None = None
        self._lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        """Whether the connection is open."""
        return self._conn is not None

    async def _run(self, operation: str, func: Callable[[], T]) -> T:
        """
        Run a blocking call on the worker thread under the store lock.

        A timeout only abandons the wait. The call itself keeps running on the
        worker thread and its effects still land, before any later call starts.
        """
        async with self._lock:
            if self._conn is None or self._executor is None:
                raise StorageError(
                    "Sample store is not initialized",
                    details={"operation": operation, "db_path": str(self.db_path)},
                )
            future = asyncio.get_running_loop().run_in_executor(self._executor, func)
            try:
                return await asyncio.wait_for(future, timeout=self.timeout_seconds)
            except TimeoutError as e:
                logger.error(
                    "Storage call timed out",
                    extra={"operation": operation, "timeout_seconds": self.timeout_seconds},
                )
                raise StorageTimeoutError(
                    f"Storage {operation} timed out after {self.timeout_seconds}s",
                    details={"operation": operation},
                ) from e
            except sqlite3.Error as e:
                logger.error(
                    "Storage call failed",
                    extra={"operation": operation, "error": str(e)},
                )
                raise StorageError(
                    f"Failed to {operation} samples: {e}",
                    details={"operation": operation},
                ) from e

    async def initialize(self) -> None:
        """
        Open the database and create the schema.

        Idempotent and safe to call multiple times.

        Raises:
            StorageError: If the database cannot be initialized.
        """
        async with self._lock:
            if self._conn is not None:
                return

            executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="hostmon-store")

            def _open() -> sqlite3.Connection:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                conn = sqlite3.connect(str(self.db_path), timeout=self.timeout_seconds)
                conn.row_factory = sqlite3.Row
                try:
                    conn.execute("PRAGMA journal_mode=WAL")
                    conn.executescript(SCHEMA_SQL)
                    conn.commit()
                except sqlite3.Error:
                    conn.close()
                    raise
                return conn

            try:
                self._conn = await asyncio.get_running_loop().run_in_executor(executor, _open)
            except (sqlite3.Error, OSError) as e:
                executor.shutdown(wait=False)
                logger.error(
                    "Failed to initialize sample database",
                    extra={"db_path": str(self.db_path), "error": str(e)},
                )
                raise StorageError(
                    f"Failed to initialize sample database: {e}",
                    details={"db_path": str(self.db_path)},
                ) from e

            self._executor = executor
            logger.info(
                "Sample database initialized",
                extra={"db_path": str(self.db_path)},
            )

    async def append(self, sample: Sample) -> int:
        """
        Persist exactly one sample and assign its ID.

        The sample timestamp is normalized to the reference offset first.

        If the call times out the insert is not rolled back: the row is
        committed once the worker thread reaches it and shows up in later
        queries, even though the caller saw StorageTimeoutError.

        Args:
            sample: The Sample to insert.

        Returns:
            The database ID of the inserted sample.

        Raises:
            StorageError: If the write fails or times out.
        """
        sample.timestamp = normalize(sample.timestamp, self.reference_tz)

        def _insert() -> int:
            assert self._conn is not None
            cursor = self._conn.execute(
                """
                INSERT INTO monitor_samples
                    (timestamp, cpu_usage, mem_usage, load_average, disk_io, network_io)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    to_epoch_micros(sample.timestamp),
                    sample.cpu_usage,
                    sample.mem_usage,
                    sample.load_average,
                    sample.disk_io,
                    sample.network_io,
                ),
            )
            self._conn.commit()
            return cursor.lastrowid or 0

        sample.id = await self._run("append", _insert)
        return sample.id

    async def query(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Sample]:
        """
        Return samples whose timestamp lies in [start, end].

        Note: The range is inclusive on both ends. A None bound leaves that
        side unconstrained. Results are in insertion (ascending ID) order.

        Args:
            start: Inclusive lower bound, aware datetime.
            end: Inclusive upper bound, aware datetime.

        Returns:
            List of Sample objects.

        Raises:
            StorageError: If the query fails or times out.
        """
        conditions = []
        params: list[Any] = []

        if start is not None:
            conditions.append("timestamp >= ?")
            params.append(to_epoch_micros(start))

        if end is not None:
            conditions.append("timestamp <= ?")
            params.append(to_epoch_micros(end))

        where_clause = " WHERE " + " AND ".join(conditions) if conditions else ""
        sql = f"SELECT {_COLUMNS} FROM monitor_samples{where_clause} ORDER BY id ASC"

        def _query() -> list[sqlite3.Row]:
            assert self._conn is not None
            return self._conn.execute(sql, params).fetchall()

        rows = await self._run("query", _query)
        return [self._row_to_sample(row) for row in rows]

    async def count(self) -> int:
        """
        Get the total number of stored samples.

        Raises:
            StorageError: If the query fails or times out.
        """

        def _count() -> int:
            assert self._conn is not None
            row = self._conn.execute("SELECT COUNT(*) AS count FROM monitor_samples").fetchone()
            return row["count"]

        return await self._run("count", _count)

    async def close(self) -> None:
        """Close the connection and release the worker thread."""
        async with self._lock:
            conn, executor = self._conn, self._executor
            self._conn = None
            self._executor = None
            if executor is None:
                return
            if conn is not None:
                await asyncio.get_running_loop().run_in_executor(executor, conn.close)
            executor.shutdown(wait=False)
            logger.debug("Sample store closed", extra={"db_path": str(self.db_path)})

    def _row_to_sample(self, row: sqlite3.Row) -> Sample:
        return Sample(
            id=row["id"],
            timestamp=from_epoch_micros(row["timestamp"], self.reference_tz),
            cpu_usage=row["cpu_usage"],
            mem_usage=row["mem_usage"],
            load_average=row["load_average"],
            disk_io=row["disk_io"],
            network_io=row["network_io"],
        )
