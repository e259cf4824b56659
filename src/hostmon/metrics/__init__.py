"""
Metrics module for the hostmon service.

Components:
- reader: psutil-based probes producing one Sample per call
- storage: SQLite append-only sample store
- collector: Background sampling loop using asyncio
- timerange: RFC 3339 range parsing and offset normalization
- query: Time-range query service
"""

from hostmon.metrics.collector import Collector, CollectorState, CollectorStatus
from hostmon.metrics.query import QueryService
from hostmon.metrics.reader import MetricReader
from hostmon.metrics.storage import Sample, SampleStore

__all__ = [
    "Collector",
    "CollectorState",
    "CollectorStatus",
    "MetricReader",
    "QueryService",
    "Sample",
    "SampleStore",
]
