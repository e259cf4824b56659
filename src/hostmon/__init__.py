"""
hostmon - Host resource monitor.

This package samples host metrics (CPU, memory, load, disk and network I/O)
on a fixed interval, stores them in SQLite and serves time-range queries
over HTTP.
"""

__version__ = "0.1.0"
