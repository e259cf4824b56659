"""
Process entry point for the hostmon service.

Startup order: load configuration, set up logging, open the sample store
(failure is fatal), then serve HTTP with the collector running in the
background. The store is closed after the server returns.
"""

from __future__ import annotations

import asyncio
import sys

import uvicorn

from hostmon.config import AppConfig, load_config
from hostmon.errors import StorageError
from hostmon.logging import get_logger, setup_logging
from hostmon.metrics.collector import Collector
from hostmon.metrics.reader import MetricReader
from hostmon.metrics.storage import SampleStore
from hostmon.server import create_app

logger = get_logger(__name__)


async def serve(config: AppConfig) -> None:
    """
    Run the collector and HTTP server until shutdown.

    Raises:
        StorageError: If the store cannot be initialized.
    """
    reference_tz = config.time.tzinfo
    store = SampleStore(
        config.storage.path,
        reference_tz=reference_tz,
        timeout_seconds=config.storage.timeout_seconds,
    )
    await store.initialize()

    collector = None
    if config.collector.enabled:
        collector = Collector(
            store,
            MetricReader(reference_tz, cpu_interval=config.collector.cpu_sample_seconds),
            interval_seconds=config.collector.interval_seconds,
            reference_tz=reference_tz,
        )

    app = create_app(store, collector=collector)
    server = uvicorn.Server(
        uvicorn.Config(
            app,
            host=config.server.host,
            port=config.server.port,
            log_level=config.server.log_level,
            log_config=None,
        )
    )

    logger.info(
        "hostmon starting",
        extra={
            "listen": config.server.listen,
            "db_path": config.storage.path,
            "utc_offset": config.time.utc_offset,
            "collector_enabled": config.collector.enabled,
        },
    )
    try:
        await server.serve()
    finally:
        await store.close()
        logger.info("hostmon stopped")


def main(argv: list[str] | None = None) -> int:
    """Console script entry point."""
    config = load_config(cli_args=argv)
    setup_logging(config.logging)

    try:
        asyncio.run(serve(config))
    except StorageError as e:
        logger.critical(
            "Sample store unavailable, aborting",
            extra={"error": e.message, "details": e.details},
        )
        return 1
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
