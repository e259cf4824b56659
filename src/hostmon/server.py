"""
HTTP server for the hostmon service.

The FastAPI application is a thin transport: it decodes query parameters,
delegates to the QueryService and encodes JSON. The application lifespan
owns the collector; the store is closed by the caller once serving returns.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Query
from fastapi.responses import JSONResponse

import hostmon
from hostmon.errors import StorageError
from hostmon.logging import get_logger
from hostmon.metrics.query import QueryService

if TYPE_CHECKING:
    from hostmon.metrics.collector import Collector
    from hostmon.metrics.storage import SampleStore

logger = get_logger(__name__)


def create_app(
    store: SampleStore,
    query_service: QueryService | None = None,
    collector: Collector | None = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        store: Shared sample store.
        query_service: Query service; built from the store if not provided.
        collector: Optional collector started and stopped with the app.

    Returns:
        Configured FastAPI instance.
    """
    if query_service is None:
        query_service = QueryService(store, store.reference_tz)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        await store.initialize()
        if collector is not None:
            await collector.start()
        try:
            yield
        finally:
            if collector is not None:
                await collector.stop()

    app = FastAPI(title="hostmon", version=hostmon.__version__, lifespan=lifespan)

    @app.get("/health")
    async def health() -> JSONResponse:
        return JSONResponse({"status": "ok"})

    @app.get("/monitor")
    async def get_monitor(
        start_time: str | None = Query(default=None),
        end_time: str | None = Query(default=None),
    ) -> JSONResponse:
        body, status = await query_service.handle(start_time, end_time)
        return JSONResponse(body, status_code=status)

    @app.get("/monitor/status")
    async def get_monitor_status() -> JSONResponse:
        if collector is not None:
            result = collector.get_status().to_dict()
        else:
            result = {"status": "disabled"}
        try:
            result["total_samples_stored"] = await store.count()
        except StorageError as e:
            logger.warning(
                "Could not get storage statistics",
                extra={"error": e.message},
            )
            result["total_samples_stored"] = None
        return JSONResponse(result)

    return app
