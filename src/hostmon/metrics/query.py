"""
Time-range query service.

QueryService.handle() turns raw start/end parameters into a JSON body and a
status code:
- 400 for malformed or inconsistent ranges (no storage access happens)
- 500 for storage failures
- 200 with an explicit message when the range holds no samples
- 200 with the ordered list of samples otherwise
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from hostmon.errors import InvalidArgumentError, StorageError
from hostmon.logging import get_logger
from hostmon.metrics.timerange import parse_time_range

if TYPE_CHECKING:
    from hostmon.metrics.storage import SampleStore

logger = get_logger(__name__)

NO_DATA_MESSAGE = "No monitor data available for the specified time range"

HTTP_OK = 200

ResponseBody = dict[str, Any] | list[dict[str, Any]]


class QueryService:
    """Validates time ranges and serves samples from a SampleStore."""

    def __init__(self, store: SampleStore, reference_tz: timezone = timezone.utc) -> None:
        self._store = store
        self.reference_tz = reference_tz

    async def handle(
        self,
        start_time: str | None,
        end_time: str | None,
        *,
        now: datetime | None = None,
    ) -> tuple[ResponseBody, int]:
        """
        Answer one range query.

        Args:
            start_time: Raw RFC 3339 start bound, or None.
            end_time: Raw RFC 3339 end bound, or None.
            now: Override of the current instant for the default range.

        Returns:
            Tuple of (JSON-serializable body, HTTP status code).
        """
        try:
            time_range = parse_time_range(
                start_time, end_time, self.reference_tz, now=now
            )
        except InvalidArgumentError as e:
            logger.info(
                "Rejected monitor query",
                extra={"start_time": start_time, "end_time": end_time, "error": e.message},
            )
            return {"error": e.message, "details": e.details}, e.http_status

        try:
            samples = await self._store.query(time_range.start, time_range.end)
        except StorageError as e:
            logger.error(
                "Monitor query failed",
                extra={"error": e.message, "error_code": e.error_code},
            )
            return {"error": e.message}, e.http_status

        logger.debug(
            "Monitor query served",
            extra={
                "start_time": time_range.start.isoformat() if time_range.start else None,
                "end_time": time_range.end.isoformat() if time_range.end else None,
                "count": len(samples),
            },
        )

        if not samples:
            return {"message": NO_DATA_MESSAGE}, HTTP_OK

        return [sample.to_dict() for sample in samples], HTTP_OK
