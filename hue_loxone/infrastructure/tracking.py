"""Request tracking for upstream Hue API calls.

This module provides the RequestTracker class that tracks:
- Request counts per resource kind per minute and per hour
- Last request timestamp per resource kind
- Total request counts

The transport records every attempt, so retries show up in the counts.
This makes it visible how close the bridge runs to the Hue rate limits.
"""

import logging
import time
from collections import deque

from pydantic import BaseModel, Field

_LOGGER = logging.getLogger(__name__)


class ResourceStats(BaseModel):
    """Request statistics for a single resource kind.

    Attributes:
        request_timestamps: FIFO queue of request timestamps (monotonic time).
        total_count: Total number of requests since creation.
        last_request_time: Timestamp of most recent request.
    """

    model_config = {"validate_assignment": True, "arbitrary_types_allowed": True}

    request_timestamps: deque[float] = Field(
        default_factory=deque,
        description="FIFO queue of request timestamps (monotonic time)",
    )
    total_count: int = Field(default=0, ge=0, description="Total number of requests since creation")
    last_request_time: float = Field(default=0.0, ge=0.0, description="Timestamp of most recent request")

    def record(self, timestamp: float) -> None:
        self.request_timestamps.append(timestamp)
        self.total_count += 1
        self.last_request_time = timestamp

    def drop_before(self, cutoff: float) -> int:
        """Remove timestamps older than cutoff and return how many were removed."""
        removed = 0
        while self.request_timestamps and self.request_timestamps[0] < cutoff:
            self.request_timestamps.popleft()
            removed += 1
        return removed


class RequestTracker:
    """Tracks upstream request rates per resource kind."""

    MINUTE_WINDOW = 60.0
    HOUR_WINDOW = 3600.0

    def __init__(self):
        self._resources: dict[str, ResourceStats] = {}

    def _get_current_time(self) -> float:
        return time.monotonic()

    def record_request(self, resource_kind: str) -> None:
        """Record one upstream request for a resource kind.

        Args:
            resource_kind: Hue resource type (light, grouped_light, scene, ...).
        """
        stats = self._resources.setdefault(resource_kind, ResourceStats())
        stats.record(self._get_current_time())
        _LOGGER.debug("Recorded request for %s, total=%d", resource_kind, stats.total_count)

    def _window_count(self, resource_kind: str, window: float) -> int:
        stats = self._resources.get(resource_kind)
        if stats is None:
            return 0
        now = self._get_current_time()
        stats.drop_before(now - self.HOUR_WINDOW)
        cutoff = now - window
        return sum(1 for ts in stats.request_timestamps if ts >= cutoff)

    def get_requests_per_minute(self, resource_kind: str) -> int:
        return self._window_count(resource_kind, self.MINUTE_WINDOW)

    def get_requests_per_hour(self, resource_kind: str) -> int:
        return self._window_count(resource_kind, self.HOUR_WINDOW)

    def get_total_requests(self, resource_kind: str) -> int:
        stats = self._resources.get(resource_kind)
        return stats.total_count if stats else 0

    def get_resource_kinds(self) -> list[str]:
        return list(self._resources)

    def get_summary(self) -> dict:
        """Get per-minute, per-hour and total counts for every resource kind.

        Returns:
            Dictionary keyed by resource kind.
        """
        return {
            kind: {
                "per_minute": self.get_requests_per_minute(kind),
                "per_hour": self.get_requests_per_hour(kind),
                "total": self.get_total_requests(kind),
            }
            for kind in self._resources
        }
