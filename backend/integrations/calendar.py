"""HTTP client for the shared leave calendar.

Events are keyed by the leave request id: created with ``POST /events`` and
then addressed as ``/events/{reference_id}``.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Optional

import httpx

from backend.config import settings
from backend.leave.interfaces import CalendarEvent

logger = logging.getLogger(__name__)


class CalendarSyncError(Exception):
    """The calendar service answered with a non-success status."""

    def __init__(self, method: str, url: str, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(f"{method} {url} -> HTTP {status_code}")


def event_payload(event: CalendarEvent) -> dict[str, Any]:
    return {
        "reference_id": str(event.reference_id),
        "owner_id": str(event.owner_id),
        "title": event.title,
        "description": event.description,
        "event_type": event.event_type,
        "start_time": event.starts_at.isoformat(),
        "end_time": event.ends_at.isoformat(),
    }


class HttpCalendarSink:
    """:class:`~backend.leave.interfaces.CalendarSink` over a JSON REST API."""

    def __init__(
        self,
        base_url: str,
        *,
        token: str = "",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def _send(
        self,
        method: str,
        path: str,
        *,
        json: Optional[dict[str, Any]] = None,
        allow_missing: bool = False,
    ) -> None:
        async with self._client() as client:
            resp = await client.request(method, path, json=json)

        if allow_missing and resp.status_code == 404:
            logger.info("Calendar event %s already absent", path)
            return
        if resp.status_code >= 400:
            raise CalendarSyncError(method, path, resp.status_code)
        logger.debug("Calendar %s %s -> %d", method, path, resp.status_code)

    async def create_event(self, event: CalendarEvent) -> None:
        await self._send("POST", "/events", json=event_payload(event))

    async def update_event(self, event: CalendarEvent) -> None:
        await self._send("PUT", f"/events/{event.reference_id}", json=event_payload(event))

    async def delete_event(self, reference_id: uuid.UUID) -> None:
        await self._send("DELETE", f"/events/{reference_id}", allow_missing=True)


def build_calendar_sink() -> Optional[HttpCalendarSink]:
    """Sink configured from settings, or None when calendar sync is disabled."""
    if not settings.CALENDAR_API_URL:
        return None
    return HttpCalendarSink(
        settings.CALENDAR_API_URL,
        token=settings.CALENDAR_API_TOKEN,
        timeout=settings.CALENDAR_TIMEOUT_SECONDS,
    )
