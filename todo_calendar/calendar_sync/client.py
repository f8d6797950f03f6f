# PURPOSE: minimal Google Calendar v3 REST client (events on a single calendar).

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from ..config import settings

logger = logging.getLogger(__name__)


class CalendarClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        calendar_id: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = (base_url or settings.CALENDAR_API_BASE_URL).rstrip("/")
        self.calendar_id = calendar_id or settings.CALENDAR_ID
        self.timeout = timeout if timeout is not None else settings.CALENDAR_HTTP_TIMEOUT
        # injectable for tests (httpx.MockTransport)
        self.transport = transport

    def _events_url(self, event_id: Optional[str] = None) -> str:
        url = f"{self.base_url}/calendars/{quote(self.calendar_id, safe='')}/events"
        if event_id:
            url = f"{url}/{quote(event_id, safe='')}"
        return url

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self.timeout, transport=self.transport)

    @staticmethod
    def _headers(access_token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }

    def create_event(self, access_token: str, event: Dict[str, Any]) -> Dict[str, Any]:
        """POST the event; returns the created resource (with its ``id``)."""
        with self._client() as client:
            r = client.post(self._events_url(), headers=self._headers(access_token), json=event)
            r.raise_for_status()
            return r.json()

    def update_event(self, access_token: str, event_id: str, event: Dict[str, Any]) -> Dict[str, Any]:
        with self._client() as client:
            r = client.put(self._events_url(event_id), headers=self._headers(access_token), json=event)
            r.raise_for_status()
            return r.json()

    def delete_event(self, access_token: str, event_id: str) -> None:
        with self._client() as client:
            r = client.delete(
                self._events_url(event_id),
                headers={"Authorization": f"Bearer {access_token}"},
            )
            r.raise_for_status()


def build_event(
    *,
    title: str,
    description: str,
    start: datetime,
    duration_minutes: Optional[int] = None,
    time_zone: Optional[str] = None,
) -> Dict[str, Any]:
    """Event body with a fixed-length slot starting at ``start``."""
    minutes = duration_minutes if duration_minutes is not None else settings.CALENDAR_EVENT_MINUTES
    tz = time_zone or settings.TIMEZONE
    end = start + timedelta(minutes=minutes)
    return {
        "summary": title,
        "description": description,
        "start": {"dateTime": start.isoformat(), "timeZone": tz},
        "end": {"dateTime": end.isoformat(), "timeZone": tz},
    }
