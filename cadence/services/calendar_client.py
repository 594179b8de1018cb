# cadence/services/calendar_client.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from cadence.core.config import get_settings
from cadence.core.errors import CollaboratorFailure
from cadence.schemas.occurrence import OccurrenceEvent

logger = logging.getLogger(__name__)


class CalendarClient:
    """
    Minimal client for the external calendar/video API.

    Responsibilities
    ----------------
    - Create or update the provider event backing a meeting series.
    - Provide thin convenience methods for JSON requests.
    - Avoid leaking HTTP client details into the rest of the codebase.

    Notes
    -----
    - Credentials are a pre-issued bearer token; obtaining and refreshing it
      belongs to the authentication layer, not to this service.
    - Every failure (transport error, non-2xx, or a 2xx body that is not a
      JSON object) surfaces as CollaboratorFailure.
    - A 2xx with an empty body (e.g. 204 on PATCH) counts as success; the
      event keeps the id it already had.
    """

    def __init__(
        self,
        base_url: str,
        access_token: str,
        calendar_id: str = "primary",
        timeout_seconds: float = 10.0,
    ) -> None:
        if not base_url or not access_token:
            raise ValueError("base_url and access_token are required")

        self._base_url = base_url.rstrip("/")
        self._access_token = access_token
        self._calendar_id = calendar_id
        self._timeout_seconds = timeout_seconds

    @property
    def events_path(self) -> str:
        return f"/calendars/{self._calendar_id}/events"

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> httpx.Response:
        """
        Low-level helper for issuing an authenticated HTTP request.

        Parameters
        ----------
        method:
            HTTP method (GET, POST, PATCH, ...).
        path:
            Either an absolute URL or a path relative to the configured base_url.
        params:
            Optional query string parameters.
        json:
            Optional JSON body.
        """
        if path.startswith("http://") or path.startswith("https://"):
            url = path
        else:
            url = f"{self._base_url}/{path.lstrip('/')}"

        headers = {
            "Authorization": f"Bearer {self._access_token}",
            "Accept": "application/json",
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                resp = await client.request(
                    method=method.upper(),
                    url=url,
                    headers=headers,
                    params=params,
                    json=json,
                )
        except httpx.HTTPError as exc:
            raise CollaboratorFailure(f"Calendar {method.upper()} {url} failed: {exc}") from exc

        return resp

    async def post_json(self, path: str, *, json: Any = None) -> Dict[str, Any]:
        """
        Issue a POST request and return the JSON payload.

        Raises CollaboratorFailure on non-2xx responses or a non-JSON body.
        """
        resp = await self._request("POST", path, json=json)
        if resp.status_code // 100 != 2:
            raise CollaboratorFailure(
                f"Calendar POST failed (status={resp.status_code}): {resp.text}"
            )
        return _json_body(resp, "POST")

    async def patch_json(self, path: str, *, json: Any = None) -> Dict[str, Any]:
        """
        Issue a PATCH request and return the JSON payload.

        Raises CollaboratorFailure on non-2xx responses or a non-JSON body.
        """
        resp = await self._request("PATCH", path, json=json)
        if resp.status_code // 100 != 2:
            raise CollaboratorFailure(
                f"Calendar PATCH failed (status={resp.status_code}): {resp.text}"
            )
        return _json_body(resp, "PATCH")

    async def upsert_occurrence(self, event: OccurrenceEvent) -> str:
        """
        Create the provider event for a series, or move an existing one to
        the given occurrence. Returns the provider's event id.
        """
        body = build_event_body(event)

        if event.external_event_id:
            payload = await self.patch_json(
                f"{self.events_path}/{event.external_event_id}",
                json=body,
            )
        else:
            payload = await self.post_json(self.events_path, json=body)

        event_id = payload.get("id") or event.external_event_id
        if not event_id:
            raise CollaboratorFailure("Calendar response did not include an event id")
        logger.debug(
            "Calendar event %s now at %s for series %s",
            event_id,
            event.start_utc.isoformat(),
            event.series_id,
        )
        return str(event_id)


def _json_body(resp: httpx.Response, method: str) -> Dict[str, Any]:
    """
    JSON object of a 2xx response; an empty body yields {}.
    """
    if not resp.content:
        return {}
    try:
        payload = resp.json()
    except ValueError as exc:
        raise CollaboratorFailure(
            f"Calendar {method} returned a non-JSON body (status={resp.status_code})"
        ) from exc
    if not isinstance(payload, dict):
        raise CollaboratorFailure(
            f"Calendar {method} returned unexpected JSON (status={resp.status_code})"
        )
    return payload


def build_event_body(event: OccurrenceEvent) -> Dict[str, Any]:
    """
    Provider payload for an occurrence: UTC instants plus the series zone,
    so recurrence expansion happens in local time on the provider side.
    """
    body: Dict[str, Any] = {
        "summary": event.title,
        "start": {"dateTime": event.start_utc.isoformat(), "timeZone": event.timezone},
        "end": {"dateTime": event.end_utc.isoformat(), "timeZone": event.timezone},
        "extendedProperties": {
            "private": {"groupId": event.group_id, "seriesId": str(event.series_id)},
        },
    }
    if event.recurrence:
        body["recurrence"] = [event.recurrence]
    return body


# Simple singleton-style accessor wired to app settings
_calendar_client_instance: Optional[CalendarClient] = None


def get_calendar_client() -> CalendarClient:
    """
    Lazily construct a CalendarClient using application settings.

    Raises CollaboratorFailure when the calendar API is not configured.
    """
    global _calendar_client_instance
    if _calendar_client_instance is None:
        settings = get_settings()
        if not settings.CALENDAR_API_BASE_URL or not settings.CALENDAR_API_TOKEN:
            raise CollaboratorFailure(
                "CALENDAR_API_BASE_URL and CALENDAR_API_TOKEN must be configured "
                "in settings to use the calendar client."
            )
        _calendar_client_instance = CalendarClient(
            base_url=str(settings.CALENDAR_API_BASE_URL),
            access_token=settings.CALENDAR_API_TOKEN,
            calendar_id=settings.CALENDAR_ID,
            timeout_seconds=settings.CALENDAR_TIMEOUT_SECONDS,
        )
    return _calendar_client_instance
