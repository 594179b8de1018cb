# tests/conftest.py
import json
import os
import tempfile
from datetime import date, datetime
from http import HTTPStatus
from typing import Any, Dict, List, Optional

# Point the app at a throwaway SQLite file before anything imports settings.
_TEST_DB_DIR = tempfile.mkdtemp(prefix="cadence-tests-")
os.environ["DB_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TEST_DB_DIR, 'cadence_test.db')}"
os.environ["APP_ENV"] = "test"
for _name in ("INTERNAL_API_KEY", "CALENDAR_API_BASE_URL", "CALENDAR_API_TOKEN"):
    os.environ.pop(_name, None)

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from cadence.db.session import AsyncSessionLocal, reset_schema_sync  # noqa: E402
from cadence.main import create_app  # noqa: E402
from cadence.services.calendar_client import CalendarClient  # noqa: E402
from cadence.services.recurrence import RecurrenceRule  # noqa: E402
from cadence.services.series_state import create_series  # noqa: E402
from cadence.services.series_store import insert_series  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_db():
    """
    Every test starts from an empty schema.
    """
    reset_schema_sync()


@pytest.fixture(scope="session")
def client() -> TestClient:
    """
    Shared TestClient built through the application factory.
    """
    app = create_app()
    with TestClient(app) as test_client:
        yield test_client


@pytest_asyncio.fixture
async def db_session():
    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture
def series_factory():
    """
    Insert a series directly through the store, bypassing the API.
    """

    async def _create(
        db,
        *,
        group_id: str = "group-1",
        title: str = "Study group",
        pattern: str = "weekly",
        interval: int = 1,
        days_of_week=(1,),
        end_date: date | None = None,
        timezone: str = "America/New_York",
        first: datetime = datetime(2025, 3, 3, 19, 0),
        duration_minutes: int = 60,
    ):
        rule = RecurrenceRule(
            pattern=pattern,
            interval=interval,
            days_of_week=tuple(days_of_week),
            end_date=end_date,
            anchor_timezone=timezone,
        )
        state = create_series(rule, first)
        return await insert_series(
            db,
            group_id=group_id,
            title=title,
            state=state,
            duration_minutes=duration_minutes,
        )

    return _create

class FakeCalendarResponse:
    """
    Just enough of httpx.Response for CalendarClient.
    """

    def __init__(self, status_code: int, json_data: Any = None, *, content: Optional[bytes] = None):
        if content is None:
            content = b"" if json_data is None else json.dumps(json_data).encode()
        self.status_code = status_code
        self.content = content
        self.text = content.decode("utf-8", errors="replace")

    def json(self) -> Any:
        return json.loads(self.content)


class FakeCalendarHTTP:
    """
    Minimal stand-in for httpx.AsyncClient.

    Records every request and answers with `next_response`.
    """

    requests: List[Dict[str, Any]] = []
    next_response: FakeCalendarResponse = FakeCalendarResponse(HTTPStatus.OK, {"id": "evt-1"})

    def __init__(self, timeout: float | None = None):
        self._timeout = timeout

    async def __aenter__(self) -> "FakeCalendarHTTP":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> FakeCalendarResponse:
        FakeCalendarHTTP.requests.append(
            {
                "method": method,
                "url": url,
                "headers": headers,
                "params": params,
                "json": json,
                "timeout": self._timeout,
            }
        )
        return FakeCalendarHTTP.next_response

    @classmethod
    def reply(cls, status_code: int, json_data: Any = None, *, content: Optional[bytes] = None) -> None:
        cls.next_response = FakeCalendarResponse(status_code, json_data, content=content)


@pytest.fixture
def calendar_http(monkeypatch):
    """
    Route CalendarClient traffic to FakeCalendarHTTP.
    """
    monkeypatch.setattr(httpx, "AsyncClient", FakeCalendarHTTP)
    FakeCalendarHTTP.requests = []
    FakeCalendarHTTP.reply(HTTPStatus.OK, {"id": "evt-1"})
    return FakeCalendarHTTP


@pytest.fixture
def calendar_client(calendar_http) -> CalendarClient:
    return CalendarClient(
        base_url="https://calendar.example.com/v1/",
        access_token="token-abc",
        calendar_id="study",
        timeout_seconds=5.0,
    )

