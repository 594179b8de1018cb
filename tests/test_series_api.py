# tests/test_series_api.py
from datetime import datetime, timezone
from http import HTTPStatus

from cadence.services import occurrence_publisher

UTC = timezone.utc


def _parse(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _create(client, group_id="group-42", **overrides):
    payload = {
        "title": "Romans study group",
        "pattern": "weekly",
        "interval": 2,
        "days_of_week": [1, "wednesday"],
        "first_occurrence": "2025-03-03T19:00:00",
        "timezone": "America/New_York",
    }
    payload.update(overrides)
    return client.post(f"/groups/{group_id}/series", json=payload)


def test_create_series_anchors_in_creator_timezone(client):
    resp = _create(client)

    assert resp.status_code == HTTPStatus.CREATED
    data = resp.json()

    assert data["group_id"] == "group-42"
    assert data["status"] == "active"
    assert data["duration_minutes"] == 60
    assert data["anchor_timezone"] == "America/New_York"
    assert _parse(data["current_occurrence"]["utc"]) == datetime(2025, 3, 4, 0, 0, tzinfo=UTC)
    assert data["current_occurrence"]["timezone"] == "UTC"

    recurrence = data["recurrence"]
    assert recurrence["days_of_week"] == [1, 3]
    assert recurrence["description"] == "Every 2 weeks on Monday and Wednesday"
    assert recurrence["rrule"] == "RRULE:FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE;WKST=SU"
    assert data["external_event_id"] is None


def test_viewer_timezone_from_header_and_query(client):
    _create(client)

    by_header = client.get("/groups/group-42/series", headers={"X-Timezone": "Asia/Tokyo"})
    assert by_header.status_code == HTTPStatus.OK
    occurrence = by_header.json()["current_occurrence"]
    assert occurrence["timezone"] == "Asia/Tokyo"
    assert occurrence["local"] == "2025-03-04T09:00:00+09:00"
    assert occurrence["abbreviation"] == "JST"

    by_query = client.get(
        "/groups/group-42/series",
        params={"tz": "America/New_York"},
        headers={"X-Timezone": "Asia/Tokyo"},
    )
    occurrence = by_query.json()["current_occurrence"]
    assert occurrence["local"] == "2025-03-03T19:00:00-05:00"
    assert occurrence["abbreviation"] == "EST"


def test_unknown_viewer_timezone_falls_back_to_utc(client):
    _create(client)

    resp = client.get("/groups/group-42/series", params={"tz": "Mars/Olympus"})

    assert resp.status_code == HTTPStatus.OK
    occurrence = resp.json()["current_occurrence"]
    assert occurrence["timezone"] == "UTC"
    assert occurrence["local"] == "2025-03-04T00:00:00+00:00"
    assert "Mars/Olympus" in occurrence["timezone_warning"]


def test_duplicate_group_is_rejected(client):
    assert _create(client).status_code == HTTPStatus.CREATED

    resp = _create(client)

    assert resp.status_code == HTTPStatus.BAD_REQUEST
    assert "already has a meeting series" in resp.json()["detail"]


def test_weekly_without_days_is_rejected(client):
    resp = _create(client, days_of_week=[])

    assert resp.status_code == HTTPStatus.BAD_REQUEST
    assert "at least one day" in resp.json()["detail"]
    assert client.get("/groups/group-42/series").status_code == HTTPStatus.NOT_FOUND


def test_interval_out_of_range_is_rejected(client):
    resp = _create(client, interval=100)

    assert resp.status_code == HTTPStatus.BAD_REQUEST
    assert "between 1 and 99" in resp.json()["detail"]


def test_unknown_creator_timezone_is_rejected(client):
    resp = _create(client, timezone="Mars/Olympus")

    assert resp.status_code == HTTPStatus.BAD_REQUEST
    assert "Mars/Olympus" in resp.json()["detail"]


def test_end_date_before_first_occurrence_is_rejected(client):
    resp = _create(client, end_date="2025-03-01")

    assert resp.status_code == HTTPStatus.BAD_REQUEST


def test_single_meeting_with_custom_duration(client):
    resp = _create(
        client,
        group_id="one-off",
        pattern="none",
        days_of_week=[],
        duration_minutes=45,
        timezone="Europe/Berlin",
        first_occurrence="2025-07-01T18:30:00",
    )

    assert resp.status_code == HTTPStatus.CREATED
    data = resp.json()
    assert data["duration_minutes"] == 45
    assert data["recurrence"]["rrule"] is None
    assert data["recurrence"]["description"] == "Does not repeat"
    assert _parse(data["current_occurrence"]["utc"]) == datetime(2025, 7, 1, 16, 30, tzinfo=UTC)


def test_get_missing_series_returns_404(client):
    resp = client.get("/groups/nobody/series")
    assert resp.status_code == HTTPStatus.NOT_FOUND


def test_preview_occurrences(client):
    _create(client)

    resp = client.get(
        "/groups/group-42/series/occurrences",
        params={"count": 5, "tz": "America/New_York"},
    )

    assert resp.status_code == HTTPStatus.OK
    data = resp.json()
    assert data["status"] == "active"
    assert [o["local"] for o in data["occurrences"]] == [
        "2025-03-03T19:00:00-05:00",
        "2025-03-05T19:00:00-05:00",
        "2025-03-17T19:00:00-04:00",
        "2025-03-19T19:00:00-04:00",
        "2025-03-31T19:00:00-04:00",
    ]

    # Previewing never advances the stored series.
    current = client.get("/groups/group-42/series").json()["current_occurrence"]
    assert _parse(current["utc"]) == datetime(2025, 3, 4, 0, 0, tzinfo=UTC)


def test_preview_count_is_bounded(client):
    _create(client)

    resp = client.get("/groups/group-42/series/occurrences", params={"count": 53})

    assert resp.status_code == HTTPStatus.BAD_REQUEST


def test_list_series_with_status_filter(client):
    _create(client, group_id="a")
    _create(client, group_id="b", pattern="daily")

    everything = client.get("/series")
    completed = client.get("/series", params={"status": "completed"})

    assert everything.status_code == HTTPStatus.OK
    assert [s["group_id"] for s in everything.json()] == ["a", "b"]
    assert completed.json() == []


def test_create_succeeds_when_calendar_reply_is_not_json(
    client, monkeypatch, calendar_client, calendar_http
):
    monkeypatch.setattr(occurrence_publisher, "get_calendar_client", lambda: calendar_client)
    calendar_http.reply(HTTPStatus.OK, content=b"<html>ok</html>")

    resp = _create(client, group_id="g9")

    assert resp.status_code == HTTPStatus.CREATED
    assert resp.json()["external_event_id"] is None
    assert calendar_http.requests[-1]["method"] == "POST"

    stored = client.get("/groups/g9/series")
    assert stored.status_code == HTTPStatus.OK


def test_create_stores_calendar_event_id(client, monkeypatch, calendar_client, calendar_http):
    monkeypatch.setattr(occurrence_publisher, "get_calendar_client", lambda: calendar_client)

    resp = _create(client, group_id="g9")

    assert resp.status_code == HTTPStatus.CREATED
    assert resp.json()["external_event_id"] == "evt-1"
