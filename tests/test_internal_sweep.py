# tests/test_internal_sweep.py
from datetime import datetime, timezone
from http import HTTPStatus

from cadence.api.dependencies import internal_auth as auth_module

SWEEP_URL = "/internal/run-advancement-sweep"


class DummySettingsProd:
    APP_ENV = "prod"
    INTERNAL_API_KEY = "supersecret"


class DummySettingsProdNoKey:
    APP_ENV = "prod"
    INTERNAL_API_KEY = None


def _create_weekly(client, group_id="group-42"):
    resp = client.post(
        f"/groups/{group_id}/series",
        json={
            "title": "Evening study",
            "pattern": "weekly",
            "days_of_week": ["monday", "wednesday"],
            "first_occurrence": "2025-03-03T19:00:00",
            "timezone": "America/New_York",
        },
    )
    assert resp.status_code == HTTPStatus.CREATED


def test_sweep_open_in_test_env_without_key(client):
    resp = client.post(SWEEP_URL, params={"now": "2025-03-04T12:00:00Z"})

    assert resp.status_code == HTTPStatus.OK
    assert resp.json()["scanned"] == 0


def test_sweep_advances_series_created_through_api(client):
    _create_weekly(client)

    resp = client.post(SWEEP_URL, params={"now": "2025-03-04T12:00:00Z"})

    assert resp.status_code == HTTPStatus.OK
    summary = resp.json()
    assert summary["advanced"] == 1
    assert summary["results"][0]["outcome"] == "advanced"
    # No calendar configured in tests: nothing was attempted.
    assert summary["results"][0]["calendar_synced"] is None

    series = client.get("/groups/group-42/series", params={"tz": "America/New_York"}).json()
    assert series["current_occurrence"]["local"] == "2025-03-05T19:00:00-05:00"
    assert series["last_advanced_at"] is not None

    # Same sweep again does nothing.
    again = client.post(SWEEP_URL, params={"now": "2025-03-04T12:00:00Z"}).json()
    assert again["scanned"] == 0


def test_sweep_401_when_key_missing_in_prod(monkeypatch, client):
    monkeypatch.setattr(auth_module, "get_settings", lambda: DummySettingsProd())

    resp = client.post(SWEEP_URL)

    assert resp.status_code == HTTPStatus.UNAUTHORIZED
    assert "invalid or missing" in resp.json()["detail"].lower()


def test_sweep_401_when_key_wrong_in_prod(monkeypatch, client):
    monkeypatch.setattr(auth_module, "get_settings", lambda: DummySettingsProd())

    resp = client.post(SWEEP_URL, headers={"X-Internal-Api-Key": "wrong-key"})

    assert resp.status_code == HTTPStatus.UNAUTHORIZED


def test_sweep_500_when_key_not_configured_in_prod(monkeypatch, client):
    monkeypatch.setattr(auth_module, "get_settings", lambda: DummySettingsProdNoKey())

    resp = client.post(SWEEP_URL)

    assert resp.status_code == HTTPStatus.INTERNAL_SERVER_ERROR


def test_sweep_200_when_key_correct_in_prod(monkeypatch, client):
    monkeypatch.setattr(auth_module, "get_settings", lambda: DummySettingsProd())

    resp = client.post(
        SWEEP_URL,
        params={"now": datetime(2025, 3, 4, 12, 0, tzinfo=timezone.utc).isoformat()},
        headers={"X-Internal-Api-Key": "supersecret"},
    )

    assert resp.status_code == HTTPStatus.OK
    data = resp.json()
    assert "scanned" in data
    assert "results" in data
