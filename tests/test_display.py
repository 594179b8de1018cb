# tests/test_display.py
import logging
from datetime import datetime, timezone

import pytest

from cadence.core.errors import UnknownTimezone
from cadence.services.display import project, render_local

UTC = timezone.utc
INSTANT = datetime(2025, 3, 10, 23, 0, tzinfo=UTC)


def test_project_renders_viewer_offset():
    assert project(INSTANT, "America/New_York") == "2025-03-10T19:00:00-04:00"
    assert project(INSTANT, "Asia/Tokyo") == "2025-03-11T08:00:00+09:00"
    assert project(INSTANT, "UTC") == "2025-03-10T23:00:00+00:00"


@pytest.mark.parametrize(
    "zone",
    ["America/New_York", "Europe/Berlin", "Asia/Kolkata", "Australia/Lord_Howe", "Pacific/Chatham"],
)
def test_project_round_trips_to_same_instant(zone):
    assert datetime.fromisoformat(project(INSTANT, zone)) == INSTANT


def test_project_unknown_zone_raises():
    with pytest.raises(UnknownTimezone):
        project(INSTANT, "Mars/Olympus")


def test_render_local_known_zone():
    rendered = render_local(INSTANT, "America/New_York")

    assert rendered.utc == INSTANT
    assert rendered.local == "2025-03-10T19:00:00-04:00"
    assert rendered.timezone == "America/New_York"
    assert rendered.abbreviation == "EDT"
    assert rendered.timezone_warning is None


def test_render_local_unknown_zone_falls_back_to_utc(caplog):
    with caplog.at_level(logging.WARNING, logger="cadence.services.display"):
        rendered = render_local(INSTANT, "Mars/Olympus")

    assert rendered.timezone == "UTC"
    assert rendered.local == "2025-03-10T23:00:00+00:00"
    assert "Mars/Olympus" in rendered.timezone_warning
    assert any("Mars/Olympus" in record.getMessage() for record in caplog.records)


def test_render_local_defaults_to_utc():
    rendered = render_local(INSTANT, None)

    assert rendered.timezone == "UTC"
    assert rendered.timezone_warning is None


def test_render_local_accepts_naive_utc():
    rendered = render_local(datetime(2025, 3, 10, 23, 0), "Europe/Berlin")

    assert rendered.local == "2025-03-11T00:00:00+01:00"
    assert rendered.abbreviation == "CET"
