"""Unit tests for the clock and timestamp helpers."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest
from freezegun import freeze_time

from economy_sim_service.services.clock import SystemClock, parse_iso, to_iso


@pytest.mark.unit
def test_system_clock_is_utc_wall_time() -> None:
    with freeze_time("2025-03-04 05:06:07"):
        assert SystemClock().now() == datetime(2025, 3, 4, 5, 6, 7, tzinfo=UTC)


@pytest.mark.unit
def test_to_iso_uses_milliseconds_and_z() -> None:
    moment = datetime(2025, 1, 1, 12, 0, 0, 123456, tzinfo=UTC)
    assert to_iso(moment) == "2025-01-01T12:00:00.123Z"


@pytest.mark.unit
def test_to_iso_converts_offsets() -> None:
    plus_two = timezone(timedelta(hours=2))
    assert to_iso(datetime(2025, 1, 1, 14, 0, tzinfo=plus_two)) == "2025-01-01T12:00:00.000Z"


@pytest.mark.unit
def test_parse_iso() -> None:
    assert parse_iso("2025-01-01T12:00:00.000Z") == datetime(2025, 1, 1, 12, tzinfo=UTC)
    assert parse_iso("2025-01-01T12:00:00").tzinfo is UTC


@pytest.mark.unit
def test_iso_strings_sort_chronologically() -> None:
    with freeze_time("2025-01-01 23:59:59.999"):
        earlier = to_iso(SystemClock().now())
    with freeze_time("2025-01-02 00:00:00"):
        later = to_iso(SystemClock().now())
    assert earlier < later
