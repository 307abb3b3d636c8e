from __future__ import annotations

import logging
from datetime import datetime, timezone

import pytest

from domain.models import CalendarEvent, ViewParameters, event_interval, normalize_events
from tests.helpers.event_fixtures import DAY, at, event_record


def test_missing_end_defaults_to_zero_duration() -> None:
    normalized = normalize_events([event_record("solo", "09:00")])

    assert normalized.skipped == []
    event = normalized.events[0]
    assert event.start == at(9)
    assert event.end == at(9)
    assert event.order == 0


def test_end_before_start_is_clamped() -> None:
    normalized = normalize_events([event_record("backwards", "10:00", "09:00")])

    event = normalized.events[0]
    assert event.end == event.start


def test_records_without_start_are_skipped_with_warning(
    caplog: pytest.LogCaptureFixture,
) -> None:
    records = [
        event_record("ok", "09:00", "10:00"),
        event_record("no-start", None),
        {"id": "bad-start", "start": "not a date"},
        "garbage",
    ]

    with caplog.at_level(logging.WARNING, logger="domain.models"):
        normalized = normalize_events(records)

    assert [event.event_id for event in normalized.events] == ["ok"]
    assert [(item.event_id, item.order) for item in normalized.skipped] == [
        ("no-start", 1),
        ("bad-start", 2),
        (None, 3),
    ]
    assert normalized.skipped[0].reason == "missing start"
    assert "start" in normalized.skipped[1].reason
    assert "no-start" in caplog.text
    assert "bad-start" in caplog.text


def test_aliases_and_snake_case_are_both_accepted() -> None:
    camel = CalendarEvent.model_validate(
        {"id": 7, "start": "2024-05-06T09:00:00", "allDay": True, "calendarSource": "work"}
    )
    snake = CalendarEvent.model_validate(
        {"id": "7", "start": "2024-05-06T09:00:00", "all_day": True, "calendar_source": "work"}
    )

    assert camel.id == "7"
    assert camel == snake


def test_timezone_is_dropped_without_conversion() -> None:
    record = {
        "id": "tz",
        "start": datetime(2024, 5, 6, 9, 0, tzinfo=timezone.utc).isoformat(),
        "end": "2024-05-06T10:00:00+02:00",
    }

    event = normalize_events([record]).events[0]

    assert event.start == datetime(2024, 5, 6, 9, 0)
    assert event.end == datetime(2024, 5, 6, 10, 0)


def test_event_interval_applies_minimum_duration_floor() -> None:
    event = normalize_events([event_record("ping", "09:00")]).events[0]

    assert event_interval(event, DAY).duration == 0
    floored = event_interval(event, DAY, min_duration_minutes=30)
    assert floored.start == 540
    assert floored.end == 570


@pytest.mark.parametrize(
    "overrides",
    [
        {"max_columns": 0},
        {"max_columns": -2},
        {"start_hour": 22, "end_hour": 6},
        {"slot_height": 0},
        {"min_duration_minutes": -1},
    ],
)
def test_view_parameters_reject_programmer_errors(overrides: dict[str, object]) -> None:
    with pytest.raises(ValueError):
        ViewParameters(**overrides)  # type: ignore[arg-type]
