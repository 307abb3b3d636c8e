from __future__ import annotations

from dataclasses import replace
from typing import Any

import orjson
import pytest

from adapters.cache.memory_layout_cache import InMemoryLayoutCache
from adapters.layout.calendar_grid import CalendarLayoutEngine, LayoutConfig
from domain.services.breakpoints import ResponsiveBreakpointResolver
from tests.helpers.event_fixtures import DAY, at, event_record, events_fixture_path

NOON = at(12)


def _engine(**config: Any) -> CalendarLayoutEngine:
    return CalendarLayoutEngine(
        config=LayoutConfig(**config),
        cache=InMemoryLayoutCache(clock=lambda: 0.0),
        wall_clock=lambda: 1715000000.0,
        now=lambda: NOON,
    )


def _scenario_a() -> list[dict[str, Any]]:
    return [
        event_record("a", "09:00", "10:00"),
        event_record("b", "09:30", "10:30"),
        event_record("c", "11:00", "12:00"),
    ]


def _week() -> list[Any]:
    return orjson.loads(events_fixture_path("week.json").read_bytes())["events"]


def test_desktop_day_grid_for_overlapping_pair() -> None:
    engine = _engine()

    result = engine.layout(_scenario_a(), viewport_width=1300, period_start=DAY)
    geometry = result.geometry_by_id()

    assert result.breakpoint == "desktop"
    assert result.parameters.slot_height == 72
    assert (geometry["a"].top, geometry["a"].width, geometry["a"].left) == (648, 50, 0)
    assert (geometry["b"].top, geometry["b"].width, geometry["b"].left) == (684, 50, 50)
    assert (geometry["c"].top, geometry["c"].width) == (792, 100)
    assert result.overflow == []
    assert result.warnings == []


def test_crowded_hour_reports_overflow() -> None:
    engine = _engine()
    records = [event_record(f"e{index}", "08:00", "09:00") for index in range(6)]

    result = engine.layout(records, viewport_width=1300, period_start=DAY)

    assert [p.geometry.column for p in result.placements] == [0, 1, 2, 3, 0, 1]
    (indicator,) = result.overflow
    assert indicator.hidden_count == 2
    assert indicator.hidden_event_ids == ("e4", "e5")


def test_narrow_viewport_uses_mobile_parameters() -> None:
    engine = _engine()
    records = [event_record(f"e{index}", "08:00", "09:00") for index in range(3)]

    result = engine.layout(records, viewport_width=375, period_start=DAY)

    assert result.breakpoint == "mobile"
    assert result.parameters.max_columns == 2
    assert result.placements[0].geometry.top == 480
    assert result.overflow[0].hidden_event_ids == ("e2",)


def test_repeated_request_is_served_from_cache() -> None:
    engine = _engine()

    first = engine.layout(_scenario_a(), viewport_width=1300, period_start=DAY, now=NOON)
    second = engine.layout(_scenario_a(), viewport_width=1300, period_start=DAY, now=NOON)

    assert first == second
    stats = engine.cache_stats()
    assert (stats.hits, stats.misses, stats.sets) == (1, 1, 1)


def test_current_time_is_recomputed_on_cache_hit() -> None:
    engine = _engine()

    first = engine.layout(_scenario_a(), viewport_width=1300, period_start=DAY, now=at(9))
    second = engine.layout(_scenario_a(), viewport_width=1300, period_start=DAY, now=at(12))

    assert engine.cache_stats().hits == 1
    assert first.current_time is not None and first.current_time.top == 648
    assert second.current_time is not None and second.current_time.top == 864
    assert first.placements == second.placements


def test_update_options_invalidates_cached_layouts() -> None:
    engine = _engine()
    records = [event_record(f"e{index}", "08:00", "09:00") for index in range(3)]
    before = engine.layout(records, viewport_width=1300, period_start=DAY)

    version = engine.update_options(max_columns=2)
    after = engine.layout(records, viewport_width=1300, period_start=DAY)

    assert version == 1
    assert before.layout_version == 0
    assert after.layout_version == 1
    assert before.overflow == []
    assert after.overflow[0].hidden_event_ids == ("e2",)
    assert engine.cache_stats().hits == 0


def test_update_options_rejects_unknown_names() -> None:
    engine = _engine()

    with pytest.raises(ValueError, match="colour"):
        engine.update_options(colour="red")
    assert engine.layout_version == 0


def test_breakpoint_change_bumps_layout_version() -> None:
    engine = _engine()
    seen: list[tuple[str | None, str]] = []
    engine.on_breakpoint_change(lambda old, new: seen.append((old, new)))

    engine.layout(_scenario_a(), viewport_width=1300, period_start=DAY)
    engine.layout(_scenario_a(), viewport_width=1350, period_start=DAY)
    mobile = engine.layout(_scenario_a(), viewport_width=500, period_start=DAY)

    assert seen == [(None, "desktop"), ("desktop", "mobile")]
    assert engine.layout_version == 1
    assert mobile.layout_version == 1
    assert mobile.geometry_by_id()["a"].top == 540
    assert engine.current_breakpoint is not None
    assert engine.current_breakpoint.name == "mobile"


def test_empty_input_yields_empty_layout() -> None:
    engine = _engine()

    result = engine.layout([], viewport_width=1300, period_start=DAY)

    assert result.is_empty
    assert result.overflow == []
    assert result.current_time is not None
    assert result.current_time.visible is True


def test_invalid_records_become_warnings() -> None:
    engine = _engine()
    records = [*_scenario_a(), event_record("broken", None), {"title": "no id"}]

    result = engine.layout(records, viewport_width=1300, period_start=DAY)

    assert len(result.placements) == 3
    assert [(item.event_id, item.order) for item in result.warnings] == [
        ("broken", 3),
        (None, 4),
    ]


def test_week_grid_spreads_events_across_days() -> None:
    engine = _engine()

    result = engine.layout(_week(), viewport_width=1300, period_start=DAY, days=7)
    geometry = result.geometry_by_id()

    assert list(geometry) == ["gym", "call", "reminder", "planning", "dentist"]
    assert (geometry["gym"].day_index, geometry["gym"].top, geometry["gym"].width) == (0, 504, 50)
    assert geometry["call"].left == 50
    assert geometry["reminder"].height == 36
    assert (geometry["planning"].day_index, geometry["planning"].top) == (1, 720)
    assert (geometry["dentist"].day_index, geometry["dentist"].top) == (2, 1080)
    assert [pill.event.event_id for pill in result.all_day] == ["holiday"]
    assert [item.event_id for item in result.warnings] == ["broken"]


def test_month_view_caps_pills_per_day() -> None:
    engine = _engine()

    result = engine.layout(
        _week(), viewport_width=800, view_type="month-pill", period_start=DAY, days=7
    )

    assert result.breakpoint == "tablet"
    assert result.current_time is None
    assert result.placements == []
    day0 = [pill.event.event_id for pill in result.pills if pill.geometry.day_index == 0]
    assert day0 == ["holiday", "gym", "call"]
    summary = {item.day_index: item for item in result.day_summaries}
    assert (summary[0].total_events, summary[0].overflow_count) == (4, 1)
    assert summary[2].total_events == 2


def test_default_period_start_is_midnight_of_earliest_event() -> None:
    engine = _engine()

    result = engine.layout(_week(), viewport_width=1300, days=7)

    assert result.period_start == DAY


def test_request_overrides_win_over_breakpoint_defaults() -> None:
    engine = _engine()

    result = engine.layout(
        _scenario_a(),
        viewport_width=1300,
        period_start=DAY,
        overrides={"slot_height": 60, "start_hour": 8},
    )

    assert result.parameters.slot_height == 60
    assert result.geometry_by_id()["a"].top == 540
    assert result.geometry_by_id()["a"].grid_top == 60
    with pytest.raises(ValueError):
        engine.layout(_scenario_a(), viewport_width=1300, overrides={"colour": "red"})


def test_configured_overrides_apply_to_every_breakpoint() -> None:
    engine = _engine(slot_height=50, max_columns=1)

    result = engine.layout(_scenario_a(), viewport_width=375, period_start=DAY)

    assert result.parameters.slot_height == 50
    assert [p.geometry.width for p in result.placements] == [100, 100, 100]
    assert len(result.overflow) == 1


def test_metrics_and_conflicts_use_engine_configuration() -> None:
    engine = _engine(min_duration_minutes=0)
    records = [*_scenario_a(), event_record("d", "09:15", "09:45")]

    metrics = engine.metrics(records)
    conflicts = engine.conflicts(records)

    assert metrics.total_events == 4
    assert metrics.max_overlap_in_group == 3
    assert [conflict.severity for conflict in conflicts] == ["medium"]


def test_rejects_unknown_view_type() -> None:
    with pytest.raises(ValueError):
        _engine().layout([], viewport_width=1300, view_type="agenda")  # type: ignore[arg-type]


def test_engine_keeps_injected_cache_and_expires_on_its_clock() -> None:
    ticks = [0.0]
    cache = InMemoryLayoutCache(ttl_seconds=5, max_entries=3, clock=lambda: ticks[0])
    resolver = ResponsiveBreakpointResolver()
    engine = CalendarLayoutEngine(cache=cache, resolver=resolver, now=lambda: NOON)

    engine.layout(_scenario_a(), viewport_width=1300, period_start=DAY)
    engine.layout(_scenario_a(), viewport_width=1300, period_start=DAY)
    ticks[0] = 10.0
    engine.layout(_scenario_a(), viewport_width=1300, period_start=DAY)

    assert engine.cache is cache
    assert engine.watcher.resolver is resolver
    stats = cache.stats()
    assert (stats.hits, stats.misses, stats.sets) == (1, 2, 2)
    assert stats.max_entries == 3


def test_update_options_rejects_hours_that_break_a_breakpoint() -> None:
    engine = _engine()

    with pytest.raises(ValueError, match="breakpoint"):
        engine.update_options(start_hour=23)

    assert engine.config.start_hour is None
    assert engine.layout_version == 0
    result = engine.layout(_scenario_a(), viewport_width=1300, period_start=DAY)
    assert result.parameters.start_hour == 6


def test_constructor_rejects_hours_that_break_a_breakpoint() -> None:
    with pytest.raises(ValueError, match="Invalid visible hour range: 23-22"):
        _engine(start_hour=23)


def test_wrongly_shaped_cache_entry_is_recomputed() -> None:
    cache = InMemoryLayoutCache(clock=lambda: 0.0)
    engine = CalendarLayoutEngine(cache=cache, now=lambda: NOON)
    first = engine.layout(_scenario_a(), viewport_width=1300, period_start=DAY)
    stored = orjson.loads(cache._entries[first.signature].payload)
    stored["warnings"] = [["not", "a", "mapping"]]
    cache._entries[first.signature] = replace(
        cache._entries[first.signature], payload=orjson.dumps(stored)
    )

    second = engine.layout(_scenario_a(), viewport_width=1300, period_start=DAY)

    assert second.placements == first.placements
    assert cache.stats().misses == 2
