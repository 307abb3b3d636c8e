from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, fields, replace
from datetime import datetime
from typing import Any

from adapters.cache.memory_layout_cache import InMemoryLayoutCache
from domain.models import (
    DEFAULT_MIN_DURATION_MINUTES,
    VIEW_TYPES,
    Cluster,
    EventPlacement,
    LayoutResult,
    NormalizedEvents,
    OverflowIndicator,
    TimedEvent,
    ViewParameters,
    ViewType,
    minutes_since,
    normalize_events,
)
from domain.ports.cache import CacheStats, LayoutCache
from domain.ports.layout import EventRecords, LayoutEngine
from domain.services.breakpoints import (
    BreakpointListener,
    BreakpointParameters,
    BreakpointWatcher,
    ResolvedBreakpoint,
    ResponsiveBreakpointResolver,
)
from domain.services.column_assignment import assign_columns
from domain.services.grid_positions import GridPositionCalculator
from domain.services.layout_signature import build_layout_signature
from domain.services.overlap_grouping import group_overlapping_events
from domain.services.overlap_metrics import (
    OverlapMetrics,
    TimeConflict,
    compute_overlap_metrics,
    detect_time_conflicts,
)

logger = logging.getLogger(__name__)

OVERRIDABLE_PARAMETERS = frozenset(
    {
        "slot_height",
        "start_hour",
        "end_hour",
        "max_columns",
        "max_display",
        "overlap_threshold",
        "min_duration_minutes",
        "pill_height",
        "pill_margin",
    }
)


@dataclass(frozen=True)
class LayoutConfig:
    overlap_threshold: float = 0.1
    min_duration_minutes: int = DEFAULT_MIN_DURATION_MINUTES
    pill_margin: float = 2.0
    slot_height: float | None = None
    start_hour: int | None = None
    end_hour: int | None = None
    max_columns: int | None = None
    max_display: int | None = None

    def __post_init__(self) -> None:
        if self.max_columns is not None and self.max_columns < 1:
            msg = f"max_columns must be at least 1, got {self.max_columns}"
            raise ValueError(msg)
        if self.slot_height is not None and self.slot_height <= 0:
            msg = f"slot_height must be positive, got {self.slot_height}"
            raise ValueError(msg)
        if self.min_duration_minutes < 0:
            msg = f"min_duration_minutes must not be negative, got {self.min_duration_minutes}"
            raise ValueError(msg)
        if not 0 <= self.overlap_threshold <= 1:
            msg = f"overlap_threshold must be within 0..1, got {self.overlap_threshold}"
            raise ValueError(msg)
        start = 0 if self.start_hour is None else self.start_hour
        end = 24 if self.end_hour is None else self.end_hour
        if not 0 <= start < end <= 24:
            msg = f"Invalid visible hour range: {self.start_hour}-{self.end_hour}"
            raise ValueError(msg)


class CalendarLayoutEngine(LayoutEngine):
    """Resolves view parameters, consults the layout cache and lays out events."""

    def __init__(
        self,
        config: LayoutConfig | None = None,
        cache: LayoutCache | None = None,
        resolver: ResponsiveBreakpointResolver | None = None,
        wall_clock: Callable[[], float] | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self.cache: LayoutCache = cache if cache is not None else InMemoryLayoutCache()
        self.watcher = BreakpointWatcher(
            resolver if resolver is not None else ResponsiveBreakpointResolver()
        )
        self.config = self._checked(config if config is not None else LayoutConfig())
        self._wall_clock = wall_clock or time.time
        self._now = now or datetime.now
        self.watcher.on_breakpoint_change(self._handle_breakpoint_change)

    @property
    def layout_version(self) -> int:
        return self.cache.layout_version

    @property
    def current_breakpoint(self) -> ResolvedBreakpoint | None:
        return self.watcher.current

    def on_breakpoint_change(self, callback: BreakpointListener) -> Callable[[], None]:
        return self.watcher.on_breakpoint_change(callback)

    def update_options(self, **changes: Any) -> int:
        unknown = set(changes) - {item.name for item in fields(LayoutConfig)}
        if unknown:
            msg = f"Unknown layout options: {', '.join(sorted(unknown))}"
            raise ValueError(msg)
        self.config = self._checked(replace(self.config, **changes))
        version = self.cache.invalidate()
        logger.info("Layout options updated; layout version is now %d.", version)
        return version

    def invalidate(self) -> int:
        return self.cache.invalidate()

    def cache_stats(self) -> CacheStats:
        return self.cache.stats()

    def view_parameters(
        self, resolved: ResolvedBreakpoint, overrides: Mapping[str, Any] | None = None
    ) -> ViewParameters:
        return _merge_parameters(self.config, resolved.parameters, overrides)

    def layout(
        self,
        events: EventRecords,
        *,
        viewport_width: float,
        view_type: ViewType = "day-grid",
        period_start: datetime | None = None,
        days: int = 1,
        overrides: Mapping[str, Any] | None = None,
        now: datetime | None = None,
    ) -> LayoutResult:
        if view_type not in VIEW_TYPES:
            msg = f"Unsupported view type: {view_type}"
            raise ValueError(msg)
        normalized = normalize_events(events)
        resolved = self.watcher.update(viewport_width)
        params = self.view_parameters(resolved, overrides)
        start = period_start or self._default_period_start(normalized)
        calculator = GridPositionCalculator(params, start, days)

        signature = build_layout_signature(
            events=normalized.events,
            params=params,
            breakpoint=resolved.name,
            view_type=view_type,
            period_start=start,
            days=days,
        )
        result = self.cache.get(signature)
        if result is None:
            logger.debug("Layout cache miss for %s.", signature)
            result = self._compute(
                normalized, calculator, view_type, resolved.name, signature
            )
            self.cache.set(signature, result)
        else:
            logger.debug("Layout cache hit for %s.", signature)

        if view_type == "day-grid":
            result = replace(result, current_time=calculator.current_time(now or self._now()))
        return result

    def clusters(
        self,
        events: EventRecords,
        *,
        period_start: datetime | None = None,
    ) -> list[Cluster]:
        normalized = normalize_events(events)
        start = period_start or self._default_period_start(normalized)
        return group_overlapping_events(
            normalized.timed, start, self.config.min_duration_minutes
        )

    def metrics(
        self, events: EventRecords, *, period_start: datetime | None = None
    ) -> OverlapMetrics:
        return compute_overlap_metrics(
            self.clusters(events, period_start=period_start), self.config.overlap_threshold
        )

    def conflicts(
        self, events: EventRecords, *, period_start: datetime | None = None
    ) -> list[TimeConflict]:
        return detect_time_conflicts(self.clusters(events, period_start=period_start))

    def _compute(
        self,
        normalized: NormalizedEvents,
        calculator: GridPositionCalculator,
        view_type: str,
        breakpoint: str,
        signature: str,
    ) -> LayoutResult:
        base = LayoutResult(
            view_type=view_type,
            breakpoint=breakpoint,
            parameters=calculator.params,
            period_start=calculator.period_start,
            days=calculator.days,
            signature=signature,
            layout_version=self.cache.layout_version,
            computed_at=self._wall_clock(),
            warnings=list(normalized.skipped),
        )
        if view_type == "month-pill":
            pills, summaries = calculator.month_pills(normalized.events)
            return replace(base, pills=pills, day_summaries=summaries)

        placements: list[EventPlacement] = []
        overflow: list[OverflowIndicator] = []
        for day_index, day_events in self._timed_events_by_day(normalized, calculator).items():
            clusters = group_overlapping_events(
                day_events, calculator.period_start, calculator.params.min_duration_minutes
            )
            for cluster in clusters:
                slots = assign_columns(cluster, calculator.params.max_columns)
                positioned = calculator.position_cluster(cluster, slots, day_index)
                placements.extend(positioned.placements)
                if positioned.overflow is not None:
                    overflow.append(positioned.overflow)
        return replace(
            base,
            placements=placements,
            overflow=overflow,
            all_day=calculator.all_day_row(normalized.all_day),
        )

    def _timed_events_by_day(
        self, normalized: NormalizedEvents, calculator: GridPositionCalculator
    ) -> dict[int, list[TimedEvent]]:
        by_day: dict[int, list[TimedEvent]] = {}
        for event in normalized.timed:
            day_index = calculator.day_index(minutes_since(event.start, calculator.period_start))
            if not calculator.in_period(day_index):
                logger.debug("Event %s starts outside the layout period.", event.event_id)
                continue
            by_day.setdefault(day_index, []).append(event)
        return dict(sorted(by_day.items()))

    def _default_period_start(self, normalized: NormalizedEvents) -> datetime:
        if normalized.events:
            earliest = min(event.start for event in normalized.events)
        else:
            earliest = self._now().replace(tzinfo=None)
        return earliest.replace(hour=0, minute=0, second=0, microsecond=0)

    def _checked(self, config: LayoutConfig) -> LayoutConfig:
        for rule in self.watcher.resolver.rules:
            try:
                _merge_parameters(config, rule.parameters)
            except ValueError as exc:
                msg = f"Layout options do not fit breakpoint {rule.name}: {exc}"
                raise ValueError(msg) from exc
        return config

    def _handle_breakpoint_change(self, previous: str | None, current: str) -> None:
        if previous is None:
            return
        version = self.cache.bump_version()
        logger.info(
            "Breakpoint changed from %s to %s; layout version is now %d.",
            previous,
            current,
            version,
        )


def _merge_parameters(
    config: LayoutConfig,
    bundle: BreakpointParameters,
    overrides: Mapping[str, Any] | None = None,
) -> ViewParameters:
    values: dict[str, Any] = {
        "slot_height": _pick(config.slot_height, bundle.slot_height),
        "start_hour": _pick(config.start_hour, bundle.start_hour),
        "end_hour": _pick(config.end_hour, bundle.end_hour),
        "max_columns": _pick(config.max_columns, bundle.max_columns),
        "max_display": _pick(config.max_display, bundle.max_events_per_day),
        "overlap_threshold": config.overlap_threshold,
        "min_duration_minutes": config.min_duration_minutes,
        "pill_height": bundle.pill_height,
        "pill_margin": config.pill_margin,
    }
    if overrides:
        unknown = set(overrides) - OVERRIDABLE_PARAMETERS
        if unknown:
            msg = f"Unknown view parameter overrides: {', '.join(sorted(unknown))}"
            raise ValueError(msg)
        values.update({key: value for key, value in overrides.items() if value is not None})
    return ViewParameters(**values)


def _pick(preferred: Any, fallback: Any) -> Any:
    return fallback if preferred is None else preferred
