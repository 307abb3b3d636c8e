from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime

from domain.models import (
    MINUTES_PER_DAY,
    MINUTES_PER_HOUR,
    Cluster,
    ColumnSlot,
    CurrentTimeIndicator,
    DaySummary,
    EventGeometry,
    EventPlacement,
    Interval,
    OverflowIndicator,
    PillGeometry,
    PillPlacement,
    TimedEvent,
    ViewParameters,
    event_interval,
    minutes_since,
)


@dataclass(frozen=True)
class DragIndicator:
    height: float
    hours: int
    start_hour: int
    end_hour: int


@dataclass(frozen=True)
class MonthCell:
    index: int
    row: int
    col: int
    left: float
    top: float
    width: float
    height: float
    padding: float


@dataclass(frozen=True)
class ClusterPlacement:
    placements: list[EventPlacement]
    overflow: OverflowIndicator | None


class GridPositionCalculator:
    """Turns clusters and column slots into grid geometry.

    Offsets are minutes since ``period_start``. ``top`` is measured from the
    start of the event's day, ``grid_top`` from the first visible hour.
    Horizontal values are percentages of the day column.
    """

    def __init__(self, params: ViewParameters, period_start: datetime, days: int = 1) -> None:
        if days < 1:
            msg = f"days must be at least 1, got {days}"
            raise ValueError(msg)
        self.params = params
        self.period_start = period_start
        self.days = days

    def day_index(self, minutes: float) -> int:
        return math.floor(minutes / MINUTES_PER_DAY)

    def in_period(self, day_index: int) -> bool:
        return 0 <= day_index < self.days

    def to_pixels(self, minutes: float) -> float:
        return minutes / MINUTES_PER_HOUR * self.params.slot_height

    def position_cluster(
        self, cluster: Cluster, slots: Sequence[ColumnSlot], day_index: int
    ) -> ClusterPlacement:
        day_offset = day_index * MINUTES_PER_DAY
        intervals = {event.order: interval for event, interval in _pairs(cluster)}
        placements: list[EventPlacement] = []
        hidden: list[EventPlacement] = []
        for slot in slots:
            interval = intervals[slot.event.order]
            start = interval.start - day_offset
            end = interval.end - day_offset
            if not self._is_visible(start, end):
                continue
            width = 100.0 / slot.column_count
            top = self.to_pixels(start)
            duration = max(self.params.min_duration_minutes, end - start)
            geometry = EventGeometry(
                day_index=day_index,
                top=top,
                grid_top=top - self.to_pixels(self.params.visible_start_minutes),
                height=self.to_pixels(duration),
                left=slot.column * width,
                width=width,
                column=slot.column,
                column_count=slot.column_count,
                cluster_index=cluster.index,
                overflow=slot.overflow,
            )
            placement = EventPlacement(event=slot.event, geometry=geometry)
            placements.append(placement)
            if slot.overflow:
                hidden.append(placement)

        indicator: OverflowIndicator | None = None
        if hidden:
            anchor = min(hidden, key=lambda item: (item.geometry.top, item.event.order))
            indicator = OverflowIndicator(
                day_index=day_index,
                cluster_index=cluster.index,
                hidden_count=len(hidden),
                hidden_event_ids=tuple(item.event.event_id for item in hidden),
                top=anchor.geometry.top,
                grid_top=anchor.geometry.grid_top,
            )
        return ClusterPlacement(placements=placements, overflow=indicator)

    def current_time(self, now: datetime) -> CurrentTimeIndicator:
        minutes = minutes_since(now, self.period_start)
        day_index = self.day_index(minutes)
        if not self.in_period(day_index):
            return CurrentTimeIndicator(visible=False)
        offset = minutes - day_index * MINUTES_PER_DAY
        visible_start = self.params.visible_start_minutes
        visible_end = self.params.visible_end_minutes
        if offset < visible_start or offset >= visible_end:
            return CurrentTimeIndicator(visible=False, day_index=day_index)
        top = self.to_pixels(offset)
        return CurrentTimeIndicator(
            visible=True,
            day_index=day_index,
            top=top,
            grid_top=top - self.to_pixels(visible_start),
            progress=(offset - visible_start) / (visible_end - visible_start) * 100.0,
        )

    def all_day_row(self, events: Iterable[TimedEvent]) -> list[PillPlacement]:
        ordered = sorted(events, key=lambda event: (event.start, event.order))
        lanes_by_day: dict[int, set[int]] = {}
        placements: list[PillPlacement] = []
        step = self.params.pill_height + self.params.pill_margin
        for event in ordered:
            days = self.covered_days(event)
            if not days:
                continue
            lane = 0
            while any(lane in lanes_by_day.get(day, set()) for day in days):
                lane += 1
            for day in days:
                lanes_by_day.setdefault(day, set()).add(lane)
            placements.append(
                PillPlacement(
                    event=event,
                    geometry=PillGeometry(
                        day_index=days[0],
                        lane=lane,
                        top=lane * step,
                        height=self.params.pill_height,
                    ),
                )
            )
        return placements

    def month_pills(
        self, events: Iterable[TimedEvent]
    ) -> tuple[list[PillPlacement], list[DaySummary]]:
        by_day: dict[int, list[TimedEvent]] = {}
        for event in events:
            for day in self.covered_days(event):
                by_day.setdefault(day, []).append(event)

        step = self.params.pill_height + self.params.pill_margin
        max_display = self.params.max_display
        pills: list[PillPlacement] = []
        summaries: list[DaySummary] = []
        for day in sorted(by_day):
            day_events = sorted(
                by_day[day], key=lambda event: (not event.all_day, event.start, event.order)
            )
            for lane, event in enumerate(day_events[:max_display]):
                pills.append(
                    PillPlacement(
                        event=event,
                        geometry=PillGeometry(
                            day_index=day,
                            lane=lane,
                            top=lane * step,
                            height=self.params.pill_height,
                        ),
                    )
                )
            displayed = min(len(day_events), max_display)
            summaries.append(
                DaySummary(
                    day_index=day,
                    total_events=len(day_events),
                    displayed_events=displayed,
                    overflow_count=len(day_events) - displayed,
                    total_height=len(day_events) * step,
                )
            )
        return pills, summaries

    def covered_days(self, event: TimedEvent) -> list[int]:
        interval = event_interval(event, self.period_start)
        first = self.day_index(interval.start)
        last = first
        if interval.end > interval.start:
            # An end exactly at midnight does not spill into the next day.
            last = max(first, math.ceil(interval.end / MINUTES_PER_DAY) - 1)
        return [day for day in range(first, last + 1) if self.in_period(day)]

    def time_slot_position(self, hour: int) -> tuple[float, float]:
        top = (hour - self.params.start_hour) * self.params.slot_height
        return top, self.params.slot_height

    def hour_slots(self) -> list[tuple[int, float]]:
        return [
            (hour, self.time_slot_position(hour)[0])
            for hour in range(self.params.start_hour, self.params.end_hour)
        ]

    def drag_indicator(self, start_y: float, current_y: float, start_hour: int) -> DragIndicator:
        delta = current_y - start_y
        hours = max(1, round(delta / self.params.slot_height) + 1)
        return DragIndicator(
            height=hours * self.params.slot_height,
            hours=hours,
            start_hour=start_hour,
            end_hour=start_hour + hours,
        )

    def _is_visible(self, start: float, end: float) -> bool:
        floored_end = max(end, start + self.params.min_duration_minutes)
        return (
            floored_end > self.params.visible_start_minutes
            and start < self.params.visible_end_minutes
        )


def month_grid_cells(rows: int = 6, cols: int = 7, cell_padding: float = 4) -> list[MonthCell]:
    if rows < 1 or cols < 1:
        msg = f"Month grid needs at least one row and column, got {rows}x{cols}"
        raise ValueError(msg)
    cell_width = 100.0 / cols
    cell_height = 100.0 / rows
    return [
        MonthCell(
            index=row * cols + col,
            row=row,
            col=col,
            left=col * cell_width,
            top=row * cell_height,
            width=cell_width,
            height=cell_height,
            padding=cell_padding,
        )
        for row in range(rows)
        for col in range(cols)
    ]


def _pairs(cluster: Cluster) -> list[tuple[TimedEvent, Interval]]:
    return list(zip(cluster.events, cluster.intervals, strict=True))
