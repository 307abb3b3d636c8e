from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

MINUTES_PER_HOUR = 60
MINUTES_PER_DAY = 24 * MINUTES_PER_HOUR
DEFAULT_MIN_DURATION_MINUTES = 30

ViewType = Literal["day-grid", "month-pill"]
VIEW_TYPES: tuple[str, ...] = ("day-grid", "month-pill")


class CalendarEvent(BaseModel):
    """Event record as delivered by the event source."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    id: str = Field(..., min_length=1)
    start: datetime | None = None
    end: datetime | None = None
    all_day: bool = Field(default=False, alias="allDay")
    calendar_source: str = Field(default="", alias="calendarSource")
    title: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value: object) -> str:
        if value is None:
            return ""
        return str(value).strip()

    @field_validator("start", "end", mode="before")
    @classmethod
    def blank_as_missing(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value


@dataclass(frozen=True)
class TimedEvent:
    event_id: str
    start: datetime
    end: datetime
    all_day: bool
    calendar_source: str
    title: str
    order: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.event_id,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "all_day": self.all_day,
            "calendar_source": self.calendar_source,
            "title": self.title,
            "order": self.order,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> TimedEvent:
        return cls(
            event_id=str(payload["id"]),
            start=datetime.fromisoformat(str(payload["start"])),
            end=datetime.fromisoformat(str(payload["end"])),
            all_day=bool(payload["all_day"]),
            calendar_source=str(payload["calendar_source"]),
            title=str(payload["title"]),
            order=int(payload["order"]),
        )


@dataclass(frozen=True)
class SkippedEvent:
    event_id: str | None
    order: int
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.event_id, "order": self.order, "reason": self.reason}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> SkippedEvent:
        raw_id = payload.get("id")
        return cls(
            event_id=None if raw_id is None else str(raw_id),
            order=int(payload["order"]),
            reason=str(payload["reason"]),
        )


@dataclass(frozen=True)
class NormalizedEvents:
    events: list[TimedEvent]
    skipped: list[SkippedEvent]

    @property
    def timed(self) -> list[TimedEvent]:
        return [event for event in self.events if not event.all_day]

    @property
    def all_day(self) -> list[TimedEvent]:
        return [event for event in self.events if event.all_day]


@dataclass(frozen=True)
class Interval:
    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start

    def overlaps(self, other: Interval) -> bool:
        return self.start < other.end and other.start < self.end


@dataclass(frozen=True)
class Cluster:
    index: int
    events: tuple[TimedEvent, ...]
    intervals: tuple[Interval, ...]
    max_end: float

    @property
    def size(self) -> int:
        return len(self.events)

    @property
    def start(self) -> float:
        return self.intervals[0].start if self.intervals else 0.0


@dataclass(frozen=True)
class ColumnSlot:
    event: TimedEvent
    column: int
    column_count: int
    overflow: bool = False


@dataclass(frozen=True)
class ViewParameters:
    slot_height: float = 72.0
    start_hour: int = 6
    end_hour: int = 22
    overlap_threshold: float = 0.1
    max_columns: int = 4
    min_duration_minutes: int = DEFAULT_MIN_DURATION_MINUTES
    max_display: int = 3
    pill_height: float = 20.0
    pill_margin: float = 2.0

    def __post_init__(self) -> None:
        if self.max_columns < 1:
            msg = f"max_columns must be at least 1, got {self.max_columns}"
            raise ValueError(msg)
        if not 0 <= self.start_hour < self.end_hour <= 24:
            msg = f"Invalid visible hour range: {self.start_hour}-{self.end_hour}"
            raise ValueError(msg)
        if self.slot_height <= 0:
            msg = f"slot_height must be positive, got {self.slot_height}"
            raise ValueError(msg)
        if self.min_duration_minutes < 0:
            msg = f"min_duration_minutes must not be negative, got {self.min_duration_minutes}"
            raise ValueError(msg)
        if self.max_display < 0:
            msg = f"max_display must not be negative, got {self.max_display}"
            raise ValueError(msg)

    @property
    def visible_start_minutes(self) -> int:
        return self.start_hour * MINUTES_PER_HOUR

    @property
    def visible_end_minutes(self) -> int:
        return self.end_hour * MINUTES_PER_HOUR

    @property
    def grid_height(self) -> float:
        return (self.end_hour - self.start_hour) * self.slot_height

    def to_dict(self) -> dict[str, Any]:
        return {
            "slot_height": self.slot_height,
            "start_hour": self.start_hour,
            "end_hour": self.end_hour,
            "overlap_threshold": self.overlap_threshold,
            "max_columns": self.max_columns,
            "min_duration_minutes": self.min_duration_minutes,
            "max_display": self.max_display,
            "pill_height": self.pill_height,
            "pill_margin": self.pill_margin,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> ViewParameters:
        return cls(
            slot_height=float(payload["slot_height"]),
            start_hour=int(payload["start_hour"]),
            end_hour=int(payload["end_hour"]),
            overlap_threshold=float(payload["overlap_threshold"]),
            max_columns=int(payload["max_columns"]),
            min_duration_minutes=int(payload["min_duration_minutes"]),
            max_display=int(payload["max_display"]),
            pill_height=float(payload["pill_height"]),
            pill_margin=float(payload["pill_margin"]),
        )


@dataclass(frozen=True)
class EventGeometry:
    day_index: int
    top: float
    grid_top: float
    height: float
    left: float
    width: float
    column: int
    column_count: int
    cluster_index: int
    overflow: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "day_index": self.day_index,
            "top": self.top,
            "grid_top": self.grid_top,
            "height": self.height,
            "left": self.left,
            "width": self.width,
            "column": self.column,
            "column_count": self.column_count,
            "cluster_index": self.cluster_index,
            "overflow": self.overflow,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> EventGeometry:
        return cls(
            day_index=int(payload["day_index"]),
            top=float(payload["top"]),
            grid_top=float(payload["grid_top"]),
            height=float(payload["height"]),
            left=float(payload["left"]),
            width=float(payload["width"]),
            column=int(payload["column"]),
            column_count=int(payload["column_count"]),
            cluster_index=int(payload["cluster_index"]),
            overflow=bool(payload["overflow"]),
        )


@dataclass(frozen=True)
class PillGeometry:
    day_index: int
    lane: int
    top: float
    height: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "day_index": self.day_index,
            "lane": self.lane,
            "top": self.top,
            "height": self.height,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> PillGeometry:
        return cls(
            day_index=int(payload["day_index"]),
            lane=int(payload["lane"]),
            top=float(payload["top"]),
            height=float(payload["height"]),
        )


@dataclass(frozen=True)
class EventPlacement:
    event: TimedEvent
    geometry: EventGeometry

    def to_dict(self) -> dict[str, Any]:
        return {"event": self.event.to_dict(), "geometry": self.geometry.to_dict()}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> EventPlacement:
        return cls(
            event=TimedEvent.from_dict(payload["event"]),
            geometry=EventGeometry.from_dict(payload["geometry"]),
        )


@dataclass(frozen=True)
class PillPlacement:
    event: TimedEvent
    geometry: PillGeometry

    def to_dict(self) -> dict[str, Any]:
        return {"event": self.event.to_dict(), "geometry": self.geometry.to_dict()}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> PillPlacement:
        return cls(
            event=TimedEvent.from_dict(payload["event"]),
            geometry=PillGeometry.from_dict(payload["geometry"]),
        )


@dataclass(frozen=True)
class OverflowIndicator:
    day_index: int
    cluster_index: int
    hidden_count: int
    hidden_event_ids: tuple[str, ...]
    top: float
    grid_top: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "day_index": self.day_index,
            "cluster_index": self.cluster_index,
            "hidden_count": self.hidden_count,
            "hidden_event_ids": list(self.hidden_event_ids),
            "top": self.top,
            "grid_top": self.grid_top,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> OverflowIndicator:
        return cls(
            day_index=int(payload["day_index"]),
            cluster_index=int(payload["cluster_index"]),
            hidden_count=int(payload["hidden_count"]),
            hidden_event_ids=tuple(str(item) for item in payload["hidden_event_ids"]),
            top=float(payload["top"]),
            grid_top=float(payload["grid_top"]),
        )


@dataclass(frozen=True)
class DaySummary:
    day_index: int
    total_events: int
    displayed_events: int
    overflow_count: int
    total_height: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "day_index": self.day_index,
            "total_events": self.total_events,
            "displayed_events": self.displayed_events,
            "overflow_count": self.overflow_count,
            "total_height": self.total_height,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> DaySummary:
        return cls(
            day_index=int(payload["day_index"]),
            total_events=int(payload["total_events"]),
            displayed_events=int(payload["displayed_events"]),
            overflow_count=int(payload["overflow_count"]),
            total_height=float(payload["total_height"]),
        )


@dataclass(frozen=True)
class CurrentTimeIndicator:
    visible: bool
    day_index: int = 0
    top: float = 0.0
    grid_top: float = 0.0
    progress: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "visible": self.visible,
            "day_index": self.day_index,
            "top": self.top,
            "grid_top": self.grid_top,
            "progress": self.progress,
        }


@dataclass(frozen=True)
class LayoutResult:
    view_type: str
    breakpoint: str
    parameters: ViewParameters
    period_start: datetime
    days: int
    signature: str
    layout_version: int
    computed_at: float
    placements: list[EventPlacement] = field(default_factory=list)
    overflow: list[OverflowIndicator] = field(default_factory=list)
    all_day: list[PillPlacement] = field(default_factory=list)
    pills: list[PillPlacement] = field(default_factory=list)
    day_summaries: list[DaySummary] = field(default_factory=list)
    warnings: list[SkippedEvent] = field(default_factory=list)
    current_time: CurrentTimeIndicator | None = None

    @property
    def is_empty(self) -> bool:
        return not (self.placements or self.all_day or self.pills)

    def geometry_by_id(self) -> dict[str, EventGeometry]:
        return {placement.event.event_id: placement.geometry for placement in self.placements}

    def to_dict(self) -> dict[str, Any]:
        return {
            "view_type": self.view_type,
            "breakpoint": self.breakpoint,
            "parameters": self.parameters.to_dict(),
            "period_start": self.period_start.isoformat(),
            "days": self.days,
            "signature": self.signature,
            "layout_version": self.layout_version,
            "computed_at": self.computed_at,
            "placements": [item.to_dict() for item in self.placements],
            "overflow": [item.to_dict() for item in self.overflow],
            "all_day": [item.to_dict() for item in self.all_day],
            "pills": [item.to_dict() for item in self.pills],
            "day_summaries": [item.to_dict() for item in self.day_summaries],
            "warnings": [item.to_dict() for item in self.warnings],
            "current_time": self.current_time.to_dict() if self.current_time else None,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> LayoutResult:
        # current_time is recomputed per call and never restored from storage.
        return cls(
            view_type=str(payload["view_type"]),
            breakpoint=str(payload["breakpoint"]),
            parameters=ViewParameters.from_dict(payload["parameters"]),
            period_start=datetime.fromisoformat(str(payload["period_start"])),
            days=int(payload["days"]),
            signature=str(payload["signature"]),
            layout_version=int(payload["layout_version"]),
            computed_at=float(payload["computed_at"]),
            placements=[EventPlacement.from_dict(item) for item in payload["placements"]],
            overflow=[OverflowIndicator.from_dict(item) for item in payload["overflow"]],
            all_day=[PillPlacement.from_dict(item) for item in payload["all_day"]],
            pills=[PillPlacement.from_dict(item) for item in payload["pills"]],
            day_summaries=[DaySummary.from_dict(item) for item in payload["day_summaries"]],
            warnings=[SkippedEvent.from_dict(item) for item in payload["warnings"]],
        )


def normalize_events(records: Iterable[CalendarEvent | Mapping[str, Any]]) -> NormalizedEvents:
    """Validate raw event records into the engine's fixed representation.

    Records that fail validation or carry no start are reported as skipped and
    never reach layout. Datetimes are reduced to naive wall-clock values; no
    timezone conversion happens here.
    """
    events: list[TimedEvent] = []
    skipped: list[SkippedEvent] = []
    for order, record in enumerate(records):
        raw_id = _raw_event_id(record)
        try:
            event = (
                record
                if isinstance(record, CalendarEvent)
                else CalendarEvent.model_validate(record)
            )
        except ValidationError as exc:
            reason = _describe_validation_error(exc)
            logger.warning("Skipping event %r at position %d: %s", raw_id, order, reason)
            skipped.append(SkippedEvent(event_id=raw_id, order=order, reason=reason))
            continue
        if event.start is None:
            logger.warning("Skipping event %r at position %d: missing start", event.id, order)
            skipped.append(SkippedEvent(event_id=event.id, order=order, reason="missing start"))
            continue
        start = _wall_clock(event.start)
        end = _wall_clock(event.end) if event.end is not None else start
        if end < start:
            end = start
        events.append(
            TimedEvent(
                event_id=event.id,
                start=start,
                end=end,
                all_day=event.all_day,
                calendar_source=event.calendar_source,
                title=event.title,
                order=order,
            )
        )
    return NormalizedEvents(events=events, skipped=skipped)


def minutes_since(moment: datetime, period_start: datetime) -> float:
    return (_wall_clock(moment) - _wall_clock(period_start)).total_seconds() / 60.0


def event_interval(
    event: TimedEvent, period_start: datetime, min_duration_minutes: float = 0
) -> Interval:
    start = minutes_since(event.start, period_start)
    end = max(start, minutes_since(event.end, period_start))
    if end - start < min_duration_minutes:
        end = start + min_duration_minutes
    return Interval(start=start, end=end)


def _wall_clock(moment: datetime) -> datetime:
    return moment.replace(tzinfo=None) if moment.tzinfo is not None else moment


def _raw_event_id(record: CalendarEvent | Mapping[str, Any]) -> str | None:
    if isinstance(record, CalendarEvent):
        return record.id
    if not isinstance(record, Mapping):
        return None
    raw = record.get("id")
    return None if raw is None else str(raw)


def _describe_validation_error(exc: ValidationError) -> str:
    parts: list[str] = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ())) or "record"
        parts.append(f"{location}: {error.get('msg', 'invalid')}")
    return "; ".join(parts) or "invalid record"
