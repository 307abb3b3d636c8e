from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any, Protocol

from domain.models import CalendarEvent, LayoutResult, ViewType

EventRecords = Iterable[CalendarEvent | Mapping[str, Any]]


class LayoutEngine(Protocol):
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
    ) -> LayoutResult: ...

    def invalidate(self) -> int: ...
