from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

BreakpointListener = Callable[[str | None, str], None]


@dataclass(frozen=True)
class BreakpointParameters:
    slot_height: float
    start_hour: int = 6
    end_hour: int = 22
    max_columns: int = 4
    max_events_per_day: int = 3
    compact_mode: bool = False
    show_time_labels: bool = True
    touch_friendly: bool = False
    pill_height: float = 20.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "slot_height": self.slot_height,
            "start_hour": self.start_hour,
            "end_hour": self.end_hour,
            "max_columns": self.max_columns,
            "max_events_per_day": self.max_events_per_day,
            "compact_mode": self.compact_mode,
            "show_time_labels": self.show_time_labels,
            "touch_friendly": self.touch_friendly,
            "pill_height": self.pill_height,
        }


@dataclass(frozen=True)
class BreakpointRule:
    name: str
    min_width: float
    parameters: BreakpointParameters


@dataclass(frozen=True)
class ResolvedBreakpoint:
    name: str
    parameters: BreakpointParameters

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "parameters": self.parameters.to_dict()}


# large starts at 1440 px, not 1200 px, so 1300 px wall panels resolve to desktop.
DEFAULT_BREAKPOINT_RULES: tuple[BreakpointRule, ...] = (
    BreakpointRule(
        name="mobile",
        min_width=0,
        parameters=BreakpointParameters(
            slot_height=60,
            max_columns=2,
            max_events_per_day=2,
            compact_mode=True,
            touch_friendly=True,
            pill_height=18,
        ),
    ),
    BreakpointRule(
        name="tablet",
        min_width=768,
        parameters=BreakpointParameters(
            slot_height=65,
            max_columns=3,
            max_events_per_day=3,
            touch_friendly=True,
            pill_height=20,
        ),
    ),
    BreakpointRule(
        name="desktop",
        min_width=1024,
        parameters=BreakpointParameters(
            slot_height=72,
            max_columns=4,
            max_events_per_day=5,
            pill_height=22,
        ),
    ),
    BreakpointRule(
        name="large",
        min_width=1440,
        parameters=BreakpointParameters(
            slot_height=80,
            max_columns=5,
            max_events_per_day=5,
            pill_height=24,
        ),
    ),
)


class ResponsiveBreakpointResolver:
    def __init__(self, rules: Sequence[BreakpointRule] | None = None) -> None:
        self.rules: tuple[BreakpointRule, ...] = tuple(rules or DEFAULT_BREAKPOINT_RULES)
        _validate_rules(self.rules)

    @property
    def names(self) -> list[str]:
        return [rule.name for rule in self.rules]

    def resolve(self, viewport_width: float) -> ResolvedBreakpoint:
        selected = self.rules[0]
        for rule in self.rules:
            if viewport_width >= rule.min_width:
                selected = rule
            else:
                break
        return ResolvedBreakpoint(name=selected.name, parameters=selected.parameters)


class BreakpointWatcher:
    """Tracks the active breakpoint and notifies subscribers when it changes."""

    def __init__(self, resolver: ResponsiveBreakpointResolver) -> None:
        self.resolver = resolver
        self.current: ResolvedBreakpoint | None = None
        self._listeners: list[BreakpointListener] = []

    def on_breakpoint_change(self, callback: BreakpointListener) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def update(self, viewport_width: float) -> ResolvedBreakpoint:
        resolved = self.resolver.resolve(viewport_width)
        previous = self.current.name if self.current else None
        self.current = resolved
        if previous != resolved.name:
            self._notify(previous, resolved.name)
        return resolved

    def _notify(self, previous: str | None, current: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(previous, current)
            except Exception:
                logger.exception("Breakpoint listener failed for %s -> %s.", previous, current)


def _validate_rules(rules: Sequence[BreakpointRule]) -> None:
    if not rules:
        msg = "Breakpoint table must not be empty"
        raise ValueError(msg)
    if rules[0].min_width != 0:
        msg = f"First breakpoint must start at width 0, got {rules[0].min_width}"
        raise ValueError(msg)
    seen: set[str] = set()
    previous_width: float | None = None
    for rule in rules:
        if rule.name in seen:
            msg = f"Duplicate breakpoint name: {rule.name}"
            raise ValueError(msg)
        seen.add(rule.name)
        if previous_width is not None and rule.min_width <= previous_width:
            msg = f"Breakpoint widths must be strictly ascending at {rule.name}"
            raise ValueError(msg)
        previous_width = rule.min_width
        params = rule.parameters
        if params.slot_height <= 0:
            msg = f"Breakpoint {rule.name}: slot_height must be positive"
            raise ValueError(msg)
        if params.max_columns < 1:
            msg = f"Breakpoint {rule.name}: max_columns must be at least 1"
            raise ValueError(msg)
        if not 0 <= params.start_hour < params.end_hour <= 24:
            msg = (
                f"Breakpoint {rule.name}: invalid hour range "
                f"{params.start_hour}-{params.end_hour}"
            )
            raise ValueError(msg)
