from __future__ import annotations

from adapters.cache.memory_layout_cache import InMemoryLayoutCache
from adapters.filesystem.event_source import FileSystemEventSource
from adapters.layout.calendar_grid import CalendarLayoutEngine
from app.config import AppSettings
from domain.ports.events import EventSource
from domain.services.breakpoints import ResponsiveBreakpointResolver


def build_breakpoint_resolver(settings: AppSettings) -> ResponsiveBreakpointResolver:
    rules = settings.layout.to_breakpoint_rules()
    if not rules:
        msg = "layout.breakpoints must define at least one breakpoint"
        raise ValueError(msg)
    return ResponsiveBreakpointResolver(rules)


def build_layout_engine(settings: AppSettings) -> CalendarLayoutEngine:
    cache_settings = settings.layout.cache
    cache = InMemoryLayoutCache(
        ttl_seconds=cache_settings.ttl_seconds,
        max_entries=cache_settings.max_entries,
    )
    return CalendarLayoutEngine(
        config=settings.layout.to_layout_config(),
        cache=cache,
        resolver=build_breakpoint_resolver(settings),
    )


def build_event_source() -> EventSource:
    return FileSystemEventSource()
