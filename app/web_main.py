from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal, cast

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import ORJSONResponse
from pydantic import BaseModel, Field

from adapters.layout.calendar_grid import CalendarLayoutEngine
from app.config import AppSettings, load_settings
from app.engine_wiring import build_layout_engine
from domain.services.overlap_metrics import compute_overlap_metrics, detect_time_conflicts

logger = logging.getLogger(__name__)

ViewTypeParam = Literal["day-grid", "month-pill"]


@dataclass(frozen=True)
class LayoutContext:
    settings: AppSettings
    engine: CalendarLayoutEngine


class ViewOverrides(BaseModel):
    slot_height: float | None = Field(default=None, gt=0)
    start_hour: int | None = Field(default=None, ge=0, le=23)
    end_hour: int | None = Field(default=None, ge=1, le=24)
    max_columns: int | None = Field(default=None, ge=1)
    max_display: int | None = Field(default=None, ge=0)


class LayoutRequest(BaseModel):
    # Records stay loosely typed so one malformed event is skipped, not rejected.
    events: list[Any] = Field(default_factory=list)
    viewport_width: float = Field(..., gt=0)
    view_type: ViewTypeParam | None = None
    period_start: datetime | None = None
    days: int = Field(default=1, ge=1, le=42)
    overrides: ViewOverrides = ViewOverrides()
    now: datetime | None = None


class MetricsRequest(BaseModel):
    events: list[Any] = Field(default_factory=list)
    period_start: datetime | None = None


def create_app(settings: AppSettings) -> FastAPI:
    """Build the layout API around one engine and one layout cache.

    The engine tracks a single viewport: requests at widths in different
    breakpoints bump the layout version and drop each other's cached layouts.
    """
    app = FastAPI(title=settings.title, default_response_class=ORJSONResponse)
    context = LayoutContext(settings=settings, engine=build_layout_engine(settings))
    app.state.context = context

    @app.get("/health")
    async def health(context: LayoutContext = Depends(get_context)) -> dict[str, Any]:
        return {"status": "ok", "layout_version": context.engine.layout_version}

    @app.get("/api/breakpoints/{width}")
    async def api_breakpoint(
        width: float,
        context: LayoutContext = Depends(get_context),
    ) -> dict[str, Any]:
        if width <= 0:
            raise HTTPException(status_code=400, detail="Viewport width must be positive")
        resolved = context.engine.watcher.resolver.resolve(width)
        params = context.engine.view_parameters(resolved)
        return {**resolved.to_dict(), "view_parameters": params.to_dict()}

    @app.post("/api/layout")
    async def api_layout(
        payload: LayoutRequest,
        context: LayoutContext = Depends(get_context),
    ) -> dict[str, Any]:
        view_type = payload.view_type or context.settings.layout.default_view
        try:
            result = context.engine.layout(
                payload.events,
                viewport_width=payload.viewport_width,
                view_type=cast(ViewTypeParam, view_type),
                period_start=payload.period_start,
                days=payload.days,
                overrides=payload.overrides.model_dump(exclude_none=True),
                now=payload.now,
            )
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return result.to_dict()

    @app.post("/api/metrics")
    async def api_metrics(
        payload: MetricsRequest,
        context: LayoutContext = Depends(get_context),
    ) -> dict[str, Any]:
        clusters = context.engine.clusters(payload.events, period_start=payload.period_start)
        metrics = compute_overlap_metrics(clusters, context.engine.config.overlap_threshold)
        conflicts = detect_time_conflicts(clusters)
        return {
            "metrics": metrics.to_dict(),
            "conflicts": [conflict.to_dict() for conflict in conflicts],
            "clusters": [
                [event.event_id for event in cluster.events] for cluster in clusters
            ],
        }

    @app.post("/api/layout/invalidate")
    async def api_invalidate(context: LayoutContext = Depends(get_context)) -> dict[str, Any]:
        version = context.engine.invalidate()
        logger.info("Layout cache invalidated via API; version %d.", version)
        return {"layout_version": version}

    @app.get("/api/layout/stats")
    async def api_stats(context: LayoutContext = Depends(get_context)) -> dict[str, Any]:
        current = context.engine.current_breakpoint
        return {
            "cache": context.engine.cache_stats().to_dict(),
            "layout_version": context.engine.layout_version,
            "breakpoint": current.name if current else None,
        }

    return app


def get_context(request: Request) -> LayoutContext:
    return cast(LayoutContext, request.app.state.context)


def build_default_app() -> FastAPI:
    return create_app(load_settings())
