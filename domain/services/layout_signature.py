from __future__ import annotations

import hashlib
from collections.abc import Sequence
from datetime import datetime

import orjson

from domain.models import TimedEvent, ViewParameters


def build_layout_signature(
    *,
    events: Sequence[TimedEvent],
    params: ViewParameters,
    breakpoint: str,
    view_type: str,
    period_start: datetime,
    days: int,
) -> str:
    """Deterministic cache key for one layout request.

    Event order is part of the key because input order breaks start-time ties.
    """
    payload = {
        "view_type": view_type,
        "breakpoint": breakpoint,
        "period_start": period_start.isoformat(),
        "days": days,
        "params": params.to_dict(),
        "events": [
            [
                event.event_id,
                event.start.isoformat(),
                event.end.isoformat(),
                event.all_day,
                event.calendar_source,
                event.title,
            ]
            for event in events
        ],
    }
    digest = hashlib.sha256(orjson.dumps(payload, option=orjson.OPT_SORT_KEYS)).hexdigest()
    return f"layout:{view_type}:{breakpoint}:{digest[:32]}"
