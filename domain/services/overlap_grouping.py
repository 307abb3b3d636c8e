from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime

from domain.models import Cluster, Interval, TimedEvent, event_interval


def group_overlapping_events(
    events: Iterable[TimedEvent],
    period_start: datetime,
    min_duration_minutes: float = 0,
) -> list[Cluster]:
    """Partition timed events into chain-transitive overlap clusters.

    Events are scanned in start order (input order breaks ties). An event joins
    the open cluster when it starts before the latest end seen in that cluster,
    so A-B and B-C overlaps put A and C together even when they are disjoint.
    All-day events are left out; they belong to the all-day row.
    """
    keyed: list[tuple[TimedEvent, Interval]] = [
        (event, event_interval(event, period_start, min_duration_minutes))
        for event in events
        if not event.all_day
    ]
    keyed.sort(key=lambda item: (item[1].start, item[0].order))

    clusters: list[Cluster] = []
    members: list[tuple[TimedEvent, Interval]] = []
    max_end = 0.0
    for event, interval in keyed:
        if members and interval.start < max_end:
            members.append((event, interval))
            max_end = max(max_end, interval.end)
            continue
        if members:
            clusters.append(_build_cluster(len(clusters), members, max_end))
        members = [(event, interval)]
        max_end = interval.end
    if members:
        clusters.append(_build_cluster(len(clusters), members, max_end))
    return clusters


def events_overlap(first: Interval, second: Interval) -> bool:
    return first.overlaps(second)


def overlap_fraction(first: Interval, second: Interval) -> float:
    """Overlap as a share of the longer interval (the smaller of both ratios)."""
    if first.duration <= 0 or second.duration <= 0:
        return 0.0
    overlap_start = max(first.start, second.start)
    overlap_end = min(first.end, second.end)
    if overlap_start >= overlap_end:
        return 0.0
    return (overlap_end - overlap_start) / max(first.duration, second.duration)


def find_overlapping_events(
    target: TimedEvent,
    events: Sequence[TimedEvent],
    period_start: datetime,
    min_duration_minutes: float = 0,
) -> list[TimedEvent]:
    target_interval = event_interval(target, period_start, min_duration_minutes)
    overlapping: list[TimedEvent] = []
    for event in events:
        if event is target or event.event_id == target.event_id:
            continue
        interval = event_interval(event, period_start, min_duration_minutes)
        if events_overlap(target_interval, interval):
            overlapping.append(event)
    return overlapping


def _build_cluster(
    index: int, members: list[tuple[TimedEvent, Interval]], max_end: float
) -> Cluster:
    return Cluster(
        index=index,
        events=tuple(event for event, _ in members),
        intervals=tuple(interval for _, interval in members),
        max_end=max_end,
    )
