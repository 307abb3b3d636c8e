from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from itertools import combinations
from typing import Any, Literal

from domain.models import Cluster
from domain.services.overlap_grouping import overlap_fraction

Severity = Literal["low", "medium", "high"]


@dataclass(frozen=True)
class OverlapMetrics:
    total_events: int
    overlapping_events: int
    overlap_groups: int
    max_overlap_in_group: int
    average_overlap_percentage: float
    significant_overlap_pairs: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_events": self.total_events,
            "overlapping_events": self.overlapping_events,
            "overlap_groups": self.overlap_groups,
            "max_overlap_in_group": self.max_overlap_in_group,
            "average_overlap_percentage": self.average_overlap_percentage,
            "significant_overlap_pairs": self.significant_overlap_pairs,
        }


@dataclass(frozen=True)
class TimeConflict:
    cluster_index: int
    event_ids: tuple[str, ...]
    severity: Severity
    description: str
    type: str = "overlap"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "cluster_index": self.cluster_index,
            "event_ids": list(self.event_ids),
            "severity": self.severity,
            "description": self.description,
        }


def compute_overlap_metrics(
    clusters: Sequence[Cluster], overlap_threshold: float = 0.1
) -> OverlapMetrics:
    total_events = sum(cluster.size for cluster in clusters)
    overlapping = [cluster for cluster in clusters if cluster.size > 1]

    total_fraction = 0.0
    pair_count = 0
    significant = 0
    for cluster in overlapping:
        for first, second in combinations(cluster.intervals, 2):
            fraction = overlap_fraction(first, second)
            total_fraction += fraction
            pair_count += 1
            if fraction > 0 and fraction >= overlap_threshold:
                significant += 1

    return OverlapMetrics(
        total_events=total_events,
        overlapping_events=sum(cluster.size for cluster in overlapping),
        overlap_groups=len(overlapping),
        max_overlap_in_group=max((cluster.size for cluster in overlapping), default=0),
        average_overlap_percentage=total_fraction / pair_count if pair_count else 0.0,
        significant_overlap_pairs=significant,
    )


def classify_severity(cluster_size: int) -> Severity:
    if cluster_size > 3:
        return "high"
    if cluster_size == 3:
        return "medium"
    return "low"


def detect_time_conflicts(clusters: Sequence[Cluster]) -> list[TimeConflict]:
    return [
        TimeConflict(
            cluster_index=cluster.index,
            event_ids=tuple(event.event_id for event in cluster.events),
            severity=classify_severity(cluster.size),
            description=f"{cluster.size} events overlap at the same time",
        )
        for cluster in clusters
        if cluster.size > 1
    ]
