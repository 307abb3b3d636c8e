from __future__ import annotations

from domain.models import Cluster, ColumnSlot


def assign_columns(cluster: Cluster, max_columns: int) -> list[ColumnSlot]:
    """Round-robin columns over a cluster in start order.

    Events past ``max_columns`` wrap onto existing columns and are flagged as
    overflow so the renderer can collapse them into a "+N more" badge.
    """
    if max_columns < 1:
        msg = f"max_columns must be at least 1, got {max_columns}"
        raise ValueError(msg)
    column_count = min(cluster.size, max_columns)
    return [
        ColumnSlot(
            event=event,
            column=index % column_count,
            column_count=column_count,
            overflow=index >= max_columns,
        )
        for index, event in enumerate(cluster.events)
    ]


def overflow_slots(slots: list[ColumnSlot]) -> list[ColumnSlot]:
    return [slot for slot in slots if slot.overflow]
