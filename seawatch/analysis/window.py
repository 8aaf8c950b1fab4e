"""Analysis window resolution.

Every analysis looks at a fixed interval around the event: 30 minutes before
it and 5 minutes after. The bounds are not configurable.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from seawatch.errors import EventNotFoundError
from seawatch.models.analysis import METRIC_NAMES, MetricStats, StatsWindow
from seawatch.models.events import Event

WINDOW_BEFORE = timedelta(minutes=30)
WINDOW_AFTER = timedelta(minutes=5)


class _StoreProto(Protocol):
    async def get_event(self, event_id: UUID) -> Event | None: ...

    async def get_stats(self, vessel_id: str, start: datetime, end: datetime) -> Mapping[str, object]: ...


def window_bounds(ts: datetime) -> tuple[datetime, datetime]:
    return ts - WINDOW_BEFORE, ts + WINDOW_AFTER


def _as_float(value: object) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int | float | Decimal):
        return float(value)
    try:
        return float(str(value))
    except ValueError:
        return None


def coerce_stats(raw: Mapping[str, object]) -> dict[str, float | None]:
    """Normalise every numeric value in an aggregate row to float."""
    return {key: _as_float(value) for key, value in raw.items()}


def stats_from_row(
    vessel_id: str,
    window_start: datetime,
    window_end: datetime,
    raw: Mapping[str, object],
) -> StatsWindow:
    """Build a StatsWindow from an aggregate row in the store's native types."""
    coerced = coerce_stats(raw)
    sample_count = int(coerced.get("sample_count") or 0)
    metrics: dict[str, MetricStats] = {}
    for name in METRIC_NAMES:
        if sample_count == 0:
            metrics[name] = MetricStats()
            continue
        metrics[name] = MetricStats(
            min=coerced.get(f"min_{name}"),
            max=coerced.get(f"max_{name}"),
            avg=coerced.get(f"avg_{name}"),
        )
    return StatsWindow(
        vessel_id=vessel_id,
        window_start=window_start,
        window_end=window_end,
        sample_count=sample_count,
        metrics=metrics,
        avg_data_quality=coerced.get("avg_data_quality") if sample_count else None,
    )


async def resolve_window(store: _StoreProto, event_id: UUID) -> tuple[Event, StatsWindow]:
    """Load the event and aggregate the telemetry around it.

    Raises:
        EventNotFoundError: no event has this id.
    """
    event = await store.get_event(event_id)
    if event is None:
        raise EventNotFoundError(event_id)
    stats = await fetch_stats(store, event)
    return event, stats


async def fetch_stats(store: _StoreProto, event: Event) -> StatsWindow:
    window_start, window_end = window_bounds(event.timestamp)
    raw = await store.get_stats(event.vessel_id, window_start, window_end)
    return stats_from_row(event.vessel_id, window_start, window_end, raw)
