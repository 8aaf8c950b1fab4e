"""Unit tests for seawatch.analysis.cache.AnalysisCache."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID

from seawatch.analysis.cache import AnalysisCache
from seawatch.models.analysis import Analysis
from seawatch.models.events import Event, Severity

_EVENT_ID = UUID("3f2b8c1e-7a4d-4c8e-9f51-2d6b0a9e4c17")
_CREATED = datetime(2026, 3, 1, 12, 1, tzinfo=UTC)


def _make_event() -> Event:
    return Event(
        event_id=_EVENT_ID,
        timestamp=datetime(2026, 3, 1, 12, 0, tzinfo=UTC),
        vessel_id="vessel_001",
        sensor_id="oil_pressure",
        severity=Severity.WARNING,
        event_type="low_oil_pressure",
        description="Oil pressure drop detected.",
    )


def _make_analysis() -> Analysis:
    return Analysis(
        event_id=str(_EVENT_ID),
        summary="Pressure fell.",
        possible_causes=("worn pump",),
        recommended_actions=(),
        confidence=40,
        data_quality_notes="Data quality is low in the context window.",
        data_sources=("timescaledb.telemetry", "timescaledb.events"),
        evidence_window="w",
        evidence_stats={"sample_count": 3.0},
    )


def _make_store(row: tuple[datetime, str] | None = None) -> MagicMock:
    store = MagicMock()
    store.get_latest_analysis = AsyncMock(return_value=row)
    store.put_analysis = AsyncMock(return_value=None)
    return store


class TestGetLatest:
    async def test_miss(self) -> None:
        assert await AnalysisCache(_make_store()).get_latest(_EVENT_ID) is None

    async def test_hit_decodes_blob(self) -> None:
        analysis = _make_analysis()
        store = _make_store((_CREATED, json.dumps(analysis.to_dict())))
        stored = await AnalysisCache(store).get_latest(_EVENT_ID)

        assert stored is not None
        assert stored.analysis == analysis
        assert stored.created_at == _CREATED
        store.get_latest_analysis.assert_awaited_once_with(_EVENT_ID)

    async def test_unreadable_json_is_a_miss(self) -> None:
        store = _make_store((_CREATED, "{not json"))
        assert await AnalysisCache(store).get_latest(_EVENT_ID) is None

    async def test_non_object_json_is_a_miss(self) -> None:
        store = _make_store((_CREATED, "[1, 2]"))
        assert await AnalysisCache(store).get_latest(_EVENT_ID) is None

    async def test_wrong_shape_is_a_miss(self) -> None:
        store = _make_store((_CREATED, json.dumps({"summary": "legacy row"})))
        assert await AnalysisCache(store).get_latest(_EVENT_ID) is None


class TestPut:
    async def test_appends_serialised_analysis(self) -> None:
        store = _make_store()
        analysis = _make_analysis()
        before = datetime.now(tz=UTC)

        created_at = await AnalysisCache(store).put(_make_event(), analysis)

        assert before <= created_at <= datetime.now(tz=UTC)
        store.put_analysis.assert_awaited_once_with(
            event_id=_EVENT_ID,
            vessel_id="vessel_001",
            created_at=created_at,
            analysis=analysis.to_dict(),
            rag_sources=(),
        )
