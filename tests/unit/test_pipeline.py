"""Unit tests for seawatch.analysis.pipeline.EventAnalyzer.

The store is a real SQLite file; the generator is an AsyncMock so each test
controls exactly what the model "says".
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, patch
from uuid import UUID, uuid4

import pytest

from seawatch.analysis.guardrails import (
    DEFAULT_SUMMARY,
    NOTE_LLM_UNAVAILABLE,
    NOTE_LOW_QUALITY,
    NOTE_NO_SAMPLES,
)
from seawatch.analysis.pipeline import EventAnalyzer, parse_event_id
from seawatch.errors import EventNotFoundError, GenerationFailure, InvalidIdentifierError, NoEventsError
from seawatch.models.events import Severity
from seawatch.store.sqlite_store import TelemetryStore

_TS = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

_METRICS = {
    "engine_rpm": 100.0,
    "engine_temp": 80.0,
    "oil_pressure": 40.0,
    "fuel_pressure": 50.0,
    "coolant_temp": 70.0,
}

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
async def store(tmp_path) -> AsyncIterator[TelemetryStore]:
    s = TelemetryStore(str(tmp_path / "pipeline.db"))
    await s.open()
    yield s
    await s.close()


def _make_generator(text: str = '{"summary": "Normal", "confidence": 90}') -> AsyncMock:
    generator = AsyncMock()
    generator.generate = AsyncMock(return_value=text)
    return generator


def _failing_generator() -> AsyncMock:
    generator = AsyncMock()
    generator.generate = AsyncMock(side_effect=GenerationFailure("Ollama unreachable: refused"))
    return generator


async def _seed_event(
    store: TelemetryStore,
    samples: int = 5,
    quality: float = 0.95,
    vessel_id: str = "vessel_001",
    ts: datetime = _TS,
) -> UUID:
    for i in range(samples):
        await store.insert_telemetry(vessel_id, ts - timedelta(minutes=i), _METRICS, quality)
    return await store.insert_event(
        vessel_id=vessel_id,
        ts=ts,
        sensor_id="engine_temp",
        severity=Severity.CRITICAL,
        event_type="overtemp",
        description="Engine temperature spike detected.",
    )


async def _count_analyses(store: TelemetryStore, event_id: UUID | str) -> int:
    rows = list(
        await store._conn().execute_fetchall(
            "SELECT count(*) FROM ai_analyses WHERE event_id = ?",
            (str(event_id),),
        )
    )
    return int(rows[0][0])


# ---------------------------------------------------------------------------
# Identifier validation
# ---------------------------------------------------------------------------


class TestParseEventId:
    def test_valid_uuid(self) -> None:
        raw = "3f2b8c1e-7a4d-4c8e-9f51-2d6b0a9e4c17"
        assert parse_event_id(raw) == UUID(raw)

    def test_surrounding_whitespace_tolerated(self) -> None:
        assert parse_event_id(" 3f2b8c1e-7a4d-4c8e-9f51-2d6b0a9e4c17 ").hex == "3f2b8c1e7a4d4c8e9f512d6b0a9e4c17"

    @pytest.mark.parametrize("raw", ["", "abc", "1234", "3f2b8c1e-7a4d-4c8e-9f51"])
    def test_invalid(self, raw: str) -> None:
        with pytest.raises(InvalidIdentifierError):
            parse_event_id(raw)


# ---------------------------------------------------------------------------
# analyze()
# ---------------------------------------------------------------------------


class TestAnalyze:
    async def test_invalid_id_touches_nothing(self) -> None:
        store = AsyncMock()
        generator = _make_generator()
        with pytest.raises(InvalidIdentifierError):
            await EventAnalyzer(store, generator).analyze("not-a-uuid")
        store.get_event.assert_not_awaited()
        generator.generate.assert_not_awaited()

    async def test_unknown_event(self, store: TelemetryStore) -> None:
        generator = _make_generator()
        with pytest.raises(EventNotFoundError):
            await EventAnalyzer(store, generator).analyze(str(uuid4()))
        generator.generate.assert_not_awaited()

    async def test_fresh_analysis_is_computed_and_stored(self, store: TelemetryStore) -> None:
        event_id = await _seed_event(store)
        generator = _make_generator()

        outcome = await EventAnalyzer(store, generator).analyze(str(event_id))

        assert outcome.from_cache is False
        assert outcome.event.event_id == event_id
        assert outcome.analysis.summary == "Normal"
        assert outcome.analysis.confidence == 90
        assert outcome.analysis.data_quality_notes == ""
        assert outcome.analysis.evidence_stats["sample_count"] == 5.0
        assert await _count_analyses(store, event_id) == 1

        prompt = generator.generate.await_args.args[0]
        assert "Event: overtemp (severity CRITICAL)" in prompt

    async def test_second_call_served_from_cache(self, store: TelemetryStore) -> None:
        event_id = await _seed_event(store)
        generator = _make_generator()
        analyzer = EventAnalyzer(store, generator)

        with patch.object(store, "get_stats", new=AsyncMock(wraps=store.get_stats)) as get_stats:
            first = await analyzer.analyze(str(event_id))
            second = await analyzer.analyze(str(event_id))

        get_stats.assert_awaited_once()

        assert second.from_cache is True
        assert second.analysis == first.analysis
        assert second.created_at == first.created_at
        assert generator.generate.await_count == 1
        assert await _count_analyses(store, event_id) == 1

    async def test_force_recomputes_and_appends(self, store: TelemetryStore) -> None:
        event_id = await _seed_event(store)
        generator = _make_generator()
        analyzer = EventAnalyzer(store, generator)

        await analyzer.analyze(str(event_id))
        generator.generate.return_value = '{"summary": "Changed", "confidence": 70}'
        forced = await analyzer.analyze(str(event_id), force=True)
        after = await analyzer.analyze(str(event_id))

        assert forced.from_cache is False
        assert forced.analysis.summary == "Changed"
        assert after.from_cache is True
        assert after.analysis.summary == "Changed"
        assert generator.generate.await_count == 2
        assert await _count_analyses(store, event_id) == 2

    async def test_generation_failure_is_recovered(self, store: TelemetryStore) -> None:
        event_id = await _seed_event(store)
        outcome = await EventAnalyzer(store, _failing_generator()).analyze(str(event_id))

        assert outcome.analysis.summary == DEFAULT_SUMMARY
        assert outcome.analysis.confidence == 30
        assert outcome.analysis.data_quality_notes == NOTE_LLM_UNAVAILABLE
        assert await _count_analyses(store, event_id) == 1

    async def test_oversized_integer_in_response_is_not_an_error(self, store: TelemetryStore) -> None:
        event_id = await _seed_event(store)
        text = '{"summary": "ok", "confidence": ' + "9" * 5000 + "}"

        outcome = await EventAnalyzer(store, _make_generator(text)).analyze(str(event_id))

        assert outcome.analysis.summary == text
        assert outcome.analysis.confidence == 50

    async def test_no_samples_and_failure(self, store: TelemetryStore) -> None:
        event_id = await _seed_event(store, samples=0)
        outcome = await EventAnalyzer(store, _failing_generator()).analyze(str(event_id))

        assert outcome.analysis.confidence <= 20
        assert outcome.analysis.data_quality_notes == f"{NOTE_NO_SAMPLES} {NOTE_LLM_UNAVAILABLE}"
        assert outcome.analysis.evidence_stats["sample_count"] == 0.0

    async def test_low_quality_window(self, store: TelemetryStore) -> None:
        event_id = await _seed_event(store, quality=0.5)
        outcome = await EventAnalyzer(store, _make_generator()).analyze(str(event_id))

        assert outcome.analysis.confidence == 40
        assert outcome.analysis.data_quality_notes == NOTE_LOW_QUALITY

    async def test_prose_response_becomes_summary(self, store: TelemetryStore) -> None:
        event_id = await _seed_event(store)
        outcome = await EventAnalyzer(store, _make_generator("engine looks fine")).analyze(str(event_id))

        assert outcome.analysis.summary == "engine looks fine"
        assert outcome.analysis.confidence == 50

    async def test_store_write_error_propagates(self, store: TelemetryStore) -> None:
        event_id = await _seed_event(store)
        analyzer = EventAnalyzer(store, _make_generator())
        store.put_analysis = AsyncMock(side_effect=RuntimeError("disk full"))  # type: ignore[method-assign]

        with pytest.raises(RuntimeError, match="disk full"):
            await analyzer.analyze(str(event_id))


# ---------------------------------------------------------------------------
# analyze_latest()
# ---------------------------------------------------------------------------


class TestAnalyzeLatest:
    async def test_picks_most_recent_event(self, store: TelemetryStore) -> None:
        await _seed_event(store, ts=_TS)
        newest = await _seed_event(store, vessel_id="vessel_002", ts=_TS + timedelta(minutes=3))

        outcome = await EventAnalyzer(store, _make_generator()).analyze_latest()
        assert outcome.event.event_id == newest

    async def test_filters_by_vessel(self, store: TelemetryStore) -> None:
        mine = await _seed_event(store, ts=_TS)
        await _seed_event(store, vessel_id="vessel_002", ts=_TS + timedelta(minutes=3))

        outcome = await EventAnalyzer(store, _make_generator()).analyze_latest("vessel_001")
        assert outcome.event.event_id == mine

    async def test_no_events(self, store: TelemetryStore) -> None:
        with pytest.raises(NoEventsError):
            await EventAnalyzer(store, _make_generator()).analyze_latest()

    async def test_no_events_for_vessel(self, store: TelemetryStore) -> None:
        await _seed_event(store)
        with pytest.raises(NoEventsError) as exc_info:
            await EventAnalyzer(store, _make_generator()).analyze_latest("vessel_404")
        assert exc_info.value.vessel_id == "vessel_404"
        assert isinstance(exc_info.value, EventNotFoundError)
