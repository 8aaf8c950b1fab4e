"""Unit tests for seawatch.simulator.generator."""

from __future__ import annotations

import json
import random
from collections.abc import Sequence
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import httpx
import pytest

from seawatch.models.config import SimulatorConfig
from seawatch.models.events import Severity
from seawatch.simulator.generator import (
    ANOMALY_QUALITY_CEILING,
    SCHEDULE_EVERY_TICKS,
    TelemetrySimulator,
    VesselState,
    drift,
    initial_state,
    random_anomaly,
    scheduled_anomaly,
    tick,
)

_TS = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

_RANGES = {
    "engine_rpm": (2.0, 70.0, 140.0),
    "engine_temp": (0.5, 65.0, 95.0),
    "oil_pressure": (1.0, 25.0, 55.0),
    "fuel_pressure": (1.0, 35.0, 70.0),
    "coolant_temp": (0.5, 55.0, 85.0),
}

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _Scripted(random.Random):
    """random() replays *values* (then *default*); choice() always picks *pick*."""

    def __init__(self, values: Sequence[float] = (), default: float = 0.5, pick: str = "overtemp") -> None:
        super().__init__(0)
        self._values = list(values)
        self._default = default
        self._pick = pick

    def random(self) -> float:
        return self._values.pop(0) if self._values else self._default

    def choice(self, seq):  # type: ignore[no-untyped-def, override]
        assert self._pick in seq
        return self._pick


def _state(**overrides: float) -> VesselState:
    values = {
        "engine_rpm": 100.0,
        "engine_temp": 80.0,
        "oil_pressure": 40.0,
        "fuel_pressure": 50.0,
        "coolant_temp": 70.0,
    }
    values.update(overrides)
    return VesselState(**values)


def _make_store() -> MagicMock:
    store = MagicMock()
    store.insert_telemetry = AsyncMock(return_value=None)
    store.insert_event = AsyncMock(side_effect=lambda **_kw: uuid4())
    return store


# ---------------------------------------------------------------------------
# Pure functions
# ---------------------------------------------------------------------------


class TestDrift:
    def test_initial_state_in_range(self) -> None:
        state = initial_state(random.Random(1)).as_metrics()
        for name, (_, low, high) in _RANGES.items():
            assert low <= state[name] <= high

    def test_random_walk_bounded_and_clamped(self) -> None:
        rng = random.Random(42)
        state = initial_state(rng)
        for _ in range(2000):
            new = drift(state, rng)
            before, after = state.as_metrics(), new.as_metrics()
            for name, (step, low, high) in _RANGES.items():
                assert low <= after[name] <= high
                assert abs(after[name] - before[name]) <= step + 1e-9
            state = new

    def test_clamps_out_of_range_values(self) -> None:
        new = drift(_state(engine_temp=120.0, oil_pressure=5.0), _Scripted(default=0.5))
        assert new.engine_temp == 95.0
        assert new.oil_pressure == 25.0


class TestRandomAnomaly:
    def test_roll_above_probability_is_quiet(self) -> None:
        state = _state()
        assert random_anomaly(state, _Scripted([0.07])) == (state, None)

    @pytest.mark.parametrize(("magnitude", "severity"), [(1.0, Severity.CRITICAL), (0.0, Severity.WARNING)])
    def test_overtemp(self, magnitude: float, severity: Severity) -> None:
        state, anomaly = random_anomaly(_state(engine_temp=80.0), _Scripted([0.0, magnitude], pick="overtemp"))
        assert anomaly is not None
        assert anomaly.severity is severity
        assert anomaly.sensor_id == "engine_temp"
        assert state.engine_temp == 80.0 + 15.0 + 15.0 * magnitude

    @pytest.mark.parametrize(("magnitude", "severity"), [(1.0, Severity.CRITICAL), (0.0, Severity.WARNING)])
    def test_low_oil_pressure(self, magnitude: float, severity: Severity) -> None:
        state, anomaly = random_anomaly(
            _state(oil_pressure=40.0), _Scripted([0.0, magnitude], pick="low_oil_pressure")
        )
        assert anomaly is not None
        assert anomaly.severity is severity
        assert anomaly.description == "Oil pressure drop detected."
        assert state.oil_pressure == 40.0 - 18.0 - 10.0 * magnitude

    def test_rpm_anomaly_is_warning(self) -> None:
        state, anomaly = random_anomaly(_state(engine_rpm=100.0), _Scripted([0.0, 1.0], pick="rpm_anomaly"))
        assert anomaly is not None
        assert anomaly.severity is Severity.WARNING
        assert state.engine_rpm == 180.0


class TestScheduledAnomaly:
    def test_overtemp(self) -> None:
        state, anomaly = scheduled_anomaly(_state(engine_temp=80.0), _Scripted(pick="overtemp"))
        assert state.engine_temp == 110.0
        assert anomaly.severity is Severity.CRITICAL
        assert anomaly.description == "Scheduled over-temperature spike."

    def test_oil(self) -> None:
        state, anomaly = scheduled_anomaly(_state(oil_pressure=40.0), _Scripted(pick="low_oil_pressure"))
        assert state.oil_pressure == 20.0
        assert anomaly.severity is Severity.CRITICAL

    def test_rpm(self) -> None:
        state, anomaly = scheduled_anomaly(_state(engine_rpm=100.0), _Scripted(pick="rpm_anomaly"))
        assert state.engine_rpm == 150.0
        assert anomaly.severity is Severity.WARNING


class TestTick:
    def test_quiet_tick_quality_in_range(self) -> None:
        for seed in range(50):
            sample = tick(_state(), _Scripted([0.5] * 5 + [random.Random(seed).random(), 0.9]))
            assert sample.anomaly is None
            assert 0.92 <= sample.data_quality <= 0.99

    def test_anomaly_caps_quality(self) -> None:
        sample = tick(_state(), _Scripted([0.5] * 5 + [1.0, 0.0, 0.0]))
        assert sample.anomaly is not None
        assert sample.data_quality == ANOMALY_QUALITY_CEILING

    def test_scheduled_overrides(self) -> None:
        sample = tick(_state(), _Scripted(default=0.5, pick="rpm_anomaly"), scheduled=True)
        assert sample.anomaly is not None
        assert sample.anomaly.description == "Scheduled RPM surge."
        assert sample.state.engine_rpm == 150.0
        assert sample.data_quality <= ANOMALY_QUALITY_CEILING


# ---------------------------------------------------------------------------
# TelemetrySimulator
# ---------------------------------------------------------------------------


class TestTelemetrySimulator:
    def _make(
        self,
        store: MagicMock,
        handler,  # type: ignore[no-untyped-def]
        vessels: tuple[str, ...] = ("vessel_001", "vessel_002"),
    ) -> TelemetrySimulator:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://agent.test")
        return TelemetrySimulator(
            store,
            SimulatorConfig(vessels=vessels, interval_seconds=1, agent_url="http://agent.test"),
            rng=_Scripted(default=0.5, pick="overtemp"),
            http_client=http_client,
        )

    async def test_quiet_tick_writes_telemetry_only(self) -> None:
        store = _make_store()
        sim = self._make(store, lambda _req: httpx.Response(200, json={}))

        created = await sim.step(now=_TS)

        assert created == []
        assert store.insert_telemetry.await_count == 2
        store.insert_event.assert_not_awaited()
        vessel_id, ts, metrics, quality = store.insert_telemetry.await_args_list[0].args
        assert (vessel_id, ts) == ("vessel_001", _TS)
        assert set(metrics) == set(_RANGES)
        assert quality == pytest.approx(0.955)
        await sim.aclose()

    async def test_scheduled_event_for_first_vessel_only(self) -> None:
        store = _make_store()
        posted: list[dict[str, object]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            posted.append(json.loads(request.content))
            return httpx.Response(200, json={})

        sim = self._make(store, handler)
        sim._ticks = SCHEDULE_EVERY_TICKS - 1

        created = await sim.step(now=_TS)

        assert sim.ticks == SCHEDULE_EVERY_TICKS
        assert len(created) == 1
        kwargs = store.insert_event.await_args.kwargs
        assert kwargs["vessel_id"] == "vessel_001"
        assert kwargs["event_type"] == "overtemp"
        assert kwargs["severity"] is Severity.CRITICAL
        assert kwargs["metrics_snapshot"]["data_quality_score"] == ANOMALY_QUALITY_CEILING
        assert posted == [{"event_id": str(created[0])}]
        await sim.aclose()

    async def test_analyze_failure_is_not_fatal(self) -> None:
        store = _make_store()
        sim = self._make(store, lambda _req: httpx.Response(503), vessels=("vessel_001",))
        sim._ticks = SCHEDULE_EVERY_TICKS - 1

        created = await sim.step(now=_TS)

        assert len(created) == 1
        await sim.aclose()

    async def test_unreachable_agent_is_not_fatal(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        store = _make_store()
        sim = self._make(store, handler, vessels=("vessel_001",))
        sim._ticks = SCHEDULE_EVERY_TICKS - 1

        assert len(await sim.step(now=_TS)) == 1
        await sim.aclose()

    async def test_state_carries_between_ticks(self) -> None:
        store = _make_store()
        sim = self._make(store, lambda _req: httpx.Response(200, json={}), vessels=("vessel_001",))
        sim._ticks = SCHEDULE_EVERY_TICKS - 1
        before = sim.states["vessel_001"].engine_temp

        await sim.step(now=_TS)

        assert sim.states["vessel_001"].engine_temp == before + 30.0
        await sim.aclose()
