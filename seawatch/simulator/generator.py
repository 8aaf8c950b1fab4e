"""Synthetic vessel telemetry simulator.

Each tick drifts every vessel's engine metrics by a bounded random walk,
writes one telemetry row per vessel and, when an anomaly fires, an event row
carrying a snapshot of the metrics. New events are handed to the agent's
``POST /analyze`` so an analysis is ready before anyone asks for it.

State is threaded through pure functions; the only side effects live in
:class:`TelemetrySimulator`. The random source is injectable so tests can
pin every roll.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from uuid import UUID

import httpx
import structlog

from seawatch.config import load_config
from seawatch.models.config import SimulatorConfig
from seawatch.models.events import Severity
from seawatch.observability.logging import setup_logging
from seawatch.observability.metrics import simulator_events_total, simulator_samples_total
from seawatch.store.sqlite_store import TelemetryStore

_log = structlog.get_logger(component="simulator")

ANOMALY_PROBABILITY = 0.06
SCHEDULE_EVERY_TICKS = 120
ANOMALY_QUALITY_CEILING = 0.8
QUALITY_RANGE = (0.92, 0.99)

# (step, low, high) per metric
_WALK: dict[str, tuple[float, float, float]] = {
    "engine_rpm": (2.0, 70.0, 140.0),
    "engine_temp": (0.5, 65.0, 95.0),
    "oil_pressure": (1.0, 25.0, 55.0),
    "fuel_pressure": (1.0, 35.0, 70.0),
    "coolant_temp": (0.5, 55.0, 85.0),
}

_INITIAL: dict[str, tuple[float, float]] = {
    "engine_rpm": (90.0, 110.0),
    "engine_temp": (70.0, 85.0),
    "oil_pressure": (35.0, 50.0),
    "fuel_pressure": (45.0, 60.0),
    "coolant_temp": (60.0, 75.0),
}

_ANOMALY_TYPES = ("overtemp", "low_oil_pressure", "rpm_anomaly")


@dataclass(frozen=True)
class VesselState:
    engine_rpm: float
    engine_temp: float
    oil_pressure: float
    fuel_pressure: float
    coolant_temp: float

    def as_metrics(self) -> dict[str, float]:
        return {
            "engine_rpm": self.engine_rpm,
            "engine_temp": self.engine_temp,
            "oil_pressure": self.oil_pressure,
            "fuel_pressure": self.fuel_pressure,
            "coolant_temp": self.coolant_temp,
        }


@dataclass(frozen=True)
class Anomaly:
    event_type: str
    severity: Severity
    sensor_id: str
    description: str


@dataclass(frozen=True)
class Sample:
    """Outcome of one tick for one vessel. ``state`` carries into the next tick."""

    state: VesselState
    data_quality: float
    anomaly: Anomaly | None = None


# ---------------------------------------------------------------------------
# Pure tick functions
# ---------------------------------------------------------------------------


def _uniform(rng: random.Random, low: float, high: float) -> float:
    return low + rng.random() * (high - low)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def initial_state(rng: random.Random) -> VesselState:
    return VesselState(**{name: _uniform(rng, lo, hi) for name, (lo, hi) in _INITIAL.items()})


def drift(state: VesselState, rng: random.Random) -> VesselState:
    """Random-walk every metric by at most its step, then clamp to its range."""
    current = state.as_metrics()
    return VesselState(
        **{
            name: _clamp(current[name] + _uniform(rng, -step, step), low, high)
            for name, (step, low, high) in _WALK.items()
        }
    )


def random_anomaly(state: VesselState, rng: random.Random) -> tuple[VesselState, Anomaly | None]:
    """Roll for an unscheduled anomaly and apply its perturbation."""
    if rng.random() > ANOMALY_PROBABILITY:
        return state, None

    event_type = rng.choice(_ANOMALY_TYPES)
    if event_type == "overtemp":
        temp = state.engine_temp + _uniform(rng, 15.0, 30.0)
        severity = Severity.CRITICAL if temp > 105 else Severity.WARNING
        return replace(state, engine_temp=temp), Anomaly(
            event_type, severity, "engine_temp", "Engine temperature spike detected."
        )
    if event_type == "low_oil_pressure":
        oil = state.oil_pressure - _uniform(rng, 18.0, 28.0)
        severity = Severity.CRITICAL if oil < 18 else Severity.WARNING
        return replace(state, oil_pressure=oil), Anomaly(
            event_type, severity, "oil_pressure", "Oil pressure drop detected."
        )
    rpm = state.engine_rpm + _uniform(rng, 40.0, 80.0)
    return replace(state, engine_rpm=rpm), Anomaly(
        event_type, Severity.WARNING, "engine_rpm", "RPM surge detected."
    )


def scheduled_anomaly(state: VesselState, rng: random.Random) -> tuple[VesselState, Anomaly]:
    """Deterministic-magnitude anomaly used for periodic demo events."""
    event_type = rng.choice(_ANOMALY_TYPES)
    if event_type == "overtemp":
        return replace(state, engine_temp=state.engine_temp + 30.0), Anomaly(
            event_type, Severity.CRITICAL, "engine_temp", "Scheduled over-temperature spike."
        )
    if event_type == "low_oil_pressure":
        return replace(state, oil_pressure=state.oil_pressure - 20.0), Anomaly(
            event_type, Severity.CRITICAL, "oil_pressure", "Scheduled oil pressure drop."
        )
    return replace(state, engine_rpm=state.engine_rpm + 50.0), Anomaly(
        event_type, Severity.WARNING, "engine_rpm", "Scheduled RPM surge."
    )


def tick(state: VesselState, rng: random.Random, scheduled: bool = False) -> Sample:
    """Advance one vessel by one tick."""
    state = drift(state, rng)
    quality = _uniform(rng, *QUALITY_RANGE)
    state, anomaly = random_anomaly(state, rng)
    if scheduled:
        state, anomaly = scheduled_anomaly(state, rng)
    if anomaly is not None:
        quality = min(quality, ANOMALY_QUALITY_CEILING)
    return Sample(state=state, data_quality=quality, anomaly=anomaly)


# ---------------------------------------------------------------------------
# Side-effecting loop
# ---------------------------------------------------------------------------


class TelemetrySimulator:
    """Writes simulated telemetry and events into a TelemetryStore.

    Args:
        store:       Opened TelemetryStore.
        config:      Vessel list, tick interval and agent URL.
        rng:         Random source; a fresh ``random.Random()`` by default.
        http_client: Client used for the auto-analyse POST; built when omitted.
    """

    def __init__(
        self,
        store: TelemetryStore,
        config: SimulatorConfig,
        rng: random.Random | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._store = store
        self._config = config
        self._rng = rng or random.Random()
        self._client = http_client or httpx.AsyncClient(base_url=config.agent_url, timeout=httpx.Timeout(120.0))
        self._states: dict[str, VesselState] = {v: initial_state(self._rng) for v in config.vessels}
        self._ticks = 0

    @property
    def states(self) -> Mapping[str, VesselState]:
        return dict(self._states)

    @property
    def ticks(self) -> int:
        return self._ticks

    async def step(self, now: datetime | None = None) -> list[UUID]:
        """Run one tick for every vessel. Returns the ids of events written."""
        self._ticks += 1
        ts = now or datetime.now(tz=UTC)
        created: list[UUID] = []

        for index, vessel_id in enumerate(self._config.vessels):
            scheduled = index == 0 and self._ticks % SCHEDULE_EVERY_TICKS == 0
            sample = tick(self._states[vessel_id], self._rng, scheduled=scheduled)
            self._states[vessel_id] = sample.state

            metrics = sample.state.as_metrics()
            await self._store.insert_telemetry(vessel_id, ts, metrics, sample.data_quality)
            simulator_samples_total.labels(vessel_id=vessel_id).inc()

            if sample.anomaly is None:
                continue

            anomaly = sample.anomaly
            event_id = await self._store.insert_event(
                vessel_id=vessel_id,
                ts=ts,
                sensor_id=anomaly.sensor_id,
                severity=anomaly.severity,
                event_type=anomaly.event_type,
                description=anomaly.description,
                metrics_snapshot={**metrics, "data_quality_score": sample.data_quality},
            )
            simulator_events_total.labels(event_type=anomaly.event_type, severity=anomaly.severity.value).inc()
            _log.info(
                "event_generated",
                event_id=str(event_id),
                vessel_id=vessel_id,
                event_type=anomaly.event_type,
                severity=anomaly.severity.value,
            )
            created.append(event_id)
            await self._trigger_analysis(event_id)

        _log.debug("telemetry_batch_inserted", tick=self._ticks, vessels=len(self._config.vessels))
        return created

    async def _trigger_analysis(self, event_id: UUID) -> None:
        try:
            response = await self._client.post("/analyze", json={"event_id": str(event_id)})
            response.raise_for_status()
        except httpx.HTTPError as exc:
            _log.warning("auto_analyze_failed", event_id=str(event_id), error=str(exc))
            return
        _log.info("auto_analyze_completed", event_id=str(event_id))

    async def run_forever(self) -> None:
        _log.info(
            "simulator_started",
            vessels=list(self._config.vessels),
            interval_seconds=self._config.interval_seconds,
        )
        while True:
            await self.step()
            await asyncio.sleep(self._config.interval_seconds)

    async def aclose(self) -> None:
        await self._client.aclose()


async def _main() -> None:
    config = load_config()
    setup_logging(config.log.level)
    store = TelemetryStore(config.store.db_path)
    await store.open()
    simulator = TelemetrySimulator(store, config.simulator)
    try:
        await simulator.run_forever()
    finally:
        await simulator.aclose()
        await store.close()


def run() -> None:
    """Console-script entry point for ``seawatch-simulator``."""
    try:
        asyncio.run(_main())
    except KeyboardInterrupt:
        pass
