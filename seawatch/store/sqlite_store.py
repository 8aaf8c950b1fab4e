"""SQLite event/telemetry store.

Holds the three tables the system needs: raw telemetry samples written by the
simulator, discrete anomaly events, and the append-only history of analyses.

Timestamps are stored as fixed-width ISO-8601 UTC text
(``YYYY-MM-DDTHH:MM:SS.ffffff+00:00``) so that range predicates can compare
them lexicographically.

Schema::

    CREATE TABLE telemetry (
        id                 INTEGER PRIMARY KEY,
        vessel_id          TEXT NOT NULL,
        ts                 TEXT NOT NULL,
        engine_rpm         REAL, engine_temp REAL, oil_pressure REAL,
        fuel_pressure      REAL, coolant_temp REAL,
        data_quality_score REAL
    );
    CREATE TABLE events (
        event_id TEXT PRIMARY KEY, ts TEXT, vessel_id TEXT, sensor_id TEXT,
        severity TEXT, event_type TEXT, description TEXT, metrics_snapshot TEXT
    );
    CREATE TABLE ai_analyses (
        id TEXT PRIMARY KEY, created_at TEXT, event_id TEXT, vessel_id TEXT,
        ai_summary TEXT, rag_sources TEXT
    );
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Final
from uuid import UUID, uuid4

import aiosqlite

from seawatch.models.analysis import METRIC_NAMES
from seawatch.models.events import Event, Severity
from seawatch.observability.logging import get_logger

_logger = get_logger("sqlite_store")

_SCHEMA_DDL: Final[str] = """
CREATE TABLE IF NOT EXISTS telemetry (
    id                 INTEGER PRIMARY KEY,
    vessel_id          TEXT NOT NULL,
    ts                 TEXT NOT NULL,
    engine_rpm         REAL,
    engine_temp        REAL,
    oil_pressure       REAL,
    fuel_pressure      REAL,
    coolant_temp       REAL,
    data_quality_score REAL
);

CREATE INDEX IF NOT EXISTS idx_telemetry_vessel_ts
    ON telemetry (vessel_id, ts);

CREATE TABLE IF NOT EXISTS events (
    event_id         TEXT PRIMARY KEY,
    ts               TEXT NOT NULL,
    vessel_id        TEXT NOT NULL,
    sensor_id        TEXT NOT NULL,
    severity         TEXT NOT NULL,
    event_type       TEXT NOT NULL,
    description      TEXT NOT NULL,
    metrics_snapshot TEXT
);

CREATE INDEX IF NOT EXISTS idx_events_vessel_ts
    ON events (vessel_id, ts);

CREATE TABLE IF NOT EXISTS ai_analyses (
    id          TEXT PRIMARY KEY,
    created_at  TEXT NOT NULL,
    event_id    TEXT NOT NULL,
    vessel_id   TEXT NOT NULL,
    ai_summary  TEXT NOT NULL,
    rag_sources TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_ai_analyses_event
    ON ai_analyses (event_id, created_at);
"""

_EVENT_COLUMNS: Final[str] = (
    "event_id, ts, vessel_id, sensor_id, severity, event_type, description, metrics_snapshot"
)

_STATS_SQL: Final[str] = (
    "SELECT count(*) AS sample_count, "
    + ", ".join(f"min({m}) AS min_{m}, max({m}) AS max_{m}, avg({m}) AS avg_{m}" for m in METRIC_NAMES)
    + ", avg(data_quality_score) AS avg_data_quality"
    + " FROM telemetry WHERE vessel_id = ? AND ts BETWEEN ? AND ?"
)


def to_db_timestamp(dt: datetime) -> str:
    """Normalise *dt* to the fixed-width UTC text form used in every table.

    Naive datetimes are taken to be UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat(timespec="microseconds")


def from_db_timestamp(raw: str) -> datetime:
    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class StoreNotOpenError(RuntimeError):
    """Raised when the store is used before open() or after close()."""


class TelemetryStore:
    """Async SQLite access for telemetry, events and analyses.

    Args:
        db_path: Path to the SQLite database file (``:memory:`` for tests).
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Open the database and apply the schema."""
        self._db = await aiosqlite.connect(self._db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.execute("PRAGMA journal_mode=WAL")
        await self._db.execute("PRAGMA synchronous=NORMAL")
        await self._db.executescript(_SCHEMA_DDL)
        await self._db.commit()
        _logger.info("sqlite_store_opened", db_path=self._db_path)

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None
            _logger.info("sqlite_store_closed", db_path=self._db_path)

    async def stop(self) -> None:
        await self.close()

    def _conn(self) -> aiosqlite.Connection:
        if self._db is None:
            raise StoreNotOpenError(f"store {self._db_path!r} is not open")
        return self._db

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def get_event(self, event_id: UUID) -> Event | None:
        """Point lookup by event id."""
        rows = await self._conn().execute_fetchall(
            f"SELECT {_EVENT_COLUMNS} FROM events WHERE event_id = ?",
            (str(event_id),),
        )
        rows = list(rows)
        return _row_to_event(rows[0]) if rows else None

    async def get_latest_event(self, vessel_id: str | None = None) -> Event | None:
        """Most recent event overall, or for one vessel."""
        if vessel_id:
            rows = await self._conn().execute_fetchall(
                f"SELECT {_EVENT_COLUMNS} FROM events WHERE vessel_id = ? ORDER BY ts DESC LIMIT 1",
                (vessel_id,),
            )
        else:
            rows = await self._conn().execute_fetchall(
                f"SELECT {_EVENT_COLUMNS} FROM events ORDER BY ts DESC LIMIT 1",
            )
        rows = list(rows)
        return _row_to_event(rows[0]) if rows else None

    async def insert_event(
        self,
        vessel_id: str,
        ts: datetime,
        sensor_id: str,
        severity: Severity,
        event_type: str,
        description: str,
        metrics_snapshot: Mapping[str, object] | None = None,
        event_id: UUID | None = None,
    ) -> UUID:
        """Insert an event row and return its id."""
        new_id = event_id or uuid4()
        db = self._conn()
        await db.execute(
            f"INSERT INTO events ({_EVENT_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                str(new_id),
                to_db_timestamp(ts),
                vessel_id,
                sensor_id,
                severity.value,
                event_type,
                description,
                json.dumps(dict(metrics_snapshot)) if metrics_snapshot is not None else None,
            ),
        )
        await db.commit()
        return new_id

    # ------------------------------------------------------------------
    # Telemetry
    # ------------------------------------------------------------------

    async def insert_telemetry(
        self,
        vessel_id: str,
        ts: datetime,
        metrics: Mapping[str, float],
        data_quality: float,
    ) -> None:
        db = self._conn()
        await db.execute(
            """
            INSERT INTO telemetry (
                vessel_id, ts, engine_rpm, engine_temp, oil_pressure,
                fuel_pressure, coolant_temp, data_quality_score
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (vessel_id, to_db_timestamp(ts), *(metrics.get(m) for m in METRIC_NAMES), data_quality),
        )
        await db.commit()

    async def get_stats(self, vessel_id: str, start: datetime, end: datetime) -> dict[str, object]:
        """Aggregate telemetry for *vessel_id* over the inclusive range [start, end].

        Values are returned with the database's native types; an empty range
        yields ``sample_count = 0`` and None for every aggregate.
        """
        rows = list(
            await self._conn().execute_fetchall(
                _STATS_SQL,
                (vessel_id, to_db_timestamp(start), to_db_timestamp(end)),
            )
        )
        if not rows:
            return {}
        row = rows[0]
        return {key: row[key] for key in row.keys()}

    # ------------------------------------------------------------------
    # Analyses
    # ------------------------------------------------------------------

    async def put_analysis(
        self,
        event_id: UUID | str,
        vessel_id: str,
        created_at: datetime,
        analysis: Mapping[str, object],
        rag_sources: Sequence[str],
    ) -> None:
        """Append an analysis row. Existing rows are never updated."""
        db = self._conn()
        await db.execute(
            """
            INSERT INTO ai_analyses (id, created_at, event_id, vessel_id, ai_summary, rag_sources)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                str(uuid4()),
                to_db_timestamp(created_at),
                str(event_id),
                vessel_id,
                json.dumps(dict(analysis)),
                json.dumps(list(rag_sources)),
            ),
        )
        await db.commit()

    async def get_latest_analysis(self, event_id: UUID | str) -> tuple[datetime, str] | None:
        """Return ``(created_at, raw_json)`` of the newest analysis for *event_id*."""
        rows = list(
            await self._conn().execute_fetchall(
                """
                SELECT created_at, ai_summary FROM ai_analyses
                WHERE event_id = ?
                ORDER BY created_at DESC, rowid DESC
                LIMIT 1
                """,
                (str(event_id),),
            )
        )
        if not rows:
            return None
        return from_db_timestamp(rows[0]["created_at"]), rows[0]["ai_summary"]


def _row_to_event(row: aiosqlite.Row) -> Event:
    snapshot: dict[str, object] | None = None
    raw_snapshot = row["metrics_snapshot"]
    if raw_snapshot:
        try:
            decoded = json.loads(raw_snapshot)
            snapshot = decoded if isinstance(decoded, dict) else None
        except json.JSONDecodeError as exc:
            _logger.warning("event_snapshot_unparseable", event_id=row["event_id"], error=str(exc))
    return Event(
        event_id=UUID(row["event_id"]),
        timestamp=from_db_timestamp(row["ts"]),
        vessel_id=row["vessel_id"],
        sensor_id=row["sensor_id"],
        severity=Severity(row["severity"]),
        event_type=row["event_type"],
        description=row["description"],
        metrics_snapshot=snapshot,
    )
