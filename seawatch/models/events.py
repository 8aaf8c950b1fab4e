"""Telemetry events as read from the store."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from uuid import UUID


class Severity(StrEnum):
    """Event severity as written by the simulator."""

    INFO = "INFO"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


@dataclass(frozen=True)
class Event:
    """A detected anomaly tied to a vessel, sensor and timestamp.

    Created by the simulator and never mutated afterwards.
    """

    event_id: UUID
    timestamp: datetime
    vessel_id: str
    sensor_id: str
    severity: Severity
    event_type: str
    description: str
    metrics_snapshot: dict[str, object] | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "event_id": str(self.event_id),
            "ts": self.timestamp.isoformat(),
            "vessel_id": self.vessel_id,
            "sensor_id": self.sensor_id,
            "severity": self.severity.value,
            "event_type": self.event_type,
            "description": self.description,
            "metrics_snapshot": self.metrics_snapshot,
        }
