"""Analysis pipeline data structures.

``StatsWindow`` and ``ParsedPayload`` live only for the duration of one
request. ``Analysis`` is the persisted artifact; ``StoredAnalysis`` and
``AnalysisOutcome`` wrap it with provenance used by the rendered view.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime

from seawatch.models.events import Event

METRIC_NAMES: tuple[str, ...] = (
    "engine_rpm",
    "engine_temp",
    "oil_pressure",
    "fuel_pressure",
    "coolant_temp",
)


@dataclass(frozen=True)
class MetricStats:
    """min/max/avg of one telemetry column over a window. All None when empty."""

    min: float | None = None
    max: float | None = None
    avg: float | None = None


@dataclass(frozen=True)
class StatsWindow:
    """Aggregate telemetry statistics for one vessel over an analysis window."""

    vessel_id: str
    window_start: datetime
    window_end: datetime
    sample_count: int = 0
    metrics: Mapping[str, MetricStats] = field(default_factory=dict)
    avg_data_quality: float | None = None

    def metric(self, name: str) -> MetricStats:
        return self.metrics.get(name, MetricStats())

    def to_dict(self) -> dict[str, float | None]:
        """Flat stats map, keyed the way the aggregate query names its columns.

        Every numeric value is a float so serialised output does not depend on
        the store's native column types.
        """
        result: dict[str, float | None] = {"sample_count": float(self.sample_count)}
        for name in METRIC_NAMES:
            stats = self.metric(name)
            result[f"min_{name}"] = stats.min
            result[f"max_{name}"] = stats.max
            result[f"avg_{name}"] = stats.avg
        result["avg_data_quality"] = self.avg_data_quality
        return result


@dataclass(frozen=True)
class ParsedPayload:
    """Best-effort fields extracted from a model response.

    ``None`` means the field was absent; an empty tuple means the model sent
    a list with nothing usable in it.
    """

    summary: str | None = None
    possible_causes: tuple[str, ...] | None = None
    recommended_actions: tuple[str, ...] | None = None
    confidence: int | None = None
    data_quality_notes: str | None = None

    def is_empty(self) -> bool:
        return self == ParsedPayload()


@dataclass(frozen=True)
class Analysis:
    """Structured explanation of one event. Immutable once created."""

    event_id: str
    summary: str
    possible_causes: tuple[str, ...]
    recommended_actions: tuple[str, ...]
    confidence: int
    data_quality_notes: str
    data_sources: tuple[str, ...]
    evidence_window: str
    evidence_stats: Mapping[str, float | None]

    def to_dict(self) -> dict[str, object]:
        return {
            "event_id": self.event_id,
            "summary": self.summary,
            "possible_causes": list(self.possible_causes),
            "recommended_actions": list(self.recommended_actions),
            "confidence": self.confidence,
            "data_quality_notes": self.data_quality_notes,
            "data_sources": list(self.data_sources),
            "evidence": {
                "window": self.evidence_window,
                "stats": dict(self.evidence_stats),
            },
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Analysis:
        """Rebuild an Analysis from its stored JSON form.

        Raises KeyError or ValueError if the blob does not have the expected shape.
        """
        evidence = data.get("evidence")
        if not isinstance(evidence, Mapping):
            raise ValueError("analysis blob has no evidence object")
        stats = evidence.get("stats")
        confidence = data.get("confidence")
        if isinstance(confidence, bool) or not isinstance(confidence, int):
            raise ValueError(f"analysis blob has non-integer confidence: {confidence!r}")
        return cls(
            event_id=str(data["event_id"]),
            summary=str(data["summary"]),
            possible_causes=_str_tuple(data.get("possible_causes")),
            recommended_actions=_str_tuple(data.get("recommended_actions")),
            confidence=confidence,
            data_quality_notes=str(data.get("data_quality_notes") or ""),
            data_sources=_str_tuple(data.get("data_sources")),
            evidence_window=str(evidence.get("window") or ""),
            evidence_stats=dict(stats) if isinstance(stats, Mapping) else {},
        )


def _str_tuple(raw: object) -> tuple[str, ...]:
    if not isinstance(raw, list | tuple):
        return ()
    return tuple(str(item) for item in raw)


@dataclass(frozen=True)
class StoredAnalysis:
    """An analysis row read back from the store."""

    analysis: Analysis
    created_at: datetime


@dataclass(frozen=True)
class AnalysisOutcome:
    """Result of one pipeline invocation.

    ``from_cache`` and ``created_at`` only feed the rendered HTML view; the
    stored Analysis is identical either way.
    """

    event: Event
    analysis: Analysis
    created_at: datetime
    from_cache: bool
