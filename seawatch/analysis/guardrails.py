"""Confidence guardrails.

Merges the parsed model payload with the telemetry statistics and the
generation outcome into the final :class:`Analysis`. Each detected signal
appends a note and caps confidence. Caps only ever lower the value; when
several apply the result is the minimum of the base and all caps.

    signal                      note order   cap
    avg_data_quality < 0.6      1            40
    sample_count == 0           2            20
    generation failed           3            30
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from seawatch.errors import GenerationFailure
from seawatch.models.analysis import Analysis, ParsedPayload, StatsWindow
from seawatch.observability.metrics import analysis_degradations_total

DEFAULT_SUMMARY = "No summary returned by model."
DEFAULT_CONFIDENCE = 50
LOW_QUALITY_THRESHOLD = 0.6

NOTE_LOW_QUALITY = "Data quality is low in the context window."
NOTE_NO_SAMPLES = "No telemetry samples found in the context window."
NOTE_LLM_UNAVAILABLE = "LLM unavailable, using fallback response."

DATA_SOURCES: tuple[str, ...] = ("timescaledb.telemetry", "timescaledb.events")
WINDOW_SEPARATOR = " to "


@dataclass(frozen=True)
class _Signals:
    low_quality: bool
    no_samples: bool
    generation_failed: bool


_Predicate = Callable[[_Signals], bool]

# Evaluated in this order; the order is part of the output format.
_NOTE_RULES: tuple[tuple[str, _Predicate, str], ...] = (
    ("low_quality", lambda s: s.low_quality, NOTE_LOW_QUALITY),
    ("no_samples", lambda s: s.no_samples, NOTE_NO_SAMPLES),
    ("llm_unavailable", lambda s: s.generation_failed, NOTE_LLM_UNAVAILABLE),
)

_CONFIDENCE_CAPS: tuple[tuple[str, _Predicate, int], ...] = (
    ("no_samples", lambda s: s.no_samples, 20),
    ("low_quality", lambda s: s.low_quality, 40),
    ("llm_unavailable", lambda s: s.generation_failed, 30),
)


def _detect(stats: StatsWindow, failure: GenerationFailure | None) -> _Signals:
    quality = stats.avg_data_quality
    return _Signals(
        low_quality=quality is not None and quality < LOW_QUALITY_THRESHOLD,
        no_samples=stats.sample_count == 0,
        generation_failed=failure is not None,
    )


def _append_note(existing: str, note: str) -> str:
    if not existing.strip():
        return note
    return f"{existing} {note}"


def build_notes(base: str | None, signals: _Signals) -> str:
    notes = base or ""
    for _, applies, note in _NOTE_RULES:
        if applies(signals):
            notes = _append_note(notes, note)
    return notes


def cap_confidence(base: int | None, signals: _Signals) -> int:
    confidence = DEFAULT_CONFIDENCE if base is None else base
    for reason, applies, cap in _CONFIDENCE_CAPS:
        if applies(signals):
            analysis_degradations_total.labels(reason=reason).inc()
            confidence = min(confidence, cap)
    return max(0, min(100, confidence))


def format_window(window_start: datetime, window_end: datetime) -> str:
    return f"{window_start.isoformat()}{WINDOW_SEPARATOR}{window_end.isoformat()}"


def score_analysis(
    event_id: str,
    payload: ParsedPayload,
    stats: StatsWindow,
    failure: GenerationFailure | None = None,
) -> Analysis:
    """Build the final Analysis. Total over its inputs; never raises."""
    signals = _detect(stats, failure)
    return Analysis(
        event_id=event_id,
        summary=payload.summary if payload.summary is not None else DEFAULT_SUMMARY,
        possible_causes=payload.possible_causes or (),
        recommended_actions=payload.recommended_actions or (),
        confidence=cap_confidence(payload.confidence, signals),
        data_quality_notes=build_notes(payload.data_quality_notes, signals),
        data_sources=DATA_SOURCES,
        evidence_window=format_window(stats.window_start, stats.window_end),
        evidence_stats=stats.to_dict(),
    )
