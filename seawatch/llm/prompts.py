"""Prompt text for event explanation.

The rules block only biases the model; the parser and guardrails never assume
it was followed.
"""

from __future__ import annotations

import json
from datetime import datetime

from seawatch.models.analysis import StatsWindow
from seawatch.models.events import Event

RESPONSE_KEYS: tuple[str, ...] = (
    "summary",
    "possible_causes",
    "recommended_actions",
    "confidence",
    "data_quality_notes",
)

PREAMBLE = (
    "You are an assistant for maritime telemetry analysis. "
    "Use only the data provided below. Do not guess. "
    f"Return JSON only with keys: {', '.join(RESPONSE_KEYS)}."
)

RULES = """Rules:
- If sample_count is 0, say data is missing and lower confidence.
- If avg_data_quality is below 0.6, mention low data quality and lower confidence.
- Keep possible_causes and recommended_actions short."""


def build_prompt(event: Event, stats: StatsWindow, window_start: datetime, window_end: datetime) -> str:
    """Render the instruction sent to the model for *event*. Deterministic."""
    stats_json = json.dumps(stats.to_dict(), indent=2)
    lines = [
        PREAMBLE,
        "",
        f"Event: {event.event_type} (severity {event.severity.value})",
        f"Description: {event.description}",
        f"Vessel: {event.vessel_id}",
        f"Timestamp: {event.timestamp.isoformat()}",
        f"Data window: {window_start.isoformat()} to {window_end.isoformat()}",
        "",
        "Stats:",
        stats_json,
        "",
        RULES,
    ]
    return "\n".join(lines) + "\n"
