"""Tool definitions and dispatch shared by the HTTP and stdio MCP surfaces.

``call_tool`` returns ``(status_code, payload)``; the HTTP layer uses the
status code directly and the stdio server folds non-200 results into an
``isError`` payload.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

from seawatch.analysis.guardrails import format_window
from seawatch.analysis.pipeline import EventAnalyzer, parse_event_id
from seawatch.analysis.presenter import analysis_to_dict
from seawatch.analysis.window import coerce_stats, resolve_window
from seawatch.errors import EventNotFoundError, InvalidIdentifierError
from seawatch.store.sqlite_store import TelemetryStore

DEFAULT_RECENT_MINUTES = 30

TOOL_DEFINITIONS: list[dict[str, Any]] = [
    {
        "name": "query_recent_metrics",
        "description": "Get stats for recent telemetry for a vessel",
        "input_schema": {
            "type": "object",
            "properties": {
                "vessel_id": {"type": "string"},
                "minutes": {"type": "integer", "default": DEFAULT_RECENT_MINUTES},
            },
            "required": ["vessel_id"],
        },
    },
    {
        "name": "get_event_context",
        "description": "Fetch an event with surrounding telemetry stats",
        "input_schema": {
            "type": "object",
            "properties": {"event_id": {"type": "string"}},
            "required": ["event_id"],
        },
    },
    {
        "name": "explain_event",
        "description": "Generate an AI explanation for an event",
        "input_schema": {
            "type": "object",
            "properties": {"event_id": {"type": "string"}},
            "required": ["event_id"],
        },
    },
]

TOOL_NAMES = frozenset(tool["name"] for tool in TOOL_DEFINITIONS)


def _detail(message: str) -> dict[str, Any]:
    return {"detail": message}


def _minutes_arg(args: dict[str, Any]) -> int:
    raw = args.get("minutes")
    if isinstance(raw, bool) or not isinstance(raw, int):
        return DEFAULT_RECENT_MINUTES
    return raw


async def call_tool(
    name: str,
    args: dict[str, Any] | None,
    store: TelemetryStore,
    analyzer: EventAnalyzer,
) -> tuple[int, dict[str, Any]]:
    """Run tool *name* with *args*."""
    args = args or {}

    if name == "query_recent_metrics":
        vessel_id = args.get("vessel_id")
        if not isinstance(vessel_id, str):
            return 400, _detail("vessel_id is required")
        minutes = _minutes_arg(args)
        end = datetime.now(tz=UTC)
        start = end - timedelta(minutes=minutes)
        stats = coerce_stats(await store.get_stats(vessel_id, start, end))
        return 200, {"tool": name, "result": {"window_minutes": minutes, "stats": stats}}

    if name in ("get_event_context", "explain_event"):
        raw_id = args.get("event_id")
        if not isinstance(raw_id, str):
            return 400, _detail("event_id is required")
        try:
            if name == "explain_event":
                outcome = await analyzer.analyze(raw_id)
                return 200, analysis_to_dict(outcome.analysis)
            event, stats = await resolve_window(store, parse_event_id(raw_id))
        except InvalidIdentifierError:
            return 400, _detail("Invalid event_id")
        except EventNotFoundError:
            return 404, _detail("Event not found")
        return 200, {
            "tool": name,
            "result": {
                "event": event.to_dict(),
                "window": format_window(stats.window_start, stats.window_end),
                "stats": stats.to_dict(),
            },
        }

    return 400, _detail("Unknown tool")
