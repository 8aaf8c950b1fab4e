"""MCP stdio server for SeaWatch.

Exposes the same three tools as ``/mcp/tools`` over the Model Context
Protocol so AI assistants can query telemetry and request explanations:

``query_recent_metrics``
    Aggregate telemetry for a vessel over the last N minutes.

``get_event_context``
    An event plus the statistics of its analysis window.

``explain_event``
    The (possibly cached) AI analysis of an event.

Transport: stdio. Logging goes to stderr so stdout stays protocol-only.
"""

from __future__ import annotations

import json
from typing import Any

import structlog
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from seawatch import __version__
from seawatch.analysis.pipeline import EventAnalyzer
from seawatch.mcp.tools import TOOL_DEFINITIONS, TOOL_NAMES, call_tool
from seawatch.store.sqlite_store import TelemetryStore

_log = structlog.get_logger(component="mcp.server")

_SERVER_NAME = "seawatch"


class MCPServer:
    """MCP stdio server wrapping the analyzer and store.

    Args:
        analyzer: EventAnalyzer used by ``explain_event``.
        store:    TelemetryStore used by the metrics and context tools.
    """

    def __init__(self, analyzer: EventAnalyzer, store: TelemetryStore) -> None:
        self._analyzer = analyzer
        self._store = store
        self._server = Server(_SERVER_NAME)
        self._register_handlers()

    def _register_handlers(self) -> None:
        @self._server.list_tools()  # type: ignore[no-untyped-call, untyped-decorator]
        async def _list_tools() -> list[Tool]:
            return list_tools()

        @self._server.call_tool()  # type: ignore[untyped-decorator]
        async def _call_tool(name: str, arguments: dict[str, Any] | None) -> list[TextContent]:
            return await self.handle_call(name, arguments or {})

    async def handle_call(self, name: str, args: dict[str, Any]) -> list[TextContent]:
        """Dispatch one tool call and wrap the result as JSON text."""
        if name not in TOOL_NAMES:
            return [TextContent(type="text", text=json.dumps({"error": f"Unknown tool: {name}"}))]
        try:
            status, payload = await call_tool(name, args, self._store, self._analyzer)
        except Exception as exc:
            _log.error("mcp_tool_error", tool=name, error=str(exc))
            return [
                TextContent(
                    type="text",
                    text=json.dumps({"isError": True, "error": "INTERNAL_ERROR", "detail": str(exc)}),
                )
            ]
        if status != 200:
            payload = {"isError": True, "status": status, **payload}
        return [TextContent(type="text", text=json.dumps(payload))]

    async def start(self) -> None:
        """Serve until stdin is closed."""
        _log.info("mcp_server_starting", version=__version__)
        init_options = InitializationOptions(
            server_name=_SERVER_NAME,
            server_version=__version__,
            capabilities=self._server.get_capabilities(
                notification_options=NotificationOptions(),
                experimental_capabilities={},
            ),
        )
        async with stdio_server() as (read_stream, write_stream):
            await self._server.run(read_stream, write_stream, init_options)

        _log.info("mcp_server_stopped")


def list_tools() -> list[Tool]:
    return [
        Tool(name=tool["name"], description=tool["description"], inputSchema=tool["input_schema"])
        for tool in TOOL_DEFINITIONS
    ]
