"""FastAPI route handlers for the SeaWatch REST API.

All routes are registered on a single APIRouter that ``app.py`` mounts at
the root.

Error conventions (body is always ``{"detail": ...}``):
    400 Invalid event_id   -- event id is not a UUID
    404 Event not found    -- no event with that id
    404 No events found    -- a "latest" lookup found no event
    500                    -- unexpected server-side failure, e.g. store errors
    (model unavailability is never an error status; it lowers confidence)
"""

from __future__ import annotations

from collections.abc import Awaitable
from typing import Any

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from seawatch.analysis.presenter import analysis_to_dict, render_analysis_html
from seawatch.api.schemas import (
    AnalysisSchema,
    AnalyzeRequest,
    ErrorResponse,
    EventSchema,
    HealthStatus,
    McpCallRequest,
    ToolListResponse,
)
from seawatch.errors import EventNotFoundError, InvalidIdentifierError, NoEventsError
from seawatch.mcp.tools import TOOL_DEFINITIONS, call_tool
from seawatch.models.analysis import AnalysisOutcome

_log = structlog.get_logger(component="api.routes")

router = APIRouter()

_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _error(status_code: int, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(detail=detail).model_dump())


def _wants_html(request: Request, fmt: str | None) -> bool:
    if fmt is not None:
        return fmt.lower() == "html"
    return "text/html" in request.headers.get("accept", "")


def _render(outcome: AnalysisOutcome, as_html: bool) -> Response:
    if as_html:
        return HTMLResponse(
            render_analysis_html(outcome.event, outcome.analysis, outcome.created_at, outcome.from_cache)
        )
    return JSONResponse(content=analysis_to_dict(outcome.analysis))


async def _run_analysis(
    pending: Awaitable[AnalysisOutcome],
    as_html: bool = False,
    **log_context: Any,
) -> Response:
    try:
        outcome = await pending
    except InvalidIdentifierError:
        return _error(400, "Invalid event_id")
    except NoEventsError:
        return _error(404, "No events found")
    except EventNotFoundError:
        return _error(404, "Event not found")
    except Exception as exc:
        _log.error("analyze_endpoint_error", error=str(exc), **log_context)
        return _error(500, "An unexpected error occurred.")
    return _render(outcome, as_html)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.get(
    "/health",
    response_model=HealthStatus,
    summary="Health check",
    description="Lightweight liveness probe.  Always returns 200 if the process is up.",
)
async def get_health(request: Request) -> HealthStatus:
    """``GET /health``"""
    from seawatch import __version__

    config = request.app.state.config
    client = getattr(request.app.state, "llm_client", None)
    return HealthStatus(
        status="ok",
        model=config.ollama.model,
        version=__version__,
        llm_available=client.available if client is not None else None,
    )


@router.get("/metrics", summary="Prometheus metrics", include_in_schema=False)
async def get_metrics() -> Response:
    """``GET /metrics``"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@router.get(
    "/events/latest",
    response_model=EventSchema,
    summary="Most recent event",
    responses=_ERROR_RESPONSES,
)
async def get_latest_event(request: Request, vessel_id: str | None = None) -> EventSchema:
    """``GET /events/latest?vessel_id={id}``"""
    store = request.app.state.store
    try:
        event = await store.get_latest_event(vessel_id)
    except Exception as exc:
        _log.error("latest_event_endpoint_error", vessel_id=vessel_id, error=str(exc))
        return _error(500, "An unexpected error occurred.")  # type: ignore[return-value]
    if event is None:
        return _error(404, "No events found")  # type: ignore[return-value]
    return EventSchema.from_event(event)


@router.post(
    "/analyze",
    response_model=AnalysisSchema,
    summary="Explain an event",
    description=(
        "Returns the latest stored analysis for the event, or computes one.  "
        "Model unavailability is surfaced as reduced confidence, never as an error status."
    ),
    responses=_ERROR_RESPONSES,
)
async def post_analyze(request: Request, body: AnalyzeRequest) -> Response:
    """``POST /analyze``"""
    analyzer = request.app.state.analyzer
    return await _run_analysis(analyzer.analyze(body.event_id, force=body.force), event_id=body.event_id)


@router.get(
    "/analyze",
    summary="Explain an event (JSON or HTML)",
    description="Serves HTML when ``format=html`` or the Accept header asks for text/html.",
    responses=_ERROR_RESPONSES,
)
async def get_analyze(
    request: Request,
    event_id: str,
    format: str | None = None,  # noqa: A002
    force: bool = False,
) -> Response:
    """``GET /analyze?event_id={id}&format={json|html}&force={bool}``"""
    analyzer = request.app.state.analyzer
    return await _run_analysis(
        analyzer.analyze(event_id, force=force),
        as_html=_wants_html(request, format),
        event_id=event_id,
    )


@router.get(
    "/analyze/latest",
    summary="Explain the most recent event",
    responses=_ERROR_RESPONSES,
)
async def get_analyze_latest(
    request: Request,
    vessel_id: str | None = None,
    format: str | None = None,  # noqa: A002
    force: bool = False,
) -> Response:
    """``GET /analyze/latest?vessel_id={id}``"""
    analyzer = request.app.state.analyzer
    return await _run_analysis(
        analyzer.analyze_latest(vessel_id, force=force),
        as_html=_wants_html(request, format),
        vessel_id=vessel_id,
    )


@router.get("/mcp/tools", response_model=ToolListResponse, summary="List MCP tools")
async def get_mcp_tools() -> ToolListResponse:
    """``GET /mcp/tools``"""
    return ToolListResponse(tools=TOOL_DEFINITIONS)


@router.post("/mcp/call", summary="Invoke an MCP tool", responses=_ERROR_RESPONSES)
async def post_mcp_call(request: Request, body: McpCallRequest) -> JSONResponse:
    """``POST /mcp/call``"""
    try:
        status, payload = await call_tool(
            body.tool,
            body.arguments or {},
            request.app.state.store,
            request.app.state.analyzer,
        )
    except Exception as exc:
        _log.error("mcp_call_endpoint_error", tool=body.tool, error=str(exc))
        return _error(500, "An unexpected error occurred.")
    return JSONResponse(status_code=status, content=payload)
