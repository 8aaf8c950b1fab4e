"""FastAPI application factory."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from seawatch.api.routes import router
from seawatch.api.schemas import ErrorResponse
from seawatch.models.config import SeaWatchConfig


def create_app(
    analyzer: Any,
    store: Any,
    config: SeaWatchConfig | None = None,
    client: Any = None,
) -> FastAPI:
    """Build the REST app around an already-started analyzer and store.

    Args:
        analyzer: EventAnalyzer serving the analyze routes and ``explain_event``.
        store:    TelemetryStore for event lookups and the metrics tool.
        config:   Loaded configuration; defaults are used when omitted.
        client:   Generation client, reported by ``/health`` when present.
    """
    from seawatch import __version__

    app = FastAPI(
        title="SeaWatch",
        description="AI-assisted explanations of vessel telemetry events.",
        version=__version__,
    )
    app.state.analyzer = analyzer
    app.state.store = store
    app.state.config = config or SeaWatchConfig()
    app.state.llm_client = client

    @app.exception_handler(RequestValidationError)
    async def _validation_error(_request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        detail = str(errors[0].get("msg", "Invalid request")) if errors else "Invalid request"
        return JSONResponse(status_code=400, content=ErrorResponse(detail=detail).model_dump())

    app.include_router(router)
    return app
