"""Pydantic request/response models for the SeaWatch REST API.

Pydantic v2. Field descriptions feed the generated OpenAPI spec.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from seawatch.models.events import Event

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class AnalyzeRequest(BaseModel):
    """Request body for ``POST /analyze``."""

    event_id: str = Field(
        ...,
        description="UUID of the event to explain.",
        examples=["3f2b8c1e-7a4d-4c8e-9f51-2d6b0a9e4c17"],
    )
    force: bool = Field(
        default=False,
        description="Recompute even when a cached analysis exists.",
    )


class McpCallRequest(BaseModel):
    """Request body for ``POST /mcp/call``."""

    tool: str = Field(..., examples=["query_recent_metrics", "get_event_context", "explain_event"])
    arguments: dict[str, Any] | None = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class HealthStatus(BaseModel):
    """Response body for ``GET /health``."""

    status: str = Field(..., examples=["ok"])
    model: str = Field(..., description="Configured text generation model.", examples=["llama3:8b"])
    version: str = Field(..., examples=["0.1.0"])
    llm_available: bool | None = Field(
        default=None,
        description="Outcome of the last model health check or call; null when no client is attached.",
    )


class ErrorResponse(BaseModel):
    """Error envelope for 4xx and 5xx responses."""

    detail: str = Field(..., examples=["Invalid event_id", "Event not found", "No events found"])


class EventSchema(BaseModel):
    """Serialised Event."""

    event_id: str
    ts: str
    vessel_id: str
    sensor_id: str
    severity: str
    event_type: str
    description: str
    metrics_snapshot: dict[str, Any] | None = None

    @classmethod
    def from_event(cls, event: Event) -> EventSchema:
        return cls.model_validate(event.to_dict())


class EvidenceSchema(BaseModel):
    window: str
    stats: dict[str, float | None]


class AnalysisSchema(BaseModel):
    """Serialised Analysis returned by the analyze endpoints."""

    event_id: str
    summary: str
    possible_causes: list[str]
    recommended_actions: list[str]
    confidence: int = Field(..., ge=0, le=100)
    data_quality_notes: str
    data_sources: list[str]
    evidence: EvidenceSchema


class ToolListResponse(BaseModel):
    tools: list[dict[str, Any]]
