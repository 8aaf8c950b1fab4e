"""Event analysis pipeline.

Receives analysis requests from REST, MCP and the simulator's auto-analyse
hook. For one event id it either returns the latest cached analysis or runs

    window resolver -> prompt builder -> generation client
        -> tolerant parser -> guardrails -> cache store

strictly in sequence. A generation failure is recovered here and shows up as
degraded confidence; store errors propagate.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Protocol
from uuid import UUID

import structlog

from seawatch.analysis.cache import AnalysisCache
from seawatch.analysis.guardrails import score_analysis
from seawatch.analysis.window import fetch_stats
from seawatch.errors import EventNotFoundError, GenerationFailure, InvalidIdentifierError, NoEventsError
from seawatch.llm.parser import parse_model_output
from seawatch.llm.prompts import build_prompt
from seawatch.models.analysis import Analysis, AnalysisOutcome, ParsedPayload
from seawatch.models.events import Event
from seawatch.observability.metrics import analysis_duration_seconds, analysis_requests_total

_logger = structlog.get_logger(component="analysis_pipeline")


class _StoreProto(Protocol):
    """Store operations the pipeline needs."""

    async def get_event(self, event_id: UUID) -> Event | None: ...

    async def get_latest_event(self, vessel_id: str | None = None) -> Event | None: ...

    async def get_stats(self, vessel_id: str, start: datetime, end: datetime) -> Mapping[str, object]: ...

    async def get_latest_analysis(self, event_id: UUID | str) -> tuple[datetime, str] | None: ...

    async def put_analysis(
        self,
        event_id: UUID | str,
        vessel_id: str,
        created_at: datetime,
        analysis: Mapping[str, object],
        rag_sources: Sequence[str],
    ) -> None: ...


class _GeneratorProto(Protocol):
    async def generate(self, prompt: str) -> str: ...


def parse_event_id(raw: str) -> UUID:
    """Validate a caller-supplied event id.

    Raises:
        InvalidIdentifierError: *raw* is not a UUID.
    """
    try:
        return UUID(str(raw).strip())
    except (ValueError, AttributeError, TypeError) as exc:
        raise InvalidIdentifierError(str(raw)) from exc


class EventAnalyzer:
    """Cache-or-compute analysis of telemetry events.

    Holds no per-request state, so one instance serves concurrent requests.
    """

    def __init__(self, store: _StoreProto, generator: _GeneratorProto) -> None:
        self._store = store
        self._generator = generator
        self._cache = AnalysisCache(store)

    async def analyze(self, event_id: str, force: bool = False) -> AnalysisOutcome:
        """Return the analysis for *event_id*, computing it when needed.

        With ``force=False`` an existing analysis is returned unchanged.
        ``force=True`` always calls the model and appends a new row.

        Raises:
            InvalidIdentifierError: malformed id; the store is not touched.
            EventNotFoundError: no event with this id.
        """
        try:
            event_uuid = parse_event_id(event_id)
        except InvalidIdentifierError:
            analysis_requests_total.labels(result="invalid_id").inc()
            raise

        event = await self._store.get_event(event_uuid)
        if event is None:
            analysis_requests_total.labels(result="not_found").inc()
            raise EventNotFoundError(event_uuid)

        if not force:
            cached = await self._cache.get_latest(event_uuid)
            if cached is not None:
                analysis_requests_total.labels(result="cache_hit").inc()
                _logger.info("analysis_cache_hit", event_id=str(event_uuid), created_at=cached.created_at.isoformat())
                return AnalysisOutcome(
                    event=event,
                    analysis=cached.analysis,
                    created_at=cached.created_at,
                    from_cache=True,
                )

        with analysis_duration_seconds.time():
            analysis = await self._compute(event)
            created_at = await self._cache.put(event, analysis)

        analysis_requests_total.labels(result="computed").inc()
        _logger.info(
            "analysis_computed",
            event_id=str(event_uuid),
            forced=force,
            confidence=analysis.confidence,
        )
        return AnalysisOutcome(event=event, analysis=analysis, created_at=created_at, from_cache=False)

    async def analyze_latest(self, vessel_id: str | None = None, force: bool = False) -> AnalysisOutcome:
        """Analyse the most recent event, optionally for one vessel.

        Raises:
            NoEventsError: there are no events (for that vessel).
        """
        event = await self._store.get_latest_event(vessel_id)
        if event is None:
            analysis_requests_total.labels(result="not_found").inc()
            raise NoEventsError(vessel_id)
        return await self.analyze(str(event.event_id), force=force)

    async def _compute(self, event: Event) -> Analysis:
        stats = await fetch_stats(self._store, event)
        prompt = build_prompt(event, stats, stats.window_start, stats.window_end)

        failure: GenerationFailure | None = None
        payload = ParsedPayload()
        try:
            raw_text = await self._generator.generate(prompt)
        except GenerationFailure as exc:
            failure = exc
            _logger.warning("llm_generation_failed", event_id=str(event.event_id), error=exc.cause)
        else:
            payload = parse_model_output(raw_text)

        return score_analysis(str(event.event_id), payload, stats, failure)
