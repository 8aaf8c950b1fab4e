"""Analysis cache backed by the ``ai_analyses`` table.

Append-only: ``put`` always inserts a new row and the newest row is the one
``get_latest`` returns. Older rows are kept as history.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID

from seawatch.models.analysis import Analysis, StoredAnalysis
from seawatch.models.events import Event
from seawatch.observability.logging import get_logger

_logger = get_logger("analysis_cache")

# Retrieval-augmented sources; always empty in this version.
_RAG_SOURCES: tuple[str, ...] = ()


class _AnalysisStoreProto(Protocol):
    async def get_latest_analysis(self, event_id: UUID | str) -> tuple[datetime, str] | None: ...

    async def put_analysis(
        self,
        event_id: UUID | str,
        vessel_id: str,
        created_at: datetime,
        analysis: Mapping[str, object],
        rag_sources: Sequence[str],
    ) -> None: ...


class AnalysisCache:
    """Read/write analyses for events."""

    def __init__(self, store: _AnalysisStoreProto) -> None:
        self._store = store

    async def get_latest(self, event_id: UUID | str) -> StoredAnalysis | None:
        """Newest analysis for *event_id*, or None.

        A row whose blob cannot be decoded counts as a miss so the next
        request recomputes and appends a readable row.
        """
        row = await self._store.get_latest_analysis(event_id)
        if row is None:
            return None
        created_at, raw = row
        try:
            decoded = json.loads(raw)
            if not isinstance(decoded, dict):
                raise ValueError(f"expected JSON object, got {type(decoded).__name__}")
            analysis = Analysis.from_dict(decoded)
        except (KeyError, TypeError, ValueError) as exc:
            _logger.warning("analysis_cache_row_unreadable", event_id=str(event_id), error=str(exc))
            return None
        return StoredAnalysis(analysis=analysis, created_at=created_at)

    async def put(self, event: Event, analysis: Analysis) -> datetime:
        """Persist *analysis* as a new row and return its creation time.

        Store errors propagate; nothing is written on failure.
        """
        created_at = datetime.now(tz=UTC)
        await self._store.put_analysis(
            event_id=event.event_id,
            vessel_id=event.vessel_id,
            created_at=created_at,
            analysis=analysis.to_dict(),
            rag_sources=_RAG_SOURCES,
        )
        return created_at
