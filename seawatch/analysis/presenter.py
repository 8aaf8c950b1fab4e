"""JSON and HTML views of an Analysis. No analysis logic lives here."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from html import escape

from seawatch.models.analysis import Analysis
from seawatch.models.events import Event

_STYLE = """
    body { font-family: Arial, sans-serif; background: #f5f6f8; margin: 0; padding: 24px; color: #1f2933; }
    .card { background: #fff; border-radius: 12px; box-shadow: 0 2px 8px rgba(0,0,0,0.08);
            padding: 20px; max-width: 900px; margin: 0 auto; }
    h1 { font-size: 20px; margin: 0 0 6px 0; }
    .meta { color: #52606d; font-size: 13px; margin-bottom: 12px; }
    .section { margin-top: 16px; }
    .label { font-weight: 600; margin-bottom: 6px; }
    ul { margin: 6px 0 0 20px; }
    .pill { display: inline-block; padding: 2px 8px; border-radius: 12px; background: #e1e8f0;
            font-size: 12px; margin-left: 8px; font-weight: 600; }
    .summary { background: #f0f4f8; padding: 12px; border-radius: 8px; }
    .notes { background: #fff7ed; padding: 10px; border-radius: 8px; }
"""


def analysis_to_dict(analysis: Analysis) -> dict[str, object]:
    """Structured value returned to API and MCP consumers."""
    return analysis.to_dict()


def _list_items(values: Sequence[str]) -> str:
    if not values:
        return "<li>None</li>"
    return "".join(f"<li>{escape(value)}</li>" for value in values)


def render_analysis_html(
    event: Event,
    analysis: Analysis,
    created_at: datetime,
    from_cache: bool,
) -> str:
    """Render a standalone HTML page for *analysis*.

    All free text is escaped. ``from_cache`` and ``created_at`` appear in the
    page header only.
    """
    provenance = "Cached analysis" if from_cache else "New analysis"
    title = escape(f"{event.event_type} - {event.vessel_id}")
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>AI Analysis - {title}</title>
  <style>{_STYLE}</style>
</head>
<body>
  <div class="card">
    <h1>AI Analysis</h1>
    <div class="meta">{escape(event.vessel_id)} - {escape(event.event_type)} - {event.timestamp.isoformat()}</div>
    <div class="meta">{provenance} - Created at {created_at.isoformat()}</div>
    <div class="section">
      <div class="label">Summary <span class="pill">Confidence: {analysis.confidence}</span></div>
      <div class="summary">{escape(analysis.summary)}</div>
    </div>
    <div class="section">
      <div class="label">Possible causes</div>
      <ul>{_list_items(analysis.possible_causes)}</ul>
    </div>
    <div class="section">
      <div class="label">Recommended actions</div>
      <ul>{_list_items(analysis.recommended_actions)}</ul>
    </div>
    <div class="section">
      <div class="label">Data quality notes</div>
      <div class="notes">{escape(analysis.data_quality_notes)}</div>
    </div>
    <div class="section">
      <div class="label">Context window</div>
      <div>{escape(analysis.evidence_window)}</div>
    </div>
  </div>
</body>
</html>
"""
