"""Tolerant parsing of model output.

The model is asked for a JSON object but nothing guarantees it sends one.
Strategies are tried in order and the first that yields a JSON object wins:

1. blank text -> empty payload
2. the whole trimmed text as JSON
3. the slice from the first ``{`` to the last ``}``
4. the trimmed text becomes the summary, so prose is never dropped

``parse_model_output`` never raises.
"""

from __future__ import annotations

import json
from collections.abc import Mapping

from seawatch.models.analysis import ParsedPayload
from seawatch.observability.logging import get_logger

_logger = get_logger("llm_parser")


def _loads_object(text: str) -> Mapping[str, object] | None:
    """Decode *text* as JSON, returning it only if it is an object."""
    try:
        value = json.loads(text)
    except (ValueError, RecursionError):
        # ValueError also covers integers past the str->int digit limit
        return None
    return value if isinstance(value, dict) else None


def _string_field(raw: Mapping[str, object], key: str) -> str | None:
    value = raw.get(key)
    return value if isinstance(value, str) else None


def _int_field(raw: Mapping[str, object], key: str) -> int | None:
    value = raw.get(key)
    # bool is an int subclass; JSON true/false is not a confidence
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _string_list_field(raw: Mapping[str, object], key: str) -> tuple[str, ...] | None:
    if key not in raw:
        return None
    value = raw[key]
    if isinstance(value, list):
        return tuple(item for item in value if isinstance(item, str) and item.strip())
    if isinstance(value, str):
        return (value,) if value.strip() else ()
    return ()


def extract_payload(raw: Mapping[str, object]) -> ParsedPayload:
    """Pick the recognised keys out of a decoded JSON object. Others are ignored."""
    return ParsedPayload(
        summary=_string_field(raw, "summary"),
        possible_causes=_string_list_field(raw, "possible_causes"),
        recommended_actions=_string_list_field(raw, "recommended_actions"),
        confidence=_int_field(raw, "confidence"),
        data_quality_notes=_string_field(raw, "data_quality_notes"),
    )


def parse_model_output(text: str | None) -> ParsedPayload:
    """Extract a best-effort payload from raw model text."""
    if not text or not text.strip():
        return ParsedPayload()

    trimmed = text.strip()

    whole = _loads_object(trimmed)
    if whole is not None:
        return extract_payload(whole)

    start = trimmed.find("{")
    end = trimmed.rfind("}")
    if 0 <= start < end:
        embedded = _loads_object(trimmed[start : end + 1])
        if embedded is not None:
            _logger.debug("llm_output_embedded_json", offset=start)
            return extract_payload(embedded)

    _logger.info("llm_output_not_json", length=len(trimmed))
    return ParsedPayload(summary=trimmed)
