"""Unit tests for seawatch.observability.logging."""

from __future__ import annotations

import json

import pytest
import structlog

from seawatch.observability.logging import get_logger, setup_logging


class TestSetupLogging:
    def test_json_lines_go_to_stderr(self, capsys: pytest.CaptureFixture[str]) -> None:
        setup_logging("info")
        try:
            log = get_logger("unit")
            log.info("sample_event", answer=42)
            log.debug("filtered_out")
        finally:
            structlog.reset_defaults()

        captured = capsys.readouterr()
        assert captured.out == ""
        lines = captured.err.strip().splitlines()
        assert len(lines) == 1
        record = json.loads(lines[0])
        assert record["event"] == "sample_event"
        assert record["component"] == "unit"
        assert record["level"] == "info"
        assert record["answer"] == 42
        assert "ts" in record

    def test_debug_level_lets_debug_through(self, capsys: pytest.CaptureFixture[str]) -> None:
        setup_logging("debug")
        try:
            get_logger("unit").debug("detail_event")
        finally:
            structlog.reset_defaults()

        record = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
        assert record["event"] == "detail_event"
        assert record["level"] == "debug"
