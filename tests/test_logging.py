#!/usr/bin/env python3
"""Tests for structured logging helpers."""

import json
import logging
import warnings

import pytest
import structlog

from vmferry.errors import ResourceCleanupWarning
from vmferry.logging import cleanup_warning, configure_logging, get_logger, log_operation


class TestLogOperation:
    def test_started_and_completed(self):
        with structlog.testing.capture_logs() as logs:
            with log_operation(get_logger("test"), "export", vm="Alice") as op_log:
                op_log.info("export.strategy", strategy="snapshot")
        assert [entry["event"] for entry in logs] == [
            "export.started",
            "export.strategy",
            "export.completed",
        ]
        assert all(entry["vm"] == "Alice" for entry in logs)
        assert "duration_ms" in logs[-1]

    def test_failure_is_logged_and_raised(self):
        with structlog.testing.capture_logs() as logs:
            with pytest.raises(ValueError):
                with log_operation(get_logger("test"), "import", vm_id=100):
                    raise ValueError("bad disk")
        failed = [entry for entry in logs if entry["event"] == "import.failed"]
        assert failed and failed[0]["error"] == "bad disk"
        assert failed[0]["error_type"] == "ValueError"


def test_cleanup_warning_logs_and_warns():
    with structlog.testing.capture_logs() as logs:
        with pytest.warns(ResourceCleanupWarning):
            cleanup_warning(get_logger("test"), "share.unmount_failed", path=r"\\nas\x")
    assert logs[0]["event"] == "share.unmount_failed"
    assert logs[0]["log_level"] == "warning"


def test_configure_logging_writes_json_file(tmp_path):
    log_file = tmp_path / "logs" / "run.jsonl"
    configure_logging(level="DEBUG", log_file=log_file, console_output=False)
    get_logger("vmferry.test").info("export.artifact", size_bytes=42)
    for handler in logging.getLogger().handlers:
        handler.flush()
    record = json.loads(log_file.read_text().strip().splitlines()[-1])
    assert record["event"] == "export.artifact"
    assert record["size_bytes"] == 42


def test_cleanup_warning_is_reported_once(tmp_path):
    log_file = tmp_path / "run.jsonl"
    configure_logging(log_file=log_file, console_output=False)
    with warnings.catch_warnings(record=True) as caught:
        cleanup_warning(get_logger("vmferry.share"), "share.unmount_failed", path=r"\\nas\x")
    for handler in logging.getLogger().handlers:
        handler.flush()
    records = [json.loads(line) for line in log_file.read_text().splitlines()]
    assert [record["event"] for record in records] == ["share.unmount_failed"]
    assert records[0]["category"] == "ResourceCleanupWarning"
    assert caught == []
