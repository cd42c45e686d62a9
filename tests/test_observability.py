"""
Tests for observability functionality.

Tests verify:
- Operation logs are JSON with the required fields
- Request IDs are bound to every log line in scope, and only in scope
- Traced operations re-raise failures
"""

import json
import uuid

import pytest
import structlog

from tools.observability import ObservabilityManager, setup_observability


def last_log_line(capsys) -> dict:
    lines = [line for line in capsys.readouterr().out.splitlines() if line.strip()]
    assert lines, "expected at least one log line"
    return json.loads(lines[-1])


@pytest.mark.parametrize("level", ["debug", "info", "warning", "error", "critical"])
def test_operation_logging_contains_required_fields(capsys, level):
    manager = ObservabilityManager(service_name="test-service", log_level="DEBUG")

    manager.log_operation("stream_completed", level=level, chunks_count=3)

    entry = last_log_line(capsys)
    assert entry["event"] == "stream_completed"
    assert entry["level"] == level
    assert entry["chunks_count"] == 3
    assert "timestamp" in entry


def test_log_level_filters_lower_levels(capsys):
    manager = ObservabilityManager(service_name="test-service", log_level="ERROR")

    manager.log_operation("noise", level="info")

    assert capsys.readouterr().out.strip() == ""


def test_log_error_includes_exception_details(capsys):
    manager = ObservabilityManager(service_name="test-service", log_level="DEBUG")

    manager.log_error("interaction_save_failed", ValueError("disk full"), session_id="s-1")

    entry = last_log_line(capsys)
    assert entry["level"] == "error"
    assert entry["error_type"] == "ValueError"
    assert entry["error_message"] == "disk full"
    assert entry["session_id"] == "s-1"


def test_request_context_binds_and_unbinds(capsys):
    manager = ObservabilityManager(service_name="test-service", log_level="DEBUG")
    logger = manager.get_logger("review")

    with manager.request_context("req-123", endpoint="POST /ai/stream") as request_id:
        logger.info("inside")
        inside = last_log_line(capsys)

    logger.info("outside")
    outside = last_log_line(capsys)

    assert request_id == "req-123"
    assert inside["request_id"] == "req-123"
    assert inside["endpoint"] == "POST /ai/stream"
    assert "request_id" not in outside
    assert "endpoint" not in outside


def test_request_context_generates_id():
    manager = ObservabilityManager(service_name="test-service")

    with manager.request_context() as request_id:
        uuid.UUID(request_id)
        assert structlog.contextvars.get_contextvars()["request_id"] == request_id


def test_generated_request_ids_are_unique():
    ids = {ObservabilityManager.generate_request_id() for _ in range(100)}
    assert len(ids) == 100


def test_trace_operation_reraises():
    manager = setup_observability(service_name="test-service")

    with pytest.raises(RuntimeError):
        with manager.trace_operation("review.single_shot", {"provider": "fake"}):
            raise RuntimeError("upstream down")


def test_managers_are_independent():
    first = setup_observability(service_name="one")
    second = setup_observability(service_name="two")

    assert first is not second
    assert first.service_name == "one"
    assert second.service_name == "two"
