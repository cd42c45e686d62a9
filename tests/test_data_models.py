"""
Property-based tests for data model validation and wire serialization.
"""

import json
from datetime import datetime, timezone

import pytest
from hypothesis import given, strategies as st, settings
from pydantic import ValidationError

from models.data_models import (
    ChunkFrame,
    CompleteFrame,
    ConnectedFrame,
    ErrorFrame,
    FailureResponse,
    Fragment,
    InteractionRecord,
    ReviewRequest,
    ReviewResponse,
    StreamOutcome,
    StreamOutcomeKind,
)


def test_review_request_accepts_camel_and_snake_session():
    assert ReviewRequest.model_validate({"prompt": "x", "sessionId": "a"}).session_id == "a"
    assert ReviewRequest.model_validate({"prompt": "x", "session_id": "b"}).session_id == "b"


def test_review_request_ignores_unknown_fields():
    request = ReviewRequest.model_validate({"prompt": "x", "temperature": 2})
    assert request.prompt == "x"


def test_interaction_record_rejects_blank_code():
    with pytest.raises(ValidationError):
        InteractionRecord(user_code="   ", ai_response="r")


def test_interaction_record_rejects_negative_latency():
    with pytest.raises(ValidationError):
        InteractionRecord(user_code="x", ai_response="r", response_time=-1)


def test_interaction_record_defaults():
    record = InteractionRecord(user_code="x", ai_response="")

    assert record.user_ip == "unknown"
    assert record.code_language == "unknown"
    assert record.response_time == 0
    assert record.timestamp.tzinfo is not None


def test_fragment_is_immutable():
    fragment = Fragment(text="abc")
    with pytest.raises(ValidationError):
        fragment.text = "changed"


def test_stream_outcome_constructors():
    fragment = StreamOutcome.of_fragment("hi")
    fault = StreamOutcome.fragment_fault(ValueError("bad chunk"))
    failure = StreamOutcome.sequence_fault(ConnectionError("gone"))

    assert fragment.kind is StreamOutcomeKind.FRAGMENT
    assert fragment.fragment.text == "hi"
    assert fragment.error is None
    assert fault.kind is StreamOutcomeKind.FRAGMENT_FAULT
    assert isinstance(fault.error, ValueError)
    assert failure.kind is StreamOutcomeKind.SEQUENCE_FAULT
    assert failure.fragment is None


def test_frame_wire_keys():
    connected = ConnectedFrame(session_id="s", request_id="r", timestamp=1).to_wire()
    error = ErrorFrame(
        message="boom",
        session_id="s",
        chunks_generated=2,
        partial_length=10,
        fatal=False,
        timestamp=2
    ).to_wire()

    assert connected == {"type": "connected", "sessionId": "s", "requestId": "r", "timestamp": 1}
    assert error == {
        "type": "error",
        "message": "boom",
        "sessionId": "s",
        "chunksGenerated": 2,
        "partialLength": 10,
        "fatal": False,
        "timestamp": 2,
    }


def test_complete_frame_omits_missing_persist_error():
    frame = CompleteFrame(
        session_id="s",
        response_time_ms=5,
        total_length=11,
        chunk_count=3,
        persisted=True,
        timestamp=3
    )
    assert "persistError" not in frame.to_wire()


def test_envelopes():
    success = ReviewResponse(
        response="ok",
        session_id="s",
        timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc).isoformat(),
        request_id="r"
    ).to_wire()
    failure = FailureResponse(error="Prompt is required", message="m", request_id="r").to_wire()

    assert success["success"] is True
    assert success["sessionId"] == "s"
    assert failure == {"success": False, "error": "Prompt is required", "message": "m", "requestId": "r"}


@settings(max_examples=100)
@given(text=st.text(max_size=200), timestamp=st.integers(min_value=0, max_value=2**45))
def test_chunk_frame_json_preserves_text(text, timestamp):
    """Any fragment text survives JSON encoding inside a chunk frame."""
    frame = ChunkFrame(text=text, timestamp=timestamp)
    decoded = json.loads(frame.model_dump_json(by_alias=True, exclude_none=True))

    assert decoded == {"type": "chunk", "text": text, "timestamp": timestamp}


def test_complete_frame_carries_both_chunk_count_keys():
    wire = CompleteFrame(
        session_id="s",
        response_time_ms=5,
        total_length=11,
        chunk_count=3,
        persisted=True,
        timestamp=3
    ).to_wire()

    assert wire["chunkCount"] == 3
    assert wire["chunksCount"] == 3
