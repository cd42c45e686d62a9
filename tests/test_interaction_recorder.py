"""
Tests for the interaction recorder.

Tests verify:
- Records carry the request's metadata and a detected language
- A successful write returns the new record id
- A failing store is reported in the outcome instead of raising
"""

import time

import pytest

from models.data_models import RequestContext
from services.interaction_recorder import InteractionRecorder
from storage.interaction_store import InteractionStore
from tests.fakes import BrokenStore


def make_context(prompt: str = "console.log('x')") -> RequestContext:
    return RequestContext(
        request_id="req-1",
        session_id="sess-1",
        prompt=prompt,
        user_ip="203.0.113.5",
        user_agent="pytest-agent",
        started_at=time.monotonic(),
    )


@pytest.fixture
def store(tmp_path):
    return InteractionStore(str(tmp_path / "interactions.db"))


def test_build_record_copies_context(store):
    recorder = InteractionRecorder(store)
    record = recorder.build_record(make_context(), "Roasted.", 321)

    assert record.user_code == "console.log('x')"
    assert record.ai_response == "Roasted."
    assert record.user_ip == "203.0.113.5"
    assert record.user_agent == "pytest-agent"
    assert record.session_id == "sess-1"
    assert record.code_language == "javascript"
    assert record.response_time == 321


def test_build_record_clamps_negative_latency(store):
    recorder = InteractionRecorder(store)
    record = recorder.build_record(make_context("def f(): pass"), "ok", -5)

    assert record.response_time == 0
    assert record.code_language == "python"


@pytest.mark.asyncio
async def test_record_persists_once(store):
    recorder = InteractionRecorder(store)
    record = recorder.build_record(make_context(), "Roasted.", 50)

    outcome = await recorder.record(record)

    assert outcome.persisted is True
    assert outcome.error is None
    assert store.count() == 1
    stored = store.get(outcome.record_id)
    assert stored.ai_response == "Roasted."


@pytest.mark.asyncio
async def test_record_failure_is_reported_not_raised(store):
    broken = BrokenStore()
    recorder = InteractionRecorder(broken)
    record = recorder.build_record(make_context(), "Roasted.", 50)

    outcome = await recorder.record(record)

    assert outcome.persisted is False
    assert "database is locked" in outcome.error
    assert outcome.record_id is None
    assert broken.attempts == 1
