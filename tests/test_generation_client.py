"""
Tests for the generation client.

Tests verify:
- Single-shot generation returns text and wraps provider failures
- Streams are delivered as tagged outcomes in upstream order
- Unreadable chunks become fragment faults and the stream continues
- A failing stream ends with exactly one sequence fault
- The upstream iterator is released however the stream ends
- Backend selection from settings
"""

from types import SimpleNamespace

import pytest

from models.data_models import StreamOutcomeKind
from services.generation_client import GenerationClient, OpenAIBackend, create_backend
from tests.fakes import FakeBackend, Unreadable
from tools.error_handling import FragmentError, UpstreamError


async def collect(client: GenerationClient, prompt: str = "print(1)"):
    return [outcome async for outcome in client.generate_stream(prompt)]


@pytest.mark.asyncio
async def test_generate_returns_text():
    backend = FakeBackend(completion="Solid code.")
    client = GenerationClient(backend)

    assert await client.generate("x = 1") == "Solid code."
    assert backend.prompts == ["x = 1"]


@pytest.mark.asyncio
async def test_generate_wraps_provider_errors():
    cause = ConnectionError("connection reset")
    client = GenerationClient(FakeBackend(complete_error=cause))

    with pytest.raises(UpstreamError) as exc_info:
        await client.generate("x = 1")

    assert exc_info.value.__cause__ is cause
    assert exc_info.value.provider == "fake"
    assert "connection reset" in str(exc_info.value)


@pytest.mark.asyncio
async def test_generate_rejects_non_text_response():
    client = GenerationClient(FakeBackend(completion=None))

    with pytest.raises(UpstreamError):
        await client.generate("x = 1")


@pytest.mark.asyncio
async def test_stream_yields_fragments_in_order():
    backend = FakeBackend(chunks=["Hel", "lo ", "World"])
    outcomes = await collect(GenerationClient(backend))

    assert [o.kind for o in outcomes] == [StreamOutcomeKind.FRAGMENT] * 3
    assert "".join(o.fragment.text for o in outcomes) == "Hello World"
    assert backend.closed


@pytest.mark.asyncio
async def test_stream_skips_empty_chunks():
    outcomes = await collect(GenerationClient(FakeBackend(chunks=["a", "", "b"])))

    assert [o.fragment.text for o in outcomes] == ["a", "b"]


@pytest.mark.asyncio
async def test_unreadable_chunk_is_a_fragment_fault():
    backend = FakeBackend(chunks=["one", Unreadable("blocked"), "three"])
    outcomes = await collect(GenerationClient(backend))

    assert [o.kind for o in outcomes] == [
        StreamOutcomeKind.FRAGMENT,
        StreamOutcomeKind.FRAGMENT_FAULT,
        StreamOutcomeKind.FRAGMENT,
    ]
    fault = outcomes[1].error
    assert isinstance(fault, FragmentError)
    assert fault.chunk_number == 2
    assert "blocked" in str(fault)


@pytest.mark.asyncio
async def test_mid_stream_failure_ends_with_one_sequence_fault():
    backend = FakeBackend(chunks=["a", "b"], stream_error=ConnectionError("dropped"))
    outcomes = await collect(GenerationClient(backend))

    assert [o.kind for o in outcomes] == [
        StreamOutcomeKind.FRAGMENT,
        StreamOutcomeKind.FRAGMENT,
        StreamOutcomeKind.SEQUENCE_FAULT,
    ]
    error = outcomes[-1].error
    assert isinstance(error, UpstreamError)
    assert isinstance(error.__cause__, ConnectionError)
    assert backend.closed


@pytest.mark.asyncio
async def test_failure_before_first_chunk():
    backend = FakeBackend(stream_error=PermissionError("invalid API key"))
    outcomes = await collect(GenerationClient(backend))

    assert len(outcomes) == 1
    assert outcomes[0].kind is StreamOutcomeKind.SEQUENCE_FAULT
    assert "invalid API key" in str(outcomes[0].error)


@pytest.mark.asyncio
async def test_closing_early_releases_upstream():
    backend = FakeBackend(chunks=["a", "b", "c"])
    stream = GenerationClient(backend).generate_stream("x")

    first = await stream.__anext__()
    await stream.aclose()

    assert first.fragment.text == "a"
    assert backend.closed


def test_create_backend_rejects_unknown_provider():
    with pytest.raises(ValueError, match="Unsupported LLM provider"):
        create_backend(SimpleNamespace(llm_provider="carrier-pigeon"))


def test_create_backend_gemini_requires_key():
    config = SimpleNamespace(llm_provider="gemini", google_gemini_key=None, gemini_model="gemini-2.0-flash")

    with pytest.raises(RuntimeError, match="GOOGLE_GEMINI_KEY"):
        create_backend(config)


def test_create_backend_openai():
    config = SimpleNamespace(
        llm_provider="OpenAI",
        openai_api_key="sk-test",
        openai_model="gpt-4o-mini",
        openai_base_url=None,
    )
    backend = create_backend(config)

    assert isinstance(backend, OpenAIBackend)
    assert backend.name == "openai"
    assert backend.model_name == "gpt-4o-mini"


def test_openai_extract_text_handles_empty_deltas():
    backend = OpenAIBackend(api_key="sk-test")
    empty = SimpleNamespace(choices=[])
    no_content = SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=None))])
    text = SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content="hi"))])

    assert backend.extract_text(empty) == ""
    assert backend.extract_text(no_content) == ""
    assert backend.extract_text(text) == "hi"
