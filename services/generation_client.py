"""
Generation client for AI-powered code review.

Supports two model providers:
- Google Gemini (default)
- OpenAI chat completions

Provider SDK objects never leave this module: completions come back as
plain strings and streams as tagged ``StreamOutcome`` values.
"""

from enum import Enum
from typing import Any, AsyncIterator, Optional, Protocol

import anyio
import structlog

from models.data_models import StreamOutcome
from services.prompts import REVIEW_SYSTEM_INSTRUCTION
from tools.error_handling import FragmentError, UpstreamError, describe_error


class LLMProvider(str, Enum):
    """Supported model providers."""
    GEMINI = "gemini"
    OPENAI = "openai"


class ModelBackend(Protocol):
    """What the client needs from a provider."""

    name: str

    async def complete(self, prompt: str) -> str:
        """Return the full generated text for a prompt."""
        ...

    def stream_chunks(self, prompt: str) -> AsyncIterator[Any]:
        """Yield raw provider chunks for a prompt."""
        ...

    def extract_text(self, chunk: Any) -> str:
        """Pull the text out of one raw chunk."""
        ...


class GeminiBackend:
    """Gemini backend using google-generativeai."""

    name = LLMProvider.GEMINI.value

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gemini-2.0-flash",
        system_instruction: str = REVIEW_SYSTEM_INSTRUCTION
    ):
        """
        Initialize Gemini backend.

        Args:
            api_key: Google API key
            model: Gemini model to use
            system_instruction: Reviewer persona sent with every request
        """
        try:
            import google.generativeai as genai
        except ImportError:
            raise ImportError(
                "google-generativeai is required for Gemini. "
                "Install with: pip install google-generativeai"
            )

        if not api_key:
            raise RuntimeError("GOOGLE_GEMINI_KEY is required for the Gemini provider")

        genai.configure(api_key=api_key)
        self.model_name = model
        self._model = genai.GenerativeModel(
            model_name=model,
            system_instruction=system_instruction
        )

    async def complete(self, prompt: str) -> str:
        response = await self._model.generate_content_async(prompt)
        return response.text

    async def stream_chunks(self, prompt: str) -> AsyncIterator[Any]:
        response = await self._model.generate_content_async(prompt, stream=True)
        async for chunk in response:
            yield chunk

    def extract_text(self, chunk: Any) -> str:
        # Raises ValueError when the chunk carries no text part (e.g. blocked)
        return chunk.text


class OpenAIBackend:
    """OpenAI backend using the async chat completions API."""

    name = LLMProvider.OPENAI.value

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-4o-mini",
        base_url: Optional[str] = None,
        system_instruction: str = REVIEW_SYSTEM_INSTRUCTION
    ):
        """
        Initialize OpenAI backend.

        Args:
            api_key: OpenAI API key
            model: Chat model name
            base_url: Optional OpenAI-compatible endpoint
            system_instruction: Reviewer persona sent with every request
        """
        try:
            from openai import AsyncOpenAI
        except ImportError:
            raise ImportError("openai is required. Install with: pip install openai")

        self.model_name = model
        self._system_instruction = system_instruction
        self._client = AsyncOpenAI(api_key=api_key, base_url=base_url)

    def _messages(self, prompt: str) -> list:
        return [
            {"role": "system", "content": self._system_instruction},
            {"role": "user", "content": prompt},
        ]

    async def complete(self, prompt: str) -> str:
        response = await self._client.chat.completions.create(
            model=self.model_name,
            messages=self._messages(prompt),
        )
        content = response.choices[0].message.content
        if content is None:
            raise ValueError("Completion contained no text")
        return content

    async def stream_chunks(self, prompt: str) -> AsyncIterator[Any]:
        stream = await self._client.chat.completions.create(
            model=self.model_name,
            messages=self._messages(prompt),
            stream=True,
        )
        try:
            async for chunk in stream:
                yield chunk
        finally:
            with anyio.CancelScope(shield=True):
                await stream.close()

    def extract_text(self, chunk: Any) -> str:
        if not chunk.choices:
            return ""
        return chunk.choices[0].delta.content or ""


def create_backend(settings: Any) -> ModelBackend:
    """
    Build the backend named by ``settings.llm_provider``.

    Args:
        settings: Application settings

    Returns:
        A configured ModelBackend

    Raises:
        ValueError: If the provider is not supported
    """
    provider = (settings.llm_provider or "").lower()

    if provider == LLMProvider.GEMINI.value:
        return GeminiBackend(
            api_key=settings.google_gemini_key,
            model=settings.gemini_model
        )
    elif provider == LLMProvider.OPENAI.value:
        return OpenAIBackend(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            base_url=settings.openai_base_url
        )
    else:
        raise ValueError(f"Unsupported LLM provider: {settings.llm_provider}")


class GenerationClient:
    """
    Client for single-shot and streaming review generation.

    No retries and no persistence: failures surface as ``UpstreamError``
    (single-shot) or as fault outcomes (streaming), and storing results is
    the caller's job.
    """

    def __init__(self, backend: ModelBackend, logger: Optional[Any] = None):
        """
        Initialize the generation client.

        Args:
            backend: Provider backend performing the outbound calls
            logger: Structured logger (defaults to a module logger)
        """
        self._backend = backend
        self._logger = logger or structlog.get_logger(__name__)

    @property
    def provider(self) -> str:
        return self._backend.name

    async def generate(self, prompt: str) -> str:
        """
        Generate a complete review.

        Args:
            prompt: Source code to review

        Returns:
            Generated review text

        Raises:
            UpstreamError: If the model call fails or returns no text
        """
        try:
            text = await self._backend.complete(prompt)
        except Exception as e:
            self._logger.error(
                "generation_failed",
                provider=self.provider,
                prompt_length=len(prompt),
                error=describe_error(e)
            )
            raise UpstreamError(describe_error(e), provider=self.provider) from e

        if not isinstance(text, str):
            raise UpstreamError("Malformed response from model", provider=self.provider)

        self._logger.info(
            "generation_succeeded",
            provider=self.provider,
            prompt_length=len(prompt),
            response_length=len(text)
        )
        return text

    async def generate_stream(self, prompt: str) -> AsyncIterator[StreamOutcome]:
        """
        Stream a review as tagged outcomes.

        Yields a FRAGMENT outcome per non-empty text chunk, a FRAGMENT_FAULT
        for a chunk whose text cannot be extracted (iteration continues), and
        at most one SEQUENCE_FAULT, after which iteration ends. Closing the
        iterator early releases the upstream stream.

        Args:
            prompt: Source code to review

        Yields:
            StreamOutcome values in upstream order
        """
        chunks = self._backend.stream_chunks(prompt)
        chunk_number = 0

        self._logger.info("generation_stream_started", provider=self.provider, prompt_length=len(prompt))

        try:
            while True:
                try:
                    chunk = await chunks.__anext__()
                except StopAsyncIteration:
                    self._logger.info(
                        "generation_stream_finished",
                        provider=self.provider,
                        chunks_received=chunk_number
                    )
                    return
                except Exception as e:
                    self._logger.error(
                        "generation_stream_failed",
                        provider=self.provider,
                        chunks_received=chunk_number,
                        error=describe_error(e)
                    )
                    error = UpstreamError(describe_error(e), provider=self.provider)
                    error.__cause__ = e
                    yield StreamOutcome.sequence_fault(error)
                    return

                chunk_number += 1
                try:
                    text = self._backend.extract_text(chunk)
                except Exception as e:
                    self._logger.warning(
                        "stream_chunk_unreadable",
                        provider=self.provider,
                        chunk_number=chunk_number,
                        error=describe_error(e)
                    )
                    error = FragmentError(describe_error(e), chunk_number=chunk_number)
                    error.__cause__ = e
                    yield StreamOutcome.fragment_fault(error)
                    continue

                if text:
                    yield StreamOutcome.of_fragment(text)
        finally:
            await self._release(chunks)

    async def _release(self, chunks: AsyncIterator[Any]) -> None:
        """
        Close the upstream chunk iterator, logging rather than raising on failure.

        Shielded so the close still completes when the caller is being cancelled.
        """
        aclose = getattr(chunks, "aclose", None)
        if aclose is None:
            return
        with anyio.CancelScope(shield=True):
            try:
                await aclose()
            except Exception as e:
                self._logger.warning("upstream_release_failed", provider=self.provider, error=describe_error(e))
