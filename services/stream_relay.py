"""
Stream relay: the state machine behind the streaming review endpoint.

The relay pulls tagged outcomes from the generation client, turns them into
client frames, accumulates the generated text, and persists the interaction
once when the upstream stream ends normally.

States::

    idle -> connected -> streaming -> completing -> terminated
                                   -> failing    -> terminated
                                   -> aborted            (client went away)

Exactly one ``connected`` frame opens the stream and exactly one terminal
frame (``complete`` or a fatal ``error``) closes it. Fragment faults produce
non-fatal ``error`` frames and streaming continues. A sequence fault is not
persisted and is re-raised after its frame so outer layers can log it.
"""

import time
from typing import Any, AsyncIterator, Awaitable, Callable, List, Optional

import anyio
import structlog

from models.data_models import (
    ChunkFrame,
    CompleteFrame,
    ConnectedFrame,
    ErrorFrame,
    Fragment,
    RecordOutcome,
    RelayState,
    RequestContext,
    StreamFrame,
    StreamOutcomeKind,
)
from services.generation_client import GenerationClient
from services.interaction_recorder import InteractionRecorder
from tools.error_handling import UpstreamError, describe_error

DisconnectCheck = Callable[[], Awaitable[bool]]

_TERMINAL_STATES = (RelayState.TERMINATED, RelayState.ABORTED)


class StreamRelay:
    """
    Relays one streaming generation to one client.

    A relay is single-use: ``frames()`` may be iterated once. Each request
    gets its own relay, so the buffer and counters are never shared.
    """

    def __init__(
        self,
        client: GenerationClient,
        recorder: InteractionRecorder,
        context: RequestContext,
        logger: Optional[Any] = None,
        disconnected: Optional[DisconnectCheck] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize the relay.

        Args:
            client: Generation client producing the upstream stream
            recorder: Recorder used once when the stream completes
            context: The accepted request
            logger: Structured logger (defaults to a module logger)
            disconnected: Async callable returning True once the client is gone
            clock: Monotonic clock matching ``context.started_at``
        """
        self._client = client
        self._recorder = recorder
        self._context = context
        self._logger = (logger or structlog.get_logger(__name__)).bind(
            request_id=context.request_id,
            session_id=context.session_id
        )
        self._disconnected = disconnected
        self._clock = clock

        self.state = RelayState.IDLE
        self.chunk_count = 0
        self.fragment_faults = 0
        self.record_outcome: Optional[RecordOutcome] = None
        self._buffer: List[str] = []
        self._partial_length = 0
        self._last_timestamp = 0

    @property
    def response_text(self) -> str:
        """Text accumulated so far."""
        return "".join(self._buffer)

    @property
    def partial_length(self) -> int:
        return self._partial_length

    @property
    def is_terminated(self) -> bool:
        return self.state in _TERMINAL_STATES

    @property
    def aborted(self) -> bool:
        return self.state is RelayState.ABORTED

    async def frames(self) -> AsyncIterator[StreamFrame]:
        """
        Run the relay, yielding frames in emission order.

        Yields:
            ConnectedFrame, then ChunkFrame / non-fatal ErrorFrame values,
            then one CompleteFrame or one fatal ErrorFrame

        Raises:
            UpstreamError: After the fatal error frame of a sequence fault
            RuntimeError: If the relay has already been run
        """
        if self.state is not RelayState.IDLE:
            raise RuntimeError(f"Relay already run (state: {self.state.value})")

        self.state = RelayState.CONNECTED
        self._logger.info("stream_connected", user_ip=self._context.user_ip)
        yield ConnectedFrame(
            session_id=self._context.session_id,
            request_id=self._context.request_id,
            timestamp=self._timestamp()
        )

        self.state = RelayState.STREAMING
        outcomes = self._client.generate_stream(self._context.prompt)
        failure: Optional[BaseException] = None
        errored = False

        try:
            try:
                async for outcome in outcomes:
                    if await self._client_gone():
                        self._abort()
                        return

                    if outcome.kind is StreamOutcomeKind.FRAGMENT:
                        yield self._accept_fragment(outcome.fragment)
                    elif outcome.kind is StreamOutcomeKind.FRAGMENT_FAULT:
                        yield self._fragment_fault_frame(outcome.error)
                    else:
                        failure = outcome.error or UpstreamError("Upstream stream failed")
                        break
            except UpstreamError as e:
                failure = e

            if failure is not None:
                yield self._fail(failure)
                raise failure

            if await self._client_gone():
                self._abort()
                return

            yield await self._complete()
        except Exception:
            errored = True
            raise
        finally:
            await self._release(outcomes)
            if not self.is_terminated and not errored:
                # Cancelled or closed by the transport mid-stream
                self._abort()

    def error_frame_for(self, error: BaseException) -> Optional[ErrorFrame]:
        """
        Build a fatal error frame for a failure raised outside the relay's
        own handling, unless a terminal frame was already emitted.

        Args:
            error: The unexpected exception

        Returns:
            The fatal ErrorFrame, or None when the stream is already closed
        """
        if self.is_terminated:
            return None
        self.state = RelayState.TERMINATED
        return self._error_frame(describe_error(error), fatal=True)

    def _accept_fragment(self, fragment: Fragment) -> ChunkFrame:
        self.chunk_count += 1
        self._buffer.append(fragment.text)
        self._partial_length += len(fragment.text)

        self._logger.debug(
            "stream_chunk",
            chunk_number=self.chunk_count,
            chunk_size=len(fragment.text),
            total_size=self._partial_length
        )
        return ChunkFrame(text=fragment.text, timestamp=self._timestamp())

    def _fragment_fault_frame(self, error: Optional[BaseException]) -> ErrorFrame:
        self.fragment_faults += 1
        message = describe_error(error) if error else "unknown error"

        self._logger.warning(
            "stream_chunk_failed",
            chunks_generated=self.chunk_count,
            error=message
        )
        return self._error_frame(f"Chunk processing failed: {message}", fatal=False)

    def _fail(self, failure: BaseException) -> ErrorFrame:
        self.state = RelayState.FAILING
        self._logger.error(
            "stream_failed",
            chunks_generated=self.chunk_count,
            partial_length=self._partial_length,
            response_time=self._elapsed_ms(),
            error=describe_error(failure)
        )
        frame = self._error_frame(describe_error(failure), fatal=True)
        self.state = RelayState.TERMINATED
        return frame

    async def _complete(self) -> CompleteFrame:
        self.state = RelayState.COMPLETING
        response_time = self._elapsed_ms()
        text = self.response_text

        try:
            record = self._recorder.build_record(self._context, text, response_time)
            outcome = await self._recorder.record(record)
        except Exception as e:
            self._logger.error("stream_record_failed", error=describe_error(e))
            outcome = RecordOutcome(persisted=False, error=describe_error(e))
        self.record_outcome = outcome

        frame = CompleteFrame(
            session_id=self._context.session_id,
            response_time_ms=response_time,
            total_length=len(text),
            chunk_count=self.chunk_count,
            persisted=outcome.persisted,
            persist_error=outcome.error,
            timestamp=self._timestamp()
        )
        self.state = RelayState.TERMINATED

        self._logger.info(
            "stream_completed",
            response_time=response_time,
            response_length=len(text),
            chunks_count=self.chunk_count,
            fragment_faults=self.fragment_faults,
            persisted=outcome.persisted
        )
        return frame

    def _abort(self) -> None:
        self.state = RelayState.ABORTED
        self._logger.info(
            "stream_aborted",
            chunks_generated=self.chunk_count,
            partial_length=self._partial_length
        )

    def _error_frame(self, message: str, fatal: bool) -> ErrorFrame:
        return ErrorFrame(
            message=message,
            session_id=self._context.session_id,
            chunks_generated=self.chunk_count,
            partial_length=self._partial_length,
            fatal=fatal,
            timestamp=self._timestamp()
        )

    async def _client_gone(self) -> bool:
        if self._disconnected is None:
            return False
        return bool(await self._disconnected())

    async def _release(self, outcomes: AsyncIterator[Any]) -> None:
        """
        Close the upstream iterator, logging rather than raising on failure.

        Shielded so the close still completes when the transport cancels the
        response task after a disconnect.
        """
        aclose = getattr(outcomes, "aclose", None)
        if aclose is None:
            return
        with anyio.CancelScope(shield=True):
            try:
                await aclose()
            except Exception as e:
                self._logger.warning("stream_release_failed", error=describe_error(e))

    def _elapsed_ms(self) -> int:
        return max(0, int((self._clock() - self._context.started_at) * 1000))

    def _timestamp(self) -> int:
        # Epoch milliseconds, never decreasing within one relay
        now = int(time.time() * 1000)
        self._last_timestamp = max(self._last_timestamp, now)
        return self._last_timestamp
