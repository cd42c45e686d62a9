"""
HTTP transport for review requests.

Maps the stream relay onto a Server-Sent Events response and the
single-shot path onto a plain JSON request/response. Also owns the
request-level concerns both modes share: prompt validation, session and
client address resolution, and the JSON envelopes.

SSE format::

    data: {"type": "connected", ...}\\n\\n
    data: {"type": "chunk", "text": "..."}\\n\\n
    ...
    data: {"type": "complete", ...}\\n\\n      (or a fatal "error" frame)
    data: [DONE]\\n\\n
"""

import time
import uuid
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Callable, Optional

from fastapi import Request
from fastapi.responses import JSONResponse, StreamingResponse

from models.data_models import (
    CamelModel,
    FailureResponse,
    RequestContext,
    ReviewRequest,
    ReviewResponse,
)
from services.generation_client import GenerationClient
from services.interaction_recorder import InteractionRecorder
from services.stream_relay import StreamRelay
from tools.error_handling import (
    PROMPT_REQUIRED,
    UpstreamError,
    describe_error,
    normalize_session_id,
    validate_prompt,
)

SSE_DONE = "data: [DONE]\n\n"

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Cache-Control",
}


def format_sse(frame: CamelModel) -> str:
    """Encode one frame as a single SSE message."""
    return f"data: {frame.model_dump_json(by_alias=True, exclude_none=True)}\n\n"


def get_client_ip(request: Request) -> str:
    """
    Resolve the caller's address.

    Prefers the first ``x-forwarded-for`` hop, then ``x-real-ip``, then the
    socket peer.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    real_ip = request.headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host

    return "unknown"


async def read_review_request(request: Request) -> Optional[ReviewRequest]:
    """
    Parse the request body leniently.

    A missing or malformed body yields None, and non-string field values are
    dropped, so every bad prompt is reported by ``validate_prompt`` as a 400
    rather than as a framework 422.
    """
    try:
        payload = await request.json()
    except ValueError:
        return None

    if not isinstance(payload, dict):
        return None

    return ReviewRequest.model_validate({
        key: value
        for key, value in payload.items()
        if key in ("prompt", "sessionId", "session_id") and isinstance(value, str)
    })


def build_request_context(
    request: Request,
    body: Optional[ReviewRequest],
    request_id: str,
    clock: Callable[[], float] = time.monotonic
) -> RequestContext:
    """
    Validate the body and capture everything the pipeline needs.

    Args:
        request: Incoming HTTP request (headers, peer address)
        body: Parsed body, or None when no body was sent
        request_id: Identifier generated for this request
        clock: Monotonic clock used to stamp acceptance time

    Returns:
        RequestContext for the accepted request

    Raises:
        ValidationError: If the prompt is missing or blank
    """
    prompt = validate_prompt(body.prompt if body else None)

    session_id = (
        normalize_session_id(request.headers.get("x-session-id"))
        or normalize_session_id(body.session_id if body else None)
        or str(uuid.uuid4())
    )

    return RequestContext(
        request_id=request_id,
        session_id=session_id,
        prompt=prompt,
        user_ip=get_client_ip(request),
        user_agent=request.headers.get("user-agent", ""),
        started_at=clock(),
    )


def failure_response(status_code: int, error: str, message: str, request_id: str) -> JSONResponse:
    """Render the shared failure envelope."""
    envelope = FailureResponse(error=error, message=message, request_id=request_id)
    return JSONResponse(status_code=status_code, content=envelope.to_wire())


def validation_failure(request_id: str) -> JSONResponse:
    """400 response for a missing or blank prompt."""
    return failure_response(400, PROMPT_REQUIRED, "Please provide code to analyze", request_id)


async def run_single_shot(
    context: RequestContext,
    client: GenerationClient,
    recorder: InteractionRecorder,
    logger: Any,
    clock: Callable[[], float] = time.monotonic
) -> JSONResponse:
    """
    Generate a complete review, record it, and return the JSON envelope.

    A persistence failure is logged by the recorder and does not change
    the response.

    Args:
        context: The accepted request
        client: Generation client
        recorder: Interaction recorder
        logger: Structured logger
        clock: Monotonic clock matching ``context.started_at``

    Returns:
        200 success envelope, or 500 failure envelope on upstream failure
    """
    logger.info(
        "code_analysis_started",
        user_ip=context.user_ip,
        session_id=context.session_id,
        code_length=len(context.prompt),
        user_agent=context.user_agent[:100]
    )

    try:
        response = await client.generate(context.prompt)
    except UpstreamError as e:
        logger.error(
            "code_analysis_failed",
            user_ip=context.user_ip,
            session_id=context.session_id,
            error=describe_error(e)
        )
        return failure_response(
            500,
            "Internal server error",
            "Failed to process code analysis",
            context.request_id
        )

    response_time = max(0, int((clock() - context.started_at) * 1000))
    outcome = await recorder.record(recorder.build_record(context, response, response_time))

    logger.info(
        "code_analysis_completed",
        user_ip=context.user_ip,
        session_id=context.session_id,
        response_length=len(response),
        response_time=response_time,
        persisted=outcome.persisted
    )

    envelope = ReviewResponse(
        response=response,
        session_id=context.session_id,
        timestamp=datetime.now(timezone.utc).isoformat(),
        request_id=context.request_id
    )
    return JSONResponse(status_code=200, content=envelope.to_wire())


async def relay_events(relay: StreamRelay, logger: Any) -> AsyncIterator[str]:
    """
    Drive a relay and encode its frames as SSE messages.

    Every path that still has a client ends with the ``[DONE]`` sentinel:
    normal completion, an upstream failure (after the relay's own error
    frame), and an unexpected relay exception (after a synthesised error
    frame). A client abort ends the stream silently.

    Args:
        relay: A fresh StreamRelay
        logger: Structured logger

    Yields:
        SSE-encoded strings
    """
    frames = relay.frames()
    try:
        try:
            async for frame in frames:
                yield format_sse(frame)
        finally:
            await frames.aclose()
    except UpstreamError as e:
        logger.error(
            "streaming_generation_error",
            chunks_streamed=relay.chunk_count,
            partial_length=relay.partial_length,
            error=describe_error(e)
        )
    except Exception as e:
        logger.error(
            "streaming_relay_error",
            chunks_streamed=relay.chunk_count,
            error_type=type(e).__name__,
            error=describe_error(e)
        )
        frame = relay.error_frame_for(e)
        if frame is not None:
            yield format_sse(frame)

    if relay.aborted:
        logger.info("streaming_client_disconnected", chunks_streamed=relay.chunk_count)
        return

    yield SSE_DONE
    logger.info(
        "streaming_request_finished",
        chunks_streamed=relay.chunk_count,
        final_state=relay.state.value
    )


def stream_response(relay: StreamRelay, logger: Any) -> StreamingResponse:
    """Wrap a relay in a ``text/event-stream`` response."""
    return StreamingResponse(
        relay_events(relay, logger),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
