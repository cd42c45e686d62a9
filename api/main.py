"""FastAPI application for the CodeCritic gateway."""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api import admin
from api.dependencies import get_generation_client, get_observability, get_recorder
from api.transport import (
    build_request_context,
    failure_response,
    read_review_request,
    run_single_shot,
    stream_response,
    validation_failure,
)
from config.settings import Settings, settings as default_settings
from services.generation_client import GenerationClient, create_backend
from services.interaction_recorder import InteractionRecorder
from services.stream_relay import StreamRelay
from storage.interaction_store import InteractionStore
from tools.error_handling import ValidationError, describe_error
from tools.observability import ObservabilityManager, setup_observability

SERVICE_NAME = "codecritic-gateway"
VERSION = "0.1.0"


def create_app(
    app_settings: Optional[Settings] = None,
    observability: Optional[ObservabilityManager] = None,
    store: Optional[InteractionStore] = None,
    generation_client: Optional[GenerationClient] = None
) -> FastAPI:
    """
    Build the gateway application.

    Components passed in are used as-is; anything missing is built from
    settings when the application starts.

    Args:
        app_settings: Application settings (defaults to the environment)
        observability: Logging and tracing manager
        store: Interaction store
        generation_client: Model client

    Returns:
        Configured FastAPI application
    """
    config = app_settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        state = app.state
        if getattr(state, "observability", None) is None:
            state.observability = setup_observability(
                service_name=SERVICE_NAME,
                log_level=config.log_level,
                enable_console_export=config.enable_tracing
            )
        logger = state.observability.get_logger("gateway")

        if getattr(state, "store", None) is None:
            state.store = InteractionStore(config.database_path)
        if getattr(state, "recorder", None) is None:
            state.recorder = InteractionRecorder(state.store, logger=state.observability.get_logger("recorder"))
        if getattr(state, "generation_client", None) is None:
            state.generation_client = GenerationClient(
                create_backend(config),
                logger=state.observability.get_logger("generation")
            )

        logger.info(
            "gateway_started",
            environment=config.environment,
            provider=state.generation_client.provider,
            database_path=state.store.db_path
        )
        yield
        logger.info("gateway_stopped")

    app = FastAPI(
        title="CodeCritic Gateway",
        description="Streams and records AI code reviews",
        version=VERSION,
        lifespan=lifespan
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.observability = observability
    app.state.store = store
    app.state.generation_client = generation_client
    app.state.recorder = None
    if store is not None:
        logger = observability.get_logger("recorder") if observability else None
        app.state.recorder = InteractionRecorder(store, logger=logger)

    app.include_router(admin.router)
    _register_routes(app)
    return app


def _register_routes(app: FastAPI) -> None:

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        observability = request.app.state.observability
        request_id = observability.generate_request_id() if observability else "unknown"
        if observability:
            observability.log_error("unhandled_request_error", exc, path=request.url.path)
        return failure_response(500, "Internal server error", describe_error(exc), request_id)

    @app.get("/")
    async def root() -> Dict[str, str]:
        """Root endpoint."""
        return {
            "name": "CodeCritic Gateway",
            "version": VERSION,
            "status": "running"
        }

    @app.get("/health")
    async def health(request: Request) -> Dict[str, Any]:
        """
        Health check endpoint.

        Reports the configured model provider and whether the interaction
        store answers a trivial query.
        """
        state = request.app.state
        health_status: Dict[str, Any] = {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": VERSION,
            "components": {}
        }

        client = state.generation_client
        health_status["components"]["generation"] = client.provider if client else "unconfigured"

        try:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, state.store.count)
            health_status["components"]["interaction_store"] = "healthy"
        except Exception as e:
            state.observability.get_logger("gateway").warning(
                "interaction_store_health_check_failed",
                error=describe_error(e)
            )
            health_status["components"]["interaction_store"] = "unhealthy"
            health_status["status"] = "degraded"

        return health_status

    @app.post("/ai/get-response")
    async def get_response(
        request: Request,
        observability: ObservabilityManager = Depends(get_observability),
        client: GenerationClient = Depends(get_generation_client),
        recorder: InteractionRecorder = Depends(get_recorder)
    ) -> JSONResponse:
        """Review submitted code and return the full response at once."""
        request_id = observability.generate_request_id()
        logger = observability.get_logger("review")

        with observability.request_context(request_id, endpoint="POST /ai/get-response"):
            body = await read_review_request(request)
            try:
                context = build_request_context(request, body, request_id)
            except ValidationError as e:
                logger.warning("validation_failed", reason=describe_error(e))
                return validation_failure(request_id)

            with observability.trace_operation(
                "review.single_shot",
                {"request_id": request_id, "session_id": context.session_id, "provider": client.provider}
            ):
                return await run_single_shot(context, client, recorder, logger)

    @app.post("/ai/stream")
    async def stream_review(
        request: Request,
        observability: ObservabilityManager = Depends(get_observability),
        client: GenerationClient = Depends(get_generation_client),
        recorder: InteractionRecorder = Depends(get_recorder)
    ) -> Response:
        """Review submitted code, streaming the response as Server-Sent Events."""
        request_id = observability.generate_request_id()
        logger = observability.get_logger("review").bind(
            request_id=request_id,
            endpoint="POST /ai/stream"
        )

        # The body is sent after this handler returns, outside the request
        # context, so the stream logger keeps its own request_id binding.
        with observability.request_context(request_id, endpoint="POST /ai/stream"):
            body = await read_review_request(request)
            try:
                context = build_request_context(request, body, request_id)
            except ValidationError as e:
                logger.warning("validation_failed", reason=describe_error(e))
                return validation_failure(request_id)

            logger.info(
                "streaming_analysis_started",
                user_ip=context.user_ip,
                session_id=context.session_id,
                code_length=len(context.prompt)
            )

        relay = StreamRelay(
            client,
            recorder,
            context,
            logger=observability.get_logger("stream"),
            disconnected=request.is_disconnected
        )
        return stream_response(relay, logger)


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host=default_settings.api_host, port=default_settings.api_port)
