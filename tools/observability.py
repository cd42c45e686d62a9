"""
Observability module for structured logging and tracing.

This module provides:
- Structured JSON logging with structlog
- OpenTelemetry instrumentation for request tracing
- Request ID binding and propagation through contextvars

The manager is created once at application start and handed to the
components that need it; there is no module-level instance.
"""

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog
from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Status, StatusCode


def configure_logging(log_level: str = "INFO") -> None:
    """
    Configure structlog for structured JSON logging.

    Args:
        log_level: Minimum level name (DEBUG, INFO, WARNING, ERROR)
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


class ObservabilityManager:
    """
    Manages observability for the gateway.

    Provides:
    - Structured logging with request IDs
    - Distributed tracing with OpenTelemetry
    """

    def __init__(
        self,
        service_name: str = "codecritic-gateway",
        log_level: str = "INFO",
        enable_console_export: bool = False
    ):
        """
        Initialize the Observability Manager.

        Args:
            service_name: Name of the service for tracing
            log_level: Minimum log level
            enable_console_export: Whether to export traces to console
        """
        self.service_name = service_name

        configure_logging(log_level)
        self.tracer = self._setup_tracing(enable_console_export)
        self.logger = structlog.get_logger(service_name)

    def _setup_tracing(self, enable_console_export: bool) -> trace.Tracer:
        """Configure an OpenTelemetry tracer provider for this manager."""
        resource = Resource.create({
            "service.name": self.service_name,
            "service.version": "1.0.0",
        })

        provider = TracerProvider(resource=resource)

        if enable_console_export:
            provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

        return provider.get_tracer(__name__)

    def get_logger(self, name: Optional[str] = None) -> Any:
        """Return a bound structlog logger for a component."""
        return structlog.get_logger(name or self.service_name)

    @staticmethod
    def generate_request_id() -> str:
        """
        Generate a unique request ID.

        Returns:
            UUID-based request ID
        """
        return str(uuid.uuid4())

    @contextmanager
    def request_context(self, request_id: Optional[str] = None, **context: Any):
        """
        Bind a request ID (and extra context) to every log line in scope.

        Args:
            request_id: Optional request ID (generates new if None)
            **context: Additional key/value pairs to bind

        Yields:
            The request ID being used
        """
        if request_id is None:
            request_id = self.generate_request_id()

        structlog.contextvars.bind_contextvars(request_id=request_id, **context)
        try:
            yield request_id
        finally:
            structlog.contextvars.unbind_contextvars("request_id", *context.keys())

    @contextmanager
    def trace_operation(
        self,
        operation_name: str,
        attributes: Optional[Dict[str, Any]] = None
    ):
        """
        Context manager for tracing an operation.

        Args:
            operation_name: Name of the operation being traced
            attributes: Optional attributes to attach to the span

        Yields:
            The span object
        """
        with self.tracer.start_as_current_span(operation_name) as span:
            if attributes:
                for key, value in attributes.items():
                    span.set_attribute(key, str(value))

            try:
                yield span
            except Exception as e:
                span.set_status(Status(StatusCode.ERROR, str(e)))
                span.record_exception(e)
                raise

    def log_operation(
        self,
        operation: str,
        level: str = "info",
        **kwargs
    ) -> None:
        """
        Log an operation with structured data.

        Args:
            operation: Name of the operation
            level: Log level (debug, info, warning, error, critical)
            **kwargs: Additional context to log
        """
        log_method = getattr(self.logger, level.lower(), self.logger.info)
        log_method(
            operation,
            timestamp=datetime.now(timezone.utc).isoformat(),
            **kwargs
        )

    def log_error(
        self,
        operation: str,
        error: BaseException,
        **kwargs
    ) -> None:
        """
        Log an error with exception details.

        Args:
            operation: Operation that failed
            error: The exception that occurred
            **kwargs: Additional context
        """
        self.log_operation(
            operation,
            level="error",
            error_type=type(error).__name__,
            error_message=str(error),
            **kwargs
        )


def setup_observability(
    service_name: str = "codecritic-gateway",
    log_level: str = "INFO",
    enable_console_export: bool = False
) -> ObservabilityManager:
    """
    Build an observability manager for the running process.

    Args:
        service_name: Name of the service for tracing
        log_level: Minimum log level
        enable_console_export: Whether to export traces to console

    Returns:
        Configured ObservabilityManager instance
    """
    return ObservabilityManager(
        service_name=service_name,
        log_level=log_level,
        enable_console_export=enable_console_export
    )
