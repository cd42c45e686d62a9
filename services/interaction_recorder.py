"""
Interaction recorder.

Turns a finished generation attempt into an InteractionRecord and writes it
to the store exactly once. Storage failures are reported back as a
RecordOutcome and logged; they are never raised to the caller.
"""

import asyncio
from typing import Any, Optional

import structlog

from models.data_models import InteractionRecord, RecordOutcome, RequestContext
from storage.interaction_store import InteractionStore
from tools.error_handling import PersistenceError, describe_error
from tools.language_detector import detect_language


class InteractionRecorder:
    """Builds and persists one record per generation attempt."""

    def __init__(self, store: InteractionStore, logger: Optional[Any] = None):
        """
        Initialize the recorder.

        Args:
            store: Interaction store to write to
            logger: Structured logger (defaults to a module logger)
        """
        self._store = store
        self._logger = logger or structlog.get_logger(__name__)

    def build_record(
        self,
        context: RequestContext,
        response: str,
        response_time_ms: int
    ) -> InteractionRecord:
        """
        Build the record for a request.

        Args:
            context: The accepted request
            response: Generated (possibly partial) review text
            response_time_ms: Latency from acceptance to termination

        Returns:
            InteractionRecord with the language tag filled in
        """
        return InteractionRecord(
            user_code=context.prompt,
            ai_response=response,
            user_ip=context.user_ip,
            user_agent=context.user_agent,
            code_language=detect_language(context.prompt),
            session_id=context.session_id,
            response_time=max(0, int(response_time_ms)),
        )

    async def record(self, record: InteractionRecord) -> RecordOutcome:
        """
        Insert a record once, without retrying.

        The blocking SQLite write runs in the default executor.

        Args:
            record: The record to store

        Returns:
            RecordOutcome describing whether the write succeeded
        """
        self._logger.debug(
            "interaction_save_started",
            session_id=record.session_id,
            user_ip=record.user_ip,
            prompt_length=len(record.user_code),
            response_length=len(record.ai_response),
            response_time=record.response_time
        )

        loop = asyncio.get_running_loop()
        try:
            record_id = await loop.run_in_executor(None, self._store.insert, record)
        except Exception as e:
            error = PersistenceError(describe_error(e))
            self._logger.error(
                "interaction_save_failed",
                session_id=record.session_id,
                user_ip=record.user_ip,
                error_type=type(e).__name__,
                error=str(error)
            )
            return RecordOutcome(persisted=False, error=str(error))

        self._logger.info(
            "interaction_saved",
            session_id=record.session_id,
            record_id=record_id,
            code_language=record.code_language
        )
        return RecordOutcome(persisted=True, record_id=record_id)
