"""
Core data models for the CodeCritic gateway.

This module defines all Pydantic models used throughout the system for
request parsing, interaction persistence, the streaming pipeline and the
JSON envelopes returned to clients.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model serialised with camelCase keys for HTTP clients."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        """Dump to a JSON-ready dict using the camelCase aliases."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class RelayState(str, Enum):
    """Lifecycle states of a streaming relay."""
    IDLE = "idle"
    CONNECTED = "connected"
    STREAMING = "streaming"
    COMPLETING = "completing"
    FAILING = "failing"
    TERMINATED = "terminated"
    ABORTED = "aborted"


class StreamOutcomeKind(str, Enum):
    """Tag carried by every item pulled from the generation stream."""
    FRAGMENT = "fragment"
    FRAGMENT_FAULT = "fragment_fault"
    SEQUENCE_FAULT = "sequence_fault"


class ReviewRequest(BaseModel):
    """Body accepted by both review endpoints."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    prompt: Optional[str] = Field(default=None, description="Source code to review")
    session_id: Optional[str] = Field(
        default=None,
        alias="sessionId",
        description="Client-supplied session identifier"
    )


class RequestContext(BaseModel):
    """Everything known about an accepted review request."""

    request_id: str = Field(..., description="Server-generated request identifier")
    session_id: str = Field(..., description="Correlates requests from one client session")
    prompt: str = Field(..., description="Validated source code")
    user_ip: str = Field(default="unknown", description="Originating network address")
    user_agent: str = Field(default="", description="Client-declared agent string")
    started_at: float = Field(..., description="Monotonic clock reading at acceptance")


class InteractionRecord(BaseModel):
    """One completed generation attempt, as stored for analytics."""

    user_code: str = Field(..., description="Submitted code")
    ai_response: str = Field(..., description="Generated review text")
    user_ip: str = Field(default="unknown", description="Originating network address")
    user_agent: str = Field(default="", description="Client-declared agent string")
    code_language: str = Field(default="unknown", description="Detected language tag")
    session_id: str = Field(default="", description="Session identifier")
    response_time: int = Field(default=0, ge=0, description="Latency in milliseconds")
    timestamp: datetime = Field(default_factory=_utcnow, description="Creation time")

    @field_validator("user_code")
    @classmethod
    def validate_user_code(cls, v: str) -> str:
        """
        Reject code that is empty once surrounding whitespace is removed.

        Raises:
            ValueError: If the code is empty or whitespace only
        """
        if not v or not v.strip():
            raise ValueError("user_code cannot be empty or whitespace")
        return v


class StoredInteraction(InteractionRecord):
    """Interaction record read back from the store."""

    id: int = Field(..., description="Surrogate key assigned by the store")


class RecordOutcome(BaseModel):
    """Result of a single persistence attempt."""
    persisted: bool
    error: Optional[str] = None
    record_id: Optional[int] = None


class Fragment(BaseModel):
    """One incremental piece of generated text."""

    model_config = ConfigDict(frozen=True)

    text: str


class StreamOutcome(BaseModel):
    """
    Tagged result of pulling once from the generation stream.

    Exactly one of ``fragment`` (for FRAGMENT) or ``error`` (for the two
    fault kinds) is populated.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: StreamOutcomeKind
    fragment: Optional[Fragment] = None
    error: Optional[Exception] = None

    @classmethod
    def of_fragment(cls, text: str) -> "StreamOutcome":
        return cls(kind=StreamOutcomeKind.FRAGMENT, fragment=Fragment(text=text))

    @classmethod
    def fragment_fault(cls, error: Exception) -> "StreamOutcome":
        return cls(kind=StreamOutcomeKind.FRAGMENT_FAULT, error=error)

    @classmethod
    def sequence_fault(cls, error: Exception) -> "StreamOutcome":
        return cls(kind=StreamOutcomeKind.SEQUENCE_FAULT, error=error)


class ConnectedFrame(CamelModel):
    """First frame of every stream."""
    type: Literal["connected"] = "connected"
    session_id: str
    request_id: str
    timestamp: int


class ChunkFrame(CamelModel):
    """A fragment of generated text."""
    type: Literal["chunk"] = "chunk"
    text: str
    timestamp: int


class CompleteFrame(CamelModel):
    """Terminal frame for a stream whose upstream ended normally."""
    type: Literal["complete"] = "complete"
    session_id: str
    response_time_ms: int = Field(ge=0)
    total_length: int = Field(ge=0)
    chunk_count: int = Field(ge=0)
    persisted: bool
    persist_error: Optional[str] = None
    timestamp: int

    @computed_field(alias="chunksCount")
    @property
    def chunks_count(self) -> int:
        """Same value as chunk_count, under the key older clients read."""
        return self.chunk_count


class ErrorFrame(CamelModel):
    """
    Error report pushed in-band.

    ``fatal`` is False for an isolated fragment fault (the stream goes on)
    and True for the terminal sequence-level failure.
    """
    type: Literal["error"] = "error"
    message: str
    session_id: str
    chunks_generated: int = Field(ge=0)
    partial_length: int = Field(ge=0)
    fatal: bool = True
    timestamp: int


StreamFrame = Union[ConnectedFrame, ChunkFrame, CompleteFrame, ErrorFrame]


class ReviewResponse(CamelModel):
    """Single-shot success envelope."""
    success: Literal[True] = True
    response: str
    session_id: str
    timestamp: str
    request_id: str


class FailureResponse(CamelModel):
    """Failure envelope shared by every endpoint."""
    success: Literal[False] = False
    error: str
    message: str
    request_id: str


class LanguageStat(CamelModel):
    """Interaction count for one language tag."""
    language: str
    count: int = Field(ge=0)


class InteractionStats(CamelModel):
    """Aggregate numbers for the admin dashboard."""
    total_interactions: int = Field(ge=0)
    unique_users: int = Field(ge=0)
    today_interactions: int = Field(ge=0)
    language_stats: List[LanguageStat] = Field(default_factory=list)
    average_response_time: float = Field(default=0.0, ge=0.0)
