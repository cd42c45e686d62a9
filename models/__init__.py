"""
Data models for the CodeCritic gateway.
"""

from models.data_models import (
    # Enums
    RelayState,
    StreamOutcomeKind,
    # Request / persistence
    ReviewRequest,
    RequestContext,
    InteractionRecord,
    StoredInteraction,
    RecordOutcome,
    # Streaming
    Fragment,
    StreamOutcome,
    ConnectedFrame,
    ChunkFrame,
    CompleteFrame,
    ErrorFrame,
    StreamFrame,
    # Envelopes
    ReviewResponse,
    FailureResponse,
    LanguageStat,
    InteractionStats,
)

__all__ = [
    # Enums
    "RelayState",
    "StreamOutcomeKind",
    # Request / persistence
    "ReviewRequest",
    "RequestContext",
    "InteractionRecord",
    "StoredInteraction",
    "RecordOutcome",
    # Streaming
    "Fragment",
    "StreamOutcome",
    "ConnectedFrame",
    "ChunkFrame",
    "CompleteFrame",
    "ErrorFrame",
    "StreamFrame",
    # Envelopes
    "ReviewResponse",
    "FailureResponse",
    "LanguageStat",
    "InteractionStats",
]
