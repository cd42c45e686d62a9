"""
Review services for the CodeCritic gateway.

This package contains:
- GenerationClient: single-shot and streaming calls to the model provider
- InteractionRecorder: builds and stores one record per completed review
- StreamRelay: turns a generation stream into client frames
"""

from services.generation_client import (
    GenerationClient,
    GeminiBackend,
    LLMProvider,
    ModelBackend,
    OpenAIBackend,
    create_backend,
)
from services.interaction_recorder import InteractionRecorder
from services.stream_relay import StreamRelay

__version__ = "0.1.0"

__all__ = [
    "GenerationClient",
    "GeminiBackend",
    "LLMProvider",
    "ModelBackend",
    "OpenAIBackend",
    "create_backend",
    "InteractionRecorder",
    "StreamRelay",
]
