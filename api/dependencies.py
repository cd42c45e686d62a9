"""FastAPI dependency providers for components built at startup."""

from fastapi import Request

from services.generation_client import GenerationClient
from services.interaction_recorder import InteractionRecorder
from storage.interaction_store import InteractionStore
from tools.observability import ObservabilityManager


def get_observability(request: Request) -> ObservabilityManager:
    return request.app.state.observability


def get_generation_client(request: Request) -> GenerationClient:
    return request.app.state.generation_client


def get_recorder(request: Request) -> InteractionRecorder:
    return request.app.state.recorder


def get_store(request: Request) -> InteractionStore:
    return request.app.state.store
