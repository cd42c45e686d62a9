"""
Shared helpers for the CodeCritic gateway.

This package contains:
- Error types and request validation helpers
- Heuristic source-language detection
- Observability tools for logging and tracing
"""

from tools.error_handling import (
    FragmentError,
    PersistenceError,
    UpstreamError,
    ValidationError,
)
from tools.language_detector import detect_language
from tools.observability import (
    ObservabilityManager,
    configure_logging,
    setup_observability,
)

__all__ = [
    "FragmentError",
    "PersistenceError",
    "UpstreamError",
    "ValidationError",
    "detect_language",
    "ObservabilityManager",
    "configure_logging",
    "setup_observability",
]
