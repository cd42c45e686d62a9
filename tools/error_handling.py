"""
Error taxonomy and validation helpers for the CodeCritic gateway.

This module provides:
- The four failure classes the request pipeline distinguishes
- Prompt validation with the client-facing error message
- Helpers for turning exceptions into short, loggable descriptions
"""

from typing import Optional


class ValidationError(Exception):
    """Raised when request input validation fails (client fault)."""
    pass


class UpstreamError(Exception):
    """Raised when the generative model call fails, before or during streaming."""

    def __init__(self, message: str, provider: Optional[str] = None):
        """
        Initialize upstream error.

        Args:
            message: Error message
            provider: Name of the model provider that failed, if known
        """
        super().__init__(message)
        self.provider = provider


class FragmentError(Exception):
    """Raised when a single streamed chunk cannot be turned into text."""

    def __init__(self, message: str, chunk_number: int = 0):
        """
        Initialize fragment error.

        Args:
            message: Error message
            chunk_number: 1-based position of the faulty chunk in the stream
        """
        super().__init__(message)
        self.chunk_number = chunk_number


class PersistenceError(Exception):
    """Raised when an interaction record cannot be written to the store."""
    pass


PROMPT_REQUIRED = "Prompt is required"


def validate_prompt(prompt: Optional[str]) -> str:
    """
    Validate the submitted code.

    Args:
        prompt: Raw prompt from the request body

    Returns:
        The prompt, unchanged

    Raises:
        ValidationError: If the prompt is missing, not a string, or blank
    """
    if not isinstance(prompt, str) or not prompt.strip():
        raise ValidationError(PROMPT_REQUIRED)
    return prompt


def normalize_session_id(session_id: Optional[str]) -> Optional[str]:
    """Return a stripped session id, or None when nothing usable was sent."""
    if not session_id or not session_id.strip():
        return None
    return session_id.strip()


def describe_error(error: BaseException) -> str:
    """
    Describe an exception in one line.

    Args:
        error: Exception to describe

    Returns:
        The exception message, or its class name when the message is empty
    """
    message = str(error).strip()
    return message or type(error).__name__
