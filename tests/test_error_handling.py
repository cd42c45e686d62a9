"""
Tests for request validation and the error taxonomy.

Tests verify:
- Missing, non-string and whitespace-only prompts are rejected
- Accepted prompts are returned unchanged
- Session identifiers are normalised
- Error descriptions never come back empty
"""

import pytest
from hypothesis import given, strategies as st, settings

from tools.error_handling import (
    PROMPT_REQUIRED,
    FragmentError,
    UpstreamError,
    ValidationError,
    describe_error,
    normalize_session_id,
    validate_prompt,
)


@pytest.mark.parametrize("prompt", [None, "", "   ", "\n\t", 42, ["code"]])
def test_invalid_prompts_rejected(prompt):
    with pytest.raises(ValidationError) as exc_info:
        validate_prompt(prompt)
    assert str(exc_info.value) == PROMPT_REQUIRED


@settings(max_examples=100)
@given(prompt=st.text(alphabet=" \t\r\n\f\v", max_size=50))
def test_whitespace_only_prompt_rejected(prompt):
    with pytest.raises(ValidationError):
        validate_prompt(prompt)


@settings(max_examples=100)
@given(prompt=st.text(min_size=1).filter(lambda s: s.strip()))
def test_valid_prompt_returned_unchanged(prompt):
    """Surrounding whitespace is kept; only the emptiness check trims."""
    assert validate_prompt(prompt) == prompt


def test_single_visible_character_accepted():
    assert validate_prompt("  x  ") == "  x  "


@pytest.mark.parametrize("raw,expected", [
    (None, None),
    ("", None),
    ("   ", None),
    ("abc", "abc"),
    ("  abc  ", "abc"),
])
def test_normalize_session_id(raw, expected):
    assert normalize_session_id(raw) == expected


def test_describe_error_prefers_message():
    assert describe_error(RuntimeError("socket closed")) == "socket closed"


def test_describe_error_falls_back_to_class_name():
    assert describe_error(TimeoutError()) == "TimeoutError"


def test_error_attributes():
    upstream = UpstreamError("quota exceeded", provider="gemini")
    fragment = FragmentError("no text part", chunk_number=3)

    assert upstream.provider == "gemini"
    assert str(upstream) == "quota exceeded"
    assert fragment.chunk_number == 3
