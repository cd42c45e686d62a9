"""
Keyword-based language detection for submitted snippets.

Snippets arrive without a file name, so there is no extension to look
up. Instead each language owns a handful of
statement or declaration patterns, checked in a fixed priority order;
the first language with a matching pattern wins,
unless one of that language's veto patterns also matches.
"""

import re
from typing import Dict, List, Pattern, Tuple

UNKNOWN_LANGUAGE = "unknown"

_FLAGS = re.IGNORECASE | re.MULTILINE

# Order matters: first match wins.
LANGUAGE_PATTERNS: List[Tuple[str, List[Pattern[str]]]] = [
    ("javascript", [
        re.compile(r"\bconsole\.(log|error|warn|info)\s*\(", _FLAGS),
        re.compile(r"\b(const|let)\s+[a-z_$][\w$]*\s*=", _FLAGS),
        re.compile(r"\bfunction\b[^(\n]*\([^)]*\)\s*\{", _FLAGS),
        re.compile(r"\brequire\s*\(\s*['\"]", _FLAGS),
        re.compile(r"\)\s*=>", _FLAGS),
    ]),
    ("python", [
        re.compile(r"^\s*(async\s+)?def\s+\w+\s*\(", _FLAGS),
        re.compile(r"^\s*(from\s+[\w.]+\s+)?import\s+[\w., ]+\s*$", _FLAGS),
        re.compile(r"\bprint\s*\(", _FLAGS),
        re.compile(r"^\s*(elif|except)\b.*:\s*$", _FLAGS),
    ]),
    ("java", [
        re.compile(r"\bpublic\s+(static\s+|final\s+|abstract\s+)*(class|interface|enum|void)\b", _FLAGS),
        re.compile(r"\bsystem\.out\.print(ln)?\s*\(", _FLAGS),
    ]),
    ("c/c++", [
        re.compile(r"^\s*#\s*include\s*[<\"]", _FLAGS),
        re.compile(r"(?<!\.)\bprintf\s*\(", _FLAGS),
        re.compile(r"\bcout\s*<<", _FLAGS),
    ]),
    ("php", [
        re.compile(r"<\?php", _FLAGS),
        re.compile(r"\becho\s+[\"'$]", _FLAGS),
    ]),
    ("cpp", [
        re.compile(r"\busing\s+namespace\b", _FLAGS),
        re.compile(r"\bstd::", _FLAGS),
    ]),
    ("rust", [
        re.compile(r"\bfn\s+\w+\s*\(", _FLAGS),
        re.compile(r"\blet\s+mut\b", _FLAGS),
        re.compile(r"\bprintln!\s*\(", _FLAGS),
    ]),
    ("go", [
        re.compile(r"^\s*package\s+\w+\s*$", _FLAGS),
        re.compile(r"\bfunc\s+(\([^)]*\)\s*)?\w+\s*\(", _FLAGS),
        re.compile(r"\bfmt\.\w+\s*\(", _FLAGS),
    ]),
]

# Constructs that rule a language out even when one of its patterns hit.
# `let x = 5;` is valid in both JavaScript and Rust.
LANGUAGE_VETOES: Dict[str, List[Pattern[str]]] = {
    "javascript": [
        re.compile(r"\bfn\s+\w+\s*[<(]", _FLAGS),
        re.compile(r"\blet\s+mut\b", _FLAGS),
        re.compile(r"\bprintln!\s*\(", _FLAGS),
    ],
}


def detect_language(code: str) -> str:
    """
    Classify a code snippet by keyword heuristics.

    Args:
        code: Source code text

    Returns:
        A language tag such as 'javascript' or 'python', or 'unknown'
    """
    if not code:
        return UNKNOWN_LANGUAGE

    for language, patterns in LANGUAGE_PATTERNS:
        if not any(pattern.search(code) for pattern in patterns):
            continue
        vetoes = LANGUAGE_VETOES.get(language, [])
        if any(veto.search(code) for veto in vetoes):
            continue
        return language

    return UNKNOWN_LANGUAGE


def supported_languages() -> List[str]:
    """Return every tag the detector can produce, in priority order."""
    return [language for language, _ in LANGUAGE_PATTERNS] + [UNKNOWN_LANGUAGE]
