"""Redaction of credentials from strings before they are logged or raised."""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from typing import Final

REDACTED: Final[str] = "***"

# Free-standing Bearer/Basic values must look like a token: 16+ chars, at least one digit.
_TOKEN_VALUE: Final[str] = r"(?=[A-Za-z0-9\-._~+/]*\d)[A-Za-z0-9\-._~+/]{16,}=*"
# ...unless the value reads as CamelCase words and numbers, e.g. a process template name.
_WORD_VALUE: Final[re.Pattern[str]] = re.compile(r"(?:[A-Z][a-z]+|\d+)+")

_QUERY_TOKEN_PARAMS: Final[str] = r"access_token|private_token|token|api[_-]key|key|sig|code"

_GITLAB_TOKEN_PREFIXES: Final[str] = r"glpat|gloas|gldt|glrt|glrtr|glcbt|glptt|glft|glimt|glagent|glsoat|glffct"


def _redact_token_value(match: re.Match[str]) -> str:
    if _WORD_VALUE.fullmatch(match.group(2)):
        return match.group(0)
    return f"{match.group(1)}{REDACTED}"


_PATTERNS: Final[list[tuple[re.Pattern[str], str | Callable[[re.Match[str]], str]]]] = [
    # Authorization header values, whatever the scheme
    (
        re.compile(r"(Authorization[\"']?\s*[:=]\s*[\"']?(?:Basic|Bearer)\s+)[^\s\"',;}]+", re.IGNORECASE),
        rf"\1{REDACTED}",
    ),
    (re.compile(rf"(\bBearer\s+)({_TOKEN_VALUE})"), _redact_token_value),
    (re.compile(rf"(\bBasic\s+)({_TOKEN_VALUE})"), _redact_token_value),
    (re.compile(r"(PRIVATE-TOKEN[\"']?\s*[:=]\s*[\"']?)[^\s\"',;}]+", re.IGNORECASE), rf"\1{REDACTED}"),
    (re.compile(rf"([?&](?:{_QUERY_TOKEN_PARAMS})=)[^&\s#\"']+", re.IGNORECASE), rf"\1{REDACTED}"),
    (re.compile(rf"\b((?:{_GITLAB_TOKEN_PREFIXES})-)[A-Za-z0-9_\-]{{16,}}"), rf"\1{REDACTED}"),
    # user:password@ or token@ embedded in URLs
    (re.compile(r"(\bhttps?://)[^/?#\s@:]+(?::[^/?#\s@]*)?@", re.IGNORECASE), rf"\1{REDACTED}@"),
]

_SENSITIVE_HEADERS: Final[frozenset[str]] = frozenset(
    {"authorization", "private-token", "proxy-authorization", "cookie", "set-cookie", "x-gitlab-token"}
)


def mask(text: str | None, *, enabled: bool = True) -> str:
    """Replace credential-looking substrings, keeping each pattern's literal prefix.

    Args:
        text: Arbitrary text (URL, header dump, error message)
        enabled: When False the text is returned unchanged

    Returns:
        Text with secrets replaced by ``***`` (e.g. ``glpat-***``, ``Basic ***``)
    """
    if not text:
        return text or ""
    if not enabled:
        return text

    result = text
    for pattern, replacement in _PATTERNS:
        result = pattern.sub(replacement, result)
    return result


def mask_headers(headers: Mapping[str, str], *, enabled: bool = True) -> dict[str, str]:
    """Return a copy of headers with sensitive values redacted."""
    if not enabled:
        return dict(headers)
    return {
        name: REDACTED if name.lower() in _SENSITIVE_HEADERS else mask(value)
        for name, value in headers.items()
    }
