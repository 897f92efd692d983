"""
Builders shared by the test modules.

HTTP responses are real ``requests.Response`` objects so that
``raise_for_status`` and ``json`` behave exactly as in production; sleeps
and clocks are recorders, so no test ever waits.
"""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import Mock

import requests


class SleepRecorder:
    """Stand-in for time.sleep that records requested delays."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class FakeClock:
    """Monotonic clock under test control."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_response(
    status: int, body: Any = None, *, url: str = "https://ado.example.com/x", raw: bytes | None = None
) -> requests.Response:
    """Build a requests.Response with a JSON (or raw) body."""
    response = requests.Response()
    response.status_code = status
    response.url = url
    response.reason = "Test"
    if raw is not None:
        response._content = raw  # noqa: SLF001
    elif body is None:
        response._content = b""  # noqa: SLF001
    else:
        response._content = json.dumps(body).encode()  # noqa: SLF001
        response.headers["Content-Type"] = "application/json"
    return response


def session_returning(*responses: requests.Response | Exception) -> Mock:
    """A requests.Session mock whose request() yields the given responses/exceptions in order."""
    session = Mock(spec=requests.Session)
    session.request.side_effect = list(responses)
    return session
