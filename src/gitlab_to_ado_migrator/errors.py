"""Normalization of transport exceptions from either upstream into one error record."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Final

from .masking import mask

logger: logging.Logger = logging.getLogger(__name__)

_MESSAGE_FIELDS: Final[tuple[str, ...]] = ("message", "error", "error_description")


class Side(Enum):
    """The two REST backends the toolkit talks to."""

    ADO = "ado"
    GITLAB = "gitlab"

    @property
    def label(self) -> str:
        return self.name


@dataclass(frozen=True)
class NormalizedError:
    """Uniform view of a failed call, whichever upstream produced it."""

    side: Side
    endpoint: str  # masked
    status: int  # 0 when no HTTP response was obtained
    message: str


def normalize(exc: BaseException, side: Side, endpoint: str, *, mask_secrets: bool = True) -> NormalizedError:
    """Convert a raw transport exception into a NormalizedError.

    Never raises: anything that goes wrong while inspecting the exception
    falls back to the exception's own message and status 0.
    """
    message = _top_level_message(exc)
    status = 0
    try:
        response = getattr(exc, "response", None)
        status = _extract_status(exc, response)
        body_message = _extract_body_message(response)
        if body_message:
            message = body_message
    except Exception:  # noqa: BLE001 - introspection must never break the caller
        logger.debug(f"Could not inspect {type(exc).__name__} for {side.label} error details")

    return NormalizedError(
        side=side,
        endpoint=mask(endpoint, enabled=mask_secrets),
        status=status,
        message=mask(message, enabled=mask_secrets),
    )


def message_from_payload(payload: Any) -> str | None:
    """Pick the most useful error text from a decoded JSON error body.

    GitLab validation errors carry a dict or list in ``message``; those are
    rendered compactly rather than dropped.
    """
    if not isinstance(payload, dict):
        return None
    for field in _MESSAGE_FIELDS:
        value = payload.get(field)
        if value in (None, "", [], {}):
            continue
        if isinstance(value, str):
            return value
        return json.dumps(value, separators=(",", ":"), sort_keys=True)
    return None


def _top_level_message(exc: BaseException) -> str:
    try:
        text = str(exc)
    except Exception:  # noqa: BLE001
        text = ""
    return text or type(exc).__name__


def _extract_status(exc: BaseException, response: Any) -> int:
    if response is not None:
        for attr in ("status_code", "status"):
            value = getattr(response, attr, None)
            if isinstance(value, int):
                return value
    value = getattr(exc, "status", None)
    return value if isinstance(value, int) else 0


def _extract_body_message(response: Any) -> str | None:
    if response is None:
        return None
    payload: Any = None
    if callable(getattr(response, "json", None)):
        try:
            payload = response.json()
        except ValueError:
            return None
    else:
        raw = getattr(response, "data", None)
        if not raw:
            return None
        try:
            payload = json.loads(raw)
        except ValueError:
            return None
    return message_from_payload(payload)
