"""Response envelopes and lookup results exchanged between the clients and provisioning code.

Azure DevOps wraps collections as ``{"count": n, "value": [...]}``, GitLab
returns bare JSON arrays, and single resources come back as plain objects.
``decode_envelope`` classifies a decoded payload once, at the boundary, so
callers never look for ``value`` or ``count`` themselves.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from .exceptions import UnexpectedResponseError

T = TypeVar("T")


@dataclass(frozen=True)
class CollectionEnvelope:
    """``{"count": n, "value": [...]}`` (Azure DevOps list responses)."""

    items: list[Any]
    count: int | None = None


@dataclass(frozen=True)
class ArrayEnvelope:
    """A bare JSON array (GitLab list responses)."""

    items: list[Any]


@dataclass(frozen=True)
class ResourceEnvelope:
    """A single JSON object."""

    resource: dict[str, Any]


@dataclass(frozen=True)
class EmptyEnvelope:
    """No body at all (204, or an empty 200)."""


@dataclass(frozen=True)
class UnrecognizedEnvelope:
    """Anything else (plain text, scalars); the raw payload is kept for diagnostics."""

    raw: Any


Envelope = CollectionEnvelope | ArrayEnvelope | ResourceEnvelope | EmptyEnvelope | UnrecognizedEnvelope


def decode_envelope(payload: Any) -> Envelope:
    if payload is None or payload == "":
        return EmptyEnvelope()
    if isinstance(payload, list):
        return ArrayEnvelope(items=payload)
    if isinstance(payload, dict):
        value = payload.get("value")
        if isinstance(value, list):
            count = payload.get("count")
            return CollectionEnvelope(items=value, count=count if isinstance(count, int) else len(value))
        return ResourceEnvelope(resource=payload)
    return UnrecognizedEnvelope(raw=payload)


def items_of(envelope: Envelope, *, context: str = "") -> list[Any]:
    """Items of a list-shaped envelope; an empty body counts as an empty list.

    Raises:
        UnexpectedResponseError: For a single resource or an unrecognized payload
    """
    match envelope:
        case CollectionEnvelope(items=items) | ArrayEnvelope(items=items):
            return items
        case EmptyEnvelope():
            return []
        case _:
            where = f" from {context}" if context else ""
            msg = f"Expected a list response{where}, got {type(envelope).__name__}"
            raise UnexpectedResponseError(msg)


def resource_of(envelope: Envelope, *, context: str = "") -> dict[str, Any]:
    """The object of a single-resource envelope.

    Raises:
        UnexpectedResponseError: For any other envelope
    """
    if isinstance(envelope, ResourceEnvelope):
        return envelope.resource
    where = f" from {context}" if context else ""
    msg = f"Expected a single resource{where}, got {type(envelope).__name__}"
    raise UnexpectedResponseError(msg)


@dataclass(frozen=True)
class Found(Generic[T]):
    """A lookup that located the resource."""

    value: T


@dataclass(frozen=True)
class NotFound:
    """A lookup whose endpoint answered 404; ``endpoint`` is masked."""

    endpoint: str


LookupResult = Found[Any] | NotFound


@dataclass(frozen=True)
class EnsureResult(Generic[T]):
    """Outcome of an idempotent ensure procedure."""

    resource: T
    created: bool
    notes: list[str] = field(default_factory=list)
