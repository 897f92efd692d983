"""Retrying HTTP transport shared by the Azure DevOps and GitLab clients.

Each call walks a small state machine:

    ATTEMPTING ──► SUCCESS
        │
        ├──► connection anomaly + permissive TLS ──► FALLBACK ──► SUCCESS
        │                                               │
        │                                               ▼
        ├──► transient status (429/5xx), attempts left ──► sleep ──► ATTEMPTING
        │
        └──► anything else ──► ApiError

The primary transport is a ``requests.Session``. Against on-premise servers
with self-signed certificates it intermittently fails the TLS handshake or
drops the connection even with verification disabled; in that case, and only
when certificate validation is permissive, the same request is replayed once
through a bare ``urllib3`` pool that never verifies certificates. The
fallback response is decoded by hand. An empty or undecodable body is
reported as a synthesized 503 so the ordinary backoff still applies.

Backoff is ``initial_delay * 2 ** (attempt - 1)`` and is a blocking sleep;
the toolkit runs single-threaded.
"""

from __future__ import annotations

import json
import logging
import ssl
import time
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final

import requests
import urllib3
from urllib3.exceptions import InsecureRequestWarning, NameResolutionError, ProtocolError

from .errors import NormalizedError, Side, normalize
from .exceptions import ApiError
from .masking import mask, mask_headers

if TYPE_CHECKING:
    from .config import ClientConfig

logger: logging.Logger = logging.getLogger(__name__)

TRANSIENT_STATUSES: Final[frozenset[int]] = frozenset({429, 500, 502, 503, 504})
BODY_METHODS: Final[frozenset[str]] = frozenset({"POST", "PUT", "PATCH"})
FALLBACK_TIMEOUT_SECONDS: Final[float] = 30.0
SYNTHESIZED_STATUS: Final[int] = 503

_ANOMALY_TYPES: Final[tuple[type[BaseException], ...]] = (
    requests.exceptions.SSLError,
    requests.exceptions.ConnectionError,
    requests.exceptions.ChunkedEncodingError,
    ssl.SSLError,
    ConnectionResetError,
    ConnectionAbortedError,
    ProtocolError,
)

_UNPARSEABLE: Final = object()


@dataclass(frozen=True)
class AttemptOutcome:
    """Result of one pass through the primary (and possibly fallback) transport."""

    result: Any = None
    error: NormalizedError | None = None
    connection_anomaly: bool = False
    cause: BaseException | None = None  # raw transport exception behind error


class FallbackResponseError(Exception):
    """The fallback transport did not produce a usable payload.

    ``response`` is only attached when the upstream answered with an error
    status and a JSON body; synthesized failures carry just ``status``.
    """

    def __init__(self, message: str, *, status: int, response: urllib3.BaseHTTPResponse | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.response = response


def backoff_delay(initial_delay: float, attempt: int) -> float:
    """Delay before the attempt that follows ``attempt`` (1-based)."""
    return initial_delay * 2 ** (attempt - 1)


def is_transient(status: int) -> bool:
    return status in TRANSIENT_STATUSES


def _exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield the exception and everything it wraps (cause, context, urllib3 ``reason``, exception args)."""
    seen: set[int] = set()
    pending: list[BaseException] = [exc]
    while pending:
        current = pending.pop()
        if id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        linked = [current.__cause__, current.__context__, getattr(current, "reason", None), *current.args]
        pending.extend(item for item in linked if isinstance(item, BaseException))


def is_connection_anomaly(exc: BaseException) -> bool:
    """Whether the failure happened below HTTP: TLS handshake, reset or truncated connection.

    DNS failures and timeouts are excluded; replaying those on another
    transport cannot help.
    """
    if isinstance(exc, requests.exceptions.Timeout):
        return False
    chain = list(_exception_chain(exc))
    if any(isinstance(item, NameResolutionError) for item in chain):
        return False
    return any(isinstance(item, _ANOMALY_TYPES) for item in chain)


def encode_body(method: str, body: Any) -> bytes | None:
    """Serialize a request body; only POST, PUT and PATCH carry one."""
    if body is None or method.upper() not in BODY_METHODS:
        return None
    if isinstance(body, bytes):
        return body
    if isinstance(body, str):
        return body.encode("utf-8")
    return json.dumps(body).encode("utf-8")


def _decode_primary(response: requests.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _parse_json(raw: bytes) -> Any:
    try:
        return json.loads(raw)
    except ValueError:
        return _UNPARSEABLE


class RetryingTransport:
    """Issues REST calls with retry, backoff and the permissive-TLS fallback path."""

    _config: ClientConfig
    _session: requests.Session
    _fallback_pool: urllib3.PoolManager | None
    _sleep: Callable[[float], None]
    _clock: Callable[[], float]

    def __init__(
        self,
        config: ClientConfig,
        *,
        session: requests.Session | None = None,
        fallback_pool: urllib3.PoolManager | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._session = session or requests.Session()
        self._fallback_pool = fallback_pool
        self._sleep = sleep
        self._clock = clock
        if not config.verify_certificates:
            urllib3.disable_warnings(InsecureRequestWarning)
            logger.warning("TLS certificate verification is disabled")

    @property
    def fallback_pool(self) -> urllib3.PoolManager:
        """Certificate-ignoring urllib3 pool, created on first use."""
        if self._fallback_pool is None:
            self._fallback_pool = urllib3.PoolManager(cert_reqs=ssl.CERT_NONE, assert_hostname=False)
        return self._fallback_pool

    def close(self) -> None:
        self._session.close()
        if self._fallback_pool is not None:
            self._fallback_pool.clear()

    def execute(
        self,
        method: str,
        uri: str,
        headers: Mapping[str, str],
        body: Any = None,
        *,
        side: Side,
        max_attempts: int | None = None,
        initial_delay: float | None = None,
    ) -> Any:
        """Send one logical request, retrying transient failures.

        Args:
            method: HTTP verb
            uri: Fully qualified URI (already carrying any api-version)
            headers: Authentication and content headers
            body: JSON-serializable object, str or bytes; ignored for GET/DELETE
            side: Which upstream is being called (for error records and logs)
            max_attempts: Overrides the configured attempt budget
            initial_delay: Overrides the configured first backoff delay (seconds)

        Returns:
            Decoded JSON body, raw text for non-JSON bodies, or None for empty bodies

        Raises:
            ApiError: On a permanent failure or when the attempt budget is spent
        """
        method = method.upper()
        budget = max_attempts or self._config.max_attempts
        base_delay = self._config.initial_delay if initial_delay is None else initial_delay
        payload = encode_body(method, body)
        masked_uri = mask(uri, enabled=self._config.mask_secrets)
        if logger.isEnabledFor(logging.DEBUG):
            shown = mask_headers(headers, enabled=self._config.mask_secrets)
            logger.debug(f"[{side.label}] {method} {masked_uri} headers={shown}")

        attempt = 1
        while True:
            outcome = self._attempt(method, uri, masked_uri, headers, payload, side)
            if outcome.error is None:
                return outcome.result
            error = outcome.error

            if is_transient(error.status) and attempt < budget:
                delay = backoff_delay(base_delay, attempt)
                logger.warning(
                    f"[{side.label}] {method} {masked_uri} failed with HTTP {error.status}; "
                    f"retrying in {delay:g}s (attempt {attempt + 1} of {budget})"
                )
                self._sleep(delay)
                attempt += 1
                continue

            raise ApiError(
                error, method=method, attempts=attempt, connection_anomaly=outcome.connection_anomaly
            ) from outcome.cause

    def _attempt(
        self,
        method: str,
        uri: str,
        masked_uri: str,
        headers: Mapping[str, str],
        payload: bytes | None,
        side: Side,
    ) -> AttemptOutcome:
        started = self._clock()
        try:
            status, result = self._send_primary(method, uri, headers, payload)
        except requests.RequestException as exc:
            error = normalize(exc, side, uri, mask_secrets=self._config.mask_secrets)
            anomaly = is_connection_anomaly(exc)
            primary_failure = exc
            self._log_call(side, method, masked_uri, error.status, started, ok=False)
        else:
            self._log_call(side, method, masked_uri, status, started, ok=True)
            return AttemptOutcome(result=result)

        if not anomaly or self._config.verify_certificates:
            return AttemptOutcome(error=error, connection_anomaly=anomaly, cause=primary_failure)

        logger.info(
            f"[{side.label}] {method} {masked_uri}: connection anomaly ({error.message}); using fallback transport"
        )
        started = self._clock()
        try:
            status, result = self._send_fallback(method, uri, headers, payload)
        except FallbackResponseError as exc:
            error = normalize(exc, side, uri, mask_secrets=self._config.mask_secrets)
            self._log_call(side, method, masked_uri, error.status, started, ok=False)
            return AttemptOutcome(error=error, connection_anomaly=True, cause=exc)
        self._log_call(side, method, masked_uri, status, started, ok=True)
        return AttemptOutcome(result=result, connection_anomaly=True)

    def _send_primary(
        self, method: str, uri: str, headers: Mapping[str, str], payload: bytes | None
    ) -> tuple[int, Any]:
        response = self._session.request(
            method,
            uri,
            headers=dict(headers),
            data=payload,
            verify=self._config.verify_certificates,
            timeout=self._config.request_timeout,
        )
        response.raise_for_status()
        return response.status_code, _decode_primary(response)

    def _send_fallback(
        self, method: str, uri: str, headers: Mapping[str, str], payload: bytes | None
    ) -> tuple[int, Any]:
        try:
            raw = self.fallback_pool.request(
                method,
                uri,
                headers=dict(headers),
                body=payload,
                timeout=urllib3.Timeout(total=FALLBACK_TIMEOUT_SECONDS),
                retries=False,
                redirect=False,
                preload_content=True,
            )
        except (urllib3.exceptions.HTTPError, OSError) as e:
            msg = f"Fallback transport failed: {e}"
            raise FallbackResponseError(msg, status=SYNTHESIZED_STATUS) from e

        status = raw.status
        data = raw.data or b""
        parsed = _parse_json(data) if data.strip() else _UNPARSEABLE
        content_type = raw.headers.get("Content-Type")
        logger.debug(f"Fallback transport got HTTP {status}, {len(data)} bytes, content-type {content_type}")

        if parsed is _UNPARSEABLE:
            shape = "empty" if not data.strip() else "unparseable"
            msg = f"Fallback transport got HTTP {status} with an {shape} body"
            raise FallbackResponseError(msg, status=SYNTHESIZED_STATUS)
        if not 200 <= status < 300:
            msg = f"Fallback transport got HTTP {status}"
            raise FallbackResponseError(msg, status=status, response=raw)
        return status, parsed

    def _log_call(self, side: Side, method: str, masked_uri: str, status: int, started: float, *, ok: bool) -> None:
        if not self._config.log_calls:
            return
        duration_ms = round((self._clock() - started) * 1000)
        marker = "✓" if ok else "✗"
        outcome = status if status else "ERR"
        logger.info(f"[{side.label}] {marker} {method} {masked_uri} → {outcome} ({duration_ms} ms)")
