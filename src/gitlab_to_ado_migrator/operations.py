"""Polling of Azure DevOps long-running operations (project creation, imports, ...)."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Final

from .exceptions import ApiError, OperationFailedError, OperationTimeoutError
from .models import decode_envelope, resource_of

logger: logging.Logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL: Final[float] = 3.0
DEFAULT_MAX_POLLS: Final[int] = 60
ANOMALY_RETRY_DELAY: Final[float] = 2.0


class OperationStatus(Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @classmethod
    def from_upstream(cls, raw: Any) -> OperationStatus:
        """Map the upstream status string; notSet, queued, inProgress and unknown values are pending."""
        text = str(raw or "").strip().lower()
        for status in (cls.SUCCEEDED, cls.FAILED, cls.CANCELLED):
            if text == status.value:
                return status
        return cls.PENDING


@dataclass(frozen=True)
class OperationState:
    operation_id: str
    status: OperationStatus
    synthesized: bool = False
    detail: str | None = None

    @property
    def terminal(self) -> bool:
        return self.status is not OperationStatus.PENDING

    def raise_for_status(self) -> None:
        """Raise OperationFailedError unless the operation succeeded."""
        if self.status is OperationStatus.SUCCEEDED:
            return
        detail = f": {self.detail}" if self.detail else ""
        msg = f"Operation {self.operation_id} ended as {self.status.value}{detail}"
        raise OperationFailedError(msg)


class OperationPoller:
    """Polls an operation until it reaches a terminal state.

    A 404 while polling means the operation record is gone; upstream drops
    it once the underlying resource exists, so that is reported as a
    synthesized success. Connection anomalies are retried after a short
    fixed delay within the same poll budget; every other error propagates.
    """

    def __init__(
        self,
        fetch_status: Callable[[str], Any],
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_polls: int = DEFAULT_MAX_POLLS,
        anomaly_delay: float = ANOMALY_RETRY_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_polls < 1:
            msg = f"max_polls must be at least 1, got {max_polls}"
            raise ValueError(msg)
        self._fetch_status = fetch_status
        self._poll_interval = poll_interval
        self._max_polls = max_polls
        self._anomaly_delay = anomaly_delay
        self._sleep = sleep

    def await_completion(self, operation_id: str) -> OperationState:
        """Block until the operation is succeeded, failed or cancelled.

        Raises:
            OperationTimeoutError: max_polls polls without a terminal state
            ApiError: A poll failed with a non-404, non-anomaly error, or with
                an anomaly on the last allowed poll
        """
        for poll in range(1, self._max_polls + 1):
            try:
                payload = self._fetch_status(operation_id)
            except ApiError as e:
                if e.status == 404:
                    logger.info(f"Operation {operation_id} no longer exists; treating it as completed")
                    return OperationState(
                        operation_id=operation_id,
                        status=OperationStatus.SUCCEEDED,
                        synthesized=True,
                        detail="operation record disappeared (404) after creation; assumed completed",
                    )
                if e.connection_anomaly and poll < self._max_polls:
                    logger.warning(
                        f"Connection problem polling operation {operation_id} (poll {poll}/{self._max_polls}); "
                        f"retrying in {self._anomaly_delay:g}s"
                    )
                    self._sleep(self._anomaly_delay)
                    continue
                raise

            state = self._to_state(operation_id, payload)
            if state.terminal:
                logger.info(f"Operation {operation_id} finished: {state.status.value}")
                return state

            logger.debug(f"Operation {operation_id} still pending (poll {poll}/{self._max_polls})")
            if poll < self._max_polls:
                self._sleep(self._poll_interval)

        raise OperationTimeoutError(operation_id, self._max_polls)

    @staticmethod
    def _to_state(operation_id: str, payload: Any) -> OperationState:
        resource = resource_of(decode_envelope(payload), context=f"operation {operation_id}")
        detail = resource.get("detailedMessage") or resource.get("resultMessage")
        return OperationState(
            operation_id=operation_id,
            status=OperationStatus.from_upstream(resource.get("status")),
            detail=str(detail) if detail else None,
        )
