"""Deterministic failure classification for the retry policy engine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import httpx

from leetcode_tracker.errors import (
    NonRetryableClientError,
    NotificationError,
    TrackerError,
    TransientNetworkError,
    VersionConflictError,
)

NON_RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({400, 401, 403, 404, 409, 422})
COLD_START_STATUS_CODES: frozenset[int] = frozenset({502, 503, 504})


class FailureClass(str, Enum):
    """Normalized failure classes used by retry policy."""

    COLD_START = "cold_start"
    TRANSIENT = "transient"
    NON_RETRYABLE = "non_retryable"


@dataclass(slots=True)
class FailureClassification:
    """Normalized failure classification result."""

    failure_class: FailureClass
    matched_rule: str
    status_code: int | None = None

    @property
    def retryable(self) -> bool:
        return self.failure_class != FailureClass.NON_RETRYABLE


def classify_failure(error: BaseException) -> FailureClassification:
    """Classify one failed attempt into a deterministic retry class."""

    if isinstance(error, TransientNetworkError):
        if error.cold_start or error.status_code in COLD_START_STATUS_CODES:
            return FailureClassification(
                failure_class=FailureClass.COLD_START,
                matched_rule="transient_network_cold_start",
                status_code=error.status_code,
            )
        return FailureClassification(
            failure_class=FailureClass.TRANSIENT,
            matched_rule="transient_network",
            status_code=error.status_code,
        )

    if isinstance(error, VersionConflictError):
        return FailureClassification(
            failure_class=FailureClass.TRANSIENT,
            matched_rule="version_conflict",
        )

    if isinstance(error, NotificationError):
        return FailureClassification(
            failure_class=FailureClass.TRANSIENT,
            matched_rule="notification_failure",
        )

    if isinstance(error, NonRetryableClientError):
        return FailureClassification(
            failure_class=FailureClass.NON_RETRYABLE,
            matched_rule="client_error",
            status_code=error.status_code,
        )

    if isinstance(error, TrackerError):
        return FailureClassification(
            failure_class=FailureClass.NON_RETRYABLE,
            matched_rule=f"tracker_{error.kind.value}",
        )

    if isinstance(error, httpx.HTTPStatusError):
        return _classify_status(error.response.status_code)

    if isinstance(error, TimeoutError | httpx.TimeoutException):
        return FailureClassification(
            failure_class=FailureClass.COLD_START,
            matched_rule="timeout",
        )

    if isinstance(error, httpx.TransportError | ConnectionError):
        return FailureClassification(
            failure_class=FailureClass.COLD_START,
            matched_rule="connection_failure",
        )

    return FailureClassification(
        failure_class=FailureClass.TRANSIENT,
        matched_rule="other_transient",
    )


def _classify_status(status_code: int) -> FailureClassification:
    if status_code in NON_RETRYABLE_STATUS_CODES:
        return FailureClassification(
            failure_class=FailureClass.NON_RETRYABLE,
            matched_rule="http_client_error",
            status_code=status_code,
        )
    if status_code in COLD_START_STATUS_CODES:
        return FailureClassification(
            failure_class=FailureClass.COLD_START,
            matched_rule="http_gateway_error",
            status_code=status_code,
        )
    return FailureClassification(
        failure_class=FailureClass.TRANSIENT,
        matched_rule="http_transient",
        status_code=status_code,
    )
