from __future__ import annotations

import allure
import httpx
import pytest

from leetcode_tracker.errors import (
    AttemptTimeoutError,
    CircuitOpenError,
    NonRetryableClientError,
    NotificationError,
    TransientNetworkError,
    ValidationError,
    VersionConflictError,
)
from leetcode_tracker.resilience.failure_classifier import FailureClass, classify_failure
from leetcode_tracker.resilience.strategies import (
    AGGRESSIVE,
    COLD_START,
    DEFAULT_STRATEGIES,
    FAST,
    NORMAL,
    RetryStrategy,
)

pytestmark = [
    allure.epic("Resilience"),
    allure.feature("Failure Classification"),
]


def _status_error(status_code: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://api.example.com/")
    response = httpx.Response(status_code, request=request)
    return httpx.HTTPStatusError("boom", request=request, response=response)


def test_transient_network_error_is_transient() -> None:
    classified = classify_failure(TransientNetworkError("reset", status_code=429))
    assert classified.failure_class == FailureClass.TRANSIENT
    assert classified.matched_rule == "transient_network"
    assert classified.status_code == 429
    assert classified.retryable


def test_gateway_status_marks_cold_start() -> None:
    classified = classify_failure(TransientNetworkError("bad gateway", status_code=502))
    assert classified.failure_class == FailureClass.COLD_START
    assert classified.matched_rule == "transient_network_cold_start"


def test_attempt_timeout_marks_cold_start() -> None:
    classified = classify_failure(AttemptTimeoutError("slow", timeout_seconds=15.0))
    assert classified.failure_class == FailureClass.COLD_START


def test_client_error_is_not_retryable() -> None:
    classified = classify_failure(NonRetryableClientError("forbidden", status_code=403))
    assert classified.failure_class == FailureClass.NON_RETRYABLE
    assert classified.matched_rule == "client_error"
    assert not classified.retryable


def test_validation_and_circuit_errors_are_not_retryable() -> None:
    validation = ValidationError("bad", field="x", context="progress")
    assert classify_failure(validation).matched_rule == "tracker_validation"
    assert classify_failure(CircuitOpenError("open")).failure_class == FailureClass.NON_RETRYABLE


def test_version_conflict_and_notification_failures_are_retried() -> None:
    assert classify_failure(VersionConflictError("progress", expected_version=3)).retryable
    assert classify_failure(NotificationError("smtp down")).retryable


@pytest.mark.parametrize(
    ("status_code", "expected"),
    [
        (404, FailureClass.NON_RETRYABLE),
        (422, FailureClass.NON_RETRYABLE),
        (503, FailureClass.COLD_START),
        (500, FailureClass.TRANSIENT),
        (429, FailureClass.TRANSIENT),
    ],
)
def test_raw_http_status_errors(status_code: int, expected: FailureClass) -> None:
    assert classify_failure(_status_error(status_code)).failure_class == expected


def test_raw_transport_failures_are_cold_starts() -> None:
    assert classify_failure(httpx.ConnectError("refused")).failure_class == FailureClass.COLD_START
    assert classify_failure(TimeoutError()).matched_rule == "timeout"
    assert classify_failure(ConnectionResetError()).matched_rule == "connection_failure"


def test_default_strategies_table() -> None:
    assert set(DEFAULT_STRATEGIES) == {"fast", "normal", "cold_start", "aggressive"}
    assert (FAST.max_attempts, FAST.base_delay, FAST.max_delay, FAST.jitter) == (2, 0.5, 2.0, False)
    assert (NORMAL.max_attempts, NORMAL.base_delay, NORMAL.max_delay) == (3, 1.0, 10.0)
    assert COLD_START.total_time_budget == 600.0
    assert COLD_START.timeout_multiplier == 1.5
    assert AGGRESSIVE.max_attempts == 12
    assert AGGRESSIVE.total_time_budget == 720.0


def test_backoff_delay_is_capped_by_max_delay() -> None:
    assert [NORMAL.backoff_delay(attempt) for attempt in range(1, 6)] == [1.0, 2.0, 4.0, 8.0, 10.0]
    assert COLD_START.backoff_delay(1) == 15.0
    assert COLD_START.backoff_delay(20) == 60.0


def test_attempt_timeout_grows_with_timeout_multiplier() -> None:
    assert COLD_START.attempt_timeout(1, base_timeout=15.0) == 15.0
    assert COLD_START.attempt_timeout(2, base_timeout=15.0) == pytest.approx(22.5)
    assert COLD_START.attempt_timeout(10, base_timeout=15.0) == 60.0
    assert NORMAL.attempt_timeout(3, base_timeout=15.0) == 10.0


def test_strategy_rejects_invalid_configuration() -> None:
    with pytest.raises(ValueError, match="max_attempts"):
        RetryStrategy(name="broken", max_attempts=0, base_delay=1.0, max_delay=1.0)
    with pytest.raises(ValueError, match="delays"):
        RetryStrategy(name="broken", max_attempts=1, base_delay=-1.0, max_delay=1.0)
    with pytest.raises(ValueError, match="total_time_budget"):
        RetryStrategy(
            name="broken",
            max_attempts=1,
            base_delay=1.0,
            max_delay=1.0,
            total_time_budget=0,
        )
