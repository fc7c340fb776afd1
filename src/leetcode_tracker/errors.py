"""Error taxonomy shared by the retry engine, state store and orchestrator.

Every error carries an :class:`ErrorKind` fixed by the class that is raised, so callers
classify failures with ``isinstance``/``kind`` checks instead of inspecting messages.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Tagged failure kinds surfaced to callers."""

    TRANSIENT_NETWORK = "transient_network"
    TIMEOUT = "timeout"
    NON_RETRYABLE_CLIENT = "non_retryable_client"
    CIRCUIT_OPEN = "circuit_open"
    EXHAUSTED_RETRIES = "exhausted_retries"
    VALIDATION = "validation"
    VERSION_CONFLICT = "version_conflict"
    NOTIFICATION = "notification"
    RUN_ROLLED_BACK = "run_rolled_back"
    ROLLBACK_FAILURE = "rollback_failure"


class TrackerError(Exception):
    """Base class for all tracker failures."""

    kind: ErrorKind


class TransientNetworkError(TrackerError):
    """Timeout, reset, refused connection, 429 or 5xx answer from a dependency."""

    kind = ErrorKind.TRANSIENT_NETWORK

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        cold_start: bool = False,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.cold_start = cold_start


class AttemptTimeoutError(TransientNetworkError):
    """One attempt did not finish within its per-attempt timeout."""

    def __init__(self, message: str, *, timeout_seconds: float) -> None:
        super().__init__(message, cold_start=True)
        self.timeout_seconds = timeout_seconds


class RetryBudgetExceededError(TrackerError):
    """The strategy's total time budget ran out before an attempt succeeded."""

    kind = ErrorKind.TIMEOUT

    def __init__(
        self,
        message: str,
        *,
        attempts: int,
        last_error: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


class NonRetryableClientError(TrackerError):
    """4xx answer (except 429) or another failure that retrying cannot fix."""

    kind = ErrorKind.NON_RETRYABLE_CLIENT

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CircuitOpenError(TrackerError):
    """The breaker rejected the call without invoking the operation."""

    kind = ErrorKind.CIRCUIT_OPEN


class ExhaustedRetriesError(TrackerError):
    """Every attempt allowed by the strategy failed with a transient error."""

    kind = ErrorKind.EXHAUSTED_RETRIES

    def __init__(
        self,
        message: str,
        *,
        attempts: int,
        last_error: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error

    @property
    def cold_start(self) -> bool:
        return isinstance(self.last_error, TransientNetworkError) and self.last_error.cold_start


class ValidationError(TrackerError):
    """A document or payload failed schema validation; nothing was written."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, *, field: str, value: object = None, context: str) -> None:
        super().__init__(f"{context}: {field} - {message}")
        self.field = field
        self.value = value
        self.context = context


class VersionConflictError(TrackerError):
    """The optimistic version check failed because another writer got there first."""

    kind = ErrorKind.VERSION_CONFLICT

    def __init__(self, doc_id: str, *, expected_version: int | None) -> None:
        super().__init__(
            f"Document {doc_id!r} changed concurrently (expected version {expected_version})",
        )
        self.doc_id = doc_id
        self.expected_version = expected_version


class NotificationError(TrackerError):
    """The notifier failed to deliver the batch."""

    kind = ErrorKind.NOTIFICATION


class RunRolledBackError(TrackerError):
    """A run failed after its checkpoint and state was restored successfully.

    ``kind`` mirrors the original cause so callers still see, for example, a validation
    failure rather than a generic one.
    """

    def __init__(self, cause: BaseException, *, failed_phase: str) -> None:
        super().__init__(f"Run rolled back after failure in {failed_phase}: {cause}")
        self.cause = cause
        self.failed_phase = failed_phase

    @property
    def kind(self) -> ErrorKind:  # type: ignore[override]
        if isinstance(self.cause, TrackerError):
            return self.cause.kind
        return ErrorKind.RUN_ROLLED_BACK


class RollbackFailureError(TrackerError):
    """Rollback itself failed; persisted state is in an unknown condition."""

    kind = ErrorKind.ROLLBACK_FAILURE

    def __init__(
        self,
        *,
        cause: BaseException,
        rollback_error: BaseException,
        checkpoint_id: str,
    ) -> None:
        super().__init__(
            f"Rollback to checkpoint {checkpoint_id} failed ({rollback_error}) "
            f"after run failure: {cause}",
        )
        self.cause = cause
        self.rollback_error = rollback_error
        self.checkpoint_id = checkpoint_id
