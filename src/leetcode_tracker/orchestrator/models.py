"""Run phases, outcomes and results of the daily orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from leetcode_tracker.errors import (
    ErrorKind,
    ExhaustedRetriesError,
    RunRolledBackError,
    TrackerError,
)


class RunPhase(str, Enum):
    """Daily run state machine phases."""

    IDLE = "idle"
    HEALTH_CHECK = "health_check"
    CHECKPOINTED = "checkpointed"
    SOLVED_STATUS_REFRESHED = "solved_status_refreshed"
    ALLOCATED = "allocated"
    NOTIFIED = "notified"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class RunStatus(str, Enum):
    """Compact outcome tokens reported by ``check``."""

    OK = "ok"
    ALREADY_SENT = "already_sent"
    NOTIFICATIONS_DISABLED = "notifications_disabled"
    PLAN_COMPLETE = "plan_complete"
    CIRCUIT_OPEN = "circuit_open"
    TIMEOUT = "timeout"
    COLD_START = "cold_start"
    VALIDATION_ERROR = "validation_error"
    NOTIFICATION_ERROR = "notification_error"
    ERROR = "error"
    CRITICAL_ERROR = "critical_error"


_KIND_STATUS = {
    ErrorKind.CIRCUIT_OPEN: RunStatus.CIRCUIT_OPEN,
    ErrorKind.TIMEOUT: RunStatus.TIMEOUT,
    ErrorKind.VALIDATION: RunStatus.VALIDATION_ERROR,
    ErrorKind.NOTIFICATION: RunStatus.NOTIFICATION_ERROR,
    ErrorKind.ROLLBACK_FAILURE: RunStatus.CRITICAL_ERROR,
}


@dataclass(slots=True)
class RunResult:
    """Outcome of a run that ended without raising."""

    status: RunStatus
    phase: RunPhase
    elapsed_seconds: float = 0.0
    batch: list[str] = field(default_factory=list)
    unfinished: list[str] = field(default_factory=list)
    fresh: list[str] = field(default_factory=list)
    message: str = ""

    @property
    def deferred(self) -> bool:
        return self.status == RunStatus.CIRCUIT_OPEN


def status_for_error(error: BaseException) -> RunStatus:
    """Map a failed run's error onto its status token by error kind."""

    cause = error.cause if isinstance(error, RunRolledBackError) else error
    if isinstance(cause, ExhaustedRetriesError) and cause.cold_start:
        return RunStatus.COLD_START
    if isinstance(error, TrackerError):
        return _KIND_STATUS.get(error.kind, RunStatus.ERROR)
    return RunStatus.ERROR
