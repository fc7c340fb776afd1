"""Daily run orchestration over the state store, the API and the notifier."""

from leetcode_tracker.orchestrator.models import RunPhase, RunResult, RunStatus, status_for_error
from leetcode_tracker.orchestrator.runner import DailyRunOrchestrator

__all__ = ["DailyRunOrchestrator", "RunPhase", "RunResult", "RunStatus", "status_for_error"]
