"""Daily run: health check, checkpoint, refresh, allocate, notify, commit or roll back."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime
from typing import Protocol
from zoneinfo import ZoneInfo

from leetcode_tracker.allocation import compute_allocation
from leetcode_tracker.curriculum import BacklogProvider
from leetcode_tracker.errors import (
    CircuitOpenError,
    ExhaustedRetriesError,
    NotificationError,
    RollbackFailureError,
    RunRolledBackError,
    TrackerError,
    TransientNetworkError,
)
from leetcode_tracker.http.api_client import Submission, SubmissionBatch
from leetcode_tracker.notify.base import CategorizedBatch, Notifier
from leetcode_tracker.orchestrator.models import RunPhase, RunResult, RunStatus
from leetcode_tracker.orchestrator.transitions import commit_update, mark_solved_update
from leetcode_tracker.resilience.breaker import BreakerState
from leetcode_tracker.resilience.engine import RetryPolicyEngine
from leetcode_tracker.state.models import Checkpoint, DocumentKey, ProgressState
from leetcode_tracker.state.store import StateStore
from leetcode_tracker.timeutils import business_date, utc_now

logger = logging.getLogger(__name__)

HEALTH_STRATEGY = "fast"
WAKE_UP_STRATEGY = "cold_start"
FETCH_STRATEGY = "normal"


class SubmissionSource(Protocol):
    async def probe(self) -> bool: ...

    async def fetch_submissions(self, limit: int | None = None) -> SubmissionBatch: ...


class DailyRunOrchestrator:
    """Composes the store, the API engine and the notifier into one daily run.

    A run either commits the new progress document or restores both documents from the
    checkpoint taken before the first mutation. Failures after the checkpoint surface as
    :class:`RunRolledBackError` (or :class:`RollbackFailureError` when restoring failed).
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        store: StateStore,
        api: SubmissionSource,
        api_retry: RetryPolicyEngine,
        notifier: Notifier,
        backlog: BacklogProvider,
        timezone: ZoneInfo,
        notify_strategy: str | None = None,
        notify_retry: RetryPolicyEngine | None = None,
        clock: Callable[[], datetime] = utc_now,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.api = api
        self.api_retry = api_retry
        self.notifier = notifier
        self.backlog = backlog
        self.timezone = timezone
        self.notify_strategy = notify_strategy or None
        self.notify_retry = notify_retry or api_retry
        self._clock = clock
        self._monotonic = monotonic

    async def run(self) -> RunResult:
        started = self._monotonic()
        phase = RunPhase.IDLE
        today = business_date(self._clock(), self.timezone)

        progress = await self.store.load_progress()
        if progress.last_sent_date == today:
            logger.info("Batch for %s already sent, nothing to do", today.isoformat())
            return self._result(RunStatus.ALREADY_SENT, phase, started)
        settings = await self.store.load_settings()
        if not settings.notifications_enabled:
            logger.info("Notifications are disabled, skipping run")
            return self._result(RunStatus.NOTIFICATIONS_DISABLED, phase, started)

        phase = self._enter(RunPhase.HEALTH_CHECK)
        if not await self._ensure_healthy():
            return self._result(
                RunStatus.CIRCUIT_OPEN,
                phase,
                started,
                message="API circuit breaker is open; run deferred",
            )

        checkpoint = await self.store.checkpoint()
        phase = self._enter(RunPhase.CHECKPOINTED)
        try:
            progress = await self._refresh_solved_status(checkpoint)
            phase = self._enter(RunPhase.SOLVED_STATUS_REFRESHED)

            quota = checkpoint.settings.daily_quota
            allocation = compute_allocation(progress, quota, self.backlog.ordered_backlog())
            phase = self._enter(RunPhase.ALLOCATED)
            if not allocation.batch:
                logger.info("Study plan complete, nothing left to send")
                return self._result(RunStatus.PLAN_COMPLETE, phase, started)

            await self._notify(
                CategorizedBatch(
                    unfinished=[self.backlog.get_item(slug) for slug in allocation.unfinished],
                    fresh=[self.backlog.get_item(slug) for slug in allocation.fresh],
                ),
            )
            phase = self._enter(RunPhase.NOTIFIED)

            await self.store.atomic_update(
                DocumentKey.PROGRESS,
                commit_update(allocation, today=today, daily_quota=quota, now=self._clock()),
            )
            phase = self._enter(RunPhase.COMMITTED)
        except Exception as error:
            await self._roll_back(checkpoint, error, failed_phase=phase)
            raise RunRolledBackError(error, failed_phase=phase.value) from error

        return self._result(
            RunStatus.OK,
            phase,
            started,
            batch=allocation.batch,
            unfinished=allocation.unfinished,
            fresh=allocation.fresh,
        )

    async def _ensure_healthy(self) -> bool:
        """Fast probe, then one patient wake-up; ``False`` means the breaker is open."""

        try:
            await self.api_retry.execute(self._probe, HEALTH_STRATEGY, name="health probe")
            return True
        except CircuitOpenError:
            return False
        except TrackerError as error:
            if self.api_retry.breaker.state == BreakerState.OPEN:
                return False
            logger.warning("Health probe failed (%s), trying to wake the API up", error)

        try:
            await self.api_retry.execute(self._probe, WAKE_UP_STRATEGY, name="wake-up probe")
        except CircuitOpenError:
            return False
        except TrackerError:
            if self.api_retry.breaker.state == BreakerState.OPEN:
                return False
            raise
        logger.info("API is awake")
        return True

    async def _probe(self) -> bool:
        if not await self.api.probe():
            raise TransientNetworkError("API health probe reported unhealthy", cold_start=True)
        return True

    async def _refresh_solved_status(self, checkpoint: Checkpoint) -> ProgressState:
        progress = checkpoint.progress
        if not progress.unsolved_slugs():
            return progress
        batch = await self.api_retry.execute(
            self.api.fetch_submissions,
            FETCH_STRATEGY,
            name="fetch submissions",
        )
        submissions: list[Submission] = batch.submissions
        document = await self.store.atomic_update(
            DocumentKey.PROGRESS,
            mark_solved_update(submissions, timezone=self.timezone),
        )
        refreshed = ProgressState.from_document(document)
        solved = len(progress.unsolved_slugs()) - len(refreshed.unsolved_slugs())
        logger.info("Marked %d outstanding item(s) solved", solved)
        return refreshed

    async def _notify(self, batch: CategorizedBatch) -> None:
        async def _send() -> None:
            try:
                await self.notifier.send_batch(batch)
            except NotificationError:
                raise
            except Exception as error:
                raise NotificationError(f"Notifier failed: {error}") from error

        if self.notify_strategy is None:
            await _send()
            return
        try:
            await self.notify_retry.execute(_send, self.notify_strategy, name="notify")
        except ExhaustedRetriesError as error:
            raise NotificationError(str(error)) from error

    async def _roll_back(
        self,
        checkpoint: Checkpoint,
        error: BaseException,
        *,
        failed_phase: RunPhase,
    ) -> None:
        logger.error("Run failed during %s: %s; rolling back", failed_phase.value, error)
        try:
            await self.store.rollback(checkpoint)
        except Exception as rollback_error:
            logger.critical(
                "Rollback to checkpoint %s failed: %s",
                checkpoint.checkpoint_id,
                rollback_error,
            )
            raise RollbackFailureError(
                cause=error,
                rollback_error=rollback_error,
                checkpoint_id=checkpoint.checkpoint_id,
            ) from rollback_error
        logger.info("Entered phase %s", RunPhase.ROLLED_BACK.value)

    def _enter(self, phase: RunPhase) -> RunPhase:
        logger.info("Entered phase %s", phase.value)
        return phase

    def _result(  # noqa: PLR0913
        self,
        status: RunStatus,
        phase: RunPhase,
        started: float,
        *,
        batch: list[str] | None = None,
        unfinished: list[str] | None = None,
        fresh: list[str] | None = None,
        message: str = "",
    ) -> RunResult:
        return RunResult(
            status=status,
            phase=phase,
            elapsed_seconds=self._monotonic() - started,
            batch=list(batch or []),
            unfinished=list(unfinished or []),
            fresh=list(fresh or []),
            message=message,
        )
