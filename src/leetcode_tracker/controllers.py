"""Controllers for tracker CLI commands."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

from leetcode_tracker.config import Settings
from leetcode_tracker.curriculum import JsonBacklogProvider
from leetcode_tracker.errors import TrackerError
from leetcode_tracker.http.api_client import SubmissionApiClient
from leetcode_tracker.notify.smtp import SmtpNotifier
from leetcode_tracker.orchestrator.models import RunResult, status_for_error
from leetcode_tracker.orchestrator.runner import DailyRunOrchestrator
from leetcode_tracker.resilience.breaker import CircuitBreaker
from leetcode_tracker.resilience.engine import RetryPolicyEngine
from leetcode_tracker.state.models import (
    MAX_DAILY_QUOTA,
    MIN_DAILY_QUOTA,
    DocumentKey,
    clamp_quota,
)
from leetcode_tracker.state.store import StateStore
from leetcode_tracker.storage.documents import SqliteDocumentStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CheckCommand:
    """CLI inputs for the daily check command."""

    db_path: Path | None


@dataclass(slots=True)
class StatusCommand:
    """CLI inputs for status command."""

    db_path: Path | None


@dataclass(slots=True)
class SettingsGetCommand:
    db_path: Path | None


@dataclass(slots=True)
class SettingsSetCommand:
    """CLI inputs for settings update; ``None`` leaves a field unchanged."""

    db_path: Path | None
    daily_quota: int | None = None
    notifications_enabled: bool | None = None


@dataclass(slots=True)
class ProbeCommand:
    db_path: Path | None


@dataclass(slots=True)
class RecoverCommand:
    db_path: Path | None


@dataclass(slots=True)
class CommandResult:
    """Report to render in CLI; ``success=False`` exits non-zero."""

    lines: list[str] = field(default_factory=list)
    success: bool = True


class TrackerCliController:
    """Coordinates daily run, inspection and recovery commands."""

    def check(self, command: CheckCommand) -> CommandResult:
        settings = Settings.from_env(db_path=command.db_path)
        settings.validate_for_check()
        try:
            result = asyncio.run(self._run_check(settings))
        except TrackerError as error:
            logger.exception("Daily check failed")
            return CommandResult(
                lines=[f"status={status_for_error(error).value} error={_short(error)}"],
                success=False,
            )
        return CommandResult(lines=_run_result_lines(result))

    def status(self, command: StatusCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        settings.validate_resilience()
        return asyncio.run(self._status(settings))

    def settings_get(self, command: SettingsGetCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        settings.validate_resilience()

        async def _get() -> list[str]:
            with _state_store(settings) as store:
                user_settings = await store.load_settings()
            return [
                f"daily_quota={user_settings.daily_quota} "
                f"notifications_enabled={_yes_no(user_settings.notifications_enabled)} "
                f"version={user_settings.version}",
            ]

        return asyncio.run(_get())

    def settings_set(self, command: SettingsSetCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        settings.validate_resilience()
        if command.daily_quota is None and command.notifications_enabled is None:
            raise ValueError("Nothing to update; pass a daily quota or --notifications/--no-notifications.")

        lines: list[str] = []
        quota = command.daily_quota
        if quota is not None and clamp_quota(quota) != quota:
            lines.append(
                f"Daily quota {quota} is outside [{MIN_DAILY_QUOTA}, {MAX_DAILY_QUOTA}]; "
                f"using {clamp_quota(quota)}.",
            )
            quota = clamp_quota(quota)

        def _apply(document: dict) -> dict:
            if quota is not None:
                document["dailyQuota"] = quota
            if command.notifications_enabled is not None:
                document["notificationsEnabled"] = command.notifications_enabled
            return document

        async def _set() -> dict:
            with _state_store(settings) as store:
                return await store.atomic_update(DocumentKey.SETTINGS, _apply)

        try:
            document = asyncio.run(_set())
        except TrackerError as error:
            raise ValueError(f"Settings update failed: {error}") from error
        lines.append(
            f"Settings saved: daily_quota={document['dailyQuota']} "
            f"notifications_enabled={_yes_no(document['notificationsEnabled'])} "
            f"version={document['version']}",
        )
        return lines

    def probe(self, command: ProbeCommand) -> CommandResult:
        settings = Settings.from_env(db_path=command.db_path)
        settings.validate_for_probe()
        return asyncio.run(self._probe(settings))

    def recover(self, command: RecoverCommand) -> CommandResult:
        settings = Settings.from_env(db_path=command.db_path)
        settings.validate_resilience()

        async def _recover() -> CommandResult:
            with _state_store(settings) as store:
                checkpoint = await store.latest_checkpoint()
                if checkpoint is None:
                    return CommandResult(lines=["No recovery record found."], success=False)
                await store.rollback(checkpoint)
            return CommandResult(
                lines=[
                    f"Restored checkpoint {checkpoint.checkpoint_id} "
                    f"created_at={checkpoint.created_at.isoformat()}",
                ],
            )

        try:
            return asyncio.run(_recover())
        except TrackerError as error:
            logger.exception("Recovery failed")
            return CommandResult(
                lines=[f"status={status_for_error(error).value} error={_short(error)}"],
                success=False,
            )

    async def _run_check(self, settings: Settings) -> RunResult:
        api_retry = build_retry_engine(settings)
        with _state_store(settings) as store:
            async with _api_client(settings) as api:
                orchestrator = DailyRunOrchestrator(
                    store=store,
                    api=api,
                    api_retry=api_retry,
                    notifier=SmtpNotifier(
                        host=settings.email.smtp_host,
                        port=settings.email.smtp_port,
                        sender=settings.email.from_address,
                        recipient=settings.email.to_address,
                        username=settings.email.smtp_user,
                        password=settings.email.smtp_password,
                        use_tls=settings.email.use_tls,
                    ),
                    backlog=store.backlog,
                    timezone=settings.zone(),
                    notify_strategy=settings.resilience.notify_strategy,
                )
                return await orchestrator.run()

    async def _status(self, settings: Settings) -> list[str]:
        with _state_store(settings) as store:
            progress = await store.load_progress()
            user_settings = await store.load_settings()
            checkpoint = await store.latest_checkpoint()
        try:
            backlog_total = str(len(store.backlog.ordered_backlog()))
        except ValueError:
            backlog_total = "?"
        last_sent = progress.last_sent_date.isoformat() if progress.last_sent_date else "-"
        lines = [
            f"Progress: last_sent={last_sent} "
            f"position={progress.backlog_position}/{backlog_total} "
            f"outstanding={len(progress.unsolved_slugs())} "
            f"pending={len(progress.pending_queue)} "
            f"version={progress.version}",
            f"Settings: daily_quota={user_settings.daily_quota} "
            f"notifications_enabled={_yes_no(user_settings.notifications_enabled)} "
            f"version={user_settings.version}",
        ]
        for item in progress.sent_items:
            state = "solved" if item.solved else "open"
            lines.append(f"  {item.slug} sent={item.sent_date.isoformat()} {state}")
        if progress.pending_queue:
            lines.append(f"  pending: {', '.join(progress.pending_queue)}")
        if checkpoint is not None:
            lines.append(
                f"Last checkpoint: {checkpoint.checkpoint_id} "
                f"created_at={checkpoint.created_at.isoformat()}",
            )
        return lines

    async def _probe(self, settings: Settings) -> CommandResult:
        engine = build_retry_engine(settings)
        healthy = True
        detail = ""
        async with _api_client(settings) as api:

            async def _check() -> bool:
                return await api.probe()

            try:
                healthy = await engine.execute(_check, "fast", name="health probe")
            except TrackerError as error:
                healthy = False
                detail = f" error={_short(error)}"
        metrics = engine.metrics
        return CommandResult(
            lines=[
                f"probe={'ok' if healthy else 'failed'}{detail}",
                f"breaker={metrics.breaker_state.value} "
                f"attempts={metrics.total_attempts} "
                f"successes={metrics.total_successes} "
                f"failures={metrics.total_failures} "
                f"trips={metrics.breaker_trips} "
                f"cold_starts={metrics.cold_starts_detected} "
                f"success_rate={metrics.success_rate:.2f}",
            ],
            success=healthy,
        )


def build_retry_engine(settings: Settings) -> RetryPolicyEngine:
    """Fresh engine with its own breaker; one per guarded dependency."""

    resilience = settings.resilience
    return RetryPolicyEngine(
        breaker=CircuitBreaker(
            failure_threshold=resilience.failure_threshold,
            recovery_timeout=resilience.recovery_timeout_seconds,
            half_open_success_threshold=resilience.half_open_success_threshold,
        ),
        base_timeout=resilience.base_timeout_seconds,
        jitter_fraction=resilience.jitter_fraction,
    )


@contextmanager
def _state_store(settings: Settings) -> Iterator[StateStore]:
    documents = SqliteDocumentStore(
        settings.db_path,
        user_id=settings.user_context.user_id,
        user_name=settings.user_context.user_name,
    )
    try:
        documents.init_schema()
        yield StateStore(
            documents,
            retry=build_retry_engine(settings),
            backlog=JsonBacklogProvider(settings.curriculum_path),
        )
    finally:
        documents.close()


def _api_client(settings: Settings) -> SubmissionApiClient:
    return SubmissionApiClient(
        settings.api.base_url,
        settings.api.username,
        timeout_seconds=settings.api.request_timeout_seconds,
        submissions_limit=settings.api.submissions_limit,
    )


def _run_result_lines(result: RunResult) -> list[str]:
    lines = [f"status={result.status.value} elapsed={result.elapsed_seconds:.1f}s"]
    if result.batch:
        lines.append(
            f"sent={len(result.batch)} unfinished={len(result.unfinished)} "
            f"new={len(result.fresh)}",
        )
        lines.extend(f"  {slug}" for slug in result.batch)
    if result.message:
        lines.append(result.message)
    return lines


def _short(error: BaseException, limit: int = 160) -> str:
    text = str(error)
    return text if len(text) <= limit else text[: limit - 3] + "..."


def _yes_no(value: bool) -> str:
    return "yes" if value else "no"
