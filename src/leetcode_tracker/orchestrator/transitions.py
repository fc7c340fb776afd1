"""Pure progress-document updates applied by the daily run."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime
from zoneinfo import ZoneInfo

from leetcode_tracker.allocation import AllocationResult
from leetcode_tracker.http.api_client import Submission
from leetcode_tracker.state.models import ProgressState, SentItem, SettingsSnapshot
from leetcode_tracker.state.store import UpdateFn
from leetcode_tracker.timeutils import start_of_day


def apply_solved_status(
    state: ProgressState,
    submissions: Sequence[Submission],
    *,
    timezone: ZoneInfo,
) -> list[str]:
    """Mark outstanding items solved in place and return the slugs that changed.

    An item counts as solved by the earliest accepted submission of the same slug made
    strictly after the start of its send day.
    """

    accepted: dict[str, list[datetime]] = {}
    for submission in submissions:
        if submission.accepted:
            accepted.setdefault(submission.slug, []).append(submission.timestamp)

    newly_solved: list[str] = []
    for item in state.sent_items:
        if item.solved or item.slug not in accepted:
            continue
        sent_at = start_of_day(item.sent_date, timezone)
        after_send = [stamp for stamp in accepted[item.slug] if stamp > sent_at]
        if after_send:
            item.solved = True
            item.solved_at = min(after_send)
            newly_solved.append(item.slug)
    return newly_solved


def apply_allocation(
    state: ProgressState,
    allocation: AllocationResult,
    *,
    today: date,
    daily_quota: int,
    now: datetime,
) -> None:
    """Replace sent items with today's batch, keeping the records of carried-over items."""

    carried = {item.slug: item for item in state.sent_items if not item.solved}
    state.sent_items = [
        carried.get(slug) or SentItem(slug=slug, solved=False, sent_date=today)
        for slug in allocation.batch
    ]
    state.backlog_position = allocation.new_position
    state.pending_queue = list(allocation.new_pending_queue)
    state.last_sent_date = today
    state.settings_snapshot = SettingsSnapshot(daily_quota=daily_quota, captured_at=now)


def mark_solved_update(submissions: Sequence[Submission], *, timezone: ZoneInfo) -> UpdateFn:
    def _update(document: dict) -> dict:
        state = ProgressState.from_document(document)
        apply_solved_status(state, submissions, timezone=timezone)
        return state.to_document()

    return _update


def commit_update(
    allocation: AllocationResult,
    *,
    today: date,
    daily_quota: int,
    now: datetime,
) -> UpdateFn:
    def _update(document: dict) -> dict:
        state = ProgressState.from_document(document)
        apply_allocation(state, allocation, today=today, daily_quota=daily_quota, now=now)
        return state.to_document()

    return _update
