"""Deterministic selection of the next batch of work items."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from leetcode_tracker.state.models import ProgressState, clamp_quota


@dataclass(slots=True)
class AllocationResult:
    batch: list[str] = field(default_factory=list)
    unfinished: list[str] = field(default_factory=list)
    fresh: list[str] = field(default_factory=list)
    new_position: int = 0
    new_pending_queue: list[str] = field(default_factory=list)
    plan_complete: bool = False


def outstanding_slugs(state: ProgressState) -> list[str]:
    """Unsolved sent items oldest first, then the queued overflow, without duplicates."""

    unsolved = sorted(
        (item for item in state.sent_items if not item.solved),
        key=lambda item: item.sent_date,
    )
    ordered: list[str] = []
    seen: set[str] = set()
    for slug in [item.slug for item in unsolved] + list(state.pending_queue):
        if slug not in seen:
            seen.add(slug)
            ordered.append(slug)
    return ordered


def compute_allocation(
    state: ProgressState,
    daily_quota: int,
    backlog: Sequence[str],
) -> AllocationResult:
    """Pick today's batch; outstanding items come first and are never dropped."""

    quota = clamp_quota(daily_quota)
    pending = outstanding_slugs(state)
    position = state.backlog_position

    if len(pending) >= quota:
        batch = pending[:quota]
        return AllocationResult(
            batch=batch,
            unfinished=list(batch),
            fresh=[],
            new_position=position,
            new_pending_queue=pending[quota:],
        )

    fresh: list[str] = []
    taken = set(pending)
    while len(pending) + len(fresh) < quota and position < len(backlog):
        slug = backlog[position]
        position += 1
        if slug in taken:
            continue
        taken.add(slug)
        fresh.append(slug)

    batch = pending + fresh
    return AllocationResult(
        batch=batch,
        unfinished=list(pending),
        fresh=fresh,
        new_position=position,
        new_pending_queue=[],
        plan_complete=not batch,
    )
