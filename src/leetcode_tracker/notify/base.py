"""Notifier contract and plain-text batch rendering."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from leetcode_tracker.curriculum import WorkItem

PROBLEM_URL_TEMPLATE = "https://leetcode.com/problems/{slug}/"


@dataclass(slots=True)
class CategorizedBatch:
    """Today's batch split into carried-over reminders and fresh items."""

    unfinished: list[WorkItem] = field(default_factory=list)
    fresh: list[WorkItem] = field(default_factory=list)

    @property
    def items(self) -> list[WorkItem]:
        return [*self.unfinished, *self.fresh]

    def __len__(self) -> int:
        return len(self.unfinished) + len(self.fresh)


class Notifier(Protocol):
    async def send_batch(self, batch: CategorizedBatch) -> None: ...


def render_subject(batch: CategorizedBatch) -> str:
    reminders = len(batch.unfinished)
    fresh = len(batch.fresh)
    if reminders and fresh:
        return f"Today's LeetCode Mix - {reminders} reminder + {fresh} new"
    if reminders:
        return f"Reminder - {reminders} unfinished problem{_plural(reminders)}"
    if fresh == 1:
        return f"Today's LeetCode - {batch.fresh[0].display_name}"
    return f"Today's LeetCode - {fresh} problem{_plural(fresh)}"


def render_body(batch: CategorizedBatch) -> str:
    lines: list[str] = []
    if batch.unfinished:
        lines.append("Still waiting for you:")
        lines.extend(_item_lines(batch.unfinished))
        lines.append("")
    if batch.fresh:
        lines.append("New today:")
        lines.extend(_item_lines(batch.fresh))
        lines.append("")
    lines.append(f"{len(batch)} problem{_plural(len(batch))} in total. Good luck!")
    return "\n".join(lines)


def _item_lines(items: list[WorkItem]) -> list[str]:
    lines = []
    for item in items:
        topic = f" [{item.group_id}]" if item.group_id else ""
        lines.append(f"- {item.display_name} ({item.difficulty}){topic}")
        lines.append(f"  {PROBLEM_URL_TEMPLATE.format(slug=item.slug)}")
    return lines


def _plural(count: int) -> str:
    return "" if count == 1 else "s"
