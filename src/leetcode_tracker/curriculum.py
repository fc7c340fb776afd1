"""Curriculum backlog loaded from a study-plan JSON file."""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)

UNKNOWN_DIFFICULTY = "Unknown"


@dataclass(frozen=True, slots=True)
class WorkItem:
    """One backlog problem; the core refers to it by ``slug`` only."""

    slug: str
    display_name: str
    difficulty: str
    group_id: str


class BacklogProvider(Protocol):
    def ordered_backlog(self) -> list[str]: ...

    def get_item(self, slug: str) -> WorkItem: ...


class JsonBacklogProvider:
    """Reads ``{"topics": [...]}`` or ``{"weeks": {...}}`` study plans.

    Weeks are visited in numeric order and problems of a repeated theme are appended to the
    first topic with that theme. The file is parsed once and cached.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._items: list[WorkItem] | None = None
        self._by_slug: dict[str, WorkItem] = {}

    def items(self) -> list[WorkItem]:
        if self._items is None:
            self._items = _load_items(self.path)
            self._by_slug = {}
            for item in self._items:
                self._by_slug.setdefault(item.slug, item)
            logger.info("Loaded %d backlog items from %s", len(self._items), self.path)
        return list(self._items)

    def ordered_backlog(self) -> list[str]:
        return [item.slug for item in self.items()]

    def get_item(self, slug: str) -> WorkItem:
        self.items()
        item = self._by_slug.get(slug)
        if item is None:
            return WorkItem(
                slug=slug,
                display_name=slug,
                difficulty=UNKNOWN_DIFFICULTY,
                group_id="",
            )
        return item


class StaticBacklogProvider:
    """In-memory backlog, used where no curriculum file is involved."""

    def __init__(self, items: Sequence[WorkItem]) -> None:
        self._items = list(items)
        self._by_slug = {item.slug: item for item in reversed(self._items)}

    @classmethod
    def from_slugs(cls, slugs: Sequence[str], *, group_id: str = "") -> StaticBacklogProvider:
        return cls(
            [
                WorkItem(slug=slug, display_name=slug, difficulty=UNKNOWN_DIFFICULTY, group_id=group_id)
                for slug in slugs
            ],
        )

    def ordered_backlog(self) -> list[str]:
        return [item.slug for item in self._items]

    def get_item(self, slug: str) -> WorkItem:
        return self._by_slug.get(
            slug,
            WorkItem(slug=slug, display_name=slug, difficulty=UNKNOWN_DIFFICULTY, group_id=""),
        )


def _load_items(path: Path) -> list[WorkItem]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as error:
        raise ValueError(f"Curriculum file not found: {path}") from error
    except json.JSONDecodeError as error:
        raise ValueError(f"Curriculum file {path} is not valid JSON: {error}") from error

    if not isinstance(payload, dict):
        raise ValueError(f"Curriculum file {path} must contain a JSON object")
    if "topics" in payload:
        topics = payload["topics"]
    elif "weeks" in payload:
        topics = _weeks_to_topics(payload["weeks"])
    else:
        raise ValueError(f"Curriculum file {path} needs a 'topics' or 'weeks' key")
    if not isinstance(topics, list):
        raise ValueError(f"Curriculum file {path}: 'topics' must be a list")

    items: list[WorkItem] = []
    for topic in topics:
        if not isinstance(topic, dict):
            raise ValueError(f"Curriculum file {path}: topic entries must be objects")
        name = str(topic.get("name") or "")
        for problem in topic.get("problems") or []:
            items.append(_parse_problem(problem, group_id=name, path=path))
    return items


def _weeks_to_topics(weeks: Any) -> list[dict[str, Any]]:
    if not isinstance(weeks, dict):
        raise ValueError("'weeks' must be an object keyed by week number")
    topics: list[dict[str, Any]] = []
    index: dict[str, int] = {}
    for week_no in sorted(weeks, key=_week_sort_key):
        week = weeks[week_no] or {}
        if not isinstance(week, dict):
            raise ValueError(f"Week {week_no!r} must be an object")
        theme = week.get("theme") or f"Theme {week_no}"
        if theme not in index:
            index[theme] = len(topics)
            topics.append({"name": theme, "problems": []})
        topics[index[theme]]["problems"].extend(week.get("problems") or [])
    return topics


def _week_sort_key(week_no: str) -> tuple[int, float, str]:
    try:
        return (0, float(week_no), week_no)
    except ValueError:
        return (1, 0.0, week_no)


def _parse_problem(problem: Any, *, group_id: str, path: Path) -> WorkItem:
    if not isinstance(problem, dict):
        raise ValueError(f"Curriculum file {path}: problem entries must be objects")
    slug = problem.get("slug")
    if not isinstance(slug, str) or not slug.strip():
        raise ValueError(f"Curriculum file {path}: problem without a slug in {group_id!r}")
    return WorkItem(
        slug=slug,
        display_name=str(problem.get("name") or slug),
        difficulty=str(problem.get("difficulty") or UNKNOWN_DIFFICULTY),
        group_id=group_id,
    )
