"""Upgrade legacy progress and settings documents to the current shape."""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable
from typing import Any

from leetcode_tracker.state.models import DocumentKey

logger = logging.getLogger(__name__)

_PROGRESS_RENAMES = {
    "sentProblems": "sentItems",
    "studyPlanPosition": "backlogPosition",
    "settingsAtSendTime": "settingsSnapshot",
}
_SETTINGS_RENAMES = {
    "num_questions": "dailyQuota",
    "email_enabled": "notificationsEnabled",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
}
_SENT_ITEM_FIELDS = ("slug", "solved", "sentDate", "solvedTimestamp")
_DROPPED_FIELDS = ("migrationHistory",)


def upgrade_document(
    key: DocumentKey,
    document: dict[str, Any],
    *,
    ordered_backlog: Callable[[], list[str]],
    today: str | None = None,
) -> tuple[dict[str, Any], bool]:
    """Return ``(document, changed)``; the input is never mutated.

    ``ordered_backlog`` is only called for single-problem progress documents; ``today`` dates
    their sent item when the document never recorded a send date.
    """

    if key == DocumentKey.PROGRESS:
        upgraded = _upgrade_progress(document, ordered_backlog=ordered_backlog, today=today)
    else:
        upgraded = _upgrade_settings(document)
    changed = upgraded != document
    if changed:
        logger.info("Upgraded legacy %s document", key.value)
    return upgraded, changed


def is_single_problem_format(document: dict[str, Any]) -> bool:
    return "lastSlug" in document and "sentItems" not in document and "sentProblems" not in document


def _upgrade_progress(
    document: dict[str, Any],
    *,
    ordered_backlog: Callable[[], list[str]],
    today: str | None,
) -> dict[str, Any]:
    if is_single_problem_format(document):
        return _from_single_problem(document, ordered_backlog(), today=today)

    upgraded = _renamed(document, _PROGRESS_RENAMES)
    items = upgraded.get("sentItems")
    if isinstance(items, list):
        upgraded["sentItems"] = [
            {name: item[name] for name in _SENT_ITEM_FIELDS if name in item}
            if isinstance(item, dict)
            else item
            for item in items
        ]
    snapshot = upgraded.get("settingsSnapshot")
    if isinstance(snapshot, dict) and ("num_questions" in snapshot or "timestamp" in snapshot):
        upgraded["settingsSnapshot"] = {
            "dailyQuota": snapshot.get("num_questions", snapshot.get("dailyQuota", 1)),
            "capturedAt": snapshot.get("timestamp", snapshot.get("capturedAt")),
        }
    return _normalized_version(upgraded)


def _from_single_problem(
    document: dict[str, Any],
    backlog: list[str],
    *,
    today: str | None,
) -> dict[str, Any]:
    last_slug = document.get("lastSlug")
    last_sent = document.get("lastSentDate")
    position = document.get("studyPlanPosition") or 0
    if last_slug:
        if last_slug in backlog:
            position = backlog.index(last_slug) + 1
        else:
            logger.warning("Legacy last slug %r is not in the current backlog", last_slug)

    sent_items: list[dict[str, Any]] = []
    sent_date = last_sent or today
    if last_slug and sent_date:
        sent_items.append(
            {"slug": last_slug, "solved": bool(document.get("solved")), "sentDate": sent_date},
        )
    return {
        "lastSentDate": last_sent,
        "sentItems": sent_items,
        "backlogPosition": position,
        "pendingQueue": [],
        "settingsSnapshot": {"dailyQuota": 1, "capturedAt": last_sent},
        "version": 1,
    }


def _upgrade_settings(document: dict[str, Any]) -> dict[str, Any]:
    return _normalized_version(_renamed(document, _SETTINGS_RENAMES))


def _renamed(document: dict[str, Any], renames: dict[str, str]) -> dict[str, Any]:
    upgraded: dict[str, Any] = {}
    for name, value in document.items():
        if name in _DROPPED_FIELDS:
            continue
        target = renames.get(name, name)
        # A current-named field wins over its legacy alias.
        if target != name and target in document:
            continue
        upgraded[target] = copy.deepcopy(value)
    return upgraded


def _normalized_version(document: dict[str, Any]) -> dict[str, Any]:
    # Legacy documents carried semantic-version strings.
    if isinstance(document.get("version"), str):
        document["version"] = 1
    return document
