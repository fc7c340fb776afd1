"""Schema validation for persisted state documents.

Validators raise :class:`ValidationError` naming the first offending field; they never
repair documents.
"""

from __future__ import annotations

from typing import Any

from leetcode_tracker.errors import ValidationError
from leetcode_tracker.state.models import MAX_DAILY_QUOTA, MIN_DAILY_QUOTA, DocumentKey
from leetcode_tracker.timeutils import from_iso, parse_iso_date

PROGRESS_CONTEXT = "progress"
SETTINGS_CONTEXT = "settings"


def validate_document(key: DocumentKey, document: Any) -> None:
    if key == DocumentKey.PROGRESS:
        validate_progress(document)
    else:
        validate_settings(document)


def validate_progress(document: Any) -> None:
    ctx = PROGRESS_CONTEXT
    if not isinstance(document, dict):
        raise ValidationError("document must be an object", field="$", value=document, context=ctx)

    last_sent = document.get("lastSentDate")
    if last_sent is not None:
        _require_date(last_sent, field="lastSentDate", context=ctx)

    sent_items = document.get("sentItems")
    if not isinstance(sent_items, list):
        raise ValidationError("must be a list", field="sentItems", value=sent_items, context=ctx)
    unsolved: set[str] = set()
    for index, item in enumerate(sent_items):
        field = f"sentItems[{index}]"
        if not isinstance(item, dict):
            raise ValidationError("must be an object", field=field, value=item, context=ctx)
        slug = item.get("slug")
        if not _non_empty_string(slug):
            raise ValidationError(
                "slug must be a non-empty string",
                field=f"{field}.slug",
                value=slug,
                context=ctx,
            )
        solved = item.get("solved")
        if not isinstance(solved, bool):
            raise ValidationError(
                "must be a boolean",
                field=f"{field}.solved",
                value=solved,
                context=ctx,
            )
        _require_date(item.get("sentDate"), field=f"{field}.sentDate", context=ctx)
        solved_ts = item.get("solvedTimestamp")
        if solved_ts is not None:
            _require_timestamp(solved_ts, field=f"{field}.solvedTimestamp", context=ctx)
        if not solved:
            unsolved.add(slug)

    position = document.get("backlogPosition")
    if not _is_int(position) or position < 0:
        raise ValidationError(
            "must be a non-negative integer",
            field="backlogPosition",
            value=position,
            context=ctx,
        )

    pending = document.get("pendingQueue")
    if not isinstance(pending, list):
        raise ValidationError("must be a list", field="pendingQueue", value=pending, context=ctx)
    for index, slug in enumerate(pending):
        if not _non_empty_string(slug):
            raise ValidationError(
                "slug must be a non-empty string",
                field=f"pendingQueue[{index}]",
                value=slug,
                context=ctx,
            )
        if slug in unsolved:
            raise ValidationError(
                "slug is both pending and sent-unsolved",
                field=f"pendingQueue[{index}]",
                value=slug,
                context=ctx,
            )

    snapshot = document.get("settingsSnapshot")
    if snapshot is not None and not isinstance(snapshot, dict):
        raise ValidationError(
            "must be an object or null",
            field="settingsSnapshot",
            value=snapshot,
            context=ctx,
        )

    _validate_bookkeeping(document, context=ctx)


def validate_settings(document: Any) -> None:
    ctx = SETTINGS_CONTEXT
    if not isinstance(document, dict):
        raise ValidationError("document must be an object", field="$", value=document, context=ctx)

    quota = document.get("dailyQuota")
    if not _is_int(quota) or not MIN_DAILY_QUOTA <= quota <= MAX_DAILY_QUOTA:
        raise ValidationError(
            f"must be an integer between {MIN_DAILY_QUOTA} and {MAX_DAILY_QUOTA}",
            field="dailyQuota",
            value=quota,
            context=ctx,
        )
    enabled = document.get("notificationsEnabled")
    if not isinstance(enabled, bool):
        raise ValidationError(
            "must be a boolean",
            field="notificationsEnabled",
            value=enabled,
            context=ctx,
        )
    for field in ("createdAt", "updatedAt"):
        value = document.get(field)
        if value is not None:
            _require_timestamp(value, field=field, context=ctx)

    _validate_bookkeeping(document, context=ctx)


def _validate_bookkeeping(document: dict[str, Any], *, context: str) -> None:
    version = document.get("version")
    if not _is_int(version) or version < 1:
        raise ValidationError(
            "must be an integer >= 1",
            field="version",
            value=version,
            context=context,
        )
    modified = document.get("lastModified")
    if modified is not None:
        _require_timestamp(modified, field="lastModified", context=context)


def _require_date(value: Any, *, field: str, context: str) -> None:
    if not isinstance(value, str):
        raise ValidationError("must be an ISO date string", field=field, value=value, context=context)
    try:
        parse_iso_date(value)
    except ValueError as error:
        raise ValidationError(
            f"invalid date ({error})",
            field=field,
            value=value,
            context=context,
        ) from error


def _require_timestamp(value: Any, *, field: str, context: str) -> None:
    if not isinstance(value, str):
        raise ValidationError(
            "must be an ISO timestamp string",
            field=field,
            value=value,
            context=context,
        )
    try:
        from_iso(value)
    except ValueError as error:
        raise ValidationError(
            f"invalid timestamp ({error})",
            field=field,
            value=value,
            context=context,
        ) from error


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())
