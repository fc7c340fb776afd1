"""Typed views over the persisted progress and settings documents."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any

from leetcode_tracker.timeutils import from_iso, parse_iso_date

MIN_DAILY_QUOTA = 1
MAX_DAILY_QUOTA = 10
DEFAULT_DAILY_QUOTA = 1
RECOVERY_DOC_ID = "recovery"


class DocumentKey(str, Enum):
    """Persisted state documents."""

    PROGRESS = "progress"
    SETTINGS = "settings"


@dataclass(slots=True)
class SentItem:
    slug: str
    solved: bool
    sent_date: date
    solved_at: datetime | None = None

    def to_document(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "slug": self.slug,
            "solved": self.solved,
            "sentDate": _iso(self.sent_date),
        }
        if self.solved_at is not None:
            payload["solvedTimestamp"] = _iso(self.solved_at)
        return payload


@dataclass(slots=True)
class SettingsSnapshot:
    """Configuration captured when a batch was sent."""

    daily_quota: int = DEFAULT_DAILY_QUOTA
    captured_at: datetime | None = None

    def to_document(self) -> dict[str, Any]:
        return {"dailyQuota": self.daily_quota, "capturedAt": _iso(self.captured_at)}


@dataclass(slots=True)
class ProgressState:
    last_sent_date: date | None = None
    sent_items: list[SentItem] = field(default_factory=list)
    backlog_position: int = 0
    pending_queue: list[str] = field(default_factory=list)
    settings_snapshot: SettingsSnapshot | None = field(default_factory=SettingsSnapshot)
    version: int = 1
    last_modified: datetime | None = None
    restored_from: str | None = None

    def unsolved_slugs(self) -> list[str]:
        return [item.slug for item in self.sent_items if not item.solved]

    def to_document(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "lastSentDate": _iso(self.last_sent_date),
            "sentItems": [item.to_document() for item in self.sent_items],
            "backlogPosition": self.backlog_position,
            "pendingQueue": list(self.pending_queue),
            "settingsSnapshot": (
                self.settings_snapshot.to_document() if self.settings_snapshot else None
            ),
            "version": self.version,
            "lastModified": _iso(self.last_modified),
        }
        if self.restored_from is not None:
            payload["restoredFrom"] = self.restored_from
        return payload

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> ProgressState:
        """Build from a validated document."""

        snapshot = document.get("settingsSnapshot")
        return cls(
            last_sent_date=_parse_date(document.get("lastSentDate")),
            sent_items=[
                SentItem(
                    slug=item["slug"],
                    solved=item["solved"],
                    sent_date=_parse_date(item["sentDate"]),  # type: ignore[arg-type]
                    solved_at=_parse_datetime(item.get("solvedTimestamp")),
                )
                for item in document.get("sentItems") or []
            ],
            backlog_position=document.get("backlogPosition", 0),
            pending_queue=list(document.get("pendingQueue") or []),
            settings_snapshot=(
                SettingsSnapshot(
                    daily_quota=snapshot.get("dailyQuota", DEFAULT_DAILY_QUOTA),
                    captured_at=_parse_datetime(snapshot.get("capturedAt")),
                )
                if isinstance(snapshot, dict)
                else None
            ),
            version=document.get("version", 1),
            last_modified=_parse_datetime(document.get("lastModified")),
            restored_from=document.get("restoredFrom"),
        )


@dataclass(slots=True)
class UserSettings:
    daily_quota: int = DEFAULT_DAILY_QUOTA
    notifications_enabled: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None
    version: int = 1
    last_modified: datetime | None = None
    restored_from: str | None = None

    def to_document(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "dailyQuota": self.daily_quota,
            "notificationsEnabled": self.notifications_enabled,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
            "version": self.version,
            "lastModified": _iso(self.last_modified),
        }
        if self.restored_from is not None:
            payload["restoredFrom"] = self.restored_from
        return payload

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> UserSettings:
        return cls(
            daily_quota=document.get("dailyQuota", DEFAULT_DAILY_QUOTA),
            notifications_enabled=document.get("notificationsEnabled", True),
            created_at=_parse_datetime(document.get("createdAt")),
            updated_at=_parse_datetime(document.get("updatedAt")),
            version=document.get("version", 1),
            last_modified=_parse_datetime(document.get("lastModified")),
            restored_from=document.get("restoredFrom"),
        )


@dataclass(frozen=True, slots=True)
class Checkpoint:
    """Immutable snapshot of both state documents taken before a mutating run."""

    checkpoint_id: str
    created_at: datetime
    progress_document: dict[str, Any]
    settings_document: dict[str, Any]

    @property
    def progress(self) -> ProgressState:
        return ProgressState.from_document(copy.deepcopy(self.progress_document))

    @property
    def settings(self) -> UserSettings:
        return UserSettings.from_document(copy.deepcopy(self.settings_document))

    def document_for(self, key: DocumentKey) -> dict[str, Any]:
        source = self.progress_document if key == DocumentKey.PROGRESS else self.settings_document
        return copy.deepcopy(source)

    def to_document(self) -> dict[str, Any]:
        return {
            "checkpointId": self.checkpoint_id,
            "createdAt": self.created_at.isoformat(),
            "progress": copy.deepcopy(self.progress_document),
            "settings": copy.deepcopy(self.settings_document),
        }

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> Checkpoint:
        created_at = _parse_datetime(document.get("createdAt"))
        if created_at is None:
            raise ValueError("Checkpoint record has no createdAt")
        return cls(
            checkpoint_id=str(document["checkpointId"]),
            created_at=created_at,
            progress_document=copy.deepcopy(document["progress"]),
            settings_document=copy.deepcopy(document["settings"]),
        )


def default_document(key: DocumentKey) -> dict[str, Any]:
    if key == DocumentKey.PROGRESS:
        return ProgressState().to_document()
    return UserSettings().to_document()


def clamp_quota(value: int) -> int:
    return max(MIN_DAILY_QUOTA, min(MAX_DAILY_QUOTA, value))


def _iso(value: date | datetime | None) -> Any:
    # Values that are not dates pass through so validation can report them.
    if isinstance(value, date | datetime):
        return value.isoformat()
    return value


def _parse_date(value: Any) -> date | None:
    if value is None or isinstance(value, date):
        return value
    return parse_iso_date(str(value))


def _parse_datetime(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return from_iso(str(value))
