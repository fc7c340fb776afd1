"""Persisted tracker state: typed views, validation, legacy upgrades and the store."""

from leetcode_tracker.state.models import (
    Checkpoint,
    DocumentKey,
    ProgressState,
    SentItem,
    SettingsSnapshot,
    UserSettings,
)
from leetcode_tracker.state.store import StateStore

__all__ = [
    "Checkpoint",
    "DocumentKey",
    "ProgressState",
    "SentItem",
    "SettingsSnapshot",
    "StateStore",
    "UserSettings",
]
