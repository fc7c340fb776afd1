from __future__ import annotations

import asyncio
from collections.abc import Iterator
from pathlib import Path

import allure
import pytest

from leetcode_tracker.curriculum import StaticBacklogProvider
from leetcode_tracker.errors import ValidationError, VersionConflictError
from leetcode_tracker.state.models import RECOVERY_DOC_ID, DocumentKey
from leetcode_tracker.state.store import StateStore
from leetcode_tracker.storage.documents import (
    Document,
    DocumentStore,
    InMemoryDocumentStore,
    SqliteDocumentStore,
    VersionedDocumentStore,
)
from tests.conftest import FakeUtcClock, build_engine

pytestmark = [
    allure.epic("State"),
    allure.feature("Versioned Documents & Recovery"),
]

BACKLOG = StaticBacklogProvider.from_slugs(
    ["two-sum", "valid-anagram", "group-anagrams", "top-k-frequent-elements"],
)


def _make_store(documents: DocumentStore, clock: FakeUtcClock) -> StateStore:
    return StateStore(documents, retry=build_engine().engine, backlog=BACKLOG, clock=clock)


def _set_quota(quota: int):
    def _update(document: Document) -> Document:
        document["dailyQuota"] = quota
        return document

    return _update


def _disable_notifications(document: Document) -> Document:
    document["notificationsEnabled"] = False
    return document


def _advance_position(document: Document) -> Document:
    document["backlogPosition"] += 1
    return document


@pytest.fixture()
def sqlite_documents(tmp_path: Path) -> Iterator[SqliteDocumentStore]:
    documents = SqliteDocumentStore(tmp_path / "state.db")
    documents.init_schema()
    yield documents
    documents.close()


def test_sqlite_store_satisfies_versioned_protocol(sqlite_documents: SqliteDocumentStore) -> None:
    assert isinstance(sqlite_documents, VersionedDocumentStore)
    assert not isinstance(InMemoryDocumentStore(), VersionedDocumentStore)


def test_load_returns_defaults_for_missing_documents(utc_clock: FakeUtcClock) -> None:
    store = _make_store(InMemoryDocumentStore(), utc_clock)

    progress = asyncio.run(store.load_progress())
    settings = asyncio.run(store.load_settings())

    assert progress.last_sent_date is None
    assert progress.sent_items == []
    assert progress.backlog_position == 0
    assert progress.version == 1
    assert settings.daily_quota == 1
    assert settings.notifications_enabled is True


def test_atomic_update_bumps_version_by_one(
    sqlite_documents: SqliteDocumentStore,
    utc_clock: FakeUtcClock,
) -> None:
    store = _make_store(sqlite_documents, utc_clock)

    async def _scenario() -> tuple[Document, Document]:
        first = await store.atomic_update(DocumentKey.SETTINGS, _set_quota(3))
        utc_clock.advance(minutes=5)
        second = await store.atomic_update(DocumentKey.SETTINGS, _disable_notifications)
        return first, second

    first, second = asyncio.run(_scenario())

    assert first["version"] == 2
    assert second["version"] == 3
    assert second["createdAt"] == first["createdAt"]
    assert second["updatedAt"] == utc_clock.now.isoformat()
    assert second["lastModified"] == utc_clock.now.isoformat()

    settings = asyncio.run(store.load_settings())
    assert settings.daily_quota == 3
    assert settings.notifications_enabled is False
    assert settings.version == 3


def test_invalid_update_leaves_stored_document_untouched(
    sqlite_documents: SqliteDocumentStore,
    utc_clock: FakeUtcClock,
) -> None:
    store = _make_store(sqlite_documents, utc_clock)
    asyncio.run(store.atomic_update(DocumentKey.SETTINGS, _set_quota(4)))
    before = asyncio.run(sqlite_documents.get("settings"))

    with pytest.raises(ValidationError) as exc_info:
        asyncio.run(store.atomic_update(DocumentKey.SETTINGS, _set_quota(11)))

    assert exc_info.value.field == "dailyQuota"
    assert exc_info.value.context == "settings"
    assert asyncio.run(sqlite_documents.get("settings")) == before


def test_corrupt_document_loads_as_defaults_but_blocks_updates(utc_clock: FakeUtcClock) -> None:
    documents = InMemoryDocumentStore(
        {"settings": {"dailyQuota": "many", "notificationsEnabled": True, "version": 4}},
    )
    store = _make_store(documents, utc_clock)

    settings = asyncio.run(store.load_settings())
    assert settings.daily_quota == 1
    assert settings.version == 1

    with pytest.raises(ValidationError):
        asyncio.run(store.atomic_update(DocumentKey.SETTINGS, _set_quota(2)))
    assert asyncio.run(documents.get("settings"))["dailyQuota"] == "many"


def test_checkpoint_persists_recovery_record(
    sqlite_documents: SqliteDocumentStore,
    utc_clock: FakeUtcClock,
) -> None:
    store = _make_store(sqlite_documents, utc_clock)

    assert asyncio.run(store.latest_checkpoint()) is None

    asyncio.run(store.atomic_update(DocumentKey.SETTINGS, _set_quota(2)))
    checkpoint = asyncio.run(store.checkpoint())
    latest = asyncio.run(store.latest_checkpoint())

    assert latest is not None
    assert latest.checkpoint_id == checkpoint.checkpoint_id
    assert latest.created_at == utc_clock.now
    assert latest.settings.daily_quota == 2
    assert latest.progress_document == checkpoint.progress_document


def test_rollback_restores_both_documents(
    sqlite_documents: SqliteDocumentStore,
    utc_clock: FakeUtcClock,
) -> None:
    store = _make_store(sqlite_documents, utc_clock)

    async def _scenario() -> None:
        await store.atomic_update(DocumentKey.PROGRESS, _advance_position)
        await store.atomic_update(DocumentKey.SETTINGS, _set_quota(2))
        checkpoint = await store.checkpoint()
        utc_clock.advance(minutes=1)
        await store.atomic_update(DocumentKey.PROGRESS, _advance_position)
        await store.atomic_update(DocumentKey.SETTINGS, _set_quota(9))
        await store.rollback(checkpoint)

    asyncio.run(_scenario())
    checkpoint = asyncio.run(store.latest_checkpoint())
    assert checkpoint is not None

    for key in (DocumentKey.PROGRESS, DocumentKey.SETTINGS):
        restored = asyncio.run(sqlite_documents.get(key.value))
        expected = checkpoint.document_for(key)
        # checkpoint v2, overwritten to v3, restored one past that
        assert expected["version"] == 2
        assert restored["version"] == 4
        assert restored["restoredFrom"] == checkpoint.created_at.isoformat()
        strip = ("version", "restoredFrom")
        assert {k: v for k, v in restored.items() if k not in strip} == {
            k: v for k, v in expected.items() if k not in strip
        }

    progress = asyncio.run(store.load_progress())
    settings = asyncio.run(store.load_settings())
    assert progress.backlog_position == 1
    assert settings.daily_quota == 2
    recovery = asyncio.run(sqlite_documents.get(RECOVERY_DOC_ID))
    assert recovery["restoredAt"] == utc_clock.now.isoformat()


def test_rollback_is_idempotent(
    sqlite_documents: SqliteDocumentStore,
    utc_clock: FakeUtcClock,
) -> None:
    store = _make_store(sqlite_documents, utc_clock)

    async def _scenario() -> tuple[Document | None, Document | None]:
        checkpoint = await store.checkpoint()
        await store.atomic_update(DocumentKey.PROGRESS, _advance_position)
        await store.rollback(checkpoint)
        once = await sqlite_documents.get("progress")
        await store.rollback(checkpoint)
        twice = await sqlite_documents.get("progress")
        return once, twice

    once, twice = asyncio.run(_scenario())

    assert once == twice
    assert once is not None
    assert once["backlogPosition"] == 0
    assert once["version"] == 3


def test_rollback_never_lowers_version_after_several_writes(
    sqlite_documents: SqliteDocumentStore,
    utc_clock: FakeUtcClock,
) -> None:
    store = _make_store(sqlite_documents, utc_clock)

    async def _scenario() -> tuple[int, Document | None]:
        await store.atomic_update(DocumentKey.PROGRESS, _advance_position)
        checkpoint = await store.checkpoint()
        await store.atomic_update(DocumentKey.PROGRESS, _advance_position)
        await store.atomic_update(DocumentKey.PROGRESS, _advance_position)
        before = await sqlite_documents.get("progress")
        assert before is not None
        await store.rollback(checkpoint)
        stale = {**before, "backlogPosition": 99, "version": before["version"] + 1}
        with pytest.raises(VersionConflictError):
            await sqlite_documents.compare_and_set(
                "progress",
                stale,
                expected_version=before["version"],
            )
        return before["version"], await sqlite_documents.get("progress")

    version_before, restored = asyncio.run(_scenario())

    assert version_before == 4
    assert restored is not None
    assert restored["version"] == 5
    assert restored["backlogPosition"] == 1


def test_rollback_on_unversioned_store(utc_clock: FakeUtcClock) -> None:
    documents = InMemoryDocumentStore()
    store = _make_store(documents, utc_clock)

    async def _scenario() -> Document | None:
        checkpoint = await store.checkpoint()
        await store.atomic_update(DocumentKey.SETTINGS, _set_quota(5))
        await store.rollback(checkpoint)
        return await documents.get("settings")

    settings = asyncio.run(_scenario())

    assert settings is not None
    assert settings["dailyQuota"] == 1
    assert settings["version"] == 3


def test_compare_and_set_rejects_stale_version(sqlite_documents: SqliteDocumentStore) -> None:
    document = {"dailyQuota": 2, "notificationsEnabled": True, "version": 2}
    asyncio.run(sqlite_documents.compare_and_set("settings", document, expected_version=None))

    with pytest.raises(VersionConflictError):
        asyncio.run(sqlite_documents.compare_and_set("settings", document, expected_version=None))
    with pytest.raises(VersionConflictError) as exc_info:
        asyncio.run(
            sqlite_documents.compare_and_set(
                "settings",
                {**document, "version": 6},
                expected_version=5,
            ),
        )
    assert exc_info.value.expected_version == 5

    asyncio.run(
        sqlite_documents.compare_and_set("settings", {**document, "version": 3}, expected_version=2),
    )
    assert asyncio.run(sqlite_documents.get("settings"))["version"] == 3


class RacingDocuments(SqliteDocumentStore):
    """Lets a competing writer commit right after the next settings read."""

    def __init__(self, db_path: Path) -> None:
        super().__init__(db_path)
        self.competitor: Document | None = None

    async def get(self, doc_id: str) -> Document | None:
        document = await super().get(doc_id)
        if doc_id == "settings" and self.competitor is not None:
            competitor, self.competitor = self.competitor, None
            await super().set(doc_id, competitor)
        return document


def test_lost_version_race_is_retried_on_fresh_document(
    tmp_path: Path,
    utc_clock: FakeUtcClock,
) -> None:
    documents = RacingDocuments(tmp_path / "race.db")
    documents.init_schema()
    store = _make_store(documents, utc_clock)
    try:
        current = asyncio.run(store.atomic_update(DocumentKey.SETTINGS, _set_quota(2)))
        documents.competitor = {**current, "dailyQuota": 7, "version": current["version"] + 1}

        result = asyncio.run(store.atomic_update(DocumentKey.SETTINGS, _disable_notifications))
    finally:
        documents.close()

    assert result["version"] == 4
    assert result["dailyQuota"] == 7
    assert result["notificationsEnabled"] is False
    assert store.retry.metrics.total_attempts >= 2


def test_legacy_documents_are_upgraded_on_read(utc_clock: FakeUtcClock) -> None:
    documents = InMemoryDocumentStore(
        {
            "progress": {
                "lastSlug": "valid-anagram",
                "lastSentDate": "2026-10-18",
                "solved": False,
                "studyPlanPosition": 0,
                "version": "1.0.0",
            },
            "settings": {
                "num_questions": 3,
                "email_enabled": False,
                "migrationHistory": [{"from": "1.0.0"}],
                "version": "2.0.0",
            },
        },
    )
    store = _make_store(documents, utc_clock)

    progress = asyncio.run(store.load_progress())
    settings = asyncio.run(store.load_settings())

    assert progress.backlog_position == 2
    assert [item.slug for item in progress.sent_items] == ["valid-anagram"]
    assert progress.sent_items[0].solved is False
    assert progress.version == 1
    assert settings.daily_quota == 3
    assert settings.notifications_enabled is False


def test_legacy_sqlite_document_accepts_first_update(
    sqlite_documents: SqliteDocumentStore,
    utc_clock: FakeUtcClock,
) -> None:
    asyncio.run(
        sqlite_documents.set(
            "settings",
            {"num_questions": 2, "email_enabled": True, "version": "1.2.0"},
        ),
    )
    store = _make_store(sqlite_documents, utc_clock)

    updated = asyncio.run(store.atomic_update(DocumentKey.SETTINGS, _set_quota(5)))

    assert updated["version"] == 2
    stored = asyncio.run(sqlite_documents.get("settings"))
    assert stored["dailyQuota"] == 5
    assert "num_questions" not in stored
