"""Versioned state documents with atomic updates and checkpoint/rollback."""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any
from uuid import uuid4

from leetcode_tracker.curriculum import BacklogProvider
from leetcode_tracker.errors import TrackerError
from leetcode_tracker.resilience.engine import RetryPolicyEngine
from leetcode_tracker.state.migration import upgrade_document
from leetcode_tracker.state.models import (
    RECOVERY_DOC_ID,
    Checkpoint,
    DocumentKey,
    ProgressState,
    UserSettings,
    default_document,
)
from leetcode_tracker.state.validation import validate_document
from leetcode_tracker.storage.documents import (
    Document,
    DocumentStore,
    VersionedDocumentStore,
    document_version,
)
from leetcode_tracker.timeutils import utc_now

logger = logging.getLogger(__name__)

UpdateFn = Callable[[Document], Document]


class StateStore:
    """Reads and writes the progress/settings documents of one user.

    Every store call runs through ``retry`` under ``strategy``. With a
    :class:`VersionedDocumentStore` writes are compare-and-set on the version that was read and
    rollback writes all documents in one transaction.
    """

    def __init__(
        self,
        documents: DocumentStore,
        *,
        retry: RetryPolicyEngine,
        backlog: BacklogProvider,
        clock: Callable[[], datetime] = utc_now,
        strategy: str = "normal",
    ) -> None:
        self.documents = documents
        self.retry = retry
        self.backlog = backlog
        self.strategy = strategy
        self._clock = clock
        self._versioned = isinstance(documents, VersionedDocumentStore)

    async def load(self, key: DocumentKey) -> Document:
        """Return the document merged over defaults; degrade to defaults on any failure."""

        async def _read() -> Document:
            document, _ = await self._read_strict(key)
            return document

        try:
            return await self.retry.execute(_read, self.strategy, name=f"load {key.value}")
        except TrackerError as error:
            logger.warning("Falling back to default %s document: %s", key.value, error)
            return default_document(key)

    async def load_progress(self) -> ProgressState:
        return ProgressState.from_document(await self.load(DocumentKey.PROGRESS))

    async def load_settings(self) -> UserSettings:
        return UserSettings.from_document(await self.load(DocumentKey.SETTINGS))

    async def atomic_update(self, key: DocumentKey, fn: UpdateFn) -> Document:
        """Read, apply ``fn``, validate and write ``key`` with ``version`` bumped by one.

        A ``ValidationError`` leaves the stored document untouched and reaches the caller
        unchanged. A lost version race is retried by re-reading and re-applying ``fn``.
        """

        async def _update() -> Document:
            current, stored = await self._read_strict(key)
            updated = fn(copy.deepcopy(current))
            now = self._clock().isoformat()
            updated["version"] = current["version"] + 1
            updated["lastModified"] = now
            if key == DocumentKey.SETTINGS:
                updated["updatedAt"] = now
                if updated.get("createdAt") is None:
                    updated["createdAt"] = now
            validate_document(key, updated)
            await self._write(key.value, updated, stored=stored)
            logger.debug("Committed %s at version %d", key.value, updated["version"])
            return updated

        return await self.retry.execute(_update, self.strategy, name=f"atomic update {key.value}")

    async def checkpoint(self) -> Checkpoint:
        """Snapshot both documents and persist the snapshot as the recovery record."""

        async def _checkpoint() -> Checkpoint:
            progress, _ = await self._read_strict(DocumentKey.PROGRESS)
            settings, _ = await self._read_strict(DocumentKey.SETTINGS)
            checkpoint = Checkpoint(
                checkpoint_id=uuid4().hex,
                created_at=self._clock(),
                progress_document=copy.deepcopy(progress),
                settings_document=copy.deepcopy(settings),
            )
            await self.documents.set(RECOVERY_DOC_ID, checkpoint.to_document())
            return checkpoint

        checkpoint = await self.retry.execute(_checkpoint, self.strategy, name="checkpoint")
        logger.info(
            "Created checkpoint %s (progress v%d, settings v%d)",
            checkpoint.checkpoint_id,
            checkpoint.progress_document["version"],
            checkpoint.settings_document["version"],
        )
        return checkpoint

    async def rollback(self, checkpoint: Checkpoint) -> None:
        """Restore both documents from ``checkpoint``; re-applying it yields the same documents.

        The restored ``version`` is one past the newer of the snapshot and the stored
        document, so a rollback never moves a version backwards.
        """

        restored_from = checkpoint.created_at.isoformat()

        async def _restored(key: DocumentKey) -> Document:
            document = checkpoint.document_for(key)
            document["restoredFrom"] = restored_from
            try:
                current = await self.documents.get(key.value)
            except ValueError as error:
                logger.warning("Overwriting unreadable %s document: %s", key.value, error)
                current = None
            if current is not None and _same_restore(current, document):
                document["version"] = document_version(current)
                return document
            document["version"] = max(document["version"], document_version(current)) + 1
            return document

        async def _rollback() -> None:
            restored = {
                key.value: await _restored(key)
                for key in (DocumentKey.PROGRESS, DocumentKey.SETTINGS)
            }
            recovery = checkpoint.to_document()
            recovery["restoredAt"] = self._clock().isoformat()
            if self._versioned:
                await self.documents.set_many(  # type: ignore[attr-defined]
                    {**restored, RECOVERY_DOC_ID: recovery},
                )
                return
            for doc_id, document in restored.items():
                await self.documents.set(doc_id, document)
            await self.documents.set(RECOVERY_DOC_ID, recovery)

        await self.retry.execute(_rollback, self.strategy, name="rollback")
        logger.warning("Rolled back state to checkpoint %s", checkpoint.checkpoint_id)

    async def latest_checkpoint(self) -> Checkpoint | None:
        async def _read() -> Document | None:
            return await self.documents.get(RECOVERY_DOC_ID)

        document = await self.retry.execute(_read, self.strategy, name="read checkpoint")
        if document is None:
            return None
        return Checkpoint.from_document(document)

    async def _read_strict(self, key: DocumentKey) -> tuple[Document, int | None]:
        """Return the current document and the stored version (``None`` when absent)."""

        raw = await self.documents.get(key.value)
        if raw is None:
            return default_document(key), None
        upgraded, _ = upgrade_document(
            key,
            raw,
            ordered_backlog=self.backlog.ordered_backlog,
            today=self._clock().date().isoformat(),
        )
        merged: dict[str, Any] = {**default_document(key), **upgraded}
        validate_document(key, merged)
        return merged, document_version(raw)

    async def _write(self, doc_id: str, document: Document, *, stored: int | None) -> None:
        if self._versioned:
            await self.documents.compare_and_set(  # type: ignore[attr-defined]
                doc_id,
                document,
                expected_version=stored,
            )
        else:
            await self.documents.set(doc_id, document)


def _same_restore(current: Document, restored: Document) -> bool:
    """True when ``current`` already is ``restored``, written by an earlier rollback."""

    if document_version(current) < 1:
        return False
    return {k: v for k, v in current.items() if k != "version"} == {
        k: v for k, v in restored.items() if k != "version"
    }
