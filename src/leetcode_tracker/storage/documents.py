"""Document store collaborators for persisted tracker state."""

from __future__ import annotations

import asyncio
import copy
import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from sqlalchemy import update as sa_update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from leetcode_tracker.errors import VersionConflictError
from leetcode_tracker.storage.alembic_runner import upgrade_head
from leetcode_tracker.storage.common import build_sqlite_engine, to_db_datetime
from leetcode_tracker.storage.sqlmodel_models import DEFAULT_USER_ID, AppUser, StateDocument
from leetcode_tracker.timeutils import utc_now

logger = logging.getLogger(__name__)

Document = dict[str, Any]


@runtime_checkable
class DocumentStore(Protocol):
    """Minimal keyed JSON document store."""

    async def get(self, doc_id: str) -> Document | None: ...

    async def set(self, doc_id: str, document: Document) -> None: ...


@runtime_checkable
class VersionedDocumentStore(DocumentStore, Protocol):
    """Document store that can guard writes by version and write several documents at once."""

    async def compare_and_set(
        self,
        doc_id: str,
        document: Document,
        *,
        expected_version: int | None,
    ) -> None: ...

    async def set_many(self, documents: Mapping[str, Document]) -> None: ...


def document_version(document: Mapping[str, Any] | None) -> int:
    """Version number the store indexes a document under (0 when absent)."""

    if document is None:
        return 0
    version = document.get("version")
    if isinstance(version, bool) or not isinstance(version, int):
        return 0
    return version


class InMemoryDocumentStore:
    """Process-local :class:`DocumentStore` without version guards."""

    def __init__(self, documents: Mapping[str, Document] | None = None) -> None:
        self._documents: dict[str, Document] = {
            doc_id: copy.deepcopy(document) for doc_id, document in (documents or {}).items()
        }

    async def get(self, doc_id: str) -> Document | None:
        document = self._documents.get(doc_id)
        return copy.deepcopy(document) if document is not None else None

    async def set(self, doc_id: str, document: Document) -> None:
        self._documents[doc_id] = copy.deepcopy(document)


class SqliteDocumentStore:
    """Versioned document store backed by SQLModel + SQLite, scoped to one user."""

    def __init__(
        self,
        db_path: Path,
        *,
        user_id: str = DEFAULT_USER_ID,
        user_name: str = "Default User",
        busy_timeout_ms: int = 5000,
    ) -> None:
        self.db_path = db_path
        self.user_id = user_id
        self.user_name = user_name
        self.engine = build_sqlite_engine(db_path=db_path, busy_timeout_ms=busy_timeout_ms)

    def close(self) -> None:
        """Close underlying DB resources."""

        self.engine.dispose()

    def init_schema(self) -> None:
        """Run schema migrations and ensure actor context exists."""

        upgrade_head(self.db_path)
        self._ensure_actor_context()

    async def get(self, doc_id: str) -> Document | None:
        return await asyncio.to_thread(self._get_sync, doc_id)

    async def set(self, doc_id: str, document: Document) -> None:
        await asyncio.to_thread(self._set_many_sync, {doc_id: document})

    async def compare_and_set(
        self,
        doc_id: str,
        document: Document,
        *,
        expected_version: int | None,
    ) -> None:
        await asyncio.to_thread(
            self._compare_and_set_sync,
            doc_id,
            document,
            expected_version,
        )

    async def set_many(self, documents: Mapping[str, Document]) -> None:
        await asyncio.to_thread(self._set_many_sync, dict(documents))

    def _get_sync(self, doc_id: str) -> Document | None:
        with Session(self.engine) as session:
            row = session.exec(
                select(StateDocument).where(
                    col(StateDocument.user_id) == self.user_id,
                    col(StateDocument.doc_id) == doc_id,
                ),
            ).one_or_none()
            if row is None:
                return None
            body = json.loads(row.body)
        if not isinstance(body, dict):
            raise ValueError(f"Stored document {doc_id!r} is not a JSON object")
        return body

    def _compare_and_set_sync(
        self,
        doc_id: str,
        document: Document,
        expected_version: int | None,
    ) -> None:
        now = to_db_datetime(utc_now())
        with Session(self.engine) as session:
            if expected_version is None:
                session.add(
                    StateDocument(
                        user_id=self.user_id,
                        doc_id=doc_id,
                        body=_encode(document),
                        version=document_version(document),
                        updated_at=now,
                    ),
                )
                try:
                    session.commit()
                except IntegrityError as error:
                    session.rollback()
                    raise VersionConflictError(doc_id, expected_version=None) from error
                return

            result = session.exec(
                sa_update(StateDocument)
                .where(
                    col(StateDocument.user_id) == self.user_id,
                    col(StateDocument.doc_id) == doc_id,
                    col(StateDocument.version) == expected_version,
                )
                .values(
                    body=_encode(document),
                    version=document_version(document),
                    updated_at=now,
                ),
            )
            if result.rowcount != 1:
                session.rollback()
                raise VersionConflictError(doc_id, expected_version=expected_version)
            session.commit()
        logger.debug("Stored %s at version %d", doc_id, document_version(document))

    def _set_many_sync(self, documents: Mapping[str, Document]) -> None:
        now = to_db_datetime(utc_now())
        with Session(self.engine) as session:
            for doc_id, document in documents.items():
                row = session.get(StateDocument, (self.user_id, doc_id))
                if row is None:
                    row = StateDocument(user_id=self.user_id, doc_id=doc_id, updated_at=now, body="")
                row.body = _encode(document)
                row.version = document_version(document)
                row.updated_at = now
                session.add(row)
            session.commit()
        logger.debug("Stored %d document(s): %s", len(documents), ", ".join(documents))

    def _ensure_actor_context(self) -> None:
        with Session(self.engine) as session:
            user = session.get(AppUser, self.user_id)
            if user is None:
                session.add(
                    AppUser(
                        user_id=self.user_id,
                        display_name=self.user_name,
                        created_at=utc_now(),
                    ),
                )
            session.commit()


def _encode(document: Mapping[str, Any]) -> str:
    return json.dumps(document, sort_keys=True, ensure_ascii=False)
