"""Persistence collaborators for tracker state."""

from leetcode_tracker.storage.documents import (
    Document,
    DocumentStore,
    InMemoryDocumentStore,
    SqliteDocumentStore,
    VersionedDocumentStore,
    document_version,
)

__all__ = [
    "Document",
    "DocumentStore",
    "InMemoryDocumentStore",
    "SqliteDocumentStore",
    "VersionedDocumentStore",
    "document_version",
]
