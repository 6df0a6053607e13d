"""Versioned document repositories."""

from .base import (
    VersionedDocumentRepository,
    get_document_timestamp_by_index,
    next_timestamp,
    truncate_after,
)
from .local_repository import LocalDocumentRepository
from .local_store import LocalKeyValueStore
from .remote_repository import RemoteDocumentRepository
from .routing import (
    RepositoryRouter,
    is_local_document_id,
    normalize_document_id,
    should_fetch,
)

__all__ = [
    "VersionedDocumentRepository",
    "get_document_timestamp_by_index",
    "next_timestamp",
    "truncate_after",
    "LocalDocumentRepository",
    "LocalKeyValueStore",
    "RemoteDocumentRepository",
    "RepositoryRouter",
    "is_local_document_id",
    "normalize_document_id",
    "should_fetch",
]
