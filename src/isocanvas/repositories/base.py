"""Versioned document repository interface.

Both backends expose the same contract: an ordered, append-only version list
per document id, suffix truncation by timestamp, and a bootstrap that
synthesizes the first version from known content. The base keeps the
per-document cache, listeners and write locks so subclasses only implement
the storage mechanism.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from ..schemas.document import Document

logger = logging.getLogger(__name__)

Listener = Callable[[str, list[Document]], None]


def ordered(docs: list[Document]) -> list[Document]:
    """Creation-time order; stable for equal timestamps."""
    return sorted(docs, key=lambda d: d.created_at)


def truncate_after(docs: list[Document], upto: datetime) -> list[Document]:
    """Versions created at or before *upto*."""
    return [d for d in docs if d.created_at <= upto]


def next_timestamp(docs: list[Document], now: Optional[datetime] = None) -> datetime:
    """Creation time for a new version, strictly after the latest one."""
    now = now or datetime.now(timezone.utc)
    if docs and now <= docs[-1].created_at:
        return docs[-1].created_at + timedelta(microseconds=1)
    return now


def get_document_timestamp_by_index(docs: Optional[list[Document]], index: int) -> Optional[datetime]:
    if not docs or index < 0 or index >= len(docs):
        return None
    return docs[index].created_at


class VersionedDocumentRepository(ABC):
    """Uniform version-list store.

    ``documents(id)`` is the cached list, ``None`` while it has not been
    loaded (pending). Writes and restores for one document id run one at a
    time: a write issued during a restore waits for it to finish.
    """

    backend: str = ""

    def __init__(self) -> None:
        self._documents: dict[str, list[Document]] = {}
        self._listeners: dict[str, list[Listener]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def documents(self, document_id: str) -> Optional[list[Document]]:
        docs = self._documents.get(document_id)
        return list(docs) if docs is not None else None

    def latest(self, document_id: str) -> Optional[Document]:
        docs = self._documents.get(document_id)
        return docs[-1] if docs else None

    def subscribe(self, document_id: str, listener: Listener) -> Callable[[], None]:
        """Call *listener(document_id, docs)* whenever the list changes."""
        listeners = self._listeners.setdefault(document_id, [])
        listeners.append(listener)

        def unsubscribe() -> None:
            if listener in listeners:
                listeners.remove(listener)

        return unsubscribe

    def _publish(self, document_id: str, docs: list[Document]) -> None:
        self._documents[document_id] = list(docs)
        for listener in list(self._listeners.get(document_id, [])):
            listener(document_id, list(docs))

    def _lock(self, document_id: str) -> asyncio.Lock:
        lock = self._locks.get(document_id)
        if lock is None:
            lock = self._locks[document_id] = asyncio.Lock()
        return lock

    @abstractmethod
    async def list_documents(self, document_id: str) -> list[Document]:
        """Load all versions in creation order. Never raises on I/O failure."""

    @abstractmethod
    async def append(self, document_id: str, content: str, title: str, kind: str) -> Document:
        """Append a new version. Raises TransientIOError; the list is unchanged then."""

    @abstractmethod
    async def restore(self, document_id: str, upto: datetime) -> list[Document]:
        """Drop every version created after *upto*. All-or-nothing."""

    @abstractmethod
    async def bootstrap(
        self, document_id: str, content: str, title: str = "", kind: str = "text"
    ) -> list[Document]:
        """Load the list, synthesizing a first version from *content* if there is none."""

    async def aclose(self) -> None:
        """Release backend resources."""
