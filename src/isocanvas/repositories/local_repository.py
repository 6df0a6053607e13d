"""Version history kept in the client-local keyed store.

One entry per document: key ``{prefix}{documentId}``, value a JSON array of
camelCase Documents. Reads and writes are synchronous; restore rewrites the
array and reloads the list from the store.
"""

import json
import logging
from datetime import datetime
from typing import Callable, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError

from ..core.config import settings
from ..exceptions import TransientIOError
from ..schemas.document import Document
from .base import VersionedDocumentRepository, next_timestamp, ordered, truncate_after
from .local_store import LocalKeyValueStore
from .routing import normalize_document_id

logger = logging.getLogger(__name__)


class LocalDocumentRepository(VersionedDocumentRepository):
    """Overwrite-in-place backend: every change rewrites the whole array."""

    backend = "local"

    def __init__(
        self,
        store: LocalKeyValueStore,
        key_prefix: Optional[str] = None,
        user_id: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        super().__init__()
        self.store = store
        self.key_prefix = key_prefix if key_prefix is not None else settings.local_key_prefix
        self.user_id = user_id if user_id is not None else settings.local_user_id
        self._clock = clock

    def storage_key(self, document_id: str) -> str:
        return f"{self.key_prefix}{normalize_document_id(document_id)}"

    def _read(self, document_id: str) -> list[Document]:
        """Stored versions. Raises TransientIOError when the entry can't be read."""
        try:
            raw = self.store.get(self.storage_key(document_id))
        except SQLAlchemyError as e:
            raise TransientIOError("read", document_id, original_error=e) from e
        if raw is None:
            return []
        try:
            items = json.loads(raw)
            if not isinstance(items, list):
                raise ValueError("stored value is not an array")
            return ordered([Document.model_validate(item) for item in items])
        except (ValueError, PydanticValidationError) as e:
            raise TransientIOError("read", document_id, original_error=e) from e

    def _write(self, document_id: str, docs: list[Document], operation: str) -> None:
        payload = json.dumps([doc.to_wire() for doc in docs])
        try:
            self.store.set(self.storage_key(document_id), payload)
        except SQLAlchemyError as e:
            logger.error(
                "Local store write failed",
                extra={"document_id": document_id, "operation": operation},
                exc_info=True,
            )
            raise TransientIOError(operation, document_id, original_error=e) from e

    def _new_version(self, document_id: str, docs: list[Document], content: str, title: str, kind: str) -> Document:
        created_at = next_timestamp(docs, self._clock() if self._clock else None)
        return Document(
            id=normalize_document_id(document_id),
            user_id=self.user_id,
            title=title,
            kind=kind,
            content=content,
            created_at=created_at,
            updated_at=created_at,
        )

    async def list_documents(self, document_id: str) -> list[Document]:
        try:
            docs = self._read(document_id)
        except TransientIOError as e:
            logger.warning(
                "Could not read local versions, reporting none",
                extra={"document_id": document_id, "error": e.details.get("original_error")},
            )
            return []
        self._publish(document_id, docs)
        return docs

    async def append(self, document_id: str, content: str, title: str, kind: str) -> Document:
        async with self._lock(document_id):
            docs = self._read(document_id)
            doc = self._new_version(document_id, docs, content, title, kind)
            updated = docs + [doc]
            self._write(document_id, updated, "append")
            self._publish(document_id, updated)

        logger.info(
            "Created local version",
            extra={"document_id": document_id, "version_index": len(updated) - 1},
        )
        return doc

    async def restore(self, document_id: str, upto: datetime) -> list[Document]:
        async with self._lock(document_id):
            docs = self._read(document_id)
            kept = truncate_after(docs, upto)
            self._write(document_id, kept, "restore")
            # Full reload: the list is whatever the store now holds.
            reloaded = self._read(document_id)
            self._publish(document_id, reloaded)

        logger.info(
            "Restored local document",
            extra={"document_id": document_id, "removed": len(docs) - len(reloaded)},
        )
        return reloaded

    async def bootstrap(
        self, document_id: str, content: str, title: str = "", kind: str = "text"
    ) -> list[Document]:
        async with self._lock(document_id):
            try:
                docs = self._read(document_id)
            except TransientIOError as e:
                logger.warning(
                    "Could not read local versions during bootstrap",
                    extra={"document_id": document_id, "error": e.details.get("original_error")},
                )
                return []

            if not docs and content:
                docs = [self._new_version(document_id, [], content, title, kind)]
                self._write(document_id, docs, "bootstrap")
                logger.info("Bootstrapped local document", extra={"document_id": document_id})

            self._publish(document_id, docs)
            return docs
