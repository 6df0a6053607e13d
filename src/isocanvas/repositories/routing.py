"""Backend selection per document id.

The backend is a pure function of the id's form and is resolved once per id;
call sites receive the repository and never branch on the id again.
"""

import logging

from ..exceptions import ValidationError
from .base import VersionedDocumentRepository

logger = logging.getLogger(__name__)

LOCAL_PREFIX = "local:"
INIT_DOCUMENT_ID = "init"

# Externally supplied ids (placeholders, URLs, inline kinds) live locally.
_LOCAL_ID_PREFIXES = (LOCAL_PREFIX, "http", "text:", "sheet:")
_LOCAL_ID_MARKERS = ("placehold.co",)


def normalize_document_id(document_id: str) -> str:
    """Strip the ``local:`` prefix used to force local storage."""
    if document_id.startswith(LOCAL_PREFIX):
        return document_id[len(LOCAL_PREFIX):]
    return document_id


def is_local_document_id(document_id: str) -> bool:
    if document_id.startswith(_LOCAL_ID_PREFIXES):
        return True
    return any(marker in document_id for marker in _LOCAL_ID_MARKERS)


def should_fetch(document_id: str) -> bool:
    """False for the placeholder id of an artifact that has no document yet."""
    return bool(document_id) and document_id != INIT_DOCUMENT_ID


class RepositoryRouter:
    """Hands out the remote or local repository for a document id.

    The first resolution of an id is remembered, so a document keeps its
    backend for the lifetime of the router.
    """

    def __init__(self, remote: VersionedDocumentRepository, local: VersionedDocumentRepository):
        self.remote = remote
        self.local = local
        self._assigned: dict[str, VersionedDocumentRepository] = {}

    def for_document(self, document_id: str) -> VersionedDocumentRepository:
        if not should_fetch(document_id):
            raise ValidationError(
                f"Document id {document_id!r} has no backing store", field="document_id"
            )
        repository = self._assigned.get(document_id)
        if repository is None:
            repository = self.local if is_local_document_id(document_id) else self.remote
            self._assigned[document_id] = repository
            logger.debug(
                "Resolved document backend",
                extra={"document_id": document_id, "backend": repository.backend},
            )
        return repository

    async def aclose(self) -> None:
        await self.remote.aclose()
        await self.local.aclose()
