"""Version history kept behind the remote document API.

Endpoints (one resource, selected by query string):
    GET    {path}?id={id}                 -> JSON array of Documents (404 = none yet)
    POST   {path}?id={id}                 body {title, content, kind} -> appends
    DELETE {path}?id={id}&timestamp={t}   -> drops versions created after t
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from ..core.config import settings
from ..exceptions import TransientIOError
from ..schemas.document import Document, DocumentCreate
from .base import VersionedDocumentRepository, next_timestamp, ordered, truncate_after

logger = logging.getLogger(__name__)


class RemoteDocumentRepository(VersionedDocumentRepository):
    """Append-only backend over HTTP.

    Transient failures (connection errors, timeouts, 5xx) are retried with
    exponential backoff; 4xx responses are not. Restore is optimistic: the
    truncated list is published before the DELETE completes and rolled back
    if it fails.
    """

    backend = "remote"

    def __init__(
        self,
        base_url: Optional[str] = None,
        document_path: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_base_delay: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__()
        self.base_url = base_url if base_url is not None else settings.api_url
        self.document_path = document_path if document_path is not None else settings.api_document_path
        self.token = token if token is not None else settings.api_token
        self.timeout = timeout if timeout is not None else settings.api_timeout
        self.max_retries = max_retries if max_retries is not None else settings.api_max_retries
        self.retry_base_delay = (
            retry_base_delay if retry_base_delay is not None else settings.api_retry_base_delay
        )
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            headers: dict[str, str] = {}
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def _request_with_retry(self, method: str, **kwargs: Any) -> httpx.Response:
        """Execute a request against the document resource, retrying transient failures.

        Retries on connection errors, timeouts and 5xx with exponential
        backoff. Client errors (4xx) raise ``HTTPStatusError`` immediately.
        """
        client = await self._get_client()
        last_exc: Exception | None = None

        for attempt in range(self.max_retries):
            try:
                resp = await client.request(method, self.document_path, **kwargs)
                if resp.status_code < 500:
                    resp.raise_for_status()
                    return resp
                # 5xx, retry
                last_exc = httpx.HTTPStatusError(
                    f"Server error {resp.status_code}",
                    request=resp.request,
                    response=resp,
                )
            except (httpx.ConnectError, httpx.TimeoutException) as exc:
                last_exc = exc

            if attempt < self.max_retries - 1:
                delay = self.retry_base_delay * (2 ** attempt)
                logger.warning(
                    "Request %s %s failed (attempt %d/%d), retrying in %.1fs: %s",
                    method, self.document_path, attempt + 1, self.max_retries, delay, last_exc,
                )
                await asyncio.sleep(delay)

        raise last_exc  # type: ignore[misc]

    async def _fetch(self, document_id: str) -> list[Document]:
        """GET the version list. Raises TransientIOError on failure."""
        try:
            resp = await self._request_with_retry("GET", params={"id": document_id})
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                return []
            raise TransientIOError(
                "read", document_id, original_error=e, status_code=e.response.status_code
            ) from e
        except httpx.HTTPError as e:
            raise TransientIOError("read", document_id, original_error=e) from e

        try:
            payload = resp.json()
            if not isinstance(payload, list):
                raise ValueError("expected a JSON array of documents")
            return ordered([Document.model_validate(item) for item in payload])
        except (ValueError, PydanticValidationError) as e:
            raise TransientIOError("read", document_id, original_error=e) from e

    async def list_documents(self, document_id: str) -> list[Document]:
        try:
            docs = await self._fetch(document_id)
        except TransientIOError as e:
            # Keep whatever was cached; the next read retries.
            logger.warning(
                "Could not fetch versions, reporting none",
                extra={
                    "document_id": document_id,
                    "status_code": e.status_code,
                    "error": e.details.get("original_error"),
                },
            )
            return []
        self._publish(document_id, docs)
        return docs

    async def append(self, document_id: str, content: str, title: str, kind: str) -> Document:
        async with self._lock(document_id):
            doc = await self._append_locked(document_id, content, title, kind)
        logger.info("Created remote version", extra={"document_id": document_id})
        return doc

    async def _append_locked(self, document_id: str, content: str, title: str, kind: str) -> Document:
        """POST one version. The caller holds the document lock."""
        body = DocumentCreate(title=title, content=content, kind=kind)
        try:
            resp = await self._request_with_retry(
                "POST", params={"id": document_id}, json=body.model_dump()
            )
        except httpx.HTTPStatusError as e:
            logger.error(
                "Failed to append version",
                extra={"document_id": document_id, "status_code": e.response.status_code},
            )
            raise TransientIOError(
                "append", document_id, original_error=e, status_code=e.response.status_code
            ) from e
        except httpx.HTTPError as e:
            logger.error("Failed to append version", extra={"document_id": document_id})
            raise TransientIOError("append", document_id, original_error=e) from e

        current = self.documents(document_id)
        if current is None:
            current = await self.list_documents(document_id)
            doc = current[-1] if current else self._created_from_response(
                resp, document_id, [], body
            )
            if not current:
                self._publish(document_id, [doc])
        else:
            doc = self._created_from_response(resp, document_id, current, body)
            self._publish(document_id, current + [doc])

        return doc

    def _created_from_response(
        self, resp: httpx.Response, document_id: str, current: list[Document], body: DocumentCreate
    ) -> Document:
        """The Document the server returned, or one synthesized from the request."""
        try:
            payload = resp.json()
            if isinstance(payload, list) and payload:
                payload = payload[-1]
            if isinstance(payload, dict):
                return Document.model_validate(payload)
        except (ValueError, PydanticValidationError):
            logger.debug("Append response carried no document", extra={"document_id": document_id})
        created_at = next_timestamp(current)
        return Document(
            id=document_id,
            user_id=current[-1].user_id if current else "",
            title=body.title,
            kind=body.kind,
            content=body.content,
            created_at=created_at,
            updated_at=created_at,
        )

    async def restore(self, document_id: str, upto: datetime) -> list[Document]:
        async with self._lock(document_id):
            snapshot = self.documents(document_id)
            if snapshot is None:
                snapshot = await self.list_documents(document_id)

            optimistic = truncate_after(snapshot, upto)
            self._publish(document_id, optimistic)

            try:
                await self._request_with_retry(
                    "DELETE", params={"id": document_id, "timestamp": upto.isoformat()}
                )
            except httpx.HTTPError as e:
                self._publish(document_id, snapshot)
                status_code = e.response.status_code if isinstance(e, httpx.HTTPStatusError) else 0
                logger.error(
                    "Restore failed, version list rolled back",
                    extra={"document_id": document_id, "status_code": status_code},
                )
                raise TransientIOError(
                    "restore", document_id, original_error=e, status_code=status_code
                ) from e

            try:
                confirmed = await self._fetch(document_id)
            except TransientIOError:
                logger.warning(
                    "Could not confirm restore, keeping optimistic list",
                    extra={"document_id": document_id},
                )
                return optimistic

            if confirmed != optimistic:
                logger.warning(
                    "Server version list differs from optimistic restore",
                    extra={
                        "document_id": document_id,
                        "optimistic": len(optimistic),
                        "server": len(confirmed),
                    },
                )
            self._publish(document_id, confirmed)

        logger.info(
            "Restored remote document",
            extra={"document_id": document_id, "versions": len(confirmed)},
        )
        return confirmed

    async def bootstrap(
        self, document_id: str, content: str, title: str = "", kind: str = "text"
    ) -> list[Document]:
        # Fetch, empty check and first append under one lock, so two
        # bootstraps of the same document never both append.
        async with self._lock(document_id):
            try:
                docs = await self._fetch(document_id)
            except TransientIOError as e:
                # Never synthesize a first version over a history we could not read.
                logger.warning(
                    "Could not fetch versions during bootstrap",
                    extra={"document_id": document_id, "status_code": e.status_code},
                )
                return []

            self._publish(document_id, docs)
            if docs or not content:
                return docs
            await self._append_locked(document_id, content, title, kind)
        logger.info("Bootstrapped remote document", extra={"document_id": document_id})
        return self.documents(document_id) or []

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
