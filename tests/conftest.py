"""Shared test fixtures for the IsoCanvas test suite.

The local backend runs against a fresh in-memory SQLite database per test.
The remote backend talks to ``FakeDocumentAPI`` through ``httpx.MockTransport``,
an in-memory stand-in for the document API (GET/POST/DELETE ?id=...).
"""

import json
from datetime import datetime, timedelta, timezone
from typing import Optional

import httpx
import pytest

from isocanvas.database import create_local_engine, create_session_factory
from isocanvas.repositories import (
    LocalDocumentRepository,
    LocalKeyValueStore,
    RemoteDocumentRepository,
    RepositoryRouter,
)
from isocanvas.repositories.base import next_timestamp
from isocanvas.schemas import Document

BASE_TIME = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def make_document(
    document_id: str = "doc-1",
    content: str = "Hello",
    index: int = 0,
    **overrides,
) -> Document:
    """Build a Document whose createdAt is BASE_TIME + *index* minutes."""
    created = BASE_TIME + timedelta(minutes=index)
    defaults = {
        "id": document_id,
        "user_id": "user-1",
        "title": "Untitled",
        "kind": "text",
        "content": content,
        "created_at": created,
        "updated_at": created,
    }
    defaults.update(overrides)
    return Document(**defaults)


def make_history(document_id: str, contents: list[str]) -> list[Document]:
    return [make_document(document_id, content, index=i) for i, content in enumerate(contents)]


class FakeDocumentAPI:
    """In-memory document API.

    ``failures`` maps an HTTP method to a status code every such request
    answers with; ``requests`` records what was received.
    """

    def __init__(self) -> None:
        self.documents: dict[str, list[Document]] = {}
        self.requests: list[httpx.Request] = []
        self.failures: dict[str, int] = {}

    def seed(self, document_id: str, docs: list[Document]) -> None:
        self.documents[document_id] = list(docs)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status = self.failures.get(request.method)
        if status:
            return httpx.Response(status, json={"error": "unavailable"})

        document_id = request.url.params.get("id", "")
        docs = self.documents.get(document_id, [])

        if request.method == "GET":
            if not docs:
                return httpx.Response(404, json={"error": "Not found"})
            return httpx.Response(200, json=[d.to_wire() for d in docs])

        if request.method == "POST":
            body = json.loads(request.content)
            created = next_timestamp(docs)
            doc = Document(
                id=document_id,
                user_id="user-1",
                title=body["title"],
                kind=body["kind"],
                content=body["content"],
                created_at=created,
                updated_at=created,
            )
            self.documents[document_id] = docs + [doc]
            return httpx.Response(200, json=doc.to_wire())

        if request.method == "DELETE":
            upto = datetime.fromisoformat(request.url.params["timestamp"])
            kept = [d for d in docs if d.created_at <= upto]
            self.documents[document_id] = kept
            return httpx.Response(200, json=[d.to_wire() for d in kept])

        return httpx.Response(405)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def count(self, method: str) -> int:
        return sum(1 for r in self.requests if r.method == method)


@pytest.fixture()
def local_store():
    """Key-value store over a private in-memory SQLite database."""
    engine = create_local_engine("sqlite://")
    yield LocalKeyValueStore(create_session_factory(engine))
    engine.dispose()


@pytest.fixture()
def local_repo(local_store):
    return LocalDocumentRepository(local_store, key_prefix="local-document-", user_id="local-user")


@pytest.fixture()
def fake_api():
    return FakeDocumentAPI()


def make_remote_repo(api: FakeDocumentAPI, transport: Optional[httpx.AsyncBaseTransport] = None):
    return RemoteDocumentRepository(
        base_url="http://testserver",
        document_path="/api/document",
        token="",
        timeout=5.0,
        max_retries=2,
        retry_base_delay=0.0,
        transport=transport or api.transport(),
    )


@pytest.fixture()
def remote_repo(fake_api):
    return make_remote_repo(fake_api)


@pytest.fixture()
def router(remote_repo, local_repo):
    return RepositoryRouter(remote_repo, local_repo)
