"""Tests for the remote (HTTP) document repository against a fake document API."""

import asyncio
import json

import httpx
import pytest

from conftest import make_history, make_remote_repo
from isocanvas.exceptions import TransientIOError


class TestList:
    def test_not_found_means_no_versions(self, remote_repo):
        assert asyncio.run(remote_repo.list_documents("doc-1")) == []
        assert remote_repo.documents("doc-1") == []

    def test_returns_server_versions(self, remote_repo, fake_api):
        fake_api.seed("doc-1", make_history("doc-1", ["a", "b"]))
        docs = asyncio.run(remote_repo.list_documents("doc-1"))
        assert [d.content for d in docs] == ["a", "b"]
        assert fake_api.requests[0].url.params["id"] == "doc-1"
        assert fake_api.requests[0].url.path == "/api/document"

    def test_server_error_reports_no_documents_and_keeps_cache(self, remote_repo, fake_api):
        fake_api.seed("doc-1", make_history("doc-1", ["a"]))

        async def scenario():
            await remote_repo.list_documents("doc-1")
            fake_api.failures["GET"] = 503
            return await remote_repo.list_documents("doc-1")

        assert asyncio.run(scenario()) == []
        assert [d.content for d in remote_repo.documents("doc-1")] == ["a"]
        # Retried once per configured attempt.
        assert fake_api.count("GET") == 3

    def test_client_error_is_not_retried(self, remote_repo, fake_api):
        fake_api.failures["GET"] = 400
        assert asyncio.run(remote_repo.list_documents("doc-1")) == []
        assert fake_api.count("GET") == 1

    def test_connection_error_reports_no_documents(self, fake_api):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        repo = make_remote_repo(fake_api, transport=httpx.MockTransport(refuse))
        assert asyncio.run(repo.list_documents("doc-1")) == []
        assert repo.documents("doc-1") is None

    def test_sends_bearer_token(self, fake_api):
        repo = make_remote_repo(fake_api)
        repo.token = "secret-token-123"
        asyncio.run(repo.list_documents("doc-1"))
        assert fake_api.requests[0].headers["Authorization"] == "Bearer secret-token-123"


class TestAppend:
    def test_posts_body_and_appends_returned_document(self, remote_repo, fake_api):
        fake_api.seed("doc-1", make_history("doc-1", ["a"]))

        async def scenario():
            await remote_repo.list_documents("doc-1")
            return await remote_repo.append("doc-1", "b", "Title", "text")

        doc = asyncio.run(scenario())
        post = [r for r in fake_api.requests if r.method == "POST"][0]
        assert json.loads(post.content) == {"title": "Title", "content": "b", "kind": "text"}
        assert doc.content == "b"
        assert [d.content for d in remote_repo.documents("doc-1")] == ["a", "b"]

    def test_append_without_loaded_list_fetches_it(self, remote_repo, fake_api):
        fake_api.seed("doc-1", make_history("doc-1", ["a"]))
        doc = asyncio.run(remote_repo.append("doc-1", "b", "", "text"))
        assert doc.content == "b"
        assert [d.content for d in remote_repo.documents("doc-1")] == ["a", "b"]

    def test_failure_raises_and_leaves_list(self, remote_repo, fake_api):
        fake_api.seed("doc-1", make_history("doc-1", ["a"]))

        async def scenario():
            await remote_repo.list_documents("doc-1")
            fake_api.failures["POST"] = 500
            await remote_repo.append("doc-1", "b", "", "text")

        with pytest.raises(TransientIOError) as exc_info:
            asyncio.run(scenario())
        assert exc_info.value.status_code == 500
        assert [d.content for d in remote_repo.documents("doc-1")] == ["a"]


class TestRestore:
    def test_restore_truncates_on_server_and_locally(self, remote_repo, fake_api):
        docs = make_history("doc-1", ["v0", "v1", "v2", "v3"])
        fake_api.seed("doc-1", docs)

        async def scenario():
            await remote_repo.list_documents("doc-1")
            return await remote_repo.restore("doc-1", docs[1].created_at)

        remaining = asyncio.run(scenario())
        assert [d.content for d in remaining] == ["v0", "v1"]
        assert [d.content for d in fake_api.documents["doc-1"]] == ["v0", "v1"]
        delete = [r for r in fake_api.requests if r.method == "DELETE"][0]
        assert delete.url.params["timestamp"] == docs[1].created_at.isoformat()

    def test_optimistic_list_published_before_delete(self, remote_repo, fake_api):
        docs = make_history("doc-1", ["v0", "v1", "v2"])
        fake_api.seed("doc-1", docs)
        published = []
        remote_repo.subscribe("doc-1", lambda _id, d: published.append([x.content for x in d]))

        async def scenario():
            await remote_repo.list_documents("doc-1")
            await remote_repo.restore("doc-1", docs[0].created_at)

        asyncio.run(scenario())
        assert published[0] == ["v0", "v1", "v2"]
        assert published[1] == ["v0"]

    def test_failed_delete_rolls_back(self, remote_repo, fake_api):
        docs = make_history("doc-1", ["v0", "v1", "v2"])
        fake_api.seed("doc-1", docs)

        async def scenario():
            await remote_repo.list_documents("doc-1")
            fake_api.failures["DELETE"] = 502
            await remote_repo.restore("doc-1", docs[0].created_at)

        with pytest.raises(TransientIOError):
            asyncio.run(scenario())
        assert [d.content for d in remote_repo.documents("doc-1")] == ["v0", "v1", "v2"]

    def test_server_list_wins_on_mismatch(self, remote_repo, fake_api):
        docs = make_history("doc-1", ["v0", "v1", "v2"])
        fake_api.seed("doc-1", docs)
        original_handler = fake_api.handler

        def keep_one_more(request):
            response = original_handler(request)
            if request.method == "DELETE":
                # The server kept one version more than asked.
                fake_api.documents["doc-1"] = docs[:2]
            return response

        repo = make_remote_repo(fake_api, transport=httpx.MockTransport(keep_one_more))

        async def scenario():
            await repo.list_documents("doc-1")
            return await repo.restore("doc-1", docs[0].created_at)

        remaining = asyncio.run(scenario())
        assert [d.content for d in remaining] == ["v0", "v1"]
        assert repo.documents("doc-1") == remaining

    def test_append_waits_for_restore(self, fake_api):
        docs = make_history("doc-1", ["v0", "v1", "v2"])
        fake_api.seed("doc-1", docs)
        gate = {}

        async def gated(request):
            if request.method == "DELETE":
                await gate["release"].wait()
            return fake_api.handler(request)

        repo = make_remote_repo(fake_api, transport=httpx.MockTransport(gated))

        async def scenario():
            gate["release"] = asyncio.Event()
            await repo.list_documents("doc-1")
            restore = asyncio.ensure_future(repo.restore("doc-1", docs[0].created_at))
            append = asyncio.ensure_future(repo.append("doc-1", "new", "", "text"))
            await asyncio.sleep(0.05)
            posted_during_restore = fake_api.count("POST")
            gate["release"].set()
            await asyncio.gather(restore, append)
            return posted_during_restore

        assert asyncio.run(scenario()) == 0
        assert [d.content for d in fake_api.documents["doc-1"]] == ["v0", "new"]
        assert [d.content for d in repo.documents("doc-1")] == ["v0", "new"]


class TestBootstrap:
    def test_appends_initial_content_when_server_empty(self, remote_repo, fake_api):
        docs = asyncio.run(remote_repo.bootstrap("doc-1", "Hello world", "Greeting", "text"))
        assert [d.content for d in docs] == ["Hello world"]
        assert fake_api.count("POST") == 1

    def test_existing_history_is_kept(self, remote_repo, fake_api):
        fake_api.seed("doc-1", make_history("doc-1", ["a"]))
        docs = asyncio.run(remote_repo.bootstrap("doc-1", "other"))
        assert [d.content for d in docs] == ["a"]
        assert fake_api.count("POST") == 0

    def test_read_failure_never_writes(self, remote_repo, fake_api):
        fake_api.failures["GET"] = 500
        assert asyncio.run(remote_repo.bootstrap("doc-1", "content")) == []
        assert fake_api.count("POST") == 0

    def test_concurrent_bootstraps_append_once(self, remote_repo, fake_api):
        async def scenario():
            return await asyncio.gather(
                remote_repo.bootstrap("doc-1", "Hello", "Greeting", "text"),
                remote_repo.bootstrap("doc-1", "Hello", "Greeting", "text"),
            )

        first, second = asyncio.run(scenario())
        assert fake_api.count("POST") == 1
        assert [d.content for d in first] == ["Hello"]
        assert [d.content for d in second] == ["Hello"]
