"""Tests for the autosave reconciler.

Drives the reconciler against the local repository with short debounce
windows; writes are observed through the repository's version list.
"""

import asyncio
from unittest.mock import MagicMock, patch

from sqlalchemy.exc import OperationalError

from isocanvas.services.autosave import AutosaveReconciler


def _reconciler(repo, document_id="text:doc", **kwargs):
    kwargs.setdefault("debounce_seconds", 0.01)
    return AutosaveReconciler(repo, document_id, document_info=lambda: ("Title", "text"), **kwargs)


def _contents(repo, document_id="text:doc"):
    return [d.content for d in repo.documents(document_id) or []]


class TestSaveContent:
    def test_duplicate_saves_create_two_versions(self, local_repo):
        async def scenario():
            reconciler = _reconciler(local_repo)
            for content in ["a", "a", "b"]:
                reconciler.save_content(content, debounce=False)
                await reconciler.flush()
            return reconciler

        reconciler = asyncio.run(scenario())
        assert _contents(local_repo) == ["a", "b"]
        assert reconciler.dirty is False

    def test_duplicate_saves_without_waiting(self, local_repo):
        async def scenario():
            reconciler = _reconciler(local_repo)
            for content in ["a", "a", "b"]:
                reconciler.save_content(content, debounce=False)
            await reconciler.flush()

        asyncio.run(scenario())
        assert _contents(local_repo) == ["a", "b"]

    def test_dirty_set_immediately(self, local_repo):
        async def scenario():
            reconciler = _reconciler(local_repo, debounce_seconds=10)
            reconciler.save_content("draft")
            state = (reconciler.dirty, reconciler.pending_write)
            reconciler.close()
            return state

        assert asyncio.run(scenario()) == (True, True)
        assert _contents(local_repo) == []

    def test_debounce_collapses_rapid_edits(self, local_repo):
        async def scenario():
            reconciler = _reconciler(local_repo, debounce_seconds=0.05)
            for content in ["H", "He", "Hel", "Hello"]:
                reconciler.save_content(content)
            await asyncio.sleep(0.1)
            await reconciler.flush()
            return reconciler

        reconciler = asyncio.run(scenario())
        assert _contents(local_repo) == ["Hello"]
        assert reconciler.dirty is False

    def test_revert_before_debounce_clears_dirty(self, local_repo):
        async def scenario():
            await local_repo.append("text:doc", "saved", "Title", "text")
            reconciler = _reconciler(local_repo, debounce_seconds=10)
            reconciler.save_content("saved plus")
            assert reconciler.dirty
            reconciler.save_content("saved")
            return reconciler

        reconciler = asyncio.run(scenario())
        assert reconciler.dirty is False
        assert reconciler.pending_write is False
        assert _contents(local_repo) == ["saved"]

    def test_revert_while_write_in_flight_wins(self, local_repo):
        async def scenario():
            await local_repo.bootstrap("text:doc", "a")
            reconciler = _reconciler(local_repo)
            reconciler.save_content("b", debounce=False)
            reconciler.save_content("a", debounce=False)
            await reconciler.flush()
            return reconciler

        reconciler = asyncio.run(scenario())
        assert _contents(local_repo) == ["a", "b", "a"]
        assert local_repo.latest("text:doc").content == "a"
        assert reconciler.dirty is False

    def test_repeating_in_flight_content_stays_dirty_until_written(self, local_repo):
        async def scenario():
            reconciler = _reconciler(local_repo)
            reconciler.save_content("a", debounce=False)
            reconciler.save_content("a", debounce=False)
            dirty = reconciler.dirty
            await reconciler.flush()
            return dirty, reconciler

        dirty, reconciler = asyncio.run(scenario())
        assert dirty is True
        assert _contents(local_repo) == ["a"]
        assert reconciler.dirty is False

    def test_noop_edit_never_writes(self, local_repo):
        async def scenario():
            await local_repo.append("text:doc", "same", "Title", "text")
            reconciler = _reconciler(local_repo)
            reconciler.save_content("same", debounce=False)
            await reconciler.flush()

        asyncio.run(scenario())
        assert _contents(local_repo) == ["same"]

    def test_flush_writes_scheduled_edit_now(self, local_repo):
        async def scenario():
            reconciler = _reconciler(local_repo, debounce_seconds=10)
            reconciler.save_content("later")
            await reconciler.flush()
            return reconciler

        reconciler = asyncio.run(scenario())
        assert _contents(local_repo) == ["later"]
        assert reconciler.dirty is False

    def test_close_drops_scheduled_write(self, local_repo):
        async def scenario():
            reconciler = _reconciler(local_repo, debounce_seconds=0.01)
            reconciler.save_content("dropped")
            reconciler.close()
            await asyncio.sleep(0.05)

        asyncio.run(scenario())
        assert _contents(local_repo) == []


class TestSuppression:
    def test_writes_held_while_streaming(self, local_repo):
        streaming = {"on": True}

        async def scenario():
            reconciler = _reconciler(local_repo, is_suppressed=lambda: streaming["on"])
            reconciler.save_content("edited mid-stream", debounce=False)
            await reconciler.flush()
            held = _contents(local_repo)
            streaming["on"] = False
            await reconciler.resume()
            return held, reconciler

        held, reconciler = asyncio.run(scenario())
        assert held == []
        assert _contents(local_repo) == ["edited mid-stream"]
        assert reconciler.dirty is False


class TestWriteFailure:
    def test_failure_keeps_dirty_and_notifies(self, local_repo):
        on_error = MagicMock()

        async def scenario():
            reconciler = _reconciler(local_repo, on_error=on_error)
            with patch.object(
                local_repo.store, "set", side_effect=OperationalError("insert", {}, Exception("disk"))
            ):
                reconciler.save_content("unsaved", debounce=False)
                await reconciler.flush()
            return reconciler

        reconciler = asyncio.run(scenario())
        assert reconciler.dirty is True
        on_error.assert_called_once()
        assert on_error.call_args.args[0].operation == "append"
