"""Autosave reconciler: turn editor callbacks into version appends.

``save_content(content, debounce)`` is what editor widgets call on every
edit. It marks the document dirty at once, then writes either immediately
or after the debounce window. A write only reaches the repository when the
content differs from the latest persisted version, so no-op edits never
create versions and reverting an edit clears the dirty flag.
"""

import asyncio
import logging
from typing import Callable, Optional

from ..core.config import settings
from ..exceptions import TransientIOError
from ..repositories.base import VersionedDocumentRepository

logger = logging.getLogger(__name__)


class AutosaveReconciler:
    """Debounced, deduplicated writes for one document.

    State:
        dirty:         edits exist that are not confirmed written
        pending_write: a debounced write is scheduled

    While ``is_suppressed()`` holds (the artifact is streaming) writes are
    held back; the latest held content is written by ``resume()``.
    Failed writes keep ``dirty`` set and are reported through ``on_error``.
    """

    def __init__(
        self,
        repository: VersionedDocumentRepository,
        document_id: str,
        document_info: Callable[[], tuple[str, str]],
        debounce_seconds: Optional[float] = None,
        is_suppressed: Callable[[], bool] = lambda: False,
        on_error: Optional[Callable[[TransientIOError], None]] = None,
    ):
        self.repository = repository
        self.document_id = document_id
        self._document_info = document_info  # -> (title, kind)
        self.debounce_seconds = (
            debounce_seconds if debounce_seconds is not None else settings.autosave_debounce_seconds
        )
        self._is_suppressed = is_suppressed
        self._on_error = on_error

        self.dirty = False
        self._pending: Optional[asyncio.Task] = None
        self._pending_content: Optional[str] = None
        self._inflight: set[asyncio.Task] = set()
        self._last_issued: Optional[str] = None
        self._held: Optional[str] = None
        self._write_lock = asyncio.Lock()
        self._closed = False

    @property
    def pending_write(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def _persisted_content(self) -> str:
        latest = self.repository.latest(self.document_id)
        return latest.content if latest else ""

    def _expected_content(self) -> str:
        """What the store will hold once the writes already issued land."""
        if self._inflight and self._last_issued is not None:
            return self._last_issued
        return self._persisted_content()

    def save_content(self, content: str, debounce: bool = True) -> None:
        """Record an edit. Must be called from within the running event loop."""
        if self._closed:
            return
        self.dirty = True

        if content == self._expected_content():
            # Reverted to what is (or is about to be) stored: nothing to write.
            self._cancel_pending()
            self._held = None
            self.dirty = bool(self._inflight)
            return

        self._cancel_pending()
        if debounce:
            self._pending = asyncio.ensure_future(self._debounced_write(content))
            self._pending_content = content
            logger.debug(
                "Scheduled debounced write",
                extra={"document_id": self.document_id, "delay": self.debounce_seconds},
            )
        else:
            self._track(content)

    async def _debounced_write(self, content: str) -> None:
        await asyncio.sleep(self.debounce_seconds)
        # Past the timer the write must run to completion; detach it from
        # cancellation of the pending handle.
        self._pending = None
        self._pending_content = None
        self._track(content)

    def _track(self, content: str) -> None:
        task = asyncio.ensure_future(self._write(content))
        self._last_issued = content
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _write(self, content: str) -> None:
        if self._is_suppressed():
            self._held = content
            logger.debug("Write held while streaming", extra={"document_id": self.document_id})
            return

        async with self._write_lock:
            if content == self._persisted_content():
                self._mark_clean()
                return

            title, kind = self._document_info()
            try:
                await self.repository.append(self.document_id, content, title, kind)
            except TransientIOError as e:
                logger.error(
                    "Autosave failed, keeping edits",
                    extra={"document_id": self.document_id, "operation": e.operation},
                )
                if self._on_error is not None:
                    self._on_error(e)
                return

            self._mark_clean()

    def _mark_clean(self) -> None:
        # A newer edit may have been scheduled or issued while this one was in flight.
        current = asyncio.current_task()
        if self.pending_write or any(t is not current and not t.done() for t in self._inflight):
            return
        self.dirty = False

    async def resume(self) -> None:
        """Write the content held back while streaming, if any."""
        held, self._held = self._held, None
        if held is not None:
            await self._write(held)

    async def flush(self) -> None:
        """Run any scheduled write now and wait for in-flight writes."""
        if self.pending_write:
            # Re-issue the scheduled write without waiting out the debounce.
            content = self._pending_content
            self._cancel_pending()
            if content is not None:
                self._track(content)
        if self._inflight:
            await asyncio.gather(*list(self._inflight))

    def _cancel_pending(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None
        self._pending_content = None

    def close(self) -> None:
        """Document teardown: drop the scheduled write."""
        self._closed = True
        self._cancel_pending()
        self._held = None
