"""Artifact workspace: deep module for the single active artifact view.

Owns everything one open artifact needs: the ingestion engine fed by the
delta channel, the repository chosen for the artifact's document id, the
autosave reconciler, the version navigator, diffing and suggestions.
Callers drive it with high-level operations (feed a stream, save content,
navigate, restore, apply a suggestion) and read ``render_props()``; the
coordination between the pieces stays inside.

All methods run on the event loop; background loads are scheduled as tasks.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..editor.conversion import build_content_from_document, parse_or_empty
from ..editor.render import render_html
from ..editor.tree import Node
from ..exceptions import CanvasException, TransientIOError, ValidationError, VersionNotFoundError
from ..repositories.base import VersionedDocumentRepository
from ..repositories.routing import RepositoryRouter, should_fetch
from ..schemas.artifact import Artifact, ArtifactStatus, initial_artifact
from ..schemas.document import Document
from ..schemas.suggestion import Suggestion
from ..schemas.version import VersionChange, ViewMode
from .artifact_kinds import (
    ActionContext,
    ArtifactAction,
    ArtifactMetadataStore,
    ArtifactRegistry,
    default_registry,
)
from .autosave import AutosaveReconciler
from .delta_ingestion import DeltaChannel, DeltaIngestionEngine
from .diff_engine import diff_contents
from .suggestions import apply_suggestion, renderable_suggestions
from .version_navigator import VersionNavigator

logger = logging.getLogger(__name__)


@dataclass
class RenderProps:
    """What a content-kind widget receives."""
    kind: str
    title: str
    content: str
    status: ArtifactStatus
    mode: ViewMode
    is_current_version: bool
    current_version_index: int
    suggestions: list[Suggestion]
    on_save_content: Callable[[str, bool], None]
    is_dirty: bool = False
    diff: Optional[Node] = None


@dataclass(frozen=True)
class ActionState:
    action: ArtifactAction
    disabled: bool


@dataclass
class _OpenDocument:
    document_id: str
    repository: VersionedDocumentRepository
    reconciler: Optional[AutosaveReconciler] = None
    title: str = ""
    kind: str = "text"
    unsubscribe: Callable[[], None] = field(default=lambda: None)


class ArtifactWorkspace:
    """Deep module for one artifact view.

    The caller never coordinates engine, repository, reconciler and
    navigator itself; each public method handles the complete operation.
    Failed writes and restores are reported as notifications (see
    ``notifications`` and ``on_error``) and never raise out of editing
    calls. A kind without a registered definition raises
    ``ConfigurationError`` from ``render_props()`` and ``available_actions()``.
    """

    def __init__(
        self,
        router: RepositoryRouter,
        channel: Optional[DeltaChannel] = None,
        registry: Optional[ArtifactRegistry] = None,
        metadata_store: Optional[ArtifactMetadataStore] = None,
        debounce_seconds: Optional[float] = None,
        on_error: Optional[Callable[[CanvasException], None]] = None,
    ):
        self.router = router
        self.registry = registry or default_registry()
        self.metadata = metadata_store or ArtifactMetadataStore()
        self.navigator = VersionNavigator()
        self.notifications: list[dict] = []
        self._debounce_seconds = debounce_seconds
        self._on_error = on_error
        self._open: Optional[_OpenDocument] = None
        self._background: set[asyncio.Task] = set()
        self._refresh_lock = asyncio.Lock()
        self.engine: Optional[DeltaIngestionEngine] = None
        self._unsubscribe_engine: Callable[[], None] = lambda: None
        self._last_artifact = initial_artifact()
        self.attach(channel or DeltaChannel())

    # ------------------------------------------------------------------
    # Stream
    # ------------------------------------------------------------------

    def attach(self, channel: DeltaChannel) -> DeltaIngestionEngine:
        """Ingest from *channel*, cancelling the stream currently attached."""
        artifact = self._last_artifact
        if self.engine is not None:
            self.engine.cancel()
            self._unsubscribe_engine()
            artifact = self.engine.artifact

        self.engine = DeltaIngestionEngine(channel, self.registry, self.metadata, artifact)
        self._unsubscribe_engine = self.engine.subscribe(self._on_artifact_changed)
        self.engine.process()
        return self.engine

    def open_document(
        self, document_id: str, title: str = "", kind: str = "text", content: str = ""
    ) -> None:
        """Show an existing (or freshly created) document without a stream."""
        if self.engine is None:
            return
        self.engine.set_artifact(
            self.artifact.model_copy(
                update={
                    "document_id": document_id,
                    "title": title,
                    "kind": kind,
                    "content": content,
                    "is_visible": True,
                    "status": ArtifactStatus.IDLE,
                }
            )
        )

    def cancel_stream(self) -> None:
        """Stop ingesting; the artifact settles as idle."""
        if self.engine is not None:
            self.engine.cancel()

    @property
    def artifact(self) -> Artifact:
        return self.engine.artifact if self.engine else self._last_artifact

    def _on_artifact_changed(self, artifact: Artifact) -> None:
        previous, self._last_artifact = self._last_artifact, artifact

        current_id = self._open.document_id if self._open else None
        if artifact.document_id == current_id and self._open is not None:
            self._open.title, self._open.kind = artifact.title, artifact.kind
        else:
            self._detach_document(teardown=False)
            if should_fetch(artifact.document_id):
                self._open_document(artifact.document_id)

        if previous.is_streaming and not artifact.is_streaming and self._open is not None:
            # Stream finished: reload the history and write anything held back.
            self._spawn(self._refresh())

    # ------------------------------------------------------------------
    # Document lifecycle
    # ------------------------------------------------------------------

    def _open_document(self, document_id: str) -> None:
        repository = self.router.for_document(document_id)
        opened = _OpenDocument(
            document_id, repository, title=self.artifact.title, kind=self.artifact.kind
        )
        # The reconciler outlives a switch to another document, so it only
        # ever sees this document's title, kind and stream.
        opened.reconciler = AutosaveReconciler(
            repository,
            document_id,
            document_info=lambda: (opened.title, opened.kind),
            debounce_seconds=self._debounce_seconds,
            is_suppressed=lambda: (
                self.artifact.document_id == document_id and self.artifact.is_streaming
            ),
            on_error=self._notify_error,
        )
        self._open = opened
        self._open.unsubscribe = repository.subscribe(document_id, self._on_documents_changed)
        self.navigator.sync(repository.documents(document_id))

        definition = self.registry.find(self.artifact.kind)
        if definition is not None and definition.initialize is not None:
            definition.initialize(document_id, self.metadata)

        logger.info(
            "Opened document",
            extra={"document_id": document_id, "backend": repository.backend},
        )
        self._spawn(self._refresh())

    def _detach_document(self, teardown: bool) -> None:
        """Stop following the open document.

        Without *teardown* a scheduled or held write is written now; with it
        the write is dropped.
        """
        if self._open is None:
            return
        self._open.unsubscribe()
        if teardown:
            self._open.reconciler.close()
        else:
            self._spawn(self._write_behind(self._open.reconciler))
        self._open = None
        self.navigator.sync(None)

    async def _write_behind(self, reconciler: AutosaveReconciler) -> None:
        await reconciler.resume()
        await reconciler.flush()

    async def _refresh(self) -> None:
        # One refresh at a time, so two bootstraps never both see an empty history.
        async with self._refresh_lock:
            await self._refresh_locked()

    async def _refresh_locked(self) -> None:
        opened = self._open
        if opened is None:
            return
        artifact = self.artifact
        try:
            if artifact.is_streaming:
                await opened.repository.list_documents(opened.document_id)
            else:
                await opened.repository.bootstrap(
                    opened.document_id, artifact.content, artifact.title, artifact.kind
                )
        except TransientIOError as e:
            self._notify_error(e)
            return
        if not self.artifact.is_streaming:
            await opened.reconciler.resume()

    def _on_documents_changed(self, document_id: str, documents: list[Document]) -> None:
        if self._open is None or document_id != self._open.document_id:
            return
        self.navigator.sync(documents)
        self._mirror_latest(documents)

    def _mirror_latest(self, documents: list[Document]) -> None:
        """While idle the artifact shows the latest persisted content."""
        if not documents or self.artifact.is_streaming or self.engine is None:
            return
        if self._open is not None and self._open.reconciler.pending_write:
            # A newer edit is waiting on the debounce; keep showing it.
            return
        latest = documents[-1].content
        if self.artifact.content != latest:
            self.engine.set_artifact(self.artifact.model_copy(update={"content": latest}))

    def _spawn(self, coro) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _notify_error(self, error: CanvasException) -> None:
        self.notifications.append(error.to_dict())
        if self._on_error is not None:
            self._on_error(error)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def document_id(self) -> Optional[str]:
        return self._open.document_id if self._open else None

    @property
    def repository(self) -> Optional[VersionedDocumentRepository]:
        return self._open.repository if self._open else None

    @property
    def documents(self) -> Optional[list[Document]]:
        return self.navigator.documents

    @property
    def is_current_version(self) -> bool:
        return self.navigator.is_current_version

    @property
    def is_dirty(self) -> bool:
        return self._open.reconciler.dirty if self._open else False

    @property
    def content(self) -> str:
        """Content of the selected version; the live artifact at the latest."""
        if self.is_current_version:
            return self.artifact.content
        return self.navigator.get_document_content_by_index(self.navigator.current_version_index)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def save_content(self, content: str, debounce: bool = True) -> None:
        """Editor callback for every user edit."""
        if self._open is None:
            logger.debug("Edit ignored, no document open")
            return
        if self.is_current_version and not self.artifact.is_streaming and self.engine is not None:
            self.engine.set_artifact(self.artifact.model_copy(update={"content": content}))
        self._open.reconciler.save_content(content, debounce)

    def handle_version_change(self, change: VersionChange) -> None:
        self.navigator.handle_version_change(change)

    async def restore_current_version(self) -> bool:
        """Make the selected version the latest. False when the restore failed."""
        if self._open is None:
            raise ValidationError("No document is open", field="document_id")
        index = self.navigator.current_version_index
        timestamp = self.navigator.get_document_timestamp_by_index(index)
        if timestamp is None:
            raise VersionNotFoundError(self._open.document_id, index)

        try:
            await self._open.repository.restore(self._open.document_id, timestamp)
        except TransientIOError as e:
            self._notify_error(e)
            return False
        return True

    def diff_view(self) -> Optional[Node]:
        """Annotated tree of the selected version against the one before it."""
        pair = self.navigator.diff_pair()
        if pair is None:
            return None
        old, new = pair
        return diff_contents(old.content, new.content)

    def diff_html(self) -> str:
        tree = self.diff_view()
        return render_html(tree) if tree is not None else ""

    def _suggestions(self) -> list[Suggestion]:
        if self._open is None:
            return []
        return self.metadata.suggestions(self._open.document_id)

    def rendered_suggestions(self) -> list[Suggestion]:
        """Suggestions anchored on the content being shown."""
        return renderable_suggestions(parse_or_empty(self.content), self._suggestions())

    async def apply_suggestion(self, suggestion_id: str) -> str:
        """Apply a suggestion to the latest content and save it right away."""
        if self._open is None:
            raise ValidationError("No document is open", field="document_id")
        suggestion = next((s for s in self._suggestions() if s.id == suggestion_id), None)
        if suggestion is None:
            raise ValidationError(f"Unknown suggestion {suggestion_id}", field="suggestion_id")

        tree = apply_suggestion(parse_or_empty(self.artifact.content), suggestion)
        new_content = build_content_from_document(tree)

        document_id = self._open.document_id
        self.metadata.update(
            document_id,
            lambda m: {**m, "suggestions": [s for s in m.get("suggestions", []) if s.id != suggestion_id]},
        )
        self.save_content(new_content, debounce=False)
        await self._open.reconciler.flush()
        return new_content

    def available_actions(self) -> list[ActionState]:
        definition = self.registry.get(self.artifact.kind)
        ctx = ActionContext(
            content=self.content,
            current_version_index=self.navigator.current_version_index,
            is_current_version=self.is_current_version,
            mode=self.navigator.mode,
        )
        return [ActionState(action, action.is_disabled(ctx)) for action in definition.actions]

    def render_props(self) -> RenderProps:
        """Props for the widget of the artifact's kind. Raises ConfigurationError."""
        self.registry.get(self.artifact.kind)
        diff = self.diff_view() if self.navigator.mode == ViewMode.DIFF else None
        return RenderProps(
            kind=self.artifact.kind,
            title=self.artifact.title,
            content=self.content,
            status=self.artifact.status,
            mode=self.navigator.mode,
            is_current_version=self.is_current_version,
            current_version_index=self.navigator.current_version_index,
            suggestions=self.rendered_suggestions(),
            on_save_content=self.save_content,
            is_dirty=self.is_dirty,
            diff=diff,
        )

    def dismiss(self) -> None:
        """Close button: hide while streaming, otherwise reset the artifact."""
        if self.engine is None:
            return
        if self.artifact.is_streaming:
            self.engine.set_artifact(self.artifact.model_copy(update={"is_visible": False}))
        else:
            self.engine.set_artifact(initial_artifact())

    async def settle(self) -> None:
        """Wait for background loads and scheduled writes to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
        if self._open is not None:
            await self._open.reconciler.flush()

    async def close(self) -> None:
        """Tear the view down: stop the stream, drop pending writes, reset."""
        self.cancel_stream()
        self._detach_document(teardown=True)
        for task in list(self._background):
            task.cancel()
        if self.engine is not None:
            self.engine.set_artifact(initial_artifact())
        logger.info("Artifact workspace closed")
