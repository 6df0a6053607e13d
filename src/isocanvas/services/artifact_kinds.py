"""Artifact kind definitions and the per-document metadata they own.

Each content kind (text, image, sheet) registers an ``ArtifactDefinition``:
a stream hook that sees every delta before the reducer does, an optional
initializer run when a document is opened, and the toolbar actions the
kind offers. Kind-specific data (the text kind's suggestions) lives in the
``ArtifactMetadataStore``, never on the Artifact itself.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from pydantic import ValidationError as PydanticValidationError

from ..exceptions import ConfigurationError, MalformedDeltaError
from ..schemas.artifact import Artifact, ArtifactKind
from ..schemas.delta import DeltaEvent, DeltaType
from ..schemas.suggestion import Suggestion
from ..schemas.version import VersionChange, ViewMode

logger = logging.getLogger(__name__)


class ArtifactMetadataStore:
    """Kind-owned metadata per document, keyed ``artifact-metadata-{documentId}``."""

    def __init__(self) -> None:
        self._entries: dict[str, dict] = {}

    @staticmethod
    def key(document_id: str) -> str:
        return f"artifact-metadata-{document_id}"

    def get(self, document_id: str) -> dict:
        return dict(self._entries.get(self.key(document_id), {}))

    def set(self, document_id: str, metadata: dict) -> None:
        self._entries[self.key(document_id)] = dict(metadata)

    def update(self, document_id: str, fn: Callable[[dict], dict]) -> dict:
        metadata = fn(self.get(document_id))
        self.set(document_id, metadata)
        return metadata

    def clear(self, document_id: str) -> None:
        self._entries.pop(self.key(document_id), None)

    def suggestions(self, document_id: str) -> list[Suggestion]:
        return list(self.get(document_id).get("suggestions", []))


# ---------------------------------------------------------------------------
# Toolbar actions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ActionContext:
    """What an action needs to decide whether it is enabled."""
    content: str
    current_version_index: int
    is_current_version: bool
    mode: ViewMode


@dataclass(frozen=True)
class ArtifactAction:
    name: str
    description: str
    change: Optional[VersionChange] = None  # None: not a navigation action
    is_disabled: Callable[[ActionContext], bool] = lambda ctx: False


def _at_first_version(ctx: ActionContext) -> bool:
    return ctx.current_version_index == 0


def _at_current_version(ctx: ActionContext) -> bool:
    return ctx.is_current_version


VIEW_CHANGES = ArtifactAction(
    name="diff", description="View changes", change=VersionChange.TOGGLE, is_disabled=_at_first_version
)
PREVIOUS_VERSION = ArtifactAction(
    name="prev", description="View Previous version", change=VersionChange.PREV,
    is_disabled=_at_first_version,
)
NEXT_VERSION = ArtifactAction(
    name="next", description="View Next version", change=VersionChange.NEXT,
    is_disabled=_at_current_version,
)
COPY = ArtifactAction(name="copy", description="Copy to clipboard")


# ---------------------------------------------------------------------------
# Definitions and registry
# ---------------------------------------------------------------------------

StreamPartHook = Callable[[DeltaEvent, Artifact, ArtifactMetadataStore], None]
Initializer = Callable[[str, ArtifactMetadataStore], None]


@dataclass(frozen=True)
class ArtifactDefinition:
    kind: str
    description: str
    on_stream_part: Optional[StreamPartHook] = None
    initialize: Optional[Initializer] = None
    actions: tuple[ArtifactAction, ...] = field(default_factory=tuple)


class ArtifactRegistry:
    """Artifact definitions by kind."""

    def __init__(self, definitions: Iterable[ArtifactDefinition] = ()):
        self._definitions: dict[str, ArtifactDefinition] = {}
        for definition in definitions:
            self.register(definition)

    def register(self, definition: ArtifactDefinition) -> None:
        self._definitions[definition.kind] = definition

    def find(self, kind: str) -> Optional[ArtifactDefinition]:
        return self._definitions.get(kind)

    def get(self, kind: str) -> ArtifactDefinition:
        """Definition for *kind*. Raises ConfigurationError if none is registered."""
        definition = self._definitions.get(kind)
        if definition is None:
            raise ConfigurationError(kind)
        return definition

    def kinds(self) -> list[str]:
        return list(self._definitions)


def _text_on_stream_part(delta: DeltaEvent, artifact: Artifact, metadata: ArtifactMetadataStore) -> None:
    if delta.type != DeltaType.SUGGESTION.value:
        return
    if not isinstance(delta.content, dict):
        raise MalformedDeltaError("Suggestion delta content must be an object", delta.content)
    try:
        suggestion = Suggestion.model_validate(delta.content)
    except PydanticValidationError as e:
        raise MalformedDeltaError("Invalid suggestion delta", delta.content) from e

    metadata.update(
        artifact.document_id,
        lambda m: {**m, "suggestions": list(m.get("suggestions", [])) + [suggestion]},
    )
    logger.debug(
        "Stored streamed suggestion",
        extra={"document_id": artifact.document_id, "suggestion_id": suggestion.id},
    )


def text_artifact(
    suggestion_loader: Optional[Callable[[str], list[Suggestion]]] = None,
) -> ArtifactDefinition:
    """Text kind. *suggestion_loader* fetches persisted suggestions on open."""

    def initialize(document_id: str, metadata: ArtifactMetadataStore) -> None:
        suggestions = suggestion_loader(document_id) if suggestion_loader else []
        metadata.set(document_id, {"suggestions": list(suggestions)})

    return ArtifactDefinition(
        kind=ArtifactKind.TEXT.value,
        description="Useful for text content, like drafting essays and emails.",
        on_stream_part=_text_on_stream_part,
        initialize=initialize,
        actions=(VIEW_CHANGES, PREVIOUS_VERSION, NEXT_VERSION, COPY),
    )


def image_artifact() -> ArtifactDefinition:
    return ArtifactDefinition(
        kind=ArtifactKind.IMAGE.value,
        description="Useful for image generation",
        actions=(PREVIOUS_VERSION, NEXT_VERSION, COPY),
    )


def sheet_artifact() -> ArtifactDefinition:
    return ArtifactDefinition(
        kind=ArtifactKind.SHEET.value,
        description="Useful for working with spreadsheets",
        actions=(PREVIOUS_VERSION, NEXT_VERSION, COPY),
    )


def default_registry(
    suggestion_loader: Optional[Callable[[str], list[Suggestion]]] = None,
) -> ArtifactRegistry:
    return ArtifactRegistry([text_artifact(suggestion_loader), image_artifact(), sheet_artifact()])
