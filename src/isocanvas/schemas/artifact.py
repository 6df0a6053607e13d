"""Artifact schemas."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ArtifactKind(str, Enum):
    """Content kinds with a registered artifact definition by default."""
    TEXT = "text"
    IMAGE = "image"
    SHEET = "sheet"


class ArtifactStatus(str, Enum):
    """Whether deltas are still arriving for the artifact."""
    IDLE = "idle"
    STREAMING = "streaming"


class BoundingBox(BaseModel):
    """Screen rectangle the artifact opened from. Presentational only."""
    model_config = ConfigDict(frozen=True)

    top: float = 0
    left: float = 0
    width: float = 0
    height: float = 0


class Artifact(BaseModel):
    """The live, editable in-memory document of the active view.

    Immutable: every change produces a copy via ``model_copy(update=...)``.
    ``kind`` is a plain string so that an unregistered kind can be detected
    by the registry instead of failing validation.
    """
    model_config = ConfigDict(frozen=True)

    title: str = ""
    document_id: str = "init"  # "init" = no document yet, nothing to fetch
    kind: str = ArtifactKind.TEXT.value
    content: str = ""
    is_visible: bool = False
    status: ArtifactStatus = ArtifactStatus.IDLE
    bounding_box: BoundingBox = Field(default_factory=BoundingBox)

    @property
    def is_streaming(self) -> bool:
        return self.status == ArtifactStatus.STREAMING


def initial_artifact() -> Artifact:
    """The value an artifact is reset to when its view closes."""
    return Artifact()
