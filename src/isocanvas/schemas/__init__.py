"""Pydantic schemas for artifacts, deltas, versions and suggestions."""

from .artifact import (
    Artifact,
    ArtifactKind,
    ArtifactStatus,
    BoundingBox,
    initial_artifact,
)
from .delta import CONTENT_DELTA_TYPES, DeltaEvent, DeltaType
from .document import Document, DocumentCreate
from .suggestion import Suggestion
from .version import VersionChange, ViewMode

__all__ = [
    "Artifact",
    "ArtifactKind",
    "ArtifactStatus",
    "BoundingBox",
    "initial_artifact",
    "CONTENT_DELTA_TYPES",
    "DeltaEvent",
    "DeltaType",
    "Document",
    "DocumentCreate",
    "Suggestion",
    "VersionChange",
    "ViewMode",
]
