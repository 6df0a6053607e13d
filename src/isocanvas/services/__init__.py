"""Business logic layer: ingestion, autosave, navigation, diff and suggestions."""

from .artifact_kinds import (
    ArtifactAction,
    ArtifactDefinition,
    ArtifactMetadataStore,
    ArtifactRegistry,
    default_registry,
)
from .artifact_service import ArtifactWorkspace, RenderProps
from .autosave import AutosaveReconciler
from .delta_ingestion import DeltaChannel, DeltaIngestionEngine, apply_delta, parse_delta
from .diff_engine import compute_diff, diff_contents, diff_documents, project_text
from .suggestions import (
    apply_suggestion,
    find_positions_in_doc,
    project_with_positions,
    renderable_suggestions,
)
from .version_navigator import VersionNavigator

__all__ = [
    "ArtifactAction",
    "ArtifactDefinition",
    "ArtifactMetadataStore",
    "ArtifactRegistry",
    "default_registry",
    "ArtifactWorkspace",
    "RenderProps",
    "AutosaveReconciler",
    "DeltaChannel",
    "DeltaIngestionEngine",
    "apply_delta",
    "parse_delta",
    "compute_diff",
    "diff_contents",
    "diff_documents",
    "project_text",
    "apply_suggestion",
    "find_positions_in_doc",
    "project_with_positions",
    "renderable_suggestions",
    "VersionNavigator",
]
