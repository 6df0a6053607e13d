"""IsoCanvas: artifact streaming, versioning and diff engine.

Folds streamed deltas into a live artifact, autosaves edits as immutable
versions on a remote or client-local backend, navigates the version
history, and diffs rich document trees.
"""

__version__ = "0.1.0"
