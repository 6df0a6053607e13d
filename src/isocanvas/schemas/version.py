"""Version navigation schemas."""

from enum import Enum


class ViewMode(str, Enum):
    """How the selected version is displayed."""
    EDIT = "edit"
    DIFF = "diff"


class VersionChange(str, Enum):
    """Navigation requests from the version toolbar and footer."""
    NEXT = "next"
    PREV = "prev"
    TOGGLE = "toggle"
    LATEST = "latest"
