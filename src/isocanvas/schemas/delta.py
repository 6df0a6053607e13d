"""Delta stream schemas."""

from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict


class DeltaType(str, Enum):
    """Delta types produced by the generation stream."""
    TEXT_DELTA = "text-delta"
    CODE_DELTA = "code-delta"
    SHEET_DELTA = "sheet-delta"
    IMAGE_DELTA = "image-delta"
    TITLE = "title"
    ID = "id"
    KIND = "kind"
    SUGGESTION = "suggestion"
    CLEAR = "clear"
    FINISH = "finish"


# Deltas whose content replaces the artifact content wholesale.
CONTENT_DELTA_TYPES = frozenset({
    DeltaType.TEXT_DELTA.value,
    DeltaType.CODE_DELTA.value,
    DeltaType.SHEET_DELTA.value,
    DeltaType.IMAGE_DELTA.value,
})


class DeltaEvent(BaseModel):
    """One record of the delta stream: ``{type, content}``.

    ``type`` is kept as a plain string; unknown types are valid records that
    the reducer ignores.
    """
    model_config = ConfigDict(frozen=True)

    type: str
    content: Optional[Union[str, dict[str, Any]]] = None

    @property
    def text(self) -> str:
        """Content as a string ("" when absent or structured)."""
        return self.content if isinstance(self.content, str) else ""
