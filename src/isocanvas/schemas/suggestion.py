"""Suggestion schemas."""

from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class Suggestion(BaseModel):
    """A proposed replacement anchored to the document by its text.

    ``selection_start``/``selection_end`` are only meaningful for the tree they
    were projected onto; ``None`` means the anchor text was not found.
    """
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    original_text: str
    suggested_text: str
    description: str = ""
    document_id: Optional[str] = None
    content: Optional[str] = None  # free-text rationale sent by the generator
    selection_start: Optional[int] = None
    selection_end: Optional[int] = None

    @property
    def is_anchored(self) -> bool:
        return self.selection_start is not None and self.selection_end is not None
