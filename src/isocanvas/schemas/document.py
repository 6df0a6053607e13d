"""Document (version) schemas.

Documents travel as camelCase JSON (``userId``, ``createdAt``, ...) both on
the remote API and inside the local store; Python code uses snake_case.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel


class Document(BaseModel):
    """One immutable persisted snapshot of an artifact's content."""
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    user_id: str = ""
    title: str = ""
    kind: str = "text"
    content: str = ""
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        # Naive timestamps from older stores are UTC.
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def to_wire(self) -> dict:
        """JSON-ready camelCase dict."""
        return self.model_dump(mode="json", by_alias=True)


class DocumentCreate(BaseModel):
    """Body of ``POST /document?id=...``."""
    title: str
    content: str
    kind: str
