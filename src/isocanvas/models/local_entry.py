"""Local store entry model."""

from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.sql import func

from ..database import Base


class LocalEntry(Base):
    """One key of the client-local store.

    Document histories live under ``{local_key_prefix}{documentId}`` with a
    JSON array of Documents as value. No expiry.
    """

    __tablename__ = "local_entries"

    key = Column(String(512), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
