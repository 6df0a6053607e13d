"""Database models."""

from .local_entry import LocalEntry

__all__ = ["LocalEntry"]
