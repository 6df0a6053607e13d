"""Client-local keyed store backed by SQLAlchemy."""

from typing import Optional

from sqlalchemy.orm import sessionmaker

from ..models.local_entry import LocalEntry


class LocalKeyValueStore:
    """String key -> string value, no expiry.

    Errors from the database propagate as ``SQLAlchemyError``; callers decide
    whether a failure is recoverable.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def get(self, key: str) -> Optional[str]:
        with self._session_factory() as db:
            entry = db.query(LocalEntry).filter(LocalEntry.key == key).first()
            return entry.value if entry else None

    def set(self, key: str, value: str) -> None:
        with self._session_factory() as db:
            entry = db.query(LocalEntry).filter(LocalEntry.key == key).first()
            if entry:
                entry.value = value
            else:
                db.add(LocalEntry(key=key, value=value))
            db.commit()
