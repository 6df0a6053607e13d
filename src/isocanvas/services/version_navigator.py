"""Version navigator: which version is shown, and how.

Policy when the version list changes:

* Grows while the user is at the latest version (or has not navigated):
  jump to the new last index and switch to edit mode, even from diff mode.
* Grows while the user is browsing an older version (reached with
  prev/next): index and mode stay where the user put them.
* Shrinks (a restore): jump to the new last index in edit mode and stop
  browsing.

``latest``, or ``next`` onto the last index, ends browsing.
"""

import logging
from datetime import datetime
from typing import Optional

from ..schemas.document import Document
from ..schemas.version import VersionChange, ViewMode

logger = logging.getLogger(__name__)


class VersionNavigator:
    def __init__(self) -> None:
        self.current_version_index = -1
        self.mode = ViewMode.EDIT
        self.browsing = False
        self._documents: Optional[list[Document]] = None

    @property
    def documents(self) -> Optional[list[Document]]:
        return self._documents

    @property
    def is_current_version(self) -> bool:
        """True at the last index, and whenever there is no history loaded."""
        if not self._documents:
            return True
        return self.current_version_index == len(self._documents) - 1

    def sync(self, documents: Optional[list[Document]]) -> None:
        """Adopt a new version list (``None`` = still loading)."""
        previous = len(self._documents) if self._documents else 0
        self._documents = list(documents) if documents is not None else None

        if not self._documents:
            self.current_version_index = -1
            self.mode = ViewMode.EDIT
            self.browsing = False
            return

        last = len(self._documents) - 1
        if previous == 0 or self.current_version_index < 0 or len(self._documents) < previous:
            self._jump_to_latest()
        elif len(self._documents) > previous and not self.browsing:
            self._jump_to_latest()
        else:
            self.current_version_index = min(self.current_version_index, last)

    def _jump_to_latest(self) -> None:
        self.current_version_index = len(self._documents) - 1 if self._documents else -1
        self.mode = ViewMode.EDIT
        self.browsing = False

    def handle_version_change(self, change: VersionChange) -> None:
        change = VersionChange(change)
        if change == VersionChange.TOGGLE:
            self.mode = ViewMode.DIFF if self.mode == ViewMode.EDIT else ViewMode.EDIT
            return
        if not self._documents:
            return

        last = len(self._documents) - 1
        if change == VersionChange.LATEST:
            self._jump_to_latest()
        elif change == VersionChange.PREV:
            self.current_version_index = max(0, self.current_version_index - 1)
            self.browsing = self.current_version_index < last
        elif change == VersionChange.NEXT:
            self.current_version_index = min(last, self.current_version_index + 1)
            self.browsing = self.current_version_index < last

        logger.debug(
            "Version change",
            extra={"change": change.value, "index": self.current_version_index, "mode": self.mode.value},
        )

    def document_at(self, index: int) -> Optional[Document]:
        if not self._documents or index < 0 or index >= len(self._documents):
            return None
        return self._documents[index]

    @property
    def current_document(self) -> Optional[Document]:
        return self.document_at(self.current_version_index)

    def get_document_content_by_index(self, index: int) -> str:
        doc = self.document_at(index)
        return doc.content if doc else ""

    def get_document_timestamp_by_index(self, index: int) -> Optional[datetime]:
        doc = self.document_at(index)
        return doc.created_at if doc else None

    def diff_pair(self) -> Optional[tuple[Document, Document]]:
        """(previous, selected) versions compared in diff mode."""
        old = self.document_at(self.current_version_index - 1)
        new = self.current_document
        if old is None or new is None:
            return None
        return old, new
