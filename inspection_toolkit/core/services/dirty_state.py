from __future__ import annotations

"""Unsaved-changes detection by structural comparison of snapshots."""

import logging
from typing import Optional

from inspection_toolkit.core.models import Document

__all__ = ["DirtyStateTracker"]

logger = logging.getLogger(__name__)


class DirtyStateTracker:
    """Compare the current snapshot with the last persisted one.

    Comparison uses dataclass value equality over the whole tree, so an edit
    followed by its exact inverse reads as clean again and two snapshots that
    share no objects still compare equal when their content matches. Session
    uids are excluded from equality and never make a document dirty.

    Parameters
    ----------
    last_persisted : Document, optional
        Snapshot returned by the persistence collaborator on load. It also
        becomes the initial current snapshot.
    """

    def __init__(self, last_persisted: Optional[Document] = None) -> None:
        self._last_persisted = last_persisted
        self._current = last_persisted

    @property
    def last_persisted(self) -> Optional[Document]:
        return self._last_persisted

    @property
    def current(self) -> Optional[Document]:
        return self._current

    @property
    def has_unsaved_changes(self) -> bool:
        return self._current != self._last_persisted

    def update(self, current: Document) -> bool:
        """Record the latest snapshot and return the recomputed dirty flag."""
        was_dirty = self.has_unsaved_changes
        self._current = current
        dirty = self.has_unsaved_changes
        if dirty != was_dirty:
            logger.debug("Dirty state changed: %s", dirty)
        return dirty

    def mark_persisted(self, document: Optional[Document] = None) -> None:
        """Adopt *document* (default: the current snapshot) as the persisted baseline."""
        if document is None:
            document = self._current
        self._last_persisted = document
        if self._current is None:
            self._current = document

    def reset(self, document: Document) -> None:
        """Start over from a freshly loaded document."""
        self._last_persisted = document
        self._current = document
