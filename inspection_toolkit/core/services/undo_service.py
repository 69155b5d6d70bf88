from __future__ import annotations

"""Undo/redo snapshot management for inspection documents.

This service is UI-agnostic and performs pure in-memory history tracking of
whole Document snapshots.

Design principles
-----------------
- No UI imports and no I/O (filesystem/console).
- Snapshots are the immutable Document values produced by the editing
  service; they are stored as-is, never copied nor serialized.
- Redo stack is cleared on every new snapshot push (standard undo/redo behavior).
- Memory usage controlled by a max_history ring-like policy (trim oldest).

"""

from dataclasses import dataclass
from typing import List, Optional

from inspection_toolkit.core.models import Document

__all__ = ["UndoService"]


@dataclass(frozen=True)
class _Snapshot:
    """One history entry.

    Attributes
    ----------
    document :
        The Document value at that point in history.
    label :
        Short description of the edit that produced it (for UI menus).
    """

    document: Document
    label: str = ""


class UndoService:
    """Manage undo/redo stacks of :class:`Document` snapshots.

    Parameters
    ----------
    max_history : int, default=50
        Maximum number of undo snapshots to keep. Oldest entries are discarded
        when the capacity is exceeded. Must be >= 1; if passed lower, it will be
        coerced to 1.

    Notes
    -----
    - Callers push a baseline snapshot BEFORE an edit and the post snapshot
      AFTER it. Pushing a snapshot equal to the current top is ignored, so the
      baseline of an edit and the post snapshot of the previous one collapse
      into a single entry.
    - Push operations clear the redo stack.
    - No I/O or logging is performed here; callers can handle UI feedback.

    Examples
    --------
    >>> svc = UndoService(max_history=10)
    >>> svc.push_snapshot(before)
    >>> svc.push_snapshot(after, "Remove topic")
    >>> svc.undo()          # -> before
    >>> svc.redo()          # -> after
    """

    def __init__(self, max_history: int = 50) -> None:
        self._max_history: int = max(1, int(max_history))
        self._undo_stack: List[_Snapshot] = []
        self._redo_stack: List[_Snapshot] = []

    # --------------------------------------------------------------------- API

    def push_snapshot(self, document: Document, label: str = "") -> None:
        """Push *document* onto the undo stack and clear the redo stack.

        If the undo stack exceeds max_history, the oldest snapshot is dropped.
        """
        if self._undo_stack and self._undo_stack[-1].document is document:
            self._redo_stack.clear()
            return
        self._undo_stack.append(_Snapshot(document, label))
        # New user action invalidates redo history
        self._redo_stack.clear()
        self._trim(self._undo_stack)

    def undo(self) -> Optional[Document]:
        """Return the baseline preceding the latest snapshot, or None.

        Given undo_stack = [..., baseline, post] and current document == post:
        - Pop 'post' from undo_stack and push it onto redo_stack.
        - Return 'baseline', now the top of undo_stack.
        """
        if len(self._undo_stack) < 2:
            return None
        post_snap = self._undo_stack.pop()
        self._redo_stack.append(post_snap)
        self._trim(self._redo_stack)
        return self._undo_stack[-1].document

    def redo(self) -> Optional[Document]:
        """Return the most recently undone snapshot and move it back to the undo stack."""
        if not self._redo_stack:
            return None
        post_snap = self._redo_stack.pop()
        self._undo_stack.append(post_snap)
        self._trim(self._undo_stack)
        return post_snap.document

    def can_undo(self) -> bool:
        """Return True if an undo operation is currently possible."""
        return len(self._undo_stack) > 1

    def can_redo(self) -> bool:
        """Return True if a redo operation is currently possible."""
        return bool(self._redo_stack)

    def undo_label(self) -> str:
        """Label of the edit an undo would revert, or an empty string."""
        return self._undo_stack[-1].label if self.can_undo() else ""

    def redo_label(self) -> str:
        return self._redo_stack[-1].label if self._redo_stack else ""

    def clear(self) -> None:
        """Clear both undo and redo histories."""
        self._undo_stack.clear()
        self._redo_stack.clear()

    # --------------------------------------------------------------- Internals

    def _trim(self, stack: List[_Snapshot]) -> None:
        overflow = len(stack) - self._max_history
        if overflow > 0:
            del stack[0:overflow]
