from __future__ import annotations

"""High-level editing services (structure edits, selection, dirty state, undo).

Services hold no reference to a current document: they receive snapshots and
return new ones, and :class:`~inspection_toolkit.core.session.EditorSession`
wires them together.
"""

from .structure_editing_service import OperationResult, StructureEditingService  # noqa: F401
from .selection_service import (  # noqa: F401
    ItemSelected,
    NoSelection,
    SelectionTracker,
    TopicSelected,
)
from .dirty_state import DirtyStateTracker  # noqa: F401
from .undo_service import UndoService  # noqa: F401

__all__: list[str] = [
    "OperationResult",
    "StructureEditingService",
    "SelectionTracker",
    "NoSelection",
    "TopicSelected",
    "ItemSelected",
    "DirtyStateTracker",
    "UndoService",
]
