from __future__ import annotations

"""Active topic/item cursor kept consistent across document edits.

The tracker remembers *which node* is selected (by its session uid), not which
index. After every successful edit the session calls :meth:`SelectionTracker.rebase`
with the new snapshot and the numeric indices are recomputed from wherever the
node now lives.
"""

from dataclasses import dataclass
import logging
from typing import Optional, Tuple, Union

from inspection_toolkit.core import tree_store
from inspection_toolkit.core.models import Document, NodeLevel, NodePath

__all__ = [
    "NoSelection",
    "TopicSelected",
    "ItemSelected",
    "SelectionState",
    "SelectionTracker",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NoSelection:
    @property
    def path(self) -> Optional[NodePath]:
        return None


@dataclass(frozen=True)
class TopicSelected:
    topic_index: int

    @property
    def path(self) -> NodePath:
        return NodePath(self.topic_index)


@dataclass(frozen=True)
class ItemSelected:
    topic_index: int
    item_index: int

    @property
    def path(self) -> NodePath:
        return NodePath(self.topic_index, self.item_index)


SelectionState = Union[NoSelection, TopicSelected, ItemSelected]


def _state_for(path: Optional[NodePath]) -> SelectionState:
    if path is None:
        return NoSelection()
    if path.level is NodeLevel.TOPIC:
        return TopicSelected(path.topic)
    return ItemSelected(path.topic, path.item)


class SelectionTracker:
    """Tracks the active topic or item of an editing session.

    Selection is held as the uids of the selected node and its ancestors
    (outermost first), so a node keeps its selection when edits shift its
    index, when it is moved to another parent, or when a move converts an
    Item into a Topic.

    Rebase rules, applied against a new snapshot:

    - the selected node still exists at topic or item level: follow it;
    - it now lives deeper (converted into a Detail or non-conformity): select
      the Item that now contains it;
    - it was removed: fall back to the nearest recorded ancestor that still
      exists, or to :class:`NoSelection`.
    """

    def __init__(self) -> None:
        self._state: SelectionState = NoSelection()
        self._uids: Tuple[str, ...] = ()

    @property
    def state(self) -> SelectionState:
        return self._state

    @property
    def path(self) -> Optional[NodePath]:
        return self._state.path

    def is_selected(self, path: NodePath) -> bool:
        return self.path == path

    # ------------------------------------------------------------ transitions

    def select_topic(self, document: Document, topic_index: int) -> SelectionState:
        """Select the topic at *topic_index*; raises PathNotFoundError if it does not exist."""
        return self._select(document, NodePath(topic_index))

    def select_item(self, document: Document, topic_index: int, item_index: int) -> SelectionState:
        """Select an item; raises PathNotFoundError if it does not exist."""
        return self._select(document, NodePath(topic_index, item_index))

    def clear(self) -> SelectionState:
        self._state = NoSelection()
        self._uids = ()
        return self._state

    def rebase(self, document: Document) -> SelectionState:
        """Recompute the selection against *document* and return the new state."""
        if not self._uids:
            return self._state

        previous = self._state
        target: Optional[NodePath] = None
        located = tree_store.locate(document, self._uids[-1])
        if located is not None:
            # A node converted below item level keeps its containing item selected
            target = NodePath.from_indices(located.indices[:2])
        else:
            for uid in reversed(self._uids[:-1]):
                located = tree_store.locate(document, uid)
                if located is not None:
                    target = NodePath.from_indices(located.indices[:2])
                    break

        if target is None:
            self.clear()
        else:
            self._record(document, target)
        if self._state != previous:
            logger.debug("Selection rebased: %s -> %s", previous, self._state)
        return self._state

    # -------------------------------------------------------------- internals

    def _select(self, document: Document, path: NodePath) -> SelectionState:
        tree_store.get(document, path)
        self._record(document, path)
        logger.debug("Selection: %s", self._state)
        return self._state

    def _record(self, document: Document, path: NodePath) -> None:
        chain = [path, *path.ancestors()]
        self._uids = tuple(tree_store.get(document, p).uid for p in reversed(chain))
        self._state = _state_for(path)
