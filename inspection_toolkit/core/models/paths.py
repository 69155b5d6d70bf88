from __future__ import annotations

"""Index-tuple addressing for nodes in an inspection document.

A :class:`NodePath` addresses one structural node; its trailing components are
``None`` when the node lives at a shallower level. An :class:`InsertionPoint`
addresses a slot inside a child sequence and is used by add/move operations.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Iterator, Optional, Tuple

__all__ = ["NodeLevel", "NodePath", "InsertionPoint"]


class NodeLevel(IntEnum):
    """Nesting level of a structural node (0 is the document's direct child)."""

    TOPIC = 0
    ITEM = 1
    DETAIL = 2
    NON_CONFORMITY = 3

    @property
    def label(self) -> str:
        return self.name.lower()

    @property
    def child(self) -> Optional["NodeLevel"]:
        if self is NodeLevel.NON_CONFORMITY:
            return None
        return NodeLevel(self + 1)


@dataclass(frozen=True)
class NodePath:
    """Path ``(topic, item?, detail?, nc?)`` to a node.

    Examples
    --------
    >>> NodePath(2).level
    <NodeLevel.TOPIC: 0>
    >>> NodePath(2, 1).parent
    NodePath(topic=2, item=None, detail=None, nc=None)
    """

    topic: int
    item: Optional[int] = None
    detail: Optional[int] = None
    nc: Optional[int] = None

    def __post_init__(self) -> None:
        seen_gap = False
        for value in (self.item, self.detail, self.nc):
            if value is None:
                seen_gap = True
            elif seen_gap:
                raise ValueError(f"Path has a gap before a set component: {self.indices}")
        for value in self.indices:
            if value < 0:
                raise ValueError(f"Path components must be non-negative: {self.indices}")

    @classmethod
    def from_indices(cls, indices) -> "NodePath":
        indices = tuple(indices)
        if not 1 <= len(indices) <= 4:
            raise ValueError(f"Path must have between 1 and 4 components, got {len(indices)}")
        return cls(*indices)

    @property
    def indices(self) -> Tuple[int, ...]:
        return tuple(v for v in (self.topic, self.item, self.detail, self.nc) if v is not None)

    @property
    def level(self) -> NodeLevel:
        return NodeLevel(len(self.indices) - 1)

    @property
    def index(self) -> int:
        """Position of the addressed node inside its parent's child sequence."""
        return self.indices[-1]

    @property
    def parent(self) -> Optional["NodePath"]:
        """Path of the containing node, or None for a Topic (contained by the document)."""
        indices = self.indices
        if len(indices) == 1:
            return None
        return NodePath.from_indices(indices[:-1])

    def child(self, index: int) -> "NodePath":
        if self.level is NodeLevel.NON_CONFORMITY:
            raise ValueError("Non-conformities have no structural children")
        return NodePath.from_indices(self.indices + (index,))

    def sibling(self, index: int) -> "NodePath":
        return NodePath.from_indices(self.indices[:-1] + (index,))

    def ancestors(self) -> Iterator["NodePath"]:
        """Yield the paths of all containing nodes, innermost first."""
        parent = self.parent
        while parent is not None:
            yield parent
            parent = parent.parent

    def is_within(self, other: "NodePath") -> bool:
        """Return True if this path equals *other* or lies in its subtree."""
        mine, theirs = self.indices, other.indices
        return len(mine) >= len(theirs) and mine[: len(theirs)] == theirs

    def __str__(self) -> str:
        return "/".join(str(i) for i in self.indices)


@dataclass(frozen=True)
class InsertionPoint:
    """A slot inside a child sequence.

    ``parent=None`` addresses the document's topic list. ``index=None`` (or an
    index past the end) appends.
    """

    parent: Optional[NodePath] = None
    index: Optional[int] = None

    def __post_init__(self) -> None:
        if self.index is not None and self.index < 0:
            raise ValueError(f"Insertion index must be non-negative, got {self.index}")
        if self.parent is not None and self.parent.level is NodeLevel.NON_CONFORMITY:
            raise ValueError("Non-conformities cannot contain structural children")

    @property
    def level(self) -> NodeLevel:
        """Level of a node inserted at this point."""
        if self.parent is None:
            return NodeLevel.TOPIC
        return NodeLevel(self.parent.level + 1)

    def __str__(self) -> str:
        where = str(self.parent) if self.parent is not None else "<document>"
        slot = "end" if self.index is None else str(self.index)
        return f"{where}[{slot}]"
