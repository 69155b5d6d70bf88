from __future__ import annotations

"""Path-addressed, copy-on-write access to an inspection document.

Every write returns a new :class:`Document`; untouched subtrees are shared
between the old and the new snapshot. Lookups that do not resolve raise
:class:`PathNotFoundError` before anything is rebuilt, so a failed call never
yields a half-edited document.

Examples
--------
>>> doc2 = insert_at(doc, None, None, Topic(name="Sala"))
>>> doc3, removed = remove_at(doc2, NodePath(0))
"""

import dataclasses
from typing import Callable, Iterator, Optional, Tuple, Union

from inspection_toolkit.core.errors import InvalidDestinationError, PathNotFoundError
from inspection_toolkit.core.models import (
    Detail,
    Document,
    Item,
    Media,
    Node,
    NodeLevel,
    NodePath,
    NonConformity,
    Topic,
)

__all__ = [
    "get",
    "set_node",
    "update_node",
    "insert_at",
    "remove_at",
    "children_of",
    "replace_children",
    "media_of",
    "replace_media",
    "iter_nodes",
    "locate",
]

Container = Union[Document, Topic, Item, Detail]

_CHILD_FIELDS = {
    Document: "topics",
    Topic: "items",
    Item: "details",
    Detail: "non_conformities",
}


def children_of(container: Union[Container, NonConformity]) -> Tuple[Node, ...]:
    """Return the ordered structural children of *container*."""
    field_name = _CHILD_FIELDS.get(type(container))
    if field_name is None:
        raise PathNotFoundError(f"{type(container).__name__} has no structural children")
    return getattr(container, field_name)


def _with_children(container: Container, children) -> Container:
    return dataclasses.replace(container, **{_CHILD_FIELDS[type(container)]: tuple(children)})


def _check_index(seq, index: int, path) -> None:
    if not 0 <= index < len(seq):
        raise PathNotFoundError(f"Index {index} out of range ({len(seq)} siblings)", path)


def get(document: Document, path: NodePath) -> Node:
    """Return the node at *path* or raise :class:`PathNotFoundError`."""
    node: Union[Document, Node] = document
    for index in path.indices:
        if isinstance(node, NonConformity):
            raise PathNotFoundError("Non-conformities have no children", path)
        seq = children_of(node)
        _check_index(seq, index, path)
        node = seq[index]
    return node  # type: ignore[return-value]


def _rebuild(container: Container, indices: Tuple[int, ...], fn, path) -> Container:
    """Apply *fn* to the child sequence reached by *indices* and rebuild upwards."""
    if not indices:
        return _with_children(container, fn(children_of(container)))
    seq = children_of(container)
    index = indices[0]
    _check_index(seq, index, path)
    child = seq[index]
    if isinstance(child, NonConformity):
        raise PathNotFoundError("Non-conformities have no children", path)
    new_child = _rebuild(child, indices[1:], fn, path)
    return _with_children(container, seq[:index] + (new_child,) + seq[index + 1:])


def _update_children(
    document: Document,
    parent: Optional[NodePath],
    fn: Callable[[Tuple[Node, ...]], Tuple[Node, ...]],
) -> Document:
    indices = parent.indices if parent is not None else ()
    return _rebuild(document, indices, fn, parent)  # type: ignore[return-value]


def set_node(document: Document, path: NodePath, node: Node) -> Document:
    """Return a new document with *node* placed at *path*."""
    if node.level is not path.level:
        raise InvalidDestinationError(
            f"Cannot place a {node.level.label} at a {path.level.label} path", path
        )
    get(document, path)
    index = path.index
    return _update_children(document, path.parent, lambda seq: seq[:index] + (node,) + seq[index + 1:])


def update_node(document: Document, path: NodePath, fn: Callable[[Node], Node]) -> Document:
    """Return a new document where the node at *path* is replaced by ``fn(node)``."""
    return set_node(document, path, fn(get(document, path)))


def insert_at(
    document: Document,
    parent: Optional[NodePath],
    index: Optional[int],
    node: Node,
) -> Document:
    """Insert *node* into the child sequence of *parent* (None = topics).

    An index of None, or one at/after the end, appends.
    """
    expected = NodeLevel.TOPIC if parent is None else parent.level.child
    if expected is None or node.level is not expected:
        where = "<document>" if parent is None else str(parent)
        raise InvalidDestinationError(f"A {node.level.label} cannot be inserted under {where}", parent)
    if parent is not None:
        get(document, parent)

    def _insert(seq):
        at = len(seq) if index is None or index >= len(seq) else index
        return seq[:at] + (node,) + seq[at:]

    return _update_children(document, parent, _insert)


def remove_at(document: Document, path: NodePath) -> Tuple[Document, Node]:
    """Remove the node at *path*; return the new document and the detached node."""
    removed = get(document, path)
    index = path.index
    new_document = _update_children(document, path.parent, lambda seq: seq[:index] + seq[index + 1:])
    return new_document, removed


def replace_children(document: Document, parent: Optional[NodePath], children) -> Document:
    """Return a new document whose child sequence under *parent* is *children*."""
    children = tuple(children)
    expected = NodeLevel.TOPIC if parent is None else parent.level.child
    for child in children:
        if child.level is not expected:
            raise InvalidDestinationError(f"A {child.level.label} cannot be placed under {parent}", parent)
    return _update_children(document, parent, lambda seq: children)


def media_of(document: Document, path: NodePath) -> Tuple[Media, ...]:
    return get(document, path).media


def replace_media(document: Document, path: NodePath, media: Tuple[Media, ...]) -> Document:
    return update_node(document, path, lambda node: dataclasses.replace(node, media=tuple(media)))


def iter_nodes(document: Document) -> Iterator[Tuple[NodePath, Node]]:
    """Yield ``(path, node)`` for every structural node, depth-first in document order."""

    def walk(container, prefix: Tuple[int, ...]):
        if isinstance(container, NonConformity):
            return
        for index, child in enumerate(children_of(container)):
            path = NodePath.from_indices(prefix + (index,))
            yield path, child
            yield from walk(child, prefix + (index,))

    yield from walk(document, ())


def locate(document: Document, uid: str) -> Optional[NodePath]:
    """Return the current path of the node whose session uid is *uid*, if any."""
    for path, node in iter_nodes(document):
        if node.uid == uid:
            return path
    return None
