from __future__ import annotations

"""Service layer for structural edits on an inspection document.

This module provides a UI-agnostic, testable service that encapsulates the
business logic for manipulating the Topic → Item → Detail → Non-Conformity
tree (adding, duplicating, reordering, removing, relocating nodes and media).

Scope and guarantees:
- Operates purely on immutable Document snapshots: every method takes the
  current snapshot and returns an OperationResult holding the next one. No
  file I/O nor UI imports.
- Conservative behavior with boundary checks; invalid operations return
  OperationResult(success=False, ...) with clear messaging and the unchanged
  snapshot, never raise, and never leave a partially edited tree.
- Cross-level moves convert the moved node (see ``core.coercion``) and report
  dropped fields as CoercionLoss warnings instead of refusing the move.

Examples
--------
Basic usage:

    service = StructureEditingService()
    result = service.reorder(document, NodePath(0, 2), -1)
    if result.success:
        document = result.document
    else:
        print(result.message)

"""

from dataclasses import dataclass
import dataclasses
from datetime import datetime
import logging
from typing import Any, Callable, Dict, FrozenSet, Mapping, Optional, Tuple, Union

from inspection_toolkit.config import ConfigManager
from inspection_toolkit.core import tree_store
from inspection_toolkit.core.coercion import DEFAULT_NAMES, NODE_TYPES, coerce, default_node
from inspection_toolkit.core.errors import (
    CoercionLoss,
    ErrorKind,
    InspectionError,
    InvalidDestinationError,
    InvalidFieldError,
    InvalidSourceError,
    MediaNotFoundError,
    PathNotFoundError,
)
from inspection_toolkit.core.models import (
    DetailType,
    Document,
    DocumentStatus,
    InsertionPoint,
    Media,
    MediaRequirements,
    Node,
    NodeLevel,
    NodePath,
    NonConformity,
    NonConformityStatus,
    Severity,
    new_non_conformity_id,
    new_uid,
    utcnow,
)


__all__ = ["OperationResult", "StructureEditingService", "EDITABLE_FIELDS"]

logger = logging.getLogger(__name__)

Direction = Union[int, str]

_DIRECTIONS = {-1: -1, 1: 1, "up": -1, "down": 1}

# Closed set of editable field names per level; anything else is rejected.
EDITABLE_FIELDS: Dict[NodeLevel, FrozenSet[str]] = {
    NodeLevel.TOPIC: frozenset({"name", "description", "observation"}),
    NodeLevel.ITEM: frozenset({"name", "description", "observation"}),
    NodeLevel.DETAIL: frozenset({
        "name", "type", "required", "value", "observation", "damaged", "options", "media_requirements",
    }),
    NodeLevel.NON_CONFORMITY: frozenset({
        "description", "severity", "status", "corrective_action", "deadline",
    }),
}

_DOCUMENT_FIELDS = frozenset({"title", "observation", "area", "status"})

# Fields that may hold None; cleared text fields become "".
_NULLABLE_FIELDS = frozenset({"value", "deadline", "media_requirements", "created_at", "updated_at"})
_TEXT_FIELDS = frozenset({"name", "description", "observation", "corrective_action"})
_CLEARABLE_TEXT_FIELDS = _TEXT_FIELDS - {"name"}


def _text_value(value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError(f"expected text, got {type(value).__name__}")
    return value


def _flag(value: Any) -> bool:
    if not isinstance(value, bool):
        raise TypeError(f"expected a boolean, got {type(value).__name__}")
    return value


def _options(value: Any) -> Tuple[str, ...]:
    if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
        raise TypeError("options must be a list of strings")
    return tuple(str(v).strip() for v in value if str(v).strip())


_FIELD_CONVERTERS: Dict[str, Callable[[Any], Any]] = {
    "type": DetailType,
    "severity": Severity,
    "status": NonConformityStatus,
    "options": _options,
    "required": _flag,
    "damaged": _flag,
    **{name: _text_value for name in _TEXT_FIELDS},
}


@dataclass(frozen=True)
class OperationResult:
    """Result of a structural editing operation.

    Attributes
    ----------
    success
        Whether the operation completed successfully.
    message
        Human-readable summary suitable for logs or UI display.
    document
        The snapshot to use after the operation: the new one on success, the
        unchanged input on failure or no-op.
    error
        Failure reason when ``success`` is False.
    details
        Optional structured details for diagnostics or caller logic.
    warnings
        Informational signals (e.g. CoercionLoss) attached to a success.
    changed
        False for successful no-ops (e.g. a reorder at the boundary).
    """
    success: bool
    message: str
    document: Optional[Document] = None
    error: Optional[ErrorKind] = None
    details: Optional[Dict[str, Any]] = None
    warnings: Tuple[CoercionLoss, ...] = ()
    changed: bool = False


class StructureEditingService:
    """Encapsulates structural edit operations on an inspection document.

    Design principles:
    - No UI dependencies, no disk I/O.
    - No exceptions for expected invalid actions; return OperationResult.
    - Every method is a pure function of its arguments (plus the clock used
      to stamp new non-conformities), so callers can keep any number of
      snapshots around for undo or comparison.

    Parameters
    ----------
    duplicate_suffix
        Appended to the name of duplicated nodes. Defaults to the editor config.
    default_names
        Names of freshly added nodes per level. Defaults to the editor config.
    clock
        Callable returning the current time, used for non-conformity stamps.
    """

    def __init__(
        self,
        duplicate_suffix: Optional[str] = None,
        default_names: Optional[Mapping[NodeLevel, str]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        editor_cfg = ConfigManager().get_editor_config()
        if duplicate_suffix is None:
            duplicate_suffix = editor_cfg.get("duplicate_suffix", " (Cópia)")
        if default_names is None:
            configured = editor_cfg.get("default_names") or {}
            default_names = {
                level: configured.get(level.label, DEFAULT_NAMES[level]) for level in DEFAULT_NAMES
            }
        nc_cfg = editor_cfg.get("non_conformity") or {}
        self._nc_defaults = {
            "severity": Severity(nc_cfg.get("severity", Severity.BAIXA.value)),
            "status": NonConformityStatus(nc_cfg.get("status", NonConformityStatus.PENDENTE.value)),
        }
        self._duplicate_suffix = duplicate_suffix
        self._names = dict(default_names)
        self._clock = clock or utcnow

    # -------------------------------------------------------------------------
    # Public API: add / duplicate / reorder / remove
    # -------------------------------------------------------------------------

    def add(self, document: Document, parent: Optional[NodePath] = None, **overrides: Any) -> OperationResult:
        """Append a default node to the child sequence of *parent* (None = topics)."""

        def _do() -> OperationResult:
            level = InsertionPoint(parent).level
            logger.info("Edit: add level=%s parent=%s", level.label, parent)
            node = self._new_node(level, **overrides)
            new_doc = tree_store.insert_at(document, parent, None, node)
            path = tree_store.locate(new_doc, node.uid)
            logger.info("Edit OK: add level=%s path=%s", level.label, path)
            return self._ok(new_doc, f"Added {level.label}.", {"path": path, "level": level})

        return self._guard(document, "add", _do)

    def add_topic(self, document: Document, **overrides: Any) -> OperationResult:
        return self.add(document, None, **overrides)

    def add_item(self, document: Document, topic_index: int, **overrides: Any) -> OperationResult:
        return self.add(document, NodePath(topic_index), **overrides)

    def add_detail(self, document: Document, topic_index: int, item_index: int, **overrides: Any) -> OperationResult:
        return self.add(document, NodePath(topic_index, item_index), **overrides)

    def add_non_conformity(
        self, document: Document, topic_index: int, item_index: int, detail_index: int, **overrides: Any
    ) -> OperationResult:
        return self.add(document, NodePath(topic_index, item_index, detail_index), **overrides)

    def duplicate(self, document: Document, path: NodePath) -> OperationResult:
        """Insert a deep copy of the node at *path* right after it.

        Descendants get fresh identities; media are shared by reference (no new
        upload happens), so the copy lists the same Media ids as the original.
        """

        def _do() -> OperationResult:
            logger.info("Edit: duplicate path=%s", path)
            node = tree_store.get(document, path)
            copy = self._fresh_copy(node)
            if hasattr(copy, "name"):
                copy = dataclasses.replace(copy, name=f"{copy.name}{self._duplicate_suffix}")
            new_doc = tree_store.insert_at(document, path.parent, path.index + 1, copy)
            new_path = path.sibling(path.index + 1)
            logger.info("Edit OK: duplicate path=%s copy=%s", path, new_path)
            return self._ok(new_doc, f"Duplicated {node.level.label}.", {"path": new_path, "source": path})

        return self._guard(document, "duplicate", _do)

    def reorder(self, document: Document, path: NodePath, direction: Direction) -> OperationResult:
        """Swap the node at *path* with its sibling in *direction* (-1/+1 or "up"/"down").

        Moving past either end is a successful no-op returning the unchanged document.
        """
        delta = _DIRECTIONS.get(direction)
        if delta is None:
            return OperationResult(
                False,
                f"Unsupported move direction '{direction}'.",
                document,
                ErrorKind.INVALID_DESTINATION,
                {"allowed": [-1, 1, "up", "down"]},
            )

        def _do() -> OperationResult:
            logger.info("Edit: reorder path=%s direction=%d", path, delta)
            tree_store.get(document, path)
            siblings = self._siblings(document, path)
            target = path.index + delta
            if not 0 <= target < len(siblings):
                logger.info("Edit noop: reorder boundary path=%s direction=%d", path, delta)
                where = "up" if delta < 0 else "down"
                return OperationResult(True, f"Cannot move {where} (at boundary).", document,
                                       details={"path": path}, changed=False)
            detached_doc, node = tree_store.remove_at(document, path)
            new_doc = tree_store.insert_at(detached_doc, path.parent, target, node)
            new_path = path.sibling(target)
            logger.info("Edit OK: reorder path=%s -> %s", path, new_path)
            return self._ok(new_doc, "Moved up." if delta < 0 else "Moved down.", {"path": new_path, "source": path})

        return self._guard(document, "reorder", _do)

    def remove(self, document: Document, path: NodePath) -> OperationResult:
        """Delete the node at *path* together with its subtree."""

        def _do() -> OperationResult:
            logger.info("Edit: remove path=%s", path)
            new_doc, removed = tree_store.remove_at(document, path)
            logger.info("Edit OK: remove path=%s level=%s", path, removed.level.label)
            return self._ok(new_doc, f"Removed {removed.level.label}.", {"path": path, "removed": removed})

        return self._guard(document, "remove", _do)

    # -------------------------------------------------------------------------
    # Public API: relocation
    # -------------------------------------------------------------------------

    def move(
        self,
        document: Document,
        source: NodePath,
        destination: InsertionPoint,
        destination_level: Optional[NodeLevel] = None,
    ) -> OperationResult:
        """Relocate the node at *source* to *destination*, converting it if needed.

        *destination* is read against the snapshot passed in: its parent path
        and index refer to positions before the source is detached. When the
        destination level differs from the node's own level the node is
        converted (``core.coercion.coerce``) and any populated field it loses is
        reported as a CoercionLoss warning. The whole operation either commits
        or leaves *document* untouched.
        """

        def _do() -> OperationResult:
            logger.info("Edit: move source=%s dest=%s level=%s", source, destination,
                        destination_level.label if destination_level is not None else "-")
            try:
                node = tree_store.get(document, source)
            except PathNotFoundError as exc:
                raise InvalidSourceError("Move source no longer exists", source, cause=exc) from exc

            level = destination.level
            if destination_level is not None and NodeLevel(destination_level) is not level:
                raise InvalidDestinationError(
                    f"Destination holds {level.label} nodes, not {NodeLevel(destination_level).label}",
                    destination,
                )

            parent_uid = None
            if destination.parent is not None:
                if destination.parent.is_within(source):
                    raise InvalidDestinationError("Cannot move a node into its own subtree", destination)
                parent_uid = tree_store.get(document, destination.parent).uid

            index = destination.index
            if index is not None and destination.parent == source.parent and source.index < index:
                # The slot shifts left once the source is detached from the same parent
                index -= 1
            if destination.parent == source.parent:
                last = len(self._siblings(document, source)) - 1
                slot = last if index is None or index > last else index
                if slot == source.index:
                    logger.info("Edit noop: move source=%s already at destination", source)
                    return OperationResult(True, "Node already at destination.", document, None,
                                           {"source": source, "path": source}, changed=False)

            detached_doc, node = tree_store.remove_at(document, source)
            new_parent = None
            if parent_uid is not None:
                new_parent = tree_store.locate(detached_doc, parent_uid)
                if new_parent is None:
                    raise InvalidDestinationError("Destination vanished while detaching the source", destination)

            moved, loss = coerce(node, level, names=self._names, now=self._clock())
            new_doc = tree_store.insert_at(detached_doc, new_parent, index, moved)
            new_path = tree_store.locate(new_doc, moved.uid)

            warnings: Tuple[CoercionLoss, ...] = ()
            if loss is not None:
                warnings = (loss,)
                logger.warning("Edit: move coercion loss source=%s %s", source, loss)
            converted = node.level is not level
            logger.info("Edit OK: move source=%s -> %s converted=%s", source, new_path, converted)
            message = f"Moved {node.level.label}" + (f" as {level.label}." if converted else ".")
            return self._ok(
                new_doc,
                message,
                {"source": source, "path": new_path, "converted": converted, "from_level": node.level},
                warnings=warnings,
            )

        return self._guard(document, "move", _do)

    def move_media(
        self,
        document: Document,
        source_container: NodePath,
        media_index: int,
        destination_container: NodePath,
    ) -> OperationResult:
        """Transfer one Media from a container's media list to the end of another's."""

        def _do() -> OperationResult:
            logger.info("Edit: move_media source=%s index=%d dest=%s", source_container, media_index, destination_container)
            source_media = tree_store.media_of(document, source_container)
            if not 0 <= media_index < len(source_media):
                raise MediaNotFoundError(
                    f"Media index {media_index} out of range ({len(source_media)} media)", source_container
                )
            destination_media = tree_store.media_of(document, destination_container)
            if source_container == destination_container:
                logger.info("Edit noop: move_media same container=%s", source_container)
                return OperationResult(True, "Media already in destination.", document,
                                       details={"path": source_container}, changed=False)
            media = source_media[media_index]
            if any(m.id == media.id for m in destination_media):
                raise InvalidDestinationError(f"Destination already holds media '{media.id}'", destination_container)

            remaining = source_media[:media_index] + source_media[media_index + 1:]
            new_doc = tree_store.replace_media(document, source_container, remaining)
            new_doc = tree_store.replace_media(new_doc, destination_container, destination_media + (media,))
            logger.info("Edit OK: move_media media=%s -> %s", media.id, destination_container)
            return self._ok(new_doc, "Moved media.", {
                "media_id": media.id,
                "source": source_container,
                "path": destination_container,
                "media_index": len(destination_media),
            })

        return self._guard(document, "move_media", _do)

    # -------------------------------------------------------------------------
    # Public API: media and field edits
    # -------------------------------------------------------------------------

    def add_media(self, document: Document, container: NodePath, media: Media) -> OperationResult:
        """Append *media* to the media list of the node at *container*."""

        def _do() -> OperationResult:
            logger.info("Edit: add_media container=%s media=%s", container, media.id)
            current = tree_store.media_of(document, container)
            if any(m.id == media.id for m in current):
                raise InvalidDestinationError(f"Container already holds media '{media.id}'", container)
            new_doc = tree_store.replace_media(document, container, current + (media,))
            return self._ok(new_doc, "Added media.", {"path": container, "media_id": media.id})

        return self._guard(document, "add_media", _do)

    def attach_media_to(self, document: Document, uid: str, media: Media) -> OperationResult:
        """Append *media* to whichever node currently carries session uid *uid*.

        Used to land finished uploads on the current snapshot: if the node was
        removed meanwhile the media is discarded and the document is unchanged.
        """
        path = tree_store.locate(document, uid)
        if path is None:
            logger.warning("Edit FAIL: attach_media target_removed media=%s", media.id)
            return OperationResult(
                False,
                "Upload target no longer exists; media discarded.",
                document,
                ErrorKind.PATH_NOT_FOUND,
                {"media_id": media.id, "discarded": True},
            )
        return self.add_media(document, path, media)

    def remove_media(self, document: Document, container: NodePath, media_index: int) -> OperationResult:
        def _do() -> OperationResult:
            logger.info("Edit: remove_media container=%s index=%d", container, media_index)
            current = tree_store.media_of(document, container)
            if not 0 <= media_index < len(current):
                raise MediaNotFoundError(f"Media index {media_index} out of range ({len(current)} media)", container)
            removed = current[media_index]
            new_doc = tree_store.replace_media(document, container, current[:media_index] + current[media_index + 1:])
            return self._ok(new_doc, "Removed media.", {"path": container, "media_id": removed.id})

        return self._guard(document, "remove_media", _do)

    def update_fields(self, document: Document, path: NodePath, **changes: Any) -> OperationResult:
        """Set editable fields on the node at *path*.

        Allowed names per level are listed in ``EDITABLE_FIELDS``; enum-valued
        fields accept their string values. Editing a non-conformity refreshes
        its ``updated_at`` stamp.
        """

        def _do() -> OperationResult:
            logger.info("Edit: update_fields path=%s fields=%s", path, ",".join(sorted(changes)))
            node = tree_store.get(document, path)
            values = self._convert_fields(EDITABLE_FIELDS[node.level], changes, path)
            if isinstance(node, NonConformity):
                values["updated_at"] = self._clock()
            new_doc = tree_store.set_node(document, path, dataclasses.replace(node, **values))
            return self._ok(new_doc, f"Updated {node.level.label}.", {"path": path, "fields": sorted(changes)})

        return self._guard(document, "update_fields", _do)

    def update_document(self, document: Document, **changes: Any) -> OperationResult:
        """Set document-level fields (title, observation, area, status)."""

        def _do() -> OperationResult:
            logger.info("Edit: update_document fields=%s", ",".join(sorted(changes)))
            unknown = set(changes) - _DOCUMENT_FIELDS
            if unknown:
                raise InvalidFieldError(f"Not editable on the document: {', '.join(sorted(unknown))}")
            values = dict(changes)
            try:
                if "status" in values:
                    values["status"] = DocumentStatus(values["status"])
                if values.get("area") is not None:
                    values["area"] = float(values["area"])
            except (TypeError, ValueError) as exc:
                raise InvalidFieldError(f"Invalid document field value: {exc}") from exc
            new_doc = dataclasses.replace(document, **values)
            return self._ok(new_doc, "Updated document.", {"fields": sorted(changes)})

        return self._guard(document, "update_document", _do)

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _guard(self, document: Document, action: str, fn: Callable[[], OperationResult]) -> OperationResult:
        """Run *fn*, turning raised errors into a failed result over the unchanged document."""
        try:
            return fn()
        except InspectionError as exc:
            logger.warning("Edit FAIL: %s reason=%s error=%s", action, exc.kind.value, exc)
            return OperationResult(False, str(exc), document, exc.kind, {"path": exc.path})
        except ValueError as exc:
            logger.warning("Edit FAIL: %s reason=invalid_argument error=%s", action, exc)
            return OperationResult(False, str(exc), document, ErrorKind.INVALID_DESTINATION, {"error": str(exc)})
        except Exception as exc:
            logger.error("Edit FAIL: %s error=%s", action, exc, exc_info=True)
            return OperationResult(False, f"Failed to {action.replace('_', ' ')}.", document,
                                   ErrorKind.UNEXPECTED, {"error": str(exc)})

    @staticmethod
    def _ok(
        document: Document,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        warnings: Tuple[CoercionLoss, ...] = (),
    ) -> OperationResult:
        return OperationResult(True, message, document, None, details, warnings, True)

    def _new_node(self, level: NodeLevel, **overrides: Any) -> Node:
        if level is NodeLevel.NON_CONFORMITY:
            overrides = {**self._nc_defaults, **overrides}
        allowed = frozenset(f.name for f in dataclasses.fields(NODE_TYPES[level])) - {"uid"}
        values = self._convert_fields(allowed, overrides, None)
        return default_node(level, names=self._names, now=self._clock(), **values)

    def _fresh_copy(self, node: Node) -> Node:
        """Deep copy with new identities; media tuples are reused as-is."""
        if isinstance(node, NonConformity):
            return dataclasses.replace(node, id=new_non_conformity_id(), uid=new_uid())
        field_name = {NodeLevel.TOPIC: "items", NodeLevel.ITEM: "details", NodeLevel.DETAIL: "non_conformities"}[node.level]
        children = tuple(self._fresh_copy(child) for child in getattr(node, field_name))
        return dataclasses.replace(node, uid=new_uid(), **{field_name: children})

    @staticmethod
    def _siblings(document: Document, path: NodePath) -> Tuple[Node, ...]:
        parent = document if path.parent is None else tree_store.get(document, path.parent)
        return tree_store.children_of(parent)

    @staticmethod
    def _convert_fields(
        allowed: FrozenSet[str], changes: Mapping[str, Any], path: Optional[NodePath]
    ) -> Dict[str, Any]:
        unknown = set(changes) - allowed
        if unknown:
            raise InvalidFieldError(f"Not editable at this level: {', '.join(sorted(unknown))}", path)
        values: Dict[str, Any] = {}
        for name, value in changes.items():
            if value is None:
                if name in _CLEARABLE_TEXT_FIELDS:
                    values[name] = ""
                    continue
                if name not in _NULLABLE_FIELDS:
                    raise InvalidFieldError(f"'{name}' cannot be empty", path)
                values[name] = None
                continue
            converter = _FIELD_CONVERTERS.get(name)
            if name == "media_requirements" and isinstance(value, Mapping):
                converter = lambda v: MediaRequirements(**v)  # noqa: E731
            try:
                values[name] = converter(value) if converter is not None else value
            except (TypeError, ValueError) as exc:
                raise InvalidFieldError(f"Invalid value for '{name}': {value!r}", path) from exc
        return values
