from __future__ import annotations

"""Editing session: one open inspection document and its editing state.

``EditorSession`` is the single writer of the current-snapshot pointer. Each
edit runs a pure :class:`StructureEditingService` operation against the
current snapshot and, on success, commits the result:

1. swap the snapshot pointer (single assignment under a lock);
2. record undo history (baseline and post snapshots);
3. rebase the selection cursor;
4. recompute the dirty flag;
5. notify subscribers with the new snapshot.

Failed operations change none of the above. Media uploads may run on a worker
thread; the finished upload is attached to whatever snapshot is current at
that moment, by node identity, and is discarded if its target node was
removed while the upload was in flight.
"""

import logging
import threading
from typing import Any, Callable, List, Optional

from inspection_toolkit.config import ConfigManager
from inspection_toolkit.core import tree_store
from inspection_toolkit.core.errors import ErrorKind, InspectionError, UploadError
from inspection_toolkit.core.interfaces import DocumentPersistence, MediaUploader, SnapshotListener
from inspection_toolkit.core.models import Document, InsertionPoint, Media, MediaKind, NodeLevel, NodePath
from inspection_toolkit.core.services.dirty_state import DirtyStateTracker
from inspection_toolkit.core.services.selection_service import SelectionState, SelectionTracker
from inspection_toolkit.core.services.structure_editing_service import OperationResult, StructureEditingService
from inspection_toolkit.core.services.undo_service import UndoService

__all__ = ["EditorSession"]

logger = logging.getLogger(__name__)


class EditorSession:
    """Own the current document snapshot and coordinate the editing services.

    Parameters
    ----------
    persistence : DocumentPersistence
        Back-end used by :meth:`load` and :meth:`save`.
    uploader : MediaUploader, optional
        Back-end used by :meth:`upload_media`. Uploads fail with
        ``ErrorKind.UPLOAD_ERROR`` when none is configured.
    editing_service : StructureEditingService, optional
    undo_service : UndoService, optional
        Defaults to a service sized by ``undo_max_history`` in the editor config.
    """

    def __init__(
        self,
        persistence: DocumentPersistence,
        uploader: Optional[MediaUploader] = None,
        editing_service: Optional[StructureEditingService] = None,
        undo_service: Optional[UndoService] = None,
    ) -> None:
        self.persistence = persistence
        self.uploader = uploader
        self.editing_service = editing_service or StructureEditingService()
        if undo_service is None:
            max_history = ConfigManager().get("editor", "undo_max_history", 50)
            undo_service = UndoService(max_history=max_history)
        self.undo_service = undo_service
        self.selection = SelectionTracker()
        self.dirty_state = DirtyStateTracker()

        self._lock = threading.Lock()
        self._document: Optional[Document] = None
        self._document_id: Optional[str] = None
        self._listeners: List[SnapshotListener] = []
        # Delivery state, guarded by _lock: one thread drains at a time
        self._notify_pending = False
        self._notifying = False
        self.last_saved_at = None

    # ----------------------------------------------------------------- state

    @property
    def document(self) -> Optional[Document]:
        return self._document

    @property
    def document_id(self) -> Optional[str]:
        return self._document_id

    @property
    def has_unsaved_changes(self) -> bool:
        return self.dirty_state.has_unsaved_changes

    @property
    def selection_state(self) -> SelectionState:
        return self.selection.state

    def subscribe(self, callback: SnapshotListener) -> Callable[[], None]:
        """Register *callback* for every new snapshot; return an unsubscribe function."""
        self._listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _unsubscribe

    # ------------------------------------------------------------ load/save

    def load(self, document_id: str) -> OperationResult:
        """Load *document_id* and make it the persisted baseline."""
        logger.info("Session: load document=%s", document_id)
        try:
            document = self.persistence.load(document_id)
        except InspectionError as exc:
            logger.error("Session: load failed document=%s error=%s", document_id, exc)
            return OperationResult(False, str(exc), self._document, exc.kind, {"document_id": document_id})
        except Exception as exc:
            logger.error("Session: load failed document=%s error=%s", document_id, exc, exc_info=True)
            return OperationResult(False, "Failed to load document.", self._document, ErrorKind.UNEXPECTED,
                                   {"error": str(exc)})

        with self._lock:
            self._document = document
            self._document_id = document_id
            self.dirty_state.reset(document)
            self.selection.clear()
            self.undo_service.clear()
            self.undo_service.push_snapshot(document, "Load")
        self._notify()
        return OperationResult(True, "Document loaded.", document, details={"document_id": document_id})

    def save(self) -> OperationResult:
        """Persist the current snapshot.

        On failure the tree and the dirty flag are left as they were. Edits made
        while a save is in progress stay dirty afterwards, since only the
        snapshot that was actually written becomes the new baseline.
        """
        document = self._document
        if document is None:
            return self._no_document()
        logger.info("Session: save document=%s", self._document_id)
        try:
            saved_at = self.persistence.save(self._document_id, document)
        except InspectionError as exc:
            logger.error("Session: save failed document=%s error=%s", self._document_id, exc)
            return OperationResult(False, str(exc), document, ErrorKind.SAVE_ERROR, {"document_id": self._document_id})
        except Exception as exc:
            logger.error("Session: save failed document=%s error=%s", self._document_id, exc, exc_info=True)
            return OperationResult(False, "Failed to save document.", document, ErrorKind.SAVE_ERROR,
                                   {"error": str(exc)})
        with self._lock:
            self.dirty_state.mark_persisted(document)
            self.last_saved_at = saved_at
        logger.info("Session: saved document=%s at=%s", self._document_id, saved_at)
        return OperationResult(True, "Document saved.", document, details={"saved_at": saved_at})

    # ------------------------------------------------------------- selection

    def select_topic(self, topic_index: int) -> OperationResult:
        return self._select(lambda doc: self.selection.select_topic(doc, topic_index))

    def select_item(self, topic_index: int, item_index: int) -> OperationResult:
        return self._select(lambda doc: self.selection.select_item(doc, topic_index, item_index))

    def clear_selection(self) -> SelectionState:
        return self.selection.clear()

    def _select(self, choose: Callable[[Document], SelectionState]) -> OperationResult:
        document = self._document
        if document is None:
            return self._no_document()
        try:
            state = choose(document)
        except InspectionError as exc:
            return OperationResult(False, str(exc), document, exc.kind)
        return OperationResult(True, "Selection changed.", document, details={"selection": state})

    # ------------------------------------------------------------- edits

    def add(self, parent: Optional[NodePath] = None, **overrides: Any) -> OperationResult:
        return self._apply("Add", lambda doc: self.editing_service.add(doc, parent, **overrides))

    def duplicate(self, path: NodePath) -> OperationResult:
        return self._apply("Duplicate", lambda doc: self.editing_service.duplicate(doc, path))

    def reorder(self, path: NodePath, direction) -> OperationResult:
        return self._apply("Reorder", lambda doc: self.editing_service.reorder(doc, path, direction))

    def remove(self, path: NodePath) -> OperationResult:
        return self._apply("Remove", lambda doc: self.editing_service.remove(doc, path))

    def move(
        self,
        source: NodePath,
        destination: InsertionPoint,
        destination_level: Optional[NodeLevel] = None,
    ) -> OperationResult:
        return self._apply(
            "Move", lambda doc: self.editing_service.move(doc, source, destination, destination_level)
        )

    def move_media(self, source_container: NodePath, media_index: int, destination_container: NodePath) -> OperationResult:
        return self._apply(
            "Move media",
            lambda doc: self.editing_service.move_media(doc, source_container, media_index, destination_container),
        )

    def update_fields(self, path: NodePath, **changes: Any) -> OperationResult:
        return self._apply("Edit", lambda doc: self.editing_service.update_fields(doc, path, **changes))

    def update_document(self, **changes: Any) -> OperationResult:
        return self._apply("Edit document", lambda doc: self.editing_service.update_document(doc, **changes))

    def remove_media(self, container: NodePath, media_index: int) -> OperationResult:
        return self._apply("Remove media", lambda doc: self.editing_service.remove_media(doc, container, media_index))

    # ------------------------------------------------------------- undo/redo

    def can_undo(self) -> bool:
        return self.undo_service.can_undo()

    def can_redo(self) -> bool:
        return self.undo_service.can_redo()

    def undo(self) -> OperationResult:
        return self._restore(self.undo_service.undo, "Undo")

    def redo(self) -> OperationResult:
        return self._restore(self.undo_service.redo, "Redo")

    def _restore(self, step: Callable[[], Optional[Document]], label: str) -> OperationResult:
        with self._lock:
            if self._document is None:
                return self._no_document()
            document = step()
            if document is None:
                return OperationResult(False, f"Nothing to {label.lower()}.", self._document)
            self._document = document
            self.selection.rebase(document)
            self.dirty_state.update(document)
        logger.info("Session: %s", label.lower())
        self._notify()
        return OperationResult(True, f"{label} done.", document, changed=True)

    # ------------------------------------------------------------- uploads

    def upload_media(self, container: NodePath, data: bytes, kind: MediaKind) -> OperationResult:
        """Upload *data* and attach the resulting Media to the node at *container*.

        The target is remembered by identity when the upload starts, so edits
        made during the upload (reorders, moves) do not misdirect the media.
        """
        document = self._document
        if document is None:
            return self._no_document()
        try:
            uid = tree_store.get(document, container).uid
        except InspectionError as exc:
            return OperationResult(False, str(exc), document, exc.kind)
        if self.uploader is None:
            return OperationResult(False, "No media uploader configured.", document, ErrorKind.UPLOAD_ERROR)

        logger.info("Session: upload start container=%s kind=%s bytes=%d", container, MediaKind(kind).value, len(data))
        try:
            media = self.uploader.upload(data, container, MediaKind(kind))
        except UploadError as exc:
            logger.error("Session: upload failed container=%s error=%s", container, exc)
            return OperationResult(False, str(exc), self._document, ErrorKind.UPLOAD_ERROR, {"path": container})
        except Exception as exc:
            logger.error("Session: upload failed container=%s error=%s", container, exc, exc_info=True)
            return OperationResult(False, "Media upload failed.", self._document, ErrorKind.UPLOAD_ERROR,
                                   {"error": str(exc)})
        return self.attach_media(uid, media)

    def upload_media_in_background(
        self,
        container: NodePath,
        data: bytes,
        kind: MediaKind,
        on_done: Optional[Callable[[OperationResult], None]] = None,
    ) -> threading.Thread:
        """Run :meth:`upload_media` on a daemon thread; *on_done* receives its result."""

        def _runner() -> None:
            result = self.upload_media(container, data, kind)
            if on_done is not None:
                try:
                    on_done(result)
                except Exception:
                    logger.error("Session: upload callback failed", exc_info=True)

        thread = threading.Thread(target=_runner, name=f"upload-{container}", daemon=True)
        thread.start()
        return thread

    def attach_media(self, uid: str, media: Media) -> OperationResult:
        """Attach *media* to the node with session uid *uid* in the current snapshot."""
        return self._apply("Add media", lambda doc: self.editing_service.attach_media_to(doc, uid, media))

    # ------------------------------------------------------------- internals

    def _apply(self, label: str, operation: Callable[[Document], OperationResult]) -> OperationResult:
        with self._lock:
            baseline = self._document
            if baseline is None:
                return self._no_document()
            result = operation(baseline)
            if not (result.success and result.changed):
                return result
            document = result.document
            self.undo_service.push_snapshot(baseline)
            self._document = document
            self.undo_service.push_snapshot(document, label)
            self.selection.rebase(document)
            self.dirty_state.update(document)
        self._notify()
        return result

    def _notify(self) -> None:
        """Deliver the current snapshot to subscribers.

        Commits from other threads during a delivery only mark it pending; the
        delivering thread then re-reads the pointer, so the last snapshot every
        subscriber receives is the current one.
        """
        with self._lock:
            self._notify_pending = True
            if self._notifying:
                return
            self._notifying = True
        while True:
            with self._lock:
                if not self._notify_pending:
                    self._notifying = False
                    return
                self._notify_pending = False
                document = self._document
            for callback in list(self._listeners):
                try:
                    callback(document)
                except Exception:
                    logger.error("Session: subscriber %r failed", callback, exc_info=True)

    def _no_document(self) -> OperationResult:
        return OperationResult(False, "No document loaded.", None, ErrorKind.PATH_NOT_FOUND)
