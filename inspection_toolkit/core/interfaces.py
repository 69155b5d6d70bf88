from __future__ import annotations

"""Collaborator interface definitions.

Defines the contracts the editing core consumes: document persistence, media
upload and report rendering. Remote implementations live outside this
package; :mod:`inspection_toolkit.core.persistence` ships local adapters and
:mod:`inspection_toolkit.core.generators` ships an XHTML report renderer.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Callable, Protocol, runtime_checkable

from inspection_toolkit.core.models import Document, Media, MediaKind, NodePath

__all__ = [
    "ReportType",
    "SnapshotListener",
    "DocumentPersistence",
    "MediaUploader",
    "ReportRenderer",
]


# Presentation callback: receives every new immutable snapshot
SnapshotListener = Callable[[Document], None]


class ReportType(str, Enum):
    """Selector for report generation."""

    COMPLETE = "complete"
    NON_CONFORMITIES = "non_conformities"


@runtime_checkable
class DocumentPersistence(Protocol):
    """Protocol for document storage back-ends.

    The document returned by :meth:`load` becomes the session's
    last-persisted snapshot; a successful :meth:`save` makes the saved
    snapshot the new baseline for dirty-state detection.
    """

    def load(self, document_id: str) -> Document:
        """Return the stored document.

        Raises:
            PathNotFoundError: If no document exists under *document_id*.
            SaveError: If the back-end cannot be read.
        """
        ...

    def save(self, document_id: str, document: Document) -> datetime:
        """Store *document* and return the time it was persisted.

        Raises:
            SaveError: If the document could not be stored. Implementations
                must not partially overwrite a previous version on failure.
        """
        ...


@runtime_checkable
class MediaUploader(Protocol):
    """Protocol for media blob storage.

    Implementations may block; the editor session calls them from a worker
    thread so that editing continues while an upload is in flight.
    """

    def upload(self, data: bytes, destination: NodePath, kind: MediaKind) -> Media:
        """Store *data* and return the Media record referencing it.

        Args:
            data: Raw image or video bytes.
            destination: Path of the node the media is meant for at upload
                start. Informational only (e.g. to build a storage key); the
                session re-resolves the target when attaching.
            kind: Image or video.

        Raises:
            UploadError: If the blob could not be stored.
        """
        ...


@runtime_checkable
class ReportRenderer(Protocol):
    """Protocol for report generation from a read-only document snapshot."""

    def render(self, document: Document, report_type: ReportType) -> Any:
        """Return the rendered artifact (bytes, a tree, a file path...)."""
        ...
