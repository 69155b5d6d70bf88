from __future__ import annotations

"""Error taxonomy for document editing.

Tree-store functions raise these exceptions; the editing service and the
editor session catch them and report a failed ``OperationResult`` carrying the
matching :class:`ErrorKind`, so callers never observe a partially edited tree.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple

__all__ = [
    "ErrorKind",
    "InspectionError",
    "PathNotFoundError",
    "InvalidSourceError",
    "InvalidDestinationError",
    "MediaNotFoundError",
    "InvalidFieldError",
    "SaveError",
    "UploadError",
    "CoercionLoss",
]


class ErrorKind(str, Enum):
    PATH_NOT_FOUND = "path_not_found"
    INVALID_SOURCE = "invalid_source"
    INVALID_DESTINATION = "invalid_destination"
    MEDIA_NOT_FOUND = "media_not_found"
    INVALID_FIELD = "invalid_field"
    SAVE_ERROR = "save_error"
    UPLOAD_ERROR = "upload_error"
    UNEXPECTED = "unexpected"


class InspectionError(Exception):
    """Base exception for all editing and collaborator errors.

    Parameters
    ----------
    message
        Human-readable summary suitable for logs or UI display.
    path
        The path (or other address) that could not be resolved, if any.
    cause
        Underlying exception raised by a collaborator, if any.
    """

    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(self, message: str, path: Any = None, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.path = path
        self.cause = cause

    def __str__(self) -> str:
        if self.path is not None:
            return f"{super().__str__()} (at {self.path})"
        return super().__str__()


class PathNotFoundError(InspectionError, LookupError):
    """A supplied path does not resolve in the current snapshot."""

    kind = ErrorKind.PATH_NOT_FOUND


class InvalidSourceError(InspectionError):
    """The node a move was asked to relocate no longer exists."""

    kind = ErrorKind.INVALID_SOURCE


class InvalidDestinationError(InspectionError):
    """A move destination is malformed, of the wrong level, or inside the moved subtree."""

    kind = ErrorKind.INVALID_DESTINATION


class MediaNotFoundError(InspectionError, LookupError):
    kind = ErrorKind.MEDIA_NOT_FOUND


class InvalidFieldError(InspectionError, ValueError):
    """A field name is not editable at the addressed level."""

    kind = ErrorKind.INVALID_FIELD


class SaveError(InspectionError):
    """Raised by persistence collaborators when a document cannot be stored."""

    kind = ErrorKind.SAVE_ERROR


class UploadError(InspectionError):
    """Raised by upload collaborators when a media blob cannot be stored."""

    kind = ErrorKind.UPLOAD_ERROR


@dataclass(frozen=True)
class CoercionLoss:
    """Informational signal: a cross-level move dropped populated fields.

    The move still succeeds; callers may choose to warn the user.
    """

    from_level: str
    to_level: str
    dropped_fields: Tuple[str, ...]

    def __str__(self) -> str:
        return (
            f"Converting {self.from_level} to {self.to_level} dropped: "
            + ", ".join(self.dropped_fields)
        )
