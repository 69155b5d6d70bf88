from __future__ import annotations

"""Shared data structures used across the Inspection Toolkit core.

This package exposes the immutable value objects that make up an inspection
document. It is intentionally free of UI / I/O code so that the contained
objects can be reused in any context (unit-tests, CLI, GUI, etc.).

Every node is a frozen dataclass and ordered child collections are tuples, so
an edit always produces a new Document and two snapshots can be compared with
plain ``==``. Structural nodes carry a session-local ``uid`` that is excluded
from equality; it is what lets the selection cursor and background uploads
follow a node when its index changes.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Tuple, Union
import uuid

from .paths import InsertionPoint, NodeLevel, NodePath

__all__ = [
    "NodeLevel",
    "MediaKind",
    "DetailType",
    "Severity",
    "NonConformityStatus",
    "DocumentStatus",
    "Media",
    "MediaRequirements",
    "NonConformity",
    "Detail",
    "Item",
    "Topic",
    "Document",
    "Node",
    "NodePath",
    "InsertionPoint",
    "level_of",
    "new_uid",
    "new_non_conformity_id",
    "utcnow",
]


def new_uid() -> str:
    """Return a fresh session-local node identity."""
    return uuid.uuid4().hex


def new_non_conformity_id() -> str:
    return f"nc_{uuid.uuid4().hex[:12]}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MediaKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


class DetailType(str, Enum):
    TEXT = "text"
    SELECT = "select"
    NUMBER = "number"
    BOOLEAN = "boolean"
    IMAGE = "image"
    VIDEO = "video"
    MEASURE = "measure"


class Severity(str, Enum):
    BAIXA = "Baixa"
    MEDIA = "Média"
    ALTA = "Alta"
    CRITICA = "Crítica"


class NonConformityStatus(str, Enum):
    PENDENTE = "pendente"
    EM_ANDAMENTO = "em_andamento"
    RESOLVIDA = "resolvida"


class DocumentStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELED = "canceled"


@dataclass(frozen=True)
class Media:
    """An image or video attachment.

    Attributes
    ----------
    id
        Identifier issued at upload time. Duplicated nodes share it.
    kind
        Image or video.
    url
        Remote URL returned by the upload collaborator.
    """

    id: str
    kind: MediaKind
    url: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class MediaRequirements:
    """Minimum/maximum media counts per kind for a Detail (None = unbounded)."""

    images_min: Optional[int] = None
    images_max: Optional[int] = None
    videos_min: Optional[int] = None
    videos_max: Optional[int] = None


@dataclass(frozen=True)
class NonConformity:
    id: str = field(default_factory=new_non_conformity_id)
    description: str = ""
    severity: Severity = Severity.BAIXA
    status: NonConformityStatus = NonConformityStatus.PENDENTE
    corrective_action: str = ""
    deadline: Optional[datetime] = None
    media: Tuple[Media, ...] = ()
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    uid: str = field(default_factory=new_uid, compare=False, repr=False)

    level = NodeLevel.NON_CONFORMITY


@dataclass(frozen=True)
class Detail:
    name: str
    type: DetailType = DetailType.TEXT
    required: bool = False
    value: Any = None
    observation: str = ""
    damaged: bool = False
    media: Tuple[Media, ...] = ()
    non_conformities: Tuple[NonConformity, ...] = ()
    options: Tuple[str, ...] = ()
    media_requirements: Optional[MediaRequirements] = None
    uid: str = field(default_factory=new_uid, compare=False, repr=False)

    level = NodeLevel.DETAIL


@dataclass(frozen=True)
class Item:
    name: str
    description: str = ""
    observation: str = ""
    details: Tuple[Detail, ...] = ()
    media: Tuple[Media, ...] = ()
    uid: str = field(default_factory=new_uid, compare=False, repr=False)

    level = NodeLevel.ITEM


@dataclass(frozen=True)
class Topic:
    name: str
    description: str = ""
    observation: str = ""
    items: Tuple[Item, ...] = ()
    media: Tuple[Media, ...] = ()
    uid: str = field(default_factory=new_uid, compare=False, repr=False)

    level = NodeLevel.TOPIC


@dataclass(frozen=True)
class Document:
    """Root aggregate of an inspection.

    ``topics`` ordering is significant and preserved by every edit unless the
    edit is an explicit reorder or move.
    """

    id: str
    title: str = ""
    observation: str = ""
    area: Optional[float] = None
    status: DocumentStatus = DocumentStatus.PENDING
    topics: Tuple[Topic, ...] = ()
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


Node = Union[Topic, Item, Detail, NonConformity]


def level_of(node: Node) -> NodeLevel:
    """Return the native level of *node*."""
    return node.level
