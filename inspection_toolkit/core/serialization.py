from __future__ import annotations

"""Conversion between Document snapshots and plain JSON-compatible dicts.

The dict layout follows the stored inspection shape (``topics`` → ``items`` →
``details`` → ``non_conformities``, ``media`` lists on every level, a detail's
damage flag stored as ``is_damaged``, a media kind stored as ``type``).
Timestamps are ISO-8601 strings. Session uids are never written; reading a
dict always yields fresh uids.
"""

from datetime import datetime
from enum import Enum
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Type, TypeVar

from inspection_toolkit.core.errors import InvalidFieldError
from inspection_toolkit.core.models import (
    Detail,
    DetailType,
    Document,
    DocumentStatus,
    Item,
    Media,
    MediaKind,
    MediaRequirements,
    NonConformity,
    NonConformityStatus,
    Severity,
    Topic,
)

__all__ = ["document_to_dict", "document_from_dict", "media_to_dict", "media_from_dict"]

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)


# ----------------------------------------------------------------- to dict

def _ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def media_to_dict(media: Media) -> Dict[str, Any]:
    return {
        "id": media.id,
        "type": media.kind.value,
        "url": media.url,
        "created_at": _ts(media.created_at),
        "updated_at": _ts(media.updated_at),
    }


def _media_list(media: Iterable[Media]) -> List[Dict[str, Any]]:
    return [media_to_dict(m) for m in media]


def _requirements_to_dict(req: Optional[MediaRequirements]) -> Optional[Dict[str, Any]]:
    if req is None:
        return None
    return {
        "images": {"min": req.images_min, "max": req.images_max},
        "videos": {"min": req.videos_min, "max": req.videos_max},
    }


def _nc_to_dict(nc: NonConformity) -> Dict[str, Any]:
    return {
        "id": nc.id,
        "description": nc.description,
        "severity": nc.severity.value,
        "status": nc.status.value,
        "corrective_action": nc.corrective_action,
        "deadline": _ts(nc.deadline),
        "media": _media_list(nc.media),
        "created_at": _ts(nc.created_at),
        "updated_at": _ts(nc.updated_at),
    }


def _detail_to_dict(detail: Detail) -> Dict[str, Any]:
    data = {
        "name": detail.name,
        "type": detail.type.value,
        "required": detail.required,
        "value": detail.value,
        "observation": detail.observation,
        "is_damaged": detail.damaged,
        "media": _media_list(detail.media),
        "non_conformities": [_nc_to_dict(nc) for nc in detail.non_conformities],
    }
    if detail.options:
        data["options"] = list(detail.options)
    if detail.media_requirements is not None:
        data["media_requirements"] = _requirements_to_dict(detail.media_requirements)
    return data


def _item_to_dict(item: Item) -> Dict[str, Any]:
    return {
        "name": item.name,
        "description": item.description,
        "observation": item.observation,
        "details": [_detail_to_dict(d) for d in item.details],
        "media": _media_list(item.media),
    }


def _topic_to_dict(topic: Topic) -> Dict[str, Any]:
    return {
        "name": topic.name,
        "description": topic.description,
        "observation": topic.observation,
        "items": [_item_to_dict(i) for i in topic.items],
        "media": _media_list(topic.media),
    }


def document_to_dict(document: Document) -> Dict[str, Any]:
    """Return a JSON-compatible dict for *document*."""
    return {
        "id": document.id,
        "title": document.title,
        "observation": document.observation,
        "area": document.area,
        "status": document.status.value,
        "topics": [_topic_to_dict(t) for t in document.topics],
        "created_at": _ts(document.created_at),
        "updated_at": _ts(document.updated_at),
    }


# --------------------------------------------------------------- from dict

def _parse_ts(raw: Any, where: str) -> Optional[datetime]:
    if raw in (None, ""):
        return None
    if isinstance(raw, datetime):
        return raw
    try:
        return datetime.fromisoformat(str(raw))
    except ValueError as exc:
        raise InvalidFieldError(f"Invalid timestamp {raw!r}", where) from exc


def _enum(cls: Type[E], raw: Any, default: E, where: str) -> E:
    if raw in (None, ""):
        return default
    try:
        return cls(raw)
    except ValueError as exc:
        raise InvalidFieldError(f"Invalid {cls.__name__} value {raw!r}", where) from exc


def _text(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    return "" if value is None else str(value)


def _mapping(data: Any, where: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise InvalidFieldError(f"Expected an object, got {type(data).__name__}", where)
    return data


def _seq(data: Mapping[str, Any], key: str, where: str) -> List[Any]:
    value = data.get(key) or []
    if not isinstance(value, list):
        raise InvalidFieldError(f"'{key}' must be a list", where)
    return value


def media_from_dict(data: Mapping[str, Any], where: str = "media") -> Media:
    data = _mapping(data, where)
    try:
        media_id, url = data["id"], data["url"]
    except KeyError as exc:
        raise InvalidFieldError(f"Media entry is missing {exc}", where) from exc
    return Media(
        id=str(media_id),
        kind=_enum(MediaKind, data.get("type"), MediaKind.IMAGE, where),
        url=str(url),
        created_at=_parse_ts(data.get("created_at"), where),
        updated_at=_parse_ts(data.get("updated_at"), where),
    )


def _media_from(data: Mapping[str, Any], where: str):
    return tuple(media_from_dict(m, f"{where}/media[{i}]") for i, m in enumerate(_seq(data, "media", where)))


def _requirements_from_dict(raw: Any, where: str) -> Optional[MediaRequirements]:
    if not raw:
        return None
    raw = _mapping(raw, f"{where}/media_requirements")
    images = _mapping(raw.get("images") or {}, f"{where}/media_requirements/images")
    videos = _mapping(raw.get("videos") or {}, f"{where}/media_requirements/videos")
    return MediaRequirements(
        images_min=images.get("min"),
        images_max=images.get("max"),
        videos_min=videos.get("min"),
        videos_max=videos.get("max"),
    )


def _nc_from_dict(data: Mapping[str, Any], where: str) -> NonConformity:
    data = _mapping(data, where)
    fields = dict(
        description=_text(data, "description"),
        severity=_enum(Severity, data.get("severity"), Severity.BAIXA, where),
        status=_enum(NonConformityStatus, data.get("status"), NonConformityStatus.PENDENTE, where),
        corrective_action=_text(data, "corrective_action"),
        deadline=_parse_ts(data.get("deadline"), where),
        media=_media_from(data, where),
        created_at=_parse_ts(data.get("created_at"), where),
        updated_at=_parse_ts(data.get("updated_at"), where),
    )
    if data.get("id"):
        fields["id"] = str(data["id"])
    return NonConformity(**fields)


def _detail_from_dict(data: Mapping[str, Any], where: str) -> Detail:
    data = _mapping(data, where)
    return Detail(
        name=_text(data, "name"),
        type=_enum(DetailType, data.get("type"), DetailType.TEXT, where),
        required=bool(data.get("required", False)),
        value=data.get("value"),
        observation=_text(data, "observation"),
        damaged=bool(data.get("is_damaged", False)),
        media=_media_from(data, where),
        non_conformities=tuple(
            _nc_from_dict(nc, f"{where}/{i}") for i, nc in enumerate(_seq(data, "non_conformities", where))
        ),
        options=tuple(str(o) for o in _seq(data, "options", where)),
        media_requirements=_requirements_from_dict(data.get("media_requirements"), where),
    )


def _item_from_dict(data: Mapping[str, Any], where: str) -> Item:
    data = _mapping(data, where)
    return Item(
        name=_text(data, "name"),
        description=_text(data, "description"),
        observation=_text(data, "observation"),
        details=tuple(_detail_from_dict(d, f"{where}/{i}") for i, d in enumerate(_seq(data, "details", where))),
        media=_media_from(data, where),
    )


def _topic_from_dict(data: Mapping[str, Any], where: str) -> Topic:
    data = _mapping(data, where)
    return Topic(
        name=_text(data, "name"),
        description=_text(data, "description"),
        observation=_text(data, "observation"),
        items=tuple(_item_from_dict(it, f"{where}/{i}") for i, it in enumerate(_seq(data, "items", where))),
        media=_media_from(data, where),
    )


def document_from_dict(data: Mapping[str, Any]) -> Document:
    """Build a Document from its stored dict form.

    Missing optional keys take their model defaults. Malformed values raise
    :class:`InvalidFieldError` naming the offending position (e.g. ``0/2/1``).
    """
    data = _mapping(data, "document")
    if "id" not in data:
        raise InvalidFieldError("Document is missing 'id'")
    area = data.get("area")
    try:
        area = float(area) if area not in (None, "") else None
    except (TypeError, ValueError) as exc:
        raise InvalidFieldError(f"Invalid area {area!r}") from exc
    document = Document(
        id=str(data["id"]),
        title=_text(data, "title"),
        observation=_text(data, "observation"),
        area=area,
        status=_enum(DocumentStatus, data.get("status"), DocumentStatus.PENDING, "document"),
        topics=tuple(_topic_from_dict(t, str(i)) for i, t in enumerate(_seq(data, "topics", "document"))),
        created_at=_parse_ts(data.get("created_at"), "document"),
        updated_at=_parse_ts(data.get("updated_at"), "document"),
    )
    logger.debug("Loaded document %s with %d topics", document.id, len(document.topics))
    return document
