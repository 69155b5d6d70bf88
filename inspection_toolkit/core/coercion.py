from __future__ import annotations

"""Default node construction and cross-level conversion.

``default_node`` builds the minimal valid node for a level. ``coerce`` maps a
node onto another level's shape when a move crosses levels. Conversion is
lossy on purpose: fields the destination kind cannot hold are dropped, and the
drop is reported through :class:`~inspection_toolkit.core.errors.CoercionLoss`
instead of being refused.
"""

import dataclasses
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Tuple

from inspection_toolkit.core.errors import CoercionLoss
from inspection_toolkit.core.models import (
    Detail,
    DetailType,
    Item,
    Node,
    NodeLevel,
    NonConformity,
    NonConformityStatus,
    Severity,
    Topic,
    new_non_conformity_id,
    utcnow,
)

__all__ = ["DEFAULT_NAMES", "NODE_TYPES", "default_fields", "default_node", "coerce"]


DEFAULT_NAMES: Dict[NodeLevel, str] = {
    NodeLevel.TOPIC: "Novo Tópico",
    NodeLevel.ITEM: "Novo Item",
    NodeLevel.DETAIL: "Novo Detalhe",
}

NODE_TYPES = {
    NodeLevel.TOPIC: Topic,
    NodeLevel.ITEM: Item,
    NodeLevel.DETAIL: Detail,
    NodeLevel.NON_CONFORMITY: NonConformity,
}

# Bookkeeping fields that are regenerated rather than "lost" on conversion.
_UNREPORTED = frozenset({"uid", "id", "created_at", "updated_at"})


def default_fields(
    level: NodeLevel,
    names: Optional[Mapping[NodeLevel, str]] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Return the minimal valid field set for a new node at *level*.

    Structural nodes get a default name and empty collections; a Detail is a
    non-required text field without value; a non-conformity gets a fresh id,
    the lowest severity, pending status and creation timestamps.
    """
    level = NodeLevel(level)
    names = names or DEFAULT_NAMES
    if level is NodeLevel.TOPIC:
        return {"name": names[level], "description": "", "observation": "", "items": (), "media": ()}
    if level is NodeLevel.ITEM:
        return {"name": names[level], "description": "", "observation": "", "details": (), "media": ()}
    if level is NodeLevel.DETAIL:
        return {
            "name": names[level],
            "type": DetailType.TEXT,
            "required": False,
            "value": None,
            "observation": "",
            "damaged": False,
            "media": (),
            "non_conformities": (),
            "options": (),
            "media_requirements": None,
        }
    stamp = now or utcnow()
    return {
        "id": new_non_conformity_id(),
        "description": "",
        "severity": Severity.BAIXA,
        "status": NonConformityStatus.PENDENTE,
        "corrective_action": "",
        "deadline": None,
        "media": (),
        "created_at": stamp,
        "updated_at": stamp,
    }


def default_node(
    level: NodeLevel,
    names: Optional[Mapping[NodeLevel, str]] = None,
    now: Optional[datetime] = None,
    **overrides: Any,
) -> Node:
    """Build a new node of *level* from :func:`default_fields` plus *overrides*."""
    fields = default_fields(level, names=names, now=now)
    fields.update(overrides)
    return NODE_TYPES[NodeLevel(level)](**fields)


def coerce(
    node: Node,
    to_level: NodeLevel,
    names: Optional[Mapping[NodeLevel, str]] = None,
    now: Optional[datetime] = None,
) -> Tuple[Node, Optional[CoercionLoss]]:
    """Convert *node* to the shape of *to_level*.

    ``name``, ``description``, ``observation`` and ``media`` are carried over
    verbatim where the destination has them. The destination's own children
    collection starts empty. The session-local ``uid`` is preserved so the
    converted node can still be followed by selection and pending uploads.

    Returns
    -------
    tuple
        The converted node and a :class:`CoercionLoss` listing populated
        fields that were dropped, or None when nothing of value was lost.
        A node already at *to_level* is returned unchanged.
    """
    to_level = NodeLevel(to_level)
    from_level = node.level
    if from_level is to_level:
        return node, None

    names = names or DEFAULT_NAMES
    consumed = {"media"}
    name = getattr(node, "name", None)
    description = getattr(node, "description", "")
    observation = getattr(node, "observation", "")

    if to_level is NodeLevel.NON_CONFORMITY:
        if description:
            consumed.add("description")
            text = description
        else:
            consumed.add("name")
            text = name or ""
        stamp = now or utcnow()
        converted: Node = NonConformity(
            id=new_non_conformity_id(),
            description=text,
            media=node.media,
            created_at=stamp,
            updated_at=stamp,
            uid=node.uid,
        )
    else:
        if name is None:
            # Non-conformities have no name; their description takes its place.
            name = description or names[to_level]
            description = ""
            consumed.add("description")
        else:
            consumed.add("name")
        if to_level is NodeLevel.TOPIC:
            consumed.update({"description", "observation"})
            converted = Topic(name=name, description=description, observation=observation,
                              items=(), media=node.media, uid=node.uid)
        elif to_level is NodeLevel.ITEM:
            consumed.update({"description", "observation"})
            converted = Item(name=name, description=description, observation=observation,
                             details=(), media=node.media, uid=node.uid)
        else:
            consumed.add("observation")
            converted = Detail(name=name, observation=observation, media=node.media, uid=node.uid)

    dropped = tuple(
        f.name
        for f in dataclasses.fields(node)
        if f.name not in consumed
        and f.name not in _UNREPORTED
        and not _is_default(f, getattr(node, f.name))
    )
    loss = CoercionLoss(from_level.label, to_level.label, dropped) if dropped else None
    return converted, loss


def _is_default(f: dataclasses.Field, value: Any) -> bool:
    if f.default is not dataclasses.MISSING:
        return value == f.default
    if f.default_factory is not dataclasses.MISSING:  # type: ignore[misc]
        return False
    return value in (None, "", ())
