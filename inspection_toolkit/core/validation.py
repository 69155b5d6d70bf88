from __future__ import annotations

"""Structural checks for inspection documents.

``validate_document`` returns human-readable violations of the tree
invariants (unique identities, well-typed levels, no container listing the
same media twice). ``media_requirement_violations`` checks details against
their configured media counts, the way an inspector is warned before closing
an inspection.
"""

from collections import Counter
from dataclasses import dataclass
from typing import List, Optional, Tuple

from inspection_toolkit.core import tree_store
from inspection_toolkit.core.coercion import NODE_TYPES
from inspection_toolkit.core.models import Detail, Document, MediaKind, NodePath

__all__ = ["RequirementViolation", "validate_document", "media_requirement_violations"]


def validate_document(document: Document) -> List[str]:
    """Return a list of invariant violations; empty when *document* is valid."""
    problems: List[str] = []
    seen_uids: Counter = Counter()
    nc_ids: Counter = Counter()

    for path, node in tree_store.iter_nodes(document):
        expected = NODE_TYPES[path.level]
        if type(node) is not expected:
            problems.append(f"{path}: expected {expected.__name__}, found {type(node).__name__}")
            continue
        seen_uids[node.uid] += 1
        if path.level.child is not None and not isinstance(tree_store.children_of(node), tuple):
            problems.append(f"{path}: children must be a tuple")
        if not isinstance(node.media, tuple):
            problems.append(f"{path}: media must be a tuple")
            continue
        ids = Counter(m.id for m in node.media)
        for media_id, count in ids.items():
            if count > 1:
                problems.append(f"{path}: media '{media_id}' listed {count} times")
        if hasattr(node, "name") and not isinstance(node.name, str):
            problems.append(f"{path}: name must be a string")
        if isinstance(node, Detail) and node.options and not all(isinstance(o, str) for o in node.options):
            problems.append(f"{path}: options must be strings")
        if path.level.child is None:
            nc_ids[node.id] += 1

    for uid, count in seen_uids.items():
        if count > 1:
            problems.append(f"node identity {uid} appears {count} times")
    for nc_id, count in nc_ids.items():
        if count > 1:
            problems.append(f"non-conformity id '{nc_id}' appears {count} times")
    return problems


@dataclass(frozen=True)
class RequirementViolation:
    path: NodePath
    kind: MediaKind
    count: int
    minimum: Optional[int]
    maximum: Optional[int]

    def __str__(self) -> str:
        bounds = f"{self.minimum if self.minimum is not None else 0}..{self.maximum if self.maximum is not None else '*'}"
        return f"{self.path}: {self.count} {self.kind.value}(s), expected {bounds}"


def _check(path: NodePath, kind: MediaKind, count: int, bounds: Tuple[Optional[int], Optional[int]]):
    low, high = bounds
    if (low is not None and count < low) or (high is not None and count > high):
        return RequirementViolation(path, kind, count, low, high)
    return None


def media_requirement_violations(document: Document) -> List[RequirementViolation]:
    """List details whose media counts fall outside their ``media_requirements``.

    A bound of None (or 0 as a maximum, the stored "no limit" value) is not
    enforced.
    """
    violations: List[RequirementViolation] = []
    for path, node in tree_store.iter_nodes(document):
        if not isinstance(node, Detail) or node.media_requirements is None:
            continue
        req = node.media_requirements
        counts = Counter(m.kind for m in node.media)
        for kind, bounds in (
            (MediaKind.IMAGE, (req.images_min, req.images_max or None)),
            (MediaKind.VIDEO, (req.videos_min, req.videos_max or None)),
        ):
            found = _check(path, kind, counts.get(kind, 0), bounds)
            if found is not None:
                violations.append(found)
    return violations
