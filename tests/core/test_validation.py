import random

import pytest

from inspection_toolkit.core import tree_store
from inspection_toolkit.core.models import (
    Detail,
    Document,
    InsertionPoint,
    Item,
    Media,
    MediaKind,
    MediaRequirements,
    NodeLevel,
    NodePath,
    Topic,
)
from inspection_toolkit.core.services.selection_service import SelectionTracker
from inspection_toolkit.core.services.structure_editing_service import StructureEditingService
from inspection_toolkit.core.validation import media_requirement_violations, validate_document


def _media(media_id, kind=MediaKind.IMAGE):
    return Media(id=media_id, kind=kind, url=f"https://cdn.example.com/{media_id}")


def test_sample_document_is_valid(sample_document):
    assert validate_document(sample_document) == []


def test_reports_repeated_media_in_one_container():
    doc = Document(id="d", topics=(Topic(name="T", media=(_media("m"), _media("m"))),))
    problems = validate_document(doc)
    assert len(problems) == 1
    assert "media 'm'" in problems[0]


def test_reports_shared_node_identity():
    item = Item(name="I")
    doc = Document(id="d", topics=(Topic(name="A", items=(item,)), Topic(name="B", items=(item,))))
    assert any("identity" in p for p in validate_document(doc))


def test_reports_node_at_wrong_level():
    doc = Document(id="d", topics=(Item(name="not a topic"),))
    assert any("expected Topic" in p for p in validate_document(doc))


def test_media_requirement_violations():
    detail = Detail(
        name="Fachada",
        media=(_media("v1", MediaKind.VIDEO),),
        media_requirements=MediaRequirements(images_min=2, images_max=4, videos_min=0, videos_max=0),
    )
    doc = Document(id="d", topics=(Topic(name="T", items=(Item(name="I", details=(detail,)),)),))

    violations = media_requirement_violations(doc)

    assert len(violations) == 1
    assert violations[0].kind is MediaKind.IMAGE
    assert violations[0].path == NodePath(0, 0, 0)
    assert "expected 2..4" in str(violations[0])


# ------------------------------------------------------------------ random sequences


def _random_path(rng, doc, levels=None):
    nodes = [p for p, n in tree_store.iter_nodes(doc) if levels is None or p.level in levels]
    return rng.choice(nodes) if nodes else None


def _random_insertion_point(rng, doc):
    parent = _random_path(rng, doc, {NodeLevel.TOPIC, NodeLevel.ITEM, NodeLevel.DETAIL})
    if parent is None or rng.random() < 0.25:
        parent = None
        size = len(doc.topics)
    else:
        size = len(tree_store.children_of(tree_store.get(doc, parent)))
    index = rng.choice([None, rng.randint(0, size + 1)])
    return InsertionPoint(parent, index)


def _random_operation(rng, service, doc):
    op = rng.choice(["add", "duplicate", "reorder", "remove", "move", "move", "move_media"])
    path = _random_path(rng, doc)
    if op == "add" or path is None:
        parent = _random_path(rng, doc, {NodeLevel.TOPIC, NodeLevel.ITEM, NodeLevel.DETAIL})
        return service.add(doc, parent if rng.random() < 0.8 else None)
    if op == "duplicate":
        return service.duplicate(doc, path)
    if op == "reorder":
        return service.reorder(doc, path, rng.choice([-1, 1]))
    if op == "remove":
        return service.remove(doc, path)
    if op == "move":
        point = _random_insertion_point(rng, doc)
        level = point.level if rng.random() < 0.9 else rng.choice(list(NodeLevel))
        return service.move(doc, path, point, level)
    target = _random_path(rng, doc)
    return service.move_media(doc, path, rng.randint(0, 2), target)


@pytest.mark.parametrize("seed", [1, 7, 42])
def test_random_edit_sequences_preserve_invariants(seed, sample_document):
    rng = random.Random(seed)
    service = StructureEditingService()
    tracker = SelectionTracker()
    doc = sample_document

    for _ in range(250):
        if rng.random() < 0.2:
            candidate = _random_path(rng, doc, {NodeLevel.TOPIC, NodeLevel.ITEM})
            if candidate is not None:
                if candidate.level is NodeLevel.TOPIC:
                    tracker.select_topic(doc, candidate.topic)
                else:
                    tracker.select_item(doc, candidate.topic, candidate.item)

        result = _random_operation(rng, service, doc)

        if not result.success:
            # Failed operations hand back the untouched snapshot
            assert result.document is doc
            continue
        doc = result.document
        assert validate_document(doc) == []
        tracker.rebase(doc)
        if tracker.path is not None:
            tree_store.get(doc, tracker.path)
