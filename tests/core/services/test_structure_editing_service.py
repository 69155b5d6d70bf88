from datetime import datetime, timezone

import pytest

from inspection_toolkit.core.errors import ErrorKind
from inspection_toolkit.core.models import (
    DetailType,
    InsertionPoint,
    Item,
    Media,
    MediaKind,
    NodeLevel,
    NodePath,
    NonConformity,
    Severity,
    Topic,
)
from inspection_toolkit.core.services.structure_editing_service import (
    OperationResult,
    StructureEditingService,
)
from inspection_toolkit.core.validation import validate_document

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def service():
    return StructureEditingService(clock=lambda: NOW)


def _names(seq):
    return [n.name for n in seq]


# ---------------------------------------------------------------- add


def test_add_topic_appends_default_topic(service, sample_document):
    result = service.add(sample_document)

    assert isinstance(result, OperationResult)
    assert result.success is True and result.changed is True
    assert _names(result.document.topics) == ["Sala", "Cozinha", "Quarto", "Novo Tópico"]
    assert result.details["path"] == NodePath(3)
    assert sample_document.topics[-1].name == "Quarto"


def test_add_per_level_helpers(service, sample_document):
    doc = service.add_item(sample_document, 2).document
    assert _names(doc.topics[2].items) == ["Novo Item"]

    doc = service.add_detail(doc, 2, 0).document
    assert _names(doc.topics[2].items[0].details) == ["Novo Detalhe"]

    result = service.add_non_conformity(doc, 2, 0, 0, description="Mofo")
    nc = result.document.topics[2].items[0].details[0].non_conformities[0]
    assert nc.description == "Mofo"
    assert nc.severity is Severity.BAIXA
    assert nc.created_at == NOW


def test_add_under_missing_parent_fails_without_change(service, sample_document):
    result = service.add(sample_document, NodePath(5))

    assert result.success is False
    assert result.error is ErrorKind.PATH_NOT_FOUND
    assert result.document is sample_document


def test_default_names_come_from_config(isolated_config, sample_document):
    isolated_config.mkdir(parents=True, exist_ok=True)
    (isolated_config / "editor.yml").write_text(
        'duplicate_suffix: " (copy)"\ndefault_names:\n  topic: "New room"\n', encoding="utf-8"
    )
    service = StructureEditingService()

    doc = service.add(sample_document).document
    assert doc.topics[-1].name == "New room"
    doc = service.duplicate(doc, NodePath(1)).document
    assert doc.topics[2].name == "Cozinha (copy)"
    # Levels missing from the override keep their built-in name
    assert service.add(doc, NodePath(0)).document.topics[0].items[-1].name == "Novo Item"


# ---------------------------------------------------------------- duplicate


def test_duplicate_inserts_copy_after_original(service, sample_document):
    result = service.duplicate(sample_document, NodePath(0, 0))

    items = result.document.topics[0].items
    assert _names(items) == ["Parede", "Parede (Cópia)", "Piso"]
    assert result.details["path"] == NodePath(0, 1)


def test_duplicate_shares_media_ids(service, sample_document):
    result = service.duplicate(sample_document, NodePath(0, 0, 0))

    original, copy = result.document.topics[0].items[0].details[:2]
    assert copy.name == "Pintura (Cópia)"
    assert [m.id for m in copy.media] == [m.id for m in original.media] == ["img1", "img2"]


def test_duplicate_gives_fresh_identities_to_whole_subtree(service, sample_document):
    doc = service.duplicate(sample_document, NodePath(0)).document

    original, copy = doc.topics[0], doc.topics[1]
    assert copy.uid != original.uid
    assert copy.items[0].uid != original.items[0].uid
    assert copy.items[0].details[0].non_conformities[0].id != "nc_paint"
    # Descendant names are not suffixed
    assert copy.items[0].name == "Parede"
    assert validate_document(doc) == []


def test_duplicate_missing_path_fails(service, sample_document):
    result = service.duplicate(sample_document, NodePath(0, 7))
    assert result.success is False
    assert result.error is ErrorKind.PATH_NOT_FOUND


# ---------------------------------------------------------------- reorder


def test_reorder_first_sibling_up_is_noop(service, sample_document):
    result = service.reorder(sample_document, NodePath(0), -1)

    assert result.success is True
    assert result.changed is False
    assert result.document is sample_document


def test_reorder_last_sibling_down_is_noop(service, sample_document):
    result = service.reorder(sample_document, NodePath(0, 1), "down")
    assert result.success is True and result.changed is False


def test_reorder_swaps_with_neighbour(service, sample_document):
    result = service.reorder(sample_document, NodePath(0, 0, 0), +1)

    assert _names(result.document.topics[0].items[0].details) == ["Tomadas", "Pintura"]
    assert result.details["path"] == NodePath(0, 0, 1)

    back = service.reorder(result.document, NodePath(0, 0, 1), "up")
    assert back.document == sample_document


def test_reorder_rejects_unknown_direction(service, sample_document):
    result = service.reorder(sample_document, NodePath(0), 2)
    assert result.success is False
    assert result.error is ErrorKind.INVALID_DESTINATION
    assert result.document is sample_document


def test_reorder_missing_path_fails(service, sample_document):
    result = service.reorder(sample_document, NodePath(4), 1)
    assert result.success is False
    assert result.error is ErrorKind.PATH_NOT_FOUND


# ---------------------------------------------------------------- remove


def test_remove_deletes_subtree(service, sample_document):
    result = service.remove(sample_document, NodePath(0))

    assert _names(result.document.topics) == ["Cozinha", "Quarto"]
    assert result.details["removed"].name == "Sala"


def test_remove_stale_path_fails(service, sample_document):
    result = service.remove(sample_document, NodePath(1, 3))
    assert result.success is False
    assert result.error is ErrorKind.PATH_NOT_FOUND
    assert result.document is sample_document


# ---------------------------------------------------------------- move


def test_move_detail_to_topic_level_end_to_end(service, scenario_document, img1, img2):
    result = service.move(
        scenario_document,
        NodePath(0, 0, 0),
        InsertionPoint(None),
        NodeLevel.TOPIC,
    )

    assert result.success is True
    doc = result.document
    assert _names(doc.topics) == ["A", "C"]
    assert _names(doc.topics[0].items) == ["B"]
    assert doc.topics[0].items[0].details == ()
    moved = doc.topics[1]
    assert isinstance(moved, Topic)
    assert moved.media == (img1, img2)
    assert moved.items == ()
    assert result.warnings == ()
    assert result.details["path"] == NodePath(1)
    assert result.details["converted"] is True


def test_move_same_level_across_parents(service, sample_document):
    result = service.move(sample_document, NodePath(0, 1), InsertionPoint(NodePath(2), 0))

    assert _names(result.document.topics[0].items) == ["Parede"]
    assert _names(result.document.topics[2].items) == ["Piso"]
    assert result.details["converted"] is False


def test_move_within_same_parent_uses_pre_move_index(service, sample_document):
    # Insert "Sala" before "Quarto" (pre-move index 2)
    result = service.move(sample_document, NodePath(0), InsertionPoint(None, 2))
    assert _names(result.document.topics) == ["Cozinha", "Sala", "Quarto"]

    result = service.move(sample_document, NodePath(2), InsertionPoint(None, 0))
    assert _names(result.document.topics) == ["Quarto", "Sala", "Cozinha"]


@pytest.mark.parametrize("destination", [InsertionPoint(None, 0), InsertionPoint(None, 1)])
def test_move_onto_own_slot_is_noop(service, sample_document, destination):
    result = service.move(sample_document, NodePath(0), destination)

    assert result.success is True
    assert result.changed is False
    assert result.document is sample_document


def test_move_last_sibling_to_end_is_noop(service, sample_document):
    result = service.move(sample_document, NodePath(2), InsertionPoint(None))
    assert result.success is True and result.changed is False

    result = service.move(sample_document, NodePath(0), InsertionPoint(None))
    assert result.changed is True
    assert _names(result.document.topics) == ["Cozinha", "Quarto", "Sala"]


def test_move_into_parent_that_shifts_after_detach(service, sample_document):
    # Topic 0 becomes an item of topic 2; topic 2 is topic 1 once topic 0 is detached
    result = service.move(sample_document, NodePath(0), InsertionPoint(NodePath(2)))

    doc = result.document
    assert _names(doc.topics) == ["Cozinha", "Quarto"]
    assert _names(doc.topics[1].items) == ["Sala"]
    assert isinstance(doc.topics[1].items[0], Item)
    assert result.details["path"] == NodePath(1, 0)
    # Items of the former topic are dropped by the conversion
    assert result.warnings[0].dropped_fields == ("items",)


def test_move_reports_coercion_loss(service, sample_document):
    result = service.move(sample_document, NodePath(0, 0, 0), InsertionPoint(None), NodeLevel.TOPIC)

    assert result.success is True
    assert len(result.warnings) == 1
    assert "non_conformities" in result.warnings[0].dropped_fields
    assert result.document.topics[-1].observation == "x"


def test_move_non_conformity_up_to_detail(service, sample_document):
    result = service.move(sample_document, NodePath(0, 0, 0, 0), InsertionPoint(NodePath(1, 0)))

    detail = result.document.topics[1].items[0].details[0]
    assert detail.name == "Fissura"
    assert detail.type is DetailType.TEXT
    assert result.document.topics[0].items[0].details[0].non_conformities == ()
    assert "severity" in result.warnings[0].dropped_fields


def test_move_into_own_subtree_is_rejected(service, sample_document):
    result = service.move(sample_document, NodePath(0), InsertionPoint(NodePath(0, 1)))

    assert result.success is False
    assert result.error is ErrorKind.INVALID_DESTINATION
    assert result.document is sample_document


def test_move_with_stale_source_is_invalid_source(service, sample_document):
    result = service.move(sample_document, NodePath(0, 5), InsertionPoint(None))
    assert result.success is False
    assert result.error is ErrorKind.INVALID_SOURCE


def test_move_with_missing_destination_leaves_document_intact(service, sample_document):
    result = service.move(sample_document, NodePath(0, 0), InsertionPoint(NodePath(8)))

    assert result.success is False
    assert result.error is ErrorKind.PATH_NOT_FOUND
    assert result.document == sample_document


def test_move_level_mismatch_is_invalid_destination(service, sample_document):
    result = service.move(sample_document, NodePath(0, 0), InsertionPoint(NodePath(1)), NodeLevel.TOPIC)
    assert result.success is False
    assert result.error is ErrorKind.INVALID_DESTINATION


def test_move_keeps_node_identity(service, sample_document):
    uid = sample_document.topics[0].items[1].uid
    result = service.move(sample_document, NodePath(0, 1), InsertionPoint(None), NodeLevel.TOPIC)
    assert result.document.topics[-1].uid == uid


# ---------------------------------------------------------------- media


def test_move_media_transfers_ownership(service, sample_document, img1):
    result = service.move_media(sample_document, NodePath(0, 0, 0), 0, NodePath(0))

    doc = result.document
    assert [m.id for m in doc.topics[0].items[0].details[0].media] == ["img2"]
    assert [m.id for m in doc.topics[0].media] == ["topic_photo", "img1"]
    assert result.details["media_id"] == "img1"


def test_move_media_stale_index(service, sample_document):
    result = service.move_media(sample_document, NodePath(0, 0, 0), 5, NodePath(0))

    assert result.success is False
    assert result.error is ErrorKind.MEDIA_NOT_FOUND
    assert result.document is sample_document


def test_move_media_to_missing_container(service, sample_document):
    result = service.move_media(sample_document, NodePath(0, 0, 0), 0, NodePath(6))
    assert result.success is False
    assert result.error is ErrorKind.PATH_NOT_FOUND


def test_move_media_same_container_is_noop(service, sample_document):
    result = service.move_media(sample_document, NodePath(0), 0, NodePath(0))
    assert result.success is True and result.changed is False


def test_move_media_refuses_duplicate_id_in_destination(service, sample_document):
    doc = service.duplicate(sample_document, NodePath(0, 0, 0)).document

    result = service.move_media(doc, NodePath(0, 0, 0), 0, NodePath(0, 0, 1))

    assert result.success is False
    assert result.error is ErrorKind.INVALID_DESTINATION


def test_add_and_remove_media(service, sample_document):
    video = Media(id="vid1", kind=MediaKind.VIDEO, url="https://cdn.example.com/vid1")

    doc = service.add_media(sample_document, NodePath(2), video).document
    assert doc.topics[2].media == (video,)
    assert service.add_media(doc, NodePath(2), video).success is False

    removed = service.remove_media(doc, NodePath(2), 0)
    assert removed.document.topics[2].media == ()
    assert service.remove_media(doc, NodePath(2), 3).error is ErrorKind.MEDIA_NOT_FOUND


def test_attach_media_follows_node_identity(service, sample_document, img1):
    uid = sample_document.topics[2].uid
    moved = service.reorder(sample_document, NodePath(2), -1).document

    result = service.attach_media_to(moved, uid, img1)

    assert result.success is True
    assert result.document.topics[1].media == (img1,)


def test_attach_media_to_removed_node_is_discarded(service, sample_document, img1):
    uid = sample_document.topics[2].uid
    doc = service.remove(sample_document, NodePath(2)).document

    result = service.attach_media_to(doc, uid, img1)

    assert result.success is False
    assert result.details["discarded"] is True
    assert result.document is doc


# ---------------------------------------------------------------- fields


def test_update_fields_on_detail(service, sample_document):
    result = service.update_fields(
        sample_document, NodePath(0, 0, 1), type="select", options=["Sim", " ", "Não"], damaged=True
    )

    detail = result.document.topics[0].items[0].details[1]
    assert detail.type is DetailType.SELECT
    assert detail.options == ("Sim", "Não")
    assert detail.damaged is True


def test_update_fields_on_non_conformity_refreshes_stamp(service, sample_document):
    result = service.update_fields(sample_document, NodePath(0, 0, 0, 0), severity="Crítica", status="resolvida")

    nc = result.document.topics[0].items[0].details[0].non_conformities[0]
    assert isinstance(nc, NonConformity)
    assert nc.severity is Severity.CRITICA
    assert nc.updated_at == NOW


def test_update_fields_rejects_field_of_other_level(service, sample_document):
    result = service.update_fields(sample_document, NodePath(0), severity="Alta")
    assert result.success is False
    assert result.error is ErrorKind.INVALID_FIELD


def test_update_fields_rejects_invalid_enum_value(service, sample_document):
    result = service.update_fields(sample_document, NodePath(0, 0, 0), type="colour")
    assert result.success is False
    assert result.error is ErrorKind.INVALID_FIELD


@pytest.mark.parametrize(
    "path, changes",
    [
        (NodePath(0), {"name": None}),
        (NodePath(0, 0, 0), {"required": None}),
        (NodePath(0, 0, 0), {"damaged": None}),
        (NodePath(0, 0, 0), {"type": None}),
        (NodePath(0, 0, 0, 0), {"severity": None}),
        (NodePath(0, 0, 0, 0), {"status": None}),
        (NodePath(0), {"name": 42}),
        (NodePath(0, 0, 0), {"damaged": "yes"}),
        (NodePath(0, 0, 0), {"options": "Bom"}),
        (NodePath(0, 0, 0), {"options": 3}),
    ],
)
def test_update_fields_rejects_mistyped_values(service, sample_document, path, changes):
    result = service.update_fields(sample_document, path, **changes)

    assert result.success is False
    assert result.error is ErrorKind.INVALID_FIELD
    assert result.document is sample_document


def test_update_fields_clears_optional_fields(service, sample_document):
    result = service.update_fields(sample_document, NodePath(0, 0, 0), observation=None, value=None)

    detail = result.document.topics[0].items[0].details[0]
    assert detail.observation == ""
    assert detail.value is None
    assert validate_document(result.document) == []

    result = service.update_fields(result.document, NodePath(0, 0, 0, 0), deadline=None, description=None)
    assert result.success is True
    assert result.document.topics[0].items[0].details[0].non_conformities[0].description == ""


def test_update_document_fields(service, sample_document):
    result = service.update_document(sample_document, title="Casa 3", status="in_progress", area="82.5")
    assert result.document.title == "Casa 3"
    assert result.document.area == 82.5
    assert service.update_document(sample_document, topics=()).error is ErrorKind.INVALID_FIELD
