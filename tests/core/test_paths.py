import pytest

from inspection_toolkit.core.models import InsertionPoint, NodeLevel, NodePath


def test_level_follows_number_of_components():
    assert NodePath(0).level is NodeLevel.TOPIC
    assert NodePath(0, 1).level is NodeLevel.ITEM
    assert NodePath(0, 1, 2).level is NodeLevel.DETAIL
    assert NodePath(0, 1, 2, 3).level is NodeLevel.NON_CONFORMITY


@pytest.mark.parametrize("components", [(0, None, 1), (0, None, None, 2), (0, 1, None, 3)])
def test_gap_in_path_is_rejected(components):
    with pytest.raises(ValueError):
        NodePath(*components)


def test_negative_component_is_rejected():
    with pytest.raises(ValueError):
        NodePath(0, -1)


def test_parent_child_and_sibling_navigation():
    path = NodePath(2, 3, 1)
    assert path.parent == NodePath(2, 3)
    assert NodePath(2).parent is None
    assert path.sibling(0) == NodePath(2, 3, 0)
    assert NodePath(2, 3).child(4) == NodePath(2, 3, 4)
    assert list(path.ancestors()) == [NodePath(2, 3), NodePath(2)]
    assert str(path) == "2/3/1"


def test_non_conformity_has_no_children():
    with pytest.raises(ValueError):
        NodePath(0, 0, 0, 0).child(0)


def test_is_within_covers_self_and_descendants_only():
    topic = NodePath(1)
    assert NodePath(1).is_within(topic)
    assert NodePath(1, 0, 2).is_within(topic)
    assert not NodePath(0, 1).is_within(topic)
    assert not topic.is_within(NodePath(1, 0))


def test_insertion_point_level_and_validation():
    assert InsertionPoint().level is NodeLevel.TOPIC
    assert InsertionPoint(NodePath(0)).level is NodeLevel.ITEM
    assert InsertionPoint(NodePath(0, 0, 0), 1).level is NodeLevel.NON_CONFORMITY
    with pytest.raises(ValueError):
        InsertionPoint(NodePath(0, 0, 0, 0))
    with pytest.raises(ValueError):
        InsertionPoint(None, -1)


def test_node_level_child_chain():
    assert NodeLevel.TOPIC.child is NodeLevel.ITEM
    assert NodeLevel.DETAIL.child is NodeLevel.NON_CONFORMITY
    assert NodeLevel.NON_CONFORMITY.child is None
    assert NodeLevel.ITEM.label == "item"
