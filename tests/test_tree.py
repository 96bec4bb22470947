import pytest

from flextext.layout.tree import Dimension, DimensionSize, Display, FlexDirection, LayoutTree, Style
from flextext.models import AvailableSize, AvailableSpace, Point, Rect, Size
from utils.exceptions import LayoutResolutionError

MAX_CONTENT = AvailableSize(AvailableSpace.max_content(), AvailableSpace.max_content())


class FixedHeightText:
    """Node context whose measured height is fixed and whose width fills what it is given."""

    def __init__(self, height, natural_width=100.0):
        self.height = height
        self.natural_width = natural_width


def make_measure(calls=None):
    def measure(known, available, node_id, context):
        if calls is not None:
            calls.append((known, available, node_id))
        if context is None:
            return Size(0.0, 0.0)
        width = known.width if known.width is not None else context.natural_width
        return Size(width, context.height)

    return measure


def column_tree(text_height, width=500, height=300, padding=10.0):
    tree = LayoutTree()
    text = tree.new_leaf_with_context(Style(), FixedHeightText(text_height))
    filler = tree.new_leaf(Style(flex_grow=1.0, flex_shrink=1.0))
    root = tree.new_with_children(
        Style(
            flex_direction=FlexDirection.COLUMN,
            size=DimensionSize(Dimension.length(width), Dimension.length(height)),
            padding=Rect.uniform(padding),
        ),
        [text, filler],
    )
    return tree, root, text, filler


def test_text_box_and_filler_share_the_column():
    tree, root, text, filler = column_tree(40.0)
    calls = []
    tree.compute_layout_with_measure(root, MAX_CONTENT, make_measure(calls))

    assert tree.layout(root).size == Size(500.0, 300.0)
    assert tree.layout(text).location == Point(10.0, 10.0)
    assert tree.layout(text).size == Size(480.0, 40.0)
    assert tree.layout(filler).location == Point(10.0, 50.0)
    assert tree.layout(filler).size == Size(480.0, 240.0)

    text_calls = [known for known, _, node in calls if node == text]
    assert text_calls
    assert all(known.width == 480.0 for known in text_calls)


def test_text_measure_queries_include_min_content():
    tree, root, text, _ = column_tree(40.0)
    calls = []
    tree.compute_layout_with_measure(root, MAX_CONTENT, make_measure(calls))
    kinds = {available.height.kind for _, available, node in calls if node == text}
    assert AvailableSpace.min_content().kind in kinds


def test_tall_text_keeps_its_height_and_filler_collapses():
    tree, root, text, filler = column_tree(400.0)
    tree.compute_layout_with_measure(root, MAX_CONTENT, make_measure())
    assert tree.layout(text).size.height == pytest.approx(400.0)
    assert tree.layout(filler).size.height == pytest.approx(0.0)


def test_row_distributes_free_space_by_grow_factor():
    tree = LayoutTree()
    a = tree.new_leaf_with_context(Style(flex_grow=1.0), FixedHeightText(10.0, natural_width=30.0))
    b = tree.new_leaf_with_context(Style(flex_grow=3.0), FixedHeightText(10.0, natural_width=50.0))
    root = tree.new_with_children(
        Style(size=DimensionSize(Dimension.length(200), Dimension.length(50))),
        [a, b],
    )
    measure = make_measure()

    def natural(known, available, node_id, context):
        if known.width is None:
            return Size(context.natural_width, context.height)
        return measure(known, available, node_id, context)

    tree.compute_layout_with_measure(root, MAX_CONTENT, natural)

    assert tree.layout(a).size == Size(60.0, 50.0)
    assert tree.layout(b).size == Size(140.0, 50.0)
    assert tree.layout(b).location == Point(60.0, 0.0)


def test_row_shrinks_in_proportion_to_basis():
    tree = LayoutTree()
    a = tree.new_leaf(Style(size=DimensionSize(Dimension.length(60), Dimension.auto())))
    b = tree.new_leaf(Style(size=DimensionSize(Dimension.length(120), Dimension.auto())))
    root = tree.new_with_children(
        Style(size=DimensionSize(Dimension.length(120), Dimension.length(20))),
        [a, b],
    )
    tree.compute_layout_with_measure(root, MAX_CONTENT, make_measure())
    assert tree.layout(a).size.width == pytest.approx(40.0)
    assert tree.layout(b).size.width == pytest.approx(80.0)


def test_percent_basis_resolves_against_parent():
    tree = LayoutTree()
    a = tree.new_leaf(Style(flex_basis=Dimension.percent(0.25)))
    root = tree.new_with_children(
        Style(size=DimensionSize(Dimension.length(200), Dimension.length(20))),
        [a],
    )
    tree.compute_layout_with_measure(root, MAX_CONTENT, make_measure())
    assert tree.layout(a).size == Size(50.0, 20.0)


def test_hidden_child_takes_no_space():
    tree = LayoutTree()
    hidden = tree.new_leaf(Style(display=Display.NONE, size=DimensionSize(Dimension.length(50), Dimension.length(50))))
    filler = tree.new_leaf(Style(flex_grow=1.0))
    root = tree.new_with_children(
        Style(size=DimensionSize(Dimension.length(100), Dimension.length(10))),
        [hidden, filler],
    )
    tree.compute_layout_with_measure(root, MAX_CONTENT, make_measure())
    assert tree.layout(hidden).size == Size(0.0, 0.0)
    assert tree.layout(filler).size == Size(100.0, 10.0)


def test_auto_sized_root_wraps_content():
    tree = LayoutTree()
    text = tree.new_leaf_with_context(Style(), FixedHeightText(30.0, natural_width=120.0))
    root = tree.new_with_children(Style(flex_direction=FlexDirection.COLUMN, padding=Rect.uniform(5.0)), [text])
    tree.compute_layout_with_measure(root, MAX_CONTENT, make_measure())
    assert tree.layout(root).size == Size(130.0, 40.0)
    assert tree.layout(text).location == Point(5.0, 5.0)


def test_cycle_is_rejected():
    tree = LayoutTree()
    leaf = tree.new_leaf(Style())
    parent = tree.new_with_children(Style(), [leaf])
    with pytest.raises(LayoutResolutionError):
        tree.add_child(leaf, parent)
    with pytest.raises(LayoutResolutionError):
        tree.add_child(parent, parent)


def test_second_parent_is_rejected():
    tree = LayoutTree()
    leaf = tree.new_leaf(Style())
    tree.new_with_children(Style(), [leaf])
    with pytest.raises(LayoutResolutionError):
        tree.new_with_children(Style(), [leaf])


def test_unknown_node_ids_are_rejected():
    tree = LayoutTree()
    root = tree.new_leaf(Style())
    with pytest.raises(LayoutResolutionError):
        tree.add_child(root, 42)
    with pytest.raises(LayoutResolutionError):
        tree.layout(42)
    with pytest.raises(LayoutResolutionError):
        tree.compute_layout_with_measure(42, MAX_CONTENT, make_measure())


def test_layout_before_compute_is_an_error():
    tree = LayoutTree()
    root = tree.new_leaf(Style())
    with pytest.raises(LayoutResolutionError):
        tree.layout(root)


def test_format_tree_lists_every_node():
    tree, root, text, filler = column_tree(40.0)
    tree.compute_layout_with_measure(root, MAX_CONTENT, make_measure())
    output = tree.format_tree(root)
    assert output.startswith("TREE")
    assert "FLEX COL" in output
    assert output.count("LEAF") == 2
    assert f"NodeId({filler})" in output
