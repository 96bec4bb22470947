from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from flextext.models import AvailableSize, AvailableSpace, KnownSize, Point, Rect, Size
from utils.exceptions import LayoutResolutionError

NodeId = int

# (known_dimensions, available_space, node_id, node_context) -> Size
MeasureFunction = Callable[[KnownSize, AvailableSize, NodeId, Any], Size]

_EPSILON = 1e-6


class Display(Enum):
    FLEX = "flex"
    NONE = "none"


class FlexDirection(Enum):
    ROW = "row"
    COLUMN = "column"


@dataclass(frozen=True)
class Dimension:
    """A length that is either automatic, absolute pixels or a fraction of the parent."""

    kind: str = "auto"
    value: float = 0.0

    @classmethod
    def auto(cls) -> "Dimension":
        return cls("auto")

    @classmethod
    def length(cls, value: float) -> "Dimension":
        return cls("length", float(value))

    @classmethod
    def percent(cls, fraction: float) -> "Dimension":
        return cls("percent", float(fraction))

    def resolve(self, parent: Optional[float]) -> Optional[float]:
        if self.kind == "length":
            return self.value
        if self.kind == "percent" and parent is not None:
            return self.value * parent
        return None


@dataclass(frozen=True)
class DimensionSize:
    width: Dimension = field(default_factory=Dimension.auto)
    height: Dimension = field(default_factory=Dimension.auto)


@dataclass(frozen=True)
class Style:
    display: Display = Display.FLEX
    flex_direction: FlexDirection = FlexDirection.ROW
    size: DimensionSize = field(default_factory=DimensionSize)
    padding: Rect = field(default_factory=Rect)
    flex_grow: float = 0.0
    flex_shrink: float = 1.0
    flex_basis: Dimension = field(default_factory=Dimension.auto)


@dataclass(frozen=True)
class Layout:
    """Final geometry of a node. ``location`` is relative to the root node."""

    location: Point
    size: Size


@dataclass
class _Node:
    style: Style
    context: Any = None
    children: List[NodeId] = field(default_factory=list)
    parent: Optional[NodeId] = None


@dataclass
class _FlexItem:
    node: NodeId
    basis: float
    min_main: float
    cross: Optional[float]
    factor_grow: float
    factor_shrink: float
    target: float = 0.0
    frozen: bool = False


class LayoutTree:
    """
    A small flexbox solver for single-line row/column containers.

    Leaves are sized through a measure callback; containers lay out their
    children along the main axis, stretch them on the cross axis and share
    free space according to flex_grow/flex_shrink.
    """

    def __init__(self):
        self._nodes: List[_Node] = []
        self._layouts: Dict[NodeId, Layout] = {}

    # --- Tree construction ---
    def new_leaf(self, style: Style) -> NodeId:
        return self._add(_Node(style))

    def new_leaf_with_context(self, style: Style, context: Any) -> NodeId:
        return self._add(_Node(style, context))

    def new_with_children(self, style: Style, children: Sequence[NodeId]) -> NodeId:
        node = self._add(_Node(style))
        for child in children:
            self.add_child(node, child)
        return node

    def add_child(self, parent: NodeId, child: NodeId) -> None:
        """
        Appends child to parent's children.

        Raises:
            LayoutResolutionError: For unknown ids, a second parent or a cycle
        """
        parent_node = self._node(parent)
        child_node = self._node(child)
        if child_node.parent is not None:
            raise LayoutResolutionError(f"Node {child} already has parent {child_node.parent}")
        if parent == child or self._is_ancestor(child, parent):
            raise LayoutResolutionError(f"Adding node {child} under {parent} would create a cycle")
        child_node.parent = parent
        parent_node.children.append(child)

    def children(self, node: NodeId) -> List[NodeId]:
        return list(self._node(node).children)

    def style(self, node: NodeId) -> Style:
        return self._node(node).style

    def context(self, node: NodeId) -> Any:
        return self._node(node).context

    def _add(self, node: _Node) -> NodeId:
        self._nodes.append(node)
        return len(self._nodes) - 1

    def _node(self, node: NodeId) -> _Node:
        if not isinstance(node, int) or not 0 <= node < len(self._nodes):
            raise LayoutResolutionError(f"Unknown node id: {node}")
        return self._nodes[node]

    def _is_ancestor(self, candidate: NodeId, node: NodeId) -> bool:
        current = self._nodes[node].parent
        steps = 0
        while current is not None:
            if current == candidate:
                return True
            current = self._nodes[current].parent
            steps += 1
            if steps > len(self._nodes):
                raise LayoutResolutionError(f"Parent chain of node {node} contains a cycle")
        return False

    def _check_tree(self, root: NodeId) -> None:
        seen = set()
        stack = [root]
        while stack:
            node = stack.pop()
            if node in seen:
                raise LayoutResolutionError(f"Node {node} is reachable more than once from root {root}")
            seen.add(node)
            stack.extend(self._node(node).children)

    # --- Layout ---
    def compute_layout_with_measure(self, root: NodeId, available_space: AvailableSize,
                                    measure: MeasureFunction) -> None:
        """
        Resolves the geometry of every node under root.

        The measure callback may be invoked several times per leaf with
        different constraints; it must be free of side effects on the result.

        Raises:
            LayoutResolutionError: If the tree under root is malformed
        """
        self._check_tree(root)
        self._layouts = {}
        style = self._node(root).style
        known = KnownSize(
            style.size.width.resolve(_definite(available_space.width)),
            style.size.height.resolve(_definite(available_space.height)),
        )
        self._compute(root, known, available_space, measure, Point(0.0, 0.0))

    def layout(self, node: NodeId) -> Layout:
        self._node(node)
        if node not in self._layouts:
            raise LayoutResolutionError(f"Node {node} has no computed layout")
        return self._layouts[node]

    def _compute(self, node_id: NodeId, known: KnownSize, available: AvailableSize,
                 measure: MeasureFunction, location: Optional[Point]) -> Size:
        """Sizes a node; when location is given the result is also stored for it and its subtree."""
        node = self._nodes[node_id]
        if node.style.display is Display.NONE:
            size = Size(0.0, 0.0)
        elif node.children:
            size = self._compute_container(node_id, known, available, measure, location)
        else:
            size = self._compute_leaf(node_id, known, available, measure)

        if location is not None:
            self._layouts[node_id] = Layout(location, size)
        return size

    def _compute_leaf(self, node_id: NodeId, known: KnownSize, available: AvailableSize,
                      measure: MeasureFunction) -> Size:
        node = self._nodes[node_id]
        if known.width is not None and known.height is not None:
            return Size(known.width, known.height)

        pad = node.style.padding
        h_pad, v_pad = pad.left + pad.right, pad.top + pad.bottom
        inner_known = KnownSize(
            None if known.width is None else max(known.width - h_pad, 0.0),
            None if known.height is None else max(known.height - v_pad, 0.0),
        )
        inner_available = AvailableSize(_shrink(available.width, h_pad), _shrink(available.height, v_pad))
        measured = measure(inner_known, inner_available, node_id, node.context)
        return Size(
            known.width if known.width is not None else measured.width + h_pad,
            known.height if known.height is not None else measured.height + v_pad,
        )

    def _compute_container(self, node_id: NodeId, known: KnownSize, available: AvailableSize,
                           measure: MeasureFunction, location: Optional[Point]) -> Size:
        node = self._nodes[node_id]
        style = node.style
        is_column = style.flex_direction is FlexDirection.COLUMN
        pad = style.padding
        h_pad, v_pad = pad.left + pad.right, pad.top + pad.bottom

        inner_width = None if known.width is None else max(known.width - h_pad, 0.0)
        inner_height = None if known.height is None else max(known.height - v_pad, 0.0)
        inner_available = AvailableSize(_shrink(available.width, h_pad), _shrink(available.height, v_pad))

        main_inner = inner_height if is_column else inner_width
        cross_inner = inner_width if is_column else inner_height
        main_available = inner_available.height if is_column else inner_available.width
        cross_available = inner_available.width if is_column else inner_available.height

        visible = [c for c in node.children if self._nodes[c].style.display is not Display.NONE]

        # Column containers of unknown width take the widest child
        if cross_inner is None and is_column:
            cross_inner = max(
                (self._cross_size(c, None, is_column, main_available, cross_available, measure) for c in visible),
                default=0.0,
            )

        items = [
            self._flex_item(c, is_column, main_inner, cross_inner, main_available, cross_available, measure)
            for c in visible
        ]
        if main_inner is None:
            main_inner = sum(max(item.basis, item.min_main) for item in items)
        self._resolve_flexible_lengths(items, main_inner)

        if cross_inner is None:
            cross_inner = max(
                (
                    item.cross if item.cross is not None
                    else self._cross_size(item.node, item.target, is_column, main_available, cross_available, measure)
                    for item in items
                ),
                default=0.0,
            )

        if is_column:
            size = Size(_known_or(known.width, cross_inner + h_pad), _known_or(known.height, main_inner + v_pad))
        else:
            size = Size(_known_or(known.width, main_inner + h_pad), _known_or(known.height, cross_inner + v_pad))

        if location is not None:
            self._place_children(node, items, is_column, cross_inner, measure, location)
        return size

    def _flex_item(self, child: NodeId, is_column: bool, main_inner: Optional[float],
                   cross_inner: Optional[float], main_available: AvailableSpace,
                   cross_available: AvailableSpace, measure: MeasureFunction) -> _FlexItem:
        style = self._nodes[child].style
        cross_dim = style.size.width if is_column else style.size.height
        main_dim = style.size.height if is_column else style.size.width

        cross = cross_dim.resolve(cross_inner)
        if cross is None:
            # align-items: stretch
            cross = cross_inner

        basis = style.flex_basis.resolve(main_inner)
        if basis is None:
            basis = main_dim.resolve(main_inner)

        min_main = 0.0
        if basis is None:
            child_main_available = AvailableSpace.definite(main_inner) if main_inner is not None else main_available
            basis = self._main_size(child, cross, is_column, child_main_available, cross_available, measure)
            # Automatic minimum size of a content-sized item
            min_main = self._main_size(child, cross, is_column, AvailableSpace.min_content(), cross_available, measure)

        return _FlexItem(
            node=child,
            basis=basis,
            min_main=min_main,
            cross=cross,
            factor_grow=max(style.flex_grow, 0.0),
            factor_shrink=max(style.flex_shrink, 0.0),
        )

    def _main_size(self, child: NodeId, cross: Optional[float], is_column: bool, main_available: AvailableSpace,
                   cross_available: AvailableSpace, measure: MeasureFunction) -> float:
        child_cross_available = AvailableSpace.definite(cross) if cross is not None else cross_available
        if is_column:
            size = self._compute(child, KnownSize(cross, None), AvailableSize(child_cross_available, main_available),
                                 measure, None)
            return size.height
        size = self._compute(child, KnownSize(None, cross), AvailableSize(main_available, child_cross_available),
                             measure, None)
        return size.width

    def _cross_size(self, child: NodeId, main: Optional[float], is_column: bool, main_available: AvailableSpace,
                    cross_available: AvailableSpace, measure: MeasureFunction) -> float:
        child_main_available = AvailableSpace.definite(main) if main is not None else main_available
        if is_column:
            size = self._compute(child, KnownSize(None, main), AvailableSize(cross_available, child_main_available),
                                 measure, None)
            return size.width
        size = self._compute(child, KnownSize(main, None), AvailableSize(child_main_available, cross_available),
                             measure, None)
        return size.height

    @staticmethod
    def _resolve_flexible_lengths(items: List[_FlexItem], main_inner: float) -> None:
        """Distributes free space over the items, freezing those clamped at their minimum size."""
        hypothetical = sum(max(item.basis, item.min_main) for item in items)
        growing = hypothetical < main_inner

        for item in items:
            factor = item.factor_grow if growing else item.factor_shrink
            if factor == 0.0 or (not growing and item.basis < item.min_main):
                item.frozen = True
                item.target = max(item.basis, item.min_main)

        initial_free = main_inner - sum(
            item.target if item.frozen else item.basis for item in items
        )

        while not all(item.frozen for item in items):
            unfrozen = [item for item in items if not item.frozen]
            free = main_inner - sum(item.target for item in items if item.frozen) - sum(
                item.basis for item in unfrozen
            )

            if growing:
                total_factor = sum(item.factor_grow for item in unfrozen)
            else:
                total_factor = sum(item.factor_shrink for item in unfrozen)
            if total_factor < 1.0 and abs(initial_free * total_factor) < abs(free):
                free = initial_free * total_factor

            if growing:
                for item in unfrozen:
                    item.target = item.basis + free * item.factor_grow / total_factor
            else:
                total_scaled = sum(item.factor_shrink * item.basis for item in unfrozen)
                for item in unfrozen:
                    share = item.factor_shrink * item.basis / total_scaled if total_scaled > 0 else 0.0
                    item.target = item.basis + free * share

            total_violation = 0.0
            violations = []
            for item in unfrozen:
                clamped = max(item.target, item.min_main)
                violations.append(clamped - item.target)
                total_violation += clamped - item.target
                item.target = clamped

            for item, violation in zip(unfrozen, violations):
                if abs(total_violation) < _EPSILON or (total_violation > 0 and violation > 0) or (
                    total_violation < 0 and violation < 0
                ):
                    item.frozen = True

    def _place_children(self, node: _Node, items: List[_FlexItem], is_column: bool, cross_inner: float,
                        measure: MeasureFunction, location: Point) -> None:
        pad = node.style.padding
        cursor = pad.top if is_column else pad.left
        for item in items:
            cross = item.cross if item.cross is not None else cross_inner
            if is_column:
                child_location = Point(location.x + pad.left, location.y + cursor)
                known = KnownSize(cross, item.target)
            else:
                child_location = Point(location.x + cursor, location.y + pad.top)
                known = KnownSize(item.target, cross)
            available = AvailableSize(AvailableSpace.definite(known.width), AvailableSpace.definite(known.height))
            self._compute(item.node, known, available, measure, child_location)
            cursor += item.target

        for child in node.children:
            if self._nodes[child].style.display is Display.NONE:
                self._hide(child, location)

    def _hide(self, node_id: NodeId, location: Point) -> None:
        self._layouts[node_id] = Layout(location, Size(0.0, 0.0))
        for child in self._nodes[node_id].children:
            self._hide(child, location)

    # --- Debug output ---
    def format_tree(self, root: NodeId) -> str:
        lines = ["TREE"]
        self._format_node(root, "", True, lines)
        return "\n".join(lines)

    def print_tree(self, root: NodeId) -> None:
        print(self.format_tree(root))

    def _format_node(self, node_id: NodeId, prefix: str, is_last: bool, lines: List[str]) -> None:
        node = self._node(node_id)
        layout = self.layout(node_id)
        if node.style.display is Display.NONE:
            kind = "NONE"
        elif node.children:
            kind = "FLEX COL" if node.style.flex_direction is FlexDirection.COLUMN else "FLEX ROW"
        else:
            kind = "LEAF"
        lines.append(
            f"{prefix}{'└── ' if is_last else '├── '}{kind} "
            f"[x: {layout.location.x:<6g} y: {layout.location.y:<6g} "
            f"w: {layout.size.width:<8g} h: {layout.size.height:<8g}] (NodeId({node_id}))"
        )
        child_prefix = prefix + ("    " if is_last else "│   ")
        for i, child in enumerate(node.children):
            self._format_node(child, child_prefix, i == len(node.children) - 1, lines)


def _known_or(known: Optional[float], fallback: float) -> float:
    return known if known is not None else fallback


def _definite(space: AvailableSpace) -> Optional[float]:
    return space.value if space.is_definite else None


def _shrink(space: AvailableSpace, amount: float) -> AvailableSpace:
    if space.is_definite:
        return AvailableSpace.definite(max(space.value - amount, 0.0))
    return space
