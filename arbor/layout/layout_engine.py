#!/usr/bin/env python3
"""
Top-down hierarchical layout for conversation trees.

Positions are computed in three passes over a pre-order listing of the tree:
subtree widths bottom-up, child slots top-down, then node x positions
bottom-up so each parent is centred over its children. Each node's subtree
owns the horizontal slot ``[slot_x, slot_x + subtree_width)``; sibling slots
are separated by ``sibling_gap`` and never intersect.

The engine assumes the tree satisfies the structural invariants and does not
re-check them.
"""

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple

from arbor.core.performance import performance_timer
from arbor.tree.tree_constants import (
    CANVAS_MARGIN, LEVEL_HEIGHT, MIN_CANVAS_SIZE, NODE_SIZES_BY_DEPTH,
    PADDING_HORIZONTAL, PADDING_TOP, SIBLING_GAP
)
from arbor.tree.tree_types import Tree


@dataclass(frozen=True)
class LayoutConfig:
    """Layout constants, in pixels."""
    padding_horizontal: float = PADDING_HORIZONTAL
    padding_top: float = PADDING_TOP
    level_height: float = LEVEL_HEIGHT
    sibling_gap: float = SIBLING_GAP
    # (width, height) by depth; the last entry applies to all deeper levels
    node_sizes: Tuple[Tuple[float, float], ...] = NODE_SIZES_BY_DEPTH

    def node_size(self, depth: int) -> Tuple[float, float]:
        return self.node_sizes[min(depth, len(self.node_sizes) - 1)]


@dataclass(frozen=True)
class NodeGeometry:
    """Top-left corner and size of a node box."""
    x: float
    y: float
    width: float
    height: float

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2

    @property
    def bottom(self) -> float:
        return self.y + self.height


PositionMap = Dict[str, NodeGeometry]

DEFAULT_CONFIG = LayoutConfig()


def depth_first_order(tree: Tree) -> List[Tuple[str, int]]:
    """(node id, depth) pairs in pre-order, children in sibling order."""
    order: List[Tuple[str, int]] = []
    stack: List[Tuple[str, int]] = [(tree.root_id, 0)]
    while stack:
        node_id, depth = stack.pop()
        order.append((node_id, depth))
        children = tree.nodes[node_id].children
        for child_id in reversed(children):
            stack.append((child_id, depth + 1))
    return order


def compute_subtree_widths(tree: Tree, config: LayoutConfig = DEFAULT_CONFIG,
                           order: Optional[List[Tuple[str, int]]] = None) -> Dict[str, float]:
    """Horizontal footprint of every node together with its descendants."""
    order = order if order is not None else depth_first_order(tree)
    widths: Dict[str, float] = {}
    # Reversed pre-order visits every child before its parent
    for node_id, depth in reversed(order):
        own_width = config.node_size(depth)[0]
        children = tree.nodes[node_id].children
        if not children:
            widths[node_id] = own_width
            continue
        span = sum(widths[child_id] for child_id in children)
        span += (len(children) - 1) * config.sibling_gap
        widths[node_id] = max(own_width, span)
    return widths


def compute_slots(tree: Tree, config: LayoutConfig = DEFAULT_CONFIG,
                  order: Optional[List[Tuple[str, int]]] = None,
                  widths: Optional[Dict[str, float]] = None) -> Dict[str, float]:
    """Left edge of the horizontal slot reserved for each node's subtree."""
    order = order if order is not None else depth_first_order(tree)
    widths = widths if widths is not None else compute_subtree_widths(tree, config, order)
    gap = config.sibling_gap
    slot_x: Dict[str, float] = {tree.root_id: config.padding_horizontal}
    for node_id, _ in order:
        children = tree.nodes[node_id].children
        if not children:
            continue
        span = sum(widths[child_id] for child_id in children) + (len(children) - 1) * gap
        # A parent wider than its children's span centres them inside its slot
        x = slot_x[node_id] + (widths[node_id] - span) / 2
        for child_id in children:
            slot_x[child_id] = x
            x += widths[child_id] + gap
    return slot_x


def layout(tree: Tree, config: LayoutConfig = DEFAULT_CONFIG) -> PositionMap:
    """
    Compute the geometry of every node.

    Args:
        tree: A structurally valid tree
        config: Layout constants

    Returns:
        Mapping of node id to NodeGeometry, in pre-order
    """
    order = depth_first_order(tree)
    widths = compute_subtree_widths(tree, config, order)
    slot_x = compute_slots(tree, config, order, widths)

    # Bottom-up: leaves sit in their slot, parents centre over their children.
    # Manual positions are ignored here so siblings keep their spacing.
    auto_x: Dict[str, float] = {}
    for node_id, depth in reversed(order):
        own_width = config.node_size(depth)[0]
        children = tree.nodes[node_id].children
        if not children:
            auto_x[node_id] = slot_x[node_id] + (widths[node_id] - own_width) / 2
            continue
        child_width = config.node_size(depth + 1)[0]
        first_x = auto_x[children[0]]
        last_x = auto_x[children[-1]]
        auto_x[node_id] = (first_x + last_x + child_width) / 2 - own_width / 2

    positions: PositionMap = {}
    for node_id, depth in order:
        width, height = config.node_size(depth)
        manual = tree.nodes[node_id].manual_position
        if manual is not None:
            positions[node_id] = NodeGeometry(manual.x, manual.y, width, height)
        else:
            y = config.padding_top + depth * config.level_height
            positions[node_id] = NodeGeometry(auto_x[node_id], y, width, height)
    return positions


def layout_bounds(positions: Mapping[str, NodeGeometry]) -> Tuple[float, float]:
    """Right-most and bottom-most edge over all node boxes."""
    max_x = 0.0
    max_y = 0.0
    for geometry in positions.values():
        max_x = max(max_x, geometry.x + geometry.width)
        max_y = max(max_y, geometry.y + geometry.height)
    return max_x, max_y


def canvas_size(positions: Mapping[str, NodeGeometry], minimum: float = MIN_CANVAS_SIZE,
                margin: float = CANVAS_MARGIN) -> Tuple[float, float]:
    """Canvas large enough for every node plus a margin, never below minimum."""
    max_x, max_y = layout_bounds(positions)
    return max(minimum, max_x + margin), max(minimum, max_y + margin)


class LayoutEngine:
    """Layout bound to one configuration."""

    def __init__(self, config: Optional[LayoutConfig] = None):
        self.config = config or DEFAULT_CONFIG

    @performance_timer("layout")
    def layout(self, tree: Tree) -> PositionMap:
        return layout(tree, self.config)

    def subtree_widths(self, tree: Tree) -> Dict[str, float]:
        return compute_subtree_widths(tree, self.config)
