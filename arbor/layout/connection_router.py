#!/usr/bin/env python3
"""Curved parent-to-child connectors and their label anchors."""

from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Tuple

from arbor.core.logging_config import get_logger
from arbor.layout.layout_engine import NodeGeometry
from arbor.tree.tree_constants import CURVE_TENSION, LABEL_T
from arbor.tree.tree_types import Tree

logger = get_logger(__name__)

Point = Tuple[float, float]


@dataclass(frozen=True)
class RouterConfig:
    # How far along the vertical distance the control points sit
    tension: float = CURVE_TENSION
    # Curve parameter of the label anchor; < 0.5 keeps it nearer the parent
    label_t: float = LABEL_T


@dataclass(frozen=True)
class CubicCurve:
    p0: Point
    p1: Point
    p2: Point
    p3: Point

    def point_at(self, t: float) -> Point:
        """Evaluate B(t) = (1-t)^3 P0 + 3(1-t)^2 t P1 + 3(1-t) t^2 P2 + t^3 P3."""
        u = 1.0 - t
        a = u * u * u
        b = 3 * u * u * t
        c = 3 * u * t * t
        d = t * t * t
        x = a * self.p0[0] + b * self.p1[0] + c * self.p2[0] + d * self.p3[0]
        y = a * self.p0[1] + b * self.p1[1] + c * self.p2[1] + d * self.p3[1]
        return x, y

    def to_svg_path(self) -> str:
        return (f"M {_fmt(self.p0[0])} {_fmt(self.p0[1])} "
                f"C {_fmt(self.p1[0])} {_fmt(self.p1[1])}, "
                f"{_fmt(self.p2[0])} {_fmt(self.p2[1])}, "
                f"{_fmt(self.p3[0])} {_fmt(self.p3[1])}")


@dataclass(frozen=True)
class Connection:
    parent_id: str
    child_id: str
    curve: CubicCurve
    label_anchor: Point
    label: Optional[str] = None


def _fmt(value: float) -> str:
    # Trim trailing zeros so paths stay short and stable
    return f"{value:.2f}".rstrip("0").rstrip(".")


def route(parent: NodeGeometry, child: NodeGeometry,
          config: RouterConfig = RouterConfig()) -> Tuple[CubicCurve, Point]:
    """Curve from the parent's bottom centre to the child's top centre, plus label anchor."""
    p0 = (parent.x + parent.width / 2, parent.y + parent.height)
    p3 = (child.x + child.width / 2, child.y)
    dy = p3[1] - p0[1]
    p1 = (p0[0], p0[1] + config.tension * dy)
    p2 = (p3[0], p3[1] - config.tension * dy)
    curve = CubicCurve(p0, p1, p2, p3)
    return curve, curve.point_at(config.label_t)


def route_connections(tree: Tree, positions: Mapping[str, NodeGeometry],
                      config: RouterConfig = RouterConfig()) -> Dict[str, Connection]:
    """
    Route every parent/child edge of the tree.

    Edges whose endpoint has no geometry are left out rather than raised;
    a missing connector is cosmetic.

    Returns:
        Mapping of child id to Connection, following the order of ``positions``
    """
    connections: Dict[str, Connection] = {}
    for node_id in positions:
        node = tree.nodes.get(node_id)
        if node is None or node.parent_id is None:
            continue
        parent_geometry = positions.get(node.parent_id)
        if parent_geometry is None:
            logger.debug(f"No geometry for parent {node.parent_id} of {node_id}, skipping connector")
            continue
        curve, anchor = route(parent_geometry, positions[node_id], config)
        connections[node_id] = Connection(node.parent_id, node_id, curve, anchor,
                                          node.connection_label)
    return connections
