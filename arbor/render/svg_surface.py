#!/usr/bin/env python3
"""
SVG display surface.

Produces a standalone SVG document for a frame:
- curved connectors behind the nodes
- a relationship label (or nothing) at each connector's anchor
- one box per node, shaped and coloured from its presentation attributes
"""

import html
from pathlib import Path
from typing import List, Optional, Union

from arbor.core.logging_config import get_logger
from arbor.render.render_coordinator import NodeStyle, RenderFrame
from arbor.layout.layout_engine import NodeGeometry

logger = get_logger(__name__)

DEFAULT_BORDER = "#5eead4"
SELECTED_BORDER = "#4a9cff"
CONNECTOR_STROKE = "#b0b0b0"
LABEL_COLOR = "#2dd4a7"
TITLE_CHARS = 28


def _num(value: float) -> str:
    return f"{value:.2f}".rstrip("0").rstrip(".")


def _node_shape(geometry: NodeGeometry, style: NodeStyle, stroke: str) -> str:
    x, y, w, h = geometry.x, geometry.y, geometry.width, geometry.height
    common = f'fill="#1c2420" stroke="{stroke}" stroke-width="2"'
    shape = style.shape or "rounded"

    if shape == "circle":
        return (f'<ellipse cx="{_num(x + w / 2)}" cy="{_num(y + h / 2)}" '
                f'rx="{_num(w / 2)}" ry="{_num(h / 2)}" {common} />')
    if shape == "diamond":
        points = [
            (x + w / 2, y), (x + w, y + h / 2), (x + w / 2, y + h), (x, y + h / 2),
        ]
        joined = " ".join(f"{_num(px)},{_num(py)}" for px, py in points)
        return f'<polygon points="{joined}" {common} />'

    radius = 0 if shape == "rectangle" else 12
    return (f'<rect x="{_num(x)}" y="{_num(y)}" width="{_num(w)}" height="{_num(h)}" '
            f'rx="{radius}" {common} />')


def render_svg(frame: RenderFrame) -> str:
    """Render a frame as an SVG document string."""
    width, height = frame.canvas
    parts: List[str] = [
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{_num(width)}" '
        f'height="{_num(height)}" viewBox="0 0 {_num(width)} {_num(height)}">',
        f'<title>{html.escape(frame.tree_name)}</title>',
        '<g class="connections">',
    ]

    for child_id, connection in frame.connections.items():
        parts.append(
            f'<path d="{connection.curve.to_svg_path()}" fill="none" '
            f'stroke="{CONNECTOR_STROKE}" stroke-width="2" '
            f'data-child-node-id="{html.escape(child_id)}" />'
        )
        if connection.label:
            ax, ay = connection.label_anchor
            parts.append(
                f'<text class="connection-label" x="{_num(ax)}" y="{_num(ay)}" '
                f'text-anchor="middle" dominant-baseline="middle" font-size="11" '
                f'fill="{LABEL_COLOR}">{html.escape(connection.label)}</text>'
            )
    parts.append('</g>')

    parts.append('<g class="nodes">')
    for node_id, geometry in frame.positions.items():
        style = frame.styles.get(node_id)
        if style is None:
            continue
        stroke = SELECTED_BORDER if node_id == frame.selected_node_id else (style.color or DEFAULT_BORDER)
        title = style.title if len(style.title) <= TITLE_CHARS else style.title[:TITLE_CHARS - 1] + "…"
        parts.append(f'<g class="graph-node" data-node-id="{html.escape(node_id)}">')
        parts.append(_node_shape(geometry, style, stroke))
        parts.append(
            f'<text x="{_num(geometry.center_x)}" y="{_num(geometry.y + geometry.height / 2)}" '
            f'text-anchor="middle" dominant-baseline="middle" font-size="13" fill="#e6ede9">'
            f'{html.escape(title)}</text>'
        )
        parts.append('</g>')
    parts.append('</g>')
    parts.append('</svg>')
    return "\n".join(parts)


class SvgSurface:
    """Display surface that keeps the latest SVG and optionally writes it to a file."""

    def __init__(self, output_path: Optional[Union[str, Path]] = None):
        self.output_path = Path(output_path) if output_path else None
        self.last_svg: Optional[str] = None
        self.frames_drawn = 0

    def draw(self, frame: RenderFrame) -> None:
        self.last_svg = render_svg(frame)
        self.frames_drawn += 1
        if self.output_path is not None:
            self.output_path.parent.mkdir(parents=True, exist_ok=True)
            self.output_path.write_text(self.last_svg, encoding="utf-8")
            logger.info(f"Wrote {len(frame.positions)} nodes to {self.output_path}")
