#!/usr/bin/env python3
"""
Glue between tree mutations and a display surface.

The coordinator listens to a TreeMutator, coalesces bursts of changes with
a debounce timer and, when the window closes, recomputes layout and
connectors once and hands the resulting frame to the display surface.
"""

import threading
from dataclasses import dataclass
from typing import Dict, Optional, Protocol, Tuple

from arbor.core.logging_config import get_logger
from arbor.core.performance import get_performance_monitor
from arbor.core.selection import SelectionManager
from arbor.layout.connection_router import Connection, RouterConfig, route_connections
from arbor.layout.layout_engine import LayoutEngine, NodeGeometry, canvas_size
from arbor.tree.tree_constants import RENDER_DEBOUNCE_SECONDS
from arbor.tree.tree_mutator import TreeMutator
from arbor.tree.tree_types import Tree, TreeChange

logger = get_logger(__name__)


@dataclass(frozen=True)
class NodeStyle:
    """Presentation snapshot of one node, taken when the frame is built."""
    title: str
    source_url: str
    color: Optional[str] = None
    shape: Optional[str] = None
    pinned: bool = False


@dataclass(frozen=True)
class RenderFrame:
    """Everything a display surface needs to draw one tree."""
    tree_id: str
    tree_name: str
    positions: Dict[str, NodeGeometry]
    connections: Dict[str, Connection]
    styles: Dict[str, NodeStyle]
    canvas: Tuple[float, float]
    selected_node_id: Optional[str] = None


def build_frame(tree: Tree, layout_engine: LayoutEngine, router_config: RouterConfig,
                selected_node_id: Optional[str] = None) -> RenderFrame:
    """Compute one frame for a tree without drawing it."""
    positions = layout_engine.layout(tree)
    connections = route_connections(tree, positions, router_config)
    styles = {
        node_id: NodeStyle(
            title=node.title,
            source_url=node.source_url,
            color=node.color,
            shape=node.shape,
            pinned=node.manual_position is not None,
        )
        for node_id, node in tree.nodes.items()
    }
    return RenderFrame(
        tree_id=tree.id,
        tree_name=tree.name,
        positions=positions,
        connections=connections,
        styles=styles,
        canvas=canvas_size(positions),
        selected_node_id=selected_node_id,
    )


class DisplaySurface(Protocol):
    def draw(self, frame: RenderFrame) -> None:
        ...


class RenderCoordinator:
    """Debounced layout + routing driven by tree change notifications."""

    def __init__(self, mutator: TreeMutator, surface: DisplaySurface,
                 layout_engine: Optional[LayoutEngine] = None,
                 router_config: Optional[RouterConfig] = None,
                 selection: Optional[SelectionManager] = None,
                 debounce_seconds: Optional[float] = RENDER_DEBOUNCE_SECONDS):
        """
        Args:
            mutator: Mutator of the tree being displayed
            surface: Receives one frame per recompute
            layout_engine: Layout configuration holder
            router_config: Connector curve settings
            selection: Source of the highlighted node
            debounce_seconds: Coalescing window; None means recomputes only
                happen on flush() or render_now()
        """
        self.mutator = mutator
        self.surface = surface
        self.layout_engine = layout_engine or LayoutEngine()
        self.router_config = router_config or RouterConfig()
        self.selection = selection
        self.debounce_seconds = debounce_seconds
        self.lock = threading.Lock()
        self.render_lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._pending = False
        self._closed = False
        self.render_count = 0
        self.last_frame: Optional[RenderFrame] = None
        mutator.subscribe(self.on_tree_changed)

    @property
    def pending(self) -> bool:
        with self.lock:
            return self._pending

    def on_tree_changed(self, change: TreeChange) -> None:
        """Listener registered with the mutator."""
        logger.debug(f"Tree {change.tree_id} changed: {change.operation.value}")
        self.invalidate()

    def invalidate(self) -> None:
        """Request a recompute; restarts the debounce window."""
        with self.lock:
            if self._closed:
                return
            self._pending = True
            if self.debounce_seconds is None:
                return
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.debounce_seconds, self._on_timer)
            self._timer.daemon = True
            self._timer.start()

    def _on_timer(self) -> None:
        with self.lock:
            # A newer window may have replaced this timer already
            if self._timer is not threading.current_thread():
                return
            self._timer = None
        try:
            self.flush()
        except Exception:
            # Window stays pending; the next change or flush() retries it
            logger.exception(f"Render of tree {self.mutator.tree.id} failed")

    def flush(self) -> bool:
        """
        Run a pending recompute now. Returns True if one ran.

        If the recompute raises, the window is marked pending again before
        the error propagates.
        """
        with self.lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            if not self._pending:
                return False
            self._pending = False
        try:
            self.render_now()
        except Exception:
            with self.lock:
                if not self._closed:
                    self._pending = True
            raise
        return True

    def render_now(self) -> RenderFrame:
        """Recompute layout and connectors and draw them immediately."""
        with self.render_lock:
            tree = self.mutator.tree
            selected = None
            if self.selection is not None and self.selection.current_tree_id == tree.id:
                selected = self.selection.current_node_id
            with get_performance_monitor().measure("render_frame", nodes=len(tree.nodes)):
                frame = build_frame(tree, self.layout_engine, self.router_config, selected)
            self.surface.draw(frame)
            self.render_count += 1
            self.last_frame = frame
            return frame

    def close(self) -> None:
        """Stop listening; a window still open ends in its recompute."""
        self.mutator.unsubscribe(self.on_tree_changed)
        self.flush()
        with self.lock:
            self._closed = True
