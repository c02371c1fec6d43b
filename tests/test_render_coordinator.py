#!/usr/bin/env python3
"""Tests for debounced rendering and the SVG surface."""

import tempfile
import threading
import time
from pathlib import Path
from unittest.mock import patch

from arbor.core.selection import SelectionManager
from arbor.render.render_coordinator import RenderCoordinator, build_frame
from arbor.render.svg_surface import SvgSurface, render_svg
from arbor.layout.connection_router import RouterConfig
from arbor.layout.layout_engine import LayoutEngine
from arbor.tree.tree_mutator import TreeMutator
from arbor.tree.tree_operations import NodeFactory


class RecordingSurface:
    """Display surface that keeps every frame it receives."""

    def __init__(self):
        self.frames = []
        self.drawn = threading.Event()

    def draw(self, frame):
        self.frames.append(frame)
        self.drawn.set()


class FlakySurface(RecordingSurface):
    """Surface whose first draw fails."""

    def __init__(self):
        super().__init__()
        self.failed = threading.Event()

    def draw(self, frame):
        if not self.failed.is_set():
            self.failed.set()
            raise OSError("disk full")
        super().draw(frame)


class TestBuildFrame:
    """Test frame construction."""

    def test_frame_contents(self):
        tree = NodeFactory.create_tree("Frame", "Root", "u0")
        mutator = TreeMutator(tree)
        child = mutator.create(tree.root_id, "Child", "u1")
        mutator.recolor(child.id, "#123456")

        frame = build_frame(tree, LayoutEngine(), RouterConfig(), selected_node_id=child.id)

        assert frame.tree_id == tree.id
        assert set(frame.positions) == {tree.root_id, child.id}
        assert set(frame.connections) == {child.id}
        assert frame.styles[child.id].color == "#123456"
        assert frame.canvas == (2000, 2000)
        assert frame.selected_node_id == child.id


class TestRenderCoordinatorManual:
    """Coordinator with the debounce timer disabled."""

    def setup_method(self):
        self.tree = NodeFactory.create_tree("Render", "Root", "u0")
        self.mutator = TreeMutator(self.tree)
        self.surface = RecordingSurface()
        self.coordinator = RenderCoordinator(self.mutator, self.surface, debounce_seconds=None)

    def test_changes_mark_pending(self):
        assert not self.coordinator.pending
        self.mutator.create(self.tree.root_id, "A", "ua")
        assert self.coordinator.pending
        assert self.surface.frames == []

    def test_burst_coalesces_into_one_frame(self):
        for i in range(10):
            self.mutator.create(self.tree.root_id, f"n{i}", f"u{i}")

        assert self.coordinator.flush() is True
        assert len(self.surface.frames) == 1
        assert len(self.surface.frames[0].positions) == 11
        assert self.coordinator.flush() is False

    def test_cosmetic_change_also_redraws(self):
        self.mutator.rename(self.tree.root_id, "Renamed")
        self.coordinator.flush()
        assert self.surface.frames[0].styles[self.tree.root_id].title == "Renamed"

    def test_render_now(self):
        frame = self.coordinator.render_now()
        assert self.coordinator.render_count == 1
        assert self.coordinator.last_frame is frame

    def test_close_flushes_and_unsubscribes(self):
        self.mutator.create(self.tree.root_id, "A", "ua")
        self.coordinator.close()

        assert len(self.surface.frames) == 1
        self.mutator.create(self.tree.root_id, "B", "ub")
        assert len(self.surface.frames) == 1
        assert not self.coordinator.pending

    def test_selection_is_highlighted(self):
        selection = SelectionManager()
        selection.select_tree(self.tree)
        coordinator = RenderCoordinator(self.mutator, self.surface, selection=selection,
                                        debounce_seconds=None)

        frame = coordinator.render_now()

        assert frame.selected_node_id == self.tree.root_id


class TestRenderCoordinatorDebounce:
    """Coordinator with a real timer."""

    def test_window_ends_in_one_recompute(self):
        tree = NodeFactory.create_tree("Render", "Root", "u0")
        mutator = TreeMutator(tree)
        surface = RecordingSurface()
        coordinator = RenderCoordinator(mutator, surface, debounce_seconds=0.05)

        for i in range(5):
            mutator.create(tree.root_id, f"n{i}", f"u{i}")

        assert surface.drawn.wait(2.0)
        time.sleep(0.1)
        assert len(surface.frames) == 1
        assert len(surface.frames[0].positions) == 6
        coordinator.close()

    def test_failed_render_is_logged_and_stays_pending(self):
        tree = NodeFactory.create_tree("Render", "Root", "u0")
        mutator = TreeMutator(tree)
        surface = FlakySurface()
        coordinator = RenderCoordinator(mutator, surface, debounce_seconds=0.05)

        with patch("arbor.render.render_coordinator.logger") as mock_logger:
            mutator.create(tree.root_id, "n", "u1")
            assert surface.failed.wait(2.0)
            deadline = time.monotonic() + 2.0
            while not mock_logger.exception.called and time.monotonic() < deadline:
                time.sleep(0.01)

        assert mock_logger.exception.call_count == 1
        assert coordinator.pending
        assert surface.frames == []

        assert coordinator.flush()
        assert len(surface.frames) == 1
        assert not coordinator.pending
        coordinator.close()


class TestSvgSurface:
    """Test SVG output."""

    def setup_method(self):
        self.tree = NodeFactory.create_tree("Graph <1>", "Root & co", "u0")
        mutator = TreeMutator(self.tree)
        self.child = mutator.create(self.tree.root_id, "Child", "u1")
        mutator.set_connection_label(self.child.id, "explores")
        mutator.reshape(self.child.id, "circle")
        self.frame = build_frame(self.tree, LayoutEngine(), RouterConfig())

    def test_render_svg_escapes_and_draws(self):
        svg = render_svg(self.frame)

        assert svg.startswith("<svg")
        assert "Graph &lt;1&gt;" in svg
        assert "Root &amp; co" in svg
        assert "<ellipse" in svg
        assert ">explores</text>" in svg
        assert self.frame.connections[self.child.id].curve.to_svg_path() in svg

    def test_surface_writes_file(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            output = Path(temp_dir) / "out" / "tree.svg"
            surface = SvgSurface(output)

            surface.draw(self.frame)

            assert output.exists()
            assert output.read_text(encoding="utf-8") == surface.last_svg
            assert surface.frames_drawn == 1
