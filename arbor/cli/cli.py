#!/usr/bin/env python3
"""Command-line interface for inspecting and editing stored Arbor trees."""

import argparse
import json
import sys
from typing import List, Optional

from arbor.core.config import ArborConfig, load_config
from arbor.core.logging_config import get_logger, setup_logging_from_config
from arbor.core.time_utils import format_relative_time
from arbor.core.validation import validate_file_path
from arbor.layout.layout_engine import LayoutEngine
from arbor.render.render_coordinator import RenderCoordinator
from arbor.render.svg_surface import SvgSurface
from arbor.sources.source_adapter import StaticSourceAdapter, untracked_items
from arbor.tree.tree_constants import VALID_SHAPES
from arbor.tree.tree_exceptions import StorageError, TreeError, TreeNotFoundError
from arbor.tree.tree_manager import TreeManager
from arbor.tree.tree_operations import TreeTraverser
from arbor.tree.tree_types import Tree


def resolve_tree(manager: TreeManager, ref: str) -> Tree:
    """Find a tree by id, unique id prefix or exact name."""
    if ref in manager.trees:
        return manager.trees[ref]
    matches = [tree for tree in manager.trees.values()
               if tree.id.startswith(ref) or tree.name == ref]
    if len(matches) != 1:
        raise TreeNotFoundError(ref)
    return matches[0]


def list_trees(manager: TreeManager) -> None:
    """List trees, most recently updated first."""
    trees = manager.list_trees()
    if not trees:
        print("No trees found.")
        return

    print(f"  {'Updated':<12} {'Nodes':>5}  Name")
    for tree in trees:
        updated = format_relative_time(tree.updated_at)
        print(f"  {updated:<12} {len(tree.nodes):>5}  {tree.name}  [{tree.id}]")


def show_tree(tree: Tree) -> None:
    """Print the tree as an indented outline."""
    print(f"{tree.name} [{tree.id}]")
    for node, depth in TreeTraverser(tree).get_tree_order():
        indent = "  " * depth
        label = f" <{node.connection_label}>" if node.connection_label else ""
        pin = " (pinned)" if node.manual_position else ""
        print(f"{indent}- {node.title}{label}{pin}  [{node.id}]")


def print_layout(tree: Tree, engine: LayoutEngine) -> None:
    positions = engine.layout(tree)
    output = {
        node_id: {'x': g.x, 'y': g.y, 'width': g.width, 'height': g.height}
        for node_id, g in positions.items()
    }
    print(json.dumps(output, indent=2))


def render_tree(manager: TreeManager, tree: Tree, output: str, config: ArborConfig) -> None:
    """Write an SVG rendering of the tree."""
    coordinator = RenderCoordinator(
        manager.mutator(tree.id),
        SvgSurface(output),
        layout_engine=LayoutEngine(config.layout),
        router_config=config.router,
        debounce_seconds=config.render_debounce_seconds,
    )
    try:
        coordinator.render_now()
    finally:
        coordinator.close()
    print(f"Rendered {len(tree.nodes)} nodes to {output}")


def list_sources(manager: TreeManager, sources_file: str) -> None:
    """Show source items that are not yet tracked in any tree."""
    path = validate_file_path(sources_file, must_exist=True)
    if path is None:
        raise ValueError(f"Sources file not found: {sources_file}")
    adapter = StaticSourceAdapter.from_json_file(str(path))
    items = untracked_items(adapter, manager.trees.values())
    if not items:
        print("All source conversations are already tracked.")
        return
    for i, item in enumerate(items, 1):
        print(f"{i:3}. {item.title}  {item.url}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Arbor - organize chat conversations into trees",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--store", help="Path to the JSON store file")
    parser.add_argument("--config", help="Path to a JSON config file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    new_parser = subparsers.add_parser("new-tree", help="Create a tree")
    new_parser.add_argument("name", help="Tree name")
    new_parser.add_argument("--root-title", help="Title of the root node (default: tree name)")
    new_parser.add_argument("--url", default="", help="Source URL of the root conversation")

    subparsers.add_parser("trees", help="List trees")

    show_parser = subparsers.add_parser("show", help="Print a tree outline")
    show_parser.add_argument("tree", help="Tree id, id prefix or name")

    add_parser = subparsers.add_parser("add", help="Add a node under a parent")
    add_parser.add_argument("tree")
    add_parser.add_argument("parent", help="Parent node id")
    add_parser.add_argument("title")
    add_parser.add_argument("url")

    move_parser = subparsers.add_parser("move", help="Reparent a node")
    move_parser.add_argument("tree")
    move_parser.add_argument("node")
    move_parser.add_argument("new_parent")

    delete_parser = subparsers.add_parser("delete", help="Delete a node and its subtree")
    delete_parser.add_argument("tree")
    delete_parser.add_argument("node")

    delete_tree_parser = subparsers.add_parser("delete-tree", help="Delete a whole tree")
    delete_tree_parser.add_argument("tree")

    rename_parser = subparsers.add_parser("rename", help="Rename a node")
    rename_parser.add_argument("tree")
    rename_parser.add_argument("node")
    rename_parser.add_argument("title")

    label_parser = subparsers.add_parser("label", help="Set the label of a node's incoming connection")
    label_parser.add_argument("tree")
    label_parser.add_argument("node")
    label_parser.add_argument("label", nargs="?", help="Label text; omit to clear")

    color_parser = subparsers.add_parser("color", help="Set a node's color")
    color_parser.add_argument("tree")
    color_parser.add_argument("node")
    color_parser.add_argument("color", nargs="?", help="Hex color; omit to reset")

    shape_parser = subparsers.add_parser("shape", help="Set a node's shape")
    shape_parser.add_argument("tree")
    shape_parser.add_argument("node")
    shape_parser.add_argument("shape", nargs="?", choices=VALID_SHAPES)

    pin_parser = subparsers.add_parser("pin", help="Pin a node at a position")
    pin_parser.add_argument("tree")
    pin_parser.add_argument("node")
    pin_parser.add_argument("x", type=float, nargs="?")
    pin_parser.add_argument("y", type=float, nargs="?")
    pin_parser.add_argument("--unpin", action="store_true", help="Return the node to auto layout")

    layout_parser = subparsers.add_parser("layout", help="Print node geometry as JSON")
    layout_parser.add_argument("tree")

    render_parser = subparsers.add_parser("render", help="Render a tree to SVG")
    render_parser.add_argument("tree")
    render_parser.add_argument("-o", "--output", default="tree.svg", help="Output SVG path")

    sources_parser = subparsers.add_parser("sources", help="List untracked source conversations")
    sources_parser.add_argument("sources_file", help="JSON array of {id, title, url}")

    return parser


def run_command(args: argparse.Namespace, manager: TreeManager, config: ArborConfig) -> None:
    """Execute one parsed command against a loaded manager."""
    if args.command == "new-tree":
        tree = manager.create_tree(args.name, args.root_title, args.url)
        print(f"Created tree '{tree.name}' [{tree.id}] with root [{tree.root_id}]")
        return
    if args.command == "sources":
        list_sources(manager, args.sources_file)
        return
    if args.command in (None, "trees"):
        list_trees(manager)
        return

    tree = resolve_tree(manager, args.tree)
    mutator = manager.mutator(tree.id)

    if args.command == "show":
        show_tree(tree)
    elif args.command == "add":
        node = mutator.create(args.parent, args.title, args.url)
        print(f"Added '{node.title}' [{node.id}]")
    elif args.command == "move":
        if mutator.reparent(args.node, args.new_parent):
            print(f"Moved {args.node} under {args.new_parent}")
        else:
            print(f"This move is not allowed: {args.node} -> {args.new_parent}")
            sys.exit(1)
    elif args.command == "delete":
        result = mutator.delete(args.node)
        print(f"Deleted {len(result.deleted_ids)} nodes")
    elif args.command == "delete-tree":
        removed = manager.delete_tree(tree.id)
        print(f"Deleted tree '{tree.name}' ({len(removed)} nodes)")
    elif args.command == "rename":
        mutator.rename(args.node, args.title)
    elif args.command == "label":
        mutator.set_connection_label(args.node, args.label)
    elif args.command == "color":
        mutator.recolor(args.node, args.color)
    elif args.command == "shape":
        mutator.reshape(args.node, args.shape)
    elif args.command == "pin":
        if args.unpin:
            mutator.set_manual_position(args.node, None)
        elif args.x is None or args.y is None:
            print("Error: pin needs X and Y (or --unpin)")
            sys.exit(1)
        else:
            mutator.set_manual_position(args.node, (args.x, args.y))
    elif args.command == "layout":
        print_layout(tree, LayoutEngine(config.layout))
    elif args.command == "render":
        render_tree(manager, tree, args.output, config)


def main(argv: Optional[List[str]] = None) -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except (OSError, ValueError) as e:
        print(f"Error: could not read config: {e}")
        sys.exit(1)
    if args.store:
        store_path = validate_file_path(args.store, must_exist=False)
        if store_path is None:
            print(f"Error: invalid store path: {args.store}")
            sys.exit(1)
        config.store_path = str(store_path)

    setup_logging_from_config(config, debug_mode=args.debug)
    logger = get_logger(__name__)

    try:
        # One-shot process: writes are applied when the manager closes
        manager = TreeManager.open(config, debug=args.debug, flush_delay=0)
    except StorageError as e:
        print(f"Error: {e}")
        sys.exit(1)

    try:
        run_command(args, manager, config)
    except (TreeError, ValueError) as e:
        logger.debug(f"Command {args.command} failed: {e!r}")
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        manager.close()


if __name__ == "__main__":
    main()
