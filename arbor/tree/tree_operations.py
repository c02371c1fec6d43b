#!/usr/bin/env python3
"""
Tree helper classes: traversal, invariant validation and node construction.

All walks use explicit work lists so that very deep trees never hit the
interpreter's recursion limit.
"""

# Standard library imports
import logging
import uuid
from collections import Counter
from typing import Container, Dict, List, Optional, Tuple

# Local imports
from arbor.core.time_utils import utc_now_iso
from arbor.tree.tree_constants import DEFAULT_NODE_TITLE, NODE_ID_PREFIX, TREE_ID_PREFIX
from arbor.tree.tree_types import Node, Tree, ValidationResult


class TreeTraverser:
    """Handles tree traversal operations."""

    def __init__(self, tree: Tree):
        self.tree = tree

    def get_descendants(self, node_id: str, include_self: bool = True) -> List[str]:
        """Collect descendant ids in pre-order (children in sibling order)."""
        result: List[str] = []
        stack = [node_id]
        while stack:
            current_id = stack.pop()
            node = self.tree.nodes.get(current_id)
            if node is None:
                continue
            result.append(current_id)
            # Reversed so the first child is visited first
            stack.extend(reversed(node.children))
        if not include_self and result and result[0] == node_id:
            result = result[1:]
        return result

    def get_ancestors(self, node_id: str) -> List[str]:
        """Ancestor ids from the immediate parent up to the root.

        The walk is bounded by the node count, so a corrupted parent chain
        cannot loop forever.
        """
        ancestors: List[str] = []
        node = self.tree.nodes.get(node_id)
        steps = 0
        limit = len(self.tree.nodes)
        while node is not None and node.parent_id is not None and steps < limit:
            ancestors.append(node.parent_id)
            node = self.tree.nodes.get(node.parent_id)
            steps += 1
        return ancestors

    def is_same_or_descendant(self, candidate_id: str, ancestor_id: str) -> bool:
        """Walk up from candidate; True if ancestor_id is met on the way."""
        if candidate_id == ancestor_id:
            return True
        return ancestor_id in self.get_ancestors(candidate_id)

    def get_depths(self) -> Dict[str, int]:
        """Depth of every node reachable from the root (root depth 0)."""
        depths: Dict[str, int] = {}
        stack: List[Tuple[str, int]] = [(self.tree.root_id, 0)]
        while stack:
            node_id, depth = stack.pop()
            node = self.tree.nodes.get(node_id)
            if node is None or node_id in depths:
                continue
            depths[node_id] = depth
            for child_id in reversed(node.children):
                stack.append((child_id, depth + 1))
        return depths

    def get_tree_order(self) -> List[Tuple[Node, int]]:
        """Nodes in display order with depth levels."""
        depths = self.get_depths()
        return [(self.tree.nodes[node_id], depths[node_id])
                for node_id in self.get_descendants(self.tree.root_id)]


class TreeValidator:
    """Checks the structural invariants of a tree."""

    def __init__(self, debug: bool = False):
        self.debug = debug
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def validate(self, tree: Tree) -> ValidationResult:
        """Check all five structural invariants and collect every violation."""
        result = ValidationResult()
        nodes = tree.nodes

        # 1. single parentless node, and it is the root
        parentless = [node_id for node_id, node in nodes.items() if node.parent_id is None]
        if tree.root_id not in nodes:
            result.add_error(f"Root {tree.root_id} is missing from nodes")
        if parentless != [tree.root_id]:
            result.add_error(f"Expected exactly one parentless node ({tree.root_id}), found {parentless}")

        # 4. parent/children agreement, no duplicates, one owner per child
        owners: Counter = Counter()
        for node_id, node in nodes.items():
            if node_id != node.id:
                result.add_error(f"Node keyed as {node_id} has id {node.id}")
            counts = Counter(node.children)
            for child_id, count in counts.items():
                owners[child_id] += count
                if count > 1:
                    result.add_error(f"Node {node_id} lists child {child_id} {count} times")
                child = nodes.get(child_id)
                if child is None:
                    result.add_error(f"Node {node_id} lists missing child {child_id}")
                elif child.parent_id != node_id:
                    result.add_error(f"Child {child_id} of {node_id} has parent {child.parent_id}")
        for node_id, node in nodes.items():
            if node.parent_id is None:
                continue
            parent = nodes.get(node.parent_id)
            if parent is None:
                result.add_error(f"Node {node_id} has missing parent {node.parent_id}")
            elif node_id not in parent.children:
                result.add_error(f"Parent {node.parent_id} does not list child {node_id}")
            if owners[node_id] > 1:
                result.add_error(f"Node {node_id} appears in {owners[node_id]} children lists")

        # 5. root is nobody's child
        if owners[tree.root_id]:
            result.add_error(f"Root {tree.root_id} appears as a child")

        # 3. every parent chain ends at the root within |nodes| steps
        limit = len(nodes)
        for node_id in nodes:
            current = nodes[node_id]
            steps = 0
            while current.parent_id is not None and steps <= limit:
                current = nodes.get(current.parent_id)
                steps += 1
                if current is None:
                    break
            if current is None or current.parent_id is not None or current.id != tree.root_id:
                result.add_error(f"Parent chain of {node_id} does not end at the root")

        # 2. reachability from the root
        reachable = set(TreeTraverser(tree).get_descendants(tree.root_id))
        orphans = sorted(set(nodes) - reachable)
        if orphans:
            result.add_error(f"Nodes unreachable from root: {orphans}")

        if not result.is_valid and self.debug:
            self.logger.debug(f"Tree {tree.id} failed validation: {result.errors}")
        return result


class NodeFactory:
    """Factory for creating trees and tree nodes."""

    @staticmethod
    def new_node_id(existing: Container[str] = frozenset()) -> str:
        """Allocate a node id not present in ``existing`` (a set or an id-keyed dict)."""
        while True:
            node_id = f"{NODE_ID_PREFIX}-{uuid.uuid4().hex}"
            if node_id not in existing:
                return node_id

    @staticmethod
    def new_tree_id() -> str:
        return f"{TREE_ID_PREFIX}-{uuid.uuid4().hex}"

    @staticmethod
    def create_node(node_id: str, title: str, source_url: str,
                    parent_id: Optional[str] = None,
                    platform: Optional[str] = None) -> Node:
        """Create a detached node stamped with the current time."""
        now = utc_now_iso()
        return Node(
            id=node_id,
            title=title.strip() or DEFAULT_NODE_TITLE,
            source_url=source_url,
            parent_id=parent_id,
            children=[],
            created_at=now,
            updated_at=now,
            platform=platform,
        )

    @classmethod
    def create_tree(cls, name: str, root_title: str, root_url: str,
                    platform: Optional[str] = None) -> Tree:
        """Create a tree holding exactly one node, its root."""
        root = cls.create_node(cls.new_node_id(), root_title, root_url, platform=platform)
        return Tree(
            id=cls.new_tree_id(),
            name=name,
            root_id=root.id,
            nodes={root.id: root},
            created_at=root.created_at,
            updated_at=root.created_at,
        )
