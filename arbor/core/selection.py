#!/usr/bin/env python3
"""Selection state: which tree and node the user is currently looking at.

The selection refers to a tree but is never part of it; it is updated after
mutations from their results instead of being maintained by the mutator.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from arbor.core.logging_config import get_logger
from arbor.core.type_definitions import StateRecord
from arbor.tree.tree_exceptions import NodeNotFoundError
from arbor.tree.tree_types import DeleteResult, Tree

logger = get_logger(__name__)


@dataclass
class Selection:
    current_tree_id: Optional[str] = None
    current_node_id: Optional[str] = None


class SelectionManager:
    """Tracks the current tree/node and repairs it after deletions."""

    def __init__(self):
        self.selection = Selection()

    @property
    def current_tree_id(self) -> Optional[str]:
        return self.selection.current_tree_id

    @property
    def current_node_id(self) -> Optional[str]:
        return self.selection.current_node_id

    def select_tree(self, tree: Tree) -> None:
        """Switch trees; the root becomes the current node."""
        self.selection = Selection(tree.id, tree.root_id)

    def select_node(self, tree: Tree, node_id: str) -> None:
        if node_id not in tree.nodes:
            raise NodeNotFoundError(node_id, "select")
        self.selection = Selection(tree.id, node_id)

    def clear_selection(self) -> None:
        self.selection = Selection()

    def apply_delete(self, tree_id: str, result: DeleteResult) -> bool:
        """Move the selection to the former parent if its node was deleted.

        Returns:
            True if the selection changed
        """
        if self.selection.current_tree_id != tree_id:
            return False
        if self.selection.current_node_id not in result.deleted_ids:
            return False
        logger.debug(f"Selected node {self.selection.current_node_id} deleted, "
                     f"selecting {result.former_parent_id}")
        self.selection = Selection(tree_id, result.former_parent_id)
        return True

    def apply_tree_deleted(self, tree_id: str, remaining: Iterable[Tree]) -> bool:
        """Fall back to another tree (or nothing) when the current one is destroyed."""
        if self.selection.current_tree_id != tree_id:
            return False
        next_tree = next(iter(remaining), None)
        if next_tree is None:
            self.clear_selection()
        else:
            self.select_tree(next_tree)
        return True

    def to_record(self) -> StateRecord:
        return {
            'current_tree_id': self.selection.current_tree_id,
            'current_node_id': self.selection.current_node_id,
        }

    def restore(self, record: StateRecord, trees: Iterable[Tree]) -> None:
        """Restore a saved selection, dropping references that no longer resolve."""
        by_id = {tree.id: tree for tree in trees}
        tree = by_id.get(record.get('current_tree_id') or "")
        if tree is None:
            self.clear_selection()
            return
        node_id = record.get('current_node_id')
        self.selection = Selection(tree.id, node_id if node_id in tree.nodes else tree.root_id)
