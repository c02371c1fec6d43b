#!/usr/bin/env python3
"""
Invariant-preserving mutations of a conversation tree.

TreeMutator is the only code that changes ``nodes``, ``children`` or
``parent_id``. Every operation validates its whole request before touching
anything, so a failure leaves the tree exactly as it was.
"""

# Standard library imports
import logging
from typing import Iterable, List, Optional, Protocol, Sequence, Tuple, Union

# Local imports
from arbor.core.time_utils import utc_now_iso
from arbor.core.validation import sanitize_title, validate_color, validate_shape
from arbor.tree.tree_constants import DEFAULT_NODE_TITLE, ERROR_MESSAGES
from arbor.tree.tree_exceptions import (
    InvalidReparentError, NodeNotFoundError, ParentNotFoundError,
    RootDeletionForbiddenError, TreeValidationError
)
from arbor.tree.tree_operations import NodeFactory, TreeTraverser
from arbor.tree.tree_types import (
    DeleteResult, Node, Position, Tree, TreeChange, TreeChangeListener, TreeOperation
)

PositionLike = Union[Position, Tuple[float, float]]


class PersistenceSink(Protocol):
    """Where the mutator sends changed records; see PersistenceQueue."""

    def put_tree(self, tree: Tree) -> None:
        ...

    def put_node(self, node: Node, tree_id: str) -> None:
        ...

    def delete_node(self, node_id: str) -> None:
        ...


class TreeMutator:
    """Applies create/delete/reparent and field edits to one tree."""

    def __init__(self, tree: Tree, persistence: Optional[PersistenceSink] = None,
                 debug: bool = False):
        self.tree = tree
        self.persistence = persistence
        self.debug = debug
        self.traverser = TreeTraverser(tree)
        self.listeners: List[TreeChangeListener] = []
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    # Notifications

    def subscribe(self, listener: TreeChangeListener) -> None:
        """Register a callable invoked after every successful mutation."""
        if listener not in self.listeners:
            self.listeners.append(listener)

    def unsubscribe(self, listener: TreeChangeListener) -> None:
        if listener in self.listeners:
            self.listeners.remove(listener)

    # Structural operations

    def create(self, parent_id: str, title: str, source_url: str,
               platform: Optional[str] = None) -> Node:
        """
        Create a node as the last child of an existing node.

        Args:
            parent_id: Id of the node to attach under
            title: Display title
            source_url: External reference, used for de-duplication
            platform: Optional source platform name

        Returns:
            The new node

        Raises:
            ParentNotFoundError: If parent_id is not a node of this tree
        """
        parent = self.tree.nodes.get(parent_id)
        if parent is None:
            raise ParentNotFoundError(parent_id)

        node_id = NodeFactory.new_node_id(self.tree.nodes)
        node = NodeFactory.create_node(node_id, sanitize_title(title), source_url,
                                       parent_id=parent_id, platform=platform)

        self.tree.nodes[node_id] = node
        parent.children.append(node_id)
        parent.updated_at = node.created_at
        self.tree.updated_at = node.created_at

        self._persist(changed=(node, parent))
        self.logger.info(f"Created node {node_id} '{node.title}' under {parent_id}")
        self._notify(TreeOperation.CREATE, (node_id, parent_id))
        return node

    def delete(self, node_id: str) -> DeleteResult:
        """
        Delete a node together with its whole subtree.

        Returns:
            DeleteResult with every removed id, the node itself included

        Raises:
            RootDeletionForbiddenError: If node_id is the root
            NodeNotFoundError: If node_id is unknown
        """
        if node_id == self.tree.root_id:
            raise RootDeletionForbiddenError(node_id)
        node = self.tree.nodes.get(node_id)
        if node is None:
            raise NodeNotFoundError(node_id, "delete")

        parent = self.tree.nodes.get(node.parent_id) if node.parent_id else None
        if parent is None or node_id not in parent.children:
            raise TreeValidationError(
                f"Node {node_id} is not attached to its parent {node.parent_id}",
                "delete", self.tree.id)

        doomed = self.traverser.get_descendants(node_id)
        missing = [doomed_id for doomed_id in doomed if doomed_id not in self.tree.nodes]
        if missing:
            raise TreeValidationError(f"Subtree of {node_id} references missing nodes",
                                      "delete", self.tree.id, missing)

        # Everything validated; mutate
        parent.children.remove(node_id)
        for doomed_id in doomed:
            del self.tree.nodes[doomed_id]
        now = utc_now_iso()
        parent.updated_at = now
        self.tree.updated_at = now

        self._persist(changed=(parent,), deleted=doomed)
        self.logger.info(f"Deleted node {node_id} and {len(doomed) - 1} descendants")
        self._notify(TreeOperation.DELETE, tuple(doomed))
        return DeleteResult(deleted_ids=frozenset(doomed), former_parent_id=parent.id)

    def check_reparent(self, node_id: str, new_parent_id: str) -> None:
        """
        Raise the reason a move is not allowed; return None if it is.

        Raises:
            NodeNotFoundError: If either id is unknown
            InvalidReparentError: Self-parenting, moving the root, or a cycle
        """
        if node_id == new_parent_id:
            raise InvalidReparentError(node_id, new_parent_id, ERROR_MESSAGES["SELF_PARENT"])
        if node_id == self.tree.root_id:
            raise InvalidReparentError(node_id, new_parent_id, ERROR_MESSAGES["ROOT_REPARENT"])
        if node_id not in self.tree.nodes:
            raise NodeNotFoundError(node_id, "reparent")
        if new_parent_id not in self.tree.nodes:
            raise NodeNotFoundError(new_parent_id, "reparent")
        # Walk up from the target; meeting node_id means target is inside its subtree
        if self.traverser.is_same_or_descendant(new_parent_id, node_id):
            raise InvalidReparentError(
                node_id, new_parent_id,
                ERROR_MESSAGES["CYCLE_DETECTED"].format(node_id=node_id, new_parent_id=new_parent_id))

    def reparent(self, node_id: str, new_parent_id: str) -> bool:
        """
        Move a node (with its subtree) to the end of another node's children.

        Returns:
            True if moved, False if the move was rejected (nothing changed)
        """
        try:
            self.check_reparent(node_id, new_parent_id)
        except (NodeNotFoundError, InvalidReparentError) as e:
            self.logger.info(f"Rejected reparent: {e}")
            return False

        node = self.tree.nodes[node_id]
        old_parent = self.tree.nodes[node.parent_id]
        new_parent = self.tree.nodes[new_parent_id]

        old_parent.children.remove(node_id)
        new_parent.children.append(node_id)
        node.parent_id = new_parent_id

        now = utc_now_iso()
        for touched in (node, old_parent, new_parent):
            touched.updated_at = now
        self.tree.updated_at = now

        changed = [node, old_parent] if old_parent is new_parent else [node, old_parent, new_parent]
        self._persist(changed=changed)
        self.logger.info(f"Moved node {node_id} from {old_parent.id} to {new_parent_id}")
        self._notify(TreeOperation.REPARENT, (node_id, old_parent.id, new_parent_id))
        return True

    # Field setters

    def rename(self, node_id: str, title: str) -> Node:
        cleaned = sanitize_title(title) or DEFAULT_NODE_TITLE
        return self._update_node(node_id, TreeOperation.RENAME, title=cleaned)

    def recolor(self, node_id: str, color: Optional[str]) -> Node:
        """Set a hex border color; None restores the default."""
        value = validate_color(color) if color is not None else None
        return self._update_node(node_id, TreeOperation.RECOLOR, color=value)

    def reshape(self, node_id: str, shape: Optional[str]) -> Node:
        value = validate_shape(shape) if shape is not None else None
        return self._update_node(node_id, TreeOperation.RESHAPE, shape=value)

    def set_connection_label(self, node_id: str, label: Optional[str]) -> Node:
        """Label the edge from a node's parent to the node; None clears it."""
        value = label.strip() if label and label.strip() else None
        return self._update_node(node_id, TreeOperation.SET_CONNECTION_LABEL,
                                 connection_label=value)

    def set_manual_position(self, node_id: str, position: Optional[PositionLike]) -> Node:
        """Pin a node where the user dropped it; None returns it to auto layout."""
        if position is not None and not isinstance(position, Position):
            x, y = position
            position = Position(float(x), float(y))
        return self._update_node(node_id, TreeOperation.SET_MANUAL_POSITION,
                                 manual_position=position)

    def set_tags(self, node_id: str, tags: Iterable[str]) -> Node:
        cleaned: List[str] = []
        for tag in tags:
            tag = tag.strip()
            if tag and tag not in cleaned:
                cleaned.append(tag)
        return self._update_node(node_id, TreeOperation.SET_TAGS, tags=cleaned)

    def rename_tree(self, name: str) -> None:
        name = name.strip()
        if not name:
            raise ValueError(ERROR_MESSAGES["EMPTY_TREE_NAME"])
        self.tree.name = name
        self.tree.updated_at = utc_now_iso()
        self._persist()
        self._notify(TreeOperation.RENAME_TREE, ())

    # Queries

    def find_by_source_url(self, url: str) -> Optional[Node]:
        for node in self.tree.nodes.values():
            if node.source_url == url:
                return node
        return None

    # Internals

    def _update_node(self, node_id: str, operation: TreeOperation, **fields) -> Node:
        node = self.tree.nodes.get(node_id)
        if node is None:
            raise NodeNotFoundError(node_id, operation.value)
        for name, value in fields.items():
            setattr(node, name, value)
        now = utc_now_iso()
        node.updated_at = now
        self.tree.updated_at = now

        self._persist(changed=(node,))
        if self.debug:
            self.logger.debug(f"{operation.value} on {node_id}: {fields}")
        self._notify(operation, (node_id,))
        return node

    def _persist(self, changed: Sequence[Node] = (), deleted: Sequence[str] = ()) -> None:
        if self.persistence is None:
            return
        for node_id in deleted:
            self.persistence.delete_node(node_id)
        for node in changed:
            self.persistence.put_node(node, self.tree.id)
        self.persistence.put_tree(self.tree)

    def _notify(self, operation: TreeOperation, node_ids: Tuple[str, ...]) -> None:
        change = TreeChange(self.tree.id, operation, node_ids)
        for listener in list(self.listeners):
            try:
                listener(change)
            except Exception:
                # Mutation stands even if a listener fails
                self.logger.exception(f"Tree change listener failed for {operation.value}")
