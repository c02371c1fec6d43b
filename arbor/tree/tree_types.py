#!/usr/bin/env python3
"""
Type definitions and data structures for the conversation tree engine.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, FrozenSet, List, Optional, Tuple


class TreeOperation(Enum):
    """Types of tree operations for notifications and logging."""
    CREATE = "create"
    DELETE = "delete"
    REPARENT = "reparent"
    RENAME = "rename"
    RECOLOR = "recolor"
    RESHAPE = "reshape"
    SET_CONNECTION_LABEL = "set_connection_label"
    SET_MANUAL_POSITION = "set_manual_position"
    SET_TAGS = "set_tags"
    RENAME_TREE = "rename_tree"


# Operations after which the layout must be recomputed
STRUCTURAL_OPERATIONS = frozenset({
    TreeOperation.CREATE,
    TreeOperation.DELETE,
    TreeOperation.REPARENT,
    TreeOperation.SET_MANUAL_POSITION,
})


@dataclass(frozen=True)
class Position:
    """A point on the canvas."""
    x: float
    y: float


@dataclass
class Node:
    """A single tracked conversation in a tree."""
    id: str
    title: str
    source_url: str
    parent_id: Optional[str] = None
    children: List[str] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""
    platform: Optional[str] = None
    tags: List[str] = field(default_factory=list)

    # Presentation only; never part of the structural invariants
    manual_position: Optional[Position] = None
    color: Optional[str] = None
    shape: Optional[str] = None
    connection_label: Optional[str] = None

    def __post_init__(self):
        """Validate node data after initialization."""
        if not self.id:
            raise ValueError("Node ID cannot be empty")

    @property
    def is_root(self) -> bool:
        return self.parent_id is None


@dataclass
class Tree:
    """A named, rooted collection of nodes."""
    id: str
    name: str
    root_id: str
    nodes: Dict[str, Node] = field(default_factory=dict)
    created_at: str = ""
    updated_at: str = ""

    @property
    def root(self) -> Node:
        return self.nodes[self.root_id]

    def get_node(self, node_id: str) -> Optional[Node]:
        return self.nodes.get(node_id)

    def get_node_count(self) -> int:
        """Get total number of nodes."""
        return len(self.nodes)


@dataclass(frozen=True)
class DeleteResult:
    """Ids removed by a cascading delete."""
    deleted_ids: FrozenSet[str]
    former_parent_id: str


@dataclass(frozen=True)
class TreeChange:
    """Notification emitted after every successful mutation."""
    tree_id: str
    operation: TreeOperation
    node_ids: Tuple[str, ...] = ()

    @property
    def structural(self) -> bool:
        return self.operation in STRUCTURAL_OPERATIONS


TreeChangeListener = Callable[[TreeChange], None]


@dataclass
class ValidationResult:
    """Result of a validation operation."""
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def add_error(self, error: str) -> None:
        """Add an error message."""
        self.errors.append(error)
        self.is_valid = False

    def add_warning(self, warning: str) -> None:
        """Add a warning message."""
        self.warnings.append(warning)
