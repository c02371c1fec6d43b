#!/usr/bin/env python3
"""
Exception classes for the conversation tree engine.

Every error a caller of the mutator must handle derives from TreeError and is
raised before the tree is touched.
"""

# Standard library imports
from typing import Optional, List, Dict, Any

# Local imports
from arbor.tree.tree_constants import ERROR_MESSAGES


class TreeError(Exception):
    """Base exception for all tree-related errors."""

    def __init__(self, message: str, operation: Optional[str] = None,
                 node_id: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.operation = operation
        self.node_id = node_id
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        parts = []
        if self.operation:
            parts.append(f"Operation: {self.operation}")
        if self.node_id:
            parts.append(f"Node: {self.node_id}")
        parts.append(f"Error: {self.message}")
        if self.context:
            context_str = ", ".join([f"{k}={v}" for k, v in self.context.items()])
            parts.append(f"Context: {context_str}")
        return " | ".join(parts)


class NodeNotFoundError(TreeError):
    """Raised when a referenced node doesn't exist."""

    def __init__(self, node_id: str, operation: str = "access"):
        message = ERROR_MESSAGES["NODE_NOT_FOUND"].format(node_id=node_id)
        super().__init__(message, operation, node_id)


class ParentNotFoundError(TreeError):
    """Raised when a node is created under a parent that doesn't exist."""

    def __init__(self, parent_id: str, operation: str = "create"):
        message = ERROR_MESSAGES["PARENT_NOT_FOUND"].format(parent_id=parent_id)
        super().__init__(message, operation, parent_id)
        self.parent_id = parent_id


class RootDeletionForbiddenError(TreeError):
    """Raised when deleting the root node; the whole tree must go instead."""

    def __init__(self, node_id: str):
        super().__init__(ERROR_MESSAGES["ROOT_DELETION"], "delete", node_id)


class InvalidReparentError(TreeError):
    """Raised when a move would self-parent, move the root or form a cycle."""

    def __init__(self, node_id: str, new_parent_id: str, reason: str):
        super().__init__(reason, "reparent", node_id,
                         {"new_parent_id": new_parent_id})
        self.new_parent_id = new_parent_id


class TreeNotFoundError(TreeError):
    """Raised when a tree id is unknown to the manager."""

    def __init__(self, tree_id: str, operation: str = "access"):
        message = ERROR_MESSAGES["TREE_NOT_FOUND"].format(tree_id=tree_id)
        super().__init__(message, operation, context={"tree_id": tree_id})
        self.tree_id = tree_id


class TreeValidationError(TreeError):
    """Raised when a tree read from storage violates a structural invariant."""

    def __init__(self, message: str, operation: str, tree_id: Optional[str] = None,
                 validation_failures: Optional[List[str]] = None):
        super().__init__(message, operation, context={"tree_id": tree_id} if tree_id else None)
        self.validation_failures = validation_failures or []


class StorageError(TreeError):
    """Raised when record store operations fail."""

    def __init__(self, message: str, file_path: Optional[str] = None,
                 operation: str = "store_operation"):
        super().__init__(message, operation)
        self.file_path = file_path

    def __str__(self) -> str:
        parts = []
        if self.operation:
            parts.append(f"Operation: {self.operation}")
        if self.file_path:
            parts.append(f"File: {self.file_path}")
        parts.append(f"Error: {self.message}")
        return " | ".join(parts)


class FileCorruptionError(StorageError):
    """Raised when the store file cannot be parsed."""

    def __init__(self, file_path: str, details: str):
        message = f"Store file is corrupted: {details}"
        super().__init__(message, file_path, "load")
        self.details = details
