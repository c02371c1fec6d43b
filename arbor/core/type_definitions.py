#!/usr/bin/env python3
"""Type definitions for stored Arbor records."""

from typing import TypedDict, List, Optional
from typing_extensions import NotRequired


class PositionDict(TypedDict):
    """Canvas position of a manually placed node."""
    x: float
    y: float


class NodeRecord(TypedDict):
    """Stored node structure; ``tree_id`` ties it to its tree."""
    id: str
    tree_id: str
    title: str
    url: str
    parent_id: Optional[str]
    children: List[str]
    created_at: str
    updated_at: str
    platform: NotRequired[Optional[str]]
    tags: NotRequired[List[str]]
    custom_position: NotRequired[Optional[PositionDict]]
    color: NotRequired[Optional[str]]
    shape: NotRequired[Optional[str]]
    connection_label: NotRequired[Optional[str]]


class TreeRecord(TypedDict):
    """Stored tree structure; nodes live in their own records."""
    id: str
    name: str
    root_node_id: str
    node_ids: List[str]
    created_at: str
    updated_at: str
    version: NotRequired[str]


class StateRecord(TypedDict):
    """Session state that is derived from, never part of, a tree."""
    current_tree_id: Optional[str]
    current_node_id: Optional[str]
