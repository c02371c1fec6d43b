#!/usr/bin/env python3
"""Conversion between in-memory trees and stored records."""

from typing import Iterable

from arbor.core.type_definitions import NodeRecord, TreeRecord
from arbor.tree.tree_constants import DEFAULT_SCHEMA_VERSION
from arbor.tree.tree_types import Node, Position, Tree


def node_to_record(node: Node, tree_id: str) -> NodeRecord:
    """Snapshot a node; lists are copied so later mutations don't leak in."""
    record: NodeRecord = {
        'id': node.id,
        'tree_id': tree_id,
        'title': node.title,
        'url': node.source_url,
        'parent_id': node.parent_id,
        'children': list(node.children),
        'created_at': node.created_at,
        'updated_at': node.updated_at,
        'platform': node.platform,
        'tags': list(node.tags),
        'custom_position': (
            {'x': node.manual_position.x, 'y': node.manual_position.y}
            if node.manual_position else None
        ),
        'color': node.color,
        'shape': node.shape,
        'connection_label': node.connection_label,
    }
    return record


def record_to_node(record: NodeRecord) -> Node:
    position = record.get('custom_position')
    return Node(
        id=record['id'],
        title=record['title'],
        source_url=record.get('url', ''),
        parent_id=record.get('parent_id'),
        children=list(record.get('children', [])),
        created_at=record.get('created_at', ''),
        updated_at=record.get('updated_at', ''),
        platform=record.get('platform'),
        tags=list(record.get('tags') or []),
        manual_position=Position(position['x'], position['y']) if position else None,
        color=record.get('color'),
        shape=record.get('shape'),
        connection_label=record.get('connection_label'),
    )


def tree_to_record(tree: Tree) -> TreeRecord:
    return {
        'id': tree.id,
        'name': tree.name,
        'root_node_id': tree.root_id,
        'node_ids': list(tree.nodes),
        'created_at': tree.created_at,
        'updated_at': tree.updated_at,
        'version': DEFAULT_SCHEMA_VERSION,
    }


def record_to_tree(record: TreeRecord, node_records: Iterable[NodeRecord]) -> Tree:
    """Rebuild a tree from its record and the node records stored for it.

    Only nodes listed in the tree record are kept when the list is present;
    stray node records left behind by an interrupted write are ignored.
    """
    wanted = set(record.get('node_ids') or [])
    nodes = {}
    for node_record in node_records:
        if wanted and node_record['id'] not in wanted:
            continue
        node = record_to_node(node_record)
        nodes[node.id] = node
    return Tree(
        id=record['id'],
        name=record['name'],
        root_id=record['root_node_id'],
        nodes=nodes,
        created_at=record.get('created_at', ''),
        updated_at=record.get('updated_at', ''),
    )
