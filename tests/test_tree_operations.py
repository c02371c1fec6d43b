#!/usr/bin/env python3
"""Tests for tree traversal, validation and node construction."""

import uuid
from unittest.mock import patch

import pytest

from arbor.tree.tree_operations import NodeFactory, TreeTraverser, TreeValidator
from arbor.tree.tree_types import Node, Tree


def build_tree():
    """root -> (a -> (a1, a2), b)"""
    nodes = {
        "root": Node("root", "Root", "u0", None, ["a", "b"]),
        "a": Node("a", "A", "ua", "root", ["a1", "a2"]),
        "b": Node("b", "B", "ub", "root", []),
        "a1": Node("a1", "A1", "ua1", "a", []),
        "a2": Node("a2", "A2", "ua2", "a", []),
    }
    return Tree("t1", "Test", "root", nodes)


class TestTreeTraverser:
    """Test TreeTraverser functionality."""

    def setup_method(self):
        self.tree = build_tree()
        self.traverser = TreeTraverser(self.tree)

    def test_descendants_preorder(self):
        assert self.traverser.get_descendants("root") == ["root", "a", "a1", "a2", "b"]

    def test_descendants_exclude_self(self):
        assert self.traverser.get_descendants("a", include_self=False) == ["a1", "a2"]

    def test_ancestors(self):
        assert self.traverser.get_ancestors("a2") == ["a", "root"]
        assert self.traverser.get_ancestors("root") == []

    def test_is_same_or_descendant(self):
        assert self.traverser.is_same_or_descendant("a1", "a")
        assert self.traverser.is_same_or_descendant("a", "a")
        assert not self.traverser.is_same_or_descendant("b", "a")

    def test_depths(self):
        assert self.traverser.get_depths() == {"root": 0, "a": 1, "b": 1, "a1": 2, "a2": 2}

    def test_tree_order(self):
        order = [(node.id, depth) for node, depth in self.traverser.get_tree_order()]
        assert order == [("root", 0), ("a", 1), ("a1", 2), ("a2", 2), ("b", 1)]

    def test_ancestors_bounded_on_corrupted_chain(self):
        self.tree.nodes["root"].parent_id = "a1"
        # Would loop forever without the node-count bound
        assert len(self.traverser.get_ancestors("a2")) <= len(self.tree.nodes)


class TestTreeValidator:
    """Test structural invariant checks."""

    def setup_method(self):
        self.validator = TreeValidator(debug=True)

    def test_valid_tree(self):
        result = self.validator.validate(build_tree())
        assert result.is_valid
        assert result.errors == []

    def test_second_parentless_node(self):
        tree = build_tree()
        tree.nodes["stray"] = Node("stray", "Stray", "us")

        result = self.validator.validate(tree)

        assert not result.is_valid
        assert any("parentless" in error for error in result.errors)
        assert any("unreachable" in error for error in result.errors)

    def test_parent_child_disagreement(self):
        tree = build_tree()
        tree.nodes["b"].parent_id = "a"

        result = self.validator.validate(tree)

        assert not result.is_valid
        assert any("Child b of root has parent a" in error for error in result.errors)

    def test_duplicate_child(self):
        tree = build_tree()
        tree.nodes["root"].children.append("b")

        result = self.validator.validate(tree)

        assert not result.is_valid
        assert any("2 times" in error for error in result.errors)

    def test_root_as_child(self):
        tree = build_tree()
        tree.nodes["b"].children.append("root")

        result = self.validator.validate(tree)

        assert not result.is_valid
        assert any("Root root appears as a child" in error for error in result.errors)

    def test_cycle_detected(self):
        tree = build_tree()
        # a <-> a1 cycle detached from root
        tree.nodes["root"].children = ["b"]
        tree.nodes["a"].parent_id = "a1"
        tree.nodes["a1"].children = ["a"]

        result = self.validator.validate(tree)

        assert not result.is_valid
        assert any("does not end at the root" in error for error in result.errors)

    def test_missing_root(self):
        tree = build_tree()
        tree.root_id = "ghost"

        result = self.validator.validate(tree)

        assert not result.is_valid


class TestNodeFactory:
    """Test node and tree construction."""

    def test_new_node_id_avoids_existing(self):
        existing = {NodeFactory.new_node_id() for _ in range(10)}
        node_id = NodeFactory.new_node_id(existing)
        assert node_id.startswith("node-")
        assert node_id not in existing

    def test_new_node_id_retries_on_collision(self):
        taken, fresh = uuid.uuid4(), uuid.uuid4()
        nodes = {f"node-{taken.hex}": Node(f"node-{taken.hex}", "T", "u")}

        with patch("arbor.tree.tree_operations.uuid.uuid4", side_effect=[taken, fresh]):
            assert NodeFactory.new_node_id(nodes) == f"node-{fresh.hex}"

    def test_new_node_id_only_checks_membership(self):
        class ContainsOnly:
            def __init__(self):
                self.lookups = 0

            def __contains__(self, node_id):
                self.lookups += 1
                return False

        existing = ContainsOnly()
        NodeFactory.new_node_id(existing)
        assert existing.lookups == 1

    def test_create_node_defaults(self):
        node = NodeFactory.create_node("n1", "  ", "u", parent_id="p")

        assert node.title == "Untitled"
        assert node.parent_id == "p"
        assert node.children == []
        assert node.created_at == node.updated_at != ""

    def test_create_tree_has_only_root(self):
        tree = NodeFactory.create_tree("Name", "Root", "u")

        assert tree.id.startswith("tree-")
        assert list(tree.nodes) == [tree.root_id]
        assert tree.root.is_root
        assert TreeValidator().validate(tree).is_valid

    def test_empty_node_id_rejected(self):
        with pytest.raises(ValueError):
            Node("", "Title", "u")
