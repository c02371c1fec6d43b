#!/usr/bin/env python3
"""Tree lifecycle: create, load, rename and destroy whole trees."""

# Standard library imports
import logging
from typing import Dict, FrozenSet, List, Optional, Tuple

# Local imports
from arbor.core.config import ArborConfig
from arbor.storage.record_store import JsonFileRecordStore, RecordStore
from arbor.storage.serialization import record_to_tree
from arbor.storage.write_queue import PersistenceQueue
from arbor.tree.tree_constants import ERROR_MESSAGES
from arbor.tree.tree_exceptions import TreeNotFoundError, TreeValidationError
from arbor.tree.tree_mutator import TreeMutator
from arbor.tree.tree_operations import NodeFactory, TreeValidator
from arbor.tree.tree_types import Node, Tree


class TreeManager:
    """Owns every loaded tree and hands out one mutator per tree."""

    def __init__(self, store: Optional[RecordStore] = None,
                 persistence: Optional[PersistenceQueue] = None,
                 debug: bool = False):
        """
        Initialize the manager.

        Args:
            store: Record store to load from; writes go through ``persistence``
            persistence: Write-behind queue; built over ``store`` when omitted
            debug: Enable debug logging
        """
        self.store = store
        if persistence is None and store is not None:
            persistence = PersistenceQueue(store)
        self.persistence = persistence
        self.debug = debug
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.validator = TreeValidator(debug=debug)
        self.trees: Dict[str, Tree] = {}
        self.mutators: Dict[str, TreeMutator] = {}
        self.load_errors: Dict[str, List[str]] = {}

    @classmethod
    def open(cls, config: ArborConfig, debug: bool = False,
             flush_delay: Optional[float] = None) -> "TreeManager":
        """
        Open the JSON store named by ``config`` and load its trees.

        Args:
            config: Application settings
            debug: Enable debug logging
            flush_delay: Override of ``config.persist_flush_delay_seconds``;
                pass 0 or a negative value for manual flushing only

        Raises:
            FileCorruptionError: If the store and its backup are unreadable
        """
        delay = config.persist_flush_delay_seconds if flush_delay is None else flush_delay
        store = JsonFileRecordStore(config.store_path, debug=debug)
        persistence = PersistenceQueue(store, flush_delay=delay if delay > 0 else None,
                                       register_atexit=delay > 0)
        manager = cls(store, persistence, debug=debug)
        manager.load()
        return manager

    def load(self) -> int:
        """
        Load every tree from the store, skipping trees that fail validation.

        Returns:
            Number of trees loaded
        """
        if self.store is None:
            return 0

        loaded = 0
        for record in self.store.list_trees():
            tree_id = record.get('id', '?')
            try:
                tree = record_to_tree(record, self.store.get_nodes_by_tree(tree_id))
            except (KeyError, TypeError, ValueError) as e:
                self.load_errors[tree_id] = [f"Malformed record: {e!r}"]
                self.logger.error(f"Skipping malformed tree {tree_id}: {e!r}")
                continue
            result = self.validator.validate(tree)
            if not result.is_valid:
                self.load_errors[tree.id] = result.errors
                self.logger.error(f"Skipping invalid tree {tree.id}: {result.errors[:3]}")
                continue
            self._register(tree)
            loaded += 1

        self.logger.info(f"Loaded {loaded} trees")
        return loaded

    def add_tree(self, tree: Tree) -> TreeMutator:
        """Adopt an existing tree after validating it."""
        result = self.validator.validate(tree)
        if not result.is_valid:
            raise TreeValidationError("Tree violates structural invariants", "add_tree",
                                      tree.id, result.errors)
        return self._register(tree)

    def create_tree(self, name: str, root_title: Optional[str] = None,
                    root_url: str = "", platform: Optional[str] = None) -> Tree:
        """Create a tree whose only node is its root."""
        name = name.strip()
        if not name:
            raise ValueError(ERROR_MESSAGES["EMPTY_TREE_NAME"])

        tree = NodeFactory.create_tree(name, root_title or name, root_url, platform)
        self._register(tree)
        if self.persistence is not None:
            self.persistence.put_node(tree.root, tree.id)
            self.persistence.put_tree(tree)
        self.logger.info(f"Created tree '{name}' with ID {tree.id}")
        return tree

    def get_tree(self, tree_id: str) -> Tree:
        tree = self.trees.get(tree_id)
        if tree is None:
            raise TreeNotFoundError(tree_id)
        return tree

    def mutator(self, tree_id: str) -> TreeMutator:
        if tree_id not in self.mutators:
            raise TreeNotFoundError(tree_id, "mutate")
        return self.mutators[tree_id]

    def list_trees(self) -> List[Tree]:
        """Trees ordered by most recent update first."""
        return sorted(self.trees.values(), key=lambda tree: tree.updated_at, reverse=True)

    def rename_tree(self, tree_id: str, name: str) -> None:
        self.mutator(tree_id).rename_tree(name)

    def delete_tree(self, tree_id: str) -> FrozenSet[str]:
        """
        Destroy a tree and all of its nodes.

        Returns:
            Ids of the removed nodes
        """
        tree = self.get_tree(tree_id)
        node_ids = frozenset(tree.nodes)

        del self.trees[tree_id]
        mutator = self.mutators.pop(tree_id)
        mutator.listeners.clear()

        if self.persistence is not None:
            for node_id in node_ids:
                self.persistence.delete_node(node_id)
            self.persistence.delete_tree(tree_id)
        self.logger.info(f"Deleted tree {tree_id} with {len(node_ids)} nodes")
        return node_ids

    def find_node_by_url(self, url: str) -> Optional[Tuple[Tree, Node]]:
        """Find the first tracked node for a source URL across all trees."""
        for tree in self.trees.values():
            node = self.mutators[tree.id].find_by_source_url(url)
            if node is not None:
                return tree, node
        return None

    def flush(self) -> int:
        return self.persistence.flush() if self.persistence is not None else 0

    def close(self) -> None:
        """Flush pending writes; call before the owning process exits."""
        if self.persistence is not None:
            self.persistence.close()

    def _register(self, tree: Tree) -> TreeMutator:
        self.trees[tree.id] = tree
        mutator = TreeMutator(tree, self.persistence, debug=self.debug)
        self.mutators[tree.id] = mutator
        return mutator
