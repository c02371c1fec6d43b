#!/usr/bin/env python3
"""
Record stores for trees and nodes.

Trees and nodes are stored as separate records keyed by id; a node record
carries the id of the tree it belongs to. Stores are treated as slow and
fallible by the rest of the engine and are only written through the
persistence queue.
"""

# Standard library imports
import copy
import json
import logging
import os
import shutil
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Protocol, Union

# Local imports
from arbor.core.type_definitions import NodeRecord, StateRecord, TreeRecord
from arbor.tree.tree_constants import (
    BACKUP_FILE_SUFFIX, DEFAULT_SCHEMA_VERSION, TEMP_FILE_SUFFIX
)
from arbor.tree.tree_exceptions import FileCorruptionError, StorageError


class RecordStore(Protocol):
    """Protocol for tree/node persistence."""

    def get_tree(self, tree_id: str) -> Optional[TreeRecord]:
        ...

    def put_tree(self, record: TreeRecord) -> None:
        ...

    def delete_tree(self, tree_id: str) -> None:
        ...

    def list_trees(self) -> List[TreeRecord]:
        ...

    def get_node(self, node_id: str) -> Optional[NodeRecord]:
        ...

    def put_node(self, record: NodeRecord) -> None:
        ...

    def delete_node(self, node_id: str) -> None:
        ...

    def get_nodes_by_tree(self, tree_id: str) -> List[NodeRecord]:
        ...

    def find_node_by_url(self, url: str) -> Optional[NodeRecord]:
        ...

    def get_state(self) -> StateRecord:
        ...

    def save_state(self, state: StateRecord) -> None:
        ...

    def transaction(self):
        """Context manager grouping several writes into one commit."""
        ...


def _empty_state() -> StateRecord:
    return {'current_tree_id': None, 'current_node_id': None}


class InMemoryRecordStore:
    """Dictionary-backed store; records are deep-copied in and out."""

    def __init__(self):
        self.trees: Dict[str, TreeRecord] = {}
        self.nodes: Dict[str, NodeRecord] = {}
        self.state: StateRecord = _empty_state()
        self.lock = threading.RLock()

    def get_tree(self, tree_id: str) -> Optional[TreeRecord]:
        with self.lock:
            record = self.trees.get(tree_id)
            return copy.deepcopy(record) if record else None

    def put_tree(self, record: TreeRecord) -> None:
        with self.lock:
            self.trees[record['id']] = copy.deepcopy(record)

    def delete_tree(self, tree_id: str) -> None:
        with self.lock:
            self.trees.pop(tree_id, None)

    def list_trees(self) -> List[TreeRecord]:
        with self.lock:
            return [copy.deepcopy(record) for record in self.trees.values()]

    def get_node(self, node_id: str) -> Optional[NodeRecord]:
        with self.lock:
            record = self.nodes.get(node_id)
            return copy.deepcopy(record) if record else None

    def put_node(self, record: NodeRecord) -> None:
        with self.lock:
            self.nodes[record['id']] = copy.deepcopy(record)

    def delete_node(self, node_id: str) -> None:
        with self.lock:
            self.nodes.pop(node_id, None)

    def get_nodes_by_tree(self, tree_id: str) -> List[NodeRecord]:
        with self.lock:
            return [copy.deepcopy(record) for record in self.nodes.values()
                    if record['tree_id'] == tree_id]

    def find_node_by_url(self, url: str) -> Optional[NodeRecord]:
        with self.lock:
            for record in self.nodes.values():
                if record['url'] == url:
                    return copy.deepcopy(record)
            return None

    def get_state(self) -> StateRecord:
        with self.lock:
            return dict(self.state)

    def save_state(self, state: StateRecord) -> None:
        with self.lock:
            self.state = dict(state)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self.lock:
            yield


class JsonFileRecordStore(InMemoryRecordStore):
    """Single JSON file store with atomic writes and backup/recovery."""

    def __init__(self, file_path: Union[str, Path], debug: bool = False):
        super().__init__()
        self.file_path = Path(file_path)
        self.backup_path = self.file_path.with_suffix(self.file_path.suffix + BACKUP_FILE_SUFFIX)
        self.debug = debug
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self._depth = 0
        self._dirty = False
        self.load()

    def load(self) -> None:
        """
        Load records from file.

        Falls back to the backup copy when the main file is corrupted, and
        raises FileCorruptionError when both are unreadable so that a broken
        store is never silently overwritten with an empty one.
        """
        with self.lock:
            if not self.file_path.exists():
                self.logger.info(f"Store file {self.file_path} doesn't exist, starting empty")
                return

            try:
                data = self._read(self.file_path)
            except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                self.logger.error(f"Error loading store {self.file_path}: {e}")
                if not self.backup_path.exists():
                    raise FileCorruptionError(str(self.file_path), str(e)) from e
                self.logger.info("Attempting to load from backup")
                try:
                    data = self._read(self.backup_path)
                except (json.JSONDecodeError, KeyError, TypeError, ValueError) as backup_error:
                    raise FileCorruptionError(str(self.file_path), str(backup_error)) from backup_error

            self.trees = data['trees']
            self.nodes = data['nodes']
            self.state = data.get('state') or _empty_state()

    def _read(self, path: Path) -> dict:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if not isinstance(data, dict) or not isinstance(data.get('trees'), dict) \
                or not isinstance(data.get('nodes'), dict):
            raise ValueError("missing 'trees' or 'nodes' table")
        return data

    def save(self) -> None:
        """Write all records to disk atomically, keeping the previous file as backup."""
        with self.lock:
            data = {
                'version': DEFAULT_SCHEMA_VERSION,
                'trees': self.trees,
                'nodes': self.nodes,
                'state': self.state,
            }
            try:
                self.file_path.parent.mkdir(parents=True, exist_ok=True)
                if self.file_path.exists():
                    shutil.copy2(self.file_path, self.backup_path)

                temp_path = self.file_path.with_suffix(self.file_path.suffix + TEMP_FILE_SUFFIX)
                with open(temp_path, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                    f.flush()
                    os.fsync(f.fileno())

                temp_path.replace(self.file_path)
                self._dirty = False
                self.logger.debug(f"Saved {len(self.trees)} trees to {self.file_path}")
            except OSError as e:
                raise StorageError(f"Error saving store: {e}", str(self.file_path), "save") from e

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Defer the file write until the outermost transaction exits."""
        with self.lock:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            if self._depth == 0 and self._dirty:
                self.save()

    def _commit(self) -> None:
        self._dirty = True
        if self._depth == 0:
            self.save()

    def put_tree(self, record: TreeRecord) -> None:
        with self.lock:
            super().put_tree(record)
            self._commit()

    def delete_tree(self, tree_id: str) -> None:
        with self.lock:
            super().delete_tree(tree_id)
            self._commit()

    def put_node(self, record: NodeRecord) -> None:
        with self.lock:
            super().put_node(record)
            self._commit()

    def delete_node(self, node_id: str) -> None:
        with self.lock:
            super().delete_node(node_id)
            self._commit()

    def save_state(self, state: StateRecord) -> None:
        with self.lock:
            super().save_state(state)
            self._commit()
