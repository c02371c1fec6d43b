#!/usr/bin/env python3
"""Tests for record stores, serialization and the write-behind queue."""

import json
import tempfile
import time
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from arbor.storage.record_store import InMemoryRecordStore, JsonFileRecordStore
from arbor.storage.serialization import (
    node_to_record, record_to_node, record_to_tree, tree_to_record
)
from arbor.storage.write_queue import PersistenceQueue
from arbor.tree.tree_exceptions import FileCorruptionError, StorageError
from arbor.tree.tree_mutator import TreeMutator
from arbor.tree.tree_operations import NodeFactory
from arbor.tree.tree_types import Position


def sample_tree():
    tree = NodeFactory.create_tree("Stored", "Root", "https://chat/0", platform="chatgpt")
    mutator = TreeMutator(tree)
    child = mutator.create(tree.root_id, "Child", "https://chat/1")
    mutator.set_manual_position(child.id, (10, 20))
    mutator.set_connection_label(child.id, "examples")
    mutator.set_tags(child.id, ["a", "b"])
    return tree, child


class TestSerialization:
    """Test record conversion."""

    def test_node_record_fields(self):
        tree, child = sample_tree()

        record = node_to_record(child, tree.id)

        assert record['tree_id'] == tree.id
        assert record['url'] == "https://chat/1"
        assert record['custom_position'] == {'x': 10.0, 'y': 20.0}
        assert record['connection_label'] == "examples"

    def test_record_is_a_snapshot(self):
        tree, child = sample_tree()
        record = node_to_record(tree.root, tree.id)

        tree.root.children.append("later")

        assert record['children'] == [child.id]

    def test_node_from_minimal_record(self):
        node = record_to_node({'id': 'n1', 'title': 'T', 'parent_id': None})

        assert node.source_url == ""
        assert node.children == []
        assert node.manual_position is None
        assert node.tags == []

    def test_tree_round_trip(self):
        tree, child = sample_tree()
        node_records = [node_to_record(node, tree.id) for node in tree.nodes.values()]

        restored = record_to_tree(tree_to_record(tree), node_records)

        assert restored.root_id == tree.root_id
        assert restored.nodes[child.id].manual_position == Position(10, 20)
        assert restored.nodes[child.id].tags == ["a", "b"]

    def test_stray_node_records_ignored(self):
        tree, _ = sample_tree()
        node_records = [node_to_record(node, tree.id) for node in tree.nodes.values()]
        stray = dict(node_records[0], id="stray", parent_id=tree.root_id)

        restored = record_to_tree(tree_to_record(tree), node_records + [stray])

        assert "stray" not in restored.nodes


class TestInMemoryRecordStore:
    """Test the dictionary-backed store."""

    def setup_method(self):
        self.store = InMemoryRecordStore()
        self.tree, self.child = sample_tree()
        for node in self.tree.nodes.values():
            self.store.put_node(node_to_record(node, self.tree.id))
        self.store.put_tree(tree_to_record(self.tree))

    def test_get_and_list(self):
        assert self.store.get_tree(self.tree.id)['name'] == "Stored"
        assert [record['id'] for record in self.store.list_trees()] == [self.tree.id]
        assert len(self.store.get_nodes_by_tree(self.tree.id)) == 2

    def test_records_are_copied(self):
        record = self.store.get_node(self.child.id)
        record['title'] = "changed"
        assert self.store.get_node(self.child.id)['title'] == "Child"

    def test_find_node_by_url(self):
        assert self.store.find_node_by_url("https://chat/1")['id'] == self.child.id
        assert self.store.find_node_by_url("https://chat/none") is None

    def test_delete(self):
        self.store.delete_node(self.child.id)
        self.store.delete_tree(self.tree.id)
        # Deleting twice is harmless
        self.store.delete_tree(self.tree.id)

        assert self.store.get_node(self.child.id) is None
        assert self.store.get_tree(self.tree.id) is None

    def test_state(self):
        assert self.store.get_state() == {'current_tree_id': None, 'current_node_id': None}
        self.store.save_state({'current_tree_id': self.tree.id, 'current_node_id': self.child.id})
        assert self.store.get_state()['current_node_id'] == self.child.id


class TestJsonFileRecordStore:
    """Test the JSON file store."""

    def setup_method(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.path = Path(self.temp_dir.name) / "trees.json"

    def teardown_method(self):
        self.temp_dir.cleanup()

    def test_missing_file_starts_empty(self):
        store = JsonFileRecordStore(self.path)
        assert store.list_trees() == []
        assert not self.path.exists()

    def test_persists_across_instances(self):
        tree, _ = sample_tree()
        store = JsonFileRecordStore(self.path)
        with store.transaction():
            for node in tree.nodes.values():
                store.put_node(node_to_record(node, tree.id))
            store.put_tree(tree_to_record(tree))

        reopened = JsonFileRecordStore(self.path)

        assert reopened.get_tree(tree.id)['root_node_id'] == tree.root_id
        assert len(reopened.get_nodes_by_tree(tree.id)) == 2
        data = json.loads(self.path.read_text(encoding="utf-8"))
        assert data['version'] == "2"

    def test_transaction_writes_once(self):
        tree, _ = sample_tree()
        store = JsonFileRecordStore(self.path)
        with patch.object(store, 'save', wraps=store.save) as save:
            with store.transaction():
                for node in tree.nodes.values():
                    store.put_node(node_to_record(node, tree.id))
                store.put_tree(tree_to_record(tree))
            assert save.call_count == 1

    def test_corrupted_file_falls_back_to_backup(self):
        tree, _ = sample_tree()
        store = JsonFileRecordStore(self.path)
        store.put_tree(tree_to_record(tree))
        # Second save copies the first file to the backup
        store.save_state({'current_tree_id': tree.id, 'current_node_id': None})
        self.path.write_text("{not json", encoding="utf-8")

        recovered = JsonFileRecordStore(self.path)

        assert recovered.get_tree(tree.id) is not None

    def test_corrupted_file_without_backup_raises(self):
        self.path.write_text("[1, 2, 3]", encoding="utf-8")

        with pytest.raises(FileCorruptionError) as exc_info:
            JsonFileRecordStore(self.path)

        assert isinstance(exc_info.value, StorageError)
        assert exc_info.value.file_path == str(self.path)

    def test_save_error_is_storage_error(self):
        store = JsonFileRecordStore(self.path)
        with patch("arbor.storage.record_store.open", side_effect=OSError("disk full"), create=True):
            with pytest.raises(StorageError):
                store.put_tree(tree_to_record(sample_tree()[0]))


class TestPersistenceQueue:
    """Test the write-behind queue."""

    def setup_method(self):
        self.store = InMemoryRecordStore()
        self.queue = PersistenceQueue(self.store, flush_delay=None, register_atexit=False)
        self.tree, self.child = sample_tree()

    def test_writes_wait_for_flush(self):
        self.queue.put_tree(self.tree)

        assert self.store.get_tree(self.tree.id) is None
        assert self.queue.flush() == 1
        assert self.store.get_tree(self.tree.id) is not None

    def test_newer_write_supersedes(self):
        self.queue.put_node(self.child, self.tree.id)
        self.child.title = "Renamed"
        self.queue.put_node(self.child, self.tree.id)

        assert self.queue.pending_count == 1
        self.queue.flush()
        assert self.store.get_node(self.child.id)['title'] == "Renamed"

    def test_delete_supersedes_put(self):
        self.queue.put_node(self.child, self.tree.id)
        self.queue.delete_node(self.child.id)

        assert self.queue.pending_count == 1
        self.queue.flush()
        assert self.store.get_node(self.child.id) is None

    def test_failed_write_is_requeued(self):
        store = Mock(wraps=InMemoryRecordStore())
        store.put_tree.side_effect = OSError("offline")
        queue = PersistenceQueue(store, flush_delay=None, register_atexit=False)
        queue.put_tree(self.tree)
        queue.put_node(self.child, self.tree.id)

        with pytest.raises(StorageError):
            queue.flush()

        # The node write went through; only the tree write waits for a retry
        store.put_node.assert_called_once()
        assert queue.pending_count == 1

        store.put_tree.side_effect = None
        assert queue.flush() == 1

    def test_timer_flushes_in_background(self):
        queue = PersistenceQueue(self.store, flush_delay=0.01, register_atexit=False)
        queue.put_tree(self.tree)

        deadline = time.monotonic() + 2.0
        while self.store.get_tree(self.tree.id) is None and time.monotonic() < deadline:
            time.sleep(0.01)

        assert self.store.get_tree(self.tree.id) is not None
        assert queue.pending_count == 0
        queue.close()

    def test_close_flushes_and_is_idempotent(self):
        self.queue.put_tree(self.tree)

        self.queue.close()
        self.queue.close()

        assert self.store.get_tree(self.tree.id) is not None

    def test_writes_after_close_apply_directly(self):
        self.queue.close()
        self.queue.put_tree(self.tree)

        assert self.store.get_tree(self.tree.id) is not None
        assert self.queue.pending_count == 0

    def test_mutator_through_queue(self):
        mutator = TreeMutator(self.tree, self.queue)
        node = mutator.create(self.tree.root_id, "Queued", "https://chat/2")
        mutator.delete(self.child.id)

        self.queue.flush()

        assert self.store.get_node(node.id)['parent_id'] == self.tree.root_id
        assert self.store.get_node(self.child.id) is None
        assert set(self.store.get_tree(self.tree.id)['node_ids']) == {self.tree.root_id, node.id}
