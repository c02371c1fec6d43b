#!/usr/bin/env python3
"""
Write-behind persistence for tree mutations.

The mutator records what changed and returns immediately; a timer thread
applies the pending writes to the record store in small batches. Pending
writes are keyed by record, so a newer write for the same tree or node
replaces an older one that has not been applied yet.
"""

import atexit
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from arbor.core.logging_config import get_logger
from arbor.storage.record_store import RecordStore
from arbor.storage.serialization import node_to_record, tree_to_record
from arbor.tree.tree_constants import PERSIST_FLUSH_DELAY_SECONDS
from arbor.tree.tree_exceptions import StorageError
from arbor.tree.tree_types import Node, Tree

logger = get_logger(__name__)

WriteKey = Tuple[str, str]


@dataclass(frozen=True)
class PendingWrite:
    """One store call waiting to be applied."""
    action: str            # put_tree, delete_tree, put_node or delete_node
    payload: Any           # record dict for puts, id for deletes


class PersistenceQueue:
    """Coalescing write-behind queue in front of a RecordStore."""

    def __init__(self, store: RecordStore,
                 flush_delay: Optional[float] = PERSIST_FLUSH_DELAY_SECONDS,
                 register_atexit: bool = True):
        """
        Args:
            store: Record store that receives the writes
            flush_delay: Seconds to wait before a background flush; None
                disables the timer so writes are applied only by flush()
            register_atexit: Flush pending writes at interpreter exit
        """
        self.store = store
        self.flush_delay = flush_delay
        self.pending: "OrderedDict[WriteKey, PendingWrite]" = OrderedDict()
        self.lock = threading.Lock()
        self.flush_lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._closed = False
        self._atexit_registered = register_atexit
        if register_atexit:
            atexit.register(self.close)

    # Enqueue operations

    def put_tree(self, tree: Tree) -> None:
        self._enqueue(("tree", tree.id), PendingWrite("put_tree", tree_to_record(tree)))

    def delete_tree(self, tree_id: str) -> None:
        self._enqueue(("tree", tree_id), PendingWrite("delete_tree", tree_id))

    def put_node(self, node: Node, tree_id: str) -> None:
        self._enqueue(("node", node.id), PendingWrite("put_node", node_to_record(node, tree_id)))

    def delete_node(self, node_id: str) -> None:
        self._enqueue(("node", node_id), PendingWrite("delete_node", node_id))

    @property
    def pending_count(self) -> int:
        with self.lock:
            return len(self.pending)

    def _enqueue(self, key: WriteKey, write: PendingWrite) -> None:
        with self.lock:
            closed = self._closed
            if not closed:
                # A newer write replaces the older one and moves to the back
                self.pending.pop(key, None)
                self.pending[key] = write
                self._schedule_locked()
        if closed:
            # Late writes after close still reach the store, synchronously
            logger.warning(f"Write {write.action} for {key[1]} after close, applying directly")
            try:
                self._apply(write)
            except Exception as e:
                logger.error(f"Persisting {write.action} for {key[1]} failed: {e}")

    def _schedule_locked(self) -> None:
        if self.flush_delay is None or self._timer is not None:
            return
        self._timer = threading.Timer(self.flush_delay, self._timer_flush)
        self._timer.daemon = True
        self._timer.start()

    # Flushing

    def flush(self) -> int:
        """
        Apply every pending write now.

        Returns:
            Number of writes applied

        Raises:
            StorageError: If any write failed. Every write is still attempted,
                and failed ones are put back unless a newer write for the
                same record arrived meanwhile.
        """
        with self.flush_lock:
            with self.lock:
                if self._timer is not None:
                    self._timer.cancel()
                    self._timer = None
                batch = list(self.pending.items())
                self.pending.clear()

            if not batch:
                return 0

            failed: List[Tuple[WriteKey, PendingWrite, Exception]] = []
            try:
                with self.store.transaction():
                    for key, write in batch:
                        try:
                            self._apply(write)
                        except Exception as e:
                            failed.append((key, write, e))
            except Exception as e:
                # The commit itself failed; nothing in the batch is durable
                failed = [(key, write, e) for key, write in batch]

            if failed:
                self._requeue(failed)
                for key, write, error in failed:
                    logger.error(f"Persisting {write.action} for {key[1]} failed: {error}")
                raise StorageError(f"{len(failed)} of {len(batch)} writes failed", operation="flush")

            logger.debug(f"Flushed {len(batch)} writes")
            return len(batch)

    def _apply(self, write: PendingWrite) -> None:
        getattr(self.store, write.action)(write.payload)

    def _requeue(self, failed: List[Tuple[WriteKey, PendingWrite, Exception]]) -> None:
        with self.lock:
            for key, write, _ in failed:
                if key not in self.pending:
                    self.pending[key] = write
            if not self._closed:
                self._schedule_locked()

    def _timer_flush(self) -> None:
        with self.lock:
            if self._timer is threading.current_thread():
                self._timer = None
        try:
            self.flush()
        except StorageError as e:
            # Items were re-queued; the next timer retries them
            logger.warning(f"Background flush incomplete: {e}")

    def close(self) -> None:
        """Flush everything and stop the timer. Safe to call more than once."""
        with self.lock:
            if self._closed:
                return
            self._closed = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        if self._atexit_registered:
            atexit.unregister(self.close)
            self._atexit_registered = False
        self.flush()
