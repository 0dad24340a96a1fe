# core/queue.py
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, List

from core.operations import (
    QueuedOperation,
    UnknownOperationError,
    operation_from_dict,
    operation_to_dict,
    stamped,
)
from utils.others import now_ms
from utils.storage import LocalStore, StorageResult

logger = logging.getLogger(__name__)

QUEUE_KEY = "operationsQueue"


@dataclass
class DrainResult:
    """What one pass over the queue achieved."""

    succeeded: List[QueuedOperation] = field(default_factory=list)
    failed: List[QueuedOperation] = field(default_factory=list)
    remaining: int = 0
    skipped: bool = False  # another drain was already running

    def as_dict(self) -> dict:
        return {
            "succeeded": len(self.succeeded),
            "failed": len(self.failed),
            "remaining": self.remaining,
            "skipped": self.skipped,
        }


class OperationQueue:
    """
    FIFO log of mutations made while offline, persisted under one key.

    Never deduplicates: two updates to the same post are both replayed, in
    order. An operation leaves the queue only when its replay succeeds.
    """

    def __init__(self, store: LocalStore, key: str = QUEUE_KEY):
        self.store = store
        self.key = key
        self.last_result = StorageResult(ok=True, key=key)
        self._lock = threading.RLock()
        self._drain_lock = threading.Lock()

    # ---------- persistence ----------

    def _read_raw(self) -> List[Any]:
        raw, self.last_result = self.store.get(self.key, default=[])
        if not isinstance(raw, list):
            logger.warning("Operation queue blob is not a list; treating it as empty.")
            return []
        return raw

    def pending(self) -> List[QueuedOperation]:
        """Decoded queue contents in enqueue order. Unreadable entries are logged and left out."""
        ops: List[QueuedOperation] = []
        with self._lock:
            for entry in self._read_raw():
                try:
                    ops.append(operation_from_dict(entry))
                except UnknownOperationError as e:
                    logger.error("Dropping unreadable queued operation %r: %s", entry, e)
        return ops

    def _write(self, ops: List[QueuedOperation]) -> StorageResult:
        self.last_result = self.store.set(self.key, [operation_to_dict(op) for op in ops])
        return self.last_result

    # ---------- public ----------

    def enqueue(self, operation: QueuedOperation) -> QueuedOperation:
        """Append `operation` (stamped with the current time) and persist the whole queue."""
        op = stamped(operation, now_ms())
        with self._lock:
            ops = self.pending()
            ops.append(op)
            self._write(ops)
        logger.info("Queued %s operation (queue length=%d)", op.type, len(ops))
        return op

    def drain(self, replay: Callable[[QueuedOperation], Any]) -> DrainResult:
        """
        Replay every queued operation in order.

        `replay(op)` performs the remote call; returning normally means success
        and the operation is dropped, raising means failure and the operation is
        kept, in its original position relative to the other failures. The queue
        is written back once, at the end of the pass. Anything enqueued while
        the pass was running is kept after the retained operations.
        """
        if not self._drain_lock.acquire(blocking=False):
            logger.info("Queue drain already in progress; skipping.")
            return DrainResult(skipped=True, remaining=len(self))

        try:
            with self._lock:
                snapshot = self.pending()
            if not snapshot:
                return DrainResult()

            logger.info("Draining %d queued operation(s).", len(snapshot))
            result = DrainResult()
            for op in snapshot:
                try:
                    replay(op)
                except Exception as e:
                    logger.warning("Replay of queued %s operation failed, keeping it: %s", op.type, e)
                    result.failed.append(op)
                else:
                    result.succeeded.append(op)

            with self._lock:
                current = self.pending()
                # Operations enqueued during the pass sit after the snapshot.
                arrived_during_drain = current[len(snapshot):]
                retained = result.failed + arrived_during_drain
                self._write(retained)
                result.remaining = len(retained)

            logger.info(
                "Queue drain finished: %d succeeded, %d failed, %d remaining.",
                len(result.succeeded),
                len(result.failed),
                result.remaining,
            )
            return result
        finally:
            self._drain_lock.release()

    def clear(self) -> StorageResult:
        with self._lock:
            return self._write([])

    def __len__(self) -> int:
        with self._lock:
            return len(self._read_raw())
