"""Multi-producer queue shared by every thread and worker process of a timer.

The queue lives in a multiprocessing manager server. What a timer holds is a
proxy; the proxy pickles into worker processes started by multiprocessing
(Pool, ProcessPoolExecutor) and still talks to the same server-side queue.
"""

import queue
import threading
from multiprocessing.managers import SyncManager
from typing import Any

from loguru import logger

from tracking_timers._errors import QueueCapacityError

_manager_lock = threading.Lock()
_manager: SyncManager | None = None


def _default_manager() -> SyncManager:
    """Return the manager shared by timers of this process, starting it once.

    The manager process is shut down at interpreter exit by multiprocessing's
    own finalizers.
    """
    global _manager
    with _manager_lock:
        if _manager is None:
            manager = SyncManager()
            manager.start()
            logger.debug(f"Started queue manager at {manager.address!r}")
            _manager = manager
        return _manager


class CrossContextQueue:
    """Unbounded queue of records reachable from threads and processes.

    Args:
        manager: Started SyncManager to allocate the queue in. Defaults to a
            manager shared by all timers of the owning process.
        maxsize: Capacity of the queue; 0 (the default) means unbounded.
            A bounded queue that fills up raises QueueCapacityError.

    Design by Contract:
        - put() never blocks and never drops; a refusal is fatal
        - drain() returns each record exactly once, never blocks
    """

    def __init__(self, manager: SyncManager | None = None, maxsize: int = 0) -> None:
        assert maxsize >= 0, f"Queue capacity must be non-negative: {maxsize}"
        manager = manager if manager is not None else _default_manager()
        self._queue = manager.Queue(maxsize=maxsize)

    def put(self, record: Any) -> None:
        """Enqueue a record without waiting on any reader."""
        try:
            self._queue.put_nowait(record)
        except queue.Full as exc:
            raise QueueCapacityError(
                "Record queue is full; records are never dropped, create it unbounded (maxsize=0)"
            ) from exc

    def drain(self) -> list[Any]:
        """Remove and return every record currently available.

        Returns an empty list immediately when nothing is queued.
        """
        drained = []
        while True:
            try:
                drained.append(self._queue.get_nowait())
            except queue.Empty:
                return drained

    def __repr__(self) -> str:
        return f"CrossContextQueue({self._queue!r})"
