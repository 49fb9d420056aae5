"""Core timing collection.

Design by Contract (fail-fast, never clamp):
- Elapsed time MUST be non-negative
- GC time MUST NOT exceed elapsed time
- Allocation counters are growth over the call, floored at zero
- A record is produced only when the timed code returns normally

Records flow one way: producer -> CrossContextQueue -> RecordStore.
Producers (any thread, any worker process) only touch the queue. The store
lives in the process that created the timer and is only filled by
synchronize(), under the store's lock.
"""

import functools
import json
import os
import threading
import time
from collections.abc import Callable, Generator, Iterable
from contextlib import contextmanager
from pathlib import Path
from typing import Any, NamedTuple

from beartype import beartype
from loguru import logger

from tracking_timers._display import render
from tracking_timers._errors import NotOwnerError
from tracking_timers._probe import MeasurementProbe, RuntimeProbe
from tracking_timers._queue import CrossContextQueue


class Record(NamedTuple):
    """One timing observation of a completed invocation.

    Field order is the exported column order.
    """

    name: str
    time: float
    gctime: float
    n_allocs: int
    bytes: int
    thread_id: int
    pid: int

    @property
    def time_seconds(self) -> float:
        return self.time

    @property
    def gc_time_seconds(self) -> float:
        return self.gctime

    @property
    def alloc_count(self) -> int:
        return self.n_allocs

    @property
    def bytes_allocated(self) -> int:
        return self.bytes

    @property
    def process_id(self) -> int:
        return self.pid


COLUMNS: tuple[tuple[str, type], ...] = tuple(
    (field, Record.__annotations__[field]) for field in Record._fields
)


class _Sample(NamedTuple):
    elapsed: float
    gc_time: float
    alloc_count: int
    bytes_allocated: int


def _begin(probe: MeasurementProbe) -> _Sample:
    # Clock first so every other counter change falls inside the interval
    elapsed = probe.elapsed()
    return _Sample(elapsed, probe.gc_time(), probe.alloc_count(), probe.bytes_allocated())


def _finish(name: str, probe: MeasurementProbe, before: _Sample) -> Record:
    gc_time = probe.gc_time()
    alloc_count = probe.alloc_count()
    bytes_allocated = probe.bytes_allocated()
    elapsed = probe.elapsed() - before.elapsed
    gctime = gc_time - before.gc_time

    assert elapsed >= 0, (
        f"Elapsed time cannot be negative: {elapsed:.9f}s. "
        f"Probe clock went backwards or timing bug."
    )
    assert 0 <= gctime <= elapsed, (
        f"GC time must lie within elapsed time: gctime={gctime:.9f}s, "
        f"elapsed={elapsed:.9f}s"
    )

    return Record(
        name=name,
        time=elapsed,
        gctime=gctime,
        # Growth only: counters are net, frees during the call can exceed allocations
        n_allocs=max(0, alloc_count - before.alloc_count),
        bytes=max(0, bytes_allocated - before.bytes_allocated),
        thread_id=threading.get_ident(),
        pid=os.getpid(),
    )


def timed_invocation(
    name: str, thunk: Callable[[], Any], probe: MeasurementProbe
) -> tuple[Record, Any]:
    """Run ``thunk`` once on the calling thread and measure it.

    Args:
        name: Label stored in the record
        thunk: Zero-argument callable to execute
        probe: Counters sampled before and after the call

    Returns:
        Tuple of (record, thunk's return value). If the thunk raises, the
        exception propagates and no record exists.
    """
    before = _begin(probe)
    value = thunk()
    return _finish(name, probe, before), value


class RecordStore:
    """Lock-guarded, append-only list of drained records.

    Only synchronize() appends; both operations hold the lock so a read
    never observes a partial append.
    """

    def __init__(self) -> None:
        self._records: list[Record] = []
        self.lock = threading.RLock()

    def append_range(self, records: Iterable[Record]) -> None:
        with self.lock:
            self._records.extend(records)

    def read_all(self) -> list[Record]:
        with self.lock:
            return list(self._records)

    def __len__(self) -> int:
        with self.lock:
            return len(self._records)


def synchronize(timer: "TrackingTimer") -> int:
    """Move every queued record of ``timer`` into its store.

    Holds the store lock for the whole drain-and-append, so concurrent
    callers each take a disjoint batch. Calling with an empty queue is a
    no-op.

    Returns:
        Number of records moved by this call.
    """
    store = timer._owned_store()
    with store.lock:
        drained = timer._queue.drain()
        store.append_range(drained)
    if drained:
        logger.debug(f"Synchronized {len(drained)} records ({len(store)} total)")
    return len(drained)


class InstrumentedFunction:
    """Callable that records every successful call of ``func`` into a timer.

    Picklable whenever ``func`` is, so it can be mapped over a process pool.
    """

    def __init__(self, func: Callable, timer: "TrackingTimer", name: str) -> None:
        # Metadata only: copying func.__dict__ would clobber the fields below
        functools.update_wrapper(self, func, updated=())
        self.func = func
        self.timer = timer
        self.name = name

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self.timer.record(self.name, self.func, *args, **kwargs)

    def __repr__(self) -> str:
        return f"InstrumentedFunction({self.name!r})"


def _default_name(func: Callable) -> str:
    return getattr(func, "__qualname__", None) or repr(func)


class TrackingTimer:
    """Thread- and process-friendly collector of per-call timing records.

    Records are pushed onto a cross-process queue; reading (rows(),
    columns(), str()) first synchronizes the queue into the local store.

    Args:
        probe: Counters to sample (default: RuntimeProbe)
        queue: Queue to publish records on (default: a fresh CrossContextQueue)

    Example:
        timer = TrackingTimer()
        slow_inst = timer(slow)              # instrument
        with ProcessPoolExecutor() as pool:
            list(pool.map(slow_inst, range(10)))
        timer.record("load", load_data, path)
        print(timer)

    Pickling ships only the queue handle: the copy in a worker process can
    record but not read (NotOwnerError).
    """

    @beartype
    def __init__(
        self,
        *,
        probe: MeasurementProbe | None = None,
        queue: CrossContextQueue | None = None,
    ) -> None:
        self._start_ns: int = time.perf_counter_ns()
        self._probe = probe if probe is not None else RuntimeProbe()
        self._queue = queue if queue is not None else CrossContextQueue()
        self._store: RecordStore | None = RecordStore()
        self._owner_pid: int = os.getpid()

    def __getstate__(self) -> dict[str, Any]:
        state = self.__dict__.copy()
        state["_store"] = None
        return state

    def _owned_store(self) -> RecordStore:
        if self._store is None or os.getpid() != self._owner_pid:
            raise NotOwnerError(
                f"Timer results live in process {self._owner_pid}; "
                f"this copy (process {os.getpid()}) can only record"
            )
        return self._store

    # -- recording ---------------------------------------------------------

    def put(self, record: Record) -> None:
        """Publish an already measured record."""
        self._queue.put(record)

    @beartype
    def record(self, name: str, thunk: Callable, *args: Any, **kwargs: Any) -> Any:
        """Call ``thunk(*args, **kwargs)`` and record its timing under ``name``.

        Returns the thunk's value unchanged. Exceptions propagate and nothing
        is recorded.
        """
        rec, value = timed_invocation(name, lambda: thunk(*args, **kwargs), self._probe)
        self._queue.put(rec)
        return value

    @contextmanager
    @beartype
    def measure(self, name: str) -> Generator[None, None, None]:
        """Record the enclosed block under ``name`` if it completes normally.

        Example:
            with timer.measure("parse"):
                data = json.loads(raw)
        """
        before = _begin(self._probe)
        yield
        self._queue.put(_finish(name, self._probe, before))

    @beartype
    def instrument(self, func: Callable, name: str | None = None) -> InstrumentedFunction:
        """Wrap ``func`` so every successful call is recorded.

        Args:
            func: Callable to instrument
            name: Record name (default: func's qualified name, else repr)
        """
        return InstrumentedFunction(func, self, name if name is not None else _default_name(func))

    def __call__(self, func: Callable, name: str | None = None) -> InstrumentedFunction:
        return self.instrument(func, name)

    # -- reading -----------------------------------------------------------

    def synchronize(self) -> int:
        """See :func:`synchronize`."""
        return synchronize(self)

    def rows(self) -> list[Record]:
        """Synchronize, then return every record collected so far."""
        synchronize(self)
        return self._owned_store().read_all()

    def columns(self) -> dict[str, list[Any]]:
        """Synchronize, then return the records column by column.

        Every column is present even when there are no rows.
        """
        rows = self.rows()
        return {name: [getattr(r, name) for r in rows] for name, _ in COLUMNS}

    def elapsed_since_creation(self) -> float:
        return (time.perf_counter_ns() - self._start_ns) * 1e-9

    # -- reporting ---------------------------------------------------------

    @beartype
    def log_summary(self, title: str = "TrackingTimer") -> None:
        """Log the rendered summary through loguru, one line per entry."""
        text = render(self.rows(), self.elapsed_since_creation())
        logger.info(f"[{title}]")
        for line in text.splitlines():
            logger.info(line)

    @beartype
    def flush_to_file(self, path: Path) -> None:
        """Write all records to a JSON file.

        Args:
            path: Output file path (will be created/overwritten)
        """
        rows = self.rows()
        payload = {
            "elapsed_since_creation": self.elapsed_since_creation(),
            "columns": [name for name, _ in COLUMNS],
            "rows": [r._asdict() for r in rows],
        }
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(payload, f, indent=2)
        logger.debug(f"Wrote {len(rows)} records to {path}")

    def __repr__(self) -> str:
        return "TrackingTimer(…)"

    def __str__(self) -> str:
        return render(self.rows(), self.elapsed_since_creation())


Timer = TrackingTimer
