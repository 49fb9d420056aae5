"""tracking-timers: per-call timing collection across threads and processes.

Provides:
- TrackingTimer: Collects timing records from any thread or worker process
- InstrumentedFunction: Callable wrapper that records every successful call
- Record: One immutable observation (name, time, gctime, n_allocs, bytes,
  thread_id, pid)
- synchronize: Merge queued records into the timer's store
- render / format_bytes: Human-readable summaries

Usage:
    from concurrent.futures import ProcessPoolExecutor
    from tracking_timers import TrackingTimer

    timer = TrackingTimer()
    work_inst = timer(work)

    with ProcessPoolExecutor() as pool:
        results = list(pool.map(work_inst, range(10)))

    with timer.measure("post-processing"):
        summarize(results)

    print(timer)
"""

from tracking_timers._core import (
    COLUMNS,
    InstrumentedFunction,
    Record,
    RecordStore,
    Timer,
    TrackingTimer,
    synchronize,
    timed_invocation,
)
from tracking_timers._display import format_bytes, render
from tracking_timers._errors import NotOwnerError, QueueCapacityError, TrackingTimerError
from tracking_timers._probe import MeasurementProbe, RuntimeProbe
from tracking_timers._queue import CrossContextQueue

__all__ = [
    "COLUMNS",
    "CrossContextQueue",
    "InstrumentedFunction",
    "MeasurementProbe",
    "NotOwnerError",
    "QueueCapacityError",
    "Record",
    "RecordStore",
    "RuntimeProbe",
    "Timer",
    "TrackingTimer",
    "TrackingTimerError",
    "format_bytes",
    "render",
    "synchronize",
    "timed_invocation",
]

__version__ = "0.1.0"
