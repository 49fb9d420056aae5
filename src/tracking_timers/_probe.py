"""Runtime counters sampled around each timed invocation.

A probe exposes cumulative counters; the timed invocation samples them
before and after the thunk and stores the differences.

Limitations of RuntimeProbe (CPython has no per-call allocation counters):
- alloc_count is the number of allocated memory blocks
  (sys.getallocatedblocks). Growth is recorded, so a call that frees as
  much as it allocates reports 0.
- bytes_allocated is the process resident set size reported by psutil.
  Growth is recorded; memory reused from the allocator's free lists is
  not visible.
- gc_time only counts collections run on the calling thread.
"""

import gc
import os
import sys
import threading
import time
from functools import lru_cache
from typing import Protocol, runtime_checkable

import psutil


@runtime_checkable
class MeasurementProbe(Protocol):
    """Capability interface for the counters a timed invocation samples."""

    def elapsed(self) -> float: ...

    def gc_time(self) -> float: ...

    def alloc_count(self) -> int: ...

    def bytes_allocated(self) -> int: ...


# gc.callbacks fires "start"/"stop" around every collection, on the thread
# that triggered it. Time is accumulated per thread.
_gc_state = threading.local()
_gc_hook_lock = threading.Lock()
_gc_hook_installed = False


def _gc_callback(phase: str, info: dict) -> None:
    if phase == "start":
        _gc_state.started = time.perf_counter()
    elif phase == "stop":
        started = getattr(_gc_state, "started", None)
        if started is None:
            return
        _gc_state.total = getattr(_gc_state, "total", 0.0) + (time.perf_counter() - started)
        _gc_state.started = None


def _install_gc_hook() -> None:
    global _gc_hook_installed
    if _gc_hook_installed:
        return
    with _gc_hook_lock:
        if not _gc_hook_installed:
            gc.callbacks.append(_gc_callback)
            _gc_hook_installed = True


@lru_cache(maxsize=None)
def _process(pid: int) -> psutil.Process:
    return psutil.Process(pid)


class RuntimeProbe:
    """Default probe: perf_counter, gc.callbacks, allocated blocks, psutil RSS.

    Holds no state of its own, so it pickles cleanly into worker processes.
    """

    def __init__(self) -> None:
        _install_gc_hook()

    def elapsed(self) -> float:
        return time.perf_counter()

    def gc_time(self) -> float:
        # Unpickled probes skip __init__
        _install_gc_hook()
        return getattr(_gc_state, "total", 0.0)

    def alloc_count(self) -> int:
        return sys.getallocatedblocks()

    def bytes_allocated(self) -> int:
        try:
            return _process(os.getpid()).memory_info().rss
        except psutil.Error:
            # Counter unavailable on this platform/sandbox
            return 0

    def __repr__(self) -> str:
        return "RuntimeProbe()"
