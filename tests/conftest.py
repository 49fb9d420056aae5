"""Shared fixtures.

FakeProbe is a deterministic MeasurementProbe: tests advance its counters
from inside the timed thunk.
"""

import pytest


class FakeProbe:
    def __init__(self) -> None:
        self.clock = 0.0
        self.gc = 0.0
        self.allocs = 0
        self.nbytes = 0

    def elapsed(self) -> float:
        return self.clock

    def gc_time(self) -> float:
        return self.gc

    def alloc_count(self) -> int:
        return self.allocs

    def bytes_allocated(self) -> int:
        return self.nbytes

    def advance(
        self, seconds: float = 0.0, gc: float = 0.0, allocs: int = 0, nbytes: int = 0
    ) -> None:
        self.clock += seconds
        self.gc += gc
        self.allocs += allocs
        self.nbytes += nbytes


@pytest.fixture(scope="session")
def probe_factory():
    """Session-scoped so Hypothesis tests can build fresh probes per example."""
    return FakeProbe


@pytest.fixture
def fake_probe() -> FakeProbe:
    return FakeProbe()
