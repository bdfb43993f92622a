#=============================================================================
# File        : tests/conftest.py
# Project     : MemScope v1.0
# Component   : Shared Test Fixtures
# Description : Deterministic clock and heap provider for profiler tests
#               • FakeClock advanced explicitly by tests
#               • FakeHeapProvider with settable heap numbers and failures
# Author      : MemScope Contributors
# Version     : 1.0.0
# Created     : 2026-10-18
#=============================================================================

import sys
from pathlib import Path

import pytest

# Add memscope to path for testing
sys.path.insert(0, str(Path(__file__).parent.parent))

from memscope.config import ProfilerConfig
from memscope.engine import MemoryProfilerEngine

MB = 1024 * 1024


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class FakeHeapProvider:
    """Heap provider whose readings are set by the test."""

    def __init__(self, heap_used: float = 10 * MB, heap_size: float = 20 * MB,
                 heap_limit: float = 100 * MB):
        self.values = {'heap_used': heap_used, 'heap_size': heap_size, 'heap_limit': heap_limit}
        self.available = True
        self.fail = False
        self.reads = 0

    def set(self, **values):
        self.values.update(values)

    def read(self):
        self.reads += 1
        if self.fail:
            raise RuntimeError("heap statistics unavailable")
        return dict(self.values)

    def is_available(self):
        return self.available


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def provider():
    return FakeHeapProvider()


@pytest.fixture
def make_engine(clock, provider):
    """Factory for engines wired to the fake clock and provider."""
    engines = []

    def factory(config=None, **kwargs):
        kwargs.setdefault('heap_provider', provider)
        kwargs.setdefault('clock', clock)
        kwargs.setdefault('observe_gc', False)
        engine = MemoryProfilerEngine(config=config or ProfilerConfig(), **kwargs)
        engines.append(engine)
        return engine

    yield factory

    for engine in engines:
        engine.stop()
