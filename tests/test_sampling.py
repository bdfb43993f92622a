#=============================================================================
# File        : tests/test_sampling.py
# Project     : MemScope v1.0
# Component   : Sampler Test Suite
# Description : Heap providers, tick delivery and start/stop idempotence
# Author      : MemScope Contributors
# Version     : 1.0.0
# Created     : 2026-10-18
#=============================================================================

import sys
import threading
import time
from pathlib import Path

import pytest

# Add memscope to path for testing
sys.path.insert(0, str(Path(__file__).parent.parent))

from memscope.sampling import (
    HeapProvider, NullHeapProvider, PsutilHeapProvider, Sampler, detect_heap_provider,
)


@pytest.fixture
def received():
    return []


@pytest.fixture
def sampler(provider, clock, received):
    sampler = Sampler(provider, received.append, clock=clock)
    yield sampler
    sampler.stop()


def sampler_threads():
    return [t for t in threading.enumerate() if t.name == "MemScope-Sampler" and t.is_alive()]


class TestProviders:

    def test_psutil_provider_reads_this_process(self):
        provider = detect_heap_provider()
        assert isinstance(provider, PsutilHeapProvider)
        assert isinstance(provider, HeapProvider)
        assert provider.is_available()
        stats = provider.read()
        assert stats['heap_used'] > 0
        assert stats['heap_limit'] >= stats['heap_used']

    def test_null_provider(self):
        provider = NullHeapProvider()
        assert provider.read() == {}
        assert not provider.is_available()


class TestSamplerTicks:

    def test_tick_delivers_measurement(self, sampler, provider, clock, received):
        measurement = sampler.tick()

        assert received == [measurement]
        assert measurement.timestamp == clock.now
        assert measurement.heap_used == provider.values['heap_used']
        assert sampler.tick_count == 1

    def test_provider_error_reads_as_zero(self, sampler, provider, received):
        provider.fail = True
        measurement = sampler.tick()

        assert measurement.heap_used == 0.0
        assert measurement.heap_limit == 0.0
        assert len(received) == 1, "a failed read must still produce a tick"

    def test_missing_fields_read_as_zero(self, sampler, provider):
        provider.values = {'heap_used': 1024}
        measurement = sampler.read_measurement()
        assert measurement.heap_used == 1024.0
        assert measurement.heap_size == 0.0


class TestSamplerLifecycle:

    def test_start_is_idempotent(self, sampler):
        before = len(sampler_threads())
        assert sampler.start(0.05)
        assert not sampler.start(0.05), "second start should be a no-op"
        assert len(sampler_threads()) == before + 1
        assert sampler.is_running

    def test_stop_is_idempotent(self, sampler):
        sampler.start(0.05)
        assert sampler.stop()
        assert not sampler.stop()
        assert not sampler.is_running

    def test_interval_is_clamped(self, sampler):
        sampler.start(0.0001)
        assert sampler.interval_s == 0.05

    def test_no_ticks_after_stop(self, sampler, received):
        sampler.start(0.05)
        time.sleep(0.3)
        sampler.stop()
        count = len(received)
        assert count > 0, "sampler should have ticked while running"

        time.sleep(0.2)
        assert len(received) == count, "no ticks may arrive after stop"

    def test_tick_errors_do_not_kill_the_loop(self, provider, clock):
        calls = []

        def explode(measurement):
            calls.append(measurement)
            raise RuntimeError("downstream failure")

        sampler = Sampler(provider, explode, clock=clock)
        sampler.start(0.05)
        try:
            time.sleep(0.3)
        finally:
            sampler.stop()
        assert len(calls) >= 2, "the loop should keep running after a failing tick"
