#=============================================================================
# File        : memscope/sampling.py
# Project     : MemScope v1.0
# Component   : Sampling - Heap Providers and Periodic Sampler
# Description : Periodic heap sampling for the memory profiler
#               • Provider protocol for host heap statistics
#               • psutil-backed provider with a null fallback
#               • Idempotent start/stop of a daemon sampling thread
#               • On-demand ticks for tests and manual sampling
# Author      : MemScope Contributors
# Version     : 1.0.0
# Technology  : Python 3.8+, psutil, threading
# Standards   : PEP 8, Type Hints, Cross-platform Compatibility
# Created     : 2026-10-18
# Modified    : 2026-10-18 (Initial creation)
# Dependencies: os, threading, time, logging, psutil
# License     : MIT License
# Copyright   : © 2026 MemScope Contributors. Released under MIT License.
#=============================================================================

from __future__ import annotations

import os
import threading
import time
import logging
from typing import Callable, Dict, Mapping, Optional, Protocol, runtime_checkable

import psutil

from .timeline import MemoryMeasurement

# Configure safe logging defaults
_logger = logging.getLogger(__name__)
_logger.setLevel(logging.WARNING)  # Only WARN/ERROR by default

# Add console handler only if none exists
if not _logger.handlers and not logging.getLogger().handlers:
    _console_handler = logging.StreamHandler()
    _console_handler.setLevel(logging.WARNING)
    _formatter = logging.Formatter('[MemScope] %(levelname)s: %(message)s')
    _console_handler.setFormatter(_formatter)
    _logger.addHandler(_console_handler)


@runtime_checkable
class HeapProvider(Protocol):
    """Protocol for heap statistics providers."""

    def read(self) -> Mapping[str, Optional[float]]:
        """Return any of ``heap_used``, ``heap_size``, ``heap_limit`` in bytes."""
        ...

    def is_available(self) -> bool:
        """Whether this provider can report real numbers on this host."""
        ...


class PsutilHeapProvider:
    """Heap provider using psutil: RSS as used, VMS as size, physical RAM as limit."""

    def __init__(self, pid: Optional[int] = None) -> None:
        self.pid = pid if pid is not None else os.getpid()
        self._process = psutil.Process(self.pid)
        self._total = psutil.virtual_memory().total

    def read(self) -> Dict[str, Optional[float]]:
        info = self._process.memory_info()
        return {
            'heap_used': float(info.rss),
            'heap_size': float(getattr(info, 'vms', 0) or 0),
            'heap_limit': float(self._total),
        }

    def is_available(self) -> bool:
        try:
            return self._process.is_running()
        except psutil.Error:
            return False

    def __repr__(self) -> str:
        return f"PsutilHeapProvider(pid={self.pid})"


class NullHeapProvider:
    """Provider for hosts that expose no heap statistics."""

    def read(self) -> Dict[str, Optional[float]]:
        return {}

    def is_available(self) -> bool:
        return False


def detect_heap_provider(pid: Optional[int] = None) -> HeapProvider:
    """Auto-detect the best available heap provider."""
    try:
        return PsutilHeapProvider(pid)
    except (psutil.Error, OSError) as e:
        _logger.warning(f"Process memory inspection unavailable, sampling disabled: {e}")
    return NullHeapProvider()


class Sampler:
    """
    Periodic heap sampler running on a daemon thread.

    Each tick reads the provider and hands one ``MemoryMeasurement`` to
    ``on_measurement``, which performs every downstream pass synchronously.
    ``start`` and ``stop`` are idempotent.
    """

    def __init__(self, provider: HeapProvider,
                 on_measurement: Callable[[MemoryMeasurement], None],
                 clock: Callable[[], float] = time.time) -> None:
        self.provider = provider
        self._on_measurement = on_measurement
        self._clock = clock
        self._interval_s: Optional[float] = None
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._lock = threading.Lock()
        self._tick_count = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None

    @property
    def interval_s(self) -> Optional[float]:
        return self._interval_s

    @property
    def tick_count(self) -> int:
        return self._tick_count

    def start(self, interval_s: float) -> bool:
        """Arm the periodic timer; returns False if already running."""
        with self._lock:
            if self._thread is not None:
                _logger.debug("Sampler already running")
                return False

            self._interval_s = max(0.05, float(interval_s))
            stop_event = threading.Event()
            self._stop_event = stop_event

            def sample_loop():
                _logger.debug("Sampler started")
                while not stop_event.wait(self._interval_s):
                    try:
                        self.tick()
                    except Exception as e:
                        _logger.debug(f"Error in sampler tick: {e}")
                _logger.debug("Sampler stopped")

            thread = threading.Thread(target=sample_loop, name="MemScope-Sampler", daemon=True)
            self._thread = thread
            thread.start()
            return True

    def stop(self, timeout: float = 2.0) -> bool:
        """Disarm the timer; returns False if it was not running."""
        with self._lock:
            thread = self._thread
            if thread is None:
                return False
            self._stop_event.set()
            self._thread = None

        # A tick that stops the sampler cannot join its own thread
        if thread is not threading.current_thread() and thread.is_alive():
            thread.join(timeout=timeout)
        return True

    def read_measurement(self) -> MemoryMeasurement:
        """Read the provider; absent fields and provider errors read as zero."""
        try:
            raw = self.provider.read() or {}
        except Exception as e:
            _logger.debug(f"Heap provider read failed: {e}")
            raw = {}
        return MemoryMeasurement(
            timestamp=self._clock(),
            heap_used=float(raw.get('heap_used') or 0),
            heap_size=float(raw.get('heap_size') or 0),
            heap_limit=float(raw.get('heap_limit') or 0),
        )

    def tick(self) -> MemoryMeasurement:
        """Take one sample now and deliver it."""
        measurement = self.read_measurement()
        self._tick_count += 1
        self._on_measurement(measurement)
        return measurement

    def __repr__(self) -> str:
        return (f"Sampler(running={self.is_running}, interval_s={self._interval_s}, "
                f"ticks={self._tick_count})")
