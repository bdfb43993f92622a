#=============================================================================
# File        : memscope/gc_observer.py
# Project     : MemScope v1.0
# Component   : GC Observer - Best-Effort Garbage Collection Events
# Description : Observes interpreter garbage collections via gc.callbacks
#               • Start/stop pairing with duration and memory delta
#               • Generation to minor / incremental / major mapping
#               • Lock-free handoff to the sampling thread
# Author      : MemScope Contributors
# Version     : 1.0.0
# Technology  : Python 3.8+, gc
# Standards   : PEP 8, Type Hints, Production Safety
# Created     : 2026-10-18
# Modified    : 2026-10-18 (Initial creation)
# Dependencies: collections, gc, logging, time, timeline
# License     : MIT License
# Copyright   : © 2026 MemScope Contributors. Released under MIT License.
#=============================================================================

from __future__ import annotations

import gc
import logging
import time
from collections import deque
from typing import Callable, Dict, List, Optional

from .timeline import GCEvent

_logger = logging.getLogger(__name__)

_GENERATION_TYPES = {0: 'minor', 1: 'incremental', 2: 'major'}


class GCObserver:
    """
    Records collections of ``min_generation`` and above as GCEvents.

    The callback runs on whichever thread triggered the collection; it only
    appends to a bounded deque, which ``drain`` empties from the owner thread.
    """

    def __init__(self, memory_reader: Optional[Callable[[], float]] = None,
                 clock: Callable[[], float] = time.time,
                 min_generation: int = 1, max_pending: int = 100) -> None:
        self._memory_reader = memory_reader
        self._clock = clock
        self.min_generation = min_generation
        self._pending: deque = deque(maxlen=max(1, max_pending))
        self._started: Dict[str, float] = {}
        self._installed = False

    @property
    def is_installed(self) -> bool:
        return self._installed

    def install(self) -> bool:
        if self._installed:
            return False
        gc.callbacks.append(self._on_gc)
        self._installed = True
        _logger.debug("GC observer installed")
        return True

    def uninstall(self) -> bool:
        if not self._installed:
            return False
        try:
            gc.callbacks.remove(self._on_gc)
        except ValueError:
            _logger.warning("GC observer callback was already removed")
        self._installed = False
        self._started.clear()
        return True

    def _read_memory(self) -> float:
        if self._memory_reader is None:
            return 0.0
        try:
            return float(self._memory_reader() or 0)
        except Exception as e:
            _logger.debug(f"GC memory read failed: {e}")
            return 0.0

    def _on_gc(self, phase: str, info: Dict[str, int]) -> None:
        try:
            generation = info.get('generation', 0)
            if generation < self.min_generation:
                return
            if phase == 'start':
                self._started = {'at': time.perf_counter(), 'memory': self._read_memory()}
                return
            if phase != 'stop' or not self._started:
                return

            started = self._started
            self._started = {}
            after = self._read_memory()
            before = started['memory']
            self._pending.append(GCEvent(
                timestamp=self._clock(),
                type=_GENERATION_TYPES.get(generation, 'major'),
                duration=time.perf_counter() - started['at'],
                memory_before=before,
                memory_after=after,
                memory_reclaimed=max(0.0, before - after),
            ))
        except Exception as e:
            _logger.debug(f"Error in GC callback: {e}")

    def drain(self) -> List[GCEvent]:
        """Remove and return every event observed since the last drain."""
        events = []
        while True:
            try:
                events.append(self._pending.popleft())
            except IndexError:
                return events
