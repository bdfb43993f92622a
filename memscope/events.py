#=============================================================================
# File        : memscope/events.py
# Project     : MemScope v1.0
# Component   : Events - Notification Emitter
# Description : Minimal event emitter for profiler notifications
#               • on / off / once subscription
#               • Listener errors are logged and never reach the emitter
# Author      : MemScope Contributors
# Version     : 1.0.0
# Technology  : Python 3.8+
# Standards   : PEP 8, Type Hints
# Created     : 2026-10-18
# Modified    : 2026-10-18 (Initial creation)
# Dependencies: collections, logging, threading
# License     : MIT License
# Copyright   : © 2026 MemScope Contributors. Released under MIT License.
#=============================================================================

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from typing import Any, Callable, Dict, List

_logger = logging.getLogger(__name__)

# Notification names published by the engine
EVENT_NAMES = (
    'memory-measurement', 'component-update', 'hook-update', 'leak-detected',
    'pattern-detected', 'performance-update', 'gc-event', 'suggestion-generated',
    'alert', 'profiling-started', 'profiling-stopped', 'config-changed',
    'snapshot-created', 'data-reset', 'data-imported', 'gc-forced',
)


class Emitter:
    """
    Simple event emitter.

    ``on`` returns a callable that removes the listener again.
    """

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = defaultdict(list)
        self._lock = threading.Lock()

    def on(self, event_name: str, listener: Callable) -> Callable[[], None]:
        """Add an event listener."""
        with self._lock:
            self._listeners[event_name].append(listener)
        return lambda: self.off(event_name, listener)

    def off(self, event_name: str, listener: Callable) -> None:
        """Remove an event listener."""
        with self._lock:
            if event_name in self._listeners:
                try:
                    self._listeners[event_name].remove(listener)
                except ValueError:
                    pass  # Listener not found

    def once(self, event_name: str, listener: Callable) -> Callable[[], None]:
        """Add a one-time event listener."""
        def once_wrapper(*args, **kwargs):
            self.off(event_name, once_wrapper)
            return listener(*args, **kwargs)

        return self.on(event_name, once_wrapper)

    def emit(self, event_name: str, *args: Any, **kwargs: Any) -> None:
        """Emit an event to all listeners."""
        with self._lock:
            listeners = list(self._listeners.get(event_name, ()))
        for listener in listeners:
            try:
                listener(*args, **kwargs)
            except Exception as e:
                _logger.error(f"Error in event listener for '{event_name}': {e}")
