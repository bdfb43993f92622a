#=============================================================================
# File        : memscope/timeline.py
# Project     : MemScope v1.0
# Component   : Timeline - Measurements, Events and Bounded History
# Description : Time-series primitives for the profiler
#               • Immutable memory measurements and GC events
#               • Ring-buffer history with oldest-first eviction
#               • Timeline with monotonic timestamp invariants
# Author      : MemScope Contributors
# Version     : 1.0.0
# Technology  : Python 3.8+, Dataclasses, collections.deque
# Standards   : PEP 8, Type Hints, Immutable Data Structures
# Created     : 2026-10-18
# Modified    : 2026-10-18 (Initial creation)
# Dependencies: bisect, collections, dataclasses, logging, typing
# License     : MIT License
# Copyright   : © 2026 MemScope Contributors. Released under MIT License.
#=============================================================================

from __future__ import annotations

import bisect
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Dict, Generic, Iterable, Iterator, List, Literal, Mapping, Optional, TypeVar

_logger = logging.getLogger(__name__)

T = TypeVar("T")

EventType = Literal["navigation", "mount", "unmount", "gc", "user-action"]
GCType = Literal["minor", "major", "incremental"]

EVENT_TYPES = ("navigation", "mount", "unmount", "gc", "user-action")
GC_TYPES = ("minor", "major", "incremental")

_BYTES_PER_MB = 1024 * 1024


@dataclass(frozen=True)
class MemoryMeasurement:
    """One raw heap sample. Immutable once recorded."""
    timestamp: float
    heap_used: float = 0.0
    heap_size: float = 0.0
    heap_limit: float = 0.0

    @property
    def heap_used_mb(self) -> float:
        return self.heap_used / _BYTES_PER_MB

    @property
    def utilization(self) -> float:
        """Heap used relative to the limit, capped at 1.0 (0 when no limit is known)."""
        if not self.heap_limit:
            return 0.0
        return min(self.heap_used / self.heap_limit, 1.0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp,
            'heap_used': self.heap_used,
            'heap_size': self.heap_size,
            'heap_limit': self.heap_limit,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MemoryMeasurement":
        return cls(
            timestamp=float(data['timestamp']),
            heap_used=float(data.get('heap_used') or 0),
            heap_size=float(data.get('heap_size') or 0),
            heap_limit=float(data.get('heap_limit') or 0),
        )


@dataclass(frozen=True)
class TimelineEvent:
    """A notable event on the timeline (navigation, mount, unmount, gc, user action)."""
    timestamp: float
    type: EventType
    description: str
    memory_impact: Optional[float] = None

    def __post_init__(self):
        if self.type not in EVENT_TYPES:
            raise ValueError(f"Unknown timeline event type '{self.type}'")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp,
            'type': self.type,
            'description': self.description,
            'memory_impact': self.memory_impact,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TimelineEvent":
        return cls(
            timestamp=float(data['timestamp']),
            type=data['type'],
            description=str(data.get('description', '')),
            memory_impact=data.get('memory_impact'),
        )


@dataclass(frozen=True)
class GCEvent:
    """A best-effort observation of one garbage collection."""
    timestamp: float
    type: GCType
    duration: float
    memory_before: float = 0.0
    memory_after: float = 0.0
    memory_reclaimed: float = 0.0

    def __post_init__(self):
        if self.type not in GC_TYPES:
            raise ValueError(f"Unknown GC type '{self.type}'")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp,
            'type': self.type,
            'duration': self.duration,
            'memory_before': self.memory_before,
            'memory_after': self.memory_after,
            'memory_reclaimed': self.memory_reclaimed,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GCEvent":
        return cls(
            timestamp=float(data['timestamp']),
            type=data['type'],
            duration=float(data.get('duration') or 0),
            memory_before=float(data.get('memory_before') or 0),
            memory_after=float(data.get('memory_after') or 0),
            memory_reclaimed=float(data.get('memory_reclaimed') or 0),
        )


class BoundedHistory(Generic[T]):
    """
    Append-only ring buffer: appends past the cap evict from the front.

    Iteration order is oldest to newest.
    """

    __slots__ = ('_items',)

    def __init__(self, maxlen: int, items: Iterable[T] = ()) -> None:
        self._items: deque = deque(items, maxlen=max(1, int(maxlen)))

    @property
    def maxlen(self) -> int:
        return self._items.maxlen  # type: ignore[return-value]

    def append(self, item: T) -> None:
        self._items.append(item)

    def extend(self, items: Iterable[T]) -> None:
        self._items.extend(items)

    def insert_sorted(self, item: T, key) -> None:
        """Insert keeping ``key`` order, then evict the oldest past the cap."""
        items = list(self._items)
        keys = [key(i) for i in items]
        items.insert(bisect.bisect_right(keys, key(item)), item)
        self._items = deque(items, maxlen=self._items.maxlen)

    def resize(self, maxlen: int) -> None:
        """Change the cap, keeping the newest entries."""
        maxlen = max(1, int(maxlen))
        if maxlen != self._items.maxlen:
            self._items = deque(self._items, maxlen=maxlen)

    def remove_where(self, predicate) -> int:
        kept = [i for i in self._items if not predicate(i)]
        removed = len(self._items) - len(kept)
        if removed:
            self._items = deque(kept, maxlen=self._items.maxlen)
        return removed

    def clear(self) -> None:
        self._items.clear()

    def latest(self) -> Optional[T]:
        return self._items[-1] if self._items else None

    def tail(self, n: int) -> List[T]:
        if n <= 0:
            return []
        return list(self._items)[-n:]

    def to_list(self) -> List[T]:
        return list(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __getitem__(self, index):
        return self._items[index]

    def __repr__(self) -> str:
        return f"BoundedHistory(len={len(self._items)}, maxlen={self._items.maxlen})"


class Timeline:
    """
    Bounded, ordered history of measurements and notable events.

    Invariant: ``end_time`` equals the newest measurement's timestamp, and
    both sequences are non-decreasing in timestamp.
    """

    def __init__(self, max_measurements: int = 1000, max_events: int = 500) -> None:
        self.start_time: Optional[float] = None
        self.end_time: Optional[float] = None
        self.measurements: BoundedHistory[MemoryMeasurement] = BoundedHistory(max_measurements)
        self.events: BoundedHistory[TimelineEvent] = BoundedHistory(max_events)

    def add_measurement(self, measurement: MemoryMeasurement) -> bool:
        """Append a measurement; returns False if it would break timestamp order."""
        last = self.measurements.latest()
        if last is not None:
            if measurement.timestamp < last.timestamp:
                _logger.debug(f"Dropping out-of-order measurement at {measurement.timestamp}")
                return False
            if measurement == last:
                return False
        self.measurements.append(measurement)
        if self.start_time is None:
            self.start_time = measurement.timestamp
        self.end_time = measurement.timestamp
        return True

    def add_event(self, event: TimelineEvent) -> bool:
        """Insert an event in timestamp order; exact duplicates are ignored."""
        if any(e == event for e in self.events):
            return False
        self.events.insert_sorted(event, key=lambda e: e.timestamp)
        if self.start_time is None or event.timestamp < self.start_time:
            self.start_time = event.timestamp
        return True

    def resize(self, max_measurements: int, max_events: int) -> None:
        self.measurements.resize(max_measurements)
        self.events.resize(max_events)

    def clear(self) -> None:
        self.start_time = None
        self.end_time = None
        self.measurements.clear()
        self.events.clear()

    @property
    def is_empty(self) -> bool:
        return not self.measurements and not self.events

    def to_dict(self) -> Dict[str, Any]:
        return {
            'start_time': self.start_time,
            'end_time': self.end_time,
            'measurements': [m.to_dict() for m in self.measurements],
            'events': [e.to_dict() for e in self.events],
        }

    def __repr__(self) -> str:
        return (f"Timeline(measurements={len(self.measurements)}, events={len(self.events)}, "
                f"start_time={self.start_time}, end_time={self.end_time})")
