#=============================================================================
# File        : memscope/store.py
# Project     : MemScope v1.0
# Component   : Store - Profiler State, Snapshots and Export/Import
# Description : Holds every collection the profiler derives
#               • Bounded timeline, GC event and alert histories
#               • Upsert-by-id leak, pattern and suggestion sets
#               • By-value snapshots of the current state
#               • JSON export and section-by-section validated import
# Author      : MemScope Contributors
# Version     : 1.0.0
# Technology  : Python 3.8+, json, Dataclasses
# Standards   : PEP 8, Type Hints
# Created     : 2026-10-18
# Modified    : 2026-10-18 (Initial creation)
# Dependencies: json, logging, time, uuid, config, performance, report, timeline
# License     : MIT License
# Copyright   : © 2026 MemScope Contributors. Released under MIT License.
#=============================================================================

from __future__ import annotations

import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from .config import ProfilerConfig
from .performance import PerformanceMetrics, format_bytes
from .report import (
    Alert, ComponentMemoryInfo, HookMemoryInfo, MemoryLeak, MemoryLeakPattern,
    MemoryOptimizationSuggestion, Snapshot,
)
from .timeline import BoundedHistory, GCEvent, MemoryMeasurement, Timeline, TimelineEvent

_logger = logging.getLogger(__name__)

EXPORT_SECTIONS = (
    'config', 'timeline', 'components', 'hooks', 'snapshots', 'leaks', 'leakPatterns',
    'performance', 'gcEvents', 'suggestions', 'alerts', 'exportedAt',
)


class ImportDataError(ValueError):
    """Raised when an import document cannot be parsed at all."""


@dataclass
class ImportResult:
    """Outcome of an import, per top-level section."""
    applied: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    unrecognized: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            'applied': list(self.applied),
            'failed': dict(self.failed),
            'unrecognized': list(self.unrecognized),
        }


def parse_document(doc: Union[str, bytes, Mapping[str, Any]]) -> Dict[str, Any]:
    """Decode an export document; anything but a JSON object is rejected."""
    if isinstance(doc, (str, bytes, bytearray)):
        try:
            doc = json.loads(doc)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ImportDataError(f"Import document is not valid JSON: {e}") from e
    if not isinstance(doc, Mapping):
        raise ImportDataError(f"Import document must be a JSON object, got {type(doc).__name__}")
    return dict(doc)


def _records(data: Any, parser: Callable[[Mapping[str, Any]], Any]) -> List[Any]:
    if not isinstance(data, list):
        raise TypeError(f"expected a list, got {type(data).__name__}")
    return [parser(item) for item in data]


class ProfilerStore:
    """
    All profiler state that is exported, snapshotted and reset together.

    Collections are mutated in place so that analyzers holding references to
    them keep seeing the live sets.
    """

    def __init__(self, config: Optional[ProfilerConfig] = None,
                 clock: Callable[[], float] = time.time) -> None:
        self.config = config or ProfilerConfig()
        self._clock = clock
        limits = self.config.history

        self.current_memory: Optional[MemoryMeasurement] = None
        self.timeline = Timeline(limits.max_measurements, limits.max_timeline_events)
        self.components: Dict[str, ComponentMemoryInfo] = {}
        self.hooks: List[HookMemoryInfo] = []
        self.leaks: Dict[str, MemoryLeak] = {}
        self.leak_patterns: Dict[str, MemoryLeakPattern] = {}
        self.performance: Optional[PerformanceMetrics] = None
        self.gc_events: BoundedHistory[GCEvent] = BoundedHistory(limits.max_gc_events)
        self.snapshots: Dict[str, Snapshot] = {}
        self.suggestions: Dict[str, MemoryOptimizationSuggestion] = {}
        self.alerts: BoundedHistory[Alert] = BoundedHistory(limits.max_alerts)
        self.extra_sections: Dict[str, Any] = {}

    def apply_limits(self, config: ProfilerConfig) -> None:
        """Adopt new caps, keeping the newest entries of each history."""
        self.config = config
        limits = config.history
        self.timeline.resize(limits.max_measurements, limits.max_timeline_events)
        self.gc_events.resize(limits.max_gc_events)
        self.alerts.resize(limits.max_alerts)

    # --------- Mutators ---------

    def add_measurement(self, measurement: MemoryMeasurement) -> bool:
        accepted = self.timeline.add_measurement(measurement)
        if accepted:
            self.current_memory = measurement
        return accepted

    def add_timeline_event(self, event: TimelineEvent) -> bool:
        return self.timeline.add_event(event)

    def add_gc_event(self, event: GCEvent) -> None:
        self.gc_events.append(event)
        self.timeline.add_event(TimelineEvent(
            timestamp=event.timestamp,
            type='gc',
            description=f"{event.type} GC reclaimed {format_bytes(event.memory_reclaimed)}",
            memory_impact=-event.memory_reclaimed,
        ))

    def set_components(self, components: Mapping[str, ComponentMemoryInfo],
                       hooks: Iterable[HookMemoryInfo] = ()) -> None:
        self.components = dict(components)
        self.hooks = list(hooks)

    def set_performance(self, metrics: Optional[PerformanceMetrics]) -> None:
        self.performance = metrics

    def upsert_leak(self, leak: MemoryLeak) -> bool:
        is_new = leak.id not in self.leaks
        self.leaks[leak.id] = leak
        return is_new

    def upsert_pattern(self, pattern: MemoryLeakPattern) -> bool:
        is_new = pattern.id not in self.leak_patterns
        self.leak_patterns[pattern.id] = pattern
        return is_new

    def upsert_suggestion(self, suggestion: MemoryOptimizationSuggestion) -> bool:
        is_new = suggestion.id not in self.suggestions
        self.suggestions[suggestion.id] = suggestion
        return is_new

    # --------- Snapshots ---------

    def create_snapshot(self, name: Optional[str] = None,
                        timestamp: Optional[float] = None) -> Snapshot:
        """Capture the current state by value."""
        now = self._clock() if timestamp is None else timestamp
        snapshot = Snapshot(
            id=f"snapshot-{uuid.uuid4().hex[:12]}",
            timestamp=now,
            name=name or f"Snapshot {len(self.snapshots) + 1}",
            memory=self.current_memory,
            components=tuple(self.components.values()),
            hooks=tuple(self.hooks),
            leaks=tuple(self.leaks.values()),
            performance=self.performance,
            gc_events=tuple(self.gc_events.tail(self.config.history.snapshot_gc_events)),
        )
        self.snapshots[snapshot.id] = snapshot
        return snapshot

    def delete_snapshot(self, snapshot_id: str) -> bool:
        return self.snapshots.pop(snapshot_id, None) is not None

    def clear_snapshots(self) -> None:
        self.snapshots.clear()

    def reset(self) -> None:
        """Empty every collection; configuration is kept."""
        self.current_memory = None
        self.timeline.clear()
        self.components = {}
        self.hooks = []
        self.leaks.clear()
        self.leak_patterns.clear()
        self.performance = None
        self.gc_events.clear()
        self.snapshots.clear()
        self.suggestions.clear()
        self.alerts.clear()
        self.extra_sections.clear()

    # --------- Export / import ---------

    def export_document(self, exported_at: Optional[float] = None) -> Dict[str, Any]:
        doc: Dict[str, Any] = {
            'config': self.config.to_dict(),
            'timeline': self.timeline.to_dict(),
            'components': [c.to_dict() for c in self.components.values()],
            'hooks': [h.to_dict() for h in self.hooks],
            'snapshots': [s.to_dict() for s in self.snapshots.values()],
            'leaks': [l.to_dict() for l in self.leaks.values()],
            'leakPatterns': [p.to_dict() for p in self.leak_patterns.values()],
            'performance': self.performance.to_dict() if self.performance else None,
            'gcEvents': [g.to_dict() for g in self.gc_events],
            'suggestions': [s.to_dict() for s in self.suggestions.values()],
            'alerts': [a.to_dict() for a in self.alerts],
            'exportedAt': self._clock() if exported_at is None else exported_at,
        }
        for key, value in self.extra_sections.items():
            doc.setdefault(key, value)
        return doc

    def export_json(self, indent: int = 2) -> str:
        return json.dumps(self.export_document(), indent=indent, default=str)

    def import_document(self, doc: Union[str, bytes, Mapping[str, Any]],
                        apply_config: Optional[Callable[[ProfilerConfig], None]] = None,
                        add_alert: Optional[Callable[[Alert], None]] = None) -> ImportResult:
        """
        Merge an exported document into the current state.

        Each section is validated completely before any of it is applied, so
        a bad section leaves its collection untouched while the others load.
        Raises ImportDataError if the document itself cannot be parsed.
        """
        data = parse_document(doc)
        result = ImportResult()

        for key, value in data.items():
            if key not in EXPORT_SECTIONS:
                self.extra_sections[key] = value
                result.unrecognized.append(key)
                continue
            if key == 'exportedAt':
                continue
            try:
                apply = self._prepare_section(key, value, apply_config, add_alert)
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                result.failed[key] = f"{type(e).__name__}: {e}"
                _logger.error(f"Import of section '{key}' failed: {e}")
                continue
            apply()
            result.applied.append(key)

        if result.unrecognized:
            _logger.warning(f"Import kept unrecognized sections: {', '.join(result.unrecognized)}")
        return result

    def _prepare_section(self, key: str, value: Any,
                         apply_config: Optional[Callable[[ProfilerConfig], None]],
                         add_alert: Optional[Callable[[Alert], None]]) -> Callable[[], None]:
        """Validate one section; returns a closure that applies it."""
        if key == 'config':
            if not isinstance(value, Mapping):
                raise TypeError("config must be an object")
            config = ProfilerConfig.from_dict(value, base=self.config)

            def apply():
                if apply_config is not None:
                    apply_config(config)
                else:
                    self.apply_limits(config)
            return apply

        if key == 'timeline':
            if not isinstance(value, Mapping):
                raise TypeError("timeline must be an object")
            measurements = _records(value.get('measurements', []), MemoryMeasurement.from_dict)
            events = _records(value.get('events', []), TimelineEvent.from_dict)

            def apply():
                for measurement in sorted(measurements, key=lambda m: m.timestamp):
                    self.add_measurement(measurement)
                for event in events:
                    self.timeline.add_event(event)
            return apply

        if key == 'components':
            components = _records(value, ComponentMemoryInfo.from_dict)
            return lambda: setattr(self, 'components', {c.name: c for c in components})

        if key == 'hooks':
            hooks = _records(value, HookMemoryInfo.from_dict)
            return lambda: setattr(self, 'hooks', hooks)

        if key == 'snapshots':
            snapshots = _records(value, Snapshot.from_dict)
            return lambda: self.snapshots.update((s.id, s) for s in snapshots)

        if key == 'leaks':
            leaks = _records(value, MemoryLeak.from_dict)
            return lambda: self.leaks.update((l.id, l) for l in leaks)

        if key == 'leakPatterns':
            patterns = _records(value, MemoryLeakPattern.from_dict)
            return lambda: self.leak_patterns.update((p.id, p) for p in patterns)

        if key == 'performance':
            metrics = PerformanceMetrics.from_dict(value) if value is not None else None
            return lambda: self.set_performance(metrics) if metrics is not None else None

        if key == 'gcEvents':
            gc_events = _records(value, GCEvent.from_dict)
            return lambda: self.gc_events.extend(gc_events)

        if key == 'suggestions':
            suggestions = _records(value, MemoryOptimizationSuggestion.from_dict)
            return lambda: self.suggestions.update((s.id, s) for s in suggestions)

        if key == 'alerts':
            alerts = _records(value, Alert.from_dict)

            def apply():
                for alert in alerts:
                    if add_alert is not None:
                        add_alert(alert)
                    elif not any(a.dedup_key == alert.dedup_key for a in self.alerts):
                        self.alerts.append(alert)
            return apply

        raise KeyError(key)
