#=============================================================================
# File        : memscope/engine.py
# Project     : MemScope v1.0
# Component   : Engine - Memory Profiler Orchestrator
# Description : Owns the profiler lifecycle and wires every analysis pass
#               • start / stop / reset with idempotent lifecycle
#               • Per-tick pipeline: timeline, GC, leaks, alerts, suggestions
#               • Introspection and GC observer installation
#               • Command surface, getters and event notifications
# Author      : MemScope Contributors
# Version     : 1.0.0
# Technology  : Python 3.8+, Threading, Cross-Platform
# Standards   : PEP 8, Type Hints, Production Safety
# Created     : 2026-10-18
# Modified    : 2026-10-18 (Initial creation)
# Dependencies: gc, json, logging, platform, threading, time, all memscope modules
# License     : MIT License
# Copyright   : © 2026 MemScope Contributors. Released under MIT License.
#=============================================================================

from __future__ import annotations

import gc
import json
import logging
import platform
import sys
import threading
import time
from dataclasses import replace
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from .alerts import BudgetAlertManager
from .attribution import AttributionPass, ComponentAttributionAnalyzer
from .config import ProfilerConfig
from .detector import LeakPatternDetector
from .events import EVENT_NAMES, Emitter
from .gc_observer import GCObserver
from .introspection import ComponentNode, IntrospectionHook
from .performance import PerformanceMetrics, memory_pressure_level, process_performance_entries
from .report import (
    Alert, BudgetViolation, ComponentMemoryInfo, MemoryLeak, MemoryOptimizationSuggestion, Snapshot,
    SnapshotComparison,
)
from .sampling import HeapProvider, Sampler, detect_heap_provider
from .store import ImportResult, ProfilerStore
from .suggestions import SuggestionGenerator
from .timeline import GCEvent, MemoryMeasurement, TimelineEvent
from .trend import (
    UsagePrediction, classify_trend, growth_rate_from_points, predict_usage, summarize_series,
)

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

_DIRECTION_TO_TREND = {"growing": "up", "declining": "down", "stable": "stable"}


class MemoryProfilerEngine:
    """
    Memory and performance profiler for one host application.

    The host constructs one engine and hands it to whatever UI layer needs
    it. Ticks from the sampler thread and commits from the host are
    serialized on a single re-entrant lock, so each pass runs to completion
    before the next starts.
    """

    def __init__(self, config: Optional[ProfilerConfig] = None,
                 heap_provider: Optional[HeapProvider] = None,
                 introspection: Optional[IntrospectionHook] = None,
                 gc_trigger: Optional[Callable[[], Any]] = gc.collect,
                 clock: Callable[[], float] = time.time,
                 observe_gc: bool = True) -> None:
        self._lock = threading.RLock()
        self._clock = clock
        self.config = config or ProfilerConfig()
        self.events = Emitter()

        self.store = ProfilerStore(self.config, clock)
        self.analyzer = ComponentAttributionAnalyzer(
            self.config, clock, lock=self._lock,
            on_pass=self._on_attribution_pass, on_unmount=self._on_unmount)
        self.detector = LeakPatternDetector(
            self.config, patterns=self.store.leak_patterns, leaks=self.store.leaks, clock=clock)
        self.alerts = BudgetAlertManager(self.config, alerts=self.store.alerts, clock=clock)
        self.suggestions = SuggestionGenerator(self.config, suggestions=self.store.suggestions)

        self.heap_provider = heap_provider if heap_provider is not None else detect_heap_provider()
        self.sampler = Sampler(self.heap_provider, self._on_measurement, clock)
        self.introspection = introspection
        self._gc_trigger = gc_trigger
        self._gc_observer = GCObserver(
            memory_reader=self._read_heap_used, clock=clock,
            max_pending=self.config.history.max_gc_events) if observe_gc else None

        self._running = False
        self._started_at: Optional[float] = None
        self._apply_log_level(self.config)

    # --------- Lifecycle ---------

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self, interval_s: Optional[float] = None) -> bool:
        """
        Start sampling and install observers.

        Returns False (and does nothing) if already running or disabled.
        """
        with self._lock:
            if self._running:
                _logger.debug("Profiler already running")
                return False
            if not self.config.enabled:
                _logger.warning("Profiling is disabled by configuration")
                return False

            if interval_s is not None and interval_s != self.config.sampling_interval_s:
                self._apply_config(self.config.merge(sampling_interval_s=interval_s))

            if not self.is_supported():
                _logger.warning("Heap statistics unavailable on this host; measurements will be zero")

            if self.introspection is not None and self.config.track_components:
                self.analyzer.install(self.introspection)
            if self._gc_observer is not None:
                self._gc_observer.install()

            self.sampler.start(self.config.sampling_interval_s)
            self._running = True
            self._started_at = self._clock()
            _logger.info(f"Memory profiling started (interval {self.config.sampling_interval_s}s)")
            self.events.emit('profiling-started', self.config)
            return True

    def stop(self) -> bool:
        """Stop sampling and restore every host callback; returns False if not running."""
        with self._lock:
            if not self._running:
                return False
            self._running = False
            try:
                self.analyzer.uninstall()
                if self._gc_observer is not None:
                    self._gc_observer.uninstall()
            except Exception as e:
                _logger.error(f"Error uninstalling profiler observers: {e}")

        # Outside the lock so a tick waiting on it can finish and see the stop
        self.sampler.stop()
        _logger.info("Memory profiling stopped")
        self.events.emit('profiling-stopped')
        return True

    def reset(self) -> None:
        """Clear all collected data; configuration and running state are kept."""
        with self._lock:
            self.store.reset()
            self.analyzer.reset()
            self.detector.reset()
            self.alerts.reset()
            self.suggestions.reset()
            if self._gc_observer is not None:
                self._gc_observer.drain()
            _logger.debug("Profiler data reset")
            self.events.emit('data-reset')

    def subscribe(self, event_name: str, listener: Callable) -> Callable[[], None]:
        """Listen for a notification; returns a callable that unsubscribes."""
        if event_name not in EVENT_NAMES:
            _logger.debug(f"Subscribing to unknown event '{event_name}'")
        return self.events.on(event_name, listener)

    # --------- Configuration ---------

    def update_config(self, partial: Union[ProfilerConfig, Mapping[str, Any], None] = None,
                      **overrides) -> ProfilerConfig:
        """Merge a partial config; restarts the sampler if the interval changed."""
        with self._lock:
            old = self.config
            new = partial if isinstance(partial, ProfilerConfig) else old.merge(partial, **overrides)
            self._apply_config(new)
            running = self._running

        if running and not new.enabled:
            self.stop()
        elif running and new.sampling_interval_s != old.sampling_interval_s:
            self.sampler.stop()
            self.sampler.start(new.sampling_interval_s)
            _logger.info(f"Sampling interval changed to {new.sampling_interval_s}s")

        self.events.emit('config-changed', new)
        return new

    def _apply_config(self, config: ProfilerConfig) -> None:
        self.config = config
        self.store.apply_limits(config)
        self.analyzer.apply_config(config)
        self.detector.config = config
        self.alerts.apply_config(config)
        self.suggestions.config = config
        self._apply_log_level(config)

    @staticmethod
    def _apply_log_level(config: ProfilerConfig) -> None:
        _logger.setLevel(logging.DEBUG if config.debug_mode else logging.WARNING)

    # --------- Tick pipeline ---------

    def _read_heap_used(self) -> float:
        return float(self.heap_provider.read().get('heap_used') or 0)

    def _on_measurement(self, measurement: MemoryMeasurement) -> None:
        with self._lock:
            # A tick that raced with stop() must not leave any trace
            if not self._running:
                return
            self._process_measurement(measurement)

    def sample(self) -> MemoryMeasurement:
        """Take and process one measurement now, whether or not sampling is running."""
        measurement = self.sampler.read_measurement()
        with self._lock:
            self._process_measurement(measurement)
        return measurement

    def _process_measurement(self, measurement: MemoryMeasurement) -> None:
        if not self.store.add_measurement(measurement):
            return
        now = measurement.timestamp
        self.events.emit('memory-measurement', measurement)

        if self._gc_observer is not None:
            for event in self._gc_observer.drain():
                self.record_gc_event(event)

        if self.config.monitor_performance:
            self._update_memory_pressure(measurement)

        for alert in self.alerts.evaluate(measurement, self.store.components, now):
            self.events.emit('alert', alert)
        for alert in self.alerts.evaluate_growth(self.store.timeline.measurements, now):
            self.events.emit('alert', alert)

        self._run_passes(now)

    def _run_passes(self, now: float) -> Dict[str, int]:
        counts = {'leaks': 0, 'patterns': 0, 'suggestions': 0}
        if self.config.detect_leaks:
            for leak, is_new in self.detector.run_due_checks(now, self.store.components):
                if is_new:
                    counts['leaks'] += 1
                    self._on_new_leak(leak, now)
            for pattern in self.detector.detect(self.analyzer.history, now):
                counts['patterns'] += 1
                self.events.emit('pattern-detected', pattern)

        if self.config.generate_suggestions:
            for suggestion in self.suggestions.generate(
                    self.store.components, self.store.hooks, self.store.leaks.values()):
                counts['suggestions'] += 1
                self.events.emit('suggestion-generated', suggestion)
        return counts

    def _on_new_leak(self, leak: MemoryLeak, now: float) -> None:
        self.events.emit('leak-detected', leak)
        alert = self.alerts.alert_for_leak(leak, now)
        if alert is not None:
            self.events.emit('alert', alert)

    def _update_memory_pressure(self, measurement: MemoryMeasurement) -> None:
        level = memory_pressure_level(measurement.utilization)
        current = self.store.performance or PerformanceMetrics()
        if self.store.performance is None or current.memory_pressure != level:
            metrics = replace(current, memory_pressure=level)
            self.store.set_performance(metrics)
            self.events.emit('performance-update', metrics)

    def _on_attribution_pass(self, result: AttributionPass) -> None:
        with self._lock:
            previous = set(self.store.components)
            self.store.set_components(result.components, result.hooks)
            for name in result.components:
                if name not in previous:
                    self.store.add_timeline_event(
                        TimelineEvent(result.timestamp, 'mount', f"{name} mounted"))
            self.events.emit('component-update', list(result.components.values()))
            if self.config.track_hooks:
                self.events.emit('hook-update', list(result.hooks))

    def _on_unmount(self, node: ComponentNode) -> None:
        with self._lock:
            now = self._clock()
            name = node.name or "Anonymous"
            self.store.add_timeline_event(TimelineEvent(now, 'unmount', f"{name} unmounted"))
            if self.config.detect_leaks:
                self.detector.schedule_unmount_check(node, name, now)

    # --------- Manual registration and host-pushed data ---------

    def analyze_tree(self, root: ComponentNode, timestamp: Optional[float] = None) -> AttributionPass:
        """Attribute a tree the host hands over directly."""
        return self.analyzer.analyze(root, timestamp)

    def unmount_component(self, node: ComponentNode) -> None:
        """Report an unmount when no introspection hook is installed."""
        self._on_unmount(node)

    def run_due_checks(self, timestamp: Optional[float] = None) -> List[MemoryLeak]:
        """Run unmount re-checks whose delay has elapsed; returns new leaks."""
        with self._lock:
            now = self._clock() if timestamp is None else timestamp
            new_leaks = []
            for leak, is_new in self.detector.run_due_checks(now, self.store.components):
                if is_new:
                    new_leaks.append(leak)
                    self._on_new_leak(leak, now)
            return new_leaks

    def run_analysis(self, timestamp: Optional[float] = None) -> Dict[str, int]:
        """Run leak detection and suggestion generation on demand."""
        with self._lock:
            return self._run_passes(self._clock() if timestamp is None else timestamp)

    def record_event(self, event_type: str, description: str,
                     memory_impact: Optional[float] = None,
                     timestamp: Optional[float] = None) -> bool:
        event = TimelineEvent(self._clock() if timestamp is None else timestamp,
                              event_type, description, memory_impact)
        with self._lock:
            return self.store.add_timeline_event(event)

    def record_performance_entries(self, entries: Iterable[Mapping[str, Any]],
                                   render_time: float = 0.0) -> Optional[PerformanceMetrics]:
        if not self.config.monitor_performance:
            return None
        with self._lock:
            metrics = process_performance_entries(
                entries, previous=self.store.performance,
                memory_pressure=self.get_memory_pressure_level(), render_time=render_time)
            if metrics is not None:
                self.store.set_performance(metrics)
                self.events.emit('performance-update', metrics)
            return metrics

    def record_gc_event(self, event: GCEvent) -> None:
        with self._lock:
            self.store.add_gc_event(event)
            self.events.emit('gc-event', event)

    def force_gc(self) -> bool:
        """Best-effort collection; returns False if no trigger is available."""
        if self._gc_trigger is None:
            _logger.warning("Forced garbage collection is not available on this host")
            return False
        try:
            self._gc_trigger()
        except Exception as e:
            _logger.warning(f"Forced garbage collection failed: {e}")
            return False
        self.events.emit('gc-forced')
        return True

    # --------- Snapshots, alerts, suggestions ---------

    def create_snapshot(self, name: Optional[str] = None) -> Snapshot:
        with self._lock:
            snapshot = self.store.create_snapshot(name, self._clock())
            self.events.emit('snapshot-created', snapshot)
            return snapshot

    def delete_snapshot(self, snapshot_id: str) -> bool:
        with self._lock:
            return self.store.delete_snapshot(snapshot_id)

    def clear_snapshots(self) -> None:
        with self._lock:
            self.store.clear_snapshots()

    def compare_snapshots(self, before_id: str, after_id: str) -> SnapshotComparison:
        with self._lock:
            try:
                before = self.store.snapshots[before_id]
                after = self.store.snapshots[after_id]
            except KeyError as e:
                raise KeyError(f"Unknown snapshot {e}") from None
        return SnapshotComparison.between(before, after)

    def add_alert(self, alert_type: str, message: str, severity: str = 'warning') -> Optional[Alert]:
        with self._lock:
            alert = self.alerts.add_alert(alert_type, message, severity)
            if alert is not None:
                self.events.emit('alert', alert)
            return alert

    def dismiss_alert(self, alert_id: str) -> bool:
        with self._lock:
            return self.alerts.dismiss_alert(alert_id)

    def clear_alerts(self) -> None:
        with self._lock:
            self.alerts.clear_alerts()

    def add_suggestion(self, suggestion: MemoryOptimizationSuggestion) -> bool:
        """Record a host-supplied suggestion unless it was dismissed; returns True when new."""
        with self._lock:
            if self.suggestions.is_dismissed(suggestion.id):
                return False
            is_new = self.store.upsert_suggestion(suggestion)
            self.events.emit('suggestion-generated', suggestion)
            return is_new

    def dismiss_suggestion(self, suggestion_id: str) -> bool:
        with self._lock:
            return self.suggestions.dismiss(suggestion_id)

    # --------- Export / import ---------

    def export_data(self) -> str:
        with self._lock:
            return json.dumps(self.store.export_document(self._clock()), indent=2, default=str)

    def import_data(self, doc: Union[str, bytes, Mapping[str, Any]]) -> ImportResult:
        """
        Merge an exported document into the current state.

        Raises ImportDataError, leaving state untouched, if the document
        cannot be parsed.
        """
        imported_configs: List[ProfilerConfig] = []
        with self._lock:
            try:
                result = self.store.import_document(
                    doc, apply_config=imported_configs.append, add_alert=self._import_alert)
            except ValueError as e:
                _logger.error(f"Import failed: {e}")
                raise
            self.analyzer.restore(self.store.components.values(), self.store.hooks)

        if imported_configs:
            self.update_config(imported_configs[-1])
        self.events.emit('data-imported', result)
        return result

    def _import_alert(self, alert: Alert) -> None:
        self.alerts.add_alert(alert.type, alert.message, alert.severity, source=alert.source,
                              timestamp=alert.timestamp, alert_id=alert.id)

    # --------- Getters ---------

    def get_memory_trend(self) -> str:
        tuning = self.config.analysis
        window = self.store.timeline.measurements.tail(tuning.trend_window)
        if len(window) < 2:
            return "stable"
        assessment = classify_trend([(m.timestamp, m.heap_used) for m in window],
                                    tuning.min_slope_bytes_per_s, tuning.r_squared_floor)
        return _DIRECTION_TO_TREND[assessment.direction]

    def get_total_memory_usage(self) -> float:
        return sum(c.total_memory for c in self.store.components.values())

    def get_components_by_memory_usage(self) -> List[ComponentMemoryInfo]:
        return sorted(self.store.components.values(), key=lambda c: c.total_memory, reverse=True)

    def get_active_leak_count(self) -> int:
        return len(self.store.leaks)

    def get_budget_violations(self) -> List[BudgetViolation]:
        return self.alerts.get_budget_violations(self.store.current_memory, self.store.components)

    def get_memory_pressure_level(self) -> str:
        current = self.store.current_memory
        return memory_pressure_level(current.utilization) if current else "low"

    def get_current_memory_usage_mb(self) -> float:
        current = self.store.current_memory
        return current.heap_used_mb if current else 0.0

    def get_memory_utilization(self) -> float:
        current = self.store.current_memory
        return current.utilization if current else 0.0

    def _heap_points(self):
        return [(m.timestamp, m.heap_used) for m in self.store.timeline.measurements]

    def get_memory_growth_rate(self) -> float:
        """Heap growth in bytes per second over the trend window."""
        return growth_rate_from_points(self._heap_points()[-self.config.analysis.trend_window:])

    def get_memory_stats(self) -> Dict[str, Any]:
        return summarize_series(self._heap_points()).to_dict()

    def predict_memory_usage(self, future_s: float) -> UsagePrediction:
        return predict_usage(self._heap_points(), future_s)

    def is_supported(self) -> bool:
        try:
            return self.heap_provider.is_available()
        except Exception as e:
            _logger.debug(f"Heap provider availability check failed: {e}")
            return False

    def get_support_info(self) -> Dict[str, Any]:
        return {
            'heap_statistics': self.is_supported(),
            'heap_provider': type(self.heap_provider).__name__,
            'component_introspection': self.introspection is not None,
            'gc_observation': self._gc_observer is not None and hasattr(gc, 'callbacks'),
            'forced_gc': self._gc_trigger is not None,
            'python_version': sys.version.split()[0],
            'python_implementation': platform.python_implementation(),
            'platform': platform.system(),
        }

    def get_status(self) -> Dict[str, Any]:
        with self._lock:
            return {
                'is_profiling': self._running,
                'uptime_seconds': self._clock() - self._started_at if self._running and self._started_at else 0,
                'tick_count': self.sampler.tick_count,
                'measurements': len(self.store.timeline.measurements),
                'components': len(self.store.components),
                'active_leaks': len(self.store.leaks),
                'leak_patterns': len(self.store.leak_patterns),
                'alerts': len(self.store.alerts),
                'suggestions': len(self.store.suggestions),
                'snapshots': len(self.store.snapshots),
                'memory_trend': self.get_memory_trend(),
                'memory_pressure': self.get_memory_pressure_level(),
                'supported': self.is_supported(),
                'configuration': {
                    'sampling_interval_s': self.config.sampling_interval_s,
                    'detect_leaks': self.config.detect_leaks,
                    'budgets': len(self.config.budgets),
                    'memory_limit_mb': self.config.alert_thresholds.memory_limit_mb,
                    'debug_mode': self.config.debug_mode,
                },
            }

    def __repr__(self) -> str:
        return (f"MemoryProfilerEngine(running={self._running}, "
                f"provider={type(self.heap_provider).__name__}, "
                f"measurements={len(self.store.timeline.measurements)})")
