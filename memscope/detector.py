#=============================================================================
# File        : memscope/detector.py
# Project     : MemScope v1.0
# Component   : Leak Pattern Detector - Growth and Unmount Leak Classification
# Description : Classifies suspicious growth into leak patterns and records
#               discrete leaks that survive component unmount
#               • Monotonic growth detection over attribution pass history
#               • Hook flag and retained-object heuristics
#               • Weighted confidence scoring with corroboration
#               • Deferred unmount re-checks with stable leak ids
# Author      : MemScope Contributors
# Version     : 1.0.0
# Technology  : Python 3.8+, Statistical Analysis
# Standards   : PEP 8, Type Hints, Production Safety
# Created     : 2026-10-18
# Modified    : 2026-10-18 (Initial creation)
# Dependencies: logging, time, attribution, config, report, trend
# License     : MIT License
# Copyright   : © 2026 MemScope Contributors. Released under MIT License.
#=============================================================================

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .attribution import (
    AttributionPass, FLAG_EFFECT_NO_CLEANUP, FLAG_EMPTY_DEPS_EFFECT,
    TAG_DOM_REFERENCES, TAG_SUBSCRIPTIONS, TAG_TIMER_HANDLES,
    detect_hook_patterns, detect_retained_objects, has_large_dependency_flag,
)
from .config import ProfilerConfig
from .introspection import ComponentNode
from .report import (
    ComponentMemoryInfo, MemoryLeak, MemoryLeakPattern, PatternSample,
    SeverityLevel, stable_id,
)
from .trend import growth_consistency, growth_rate_from_points, linear_regression

_logger = logging.getLogger(__name__)

# Unmount leak kinds: leak type, description, recommendation
_UNMOUNT_LEAKS = {
    'subscription': ("subscription",
                     "Subscriptions not unsubscribed after unmount",
                     "Return an unsubscribe function from the effect cleanup"),
    'event-listener': ("event-listener",
                       "Event listeners still attached after unmount",
                       "Remove event listeners in the effect cleanup"),
    'timer': ("timer",
              "Timers not cleared after unmount",
              "Clear intervals and timeouts in the effect cleanup"),
    'dom-reference': ("dom-reference",
                      "DOM references retained after unmount",
                      "Release element refs when the component unmounts"),
    'closure-retention': ("closure-retention",
                          "Closures retaining large dependency arrays after unmount",
                          "Split large dependency arrays or memoize the captured values"),
}


@dataclass
class _PendingCheck:
    due: float
    node: ComponentNode
    component: str


class LeakPatternDetector:
    """
    Leak pattern classification over the attribution history.

    ``patterns`` and ``leaks`` may be shared with the store so that both see
    the same active sets; they are only ever mutated in place.
    """

    def __init__(self, config: Optional[ProfilerConfig] = None,
                 patterns: Optional[Dict[str, MemoryLeakPattern]] = None,
                 leaks: Optional[Dict[str, MemoryLeak]] = None,
                 clock=time.time) -> None:
        self.config = config or ProfilerConfig()
        self.patterns: Dict[str, MemoryLeakPattern] = patterns if patterns is not None else {}
        self.leaks: Dict[str, MemoryLeak] = leaks if leaks is not None else {}
        self._clock = clock
        self._pending: List[_PendingCheck] = []

    # --------- Pattern detection ---------

    def detect(self, history: Sequence[AttributionPass],
               timestamp: Optional[float] = None) -> List[MemoryLeakPattern]:
        """
        Run every heuristic against the pass history.

        Returns the patterns that were created or updated by this run. A
        pattern already sampled from the latest pass is left untouched.
        """
        if not history:
            return []
        now = self._clock() if timestamp is None else timestamp
        tuning = self.config.analysis
        passes = list(history)
        latest = passes[-1]
        largest = max((c.total_memory for c in latest.components.values()), default=0.0)

        best: Dict[Tuple[str, ...], Tuple[str, float, float]] = {}
        for name, info in latest.components.items():
            series = [(p.timestamp, p.components[name].total_memory)
                      for p in passes if name in p.components]
            heuristics, agreeing = self._heuristics_for(name, info, latest, series)
            if not heuristics:
                continue

            magnitude = info.total_memory / largest if largest > 0 else 0.0
            corroboration = min(1.0, (agreeing - 1) * 0.5)
            for pattern, (consistency, rate) in heuristics.items():
                confidence = (tuning.weight_consistency * consistency
                              + tuning.weight_magnitude * magnitude
                              + tuning.weight_corroboration * corroboration)
                confidence = max(0.0, min(1.0, confidence))
                if confidence < tuning.pattern_min_confidence:
                    continue
                key = (name,)
                if key not in best or confidence > best[key][1]:
                    best[key] = (pattern, confidence, rate)

        changed: List[MemoryLeakPattern] = []
        for components, (pattern, confidence, rate) in best.items():
            existing = self.patterns.get(MemoryLeakPattern.make_id(pattern, components))
            if (existing is not None and existing.samples
                    and existing.samples[-1].timestamp >= latest.timestamp):
                continue
            total = sum(latest.components[c].total_memory for c in components)
            count = sum(latest.components[c].instance_count for c in components)
            sample = PatternSample(latest.timestamp, total, count)
            changed.append(self._upsert_pattern(pattern, components, confidence, rate, sample, now))
        return changed

    def _heuristics_for(self, name: str, info: ComponentMemoryInfo,
                        latest: AttributionPass,
                        series: List[Tuple[float, float]]) -> Tuple[Dict[str, Tuple[float, float]], int]:
        """Map of pattern -> (consistency, growth rate), plus the number of agreeing heuristics."""
        tuning = self.config.analysis
        values = [v for _, v in series]
        rate = growth_rate_from_points(series) if len(series) >= 2 else 0.0
        consistency = growth_consistency(values)
        found: Dict[str, Tuple[float, float]] = {}

        run = _trailing_non_decreasing(series)
        if len(run) >= tuning.growing_min_passes:
            run_rate = growth_rate_from_points(run)
            if run_rate >= tuning.growing_min_rate_bytes_per_s:
                found['growing-array'] = (linear_regression(run).r_squared, run_rate)

        if TAG_TIMER_HANDLES in info.retained_objects:
            found['timers'] = (consistency, rate)
        if TAG_DOM_REFERENCES in info.retained_objects:
            found['dom-refs'] = (consistency, rate)

        hooks = [h for h in latest.hooks if h.component_name == name]
        if any(has_large_dependency_flag(h) for h in hooks):
            found['closures'] = (consistency, rate)
        if any(FLAG_EFFECT_NO_CLEANUP in h.suspicious_patterns
               or FLAG_EMPTY_DEPS_EFFECT in h.suspicious_patterns for h in hooks):
            found['event-listeners'] = (consistency, rate)

        # Confirmed unmount leaks corroborate but are not a pattern of their own
        corroborating = len(found)
        if found and any(leak.component == name for leak in self.leaks.values()):
            corroborating += 1
        return found, corroborating

    def _upsert_pattern(self, pattern: str, components: Tuple[str, ...], confidence: float,
                        rate: float, sample: PatternSample, now: float) -> MemoryLeakPattern:
        pattern_id = MemoryLeakPattern.make_id(pattern, components)
        existing = self.patterns.get(pattern_id)
        limit = self.config.history.max_pattern_samples
        if existing is not None:
            samples = (existing.samples + (sample,))[-limit:]
            detected_at = existing.detected_at
        else:
            samples = (sample,)
            detected_at = now
            _logger.info(f"Leak pattern '{pattern}' detected in {', '.join(components)} "
                         f"(confidence {confidence:.2f})")
        record = MemoryLeakPattern(
            id=pattern_id,
            pattern=pattern,
            confidence=confidence,
            affected_components=tuple(sorted(components)),
            memory_growth_rate=rate,
            detected_at=detected_at,
            samples=samples,
            last_seen=now,
        )
        self.patterns[pattern_id] = record
        return record

    # --------- Unmount re-checks ---------

    def schedule_unmount_check(self, node: ComponentNode, component: Optional[str] = None,
                               timestamp: Optional[float] = None) -> float:
        """Queue a re-check of an unmounted node; returns when it falls due."""
        now = self._clock() if timestamp is None else timestamp
        due = now + self.config.analysis.unmount_check_delay_s
        self._pending.append(_PendingCheck(due, node, component or node.name or "Anonymous"))
        return due

    @property
    def pending_checks(self) -> int:
        return len(self._pending)

    def run_due_checks(self, timestamp: Optional[float] = None,
                       components: Optional[Mapping[str, ComponentMemoryInfo]] = None,
                       ) -> List[Tuple[MemoryLeak, bool]]:
        """
        Re-inspect unmounted nodes whose delay has elapsed.

        Returns ``(leak, is_new)`` for each leak upserted by this run.
        """
        now = self._clock() if timestamp is None else timestamp
        due = [c for c in self._pending if c.due <= now]
        if not due:
            return []
        self._pending = [c for c in self._pending if c.due > now]

        results: List[Tuple[MemoryLeak, bool]] = []
        for check in due:
            try:
                for kind in self._surviving_resources(check.node):
                    results.append(self._upsert_leak(kind, check.component, now, components))
            except Exception as e:
                _logger.debug(f"Unmount check failed for {check.component}: {e}")
        return results

    def _surviving_resources(self, node: ComponentNode) -> List[str]:
        threshold = self.config.analysis.large_dependency_threshold
        kinds: Dict[str, None] = {}
        for hook in node.hooks:
            flags = detect_hook_patterns(hook, threshold)
            if FLAG_EMPTY_DEPS_EFFECT in flags:
                kinds['event-listener'] = None
            if FLAG_EFFECT_NO_CLEANUP in flags:
                kinds['subscription'] = None
            if any(f.startswith("Large dependency array") for f in flags):
                kinds['closure-retention'] = None
        for tag in detect_retained_objects(node):
            if tag == TAG_TIMER_HANDLES:
                kinds['timer'] = None
            elif tag == TAG_DOM_REFERENCES:
                kinds['dom-reference'] = None
            elif tag == TAG_SUBSCRIPTIONS:
                kinds['subscription'] = None
        return list(kinds)

    def leak_id(self, component: str, description: str, timestamp: float) -> str:
        bucket_s = self.config.analysis.leak_id_bucket_s
        bucket = int(timestamp // bucket_s) if bucket_s > 0 else ""
        return f"leak-{stable_id(component, description, bucket)}"

    def _upsert_leak(self, kind: str, component: str, now: float,
                     components: Optional[Mapping[str, ComponentMemoryInfo]]) -> Tuple[MemoryLeak, bool]:
        leak_type, description, recommendation = _UNMOUNT_LEAKS[kind]
        info = components.get(component) if components else None
        impact = info.average_memory_per_instance if info else float(self.config.analysis.base_node_cost)

        leak_id = self.leak_id(component, description, now)
        existing = self.leaks.get(leak_id)
        leak = MemoryLeak(
            id=leak_id,
            type=leak_type,
            component=component,
            description=description,
            severity=SeverityLevel.from_impact(impact).value,
            detected_at=existing.detected_at if existing else now,
            estimated_memory_impact=impact,
            recommendation=recommendation,
            auto_fix_available=False,
        )
        self.leaks[leak_id] = leak
        if existing is None:
            _logger.info(f"Memory leak detected in {component}: {description}")
        return leak, existing is None

    def reset(self) -> None:
        self.patterns.clear()
        self.leaks.clear()
        self._pending.clear()


def _trailing_non_decreasing(series: List[Tuple[float, float]]) -> List[Tuple[float, float]]:
    """Longest run at the end of ``series`` whose values never decrease."""
    if not series:
        return []
    start = len(series) - 1
    while start > 0 and series[start - 1][1] <= series[start][1]:
        start -= 1
    return series[start:]
