#=============================================================================
# File        : memscope/report.py
# Project     : MemScope v1.0
# Component   : Report - Derived Record Data Structures
# Description : Immutable records produced by the analysis passes
#               • Component and hook attribution records
#               • Leak records and confidence-scored leak patterns
#               • Optimization suggestions, alerts and budget violations
#               • Frozen snapshots and dict serialization
# Author      : MemScope Contributors
# Version     : 1.0.0
# Technology  : Python 3.8+, Dataclasses, Enum
# Standards   : PEP 8, Type Hints, Immutable Data Structures
# Created     : 2026-10-18
# Modified    : 2026-10-18 (Initial creation)
# Dependencies: dataclasses, enum, hashlib, typing, timeline, performance, config
# License     : MIT License
# Copyright   : © 2026 MemScope Contributors. Released under MIT License.
#=============================================================================

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple

from .config import MemoryBudget
from .performance import PerformanceMetrics
from .timeline import GCEvent, MemoryMeasurement

TrendName = Literal["up", "down", "stable"]
LeakType = Literal["event-listener", "timer", "closure-retention", "dom-reference", "subscription"]
PatternType = Literal["growing-array", "event-listeners", "timers", "closures", "dom-refs"]
SuggestionType = Literal["virtualization", "memoization", "cleanup", "lazy-loading"]
EffortLevel = Literal["low", "medium", "high"]
AlertType = Literal["budget-exceeded", "leak-detected", "performance-degraded", "memory-limit"]
AlertSeverity = Literal["info", "warning", "error"]

LEAK_TYPES = ("event-listener", "timer", "closure-retention", "dom-reference", "subscription")
PATTERN_TYPES = ("growing-array", "event-listeners", "timers", "closures", "dom-refs")
SUGGESTION_TYPES = ("virtualization", "memoization", "cleanup", "lazy-loading")
ALERT_TYPES = ("budget-exceeded", "leak-detected", "performance-degraded", "memory-limit")
ALERT_SEVERITIES = ("info", "warning", "error")
EFFORT_LEVELS = ("low", "medium", "high")

# Severity ranking for proper comparison
SEVERITY_RANK = {
    'low': 1,
    'medium': 2,
    'high': 3,
    'critical': 4
}


class SeverityLevel(Enum):
    """Severity levels for leak records."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return SEVERITY_RANK[self.value]

    def __lt__(self, other: "SeverityLevel") -> bool:
        return self.rank < other.rank

    def __le__(self, other: "SeverityLevel") -> bool:
        return self.rank <= other.rank

    def __gt__(self, other: "SeverityLevel") -> bool:
        return self.rank > other.rank

    def __ge__(self, other: "SeverityLevel") -> bool:
        return self.rank >= other.rank

    @classmethod
    def from_impact(cls, impact_bytes: float) -> "SeverityLevel":
        """Infer severity from an estimated memory impact."""
        if impact_bytes >= 1024 * 1024:
            return cls.CRITICAL
        elif impact_bytes >= 100 * 1024:
            return cls.HIGH
        elif impact_bytes >= 1024:
            return cls.MEDIUM
        else:
            return cls.LOW


def stable_id(*parts: Any) -> str:
    """Short deterministic id for upsert keys."""
    raw = "|".join(str(p) for p in parts)
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()[:16]


def _check(value: str, allowed: Tuple[str, ...], what: str) -> None:
    if value not in allowed:
        raise ValueError(f"Unknown {what} '{value}'")


@dataclass(frozen=True)
class ComponentMemoryInfo:
    """Per-name memory attribution for one analysis pass."""
    name: str
    instance_count: int
    total_memory: float
    average_memory_per_instance: float
    retained_objects: Tuple[str, ...] = ()
    suspicious_growth: bool = False
    trend: TrendName = "stable"
    last_updated: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'instance_count': self.instance_count,
            'total_memory': self.total_memory,
            'average_memory_per_instance': self.average_memory_per_instance,
            'retained_objects': list(self.retained_objects),
            'suspicious_growth': self.suspicious_growth,
            'trend': self.trend,
            'last_updated': self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ComponentMemoryInfo":
        trend = data.get('trend', 'stable')
        _check(trend, ("up", "down", "stable"), "trend")
        count = int(data['instance_count'])
        total = float(data['total_memory'])
        return cls(
            name=str(data['name']),
            instance_count=count,
            total_memory=total,
            average_memory_per_instance=float(data.get('average_memory_per_instance',
                                                       total / count if count else 0.0)),
            retained_objects=tuple(data.get('retained_objects') or ()),
            suspicious_growth=bool(data.get('suspicious_growth', False)),
            trend=trend,
            last_updated=float(data.get('last_updated') or 0),
        )


@dataclass(frozen=True)
class HookMemoryInfo:
    """Memory and shape information for one hook record of one component instance."""
    hook_type: str
    component_name: str
    memory_usage: float
    dependency_array_size: int = 0
    has_cleanup: bool = False
    suspicious_patterns: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'hook_type': self.hook_type,
            'component_name': self.component_name,
            'memory_usage': self.memory_usage,
            'dependency_array_size': self.dependency_array_size,
            'has_cleanup': self.has_cleanup,
            'suspicious_patterns': list(self.suspicious_patterns),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "HookMemoryInfo":
        return cls(
            hook_type=str(data['hook_type']),
            component_name=str(data['component_name']),
            memory_usage=float(data.get('memory_usage') or 0),
            dependency_array_size=int(data.get('dependency_array_size') or 0),
            has_cleanup=bool(data.get('has_cleanup', False)),
            suspicious_patterns=tuple(data.get('suspicious_patterns') or ()),
        )


@dataclass(frozen=True)
class MemoryLeak:
    """
    A discrete leak record.

    Created once per distinct id; later detections of the same id replace
    the record in place rather than adding another.
    """
    id: str
    type: LeakType
    description: str
    severity: str
    detected_at: float
    estimated_memory_impact: float
    recommendation: str
    component: Optional[str] = None
    auto_fix_available: bool = False

    def __post_init__(self):
        _check(self.type, LEAK_TYPES, "leak type")
        _check(self.severity, tuple(SEVERITY_RANK), "severity")
        if self.estimated_memory_impact < 0:
            raise ValueError(f"Impact cannot be negative, got {self.estimated_memory_impact}")

    @property
    def severity_level(self) -> SeverityLevel:
        return SeverityLevel(self.severity)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'type': self.type,
            'component': self.component,
            'description': self.description,
            'severity': self.severity,
            'detected_at': self.detected_at,
            'estimated_memory_impact': self.estimated_memory_impact,
            'recommendation': self.recommendation,
            'auto_fix_available': self.auto_fix_available,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MemoryLeak":
        return cls(
            id=str(data['id']),
            type=data['type'],
            component=data.get('component'),
            description=str(data['description']),
            severity=data.get('severity', 'medium'),
            detected_at=float(data['detected_at']),
            estimated_memory_impact=float(data.get('estimated_memory_impact') or 0),
            recommendation=str(data.get('recommendation', '')),
            auto_fix_available=bool(data.get('auto_fix_available', False)),
        )


@dataclass(frozen=True)
class PatternSample:
    """One observation of the components a leak pattern covers."""
    timestamp: float
    total_memory: float
    instance_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp,
            'total_memory': self.total_memory,
            'instance_count': self.instance_count,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PatternSample":
        return cls(
            timestamp=float(data['timestamp']),
            total_memory=float(data.get('total_memory') or 0),
            instance_count=int(data.get('instance_count') or 0),
        )


@dataclass(frozen=True)
class MemoryLeakPattern:
    """A confidence-scored classification of suspicious growth."""
    id: str
    pattern: PatternType
    confidence: float
    affected_components: Tuple[str, ...]
    memory_growth_rate: float
    detected_at: float
    samples: Tuple[PatternSample, ...] = ()
    last_seen: float = 0.0

    def __post_init__(self):
        _check(self.pattern, PATTERN_TYPES, "leak pattern")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence must be between 0.0 and 1.0, got {self.confidence}")

    @staticmethod
    def make_id(pattern: str, components) -> str:
        return f"{pattern}:{','.join(sorted(components))}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'pattern': self.pattern,
            'confidence': self.confidence,
            'affected_components': list(self.affected_components),
            'memory_growth_rate': self.memory_growth_rate,
            'detected_at': self.detected_at,
            'last_seen': self.last_seen,
            'samples': [s.to_dict() for s in self.samples],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MemoryLeakPattern":
        return cls(
            id=str(data['id']),
            pattern=data['pattern'],
            confidence=float(data['confidence']),
            affected_components=tuple(data.get('affected_components') or ()),
            memory_growth_rate=float(data.get('memory_growth_rate') or 0),
            detected_at=float(data['detected_at']),
            last_seen=float(data.get('last_seen') or data['detected_at']),
            samples=tuple(PatternSample.from_dict(s) for s in data.get('samples') or ()),
        )


@dataclass(frozen=True)
class MemoryOptimizationSuggestion:
    """An actionable optimization, keyed by a stable per-component id."""
    id: str
    type: SuggestionType
    component: str
    description: str
    impact: str
    effort: EffortLevel
    projected_savings_mb: float
    code_example: Optional[str] = None
    one_click_fix: bool = False

    def __post_init__(self):
        _check(self.type, SUGGESTION_TYPES, "suggestion type")
        _check(self.effort, EFFORT_LEVELS, "effort level")

    @staticmethod
    def make_id(suggestion_type: str, component: str) -> str:
        return f"{suggestion_type}-{component}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'type': self.type,
            'component': self.component,
            'description': self.description,
            'impact': self.impact,
            'effort': self.effort,
            'projected_savings_mb': self.projected_savings_mb,
            'code_example': self.code_example,
            'one_click_fix': self.one_click_fix,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MemoryOptimizationSuggestion":
        return cls(
            id=str(data['id']),
            type=data['type'],
            component=str(data['component']),
            description=str(data.get('description', '')),
            impact=str(data.get('impact', '')),
            effort=data.get('effort', 'medium'),
            projected_savings_mb=float(data.get('projected_savings_mb') or 0),
            code_example=data.get('code_example'),
            one_click_fix=bool(data.get('one_click_fix', False)),
        )


@dataclass(frozen=True)
class Alert:
    """A threshold alert; deduplicated by ``(type, message)``."""
    id: str
    type: AlertType
    message: str
    severity: AlertSeverity
    timestamp: float
    source: Optional[str] = None

    def __post_init__(self):
        _check(self.type, ALERT_TYPES, "alert type")
        _check(self.severity, ALERT_SEVERITIES, "alert severity")

    @property
    def dedup_key(self) -> Tuple[str, str]:
        return (self.type, self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'type': self.type,
            'message': self.message,
            'severity': self.severity,
            'timestamp': self.timestamp,
            'source': self.source,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Alert":
        return cls(
            id=str(data['id']),
            type=data['type'],
            message=str(data['message']),
            severity=data.get('severity', 'warning'),
            timestamp=float(data['timestamp']),
            source=data.get('source'),
        )


@dataclass(frozen=True)
class BudgetViolation:
    """A budget whose current usage exceeds it. Derived on demand, never stored."""
    budget: MemoryBudget
    current_usage_mb: float

    @property
    def is_exceeded(self) -> bool:
        return self.current_usage_mb > self.budget.budget_mb

    @property
    def overage_mb(self) -> float:
        return max(0.0, self.current_usage_mb - self.budget.budget_mb)


@dataclass(frozen=True)
class Snapshot:
    """
    Frozen point-in-time capture of the derived collections.

    Every field holds immutable records, so later store mutation cannot
    alter a snapshot.
    """
    id: str
    timestamp: float
    name: str
    memory: Optional[MemoryMeasurement]
    components: Tuple[ComponentMemoryInfo, ...] = ()
    hooks: Tuple[HookMemoryInfo, ...] = ()
    leaks: Tuple[MemoryLeak, ...] = ()
    performance: Optional[PerformanceMetrics] = None
    gc_events: Tuple[GCEvent, ...] = field(default=())

    @property
    def total_component_memory(self) -> float:
        return sum(c.total_memory for c in self.components)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'timestamp': self.timestamp,
            'name': self.name,
            'memory': self.memory.to_dict() if self.memory else None,
            'components': [c.to_dict() for c in self.components],
            'hooks': [h.to_dict() for h in self.hooks],
            'leaks': [l.to_dict() for l in self.leaks],
            'performance': self.performance.to_dict() if self.performance else None,
            'gc_events': [g.to_dict() for g in self.gc_events],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Snapshot":
        memory = data.get('memory')
        performance = data.get('performance')
        return cls(
            id=str(data['id']),
            timestamp=float(data['timestamp']),
            name=str(data.get('name', '')),
            memory=MemoryMeasurement.from_dict(memory) if memory else None,
            components=tuple(ComponentMemoryInfo.from_dict(c) for c in data.get('components') or ()),
            hooks=tuple(HookMemoryInfo.from_dict(h) for h in data.get('hooks') or ()),
            leaks=tuple(MemoryLeak.from_dict(l) for l in data.get('leaks') or ()),
            performance=PerformanceMetrics.from_dict(performance) if performance else None,
            gc_events=tuple(GCEvent.from_dict(g) for g in data.get('gc_events') or ()),
        )


@dataclass(frozen=True)
class SnapshotComparison:
    """Difference between two snapshots (``after`` minus ``before``)."""
    memory_delta: float
    time_delta: float
    rate: float
    percentage_change: float
    component_deltas: Dict[str, float] = field(default_factory=dict)

    @classmethod
    def between(cls, before: Snapshot, after: Snapshot) -> "SnapshotComparison":
        used_before = before.memory.heap_used if before.memory else 0.0
        used_after = after.memory.heap_used if after.memory else 0.0
        memory_delta = used_after - used_before
        time_delta = after.timestamp - before.timestamp

        totals_before = {c.name: c.total_memory for c in before.components}
        totals_after = {c.name: c.total_memory for c in after.components}
        deltas = {
            name: totals_after.get(name, 0.0) - totals_before.get(name, 0.0)
            for name in set(totals_before) | set(totals_after)
        }
        return cls(
            memory_delta=memory_delta,
            time_delta=time_delta,
            rate=memory_delta / time_delta if time_delta > 0 else 0.0,
            percentage_change=(memory_delta / used_before) * 100 if used_before > 0 else 0.0,
            component_deltas={k: v for k, v in deltas.items() if v},
        )
