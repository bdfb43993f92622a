#=============================================================================
# File        : memscope/config.py
# Project     : MemScope v1.0
# Component   : Configuration - Profiler Configuration Dataclass
# Description : Central configuration with validation, env overrides, and
#               tunable analysis constants.
#               • Validation & coercion for safe values
#               • Environment variable overrides for ops
#               • Partial (nested) merges for live config updates
#               • Memory budgets and alert thresholds
# Author      : MemScope Contributors
# Version     : 1.0.0
# Technology  : Python 3.8+, Dataclasses, Type Literals
# Standards   : PEP 8, Type Hints, Immutable Configuration
# Created     : 2026-10-18
# Modified    : 2026-10-18 (Initial creation)
# Dependencies: dataclasses, typing, os
# License     : MIT License
# Copyright   : © 2026 MemScope Contributors. Released under MIT License.
#=============================================================================

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace, is_dataclass
from typing import Any, Dict, Literal, Mapping, Optional, Tuple

LeakSeverityName = Literal["low", "medium", "high", "critical"]

_SEVERITIES = ("low", "medium", "high", "critical")


def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None: return default
    return v.strip().lower() in {"1", "true", "yes", "on"}

def _env_float(name: str, default: float) -> float:
    v = os.getenv(name)
    if v is None: return default
    try:
        return float(v)
    except ValueError:
        return default

def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None: return default
    try:
        return int(v)
    except ValueError:
        return default


@dataclass(frozen=True)
class MemoryBudget:
    """A memory ceiling for one component, one route, or the whole heap."""
    budget_mb: float
    warning_threshold_mb: Optional[float] = None
    component: Optional[str] = None
    route: Optional[str] = None

    def __post_init__(self):
        if self.budget_mb < 0:
            raise ValueError(f"budget_mb cannot be negative, got {self.budget_mb}")
        if self.warning_threshold_mb is not None and self.warning_threshold_mb < 0:
            raise ValueError(f"warning_threshold_mb cannot be negative, got {self.warning_threshold_mb}")

    @property
    def target(self) -> str:
        """Human-readable budget target used in alert text."""
        return self.component or self.route or "heap"

    @property
    def key(self) -> str:
        if self.component:
            return f"component:{self.component}"
        if self.route:
            return f"route:{self.route}"
        return "heap"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'budget_mb': self.budget_mb,
            'warning_threshold_mb': self.warning_threshold_mb,
            'component': self.component,
            'route': self.route,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MemoryBudget":
        return cls(
            budget_mb=float(data['budget_mb']),
            warning_threshold_mb=data.get('warning_threshold_mb'),
            component=data.get('component'),
            route=data.get('route'),
        )


@dataclass(frozen=True)
class AlertThresholds:
    """Thresholds for heap-level alerts."""
    memory_limit_mb: float = 100.0
    growth_rate_percent: float = 20.0
    leak_severity: LeakSeverityName = "high"  # lowest leak severity that raises an alert

    def __post_init__(self):
        if self.leak_severity not in _SEVERITIES:
            raise ValueError(f"Unknown leak severity '{self.leak_severity}'")


@dataclass(frozen=True)
class HistoryLimits:
    """Caps for every bounded collection the profiler keeps."""
    max_measurements: int = 1000
    max_timeline_events: int = 500
    max_gc_events: int = 100
    max_alerts: int = 50
    max_attribution_passes: int = 20
    max_pattern_samples: int = 10
    snapshot_gc_events: int = 10

    def __post_init__(self):
        for f in fields(self):
            object.__setattr__(self, f.name, max(1, int(getattr(self, f.name))))


@dataclass(frozen=True)
class AnalysisTuning:
    """Heuristic constants for attribution, trend and leak classification."""
    trend_threshold: float = 0.05
    trend_window: int = 10
    suspicious_growth_ratio: float = 1.5
    r_squared_floor: float = 0.5
    min_slope_bytes_per_s: float = 1024.0
    base_node_cost: int = 200
    fallback_size_estimate: int = 100
    large_dependency_threshold: int = 10
    growing_min_passes: int = 5
    growing_min_rate_bytes_per_s: float = 1024.0
    pattern_min_confidence: float = 0.3
    weight_consistency: float = 0.5
    weight_magnitude: float = 0.3
    weight_corroboration: float = 0.2
    unmount_check_delay_s: float = 0.1
    leak_id_bucket_s: float = 0.0  # 0 disables time bucketing of leak ids


@dataclass(frozen=True)
class SuggestionTuning:
    """Floors for the optimization suggestion rules."""
    virtualization_min_bytes: int = 1_000_000
    virtualization_min_instances: int = 100
    virtualization_savings_ratio: float = 0.8
    memoization_min_instances: int = 10
    memoization_savings_ratio: float = 0.3
    lazy_loading_min_bytes: int = 512 * 1024
    lazy_loading_savings_ratio: float = 0.5


@dataclass(frozen=True)
class ProfilerConfig:
    """
    MemScope runtime configuration.

    A single process-wide value per engine; it is never mutated in place,
    updates go through ``merge()`` and the engine swaps the new value in.
    """
    enabled: bool = True
    sampling_interval_s: float = 1.0
    track_components: bool = True
    track_hooks: bool = True
    detect_leaks: bool = True
    monitor_performance: bool = True
    generate_suggestions: bool = True
    debug_mode: bool = False

    budgets: Tuple[MemoryBudget, ...] = ()
    alert_thresholds: AlertThresholds = field(default_factory=AlertThresholds)
    history: HistoryLimits = field(default_factory=HistoryLimits)
    analysis: AnalysisTuning = field(default_factory=AnalysisTuning)
    suggestions: SuggestionTuning = field(default_factory=SuggestionTuning)

    def __post_init__(self):
        object.__setattr__(self, "sampling_interval_s", max(0.05, float(self.sampling_interval_s)))
        budgets = tuple(
            b if isinstance(b, MemoryBudget) else MemoryBudget.from_dict(b)
            for b in self.budgets
        )
        object.__setattr__(self, "budgets", budgets)

    # --------- Factory helpers ---------

    @staticmethod
    def from_env(base: Optional["ProfilerConfig"] = None) -> "ProfilerConfig":
        """
        Build config from environment variables, overlaying a base config.
        Supported envs:
          MEMSCOPE_ENABLED (0|1)
          MEMSCOPE_SAMPLING_INTERVAL_S
          MEMSCOPE_DETECT_LEAKS (0|1)
          MEMSCOPE_DEBUG (0|1)
          MEMSCOPE_MEMORY_LIMIT_MB
          MEMSCOPE_GROWTH_RATE_PERCENT
          MEMSCOPE_MAX_MEASUREMENTS
        """
        base = base or ProfilerConfig()
        return replace(
            base,
            enabled=_env_bool("MEMSCOPE_ENABLED", base.enabled),
            sampling_interval_s=_env_float("MEMSCOPE_SAMPLING_INTERVAL_S", base.sampling_interval_s),
            detect_leaks=_env_bool("MEMSCOPE_DETECT_LEAKS", base.detect_leaks),
            debug_mode=_env_bool("MEMSCOPE_DEBUG", base.debug_mode),
            alert_thresholds=replace(
                base.alert_thresholds,
                memory_limit_mb=_env_float("MEMSCOPE_MEMORY_LIMIT_MB", base.alert_thresholds.memory_limit_mb),
                growth_rate_percent=_env_float("MEMSCOPE_GROWTH_RATE_PERCENT",
                                               base.alert_thresholds.growth_rate_percent),
            ),
            history=replace(
                base.history,
                max_measurements=_env_int("MEMSCOPE_MAX_MEASUREMENTS", base.history.max_measurements),
            ),
        )

    def merge(self, partial: Optional[Mapping[str, Any]] = None, **overrides) -> "ProfilerConfig":
        """
        Return a copy with the given fields overridden (immutably).

        Nested sections accept partial dicts, e.g.
        ``config.merge({"alert_thresholds": {"memory_limit_mb": 256}})``.
        Unknown keys raise ValueError.
        """
        changes: Dict[str, Any] = dict(partial or {})
        changes.update(overrides)
        return _merge_dataclass(self, changes)

    # --------- Serialization ---------

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "budgets":
                data[f.name] = [b.to_dict() for b in value]
            elif is_dataclass(value):
                data[f.name] = {sf.name: getattr(value, sf.name) for sf in fields(value)}
            else:
                data[f.name] = value
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], base: Optional["ProfilerConfig"] = None) -> "ProfilerConfig":
        """Rebuild a config from ``to_dict()`` output; missing keys keep ``base`` values."""
        return (base or cls()).merge(data)

    def budget_for(self, component: str) -> Optional[MemoryBudget]:
        for budget in self.budgets:
            if budget.component == component:
                return budget
        return None

    # --------- Safe string repr ---------
    def __repr__(self) -> str:
        return (f"ProfilerConfig(enabled={self.enabled}, "
                f"sampling_interval_s={self.sampling_interval_s}, "
                f"detect_leaks={self.detect_leaks}, budgets={len(self.budgets)}, "
                f"memory_limit_mb={self.alert_thresholds.memory_limit_mb}, "
                f"max_measurements={self.history.max_measurements})")


def _merge_dataclass(obj: Any, changes: Mapping[str, Any]) -> Any:
    known = {f.name for f in fields(obj)}
    updates: Dict[str, Any] = {}
    for key, value in changes.items():
        if key not in known:
            raise ValueError(f"Unknown config field '{key}' for {type(obj).__name__}")
        current = getattr(obj, key)
        if key == "budgets":
            updates[key] = tuple(
                b if isinstance(b, MemoryBudget) else MemoryBudget.from_dict(b)
                for b in (value or ())
            )
        elif is_dataclass(current) and isinstance(value, Mapping):
            updates[key] = _merge_dataclass(current, value)
        else:
            updates[key] = value
    return replace(obj, **updates)
