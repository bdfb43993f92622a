#=============================================================================
# File        : memscope/__init__.py
# Project     : MemScope v1.0
# Component   : Package Initialization
# Description : Memory and performance profiler for component-based hosts
#               • Periodic heap sampling with bounded timelines
#               • Per-component memory attribution and hook analysis
#               • Leak pattern detection, budgets and alerts
#               • Optimization suggestions, snapshots and export/import
# Author      : MemScope Contributors
# Version     : 1.0.0
# Technology  : Python 3.8+, Threading, psutil
# Standards   : PEP 8, Type Hints, Dataclasses
# Created     : 2026-10-18
# Modified    : 2026-10-18 (Initial creation)
# Dependencies: typing, threading, psutil
# License     : MIT License
# Copyright   : © 2026 MemScope Contributors. Released under MIT License.
#=============================================================================

"""
MemScope - Memory and Performance Profiler

Samples heap usage on a timer, attributes estimated memory to the
components of a host's rendered tree, detects leak patterns, enforces
memory budgets and produces optimization suggestions.

Quick Start:
    from memscope import MemoryProfilerEngine, ProfilerConfig, MemoryBudget

    engine = MemoryProfilerEngine(ProfilerConfig(budgets=(MemoryBudget(budget_mb=256),)))
    engine.subscribe('alert', lambda alert: print(alert.message))
    engine.start()

    # Your application code here

    print(engine.get_memory_trend(), engine.get_budget_violations())
    engine.stop()
"""

from .engine import MemoryProfilerEngine

from .config import (
    ProfilerConfig,
    MemoryBudget,
    AlertThresholds,
    HistoryLimits,
    AnalysisTuning,
    SuggestionTuning
)

from .introspection import (
    ComponentNode,
    HookRecord,
    IntrospectionHook
)

from .report import (
    Alert,
    BudgetViolation,
    ComponentMemoryInfo,
    HookMemoryInfo,
    MemoryLeak,
    MemoryLeakPattern,
    MemoryOptimizationSuggestion,
    SeverityLevel,
    Snapshot
)

from .sampling import (
    HeapProvider,
    NullHeapProvider,
    PsutilHeapProvider
)

from .store import ImportDataError, ImportResult
from .timeline import GCEvent, MemoryMeasurement, TimelineEvent
from .performance import PerformanceMetrics, format_bytes
from .events import Emitter

__version__ = "1.0.0"
__author__ = "MemScope Contributors"
__license__ = "MIT"
__description__ = "Memory and performance profiler with leak pattern detection"

__all__ = [
    # Engine
    "MemoryProfilerEngine",

    # Configuration
    "ProfilerConfig",
    "MemoryBudget",
    "AlertThresholds",
    "HistoryLimits",
    "AnalysisTuning",
    "SuggestionTuning",

    # Introspection
    "ComponentNode",
    "HookRecord",
    "IntrospectionHook",

    # Records
    "Alert",
    "BudgetViolation",
    "ComponentMemoryInfo",
    "HookMemoryInfo",
    "MemoryLeak",
    "MemoryLeakPattern",
    "MemoryOptimizationSuggestion",
    "SeverityLevel",
    "Snapshot",
    "GCEvent",
    "MemoryMeasurement",
    "TimelineEvent",
    "PerformanceMetrics",

    # Providers
    "HeapProvider",
    "NullHeapProvider",
    "PsutilHeapProvider",

    # Import/export
    "ImportDataError",
    "ImportResult",

    # Utils
    "Emitter",
    "format_bytes",

    # Metadata
    "__version__",
    "__author__",
    "__license__",
]
