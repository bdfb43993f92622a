#=============================================================================
# File        : memscope/suggestions.py
# Project     : MemScope v1.0
# Component   : Suggestions - Optimization Suggestion Rules
# Description : Turns attribution and leak state into actionable fixes
#               • Virtualization for large many-instance components
#               • Memoization for components with large dependency arrays
#               • Cleanup for components with active leaks
#               • Lazy loading for heavy single-instance components
# Author      : MemScope Contributors
# Version     : 1.0.0
# Technology  : Python 3.8+
# Standards   : PEP 8, Type Hints
# Created     : 2026-10-18
# Modified    : 2026-10-18 (Initial creation)
# Dependencies: logging, attribution, config, report
# License     : MIT License
# Copyright   : © 2026 MemScope Contributors. Released under MIT License.
#=============================================================================

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Set

from .attribution import has_large_dependency_flag
from .config import ProfilerConfig
from .report import ComponentMemoryInfo, HookMemoryInfo, MemoryLeak, MemoryOptimizationSuggestion

_logger = logging.getLogger(__name__)

_BYTES_PER_MB = 1024 * 1024

_VIRTUALIZATION_EXAMPLE = """\
# Render only the rows in view
visible = rows[offset:offset + page_size]
for row in visible:
    render(Row(row))
"""

_CLEANUP_EXAMPLE = """\
def effect():
    handle = subscribe(on_change)
    return handle.unsubscribe
"""


class SuggestionGenerator:
    """
    Rule-based optimization suggestions keyed by ``type-component``.

    Re-evaluation upserts by id; a dismissed id is never re-added until
    ``reset``.
    """

    def __init__(self, config: Optional[ProfilerConfig] = None,
                 suggestions: Optional[Dict[str, MemoryOptimizationSuggestion]] = None) -> None:
        self.config = config or ProfilerConfig()
        self.suggestions: Dict[str, MemoryOptimizationSuggestion] = (
            suggestions if suggestions is not None else {})
        self._dismissed: Set[str] = set()

    def generate(self, components: Mapping[str, ComponentMemoryInfo],
                 hooks: Iterable[HookMemoryInfo] = (),
                 leaks: Iterable[MemoryLeak] = ()) -> List[MemoryOptimizationSuggestion]:
        """Evaluate every rule; returns suggestions that are new or changed."""
        changed = []
        for suggestion in self.evaluate(components, hooks, leaks):
            if suggestion.id in self._dismissed:
                continue
            if self.suggestions.get(suggestion.id) == suggestion:
                continue
            self.suggestions[suggestion.id] = suggestion
            changed.append(suggestion)
        if changed:
            _logger.debug(f"{len(changed)} optimization suggestion(s) generated")
        return changed

    def evaluate(self, components: Mapping[str, ComponentMemoryInfo],
                 hooks: Iterable[HookMemoryInfo] = (),
                 leaks: Iterable[MemoryLeak] = ()) -> List[MemoryOptimizationSuggestion]:
        tuning = self.config.suggestions
        large_deps = {h.component_name for h in hooks if has_large_dependency_flag(h)}
        leaks_by_component: Dict[str, List[MemoryLeak]] = {}
        for leak in leaks:
            if leak.component:
                leaks_by_component.setdefault(leak.component, []).append(leak)

        results = []
        for name, info in components.items():
            usage_mb = info.total_memory / _BYTES_PER_MB

            if (info.total_memory > tuning.virtualization_min_bytes
                    and info.instance_count > tuning.virtualization_min_instances):
                results.append(MemoryOptimizationSuggestion(
                    id=MemoryOptimizationSuggestion.make_id('virtualization', name),
                    type='virtualization',
                    component=name,
                    description=(f"{name} has {info.instance_count} instances using "
                                 f"{usage_mb:.2f}MB. Consider virtualization."),
                    impact="High memory usage reduction",
                    effort='medium',
                    projected_savings_mb=usage_mb * tuning.virtualization_savings_ratio,
                    code_example=_VIRTUALIZATION_EXAMPLE,
                ))

            if name in large_deps and info.instance_count > tuning.memoization_min_instances:
                results.append(MemoryOptimizationSuggestion(
                    id=MemoryOptimizationSuggestion.make_id('memoization', name),
                    type='memoization',
                    component=name,
                    description=(f"{name} re-creates values from large dependency arrays across "
                                 f"{info.instance_count} instances. Memoize derived values."),
                    impact="Fewer retained closures and allocations per render",
                    effort='low',
                    projected_savings_mb=usage_mb * tuning.memoization_savings_ratio,
                ))

            if name in leaks_by_component:
                component_leaks = leaks_by_component[name]
                impact_mb = sum(l.estimated_memory_impact for l in component_leaks) / _BYTES_PER_MB
                results.append(MemoryOptimizationSuggestion(
                    id=MemoryOptimizationSuggestion.make_id('cleanup', name),
                    type='cleanup',
                    component=name,
                    description=(f"{name} has {len(component_leaks)} active leak(s): "
                                 + "; ".join(sorted({l.description for l in component_leaks}))),
                    impact="Releases resources retained after unmount",
                    effort='low',
                    projected_savings_mb=impact_mb,
                    code_example=_CLEANUP_EXAMPLE,
                ))

            if info.instance_count == 1 and info.total_memory > tuning.lazy_loading_min_bytes:
                results.append(MemoryOptimizationSuggestion(
                    id=MemoryOptimizationSuggestion.make_id('lazy-loading', name),
                    type='lazy-loading',
                    component=name,
                    description=(f"{name} holds {usage_mb:.2f}MB in a single instance. "
                                 f"Load it lazily when first needed."),
                    impact="Lower baseline memory",
                    effort='medium',
                    projected_savings_mb=usage_mb * tuning.lazy_loading_savings_ratio,
                ))

        return results

    def dismiss(self, suggestion_id: str) -> bool:
        self._dismissed.add(suggestion_id)
        return self.suggestions.pop(suggestion_id, None) is not None

    def is_dismissed(self, suggestion_id: str) -> bool:
        return suggestion_id in self._dismissed

    def reset(self) -> None:
        self.suggestions.clear()
        self._dismissed.clear()
