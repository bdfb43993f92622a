#=============================================================================
# File        : memscope/performance.py
# Project     : MemScope v1.0
# Component   : Performance - Paint Timing and Memory Pressure Utilities
# Description : Converts host performance-timing entries into metrics
#               • First/largest contentful paint, input delay, layout shift
#               • Core Web Vitals scoring
#               • Memory pressure classification and byte formatting
# Author      : MemScope Contributors
# Version     : 1.0.0
# Technology  : Python 3.8+, Dataclasses
# Standards   : PEP 8, Type Hints
# Created     : 2026-10-18
# Modified    : 2026-10-18 (Initial creation)
# Dependencies: dataclasses, math, typing
# License     : MIT License
# Copyright   : © 2026 MemScope Contributors. Released under MIT License.
#=============================================================================

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Literal, Mapping, Optional

PressureLevel = Literal["low", "medium", "high"]
VitalScore = Literal["good", "needs-improvement", "poor"]

# Core Web Vitals thresholds (milliseconds, CLS is unitless)
CORE_WEB_VITALS_THRESHOLDS = {
    'LCP': {'good': 2500, 'needs_improvement': 4000},
    'FID': {'good': 100, 'needs_improvement': 300},
    'CLS': {'good': 0.1, 'needs_improvement': 0.25},
    'FCP': {'good': 1800, 'needs_improvement': 3000},
    'TTFB': {'good': 800, 'needs_improvement': 1800},
}

# Points per score: (good, needs-improvement, poor)
_VITAL_POINTS = {
    'LCP': (100, 60, 30),
    'FID': (100, 60, 30),
    'CLS': (100, 60, 30),
    'FCP': (100, 70, 40),
    'TTFB': (100, 70, 40),
}


@dataclass(frozen=True)
class PerformanceMetrics:
    """Latest paint/input timing metrics plus memory pressure."""
    fcp: float = 0.0
    lcp: float = 0.0
    fid: float = 0.0
    cls: float = 0.0
    ttfb: float = 0.0
    render_time: float = 0.0
    memory_pressure: PressureLevel = "low"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'fcp': self.fcp,
            'lcp': self.lcp,
            'fid': self.fid,
            'cls': self.cls,
            'ttfb': self.ttfb,
            'render_time': self.render_time,
            'memory_pressure': self.memory_pressure,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PerformanceMetrics":
        pressure = data.get('memory_pressure', 'low')
        if pressure not in ("low", "medium", "high"):
            raise ValueError(f"Unknown memory pressure '{pressure}'")
        return cls(
            fcp=float(data.get('fcp') or 0),
            lcp=float(data.get('lcp') or 0),
            fid=float(data.get('fid') or 0),
            cls=float(data.get('cls') or 0),
            ttfb=float(data.get('ttfb') or 0),
            render_time=float(data.get('render_time') or 0),
            memory_pressure=pressure,
        )

    @property
    def score(self) -> int:
        return calculate_performance_score({
            'lcp': self.lcp or None,
            'fid': self.fid or None,
            'cls': self.cls or None,
            'fcp': self.fcp or None,
            'ttfb': self.ttfb or None,
        })


def memory_pressure_level(utilization: float) -> PressureLevel:
    """Classify heap utilization (used / limit) into a pressure level."""
    if utilization > 0.8:
        return "high"
    if utilization > 0.6:
        return "medium"
    return "low"


def process_performance_entries(entries: Iterable[Mapping[str, Any]],
                                previous: Optional[PerformanceMetrics] = None,
                                memory_pressure: PressureLevel = "low",
                                render_time: float = 0.0) -> Optional[PerformanceMetrics]:
    """
    Fold host performance entries into a PerformanceMetrics value.

    Entries are mappings shaped like browser PerformanceEntry objects
    (``name``, ``entry_type``, ``start_time``, ``processing_start``,
    ``value``, plus ``request_start``/``response_start`` for navigation).
    Missing fields are treated as absent, never as errors. Returns None when
    no entry carried a recognised metric.
    """
    found: Dict[str, float] = {}
    for entry in entries:
        name = entry.get('name')
        entry_type = entry.get('entry_type')
        start = float(entry.get('start_time') or 0)

        if name == 'first-contentful-paint':
            found['fcp'] = start
        elif name == 'largest-contentful-paint' or entry_type == 'largest-contentful-paint':
            found['lcp'] = start
        elif name == 'first-input' or entry_type == 'first-input':
            found['fid'] = float(entry.get('processing_start') or start) - start

        if entry_type == 'layout-shift':
            found['cls'] = found.get('cls', 0.0) + float(entry.get('value') or 0)
        elif entry_type == 'navigation':
            request = entry.get('request_start')
            response = entry.get('response_start')
            if request is not None and response is not None:
                found['ttfb'] = float(response) - float(request)

    if not found:
        return None

    base = previous or PerformanceMetrics()
    return PerformanceMetrics(
        fcp=found.get('fcp', base.fcp),
        lcp=found.get('lcp', base.lcp),
        fid=found.get('fid', base.fid),
        cls=base.cls + found['cls'] if 'cls' in found else base.cls,
        ttfb=found.get('ttfb', base.ttfb),
        render_time=render_time,
        memory_pressure=memory_pressure,
    )


def get_core_web_vital_score(value: float, metric: str) -> VitalScore:
    thresholds = CORE_WEB_VITALS_THRESHOLDS[metric]
    if value <= thresholds['good']:
        return "good"
    if value <= thresholds['needs_improvement']:
        return "needs-improvement"
    return "poor"


def calculate_performance_score(metrics: Mapping[str, Optional[float]]) -> int:
    """Average Core Web Vitals points (0-100) over the metrics that are present."""
    scores = []
    for metric, points in _VITAL_POINTS.items():
        value = metrics.get(metric.lower())
        if value is None:
            continue
        score = get_core_web_vital_score(value, metric)
        good, needs_improvement, poor = points
        scores.append(good if score == "good" else needs_improvement if score == "needs-improvement" else poor)
    return round(sum(scores) / len(scores)) if scores else 0


def format_bytes(num_bytes: float, decimals: int = 2) -> str:
    """Format a byte count, e.g. ``format_bytes(1536) == '1.5 KB'``."""
    if num_bytes == 0:
        return "0 B"
    sizes = ['B', 'KB', 'MB', 'GB', 'TB']
    i = min(int(math.floor(math.log(abs(num_bytes), 1024))), len(sizes) - 1)
    i = max(i, 0)
    value = round(num_bytes / (1024 ** i), max(decimals, 0))
    return f"{value:g} {sizes[i]}"


def format_bytes_per_second(rate: float, decimals: int = 1) -> str:
    if rate == 0:
        return "0 B/s"
    return f"{format_bytes(rate, decimals)}/s"
