#=============================================================================
# File        : memscope/trend.py
# Project     : MemScope v1.0
# Component   : Trend - Delta Trends and Least-Squares Regression
# Description : Pure statistical helpers shared by every analysis pass
#               • Threshold-ratio delta trend (up / down / stable)
#               • Least-squares regression with coefficient of determination
#               • Growth rates, leak-shape analysis and usage prediction
#               • Summary statistics for a measurement series
# Author      : MemScope Contributors
# Version     : 1.0.0
# Technology  : Python 3.8+, statistics
# Standards   : PEP 8, Type Hints
# Created     : 2026-10-18
# Modified    : 2026-10-18 (Initial creation)
# Dependencies: dataclasses, math, statistics, typing
# License     : MIT License
# Copyright   : © 2026 MemScope Contributors. Released under MIT License.
#=============================================================================

from __future__ import annotations

import math
import statistics
from dataclasses import dataclass
from typing import Any, Dict, Literal, Sequence, Tuple

Point = Tuple[float, float]
TrendName = Literal["up", "down", "stable"]
Direction = Literal["growing", "declining", "stable"]
GrowthShape = Literal["linear", "exponential", "none"]


@dataclass(frozen=True)
class RegressionResult:
    """Least-squares fit ``y = slope * x + intercept``."""
    slope: float
    intercept: float
    r_squared: float
    n: int

    def predict(self, x: float) -> float:
        return self.slope * x + self.intercept


@dataclass(frozen=True)
class TrendAssessment:
    direction: Direction
    slope: float
    r_squared: float
    confidence: float


@dataclass(frozen=True)
class GrowthAnalysis:
    """Leak-shape analysis of a measurement series."""
    is_leak: bool
    confidence: float
    growth_rate: float  # per sample
    pattern_type: GrowthShape


@dataclass(frozen=True)
class UsagePrediction:
    predicted: float
    confidence: float
    method: Literal["linear", "exponential", "average"]


@dataclass(frozen=True)
class SeriesStats:
    current: float
    min: float
    max: float
    mean: float
    median: float
    stdev: float
    direction: Literal["increasing", "decreasing", "stable"]
    strength: float
    duration: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'current': self.current,
            'min': self.min,
            'max': self.max,
            'mean': self.mean,
            'median': self.median,
            'stdev': self.stdev,
            'trend': {'direction': self.direction, 'strength': self.strength},
            'duration': self.duration,
        }


def delta_trend(old: float, new: float, threshold_ratio: float = 0.05) -> TrendName:
    """
    Compare two values by relative change.

    A change of at least ``threshold_ratio`` of the old value is a trend; a
    zero old value is ``up`` when the new value is positive.
    """
    if old == 0:
        return "up" if new > 0 else "stable"
    change = (new - old) / abs(old)
    if change >= threshold_ratio:
        return "up"
    if change <= -threshold_ratio:
        return "down"
    return "stable"


def linear_regression(points: Sequence[Point]) -> RegressionResult:
    """
    Ordinary least squares over ``(x, y)`` points.

    Fewer than two points, or no variance in x, yields a zero slope and
    ``r_squared == 0``.
    """
    n = len(points)
    if n < 2:
        intercept = float(points[0][1]) if n else 0.0
        return RegressionResult(0.0, intercept, 0.0, n)

    xs = [float(p[0]) for p in points]
    ys = [float(p[1]) for p in points]
    x_mean = statistics.mean(xs)
    y_mean = statistics.mean(ys)

    denominator = sum((x - x_mean) ** 2 for x in xs)
    if denominator == 0:
        return RegressionResult(0.0, y_mean, 0.0, n)

    slope = sum((x - x_mean) * (y - y_mean) for x, y in zip(xs, ys)) / denominator
    intercept = y_mean - slope * x_mean

    ss_tot = sum((y - y_mean) ** 2 for y in ys)
    ss_res = sum((y - (slope * x + intercept)) ** 2 for x, y in zip(xs, ys))
    r_squared = 1.0 - ss_res / ss_tot if ss_tot > 0 else 0.0
    return RegressionResult(slope, intercept, max(0.0, min(1.0, r_squared)), n)


def growth_rate_per_second(series: Sequence[float], interval_s: float) -> float:
    """Regression slope per sample, converted to units per second."""
    if interval_s <= 0:
        return 0.0
    result = linear_regression([(i, v) for i, v in enumerate(series)])
    return result.slope / interval_s


def growth_rate_from_points(points: Sequence[Point]) -> float:
    """Regression slope of ``(timestamp, value)`` points, in units per second."""
    return linear_regression(points).slope


def classify_trend(points: Sequence[Point], min_slope: float,
                   r_squared_floor: float = 0.5) -> TrendAssessment:
    """Stable unless the fit is both steep enough and good enough."""
    result = linear_regression(points)
    direction: Direction = "stable"
    if abs(result.slope) >= min_slope and result.r_squared >= r_squared_floor:
        direction = "growing" if result.slope > 0 else "declining"
    return TrendAssessment(direction, result.slope, result.r_squared, result.r_squared)


def growth_consistency(values: Sequence[float]) -> float:
    """Fraction of consecutive steps that did not decrease."""
    if len(values) < 2:
        return 0.0
    steps = list(zip(values, values[1:]))
    return sum(1 for a, b in steps if b >= a) / len(steps)


def is_non_decreasing(values: Sequence[float]) -> bool:
    return all(b >= a for a, b in zip(values, values[1:]))


def analyze_growth(points: Sequence[Point], min_points: int = 10,
                   growth_threshold: float = 10 * 1024) -> GrowthAnalysis:
    """
    Classify the shape of a series as linear, exponential or no growth.

    Regression is over sample index, so ``growth_rate`` is per sample.
    """
    if len(points) < min_points:
        return GrowthAnalysis(False, 0.0, 0.0, "none")

    values = [float(p[1]) for p in points]
    linear = linear_regression(list(enumerate(values)))
    confidence = max(0.0, linear.r_squared)
    shape: GrowthShape = "none"

    if linear.slope > growth_threshold and linear.r_squared > 0.7:
        shape = "linear"
        confidence = linear.r_squared
    else:
        logs = [math.log(max(v, 1.0)) for v in values]
        log_fit = linear_regression(list(enumerate(logs)))
        if log_fit.slope > 0.01 and values[-1] > values[0] * 1.5:
            shape = "exponential"
            confidence = min(0.9, confidence + 0.2)

    return GrowthAnalysis(
        is_leak=linear.slope > growth_threshold and confidence > 0.6,
        confidence=confidence,
        growth_rate=linear.slope,
        pattern_type=shape,
    )


def predict_usage(points: Sequence[Point], future_s: float) -> UsagePrediction:
    """Project usage ``future_s`` seconds ahead of the newest point."""
    if len(points) < 3:
        return UsagePrediction(0.0, 0.0, "average")

    recent = list(points)[-20:]
    analysis = analyze_growth(recent)
    if analysis.is_leak and analysis.confidence > 0.7:
        rate = growth_rate_from_points(recent)
        predicted = float(points[-1][1]) + rate * future_s
        method = "exponential" if analysis.pattern_type == "exponential" else "linear"
        return UsagePrediction(max(0.0, predicted), analysis.confidence, method)

    return UsagePrediction(statistics.mean(float(p[1]) for p in recent), 0.5, "average")


def summarize_series(points: Sequence[Point]) -> SeriesStats:
    if not points:
        return SeriesStats(0.0, 0.0, 0.0, 0.0, 0.0, 0.0, "stable", 0.0, 0.0)

    values = [float(p[1]) for p in points]
    analysis = analyze_growth(points)
    direction = "stable"
    if abs(analysis.growth_rate) > 1024:
        direction = "increasing" if analysis.growth_rate > 0 else "decreasing"

    return SeriesStats(
        current=values[-1],
        min=min(values),
        max=max(values),
        mean=statistics.mean(values),
        median=statistics.median(values),
        stdev=statistics.pstdev(values),
        direction=direction,
        strength=analysis.confidence,
        duration=float(points[-1][0]) - float(points[0][0]) if len(points) > 1 else 0.0,
    )


def compare_values(before: Point, after: Point) -> Dict[str, float]:
    """Delta between two ``(timestamp, value)`` observations."""
    memory_delta = float(after[1]) - float(before[1])
    time_delta = float(after[0]) - float(before[0])
    return {
        'memory_delta': memory_delta,
        'time_delta': time_delta,
        'rate': memory_delta / time_delta if time_delta > 0 else 0.0,
        'percentage_change': (memory_delta / before[1]) * 100 if before[1] > 0 else 0.0,
    }
