#=============================================================================
# File        : tests/test_trend.py
# Project     : MemScope v1.0
# Component   : Trend Analysis Test Suite
# Description : Regression, delta trends, growth shapes and prediction
# Author      : MemScope Contributors
# Version     : 1.0.0
# Created     : 2026-10-18
#=============================================================================

import sys
from pathlib import Path

import pytest

# Add memscope to path for testing
sys.path.insert(0, str(Path(__file__).parent.parent))

from memscope.trend import (
    analyze_growth, classify_trend, compare_values, delta_trend, growth_consistency,
    growth_rate_per_second, is_non_decreasing, linear_regression, predict_usage,
    summarize_series,
)


class TestLinearRegression:

    def test_perfect_line(self):
        result = linear_regression([(0, 0), (1, 2), (2, 4), (3, 6)])
        assert result.slope == pytest.approx(2.0)
        assert result.intercept == pytest.approx(0.0)
        assert result.r_squared == pytest.approx(1.0)
        assert result.predict(4) == pytest.approx(8.0)

    def test_too_few_points(self):
        assert linear_regression([]).slope == 0.0
        single = linear_regression([(1, 5)])
        assert single.slope == 0.0 and single.r_squared == 0.0

    def test_no_x_variance(self):
        result = linear_regression([(1, 1), (1, 5), (1, 9)])
        assert result.slope == 0.0
        assert result.r_squared == 0.0

    def test_flat_series_has_zero_r_squared(self):
        result = linear_regression([(0, 3), (1, 3), (2, 3)])
        assert result.slope == 0.0
        assert result.r_squared == 0.0


class TestDeltaTrend:

    @pytest.mark.parametrize("old,new,expected", [
        (100, 110, "up"),
        (100, 104, "stable"),
        (100, 95, "down"),
        (100, 105, "up"),
        (0, 5, "up"),
        (0, 0, "stable"),
    ])
    def test_relative_change(self, old, new, expected):
        assert delta_trend(old, new) == expected

    def test_custom_threshold(self):
        assert delta_trend(100, 104, threshold_ratio=0.01) == "up"


class TestGrowth:

    def test_growth_rate_per_second(self):
        assert growth_rate_per_second([0, 10, 20, 30], 0.5) == pytest.approx(20.0)
        assert growth_rate_per_second([0, 10], 0) == 0.0

    def test_classify_trend(self):
        steep = [(i, i * 5000) for i in range(10)]
        flat = [(i, 1000 + (i % 2)) for i in range(10)]
        assert classify_trend(steep, min_slope=1024).direction == "growing"
        assert classify_trend(flat, min_slope=1024).direction == "stable"
        falling = [(i, 100000 - i * 5000) for i in range(10)]
        assert classify_trend(falling, min_slope=1024).direction == "declining"

    def test_consistency(self):
        assert growth_consistency([1, 2, 2, 1]) == pytest.approx(2 / 3)
        assert growth_consistency([5]) == 0.0
        assert is_non_decreasing([1, 1, 2, 3])
        assert not is_non_decreasing([1, 3, 2])

    def test_linear_leak_shape(self):
        points = [(i, 1_000_000 + i * 20_000) for i in range(10)]
        analysis = analyze_growth(points)
        assert analysis.pattern_type == "linear"
        assert analysis.is_leak
        assert analysis.growth_rate == pytest.approx(20_000)

    def test_short_series_is_not_analyzed(self):
        analysis = analyze_growth([(i, i * 1e6) for i in range(5)])
        assert not analysis.is_leak
        assert analysis.pattern_type == "none"


class TestPrediction:

    def test_linear_projection(self):
        points = [(float(i), 1_000_000 + 20_000 * i) for i in range(20)]
        prediction = predict_usage(points, 10)
        assert prediction.method == "linear"
        assert prediction.predicted == pytest.approx(1_380_000 + 200_000)

    def test_stable_series_uses_average(self):
        points = [(float(i), 1000 + (i % 2) * 10) for i in range(10)]
        prediction = predict_usage(points, 60)
        assert prediction.method == "average"
        assert prediction.predicted == pytest.approx(1005)

    def test_not_enough_points(self):
        assert predict_usage([(0, 1), (1, 2)], 10).predicted == 0.0


class TestSummaries:

    def test_summarize_series(self):
        stats = summarize_series([(0, 1), (1, 2), (2, 3)])
        assert stats.min == 1 and stats.max == 3
        assert stats.mean == pytest.approx(2)
        assert stats.median == 2
        assert stats.duration == 2
        assert stats.to_dict()['trend']['direction'] == "stable"

    def test_summarize_empty(self):
        assert summarize_series([]).current == 0.0

    def test_compare_values(self):
        delta = compare_values((0, 100), (10, 150))
        assert delta['memory_delta'] == 50
        assert delta['rate'] == 5
        assert delta['percentage_change'] == pytest.approx(50)
