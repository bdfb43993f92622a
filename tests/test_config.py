#=============================================================================
# File        : tests/test_config.py
# Project     : MemScope v1.0
# Component   : Configuration Test Suite
# Description : Validation, env overrides, merges and serialization
# Author      : MemScope Contributors
# Version     : 1.0.0
# Created     : 2026-10-18
#=============================================================================

import sys
from pathlib import Path

import pytest

# Add memscope to path for testing
sys.path.insert(0, str(Path(__file__).parent.parent))

from memscope.config import (
    AlertThresholds, HistoryLimits, MemoryBudget, ProfilerConfig,
)


class TestProfilerConfig:
    """Defaults, normalization and immutable updates."""

    def test_defaults(self):
        config = ProfilerConfig()
        assert config.sampling_interval_s == 1.0
        assert config.history.max_measurements == 1000
        assert config.history.max_alerts == 50
        assert config.analysis.trend_threshold == 0.05
        assert config.analysis.suspicious_growth_ratio == 1.5
        assert config.analysis.r_squared_floor == 0.5
        assert config.alert_thresholds.memory_limit_mb == 100.0

    def test_sampling_interval_is_clamped(self):
        assert ProfilerConfig(sampling_interval_s=0.001).sampling_interval_s == 0.05

    def test_budget_dicts_are_normalized(self):
        config = ProfilerConfig(budgets=({'budget_mb': 10, 'component': 'List'},))
        assert isinstance(config.budgets[0], MemoryBudget)
        assert config.budget_for('List').budget_mb == 10
        assert config.budget_for('Missing') is None

    def test_nested_merge_keeps_other_fields(self):
        config = ProfilerConfig()
        merged = config.merge({'alert_thresholds': {'memory_limit_mb': 256}})

        assert merged.alert_thresholds.memory_limit_mb == 256
        assert merged.alert_thresholds.growth_rate_percent == 20.0
        assert config.alert_thresholds.memory_limit_mb == 100.0, "merge must not mutate"

    def test_merge_with_keyword_overrides(self):
        merged = ProfilerConfig().merge(sampling_interval_s=2.5, detect_leaks=False)
        assert merged.sampling_interval_s == 2.5
        assert merged.detect_leaks is False

    def test_merge_rejects_unknown_fields(self):
        with pytest.raises(ValueError):
            ProfilerConfig().merge({'no_such_field': 1})
        with pytest.raises(ValueError):
            ProfilerConfig().merge({'history': {'no_such_limit': 1}})

    def test_dict_round_trip(self):
        config = ProfilerConfig(
            sampling_interval_s=0.5,
            budgets=(MemoryBudget(budget_mb=50, warning_threshold_mb=40, component='List'),),
            alert_thresholds=AlertThresholds(memory_limit_mb=512),
        )
        assert ProfilerConfig.from_dict(config.to_dict()) == config

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv('MEMSCOPE_SAMPLING_INTERVAL_S', '0.25')
        monkeypatch.setenv('MEMSCOPE_MEMORY_LIMIT_MB', '300')
        monkeypatch.setenv('MEMSCOPE_DETECT_LEAKS', '0')
        monkeypatch.setenv('MEMSCOPE_MAX_MEASUREMENTS', 'not-a-number')

        config = ProfilerConfig.from_env()

        assert config.sampling_interval_s == 0.25
        assert config.alert_thresholds.memory_limit_mb == 300.0
        assert config.detect_leaks is False
        assert config.history.max_measurements == 1000, "invalid values fall back to defaults"

    def test_repr_is_compact(self):
        text = repr(ProfilerConfig())
        assert text.startswith("ProfilerConfig(")
        assert "sampling_interval_s=1.0" in text


class TestSections:
    """Validation of the nested configuration sections."""

    def test_history_limits_are_at_least_one(self):
        limits = HistoryLimits(max_alerts=0, max_measurements=-5)
        assert limits.max_alerts == 1
        assert limits.max_measurements == 1

    def test_unknown_leak_severity_rejected(self):
        with pytest.raises(ValueError):
            AlertThresholds(leak_severity='catastrophic')

    def test_negative_budget_rejected(self):
        with pytest.raises(ValueError):
            MemoryBudget(budget_mb=-1)

    def test_budget_targets(self):
        assert MemoryBudget(10, component='List').key == 'component:List'
        assert MemoryBudget(10, route='/home').key == 'route:/home'
        assert MemoryBudget(10).key == 'heap'
        assert MemoryBudget(10, route='/home').target == '/home'
