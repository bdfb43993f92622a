#=============================================================================
# File        : tests/test_suggestions.py
# Project     : MemScope v1.0
# Component   : Optimization Suggestion Test Suite
# Description : Suggestion rules, stable ids and dismissal
# Author      : MemScope Contributors
# Version     : 1.0.0
# Created     : 2026-10-18
#=============================================================================

import sys
from pathlib import Path

import pytest

# Add memscope to path for testing
sys.path.insert(0, str(Path(__file__).parent.parent))

from memscope.config import ProfilerConfig
from memscope.report import ComponentMemoryInfo, HookMemoryInfo, MemoryLeak
from memscope.suggestions import SuggestionGenerator

MB = 1024 * 1024


def info(name, total, count):
    return ComponentMemoryInfo(name, count, float(total), float(total) / count)


@pytest.fixture
def generator():
    return SuggestionGenerator(ProfilerConfig())


class TestRules:

    def test_virtualization(self, generator):
        changed = generator.generate({"Row": info("Row", 2_000_000, 150)})

        assert [s.id for s in changed] == ["virtualization-Row"]
        suggestion = changed[0]
        assert suggestion.type == "virtualization"
        assert suggestion.projected_savings_mb == pytest.approx(2_000_000 / MB * 0.8)
        assert suggestion.code_example

    def test_memoization(self, generator):
        hooks = [HookMemoryInfo("memo", "Chart", 400, 12,
                                suspicious_patterns=("Large dependency array (>10 items)",))]
        changed = generator.generate({"Chart": info("Chart", 11_000, 11)}, hooks)
        assert [s.id for s in changed] == ["memoization-Chart"]

    def test_cleanup(self, generator):
        leak = MemoryLeak(
            id="leak-1", type="subscription", component="Feed",
            description="Subscriptions not unsubscribed after unmount",
            severity="low", detected_at=0.0, estimated_memory_impact=MB,
            recommendation="Unsubscribe",
        )
        changed = generator.generate({"Feed": info("Feed", 500, 1)}, leaks=[leak])
        assert [s.id for s in changed] == ["cleanup-Feed"]
        assert changed[0].projected_savings_mb == pytest.approx(1.0)

    def test_lazy_loading(self, generator):
        changed = generator.generate({"Editor": info("Editor", 600 * 1024, 1)})
        assert [s.id for s in changed] == ["lazy-loading-Editor"]

    def test_small_components_get_nothing(self, generator):
        assert generator.generate({"Label": info("Label", 300, 3)}) == []


class TestLifecycle:

    def test_regeneration_is_an_upsert(self, generator):
        components = {"Row": info("Row", 2_000_000, 150)}
        generator.generate(components)
        assert generator.generate(components) == [], "unchanged suggestions are not re-emitted"
        assert len(generator.suggestions) == 1

        changed = generator.generate({"Row": info("Row", 3_000_000, 200)})
        assert len(changed) == 1
        assert len(generator.suggestions) == 1

    def test_dismissed_suggestion_not_re_added(self, generator):
        components = {"Row": info("Row", 2_000_000, 150)}
        generator.generate(components)

        assert generator.dismiss("virtualization-Row")
        assert generator.generate(components) == []
        assert generator.is_dismissed("virtualization-Row")
        assert "virtualization-Row" not in generator.suggestions

        generator.reset()
        assert len(generator.generate(components)) == 1

    def test_shared_map(self):
        shared = {}
        generator = SuggestionGenerator(ProfilerConfig(), suggestions=shared)
        generator.generate({"Editor": info("Editor", 600 * 1024, 1)})
        assert "lazy-loading-Editor" in shared
