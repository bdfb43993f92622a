#=============================================================================
# File        : tests/test_attribution.py
# Project     : MemScope v1.0
# Component   : Component Attribution Test Suite
# Description : Size estimates, per-name aggregation, hook flags and the
#               commit observer's chaining and restore behaviour
# Author      : MemScope Contributors
# Version     : 1.0.0
# Created     : 2026-10-18
#=============================================================================

import sys
import threading
from pathlib import Path

import pytest

# Add memscope to path for testing
sys.path.insert(0, str(Path(__file__).parent.parent))

from memscope.attribution import (
    FLAG_EFFECT_NO_CLEANUP, FLAG_EMPTY_DEPS_EFFECT, TAG_DOM_REFERENCES, TAG_SUBSCRIPTIONS,
    TAG_TIMER_HANDLES, ComponentAttributionAnalyzer, detect_hook_patterns,
    detect_retained_objects, estimate_object_size,
)
from memscope.config import HistoryLimits, ProfilerConfig
from memscope.introspection import ComponentNode, HookRecord, IntrospectionHook


class Subscription:
    def unsubscribe(self):
        pass


def build_tree(list_props=None):
    root = ComponentNode("div", is_component=False)
    app = root.add_child(ComponentNode("App"))
    props = list_props if list_props is not None else {"items": [1, 2]}
    app.add_child(ComponentNode("List", props=props))
    app.add_child(ComponentNode("List", props=props))
    return root


@pytest.fixture
def analyzer(clock):
    return ComponentAttributionAnalyzer(ProfilerConfig(), clock=clock)


class TestSizeEstimates:

    @pytest.mark.parametrize("value,expected", [
        (None, 0),
        ("abc", 6),
        (5, 8),
        (True, 8),
        (2.5, 8),
        ({"a": 1}, 16),
        (object(), 50),
    ])
    def test_estimate(self, value, expected):
        assert estimate_object_size(value) == expected

    def test_cyclic_payload_uses_fallback(self):
        cyclic = []
        cyclic.append(cyclic)
        assert estimate_object_size(cyclic) == 100
        assert estimate_object_size(cyclic, fallback=7) == 7

    def test_unserializable_container_uses_fallback(self):
        assert estimate_object_size([object()]) == 100


class TestDetection:

    def test_retained_objects(self):
        node = ComponentNode("Widget", ref=object(), state={
            "timer": threading.Timer(60, lambda: None),
            "feed": Subscription(),
        })
        tags = detect_retained_objects(node)
        assert tags == [TAG_DOM_REFERENCES, TAG_TIMER_HANDLES, TAG_SUBSCRIPTIONS]

    def test_timer_source_text_is_detected(self):
        node = ComponentNode("Clock", state={"source": "setInterval(tick, 1000)"})
        assert TAG_TIMER_HANDLES in detect_retained_objects(node)

    def test_plain_node_retains_nothing(self):
        assert detect_retained_objects(ComponentNode("Label", state={"text": "hi"})) == []

    def test_hook_flags(self):
        effect = HookRecord("effect", deps=[], is_effect=True, has_cleanup=False)
        flags = detect_hook_patterns(effect)
        assert FLAG_EMPTY_DEPS_EFFECT in flags
        assert FLAG_EFFECT_NO_CLEANUP in flags

        memo = HookRecord("memo", deps=list(range(11)))
        assert detect_hook_patterns(memo) == ["Large dependency array (>10 items)"]

        clean = HookRecord("effect", deps=[1], is_effect=True, has_cleanup=True)
        assert detect_hook_patterns(clean) == []


class TestAnalyzer:

    def test_aggregates_by_name(self, analyzer, clock):
        result = analyzer.analyze(build_tree())

        assert set(analyzer.components) == {"App", "List"}, "host nodes are not attributed"
        info = analyzer.components["List"]
        assert info.instance_count == 2
        assert info.total_memory == 2 * 234
        assert info.average_memory_per_instance == 234
        assert info.trend == "stable"
        assert info.last_updated == clock.now
        assert result.total_for("List") == 468

    def test_trend_and_suspicious_growth(self, analyzer):
        analyzer.analyze(build_tree())
        analyzer.analyze(build_tree({"items": list(range(100))}))

        info = analyzer.components["List"]
        assert info.trend == "up"
        assert info.suspicious_growth

        analyzer.analyze(build_tree({"items": list(range(100))}))
        info = analyzer.components["List"]
        assert info.trend == "stable"
        assert not info.suspicious_growth

    def test_map_is_replaced_each_pass(self, analyzer):
        analyzer.analyze(build_tree())
        analyzer.analyze(ComponentNode("Other"))
        assert set(analyzer.components) == {"Other"}, "names absent from a pass are dropped"

    def test_hooks_collected(self, analyzer):
        root = ComponentNode("Form", hooks=[HookRecord("effect", deps=[], is_effect=True)])
        analyzer.analyze(root)
        assert len(analyzer.hooks) == 1
        assert analyzer.hooks[0].component_name == "Form"
        assert FLAG_EMPTY_DEPS_EFFECT in analyzer.hooks[0].suspicious_patterns

    def test_history_is_bounded(self, clock):
        config = ProfilerConfig(history=HistoryLimits(max_attribution_passes=3))
        analyzer = ComponentAttributionAnalyzer(config, clock=clock)
        for _ in range(5):
            clock.advance(1)
            analyzer.analyze(build_tree())
        assert len(analyzer.history) == 3
        assert analyzer.history.latest().timestamp == clock.now

    def test_track_components_disabled(self, clock):
        analyzer = ComponentAttributionAnalyzer(ProfilerConfig(track_components=False), clock=clock)
        analyzer.handle_commit(build_tree())
        assert analyzer.components == {}


class TestCommitObserver:

    def test_install_chains_and_uninstall_restores(self, analyzer):
        calls = []
        original = calls.append
        hook = IntrospectionHook(on_commit=original)
        root = build_tree()

        assert analyzer.install(hook)
        assert hook.on_commit is not original
        hook.commit(root)

        assert calls == [root], "original callback must still be invoked"
        assert "List" in analyzer.components

        assert analyzer.uninstall()
        assert hook.on_commit is original
        assert hook.on_unmount is None

    def test_analysis_errors_never_reach_host(self, analyzer, monkeypatch):
        calls = []
        hook = IntrospectionHook(on_commit=calls.append)
        analyzer.install(hook)

        def broken(root, timestamp=None):
            raise RuntimeError("analysis failed")

        monkeypatch.setattr(analyzer, "analyze", broken)
        hook.commit(build_tree())

        assert len(calls) == 1
        analyzer.uninstall()

    def test_reentrant_commit_skips_nested_analysis(self, clock):
        calls = []
        hook = IntrospectionHook(on_commit=calls.append)
        root = build_tree()
        analyzer = ComponentAttributionAnalyzer(
            ProfilerConfig(), clock=clock, on_pass=lambda result: hook.commit(root))
        analyzer.install(hook)

        hook.commit(root)

        assert len(analyzer.history) == 1, "nested commit must not run another pass"
        assert len(calls) == 2, "both commits chain to the original callback"
        analyzer.uninstall()

    def test_unmount_forwarded(self, clock):
        unmounted = []
        analyzer = ComponentAttributionAnalyzer(ProfilerConfig(), clock=clock,
                                                on_unmount=unmounted.append)
        hook = IntrospectionHook()
        analyzer.install(hook)
        node = ComponentNode("Modal")
        hook.unmount(node)
        assert unmounted == [node]
        analyzer.uninstall()

    def test_uninstall_leaves_foreign_wrapper(self, analyzer):
        hook = IntrospectionHook()
        analyzer.install(hook)
        foreign = lambda root: None
        hook.on_commit = foreign

        analyzer.uninstall()
        assert hook.on_commit is foreign
