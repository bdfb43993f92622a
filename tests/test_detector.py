#=============================================================================
# File        : tests/test_detector.py
# Project     : MemScope v1.0
# Component   : Leak Pattern Detector Test Suite
# Description : Pattern scoring and upserts, unmount re-checks and leak ids
# Author      : MemScope Contributors
# Version     : 1.0.0
# Created     : 2026-10-18
#=============================================================================

import sys
from pathlib import Path

import pytest

# Add memscope to path for testing
sys.path.insert(0, str(Path(__file__).parent.parent))

from memscope.attribution import TAG_TIMER_HANDLES, AttributionPass
from memscope.config import HistoryLimits, ProfilerConfig
from memscope.detector import LeakPatternDetector
from memscope.introspection import ComponentNode, HookRecord
from memscope.report import ComponentMemoryInfo


def info(name, total, count=1, retained=()):
    return ComponentMemoryInfo(
        name=name,
        instance_count=count,
        total_memory=float(total),
        average_memory_per_instance=float(total) / count,
        retained_objects=tuple(retained),
    )


def growing_history(passes=6, start=10_000, step=5_000, retained=()):
    return [
        AttributionPass(float(t), {"Cache": info("Cache", start + step * t, retained=retained)})
        for t in range(passes)
    ]


@pytest.fixture
def detector(clock):
    return LeakPatternDetector(ProfilerConfig(), clock=clock)


class TestPatternDetection:

    def test_growing_array(self, detector):
        changed = detector.detect(growing_history(), timestamp=10.0)

        assert [p.id for p in changed] == ["growing-array:Cache"]
        pattern = detector.patterns["growing-array:Cache"]
        assert pattern.confidence == pytest.approx(0.8)
        assert pattern.memory_growth_rate == pytest.approx(5_000)
        assert pattern.affected_components == ("Cache",)
        assert pattern.detected_at == 10.0

    def test_short_run_is_not_growing_array(self, detector):
        assert detector.detect(growing_history(passes=4), timestamp=10.0) == []

    def test_flat_component_is_not_flagged(self, detector):
        history = [AttributionPass(float(t), {"Label": info("Label", 500)}) for t in range(8)]
        assert detector.detect(history) == []
        assert detector.patterns == {}

    def test_repeat_detection_updates_one_record(self, detector):
        history = growing_history(passes=7)
        detector.detect(history[:6], timestamp=10.0)
        detector.detect(history, timestamp=20.0)

        assert len(detector.patterns) == 1, "the same pattern must not be duplicated"
        pattern = detector.patterns["growing-array:Cache"]
        assert len(pattern.samples) == 2
        assert pattern.detected_at == 10.0
        assert pattern.last_seen == 20.0
        assert pattern.samples[-1].total_memory == 40_000

    def test_samples_are_bounded(self, clock):
        config = ProfilerConfig(history=HistoryLimits(max_pattern_samples=2))
        detector = LeakPatternDetector(config, clock=clock)
        history = growing_history(passes=8)
        for passes in (6, 7, 8):
            detector.detect(history[:passes], timestamp=10.0 + passes)
        samples = detector.patterns["growing-array:Cache"].samples
        assert [s.timestamp for s in samples] == [6.0, 7.0]

    def test_same_pass_is_sampled_once(self, detector):
        history = growing_history()
        assert len(detector.detect(history, timestamp=10.0)) == 1
        assert detector.detect(history, timestamp=11.0) == [], "no new pass, nothing to report"

        pattern = detector.patterns["growing-array:Cache"]
        assert len(pattern.samples) == 1
        assert pattern.samples[0].timestamp == 5.0
        assert pattern.last_seen == 10.0

    def test_one_pattern_per_component(self, detector):
        detector.detect(growing_history(retained=(TAG_TIMER_HANDLES,)), timestamp=10.0)
        assert len(detector.patterns) == 1
        pattern = next(iter(detector.patterns.values()))
        assert pattern.confidence == pytest.approx(0.9), "agreeing heuristics raise confidence"

    def test_timer_tag_pattern(self, detector):
        history = [
            AttributionPass(float(t), {"Widget": info("Widget", 1000, retained=(TAG_TIMER_HANDLES,))})
            for t in range(2)
        ]
        detector.detect(history, timestamp=5.0)
        assert "timers:Widget" in detector.patterns

    def test_low_confidence_is_filtered(self, detector):
        latest = AttributionPass(0.0, {
            "Widget": info("Widget", 100, retained=(TAG_TIMER_HANDLES,)),
            "Big": info("Big", 100_000),
        })
        assert detector.detect([latest]) == []

    def test_shared_pattern_map(self, clock):
        shared = {}
        detector = LeakPatternDetector(ProfilerConfig(), patterns=shared, clock=clock)
        detector.detect(growing_history(), timestamp=1.0)
        assert "growing-array:Cache" in shared
        detector.reset()
        assert shared == {}


class TestUnmountChecks:

    def leaky_node(self):
        return ComponentNode("Feed", hooks=[HookRecord("effect", deps=[1], is_effect=True)])

    def test_check_waits_for_delay(self, detector):
        due = detector.schedule_unmount_check(self.leaky_node(), timestamp=0.0)
        assert due == pytest.approx(0.1)
        assert detector.run_due_checks(timestamp=0.05) == []
        assert detector.pending_checks == 1

    def test_surviving_subscription_becomes_leak(self, detector):
        detector.schedule_unmount_check(self.leaky_node(), timestamp=0.0)
        results = detector.run_due_checks(timestamp=0.2)

        assert len(results) == 1
        leak, is_new = results[0]
        assert is_new
        assert leak.type == "subscription"
        assert leak.component == "Feed"
        assert leak.description == "Subscriptions not unsubscribed after unmount"
        assert leak.estimated_memory_impact == 200
        assert leak.severity == "low"
        assert detector.pending_checks == 0

    def test_same_leak_is_upserted(self, detector):
        detector.schedule_unmount_check(self.leaky_node(), timestamp=0.0)
        first, _ = detector.run_due_checks(timestamp=0.2)[0]
        detector.schedule_unmount_check(self.leaky_node(), timestamp=5.0)
        second, is_new = detector.run_due_checks(timestamp=5.2)[0]

        assert not is_new
        assert second.id == first.id
        assert second.detected_at == first.detected_at
        assert len(detector.leaks) == 1

    def test_clean_node_has_no_leaks(self, detector):
        node = ComponentNode("Clean", hooks=[HookRecord("effect", deps=[1], is_effect=True, has_cleanup=True)])
        detector.schedule_unmount_check(node, timestamp=0.0)
        assert detector.run_due_checks(timestamp=1.0) == []

    def test_severity_follows_component_size(self, detector):
        detector.schedule_unmount_check(self.leaky_node(), timestamp=0.0)
        components = {"Feed": info("Feed", 200 * 1024)}
        leak, _ = detector.run_due_checks(timestamp=0.2, components=components)[0]
        assert leak.severity == "high"

    def test_leak_id_bucketing(self, clock):
        config = ProfilerConfig().merge({'analysis': {'leak_id_bucket_s': 60}})
        detector = LeakPatternDetector(config, clock=clock)
        assert detector.leak_id("Feed", "x", 10) == detector.leak_id("Feed", "x", 50)
        assert detector.leak_id("Feed", "x", 10) != detector.leak_id("Feed", "x", 70)
