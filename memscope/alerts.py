#=============================================================================
# File        : memscope/alerts.py
# Project     : MemScope v1.0
# Component   : Alerts - Memory Budgets and Threshold Alerts
# Description : Evaluates budgets and thresholds after each measurement
#               • Budget violations recomputed on demand, never cached
#               • Budget, memory-limit, growth and leak alerts
#               • Single add_alert choke point with (type, message) dedup
#               • Terminal dismissals forgotten once a condition resolves
# Author      : MemScope Contributors
# Version     : 1.0.0
# Technology  : Python 3.8+
# Standards   : PEP 8, Type Hints
# Created     : 2026-10-18
# Modified    : 2026-10-18 (Initial creation)
# Dependencies: logging, time, uuid, config, report, timeline, trend
# License     : MIT License
# Copyright   : © 2026 MemScope Contributors. Released under MIT License.
#=============================================================================

from __future__ import annotations

import logging
import time
import uuid
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .config import MemoryBudget, ProfilerConfig
from .report import SEVERITY_RANK, Alert, BudgetViolation, ComponentMemoryInfo, MemoryLeak
from .timeline import BoundedHistory, MemoryMeasurement
from .trend import linear_regression

_logger = logging.getLogger(__name__)

_BYTES_PER_MB = 1024 * 1024


def usage_for_budget(budget: MemoryBudget, measurement: Optional[MemoryMeasurement],
                     components: Mapping[str, ComponentMemoryInfo]) -> float:
    """Usage in MB a budget is checked against."""
    if budget.component and budget.component in components:
        return components[budget.component].total_memory / _BYTES_PER_MB
    return measurement.heap_used_mb if measurement is not None else 0.0


class BudgetAlertManager:
    """
    Owns the alert history and the conditions that raise alerts.

    A condition raises again only when none of its alerts is still held; once
    it stops holding, any dismissal tied to it is forgotten so a later
    breach alerts again.
    """

    def __init__(self, config: Optional[ProfilerConfig] = None,
                 alerts: Optional[BoundedHistory[Alert]] = None,
                 clock=time.time) -> None:
        self.config = config or ProfilerConfig()
        self.alerts: BoundedHistory[Alert] = (
            alerts if alerts is not None else BoundedHistory(self.config.history.max_alerts))
        self._clock = clock
        self._dismissed: Dict[Tuple[str, str], Optional[str]] = {}

    def apply_config(self, config: ProfilerConfig) -> None:
        self.config = config
        self.alerts.resize(config.history.max_alerts)

    # --------- Budgets ---------

    def get_budget_violations(self, measurement: Optional[MemoryMeasurement],
                              components: Mapping[str, ComponentMemoryInfo]) -> List[BudgetViolation]:
        violations = []
        for budget in self.config.budgets:
            usage = usage_for_budget(budget, measurement, components)
            if usage > budget.budget_mb:
                violations.append(BudgetViolation(budget, usage))
        return violations

    def evaluate(self, measurement: Optional[MemoryMeasurement],
                 components: Mapping[str, ComponentMemoryInfo],
                 timestamp: Optional[float] = None) -> List[Alert]:
        """Check budgets and the heap limit; returns the alerts raised."""
        now = self._clock() if timestamp is None else timestamp
        raised: List[Alert] = []

        for budget in self.config.budgets:
            usage = usage_for_budget(budget, measurement, components)
            source = f"budget:{budget.key}"
            warning_source = f"budget-warning:{budget.key}"

            if usage > budget.budget_mb:
                self._raise(raised, source, 'budget-exceeded',
                            f"Memory budget exceeded for {budget.target}: "
                            f"{usage:.1f}MB / {budget.budget_mb:g}MB", 'warning', now)
                continue
            self.resolve(source)

            threshold = budget.warning_threshold_mb
            if threshold is not None and usage > threshold:
                self._raise(raised, warning_source, 'budget-exceeded',
                            f"Memory usage approaching budget for {budget.target}: "
                            f"{usage:.1f}MB / {budget.budget_mb:g}MB", 'info', now)
            else:
                self.resolve(warning_source)

        limit = self.config.alert_thresholds.memory_limit_mb
        heap_mb = measurement.heap_used_mb if measurement is not None else 0.0
        if heap_mb > limit:
            self._raise(raised, 'memory-limit', 'memory-limit',
                        f"Memory usage {heap_mb:.1f}MB exceeds limit of {limit:g}MB", 'error', now)
        else:
            self.resolve('memory-limit')

        return raised

    def evaluate_growth(self, measurements: Sequence[MemoryMeasurement],
                        timestamp: Optional[float] = None) -> List[Alert]:
        """Raise performance-degraded when recent growth is steep and credible."""
        now = self._clock() if timestamp is None else timestamp
        tuning = self.config.analysis
        window = list(measurements)[-tuning.trend_window:]
        raised: List[Alert] = []

        if len(window) < 2 or window[0].heap_used <= 0:
            return raised

        growth_pct = (window[-1].heap_used - window[0].heap_used) / window[0].heap_used * 100
        fit = linear_regression([(m.timestamp, m.heap_used) for m in window])
        credible = fit.slope > 0 and fit.r_squared >= tuning.r_squared_floor

        if growth_pct > self.config.alert_thresholds.growth_rate_percent and credible:
            self._raise(raised, 'growth', 'performance-degraded',
                        f"Memory grew {growth_pct:.1f}% over the last {len(window)} measurements",
                        'warning', now)
        else:
            self.resolve('growth')
        return raised

    def alert_for_leak(self, leak: MemoryLeak, timestamp: Optional[float] = None) -> Optional[Alert]:
        """Raise leak-detected for leaks at or above the configured severity."""
        floor = self.config.alert_thresholds.leak_severity
        if SEVERITY_RANK[leak.severity] < SEVERITY_RANK[floor]:
            return None
        return self.add_alert(
            'leak-detected',
            f"Memory leak detected in {leak.component}: {leak.description}",
            'error' if leak.severity == 'critical' else 'warning',
            source=f"leak:{leak.id}",
            timestamp=timestamp,
        )

    def _raise(self, raised: List[Alert], source: str, alert_type: str, message: str,
               severity: str, now: float) -> None:
        if any(a.source == source for a in self.alerts):
            return
        alert = self.add_alert(alert_type, message, severity, source=source, timestamp=now)
        if alert is not None:
            raised.append(alert)

    # --------- Alert history ---------

    def add_alert(self, alert_type: str, message: str, severity: str = 'warning',
                  source: Optional[str] = None, timestamp: Optional[float] = None,
                  alert_id: Optional[str] = None) -> Optional[Alert]:
        """
        Record an alert unless an identical one is active or was dismissed.

        Returns the new alert, or None when it was deduplicated.
        """
        key = (alert_type, message)
        if key in self._dismissed:
            return None
        if any(a.dedup_key == key for a in self.alerts):
            return None

        alert = Alert(
            id=alert_id or f"alert-{uuid.uuid4().hex[:12]}",
            type=alert_type,
            message=message,
            severity=severity,
            timestamp=self._clock() if timestamp is None else timestamp,
            source=source,
        )
        self.alerts.append(alert)
        _logger.debug(f"Alert raised: {message}")
        return alert

    def dismiss_alert(self, alert_id: str) -> bool:
        dismissed = [a for a in self.alerts if a.id == alert_id]
        if not dismissed:
            return False
        self.alerts.remove_where(lambda a: a.id == alert_id)
        for alert in dismissed:
            self._dismissed[alert.dedup_key] = alert.source
        return True

    def clear_alerts(self) -> None:
        self.alerts.clear()

    def resolve(self, source: str) -> None:
        """Mark a condition as no longer holding."""
        forgotten = [k for k, s in self._dismissed.items() if s == source]
        for key in forgotten:
            del self._dismissed[key]

    def reset(self) -> None:
        self.alerts.clear()
        self._dismissed.clear()

    @property
    def active_alerts(self) -> List[Alert]:
        return self.alerts.to_list()
