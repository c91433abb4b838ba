"""Cross-run generation quality metrics."""

import threading
from dataclasses import dataclass

from meal_planner.domain.plan_config import PlanConfig
from meal_planner.domain.progress import FixMethod
from meal_planner.services.autofix import FixOutcome


@dataclass(frozen=True)
class MetricsSnapshot:
    """Counters and derived rates at one point in time."""

    total_weeks_generated: int
    total_days_generated: int
    days_within_tolerance_first_pass: int
    days_out_of_range_first_pass: int
    days_fixed_by_scaling: int
    days_fixed_by_regeneration: int
    days_still_out_of_range: int
    regeneration_attempts: int
    regeneration_successes: int
    regeneration_failures: int
    average_generation_ms: float
    average_auto_fix_ms: float
    first_pass_quality_rate: float
    auto_fix_success_rate: float
    regeneration_success_rate: float


class MetricsAggregator:
    """Accumulates outcomes of finished runs; one instance per process."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._reset_counters()

    def record_day(self, outcome: FixOutcome) -> None:
        """Fold one day's repair outcome into the counters."""
        with self._lock:
            self._days += 1
            if outcome.first_pass_within:
                self._first_pass_within += 1
                return
            self._first_pass_out += 1
            self._auto_fix_ms_total += outcome.duration_ms
            self._auto_fix_count += 1
            if outcome.method in (FixMethod.REGENERATION, FixMethod.FAILED):
                self._regen_attempts += outcome.attempts
                if outcome.fixed_in_range:
                    self._regen_successes += 1
                else:
                    self._regen_failures += 1
            if not outcome.fixed_in_range:
                self._still_out += 1
            elif outcome.method == FixMethod.SCALING:
                self._fixed_by_scaling += 1
            elif outcome.method == FixMethod.REGENERATION:
                self._fixed_by_regeneration += 1

    def record_week(self, duration_ms: int) -> None:
        with self._lock:
            self._weeks += 1
            self._generation_ms_total += duration_ms
            self._generation_count += 1

    def record_generation_time(self, duration_ms: int) -> None:
        with self._lock:
            self._generation_ms_total += duration_ms
            self._generation_count += 1

    def snapshot(self) -> MetricsSnapshot:
        with self._lock:
            fixed = self._fixed_by_scaling + self._fixed_by_regeneration
            regen_outcomes = self._regen_successes + self._regen_failures
            return MetricsSnapshot(
                total_weeks_generated=self._weeks,
                total_days_generated=self._days,
                days_within_tolerance_first_pass=self._first_pass_within,
                days_out_of_range_first_pass=self._first_pass_out,
                days_fixed_by_scaling=self._fixed_by_scaling,
                days_fixed_by_regeneration=self._fixed_by_regeneration,
                days_still_out_of_range=self._still_out,
                regeneration_attempts=self._regen_attempts,
                regeneration_successes=self._regen_successes,
                regeneration_failures=self._regen_failures,
                average_generation_ms=_average(self._generation_ms_total, self._generation_count),
                average_auto_fix_ms=_average(self._auto_fix_ms_total, self._auto_fix_count),
                first_pass_quality_rate=_percent(self._first_pass_within, self._days),
                auto_fix_success_rate=_percent(fixed, self._first_pass_out),
                regeneration_success_rate=_percent(self._regen_successes, regen_outcomes),
            )

    def summary(self) -> str:
        """Return a short human-readable report."""
        snap = self.snapshot()
        return "\n".join(
            [
                f"Weeks generated: {snap.total_weeks_generated}",
                f"Days generated: {snap.total_days_generated}",
                f"First-pass quality: {snap.first_pass_quality_rate:.1f}% "
                f"({snap.days_within_tolerance_first_pass}/{snap.total_days_generated})",
                f"Auto-fix success: {snap.auto_fix_success_rate:.1f}% "
                f"(scaling {snap.days_fixed_by_scaling}, "
                f"regeneration {snap.days_fixed_by_regeneration}, "
                f"still out of range {snap.days_still_out_of_range})",
                f"Regeneration success: {snap.regeneration_success_rate:.1f}% "
                f"over {snap.regeneration_attempts} attempts",
                f"Average generation: {snap.average_generation_ms:.0f} ms, "
                f"average auto-fix: {snap.average_auto_fix_ms:.0f} ms",
            ]
        )

    def quality_violations(self, config: PlanConfig) -> list[str]:
        """Return messages for every configured quality threshold not met."""
        snap = self.snapshot()
        violations = []
        if (
            config.min_first_pass_quality_rate is not None
            and snap.total_days_generated > 0
            and snap.first_pass_quality_rate < config.min_first_pass_quality_rate
        ):
            violations.append(
                f"First-pass quality rate {snap.first_pass_quality_rate:.1f}% is below "
                f"threshold {config.min_first_pass_quality_rate:.1f}%"
            )
        if (
            config.min_auto_fix_success_rate is not None
            and snap.days_out_of_range_first_pass > 0
            and snap.auto_fix_success_rate < config.min_auto_fix_success_rate
        ):
            violations.append(
                f"Auto-fix success rate {snap.auto_fix_success_rate:.1f}% is below "
                f"threshold {config.min_auto_fix_success_rate:.1f}%"
            )
        return violations

    def reset(self) -> None:
        with self._lock:
            self._reset_counters()

    def _reset_counters(self) -> None:
        self._weeks = 0
        self._days = 0
        self._first_pass_within = 0
        self._first_pass_out = 0
        self._fixed_by_scaling = 0
        self._fixed_by_regeneration = 0
        self._still_out = 0
        self._regen_attempts = 0
        self._regen_successes = 0
        self._regen_failures = 0
        self._generation_ms_total = 0
        self._generation_count = 0
        self._auto_fix_ms_total = 0
        self._auto_fix_count = 0


def _average(total: int, count: int) -> float:
    return total / count if count else 0.0


def _percent(part: int, whole: int) -> float:
    return part / whole * 100 if whole else 0.0
