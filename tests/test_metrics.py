"""Tests for the metrics aggregator."""

from datetime import date

from meal_planner.domain.plan_config import PlanConfig
from meal_planner.domain.progress import FixMethod
from meal_planner.services.autofix import FixOutcome
from meal_planner.services.metrics import MetricsAggregator
from tests.conftest import make_day

DAY = make_day(date(2025, 3, 3), 2000, 150, 200, 65)


def _outcome(method: FixMethod, first_pass: bool, fixed: bool, attempts: int = 0) -> FixOutcome:
    return FixOutcome(DAY, method, first_pass, fixed, attempts=attempts, duration_ms=10)


def _populated() -> MetricsAggregator:
    metrics = MetricsAggregator()
    metrics.record_day(_outcome(FixMethod.NONE, True, True))
    metrics.record_day(_outcome(FixMethod.NONE, True, True))
    metrics.record_day(_outcome(FixMethod.SCALING, False, True))
    metrics.record_day(_outcome(FixMethod.REGENERATION, False, True, attempts=1))
    metrics.record_day(_outcome(FixMethod.REGENERATION, False, False, attempts=2))
    metrics.record_week(1000)
    return metrics


def test_snapshot_counts_and_rates() -> None:
    snapshot = _populated().snapshot()

    assert snapshot.total_weeks_generated == 1
    assert snapshot.total_days_generated == 5
    assert snapshot.days_within_tolerance_first_pass == 2
    assert snapshot.days_fixed_by_scaling == 1
    assert snapshot.days_fixed_by_regeneration == 1
    assert snapshot.days_still_out_of_range == 1
    assert snapshot.regeneration_attempts == 3
    assert snapshot.first_pass_quality_rate == 40
    assert round(snapshot.auto_fix_success_rate, 1) == 66.7
    assert snapshot.regeneration_success_rate == 50
    assert snapshot.average_auto_fix_ms == 10
    assert snapshot.average_generation_ms == 1000


def test_rates_are_zero_without_data() -> None:
    snapshot = MetricsAggregator().snapshot()

    assert snapshot.first_pass_quality_rate == 0
    assert snapshot.auto_fix_success_rate == 0


def test_summary_mentions_rates() -> None:
    summary = _populated().summary()

    assert "First-pass quality: 40.0% (2/5)" in summary
    assert "still out of range 1" in summary


def test_quality_violations() -> None:
    metrics = _populated()

    violations = metrics.quality_violations(
        PlanConfig(min_first_pass_quality_rate=50, min_auto_fix_success_rate=60)
    )

    assert len(violations) == 1
    assert "First-pass quality rate 40.0%" in violations[0]
    assert metrics.quality_violations(PlanConfig()) == []


def test_reset_clears_counters() -> None:
    metrics = _populated()

    metrics.reset()

    assert metrics.snapshot().total_days_generated == 0


def test_long_running_aggregator_keeps_constant_state() -> None:
    metrics = MetricsAggregator()

    for duration_ms in range(10_000):
        metrics.record_generation_time(duration_ms)
        metrics.record_day(_outcome(FixMethod.SCALING, False, True))

    snapshot = metrics.snapshot()
    assert snapshot.average_generation_ms == 4999.5
    assert snapshot.average_auto_fix_ms == 10
    assert not any(isinstance(value, list) for value in vars(metrics).values())
