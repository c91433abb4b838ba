"""Live progress of a weekly generation batch."""

import threading
from collections.abc import Callable
from datetime import UTC, date, datetime

from meal_planner.domain.progress import (
    PHASE_ORDER,
    TERMINAL_PHASES,
    DayFixResult,
    FixMethod,
    GenerationPhase,
    ProgressSnapshot,
)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class ProgressTracker:
    """Monotonic phase machine plus per-day repair outcomes.

    Writes come from the orchestrator task; snapshots may be taken from any
    thread at any time.
    """

    def __init__(self, total_days: int = 7, clock: Callable[[], datetime] = _utc_now) -> None:
        self.total_days = total_days
        self._clock = clock
        self._lock = threading.Lock()
        self._phase = GenerationPhase.INITIALIZING
        self._days_generated = 0
        self._days_auto_fixed = 0
        self._results: list[DayFixResult] = []
        self._started_at = clock()
        self._ended_at: datetime | None = None
        self._error: str | None = None

    @property
    def phase(self) -> GenerationPhase:
        with self._lock:
            return self._phase

    def start_generating_days(self) -> None:
        self._advance(GenerationPhase.GENERATING_DAYS)

    def start_auto_fixing(self) -> None:
        self._advance(GenerationPhase.AUTO_FIXING)

    def start_validating(self) -> None:
        self._advance(GenerationPhase.VALIDATING)

    def complete(self) -> None:
        self._advance(GenerationPhase.COMPLETE)

    def fail(self, message: str) -> None:
        """Move to the error phase from any non-terminal phase."""
        with self._lock:
            if self._phase in TERMINAL_PHASES:
                raise ValueError(f"Cannot fail a batch already in phase {self._phase.value}")
            self._phase = GenerationPhase.ERROR
            self._error = message
            self._ended_at = self._clock()

    def increment_days_generated(self) -> None:
        with self._lock:
            self._days_generated += 1

    def record_day_within_tolerance(self, day: date) -> None:
        """Record a day that needed no repair."""
        self._record(
            DayFixResult(
                date=day,
                method=FixMethod.NONE,
                original_out_of_range=False,
                fixed_in_range=True,
            )
        )

    def record_auto_fix_result(
        self,
        day: date,
        method: FixMethod,
        fixed_in_range: bool,
        attempt_count: int | None = None,
    ) -> None:
        """Record a day that was out of range on the first pass."""
        self._record(
            DayFixResult(
                date=day,
                method=method,
                original_out_of_range=True,
                fixed_in_range=fixed_in_range,
                attempt_count=attempt_count,
            )
        )

    def snapshot(self) -> ProgressSnapshot:
        """Return a consistent copy of the current state."""
        with self._lock:
            results = tuple(self._results)
            counts = _count(results)
            return ProgressSnapshot(
                phase=self._phase,
                days_generated=self._days_generated,
                days_auto_fixed=self._days_auto_fixed,
                total_days=self.total_days,
                days_within_tolerance_first_pass=counts["first_pass"],
                days_fixed_by_scaling=counts["scaling"],
                days_fixed_by_regeneration=counts["regeneration"],
                days_still_out_of_range=counts["out_of_range"],
                auto_fix_results=results,
                started_at=self._started_at,
                ended_at=self._ended_at,
                error=self._error,
                quality_summary=(
                    f"{counts['first_pass']} perfect on first pass, "
                    f"{counts['scaling']} scaled, {counts['regeneration']} regenerated, "
                    f"{counts['out_of_range']} still out-of-range"
                ),
            )

    def _record(self, result: DayFixResult) -> None:
        with self._lock:
            self._results.append(result)
            if result.original_out_of_range:
                self._days_auto_fixed += 1

    def _advance(self, target: GenerationPhase) -> None:
        with self._lock:
            if self._phase in TERMINAL_PHASES:
                raise ValueError(
                    f"Cannot move to {target.value} from terminal phase {self._phase.value}"
                )
            if PHASE_ORDER.index(target) <= PHASE_ORDER.index(self._phase):
                raise ValueError(f"Cannot move from {self._phase.value} back to {target.value}")
            self._phase = target
            if target == GenerationPhase.COMPLETE:
                self._ended_at = self._clock()


def _count(results: tuple[DayFixResult, ...]) -> dict[str, int]:
    counts = {"first_pass": 0, "scaling": 0, "regeneration": 0, "out_of_range": 0}
    for result in results:
        if not result.original_out_of_range:
            counts["first_pass"] += 1
        elif not result.fixed_in_range:
            counts["out_of_range"] += 1
        elif result.method == FixMethod.SCALING:
            counts["scaling"] += 1
        elif result.method == FixMethod.REGENERATION:
            counts["regeneration"] += 1
    return counts
