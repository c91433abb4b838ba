"""Seven-day batch generation with locked meals and breakfast reuse."""

import logging
import threading
import time
from dataclasses import dataclass, field, replace
from datetime import date, timedelta

from meal_planner.domain.generation import GenerationRequest
from meal_planner.domain.plan_config import PlanConfig
from meal_planner.domain.plans import (
    MEAL_ORDER,
    DayPlan,
    DietaryPreferences,
    Meal,
    MealType,
    NutritionTargets,
    PlanExplanation,
    PlanProfile,
    UserContext,
    WeeklyPlan,
    order_meals,
)
from meal_planner.errors import (
    GENERATION_ERRORS,
    GenerationCancelledError,
    GenerationFailedError,
    PlanningError,
    UnknownPlanningError,
)
from meal_planner.services.autofix import AutoFixEngine, FixOutcome
from meal_planner.services.evaluator import remaining_budget
from meal_planner.services.explanations import describe_day
from meal_planner.services.generation import GenerationClient
from meal_planner.services.metrics import MetricsAggregator
from meal_planner.services.precision import PrecisionCorrector
from meal_planner.services.progress import ProgressTracker

_logger = logging.getLogger(__name__)

DAYS_IN_WEEK = 7
BREAKFAST_REUSE_DAYS = range(1, 4)


@dataclass
class _DayWork:
    """Working state of one date while the batch runs."""

    date: date
    locked: dict[MealType, Meal]
    carried: dict[MealType, Meal] = field(default_factory=dict)
    source_explanation: PlanExplanation | None = None
    generated: DayPlan | None = None

    def __post_init__(self) -> None:
        self.carried = dict(self.locked)

    @property
    def open_slots(self) -> tuple[MealType, ...]:
        return tuple(meal_type for meal_type in MEAL_ORDER if meal_type not in self.carried)

    def share_breakfast(self, breakfast: Meal) -> None:
        if MealType.BREAKFAST not in self.locked:
            self.carried[MealType.BREAKFAST] = breakfast.retagged(self.date)

    def generated_open_meals(self) -> DayPlan | None:
        if self.generated is None:
            return None
        meals = tuple(meal for meal in self.generated.meals if meal.type in self.open_slots)
        return replace(self.generated, meals=meals)


@dataclass(frozen=True)
class _WeekRequest:
    week_start: date
    targets: NutritionTargets
    profile: PlanProfile
    context: UserContext
    preferences: DietaryPreferences | None
    config: PlanConfig


@dataclass
class WeeklyOrchestrator:
    """Runs generation and repair for seven consecutive dates."""

    generation_client: GenerationClient
    auto_fix: AutoFixEngine
    metrics: MetricsAggregator
    precision: PrecisionCorrector | None = None

    async def generate_week(  # noqa: PLR0913
        self,
        *,
        week_start: date,
        targets: NutritionTargets,
        profile: PlanProfile = PlanProfile.STANDARD,
        context: UserContext = UserContext(),
        preferences: DietaryPreferences | None = None,
        config: PlanConfig | None = None,
        previous_week: WeeklyPlan | None = None,
        tracker: ProgressTracker | None = None,
        cancel_event: threading.Event | None = None,
    ) -> WeeklyPlan:
        """Generate a week; any day without a usable plan fails the whole batch.

        Gating (feasibility, rate, quota) is the caller's job and happens once
        per week, not per day.
        """
        request = _WeekRequest(
            week_start=week_start,
            targets=targets,
            profile=profile,
            context=context,
            preferences=preferences,
            config=config or PlanConfig(),
        )
        tracker = tracker or ProgressTracker(total_days=DAYS_IN_WEEK)
        started = time.perf_counter()
        try:
            plan, outcomes = await self._run(request, previous_week, tracker, cancel_event)
        except PlanningError as exc:
            tracker.fail(exc.message)
            raise
        except Exception as exc:
            tracker.fail(str(exc) or exc.__class__.__name__)
            raise UnknownPlanningError(
                "Weekly generation failed unexpectedly.", original_error=repr(exc)
            ) from exc

        for outcome in outcomes:
            self.metrics.record_day(outcome)
        self.metrics.record_week(int((time.perf_counter() - started) * 1000))
        for violation in self.metrics.quality_violations(request.config):
            _logger.warning("Quality threshold not met: %s", violation)
        tracker.complete()
        return plan

    async def _run(
        self,
        request: _WeekRequest,
        previous_week: WeeklyPlan | None,
        tracker: ProgressTracker,
        cancel_event: threading.Event | None,
    ) -> tuple[WeeklyPlan, list[FixOutcome]]:
        works = [
            _prepare_day(request.week_start + timedelta(days=index), index, previous_week)
            for index in range(DAYS_IN_WEEK)
        ]
        reuse_breakfast = MealType.BREAKFAST not in works[0].locked
        shared_breakfast: Meal | None = None

        tracker.start_generating_days()
        for index, work in enumerate(works):
            _check_cancelled(cancel_event)
            if index in BREAKFAST_REUSE_DAYS and shared_breakfast is not None:
                work.share_breakfast(shared_breakfast)
            if work.open_slots:
                try:
                    work.generated = await self.generation_client.generate_day(
                        self._day_request(request, work)
                    )
                except GENERATION_ERRORS as exc:
                    _logger.warning("First generation for %s failed: %s", work.date, exc)
            if index == 0 and reuse_breakfast and work.generated is not None:
                shared_breakfast = work.generated.meal(MealType.BREAKFAST)
            tracker.increment_days_generated()

        tracker.start_auto_fixing()
        days: list[DayPlan] = []
        outcomes: list[FixOutcome] = []
        for index, work in enumerate(works):
            _check_cancelled(cancel_event)
            if index in BREAKFAST_REUSE_DAYS and shared_breakfast is not None:
                work.share_breakfast(shared_breakfast)
            if not work.open_slots:
                days.append(_compose(work, None, request))
                continue

            day_request = self._day_request(request, work)
            generated = work.generated_open_meals()
            if generated is None or generated.meal_types() != work.open_slots:
                outcome = await self.auto_fix.recover(day_request, request.config)
            else:
                outcome = await self.auto_fix.fix(generated, day_request, request.config)
            _track(tracker, work.date, outcome)
            outcomes.append(outcome)

            if index == 0 and reuse_breakfast:
                shared_breakfast = outcome.day.meal(MealType.BREAKFAST)
            days.append(_compose(work, outcome.day, request))

        tracker.start_validating()
        if request.config.enable_precision_mode and self.precision is not None:
            days = [await self._correct(day, request) for day in days]
        for day in days:
            _validate_structure(day)
        return WeeklyPlan(week_start_date=request.week_start, days=tuple(days)), outcomes

    async def _correct(self, day: DayPlan, request: _WeekRequest) -> DayPlan:
        corrected = await self.precision.correct_day(day)
        if corrected == day:
            return day
        details = day.explanation.details if day.explanation else ""
        return replace(
            corrected,
            explanation=describe_day(corrected, request.targets, request.profile, details),
        )

    def _day_request(self, request: _WeekRequest, work: _DayWork) -> GenerationRequest:
        carried = list(work.carried.values())
        return GenerationRequest(
            date=work.date,
            targets=remaining_budget(request.targets, carried) if carried else request.targets,
            meal_types=work.open_slots,
            profile=request.profile,
            context=request.context,
            preferences=request.preferences,
        )


def _prepare_day(day: date, index: int, previous_week: WeeklyPlan | None) -> _DayWork:
    if previous_week is None or index >= len(previous_week.days):
        return _DayWork(date=day, locked={})
    source = previous_week.days[index]
    locked = {meal.type: meal.retagged(day) for meal in source.meals if meal.locked}
    explanation = source.explanation if len(locked) == len(MEAL_ORDER) else None
    return _DayWork(date=day, locked=locked, source_explanation=explanation)


def _compose(work: _DayWork, fixed: DayPlan | None, request: _WeekRequest) -> DayPlan:
    meals = list(work.carried.values())
    details = ""
    if fixed is not None:
        meals.extend(fixed.meals)
        details = fixed.explanation.summary if fixed.explanation else ""
    day = DayPlan(date=work.date, meals=order_meals(meals))
    if fixed is None and work.source_explanation is not None:
        return replace(day, explanation=work.source_explanation)
    return replace(
        day, explanation=describe_day(day, request.targets, request.profile, details)
    )


def _track(tracker: ProgressTracker, day: date, outcome: FixOutcome) -> None:
    if outcome.first_pass_within:
        tracker.record_day_within_tolerance(day)
    else:
        tracker.record_auto_fix_result(
            day, outcome.method, outcome.fixed_in_range, outcome.attempts or None
        )


def _check_cancelled(cancel_event: threading.Event | None) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise GenerationCancelledError("Weekly generation was cancelled.")


def _validate_structure(day: DayPlan) -> None:
    if day.meal_types() != MEAL_ORDER:
        raise GenerationFailedError(
            f"Day {day.date.isoformat()} does not have exactly one meal per slot."
        )
