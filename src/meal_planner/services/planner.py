"""Caller-facing planning operations with gating and event logging."""

import asyncio
import logging
import threading
import time
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass, replace
from datetime import date
from typing import TypeVar

from meal_planner.domain.generation import GenerationRequest
from meal_planner.domain.nutrition import MacroProfile
from meal_planner.domain.plan_config import PlanConfig
from meal_planner.domain.plans import (
    DayPlan,
    DietaryPreferences,
    NutritionTargets,
    PlanProfile,
    UserContext,
    WeeklyPlan,
)
from meal_planner.domain.progress import ProgressSnapshot
from meal_planner.domain.quota import QuotaStatus
from meal_planner.errors import (
    GENERATION_ERRORS,
    InvalidRequestError,
    PlanningError,
    RateLimitedError,
    UnknownPlanningError,
)
from meal_planner.services.autofix import AutoFixEngine
from meal_planner.services.evaluator import remaining_budget
from meal_planner.services.events import GenerationEventLog
from meal_planner.services.explanations import describe_day
from meal_planner.services.feasibility import validate_targets
from meal_planner.services.generation import GenerationClient, ParsedFood
from meal_planner.services.metrics import MetricsAggregator
from meal_planner.services.orchestrator import DAYS_IN_WEEK, WeeklyOrchestrator
from meal_planner.services.precision import PrecisionCorrector
from meal_planner.services.progress import ProgressTracker
from meal_planner.services.quota import QuotaGuard
from meal_planner.services.rate_window import RateWindow
from meal_planner.services.sessions import GenerationSession, GenerationSessionStore

_logger = logging.getLogger(__name__)

_T = TypeVar("_T")

MAX_FOOD_TEXT_LENGTH = 500


@dataclass(frozen=True)
class ExperimentResult:
    """One preset's run in a preset comparison."""

    preset: str
    duration_ms: int
    progress: ProgressSnapshot
    plan: WeeklyPlan


@dataclass
class MealPlanService:
    """Runs the cheap checks first, then generation, and logs every attempt."""

    generation_client: GenerationClient
    auto_fix: AutoFixEngine
    orchestrator: WeeklyOrchestrator
    quota_guard: QuotaGuard
    rate_window: RateWindow
    metrics: MetricsAggregator
    event_log: GenerationEventLog
    sessions: GenerationSessionStore
    precision: PrecisionCorrector | None = None

    async def generate_day(  # noqa: PLR0913
        self,
        *,
        user_id: str,
        day: date,
        targets: NutritionTargets,
        profile: PlanProfile = PlanProfile.STANDARD,
        context: UserContext = UserContext(),
        preferences: DietaryPreferences | None = None,
        config: PlanConfig | None = None,
    ) -> DayPlan:
        """Generate and repair one day."""
        resolved = config or PlanConfig()
        validate_targets(targets, profile)
        await self.gate(user_id)
        request = GenerationRequest(
            date=day,
            targets=targets,
            profile=profile,
            context=context,
            preferences=preferences,
        )

        async def run() -> DayPlan:
            started = time.perf_counter()
            try:
                generated = await self.generation_client.generate_day(request)
            except GENERATION_ERRORS:
                if resolved.max_regenerations_per_day == 0:
                    raise
                outcome = await self.auto_fix.recover(request, resolved)
            else:
                outcome = await self.auto_fix.fix(generated, request, resolved)
            plan = outcome.day
            if resolved.enable_precision_mode and self.precision is not None:
                plan = await self.precision.correct_day(plan)
            self.metrics.record_day(outcome)
            self.metrics.record_generation_time(int((time.perf_counter() - started) * 1000))
            details = outcome.day.explanation.summary if outcome.day.explanation else ""
            return replace(plan, explanation=describe_day(plan, targets, profile, details))

        return await self._execute(
            user_id=user_id,
            operation="generate_day",
            payload=_payload(day, targets, profile, context),
            action=run,
            totals=lambda plan: plan.totals,
        )

    async def generate_week(  # noqa: PLR0913
        self,
        *,
        user_id: str,
        week_start: date,
        targets: NutritionTargets,
        profile: PlanProfile = PlanProfile.STANDARD,
        context: UserContext = UserContext(),
        preferences: DietaryPreferences | None = None,
        config: PlanConfig | None = None,
        previous_week: WeeklyPlan | None = None,
        tracker: ProgressTracker | None = None,
    ) -> WeeklyPlan:
        """Generate a full week and wait for the result."""
        validate_targets(targets, profile)
        await self.gate(user_id)
        return await self._run_week(
            user_id=user_id,
            week_start=week_start,
            targets=targets,
            profile=profile,
            context=context,
            preferences=preferences,
            config=config,
            previous_week=previous_week,
            tracker=tracker,
            cancel_event=None,
        )

    async def start_week_generation(  # noqa: PLR0913
        self,
        *,
        user_id: str,
        week_start: date,
        targets: NutritionTargets,
        profile: PlanProfile = PlanProfile.STANDARD,
        context: UserContext = UserContext(),
        preferences: DietaryPreferences | None = None,
        config: PlanConfig | None = None,
        previous_week: WeeklyPlan | None = None,
    ) -> GenerationSession:
        """Gate synchronously, then run the week on a background task."""
        validate_targets(targets, profile)
        await self.gate(user_id)
        tracker = ProgressTracker(total_days=DAYS_IN_WEEK)
        session = self.sessions.create(user_id, week_start, tracker)

        async def run() -> None:
            try:
                session.result = await self._run_week(
                    user_id=user_id,
                    week_start=week_start,
                    targets=targets,
                    profile=profile,
                    context=context,
                    preferences=preferences,
                    config=config,
                    previous_week=previous_week,
                    tracker=tracker,
                    cancel_event=session.cancel_event,
                )
            except PlanningError as exc:
                session.error = exc
                _logger.warning(
                    "Weekly session %s ended with %s: %s",
                    session.session_id,
                    exc.code,
                    exc.message,
                )

        session.task = asyncio.create_task(run())
        return session

    def cancel_week_generation(self, session_id: str) -> bool:
        """Signal a running batch to stop; False if the session is unknown."""
        session = self.sessions.get(session_id)
        if session is None:
            return False
        session.cancel()
        return True

    async def regenerate_meal(  # noqa: PLR0913
        self,
        *,
        user_id: str,
        day_plan: DayPlan,
        meal_index: int,
        targets: NutritionTargets,
        profile: PlanProfile = PlanProfile.STANDARD,
        context: UserContext = UserContext(),
        preferences: DietaryPreferences | None = None,
    ) -> DayPlan:
        """Replace one meal with a new one sized to the rest of the day's budget."""
        if not 0 <= meal_index < len(day_plan.meals):
            raise InvalidRequestError(
                f"Invalid meal index {meal_index}; the day has {len(day_plan.meals)} meals."
            )
        meal = day_plan.meals[meal_index]
        if meal.locked:
            raise InvalidRequestError("Locked meals cannot be regenerated.")
        validate_targets(targets, profile)
        await self.gate(user_id)

        others = [other for index, other in enumerate(day_plan.meals) if index != meal_index]
        request = GenerationRequest(
            date=day_plan.date,
            targets=remaining_budget(targets, others),
            meal_types=(meal.type,),
            profile=profile,
            context=context,
            preferences=preferences,
        )

        async def run() -> DayPlan:
            new_meal = await self.generation_client.generate_meal(request)
            meals = list(day_plan.meals)
            meals[meal_index] = new_meal
            updated = replace(day_plan, meals=tuple(meals))
            details = day_plan.explanation.details if day_plan.explanation else ""
            return replace(updated, explanation=describe_day(updated, targets, profile, details))

        payload = _payload(day_plan.date, targets, profile, context)
        payload["meal_type"] = meal.type.value
        return await self._execute(
            user_id=user_id,
            operation="regenerate_meal",
            payload=payload,
            action=run,
            totals=lambda plan: plan.totals,
        )

    async def parse_food(
        self, *, user_id: str, text: str, context: UserContext = UserContext()
    ) -> ParsedFood:
        """Parse one free-text food description."""
        cleaned = text.strip()
        if not cleaned:
            raise InvalidRequestError("Food description cannot be empty.")
        if len(cleaned) > MAX_FOOD_TEXT_LENGTH:
            raise InvalidRequestError(
                f"Food description is limited to {MAX_FOOD_TEXT_LENGTH} characters."
            )
        await self.gate(user_id)
        return await self._execute(
            user_id=user_id,
            operation="parse_food",
            payload={"text": cleaned.lower(), "locale": context.locale},
            action=lambda: self.generation_client.parse_food(cleaned, context),
            totals=lambda parsed: parsed.item.macros,
        )

    async def compare_presets(  # noqa: PLR0913
        self,
        *,
        user_id: str,
        week_start: date,
        targets: NutritionTargets,
        presets: list[str],
        profile: PlanProfile = PlanProfile.STANDARD,
        context: UserContext = UserContext(),
    ) -> list[ExperimentResult]:
        """Generate the same week under several presets for comparison."""
        configs = {name: PlanConfig.from_preset(name) for name in presets}
        results = []
        for name, config in configs.items():
            tracker = ProgressTracker(total_days=DAYS_IN_WEEK)
            started = time.perf_counter()
            plan = await self.generate_week(
                user_id=user_id,
                week_start=week_start,
                targets=targets,
                profile=profile,
                context=context,
                config=config,
                tracker=tracker,
            )
            results.append(
                ExperimentResult(
                    preset=name,
                    duration_ms=int((time.perf_counter() - started) * 1000),
                    progress=tracker.snapshot(),
                    plan=plan,
                )
            )
        return results

    async def quota_status(self, user_id: str) -> QuotaStatus:
        return await self.quota_guard.status(user_id)

    async def gate(self, user_id: str) -> QuotaStatus:
        """Apply the burst limiter, then consume one unit of daily quota."""
        if not self.rate_window.allow(user_id):
            raise RateLimitedError(
                "Too many generation requests. Please wait a moment.",
                retry_after_seconds=self.rate_window.retry_after_seconds(user_id),
            )
        return await self.quota_guard.check_and_consume(user_id)

    async def _run_week(  # noqa: PLR0913
        self,
        *,
        user_id: str,
        week_start: date,
        targets: NutritionTargets,
        profile: PlanProfile,
        context: UserContext,
        preferences: DietaryPreferences | None,
        config: PlanConfig | None,
        previous_week: WeeklyPlan | None,
        tracker: ProgressTracker | None,
        cancel_event: threading.Event | None,
    ) -> WeeklyPlan:
        return await self._execute(
            user_id=user_id,
            operation="generate_week",
            payload=_payload(week_start, targets, profile, context),
            action=lambda: self.orchestrator.generate_week(
                week_start=week_start,
                targets=targets,
                profile=profile,
                context=context,
                preferences=preferences,
                config=config,
                previous_week=previous_week,
                tracker=tracker,
                cancel_event=cancel_event,
            ),
            totals=lambda plan: plan.totals,
        )

    async def _execute(  # noqa: PLR0913
        self,
        *,
        user_id: str,
        operation: str,
        payload: dict[str, object],
        action: Callable[[], Awaitable[_T]],
        totals: Callable[[_T], MacroProfile],
    ) -> _T:
        started = time.perf_counter()
        try:
            result = await action()
        except PlanningError as exc:
            self._record(user_id, operation, payload, started, error_code=exc.code)
            raise
        except Exception as exc:
            self._record(
                user_id, operation, payload, started, error_code=UnknownPlanningError.code
            )
            raise UnknownPlanningError(
                f"{operation} failed unexpectedly.", original_error=repr(exc)
            ) from exc
        self._record(user_id, operation, payload, started, macros=totals(result))
        return result

    def _record(  # noqa: PLR0913
        self,
        user_id: str,
        operation: str,
        payload: dict[str, object],
        started: float,
        *,
        macros: MacroProfile | None = None,
        error_code: str | None = None,
    ) -> None:
        self.event_log.record(
            user_id=user_id,
            operation=operation,
            payload=payload,
            duration_ms=int((time.perf_counter() - started) * 1000),
            macros=macros,
            error_code=error_code,
        )


def _payload(
    day: date, targets: NutritionTargets, profile: PlanProfile, context: UserContext
) -> dict[str, object]:
    return {
        "date": day.isoformat(),
        "targets": asdict(targets),
        "profile": profile.value,
        "context": asdict(context),
    }
