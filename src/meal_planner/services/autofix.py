"""Repair a generated day by scaling portions or regenerating it."""

import logging
import time
from dataclasses import dataclass, field, replace

from meal_planner.domain.generation import GenerationRequest
from meal_planner.domain.nutrition import MacroProfile
from meal_planner.domain.plan_config import PlanConfig
from meal_planner.domain.plans import DayPlan
from meal_planner.domain.progress import FixMethod
from meal_planner.errors import GENERATION_ERRORS, GenerationFailedError
from meal_planner.services.evaluator import (
    MacroEvaluator,
    RegenerationRequired,
    ScaleFixable,
    WithinTolerance,
    is_within_tolerance,
    scale_day,
)
from meal_planner.services.generation import GenerationClient

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FixOutcome:
    """Result of repairing one day."""

    day: DayPlan
    method: FixMethod
    first_pass_within: bool
    fixed_in_range: bool
    attempts: int = 0
    duration_ms: int = 0

    @property
    def still_out_of_range(self) -> bool:
        return not self.fixed_in_range


@dataclass
class AutoFixEngine:
    """Applies the repair picked by MacroEvaluator within the configured limits."""

    generation_client: GenerationClient
    evaluator: MacroEvaluator = field(default_factory=MacroEvaluator)

    async def fix(
        self, day: DayPlan, request: GenerationRequest, config: PlanConfig
    ) -> FixOutcome:
        """Return the repaired day; residual deviation is reported, never raised."""
        started = time.perf_counter()
        match self.evaluator.classify(day, request.targets, config):
            case WithinTolerance():
                outcome = FixOutcome(
                    day, FixMethod.NONE, first_pass_within=True, fixed_in_range=True
                )
            case _ if not config.enable_auto_fix:
                outcome = FixOutcome(
                    day, FixMethod.NONE, first_pass_within=False, fixed_in_range=False
                )
            case ScaleFixable(factor=factor):
                scaled = scale_day(day, factor)
                outcome = FixOutcome(
                    scaled,
                    FixMethod.SCALING,
                    first_pass_within=False,
                    fixed_in_range=is_within_tolerance(
                        scaled.totals, request.targets, config.tolerance_percent
                    ),
                )
            case RegenerationRequired(totals=totals):
                outcome = await self._regenerate(day, request, config, totals)

        _logger.info(
            "Day %s repair: method=%s in_range=%s attempts=%s",
            day.date,
            outcome.method.value,
            outcome.fixed_in_range,
            outcome.attempts,
        )
        return replace(outcome, duration_ms=_elapsed_ms(started))

    async def recover(self, request: GenerationRequest, config: PlanConfig) -> FixOutcome:
        """Produce a day after the first generation failed outright.

        Raises GenerationFailedError when every allowed attempt fails.
        """
        started = time.perf_counter()
        last_error: Exception | None = None
        for attempt in range(1, config.max_regenerations_per_day + 1):
            try:
                day = await self.generation_client.generate_day(request)
            except GENERATION_ERRORS as exc:
                _logger.warning(
                    "Recovery attempt %s for %s failed: %s", attempt, request.date, exc
                )
                last_error = exc
                continue
            remaining = config.max_regenerations_per_day - attempt
            outcome = await self.fix(
                day, request, replace(config, max_regenerations_per_day=remaining)
            )
            return replace(
                outcome,
                method=FixMethod.REGENERATION,
                first_pass_within=False,
                attempts=attempt + outcome.attempts,
                duration_ms=_elapsed_ms(started),
            )
        raise GenerationFailedError(
            f"No valid plan could be generated for {request.date.isoformat()}."
        ) from last_error

    async def _regenerate(
        self,
        day: DayPlan,
        request: GenerationRequest,
        config: PlanConfig,
        totals: MacroProfile,
    ) -> FixOutcome:
        best = day
        produced = False
        attempts = 0
        for attempt in range(1, config.max_regenerations_per_day + 1):
            attempts = attempt
            narrowed = replace(request, note=_regeneration_note(totals, request))
            try:
                candidate = await self.generation_client.generate_day(narrowed)
            except GENERATION_ERRORS as exc:
                _logger.warning("Regeneration %s for %s failed: %s", attempt, day.date, exc)
                continue
            produced = True
            best = candidate
            match self.evaluator.classify(candidate, request.targets, config):
                case WithinTolerance():
                    return FixOutcome(
                        candidate, FixMethod.REGENERATION, False, True, attempts=attempt
                    )
                case ScaleFixable(factor=factor):
                    scaled = scale_day(candidate, factor)
                    if is_within_tolerance(
                        scaled.totals, request.targets, config.tolerance_percent
                    ):
                        return FixOutcome(
                            scaled, FixMethod.REGENERATION, False, True, attempts=attempt
                        )
                    totals = candidate.totals
                case RegenerationRequired(totals=candidate_totals):
                    totals = candidate_totals

        if produced:
            method = FixMethod.REGENERATION
        elif attempts:
            method = FixMethod.FAILED
        else:
            method = FixMethod.NONE
        return FixOutcome(best, method, False, False, attempts=attempts)


def _regeneration_note(totals: MacroProfile, request: GenerationRequest) -> str:
    targets = request.targets
    return (
        "A previous attempt missed the budget: it totalled "
        f"{totals.calories:.0f} kcal, {totals.protein_g:.0f}g protein, "
        f"{totals.carbs_g:.0f}g carbs, {totals.fat_g:.0f}g fat. "
        f"The remaining budget for these meals is {targets.calories_per_day:.0f} kcal, "
        f"{targets.protein_g:.0f}g protein, {targets.carbs_g:.0f}g carbs, "
        f"{targets.fat_g:.0f}g fat. Change foods, not just portions, to balance the macros."
    )


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
