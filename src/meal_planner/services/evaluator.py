"""Classify how far a day's totals are from its targets."""

from dataclasses import dataclass, replace

from meal_planner.domain.nutrition import ZERO_MACROS, MacroProfile
from meal_planner.domain.plan_config import PlanConfig
from meal_planner.domain.plans import DayPlan, Meal, NutritionTargets

_MACRO_FIELDS = ("calories", "protein_g", "carbs_g", "fat_g")

# Floors keep a remaining budget usable when other meals already overshoot.
_BUDGET_FLOORS = MacroProfile(calories=100, protein_g=10, carbs_g=10, fat_g=5)


@dataclass(frozen=True)
class WithinTolerance:
    totals: MacroProfile


@dataclass(frozen=True)
class ScaleFixable:
    totals: MacroProfile
    factor: float


@dataclass(frozen=True)
class RegenerationRequired:
    totals: MacroProfile
    deviations: dict[str, float]


Classification = WithinTolerance | ScaleFixable | RegenerationRequired


def deviations(totals: MacroProfile, targets: NutritionTargets) -> dict[str, float]:
    """Return signed relative deviation per macro; zero targets are unconstrained."""
    goal = targets.as_macros()
    result: dict[str, float] = {}
    for name in _MACRO_FIELDS:
        target = getattr(goal, name)
        result[name] = 0.0 if target <= 0 else (getattr(totals, name) - target) / target
    return result


def is_within_tolerance(
    totals: MacroProfile, targets: NutritionTargets, tolerance_percent: float
) -> bool:
    limit = tolerance_percent / 100
    return all(abs(value) <= limit for value in deviations(totals, targets).values())


def remaining_budget(
    targets: NutritionTargets, meals: tuple[Meal, ...] | list[Meal]
) -> NutritionTargets:
    """Return targets minus what the given meals already provide, with floors."""
    used = sum((meal.totals for meal in meals), ZERO_MACROS)
    return NutritionTargets(
        calories_per_day=max(_BUDGET_FLOORS.calories, targets.calories_per_day - used.calories),
        protein_g=max(_BUDGET_FLOORS.protein_g, targets.protein_g - used.protein_g),
        carbs_g=max(_BUDGET_FLOORS.carbs_g, targets.carbs_g - used.carbs_g),
        fat_g=max(_BUDGET_FLOORS.fat_g, targets.fat_g - used.fat_g),
    )


class MacroEvaluator:
    """Sums a day's items and picks the cheapest repair that would work."""

    def classify(
        self, day: DayPlan, targets: NutritionTargets, config: PlanConfig
    ) -> Classification:
        totals = day.totals
        if is_within_tolerance(totals, targets, config.tolerance_percent):
            return WithinTolerance(totals)

        if totals.calories <= 0 or targets.calories_per_day <= 0:
            return RegenerationRequired(totals, deviations(totals, targets))

        factor = targets.calories_per_day / totals.calories
        if config.scale_down_max <= factor <= config.scale_up_max and is_within_tolerance(
            totals.scaled(factor), targets, config.tolerance_percent
        ):
            if abs(factor - 1) <= config.min_scale_threshold:
                return WithinTolerance(totals)
            return ScaleFixable(totals, factor)
        return RegenerationRequired(totals, deviations(totals, targets))


def scale_day(day: DayPlan, factor: float) -> DayPlan:
    """Multiply quantities and macros of every unlocked item by a factor."""
    meals = []
    for meal in day.meals:
        if meal.locked:
            meals.append(meal)
            continue
        items = tuple(
            item.with_macros(item.macros.scaled(factor), quantity=round(item.quantity * factor, 1))
            for item in meal.items
        )
        meals.append(replace(meal, items=items))
    return replace(day, meals=tuple(meals))
