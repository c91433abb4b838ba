"""Short day summaries shown next to a plan."""

from meal_planner.domain.plans import (
    DayPlan,
    MealType,
    NutritionTargets,
    PlanExplanation,
    PlanProfile,
)


def describe_day(
    day: DayPlan,
    targets: NutritionTargets,
    profile: PlanProfile = PlanProfile.STANDARD,
    details: str = "",
) -> PlanExplanation:
    """Summarize how a day's totals compare with its targets."""
    totals = day.totals
    meal_count = sum(1 for meal in day.meals if meal.type != MealType.SNACK)
    snack_count = len(day.meals) - meal_count
    summary = (
        f"~{totals.calories:.0f} kcal (target {targets.calories_per_day:.0f}) · "
        f"{totals.protein_g:.0f}g protein (target {targets.protein_g:.0f}) · "
        f"{meal_count} meals + {snack_count} snack"
    )
    if profile == PlanProfile.GLP1:
        summary += " · smaller portions for GLP-1"
    return PlanExplanation(summary=summary, details=details)
