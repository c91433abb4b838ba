"""Static feasibility checks run before any generation call."""

from meal_planner.domain.plans import NutritionTargets, PlanProfile
from meal_planner.errors import InfeasiblePlanError

MIN_DAILY_CALORIES = 800
MAX_DAILY_CALORIES = 10000
MACRO_CALORIE_BUFFER = 1.10
GLP1_MIN_DAILY_CALORIES = 1200

_PROTEIN_SHARE_LIMITS = {
    PlanProfile.STANDARD: 0.45,
    PlanProfile.GLP1: 0.50,
}
_SUGGESTED_PROTEIN_SHARE = 0.40


def macro_calories(protein_g: float, carbs_g: float, fat_g: float) -> float:
    """Return the energy implied by macro grams."""
    return protein_g * 4 + carbs_g * 4 + fat_g * 9


def validate_targets(
    targets: NutritionTargets, profile: PlanProfile = PlanProfile.STANDARD
) -> None:
    """Raise InfeasiblePlanError for the first constraint the targets violate."""
    calories = targets.calories_per_day
    if not MIN_DAILY_CALORIES <= calories <= MAX_DAILY_CALORIES:
        suggested = min(max(calories, MIN_DAILY_CALORIES), MAX_DAILY_CALORIES)
        raise InfeasiblePlanError(
            f"Daily calories must be between {MIN_DAILY_CALORIES}-{MAX_DAILY_CALORIES} "
            f"kcal (you specified {calories:g} kcal).",
            constraint="calorie_range",
            suggested_value=suggested,
        )

    if min(targets.protein_g, targets.carbs_g, targets.fat_g) < 0:
        raise InfeasiblePlanError(
            "Macro targets cannot be negative.",
            constraint="negative_macro",
            suggested_value=0,
        )

    required = macro_calories(targets.protein_g, targets.carbs_g, targets.fat_g)
    if required > calories * MACRO_CALORIE_BUFFER:
        raise InfeasiblePlanError(
            f"Macros require at least {required:.0f} kcal "
            f"({targets.protein_g:g}g protein x 4 + {targets.carbs_g:g}g carbs x 4 + "
            f"{targets.fat_g:g}g fat x 9) but daily target is only {calories:g} kcal.",
            constraint="macro_calories",
            suggested_value=round(required / MACRO_CALORIE_BUFFER),
        )

    protein_share = targets.protein_g * 4 / calories
    share_limit = _PROTEIN_SHARE_LIMITS[profile]
    if protein_share > share_limit:
        suggested_protein = round(calories * _SUGGESTED_PROTEIN_SHARE / 4)
        raise InfeasiblePlanError(
            f"Protein target ({targets.protein_g:g}g) provides {protein_share:.0%} of "
            f"daily calories; keep protein at or below {share_limit:.0%} for the "
            f"{profile.value} profile (try ~{suggested_protein}g protein).",
            constraint="protein_share",
            suggested_value=suggested_protein,
        )

    if profile == PlanProfile.GLP1 and calories < GLP1_MIN_DAILY_CALORIES:
        raise InfeasiblePlanError(
            f"The glp1 profile needs at least {GLP1_MIN_DAILY_CALORIES} kcal per day "
            f"(you specified {calories:g} kcal).",
            constraint="glp1_calorie_floor",
            suggested_value=GLP1_MIN_DAILY_CALORIES,
        )
