"""Meal plan domain models."""

from dataclasses import dataclass, field, replace
from datetime import date
from enum import StrEnum

from meal_planner.domain.nutrition import ZERO_MACROS, MacroProfile


class MealType(StrEnum):
    """Eating occasions of a planned day."""

    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACK = "snack"


MEAL_ORDER: tuple[MealType, ...] = (
    MealType.BREAKFAST,
    MealType.LUNCH,
    MealType.DINNER,
    MealType.SNACK,
)


class PlanProfile(StrEnum):
    """Nutrition profile driving feasibility limits and meal splits."""

    STANDARD = "standard"
    GLP1 = "glp1"


@dataclass(frozen=True)
class NutritionTargets:
    """Daily macro goal."""

    calories_per_day: float
    protein_g: float
    carbs_g: float
    fat_g: float

    def as_macros(self) -> MacroProfile:
        return MacroProfile(
            calories=self.calories_per_day,
            protein_g=self.protein_g,
            carbs_g=self.carbs_g,
            fat_g=self.fat_g,
        )


@dataclass(frozen=True)
class UserContext:
    """Where the user shops and eats."""

    locale: str = "en-US"
    city: str | None = None
    zip_code: str | None = None


@dataclass(frozen=True)
class DietaryPreferences:
    """Optional dietary constraints passed to generation."""

    diet_type: str | None = None
    avoid_ingredients: tuple[str, ...] = ()
    disliked_foods: tuple[str, ...] = ()


@dataclass(frozen=True)
class FoodItem:
    """One food entry in a meal."""

    id: str
    name: str
    quantity: float
    unit: str
    calories: float
    protein_g: float
    carbs_g: float
    fat_g: float
    food_id: str | None = None

    @property
    def macros(self) -> MacroProfile:
        return MacroProfile(
            calories=self.calories,
            protein_g=self.protein_g,
            carbs_g=self.carbs_g,
            fat_g=self.fat_g,
        )

    def with_macros(self, macros: MacroProfile, quantity: float | None = None) -> "FoodItem":
        """Return a copy carrying new macros and optionally a new quantity."""
        rounded = macros.rounded()
        return replace(
            self,
            quantity=self.quantity if quantity is None else quantity,
            calories=rounded.calories,
            protein_g=rounded.protein_g,
            carbs_g=rounded.carbs_g,
            fat_g=rounded.fat_g,
        )


@dataclass(frozen=True)
class Meal:
    """A named eating occasion."""

    id: str
    type: MealType
    items: tuple[FoodItem, ...]
    locked: bool = False

    @property
    def totals(self) -> MacroProfile:
        return sum((item.macros for item in self.items), ZERO_MACROS)

    def retagged(self, day: date) -> "Meal":
        """Return the meal and its items re-identified for another date."""
        meal_id = f"{self.type.value}-{day.isoformat()}"
        items = tuple(
            replace(item, id=f"{meal_id}-{index}") for index, item in enumerate(self.items)
        )
        return replace(self, id=meal_id, items=items)


@dataclass(frozen=True)
class PlanExplanation:
    """Human-readable notes attached to a day."""

    summary: str
    details: str = ""


@dataclass(frozen=True)
class DayPlan:
    """One day's meals in breakfast, lunch, dinner, snack order."""

    date: date
    meals: tuple[Meal, ...]
    explanation: PlanExplanation | None = None

    @property
    def totals(self) -> MacroProfile:
        return sum((meal.totals for meal in self.meals), ZERO_MACROS)

    def meal(self, meal_type: MealType) -> Meal | None:
        """Return the meal of the given type if present."""
        for meal in self.meals:
            if meal.type == meal_type:
                return meal
        return None

    def meal_types(self) -> tuple[MealType, ...]:
        return tuple(meal.type for meal in self.meals)


@dataclass(frozen=True)
class WeeklyPlan:
    """Seven consecutive day plans."""

    week_start_date: date
    days: tuple[DayPlan, ...] = field(default_factory=tuple)

    @property
    def totals(self) -> MacroProfile:
        return sum((day.totals for day in self.days), ZERO_MACROS)


def order_meals(meals: "list[Meal] | tuple[Meal, ...]") -> tuple[Meal, ...]:
    """Sort meals by eating order."""
    return tuple(sorted(meals, key=lambda meal: MEAL_ORDER.index(meal.type)))
