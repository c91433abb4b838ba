"""Re-price generated gram items from FoodData Central."""

import logging
from dataclasses import dataclass, replace

import httpx

from meal_planner.domain.plans import DayPlan, FoodItem
from meal_planner.services.nutrition import NutritionService

_logger = logging.getLogger(__name__)

_GRAM_UNITS = frozenset({"g", "gram", "grams"})


@dataclass
class PrecisionCorrector:
    """Replaces model-estimated macros with database values where possible."""

    nutrition_service: NutritionService

    async def correct_day(self, day: DayPlan) -> DayPlan:
        meals = []
        for meal in day.meals:
            if meal.locked:
                meals.append(meal)
                continue
            items = tuple([await self.correct_item(item) for item in meal.items])
            meals.append(replace(meal, items=items))
        return replace(day, meals=tuple(meals))

    async def correct_item(self, item: FoodItem) -> FoodItem:
        """Return the item re-priced per gram, or unchanged when no match exists."""
        if item.unit.strip().lower() not in _GRAM_UNITS:
            return item
        try:
            if item.food_id and item.food_id.isdigit():
                food = await self.nutrition_service.get_food(int(item.food_id))
            else:
                food = await self.nutrition_service.find_best_match(item.name)
        except httpx.HTTPError as exc:
            _logger.warning("Precision lookup failed for %s: %s", item.name, exc)
            return item
        if food is None or food.macros.calories <= 0:
            return item
        corrected = item.with_macros(food.for_grams(item.quantity))
        return replace(corrected, food_id=str(food.summary.fdc_id))
