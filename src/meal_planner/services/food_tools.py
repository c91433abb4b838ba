"""Food-lookup tools offered to the generative service."""

import json
import logging
from dataclasses import dataclass

from meal_planner.domain.nutrition import ZERO_MACROS, FoodDetails
from meal_planner.services.nutrition import (
    BRANDED_DATA_TYPES,
    GENERIC_DATA_TYPES,
    NutritionService,
)

_logger = logging.getLogger(__name__)

MAX_SEARCH_RESULTS = 10

TOOL_DEFINITIONS: list[dict[str, object]] = [
    {
        "type": "function",
        "function": {
            "name": "search_generic_food",
            "description": (
                "Search whole foods and generic dishes. Returns nutrition per 100 g."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "query": {"type": "string"},
                    "locale": {"type": "string", "default": "en-US"},
                    "limit": {"type": "integer", "minimum": 1, "maximum": 10},
                },
                "required": ["query"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "search_branded_item",
            "description": (
                "Search packaged or restaurant items, optionally for one brand. "
                "Returns nutrition per 100 g."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "query": {"type": "string"},
                    "brand": {"type": "string"},
                    "locale": {"type": "string", "default": "en-US"},
                    "limit": {"type": "integer", "minimum": 1, "maximum": 10},
                },
                "required": ["query"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "calculate_recipe_macros",
            "description": "Total the macros of a recipe from food ids and gram weights.",
            "parameters": {
                "type": "object",
                "properties": {
                    "ingredients": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "foodId": {"type": "string"},
                                "grams": {"type": "number", "minimum": 0},
                            },
                            "required": ["foodId", "grams"],
                        },
                    }
                },
                "required": ["ingredients"],
            },
        },
    },
]


@dataclass
class FoodToolExecutor:
    """Runs tool calls against FoodData Central and serializes the results."""

    nutrition_service: NutritionService

    def definitions(self) -> list[dict[str, object]]:
        return TOOL_DEFINITIONS

    async def execute(self, name: str, arguments: str) -> str:
        """Run one tool call; failures come back as an error field, never raised."""
        try:
            args = json.loads(arguments or "{}")
            if not isinstance(args, dict):
                raise ValueError("tool arguments must be a JSON object")
            if name == "search_generic_food":
                result = await self._search_generic(**_search_args(args))
            elif name == "search_branded_item":
                result = await self._search_branded(
                    brand=args.get("brand"), **_search_args(args)
                )
            elif name == "calculate_recipe_macros":
                result = await self._calculate_recipe(args.get("ingredients") or [])
            else:
                result = {"error": f"Unknown tool: {name}"}
        except Exception as exc:
            _logger.warning("Tool %s failed: %s", name, exc)
            result = {"error": str(exc) or exc.__class__.__name__}
        return json.dumps(result)

    async def _search_generic(self, query: str, locale: str, limit: int) -> dict[str, object]:
        foods = await self.nutrition_service.search(
            query, limit, data_types=GENERIC_DATA_TYPES
        )
        return {"locale": locale, "results": [_food_payload(food) for food in foods]}

    async def _search_branded(
        self, query: str, locale: str, limit: int, brand: str | None
    ) -> dict[str, object]:
        foods = await self.nutrition_service.search(
            query, limit, data_types=BRANDED_DATA_TYPES, brand_owner=brand
        )
        return {"locale": locale, "results": [_food_payload(food) for food in foods]}

    async def _calculate_recipe(self, ingredients: list[dict[str, object]]) -> dict[str, object]:
        if not ingredients:
            raise ValueError("ingredients must not be empty")
        totals = ZERO_MACROS
        breakdown = []
        for ingredient in ingredients:
            grams = float(ingredient["grams"])
            if grams < 0:
                raise ValueError("grams cannot be negative")
            food = await self.nutrition_service.get_food(int(ingredient["foodId"]))
            portion = food.for_grams(grams)
            totals = totals + portion
            breakdown.append(
                {
                    "foodId": str(food.summary.fdc_id),
                    "name": food.summary.description,
                    "grams": grams,
                    "calories": round(portion.calories, 1),
                    "proteinGrams": round(portion.protein_g, 1),
                    "carbsGrams": round(portion.carbs_g, 1),
                    "fatsGrams": round(portion.fat_g, 1),
                }
            )
        return {
            "totalCalories": round(totals.calories, 1),
            "totalProtein": round(totals.protein_g, 1),
            "totalCarbs": round(totals.carbs_g, 1),
            "totalFats": round(totals.fat_g, 1),
            "ingredients": breakdown,
        }


def _search_args(args: dict[str, object]) -> dict[str, object]:
    query = str(args.get("query") or "").strip()
    if not query:
        raise ValueError("query is required")
    limit = min(max(int(args.get("limit") or 5), 1), MAX_SEARCH_RESULTS)
    return {"query": query, "locale": str(args.get("locale") or "en-US"), "limit": limit}


def _food_payload(food: FoodDetails) -> dict[str, object]:
    return {
        "foodId": str(food.summary.fdc_id),
        "name": food.summary.description,
        "brand": food.summary.brand_name or food.summary.brand_owner,
        "per100g": {
            "calories": food.macros.calories,
            "proteinGrams": food.macros.protein_g,
            "carbsGrams": food.macros.carbs_g,
            "fatsGrams": food.macros.fat_g,
        },
        "servingSizeGrams": food.serving_size_g,
    }
