"""Tests for the food lookup tools."""

import asyncio
import json

from meal_planner.services.cache import InMemoryCache
from meal_planner.services.food_tools import TOOL_DEFINITIONS, FoodToolExecutor
from meal_planner.services.nutrition import BRANDED_DATA_TYPES, NutritionService
from tests.conftest import FakeFdcClient


def _executor() -> tuple[FoodToolExecutor, FakeFdcClient]:
    client = FakeFdcClient()
    return FoodToolExecutor(NutritionService(client, InMemoryCache())), client


def test_definitions_name_three_tools() -> None:
    executor, _ = _executor()

    names = [tool["function"]["name"] for tool in executor.definitions()]

    assert names == ["search_generic_food", "search_branded_item", "calculate_recipe_macros"]
    assert executor.definitions() is TOOL_DEFINITIONS


def test_search_generic_food_returns_per_100g_macros() -> None:
    executor, client = _executor()

    result = json.loads(
        asyncio.run(executor.execute("search_generic_food", '{"query": "chicken breast"}'))
    )

    food = result["results"][0]
    assert food["foodId"] == "171077"
    assert food["per100g"]["calories"] == 165
    assert food["per100g"]["proteinGrams"] == 31
    assert client.search_requests[0]["data_types"] != BRANDED_DATA_TYPES


def test_search_branded_item_passes_brand() -> None:
    executor, client = _executor()

    asyncio.run(
        executor.execute(
            "search_branded_item", json.dumps({"query": "big mac", "brand": "McDonald's"})
        )
    )

    assert client.search_requests[0]["data_types"] == BRANDED_DATA_TYPES
    assert client.search_requests[0]["brand_owner"] == "McDonald's"


def test_calculate_recipe_macros_totals_ingredients() -> None:
    executor, _ = _executor()
    arguments = json.dumps(
        {
            "ingredients": [
                {"foodId": "171077", "grams": 200},
                {"foodId": "171077", "grams": 50},
            ]
        }
    )

    result = json.loads(asyncio.run(executor.execute("calculate_recipe_macros", arguments)))

    assert result["totalCalories"] == 412.5
    assert result["totalProtein"] == 77.5
    assert result["totalFats"] == 9.0
    assert len(result["ingredients"]) == 2


def test_tool_errors_are_returned_not_raised() -> None:
    executor, _ = _executor()

    missing_query = json.loads(asyncio.run(executor.execute("search_generic_food", "{}")))
    bad_json = json.loads(asyncio.run(executor.execute("search_generic_food", "{oops")))
    unknown = json.loads(asyncio.run(executor.execute("delete_everything", "{}")))

    assert missing_query["error"] == "query is required"
    assert "error" in bad_json
    assert unknown["error"] == "Unknown tool: delete_everything"
