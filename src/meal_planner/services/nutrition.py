"""Food lookups against USDA FoodData Central."""

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpx

from meal_planner.adapters.fdc_client import FdcClient
from meal_planner.domain.nutrition import FoodDetails, FoodSummary, MacroProfile
from meal_planner.services.cache import Cache

GENERIC_DATA_TYPES = ["Foundation", "SR Legacy", "Survey (FNDDS)"]
BRANDED_DATA_TYPES = ["Branded"]

_NUTRIENT_IDS = {
    1008: "calories",
    1003: "protein",
    1004: "fat",
    1005: "carbs",
}

_logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable


@dataclass
class NutritionService:
    """Cached FDC search and food detail lookups, macros per 100 g."""

    fdc_client: FdcClient
    cache: Cache
    search_ttl_seconds: int = 3600
    food_ttl_seconds: int = 86400
    debug: bool = False
    retry_attempts: int = 1
    retry_delay_seconds: float = 0.3

    async def search(
        self,
        query: str,
        limit: int = 5,
        *,
        data_types: list[str] | None = None,
        brand_owner: str | None = None,
    ) -> list[FoodDetails]:
        """Search FDC foods, returning per-100 g macros from the search payload."""
        scope = ",".join(data_types or [])
        cache_key = f"fdc:search:{query.lower()}:{limit}:{scope}:{(brand_owner or '').lower()}"
        cached = self.cache.get(cache_key)
        if isinstance(cached, list):
            return cached

        payload = await self._call_with_retry(
            lambda: self.fdc_client.search_foods(
                query, page_size=limit, data_types=data_types, brand_owner=brand_owner
            ),
            action="search",
        )
        foods = [
            FoodDetails(
                summary=_summary(food),
                macros=_extract_macros(food.get("foodNutrients", [])),
                serving_size_g=food.get("servingSize"),
            )
            for food in payload.get("foods", [])
        ][:limit]
        self.cache.set(cache_key, foods, ttl_seconds=self.search_ttl_seconds)
        if self.debug:
            _logger.info("Nutrition search FDC: query=%s results=%s", query, len(foods))
        return foods

    async def get_food(self, fdc_id: int) -> FoodDetails:
        """Retrieve food details with macros from FDC."""
        cache_key = f"fdc:food:{fdc_id}"
        cached = self.cache.get(cache_key)
        if isinstance(cached, FoodDetails):
            return cached

        payload = await self._call_with_retry(
            lambda: self.fdc_client.get_food(fdc_id),
            action=f"get_food:{fdc_id}",
        )
        details = FoodDetails(
            summary=_summary(payload),
            macros=_extract_macros(payload.get("foodNutrients", [])),
            serving_size_g=payload.get("servingSize"),
        )
        self.cache.set(cache_key, details, ttl_seconds=self.food_ttl_seconds)
        if self.debug:
            _logger.info("Nutrition food FDC: fdc_id=%s", fdc_id)
        return details

    async def find_best_match(self, name: str) -> FoodDetails | None:
        """Return the top generic match for a food name, if any has energy data."""
        results = await self.search(name, limit=1, data_types=GENERIC_DATA_TYPES)
        if not results or results[0].macros.calories <= 0:
            return None
        return results[0]

    async def _call_with_retry(
        self, func: "Callable[[], Awaitable[dict[str, object]]]", *, action: str
    ) -> dict[str, object]:
        """Retry transient FDC failures; client errors are raised at once."""
        attempt = 0
        while True:
            try:
                return await func()
            except httpx.HTTPError as exc:
                attempt += 1
                retrying = _is_transient(exc) and attempt <= self.retry_attempts
                _logger.warning(
                    "Nutrition %s failed (attempt %s, status=%s, retrying=%s): %s",
                    action,
                    attempt,
                    _status_code_from_exception(exc),
                    retrying,
                    exc,
                )
                if not retrying:
                    raise
                await asyncio.sleep(self.retry_delay_seconds * attempt)


def _is_transient(exc: httpx.HTTPError) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        status_code = exc.response.status_code
        return status_code == httpx.codes.TOO_MANY_REQUESTS or status_code >= 500
    return isinstance(exc, httpx.TransportError)


def _summary(food: dict[str, object]) -> FoodSummary:
    return FoodSummary(
        fdc_id=int(food["fdcId"]),
        description=food.get("description", ""),
        brand_owner=food.get("brandOwner"),
        brand_name=food.get("brandName"),
        data_type=food.get("dataType"),
    )


def _status_code_from_exception(exc: Exception) -> str:
    """Extract HTTP status code from an exception, if available."""
    response = getattr(exc, "response", None)
    status_code = getattr(response, "status_code", None)
    if isinstance(status_code, int):
        return str(status_code)
    return "n/a"


def _extract_macros(food_nutrients: list[dict[str, object]]) -> MacroProfile:
    """Extract calories, protein, fat, carbs from detail or search nutrients."""
    values = {"calories": 0.0, "protein": 0.0, "fat": 0.0, "carbs": 0.0}
    for nutrient in food_nutrients:
        nutrient_info = nutrient.get("nutrient") or {}
        nutrient_id = nutrient_info.get("id") or nutrient.get("nutrientId")
        amount = nutrient.get("amount", nutrient.get("value"))
        key = _NUTRIENT_IDS.get(nutrient_id)
        if key is not None and amount is not None:
            values[key] = float(amount)

    return MacroProfile(
        calories=values["calories"],
        protein_g=values["protein"],
        carbs_g=values["carbs"],
        fat_g=values["fat"],
    )
