"""Bounded tool-calling loop against the generative service."""

import json
import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Protocol

from pydantic import ValidationError

from meal_planner.domain.generation import (
    ChatTurn,
    GeneratedDay,
    GeneratedItem,
    GeneratedMeal,
    GenerationRequest,
    ParsedFoodAnswer,
)
from meal_planner.domain.plans import (
    MEAL_ORDER,
    DayPlan,
    FoodItem,
    Meal,
    PlanExplanation,
    UserContext,
)
from meal_planner.errors import FoodParseRejectedError, GenerationFailedError
from meal_planner.services.feasibility import macro_calories
from meal_planner.services.prompts import build_day_messages, build_food_messages

_logger = logging.getLogger(__name__)

DECLARED_CALORIE_WARNING_RATIO = 0.20
PARSE_ENERGY_MISMATCH_RATIO = 0.50

_FENCE_PATTERN = re.compile(r"```(?:json)?", re.IGNORECASE)
_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")

_PARSE_REJECTIONS = {
    "MULTI_ITEM": "Please describe one food at a time.",
    "NOT_FOOD": "That does not look like a food.",
    "AMBIGUOUS": "Please add more detail, such as the portion size or brand.",
}


class ChatClient(Protocol):
    """Interface for a tool-calling chat completion service."""

    async def complete(
        self,
        *,
        messages: list[dict[str, object]],
        tools: list[dict[str, object]],
        temperature: float,
        max_tokens: int,
    ) -> ChatTurn:
        """Return the next assistant turn."""


class ToolExecutor(Protocol):
    """Interface for executing tool calls requested by the model."""

    def definitions(self) -> list[dict[str, object]]:
        """Return tool declarations in chat-completions format."""

    async def execute(self, name: str, arguments: str) -> str:
        """Run a tool and return its JSON result."""


@dataclass(frozen=True)
class ParsedFood:
    """A single food parsed from free text."""

    item: FoodItem
    provenance: str
    confidence: float
    reasoning: str


@dataclass
class GenerationClient:
    """Drives request, tool execution and final-answer parsing for one call."""

    chat_client: ChatClient
    tools: ToolExecutor
    day_max_iterations: int = 20
    meal_max_iterations: int = 10
    parse_max_iterations: int = 5
    day_temperature: float = 0.4
    meal_temperature: float = 0.7
    parse_temperature: float = 0.3
    max_tokens: int = 4000

    async def generate_day(self, request: GenerationRequest) -> DayPlan:
        """Generate the open meal slots of one day."""
        content, _ = await self._run_tool_loop(
            build_day_messages(request),
            max_iterations=self.day_max_iterations,
            temperature=self.day_temperature,
        )
        return self._parse_day(content, request)

    async def generate_meal(self, request: GenerationRequest) -> Meal:
        """Generate a single meal; the request must name exactly one slot."""
        if len(request.meal_types) != 1:
            raise ValueError("generate_meal expects exactly one meal type")
        content, _ = await self._run_tool_loop(
            build_day_messages(request),
            max_iterations=self.meal_max_iterations,
            temperature=self.meal_temperature,
        )
        return self._parse_day(content, request).meals[0]

    async def parse_food(self, text: str, context: UserContext) -> ParsedFood:
        """Turn one free-text food description into a priced item."""
        content, tool_rounds = await self._run_tool_loop(
            build_food_messages(text, context.locale),
            max_iterations=self.parse_max_iterations,
            temperature=self.parse_temperature,
        )
        if tool_rounds == 0:
            raise FoodParseRejectedError(
                "The food could not be verified against the nutrition database."
            )
        data = extract_json_object(content)
        if "error" in data:
            code = str(data["error"])
            raise FoodParseRejectedError(
                _PARSE_REJECTIONS.get(code, "The food description could not be parsed."),
                detail={"reason": code},
            )
        try:
            answer = ParsedFoodAnswer.model_validate(data)
        except ValidationError as exc:
            raise GenerationFailedError(
                f"Parsed food failed validation ({exc.error_count()} errors)."
            ) from exc

        implied = macro_calories(answer.protein_g, answer.carbs_g, answer.fat_g)
        if answer.calories > 0 and (
            abs(implied - answer.calories) / answer.calories > PARSE_ENERGY_MISMATCH_RATIO
        ):
            raise GenerationFailedError(
                f"Parsed macros imply {implied:.0f} kcal but {answer.calories:.0f} kcal "
                "was reported."
            )
        item = FoodItem(
            id="parsed-item",
            name=answer.name,
            quantity=answer.quantity,
            unit=answer.unit,
            calories=round(answer.calories),
            protein_g=round(answer.protein_g, 1),
            carbs_g=round(answer.carbs_g, 1),
            fat_g=round(answer.fat_g, 1),
            food_id=answer.food_id,
        )
        return ParsedFood(
            item=item,
            provenance=answer.provenance,
            confidence=answer.confidence,
            reasoning=answer.reasoning,
        )

    async def _run_tool_loop(
        self,
        messages: list[dict[str, object]],
        *,
        max_iterations: int,
        temperature: float,
    ) -> tuple[str, int]:
        """Return the final answer text and the number of tool rounds it took."""
        tool_rounds = 0
        while True:
            turn = await self.chat_client.complete(
                messages=messages,
                tools=self.tools.definitions(),
                temperature=temperature,
                max_tokens=self.max_tokens,
            )
            if not turn.tool_calls:
                if not turn.content or not turn.content.strip():
                    raise GenerationFailedError(
                        "The generative service returned an empty response."
                    )
                return turn.content, tool_rounds
            if tool_rounds >= max_iterations:
                raise GenerationFailedError(
                    f"Tool loop did not finish within {max_iterations} iterations."
                )

            messages.append(turn.as_message())
            for call in turn.tool_calls:
                result = await self.tools.execute(call.name, call.arguments)
                messages.append({"role": "tool", "tool_call_id": call.id, "content": result})
            tool_rounds += 1
            _logger.debug("Tool round %s: %s calls", tool_rounds, len(turn.tool_calls))

    def _parse_day(self, content: str, request: GenerationRequest) -> DayPlan:
        data = extract_json_object(content)
        try:
            generated = GeneratedDay.model_validate(data)
        except ValidationError as exc:
            raise GenerationFailedError(
                f"Day plan failed validation ({exc.error_count()} errors)."
            ) from exc

        by_type: dict[str, GeneratedMeal] = {}
        for meal in generated.meals:
            by_type.setdefault(meal.type, meal)
        missing = [meal_type.value for meal_type in request.meal_types if meal_type not in by_type]
        if missing:
            raise GenerationFailedError(f"Day plan is missing meals: {', '.join(missing)}.")

        meals = tuple(
            _to_meal(by_type[meal_type], request.date)
            for meal_type in MEAL_ORDER
            if meal_type in request.meal_types
        )
        day = DayPlan(
            date=request.date,
            meals=meals,
            explanation=PlanExplanation(summary=generated.explanation.strip()),
        )

        declared = generated.total_calories or day.totals.calories
        target = request.targets.calories_per_day
        if target > 0 and abs(declared - target) / target > DECLARED_CALORIE_WARNING_RATIO:
            _logger.warning(
                "Declared calories deviate from target: date=%s declared=%.0f target=%.0f",
                request.date,
                declared,
                target,
            )
        return day


def extract_json_object(content: str) -> dict[str, object]:
    """Return the single JSON object embedded in a model reply."""
    cleaned = _FENCE_PATTERN.sub("", content).strip()
    match = _OBJECT_PATTERN.search(cleaned)
    if match is None:
        raise GenerationFailedError("No JSON object found in the response.")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise GenerationFailedError(f"Response JSON could not be decoded: {exc.msg}.") from exc
    if not isinstance(data, dict):
        raise GenerationFailedError("Response JSON is not an object.")
    return data


def _to_meal(meal: GeneratedMeal, day: date) -> Meal:
    prefix = f"{meal.type.value}-{day.isoformat()}"
    return Meal(
        id=prefix,
        type=meal.type,
        items=tuple(_to_item(item, f"{prefix}-{index}") for index, item in enumerate(meal.items)),
    )


def _to_item(item: GeneratedItem, item_id: str) -> FoodItem:
    return FoodItem(
        id=item_id,
        name=item.name,
        quantity=item.quantity,
        unit=item.unit,
        calories=round(item.calories),
        protein_g=round(item.protein_g, 1),
        carbs_g=round(item.carbs_g, 1),
        fat_g=round(item.fat_g, 1),
        food_id=item.food_id,
    )
