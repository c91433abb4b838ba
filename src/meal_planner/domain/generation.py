"""Models exchanged with the generative service."""

from dataclasses import dataclass
from datetime import date

from pydantic import BaseModel, ConfigDict, Field

from meal_planner.domain.plans import (
    MEAL_ORDER,
    DietaryPreferences,
    MealType,
    NutritionTargets,
    PlanProfile,
    UserContext,
)


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation requested by the model."""

    id: str
    name: str
    arguments: str


@dataclass(frozen=True)
class ChatTurn:
    """One assistant reply: tool calls, a final answer, or both."""

    content: str | None
    tool_calls: tuple[ToolCall, ...] = ()
    finish_reason: str | None = None

    def as_message(self) -> dict[str, object]:
        """Return the reply as a chat message to append to the history."""
        message: dict[str, object] = {"role": "assistant", "content": self.content}
        if self.tool_calls:
            message["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": call.arguments},
                }
                for call in self.tool_calls
            ]
        return message


@dataclass(frozen=True)
class GenerationRequest:
    """What to generate for one date: the budget and the open meal slots."""

    date: date
    targets: NutritionTargets
    meal_types: tuple[MealType, ...] = MEAL_ORDER
    profile: PlanProfile = PlanProfile.STANDARD
    context: UserContext = UserContext()
    preferences: DietaryPreferences | None = None
    note: str | None = None


class GeneratedItem(BaseModel):
    """Food item as returned by the model."""

    model_config = ConfigDict(populate_by_name=True)

    food_id: str | None = Field(default=None, alias="foodId")
    name: str = Field(min_length=1)
    quantity: float = Field(gt=0, le=5000)
    unit: str = Field(min_length=1)
    calories: float = Field(ge=0, le=5000)
    protein_g: float = Field(ge=0, le=1000, alias="proteinGrams")
    carbs_g: float = Field(ge=0, le=1000, alias="carbsGrams")
    fat_g: float = Field(ge=0, le=1000, alias="fatsGrams")


class GeneratedMeal(BaseModel):
    """Meal as returned by the model."""

    type: MealType
    items: list[GeneratedItem] = Field(min_length=1)


class GeneratedDay(BaseModel):
    """Structured final answer for a day or a subset of its meals."""

    model_config = ConfigDict(populate_by_name=True)

    meals: list[GeneratedMeal] = Field(min_length=1)
    total_calories: float | None = Field(default=None, ge=0, alias="totalCalories")
    total_protein: float | None = Field(default=None, ge=0, alias="totalProtein")
    total_carbs: float | None = Field(default=None, ge=0, alias="totalCarbs")
    total_fats: float | None = Field(default=None, ge=0, alias="totalFats")
    explanation: str = ""


class ParsedFoodAnswer(BaseModel):
    """Structured final answer for a single free-text food."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1)
    quantity: float = Field(gt=0, le=5000)
    unit: str = Field(min_length=1)
    calories: float = Field(ge=0, le=5000)
    protein_g: float = Field(ge=0, le=1000, alias="proteinGrams")
    carbs_g: float = Field(ge=0, le=1000, alias="carbsGrams")
    fat_g: float = Field(ge=0, le=1000, alias="fatsGrams")
    provenance: str = "estimated"
    confidence: float = Field(default=0.5, ge=0, le=1)
    food_id: str | None = Field(default=None, alias="foodId")
    reasoning: str = ""
