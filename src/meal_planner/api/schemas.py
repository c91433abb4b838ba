"""Request models for the planning API."""

from dataclasses import replace
from datetime import date

from pydantic import BaseModel, Field

from meal_planner.domain.plan_config import PlanConfig
from meal_planner.domain.plans import (
    DayPlan,
    DietaryPreferences,
    FoodItem,
    Meal,
    MealType,
    NutritionTargets,
    PlanExplanation,
    PlanProfile,
    UserContext,
    WeeklyPlan,
    order_meals,
)


class TargetsModel(BaseModel):
    calories_per_day: float
    protein_g: float
    carbs_g: float
    fat_g: float

    def to_domain(self) -> NutritionTargets:
        return NutritionTargets(**self.model_dump())


class ContextModel(BaseModel):
    locale: str = "en-US"
    city: str | None = None
    zip_code: str | None = None

    def to_domain(self) -> UserContext:
        return UserContext(**self.model_dump())


class PreferencesModel(BaseModel):
    diet_type: str | None = None
    avoid_ingredients: list[str] = Field(default_factory=list)
    disliked_foods: list[str] = Field(default_factory=list)

    def to_domain(self) -> DietaryPreferences:
        return DietaryPreferences(
            diet_type=self.diet_type,
            avoid_ingredients=tuple(self.avoid_ingredients),
            disliked_foods=tuple(self.disliked_foods),
        )


class PlanConfigModel(BaseModel):
    """Preset name plus optional field overrides."""

    preset: str | None = None
    tolerance_percent: float | None = Field(default=None, ge=0)
    scale_up_max: float | None = None
    scale_down_max: float | None = None
    min_scale_threshold: float | None = Field(default=None, ge=0)
    max_regenerations_per_day: int | None = Field(default=None, ge=0, le=5)
    enable_auto_fix: bool | None = None
    enable_precision_mode: bool | None = None
    min_first_pass_quality_rate: float | None = None
    min_auto_fix_success_rate: float | None = None

    def to_domain(self, default: PlanConfig) -> PlanConfig:
        overrides = self.model_dump(exclude={"preset"}, exclude_none=True)
        if self.preset:
            return PlanConfig.from_preset(self.preset, **overrides)
        return replace(default, **overrides) if overrides else default


class FoodItemModel(BaseModel):
    id: str
    name: str
    quantity: float = Field(ge=0)
    unit: str
    calories: float = Field(ge=0)
    protein_g: float = Field(ge=0)
    carbs_g: float = Field(ge=0)
    fat_g: float = Field(ge=0)
    food_id: str | None = None

    def to_domain(self) -> FoodItem:
        return FoodItem(**self.model_dump())


class MealModel(BaseModel):
    id: str
    type: MealType
    items: list[FoodItemModel]
    locked: bool = False

    def to_domain(self) -> Meal:
        return Meal(
            id=self.id,
            type=self.type,
            items=tuple(item.to_domain() for item in self.items),
            locked=self.locked,
        )


class ExplanationModel(BaseModel):
    summary: str
    details: str = ""


class DayPlanModel(BaseModel):
    date: date
    meals: list[MealModel]
    explanation: ExplanationModel | None = None

    def to_domain(self) -> DayPlan:
        explanation = None
        if self.explanation is not None:
            explanation = PlanExplanation(**self.explanation.model_dump())
        return DayPlan(
            date=self.date,
            meals=order_meals([meal.to_domain() for meal in self.meals]),
            explanation=explanation,
        )


class WeeklyPlanModel(BaseModel):
    week_start_date: date
    days: list[DayPlanModel]

    def to_domain(self) -> WeeklyPlan:
        return WeeklyPlan(
            week_start_date=self.week_start_date,
            days=tuple(day.to_domain() for day in self.days),
        )


class DayPlanRequest(BaseModel):
    date: date
    targets: TargetsModel
    profile: PlanProfile = PlanProfile.STANDARD
    context: ContextModel = Field(default_factory=ContextModel)
    preferences: PreferencesModel | None = None
    plan_config: PlanConfigModel | None = None


class WeekPlanRequest(BaseModel):
    week_start_date: date
    targets: TargetsModel
    profile: PlanProfile = PlanProfile.STANDARD
    context: ContextModel = Field(default_factory=ContextModel)
    preferences: PreferencesModel | None = None
    plan_config: PlanConfigModel | None = None
    previous_week: WeeklyPlanModel | None = None


class RegenerateMealRequest(BaseModel):
    day_plan: DayPlanModel
    meal_index: int
    targets: TargetsModel
    profile: PlanProfile = PlanProfile.STANDARD
    context: ContextModel = Field(default_factory=ContextModel)
    preferences: PreferencesModel | None = None


class ParseFoodRequest(BaseModel):
    text: str
    context: ContextModel = Field(default_factory=ContextModel)


class AiToggleRequest(BaseModel):
    enabled: bool


class ComparePresetsRequest(BaseModel):
    user_id: str
    week_start_date: date
    targets: TargetsModel
    presets: list[str] = Field(default_factory=lambda: ["default", "strict", "relaxed"])
    profile: PlanProfile = PlanProfile.STANDARD
    context: ContextModel = Field(default_factory=ContextModel)
