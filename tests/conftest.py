"""Shared test fixtures."""

import json
import re
import threading
from dataclasses import dataclass, field
from datetime import date

import pytest

from meal_planner.adapters.fdc_client import FdcClient
from meal_planner.config import Settings
from meal_planner.containers import AppContainer
from meal_planner.domain.generation import ChatTurn, ToolCall
from meal_planner.domain.plan_config import PlanConfig
from meal_planner.domain.plans import MEAL_ORDER, DayPlan, FoodItem, Meal, MealType
from meal_planner.domain.quota import GenerationEvent
from meal_planner.services.autofix import AutoFixEngine
from meal_planner.services.cache import InMemoryCache
from meal_planner.services.events import GenerationEventLog, GenerationEventRepository
from meal_planner.services.food_tools import FoodToolExecutor
from meal_planner.services.generation import ChatClient, GenerationClient
from meal_planner.services.metrics import MetricsAggregator
from meal_planner.services.nutrition import NutritionService
from meal_planner.services.orchestrator import WeeklyOrchestrator
from meal_planner.services.planner import MealPlanService
from meal_planner.services.precision import PrecisionCorrector
from meal_planner.services.quota import QuotaGuard, QuotaRepository
from meal_planner.services.rate_window import RateWindow
from meal_planner.services.sessions import GenerationSessionStore

CHICKEN_NUTRIENTS = [
    {"nutrientId": 1008, "value": 165},
    {"nutrientId": 1003, "value": 31},
    {"nutrientId": 1004, "value": 3.6},
    {"nutrientId": 1005, "value": 0},
]


@dataclass
class InMemoryQuotaRepository(QuotaRepository):
    """In-memory quota repository for tests."""

    users: dict[str, bool] = field(default_factory=dict)
    usage: dict[tuple[str, date], int] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def ensure_user(self, user_id: str) -> bool:
        with self._lock:
            return self.users.setdefault(user_id, True)

    def set_ai_enabled(self, user_id: str, enabled: bool) -> None:
        with self._lock:
            self.users[user_id] = enabled

    def consume_call(self, user_id: str, usage_date: date, daily_limit: int) -> int | None:
        with self._lock:
            used = self.usage.get((user_id, usage_date), 0)
            if used >= daily_limit:
                return None
            self.usage[(user_id, usage_date)] = used + 1
            return used + 1

    def get_calls_used(self, user_id: str, usage_date: date) -> int:
        with self._lock:
            return self.usage.get((user_id, usage_date), 0)


@dataclass
class InMemoryEventRepository(GenerationEventRepository):
    """In-memory generation event repository for tests."""

    events: list[GenerationEvent] = field(default_factory=list)

    def create_event(self, event: GenerationEvent) -> None:
        self.events.append(event)


@dataclass
class FakeFdcClient(FdcClient):
    """Fake FDC client returning a chicken breast."""

    search_requests: list[dict[str, object]] = field(default_factory=list)

    async def search_foods(
        self,
        query: str,
        page_size: int = 5,
        data_types: list[str] | None = None,
        brand_owner: str | None = None,
    ) -> dict[str, object]:
        self.search_requests.append(
            {"query": query, "data_types": data_types, "brand_owner": brand_owner}
        )
        return {
            "foods": [
                {
                    "fdcId": 171077,
                    "description": "Chicken, broilers or fryers, breast, meat only, cooked",
                    "dataType": "SR Legacy",
                    "foodNutrients": CHICKEN_NUTRIENTS,
                }
            ]
        }

    async def get_food(self, fdc_id: int) -> dict[str, object]:
        return {
            "fdcId": fdc_id,
            "description": "Chicken, broilers or fryers, breast, meat only, cooked",
            "dataType": "SR Legacy",
            "foodNutrients": [
                {"nutrient": {"id": 1008}, "amount": 165},
                {"nutrient": {"id": 1003}, "amount": 31},
                {"nutrient": {"id": 1004}, "amount": 3.6},
                {"nutrient": {"id": 1005}, "amount": 0},
            ],
        }


@dataclass
class ScriptedChatClient(ChatClient):
    """Replays a fixed list of assistant turns."""

    turns: list[ChatTurn]
    requests: list[list[dict[str, object]]] = field(default_factory=list)

    async def complete(
        self,
        *,
        messages: list[dict[str, object]],
        tools: list[dict[str, object]],
        temperature: float,
        max_tokens: int,
    ) -> ChatTurn:
        self.requests.append(list(messages))
        if not self.turns:
            raise AssertionError("No scripted turns left")
        return self.turns.pop(0)


_MEALS_PATTERN = re.compile(r"Meals to plan: ([a-z, ]+)\.")
_TARGET_PATTERN = re.compile(
    r"Combined target: ([\d.]+) kcal, ([\d.]+)g protein, ([\d.]+)g carbs, ([\d.]+)g fat\."
)


@dataclass
class MenuChatClient(ChatClient):
    """Deterministic planner stub.

    Looks up one food, then answers with the requested meals sized to
    ``ratio`` times the requested budget. ``ratios`` overrides the ratio per
    plan request in order; the last value repeats.
    """

    ratio: float = 1.0
    ratios: list[float] = field(default_factory=list)
    protein_ratio: float | None = None
    plan_requests: int = 0
    tool_rounds: int = 0
    temperatures: list[float] = field(default_factory=list)
    prompts: list[str] = field(default_factory=list)

    async def complete(
        self,
        *,
        messages: list[dict[str, object]],
        tools: list[dict[str, object]],
        temperature: float,
        max_tokens: int,
    ) -> ChatTurn:
        if messages[-1]["role"] == "user":
            self.tool_rounds += 1
            return ChatTurn(
                content=None,
                tool_calls=(
                    ToolCall(
                        id=f"call-{self.tool_rounds}",
                        name="search_generic_food",
                        arguments=json.dumps({"query": "chicken breast"}),
                    ),
                ),
                finish_reason="tool_calls",
            )
        prompt = str(next(m["content"] for m in messages if m["role"] == "user"))
        ratio = self.ratio
        if self.ratios:
            ratio = self.ratios[min(self.plan_requests, len(self.ratios) - 1)]
        self.plan_requests += 1
        self.temperatures.append(temperature)
        self.prompts.append(prompt)
        meal_names = _MEALS_PATTERN.search(prompt).group(1).split(",")
        meal_types = [MealType(name.strip()) for name in meal_names]
        calories, protein, carbs, fat = (
            float(value) for value in _TARGET_PATTERN.search(prompt).groups()
        )
        protein_ratio = ratio if self.protein_ratio is None else self.protein_ratio
        return ChatTurn(
            content=day_payload(
                meal_types,
                calories * ratio,
                protein * protein_ratio,
                carbs * ratio,
                fat * ratio,
            ),
            finish_reason="stop",
        )


def day_payload(  # noqa: PLR0913
    meal_types: list[MealType],
    calories: float,
    protein: float,
    carbs: float,
    fat: float,
    explanation: str = "Balanced day",
) -> str:
    """Return a model answer splitting totals evenly across meals."""
    count = len(meal_types)
    meals = [
        {
            "type": meal_type.value,
            "items": [
                {
                    "foodId": "171077",
                    "name": f"{meal_type.value} bowl",
                    "quantity": 200,
                    "unit": "g",
                    "calories": calories / count,
                    "proteinGrams": protein / count,
                    "carbsGrams": carbs / count,
                    "fatsGrams": fat / count,
                }
            ],
        }
        for meal_type in meal_types
    ]
    return "```json\n" + json.dumps(
        {
            "meals": meals,
            "totalCalories": calories,
            "totalProtein": protein,
            "totalCarbs": carbs,
            "totalFats": fat,
            "explanation": explanation,
        }
    ) + "\n```"


def make_day(  # noqa: PLR0913
    day: date,
    calories: float,
    protein: float,
    carbs: float,
    fat: float,
    meal_types: tuple[MealType, ...] = MEAL_ORDER,
    locked: bool = False,
) -> DayPlan:
    """Build a day whose meals split the totals evenly."""
    count = len(meal_types)
    meals = tuple(
        Meal(
            id=f"{meal_type.value}-{day.isoformat()}",
            type=meal_type,
            items=(
                FoodItem(
                    id=f"{meal_type.value}-{day.isoformat()}-0",
                    name=f"{meal_type.value} plate",
                    quantity=100,
                    unit="g",
                    calories=calories / count,
                    protein_g=protein / count,
                    carbs_g=carbs / count,
                    fat_g=fat / count,
                ),
            ),
            locked=locked,
        )
        for meal_type in meal_types
    )
    return DayPlan(date=day, meals=meals)


def build_planner(  # noqa: PLR0913
    chat_client: ChatClient,
    quota_repository: InMemoryQuotaRepository | None = None,
    event_repository: InMemoryEventRepository | None = None,
    metrics: MetricsAggregator | None = None,
    rate_window: RateWindow | None = None,
    daily_limit: int = 100,
) -> MealPlanService:
    """Wire a MealPlanService around fakes."""
    nutrition_service = NutritionService(FakeFdcClient(), InMemoryCache())
    generation_client = GenerationClient(
        chat_client=chat_client, tools=FoodToolExecutor(nutrition_service)
    )
    auto_fix = AutoFixEngine(generation_client)
    resolved_metrics = metrics or MetricsAggregator()
    precision = PrecisionCorrector(nutrition_service)
    return MealPlanService(
        generation_client=generation_client,
        auto_fix=auto_fix,
        orchestrator=WeeklyOrchestrator(
            generation_client=generation_client,
            auto_fix=auto_fix,
            metrics=resolved_metrics,
            precision=precision,
        ),
        quota_guard=QuotaGuard(
            repository=quota_repository or InMemoryQuotaRepository(),
            daily_limit=daily_limit,
        ),
        rate_window=rate_window or RateWindow(),
        metrics=resolved_metrics,
        event_log=GenerationEventLog(event_repository or InMemoryEventRepository()),
        sessions=GenerationSessionStore(),
        precision=precision,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="service-key",
        admin_token="admin-token",
        openai_api_key="openai-key",
        fdc_api_key="fdc-key",
    )


@pytest.fixture
def quota_repository() -> InMemoryQuotaRepository:
    return InMemoryQuotaRepository()


@pytest.fixture
def event_repository() -> InMemoryEventRepository:
    return InMemoryEventRepository()


@pytest.fixture
def chat_client() -> MenuChatClient:
    return MenuChatClient()


@pytest.fixture
def container(
    settings: Settings,
    chat_client: MenuChatClient,
    quota_repository: InMemoryQuotaRepository,
    event_repository: InMemoryEventRepository,
) -> AppContainer:
    service = build_planner(
        chat_client,
        quota_repository=quota_repository,
        event_repository=event_repository,
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        default_plan_config=PlanConfig(),
        meal_plan_service=service,
        nutrition_service=service.precision.nutrition_service,
        metrics=service.metrics,
        sessions=service.sessions,
        quota_guard=service.quota_guard,
        close_resources=close_resources,
    )
