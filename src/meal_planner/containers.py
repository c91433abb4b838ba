"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from meal_planner.adapters.fdc_client import HttpxFdcClient
from meal_planner.adapters.openai_chat_client import OpenAIChatClient
from meal_planner.adapters.supabase_event_repository import (
    SupabaseGenerationEventRepository,
)
from meal_planner.adapters.supabase_quota_repository import SupabaseQuotaRepository
from meal_planner.config import Settings
from meal_planner.domain.plan_config import PlanConfig
from meal_planner.services.autofix import AutoFixEngine
from meal_planner.services.cache import InMemoryCache
from meal_planner.services.events import GenerationEventLog
from meal_planner.services.food_tools import FoodToolExecutor
from meal_planner.services.generation import GenerationClient
from meal_planner.services.metrics import MetricsAggregator
from meal_planner.services.nutrition import NutritionService
from meal_planner.services.orchestrator import WeeklyOrchestrator
from meal_planner.services.planner import MealPlanService
from meal_planner.services.precision import PrecisionCorrector
from meal_planner.services.quota import QuotaGuard
from meal_planner.services.rate_window import RateWindow
from meal_planner.services.sessions import GenerationSessionStore


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    default_plan_config: PlanConfig
    meal_plan_service: MealPlanService
    nutrition_service: NutritionService
    metrics: MetricsAggregator
    sessions: GenerationSessionStore
    quota_guard: QuotaGuard
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    fdc_client = HttpxFdcClient.create(
        api_key=resolved_settings.fdc_api_key,
        base_url=resolved_settings.fdc_base_url,
    )
    nutrition_service = NutritionService(fdc_client=fdc_client, cache=InMemoryCache())
    chat_client = OpenAIChatClient.create(
        api_key=resolved_settings.openai_api_key,
        model=resolved_settings.openai_model,
        base_url=resolved_settings.openai_base_url,
        timeout_seconds=resolved_settings.openai_timeout_seconds,
    )
    generation_client = GenerationClient(
        chat_client=chat_client,
        tools=FoodToolExecutor(nutrition_service),
    )
    auto_fix = AutoFixEngine(generation_client)
    metrics = MetricsAggregator()
    precision = PrecisionCorrector(nutrition_service)
    sessions = GenerationSessionStore()
    quota_guard = QuotaGuard(
        repository=SupabaseQuotaRepository(supabase_client),
        daily_limit=resolved_settings.daily_generation_limit,
    )
    meal_plan_service = MealPlanService(
        generation_client=generation_client,
        auto_fix=auto_fix,
        orchestrator=WeeklyOrchestrator(
            generation_client=generation_client,
            auto_fix=auto_fix,
            metrics=metrics,
            precision=precision,
        ),
        quota_guard=quota_guard,
        rate_window=RateWindow(max_calls=resolved_settings.rate_limit_per_minute),
        metrics=metrics,
        event_log=GenerationEventLog(SupabaseGenerationEventRepository(supabase_client)),
        sessions=sessions,
        precision=precision,
    )

    async def close_resources() -> None:
        sessions.clear()
        await fdc_client.close()
        await chat_client.close()

    return AppContainer(
        settings=resolved_settings,
        default_plan_config=PlanConfig.from_preset(resolved_settings.default_plan_preset),
        meal_plan_service=meal_plan_service,
        nutrition_service=nutrition_service,
        metrics=metrics,
        sessions=sessions,
        quota_guard=quota_guard,
        close_resources=close_resources,
    )
