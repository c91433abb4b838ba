"""Tests for weekly batch generation."""

import asyncio
import threading
from dataclasses import dataclass, field, replace
from datetime import date, timedelta

import pytest

from meal_planner.domain.generation import ChatTurn
from meal_planner.domain.plan_config import PlanConfig
from meal_planner.domain.plans import (
    MEAL_ORDER,
    Meal,
    MealType,
    NutritionTargets,
    WeeklyPlan,
)
from meal_planner.domain.progress import GenerationPhase
from meal_planner.errors import GenerationCancelledError, GenerationFailedError
from meal_planner.services.autofix import AutoFixEngine
from meal_planner.services.cache import InMemoryCache
from meal_planner.services.evaluator import is_within_tolerance
from meal_planner.services.food_tools import FoodToolExecutor
from meal_planner.services.generation import ChatClient, GenerationClient
from meal_planner.services.metrics import MetricsAggregator
from meal_planner.services.nutrition import NutritionService
from meal_planner.services.orchestrator import WeeklyOrchestrator
from meal_planner.services.precision import PrecisionCorrector
from meal_planner.services.progress import ProgressTracker
from tests.conftest import FakeFdcClient, MenuChatClient, make_day

TARGETS = NutritionTargets(2000, 150, 200, 65)
WEEK_START = date(2025, 3, 3)
FULL_DAY = "Meals to plan: breakfast, lunch, dinner, snack."
WITHOUT_BREAKFAST = "Meals to plan: lunch, dinner, snack."


def _orchestrator(
    chat_client: ChatClient, metrics: MetricsAggregator | None = None
) -> WeeklyOrchestrator:
    nutrition_service = NutritionService(FakeFdcClient(), InMemoryCache())
    generation_client = GenerationClient(
        chat_client=chat_client, tools=FoodToolExecutor(nutrition_service)
    )
    return WeeklyOrchestrator(
        generation_client=generation_client,
        auto_fix=AutoFixEngine(generation_client),
        metrics=metrics or MetricsAggregator(),
        precision=PrecisionCorrector(nutrition_service),
    )


@dataclass
class CancellingChatClient(MenuChatClient):
    """Sets the cancel event once a number of plans have been produced."""

    cancel_event: threading.Event = field(default_factory=threading.Event)
    cancel_after: int = 2

    async def complete(self, **kwargs: object) -> ChatTurn:
        turn = await super().complete(**kwargs)
        if self.plan_requests >= self.cancel_after:
            self.cancel_event.set()
        return turn


@dataclass
class BrokenChatClient(ChatClient):
    calls: int = 0

    async def complete(self, **kwargs: object) -> ChatTurn:
        self.calls += 1
        return ChatTurn(content="I cannot plan meals today.")


def test_week_within_tolerance_needs_one_request_per_day() -> None:
    chat_client = MenuChatClient()
    metrics = MetricsAggregator()
    tracker = ProgressTracker()

    plan = asyncio.run(
        _orchestrator(chat_client, metrics).generate_week(
            week_start=WEEK_START, targets=TARGETS, tracker=tracker
        )
    )

    assert [day.date for day in plan.days] == [
        WEEK_START + timedelta(days=offset) for offset in range(7)
    ]
    assert all(day.meal_types() == MEAL_ORDER for day in plan.days)
    assert all(is_within_tolerance(day.totals, TARGETS, 20) for day in plan.days)
    assert chat_client.plan_requests == 7
    snapshot = tracker.snapshot()
    assert snapshot.phase == GenerationPhase.COMPLETE
    assert snapshot.days_generated == 7
    assert snapshot.quality_summary.startswith("7 perfect on first pass")
    assert metrics.snapshot().total_weeks_generated == 1
    assert metrics.snapshot().total_days_generated == 7


def test_breakfast_is_shared_by_the_next_three_days() -> None:
    chat_client = MenuChatClient()

    plan = asyncio.run(
        _orchestrator(chat_client).generate_week(week_start=WEEK_START, targets=TARGETS)
    )

    assert FULL_DAY in chat_client.prompts[0]
    assert all(WITHOUT_BREAKFAST in prompt for prompt in chat_client.prompts[1:4])
    assert all(FULL_DAY in prompt for prompt in chat_client.prompts[4:])
    first_breakfast = plan.days[0].meals[0]
    for day in plan.days[1:4]:
        breakfast = day.meal(MealType.BREAKFAST)
        assert breakfast is not None
        assert breakfast.id == f"breakfast-{day.date.isoformat()}"
        assert breakfast.totals == first_breakfast.totals


def test_fully_locked_day_is_carried_without_generation() -> None:
    previous_day = make_day(date(2025, 2, 24), 1900, 140, 190, 62, locked=True)
    previous_week = WeeklyPlan(week_start_date=date(2025, 2, 24), days=(previous_day,))
    chat_client = MenuChatClient()

    plan = asyncio.run(
        _orchestrator(chat_client).generate_week(
            week_start=WEEK_START, targets=TARGETS, previous_week=previous_week
        )
    )

    first = plan.days[0]
    assert chat_client.plan_requests == 6
    assert all(FULL_DAY in prompt for prompt in chat_client.prompts)
    assert [meal.items[0].calories for meal in first.meals] == [
        meal.items[0].calories for meal in previous_day.meals
    ]
    assert all(meal.locked for meal in first.meals)
    assert first.meals[0].id == "breakfast-2025-03-03"
    assert first.meals[0].items[0].id == "breakfast-2025-03-03-0"


def test_locked_meal_is_kept_and_budget_shrinks() -> None:
    source = make_day(date(2025, 2, 26), 2000, 150, 200, 65)
    locked_lunch = replace(source.meals[1], locked=True)
    previous_day = replace(source, meals=(locked_lunch,))
    previous_week = WeeklyPlan(
        week_start_date=date(2025, 2, 24),
        days=(make_day(date(2025, 2, 24), 2000, 150, 200, 65),) * 2 + (previous_day,),
    )
    chat_client = MenuChatClient()

    plan = asyncio.run(
        _orchestrator(chat_client).generate_week(
            week_start=WEEK_START, targets=TARGETS, previous_week=previous_week
        )
    )

    assert "Meals to plan: dinner, snack." in chat_client.prompts[2]
    assert "Combined target: 1000 kcal" in chat_client.prompts[2]
    lunch = plan.days[2].meal(MealType.LUNCH)
    assert isinstance(lunch, Meal)
    assert lunch.locked
    assert lunch.totals == locked_lunch.totals
    assert plan.days[2].meal_types() == MEAL_ORDER


def test_out_of_range_days_are_scaled() -> None:
    chat_client = MenuChatClient(ratio=0.7)
    tracker = ProgressTracker()

    plan = asyncio.run(
        _orchestrator(chat_client).generate_week(
            week_start=WEEK_START, targets=TARGETS, tracker=tracker
        )
    )

    assert chat_client.plan_requests == 7
    assert tracker.snapshot().days_fixed_by_scaling == 7
    assert all(is_within_tolerance(day.totals, TARGETS, 20) for day in plan.days)


def test_precision_mode_reprices_items() -> None:
    chat_client = MenuChatClient()

    plan = asyncio.run(
        _orchestrator(chat_client).generate_week(
            week_start=WEEK_START,
            targets=TARGETS,
            config=PlanConfig.from_preset("precision"),
        )
    )

    item = plan.days[4].meals[1].items[0]
    assert item.calories == 330
    assert item.protein_g == 62


def test_cancel_before_start_raises_and_marks_error() -> None:
    chat_client = MenuChatClient()
    tracker = ProgressTracker()
    cancel_event = threading.Event()
    cancel_event.set()

    with pytest.raises(GenerationCancelledError):
        asyncio.run(
            _orchestrator(chat_client).generate_week(
                week_start=WEEK_START,
                targets=TARGETS,
                tracker=tracker,
                cancel_event=cancel_event,
            )
        )

    assert chat_client.plan_requests == 0
    assert tracker.phase == GenerationPhase.ERROR


def test_cancel_mid_batch_stops_before_next_day() -> None:
    chat_client = CancellingChatClient(cancel_after=2)
    metrics = MetricsAggregator()

    with pytest.raises(GenerationCancelledError):
        asyncio.run(
            _orchestrator(chat_client, metrics).generate_week(
                week_start=WEEK_START,
                targets=TARGETS,
                cancel_event=chat_client.cancel_event,
            )
        )

    assert chat_client.plan_requests == 2
    assert metrics.snapshot().total_weeks_generated == 0


def test_day_without_any_plan_fails_the_week() -> None:
    chat_client = BrokenChatClient()
    tracker = ProgressTracker()

    with pytest.raises(GenerationFailedError):
        asyncio.run(
            _orchestrator(chat_client).generate_week(
                week_start=WEEK_START, targets=TARGETS, tracker=tracker
            )
        )

    snapshot = tracker.snapshot()
    assert snapshot.phase == GenerationPhase.ERROR
    assert snapshot.error
    assert chat_client.calls == 8
