"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Header, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from meal_planner.api.admin import router as admin_router
from meal_planner.api.schemas import (
    DayPlanRequest,
    ParseFoodRequest,
    PlanConfigModel,
    RegenerateMealRequest,
    WeekPlanRequest,
)
from meal_planner.app_logging import configure_logging
from meal_planner.containers import AppContainer
from meal_planner.domain.plan_config import PlanConfig
from meal_planner.errors import PlanningError
from meal_planner.services.sessions import GenerationSession

_STATUS_BY_CODE = {
    "AI_PLAN_INFEASIBLE": status.HTTP_400_BAD_REQUEST,
    "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
    "AI_PARSE_FAILED": status.HTTP_400_BAD_REQUEST,
    "AI_DISABLED_FOR_USER": status.HTTP_403_FORBIDDEN,
    "AI_QUOTA_EXCEEDED": status.HTTP_429_TOO_MANY_REQUESTS,
    "AI_RATE_LIMITED": status.HTTP_429_TOO_MANY_REQUESTS,
    "AI_GENERATION_CANCELLED": 499,
    "AI_PLAN_FAILED": status.HTTP_502_BAD_GATEWAY,
    "AI_TIMEOUT": status.HTTP_504_GATEWAY_TIMEOUT,
}


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)

    @app.exception_handler(PlanningError)
    async def planning_error_handler(_request: Request, exc: PlanningError) -> JSONResponse:
        status_code = _STATUS_BY_CODE.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.warning("Planning request failed: %s %s", exc.code, exc.message)
        headers = None
        retry_after = exc.detail.get("retry_after_seconds")
        if retry_after is not None:
            headers = {"Retry-After": str(retry_after)}
        return JSONResponse(
            status_code=status_code,
            content={"error": jsonable_encoder(exc.to_dict())},
            headers=headers,
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/plans/day")
    async def generate_day(
        body: DayPlanRequest, request: Request, x_user_id: str = Header()
    ) -> dict[str, object]:
        """Generate one day plan."""
        state_container: AppContainer = request.app.state.container
        plan = await state_container.meal_plan_service.generate_day(
            user_id=x_user_id,
            day=body.date,
            targets=body.targets.to_domain(),
            profile=body.profile,
            context=body.context.to_domain(),
            preferences=body.preferences.to_domain() if body.preferences else None,
            config=_plan_config(state_container, body.plan_config),
        )
        return {"data": jsonable_encoder(plan)}

    @app.post("/plans/week")
    async def generate_week(
        body: WeekPlanRequest, request: Request, x_user_id: str = Header()
    ) -> dict[str, object]:
        """Generate a week and return it when finished."""
        state_container: AppContainer = request.app.state.container
        plan = await state_container.meal_plan_service.generate_week(
            user_id=x_user_id,
            week_start=body.week_start_date,
            targets=body.targets.to_domain(),
            profile=body.profile,
            context=body.context.to_domain(),
            preferences=body.preferences.to_domain() if body.preferences else None,
            config=_plan_config(state_container, body.plan_config),
            previous_week=body.previous_week.to_domain() if body.previous_week else None,
        )
        return {"data": jsonable_encoder(plan)}

    @app.post("/plans/week/sessions", status_code=status.HTTP_202_ACCEPTED)
    async def start_week_session(
        body: WeekPlanRequest, request: Request, x_user_id: str = Header()
    ) -> dict[str, object]:
        """Start a background weekly batch and return its session id."""
        state_container: AppContainer = request.app.state.container
        state_container.sessions.cleanup_older_than(
            state_container.settings.session_max_age_seconds
        )
        session = await state_container.meal_plan_service.start_week_generation(
            user_id=x_user_id,
            week_start=body.week_start_date,
            targets=body.targets.to_domain(),
            profile=body.profile,
            context=body.context.to_domain(),
            preferences=body.preferences.to_domain() if body.preferences else None,
            config=_plan_config(state_container, body.plan_config),
            previous_week=body.previous_week.to_domain() if body.previous_week else None,
        )
        return {
            "data": {
                "session_id": session.session_id,
                "week_start_date": session.week_start_date.isoformat(),
            }
        }

    @app.get("/plans/week/sessions/{session_id}")
    async def week_session_status(
        session_id: str, request: Request, x_user_id: str = Header()
    ) -> dict[str, object]:
        """Return progress, and the plan once the batch is complete."""
        state_container: AppContainer = request.app.state.container
        session = _owned_session(state_container, session_id, x_user_id)
        return {"data": _session_payload(session)}

    @app.delete("/plans/week/sessions/{session_id}")
    async def cancel_week_session(
        session_id: str, request: Request, x_user_id: str = Header()
    ) -> dict[str, object]:
        """Cancel a batch before its next day and forget the session."""
        state_container: AppContainer = request.app.state.container
        session = _owned_session(state_container, session_id, x_user_id)
        state_container.meal_plan_service.cancel_week_generation(session.session_id)
        state_container.sessions.remove(session.session_id)
        return {"data": {"session_id": session.session_id, "cancelled": True}}

    @app.post("/plans/day/regenerate-meal")
    async def regenerate_meal(
        body: RegenerateMealRequest, request: Request, x_user_id: str = Header()
    ) -> dict[str, object]:
        """Regenerate one meal of an existing day."""
        state_container: AppContainer = request.app.state.container
        plan = await state_container.meal_plan_service.regenerate_meal(
            user_id=x_user_id,
            day_plan=body.day_plan.to_domain(),
            meal_index=body.meal_index,
            targets=body.targets.to_domain(),
            profile=body.profile,
            context=body.context.to_domain(),
            preferences=body.preferences.to_domain() if body.preferences else None,
        )
        return {"data": jsonable_encoder(plan)}

    @app.post("/foods/parse")
    async def parse_food(
        body: ParseFoodRequest, request: Request, x_user_id: str = Header()
    ) -> dict[str, object]:
        """Parse one free-text food description."""
        state_container: AppContainer = request.app.state.container
        parsed = await state_container.meal_plan_service.parse_food(
            user_id=x_user_id, text=body.text, context=body.context.to_domain()
        )
        return {"data": jsonable_encoder(parsed)}

    @app.get("/quota")
    async def quota(request: Request, x_user_id: str = Header()) -> dict[str, object]:
        """Return remaining generations for today."""
        state_container: AppContainer = request.app.state.container
        quota_status = await state_container.meal_plan_service.quota_status(x_user_id)
        return {"data": jsonable_encoder(quota_status)}

    return app


def _plan_config(
    container: AppContainer, model: PlanConfigModel | None
) -> PlanConfig:
    if model is None:
        return container.default_plan_config
    return model.to_domain(container.default_plan_config)


def _owned_session(
    container: AppContainer, session_id: str, user_id: str
) -> GenerationSession:
    session = container.sessions.get(session_id)
    if session is None or session.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return session


def _session_payload(session: GenerationSession) -> dict[str, object]:
    payload: dict[str, object] = {
        "session_id": session.session_id,
        "week_start_date": session.week_start_date.isoformat(),
        "progress": jsonable_encoder(session.tracker.snapshot()),
        "cancelled": session.cancel_event.is_set(),
    }
    if session.result is not None:
        payload["plan"] = jsonable_encoder(session.result)
    if session.error is not None:
        payload["error"] = jsonable_encoder(session.error.to_dict())
    return payload
