"""Admin API endpoints with simple token auth."""

from __future__ import annotations

from dataclasses import asdict
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder

from meal_planner.api.schemas import AiToggleRequest, ComparePresetsRequest

if TYPE_CHECKING:
    from meal_planner.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/metrics", dependencies=[Depends(require_admin)])
async def metrics(request: Request) -> dict[str, object]:
    """Return generation quality counters and rates."""
    container: AppContainer = request.app.state.container
    return {
        "metrics": asdict(container.metrics.snapshot()),
        "summary": container.metrics.summary(),
        "violations": container.metrics.quality_violations(container.default_plan_config),
    }


@router.post("/metrics/reset", dependencies=[Depends(require_admin)])
async def reset_metrics(request: Request) -> dict[str, str]:
    """Zero all metrics counters."""
    container: AppContainer = request.app.state.container
    container.metrics.reset()
    return {"status": "ok"}


@router.put("/users/{user_id}/ai", dependencies=[Depends(require_admin)])
async def toggle_ai(user_id: str, body: AiToggleRequest, request: Request) -> dict[str, object]:
    """Switch AI generation on or off for a user."""
    container: AppContainer = request.app.state.container
    await container.quota_guard.set_ai_enabled(user_id, body.enabled)
    return {"user_id": user_id, "ai_enabled": body.enabled}


@router.get("/sessions", dependencies=[Depends(require_admin)])
async def list_sessions(request: Request) -> dict[str, object]:
    """Return weekly generation sessions still held in memory."""
    container: AppContainer = request.app.state.container
    return {
        "sessions": [
            {
                "session_id": session.session_id,
                "user_id": session.user_id,
                "week_start_date": session.week_start_date.isoformat(),
                "created_at": session.created_at.isoformat(),
                "phase": session.tracker.phase.value,
            }
            for session in container.sessions.list_sessions()
        ]
    }


@router.post("/sessions/cleanup", dependencies=[Depends(require_admin)])
async def cleanup_sessions(request: Request, max_age_seconds: int | None = None) -> dict[str, int]:
    """Drop sessions older than the age limit."""
    container: AppContainer = request.app.state.container
    removed = container.sessions.cleanup_older_than(
        max_age_seconds or container.settings.session_max_age_seconds
    )
    return {"removed": removed}


@router.post("/experiments/compare-presets", dependencies=[Depends(require_admin)])
async def compare_presets(body: ComparePresetsRequest, request: Request) -> dict[str, object]:
    """Generate the same week under several presets and report quality."""
    container: AppContainer = request.app.state.container
    results = await container.meal_plan_service.compare_presets(
        user_id=body.user_id,
        week_start=body.week_start_date,
        targets=body.targets.to_domain(),
        presets=body.presets,
        profile=body.profile,
        context=body.context.to_domain(),
    )
    return {
        "results": [
            {
                "preset": result.preset,
                "duration_ms": result.duration_ms,
                "progress": jsonable_encoder(result.progress),
                "plan": jsonable_encoder(result.plan),
            }
            for result in results
        ]
    }
