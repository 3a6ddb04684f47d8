"""Progress statistics endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Query, Request

from calorie_tracker.api.dependencies import require_user
from calorie_tracker.api.schemas import (
    AchievementSummaryModel,
    ApiEnvelope,
    StatsSummaryModel,
)
from calorie_tracker.services.stats import parse_range

if TYPE_CHECKING:
    from calorie_tracker.containers import AppContainer

router = APIRouter(prefix="/api/stats", tags=["stats"])


@router.get("")
async def get_stats(
    request: Request,
    time_range: str | None = Query(default=None, alias="timeRange"),
    user_id: str = Depends(require_user),
) -> dict[str, object]:
    """Return statistics for the week, month, 3months, 6months or year."""
    container: AppContainer = request.app.state.container
    summary = container.stats_service.get_stats(user_id, parse_range(time_range))
    data = StatsSummaryModel.from_domain(summary).to_wire()
    return ApiEnvelope(success=True, data=data).to_wire()


@router.get("/achievements")
async def get_achievements(
    request: Request,
    user_id: str = Depends(require_user),
) -> dict[str, object]:
    """Return achievement progress over the last thirty days."""
    container: AppContainer = request.app.state.container
    summary = container.stats_service.get_achievements(user_id)
    data = AchievementSummaryModel.from_domain(summary).to_wire()
    return ApiEnvelope(success=True, data=data).to_wire()
