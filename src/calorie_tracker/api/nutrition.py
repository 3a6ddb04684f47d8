"""Nutrition document endpoints used by the sync loop."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, status

from calorie_tracker.api.dependencies import require_user
from calorie_tracker.api.schemas import (
    ApiEnvelope,
    DailyLogModel,
    GoalsModel,
    MealEntryModel,
    NutritionDocumentModel,
    WaterUpdate,
    as_utc,
)

if TYPE_CHECKING:
    from calorie_tracker.containers import AppContainer

router = APIRouter(prefix="/api/nutrition", tags=["nutrition"])


@router.get("")
async def get_nutrition(
    request: Request,
    last_sync: str | None = Query(default=None, alias="lastSync"),
    user_id: str = Depends(require_user),
) -> dict[str, object]:
    """Return the document, or only the sync time when nothing changed."""
    container: AppContainer = request.app.state.container
    result = container.document_service.fetch(user_id, _parse_last_sync(last_sync))
    if not result.has_updates or result.document is None:
        return ApiEnvelope(
            success=True, has_updates=False, last_sync=result.last_sync
        ).to_wire()
    data = NutritionDocumentModel.from_domain(result.document).to_wire()
    return ApiEnvelope(success=True, has_updates=True, data=data).to_wire()


@router.post("")
async def save_nutrition(
    request: Request,
    document: NutritionDocumentModel,
    user_id: str = Depends(require_user),
) -> dict[str, object]:
    """Replace the stored document."""
    container: AppContainer = request.app.state.container
    saved_at = container.document_service.save(user_id, document.to_domain())
    return ApiEnvelope(
        success=True, message="Data saved successfully", last_sync=saved_at
    ).to_wire()


@router.put("/goals")
async def update_goals(
    request: Request,
    payload: dict[str, Any] | None = Body(default=None),
    user_id: str = Depends(require_user),
) -> dict[str, object]:
    """Replace the user's goals."""
    container: AppContainer = request.app.state.container
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No goals data provided",
        )
    goals = GoalsModel.model_validate(payload).to_domain()
    stored = container.document_service.update_goals(user_id, goals)
    return ApiEnvelope(
        success=True,
        message="Goals updated successfully",
        data=GoalsModel.from_domain(stored).to_wire(),
    ).to_wire()


@router.put("/water")
async def add_water(
    request: Request,
    update: WaterUpdate,
    user_id: str = Depends(require_user),
) -> dict[str, object]:
    """Add water intake to a day."""
    container: AppContainer = request.app.state.container
    log = container.document_service.add_water(user_id, update.date, update.amount)
    return ApiEnvelope(
        success=True,
        message="Water intake updated",
        data=DailyLogModel.from_domain(log).to_wire(),
    ).to_wire()


@router.post("/meal")
async def add_meal(
    request: Request,
    meal: MealEntryModel,
    user_id: str = Depends(require_user),
) -> dict[str, object]:
    """Append a meal to its day."""
    container: AppContainer = request.app.state.container
    log = container.document_service.add_meal(user_id, meal.to_domain())
    return ApiEnvelope(
        success=True,
        message="Meal added successfully",
        data=DailyLogModel.from_domain(log).to_wire(),
    ).to_wire()


@router.delete("/meal")
async def remove_meal(
    request: Request,
    id: str | None = None,  # noqa: A002
    date: str | None = None,
    user_id: str = Depends(require_user),
) -> dict[str, object]:
    """Remove a meal from a day."""
    container: AppContainer = request.app.state.container
    if not id or not date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Meal ID and date are required",
        )
    log = container.document_service.remove_meal(user_id, date, id)
    if log is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Day log not found"
        )
    return ApiEnvelope(
        success=True,
        message="Meal removed successfully",
        data=DailyLogModel.from_domain(log).to_wire(),
    ).to_wire()


def _parse_last_sync(raw: str | None) -> datetime | None:
    if not raw:
        return None
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid lastSync timestamp",
        ) from exc
    return as_utc(parsed)
