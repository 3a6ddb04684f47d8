"""Food lookup and image analysis endpoints."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from calorie_tracker.api.dependencies import require_user
from calorie_tracker.api.schemas import (
    AnalyzeFoodRequest,
    ApiEnvelope,
    FoodItemModel,
    FoodSummaryModel,
)
from calorie_tracker.errors import ValidationError
from calorie_tracker.services.food_analysis import suggested_food_item
from calorie_tracker.services.foods import to_food_item

if TYPE_CHECKING:
    from calorie_tracker.containers import AppContainer

router = APIRouter(prefix="/api", tags=["foods"])

_logger = logging.getLogger(__name__)


@router.get("/foods/search", dependencies=[Depends(require_user)])
async def search_foods(
    request: Request,
    q: str,
    limit: int = 5,
    page: int = 1,
    data_type: list[str] | None = Query(default=None, alias="dataType"),
) -> dict[str, object]:
    """Search the USDA food database."""
    container: AppContainer = request.app.state.container
    try:
        foods = await container.food_search_service.search(
            q, limit=limit, page=page, data_types=data_type
        )
    except httpx.HTTPError as exc:
        _logger.warning("Food search failed for %r: %s", q, exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Food database unavailable",
        ) from exc
    summaries = [FoodSummaryModel.from_domain(food).to_wire() for food in foods]
    return ApiEnvelope(success=True, data={"foods": summaries}).to_wire()


@router.get("/foods/barcode/{barcode}", dependencies=[Depends(require_user)])
async def get_food_by_barcode(
    request: Request,
    barcode: str,
) -> dict[str, object]:
    """Return a packaged food looked up by its barcode."""
    container: AppContainer = request.app.state.container
    try:
        food = await container.barcode_service.get_food(barcode)
    except httpx.HTTPError as exc:
        _logger.warning("Barcode lookup failed for %s: %s", barcode, exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Food database unavailable",
        ) from exc
    if food is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Product not found"
        )
    return ApiEnvelope(
        success=True, data={"foodItem": FoodItemModel.from_domain(food).to_wire()}
    ).to_wire()


@router.get("/foods/{fdc_id}", dependencies=[Depends(require_user)])
async def get_food(
    request: Request,
    fdc_id: int,
) -> dict[str, object]:
    """Return a USDA food as a loggable food item."""
    container: AppContainer = request.app.state.container
    try:
        details = await container.food_search_service.get_food(fdc_id)
    except httpx.HTTPStatusError as exc:
        if exc.response.status_code == status.HTTP_404_NOT_FOUND:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Food not found"
            ) from exc
        _logger.warning("Food lookup failed for %s: %s", fdc_id, exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Food database unavailable",
        ) from exc
    except httpx.HTTPError as exc:
        _logger.warning("Food lookup failed for %s: %s", fdc_id, exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Food database unavailable",
        ) from exc
    return ApiEnvelope(
        success=True,
        data={
            "summary": FoodSummaryModel.from_domain(details.summary).to_wire(),
            "foodItem": FoodItemModel.from_domain(to_food_item(details)).to_wire(),
        },
    ).to_wire()


@router.post("/analyze-food", dependencies=[Depends(require_user)])
async def analyze_food(
    request: Request,
    payload: AnalyzeFoodRequest,
) -> dict[str, object]:
    """Estimate nutrition from a food photo."""
    container: AppContainer = request.app.state.container
    try:
        analysis = await container.food_analysis_service.analyze_base64(payload.image)
    except ValidationError:
        raise
    except Exception as exc:
        _logger.exception("Food image analysis failed")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Food analysis failed",
        ) from exc
    return ApiEnvelope(
        success=True,
        data={
            "result": analysis.model_dump(mode="json", by_alias=True),
            "foodItem": FoodItemModel.from_domain(
                suggested_food_item(analysis)
            ).to_wire(),
        },
    ).to_wire()
