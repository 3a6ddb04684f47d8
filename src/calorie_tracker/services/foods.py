"""Food database lookups against USDA FDC, backed by the persisted cache."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from uuid import uuid4

from calorie_tracker.adapters.fdc_client import FdcClient
from calorie_tracker.domain.foods import FoodDetails, FoodSummary
from calorie_tracker.domain.nutrition import FoodCategory, FoodItem, MacroTotals
from calorie_tracker.errors import ValidationError
from calorie_tracker.services.cache import Cache

_NUTRIENT_IDS = {
    "calories": 1008,
    "protein": 1003,
    "fat": 1004,
    "carbs": 1005,
}
_NUTRIENT_NAMES = {
    "calories": ("energy", "calorie", "kcal"),
    "protein": ("protein",),
    "fat": ("total lipid", "total fat", "fat"),
    "carbs": ("carbohydrate", "carbs"),
}
_CATEGORY_KEYWORDS: tuple[tuple[FoodCategory, tuple[str, ...]], ...] = (
    (
        FoodCategory.PROTEIN,
        ("meat", "seafood", "fish", "chicken", "beef", "pork", "poultry", "egg"),
    ),
    (FoodCategory.VEGETABLE, ("vegetable", "salad", "legume")),
    (FoodCategory.FRUIT, ("fruit", "smoothie")),
    (
        FoodCategory.GRAIN,
        ("grain", "rice", "pasta", "bread", "noodle", "cereal", "baked"),
    ),
    (FoodCategory.DAIRY, ("dairy", "cheese", "milk", "yogurt")),
    (FoodCategory.SNACK, ("snack", "dessert", "cookie", "cake", "sweet", "candy")),
    (FoodCategory.BEVERAGE, ("beverage", "drink", "juice", "coffee", "tea")),
)

_logger = logging.getLogger(__name__)


@dataclass
class FoodSearchService:
    """Searches the food database with cached results."""

    fdc_client: FdcClient
    cache: Cache
    search_ttl_seconds: int = 3600
    food_ttl_seconds: int = 7 * 24 * 3600
    retry_attempts: int = 1
    retry_delay_seconds: float = 0.3

    async def search(
        self,
        query: str,
        limit: int = 5,
        page: int = 1,
        data_types: Sequence[str] | None = None,
    ) -> list[FoodSummary]:
        """Search foods by free text, one page of ``limit`` results at a time.

        ``data_types`` restricts results to FDC data types such as
        ``Foundation`` or ``Branded``.
        """
        cleaned = query.strip()
        if not cleaned:
            return []
        if page < 1:
            raise ValidationError("Page must be at least 1")
        types = sorted(set(data_types or ()))
        cache_key = f"fdc:search:{cleaned.lower()}:{limit}:{page}:{','.join(types)}"
        cached = self.cache.get(cache_key)
        if not isinstance(cached, list):
            payload = await self._call_with_retry(
                lambda: self.fdc_client.search_foods(
                    cleaned,
                    page_size=limit,
                    page_number=page,
                    data_types=types or None,
                ),
                action="search",
            )
            cached = list(payload.get("foods") or [])
            self.cache.set(cache_key, cached, ttl_seconds=self.search_ttl_seconds)
            _logger.info("FDC search: query=%s results=%s", cleaned, len(cached))
        return [_parse_summary(food) for food in cached]

    async def get_food(self, fdc_id: int) -> FoodDetails:
        """Retrieve full food details with macros."""
        cache_key = f"fdc:food:{fdc_id}"
        cached = self.cache.get(cache_key)
        if not isinstance(cached, dict):
            cached = await self._call_with_retry(
                lambda: self.fdc_client.get_food(fdc_id),
                action=f"get_food:{fdc_id}",
            )
            self.cache.set(cache_key, cached, ttl_seconds=self.food_ttl_seconds)
        return _parse_details(cached)

    async def _call_with_retry(
        self, func: Callable[[], Awaitable[dict[str, object]]], *, action: str
    ) -> dict[str, object]:
        """Call an async function with a short retry."""
        attempt = 0
        while True:
            try:
                return await func()
            except Exception as exc:
                attempt += 1
                _logger.warning(
                    "FDC %s failed (attempt %s/%s, status=%s): %s",
                    action,
                    attempt,
                    self.retry_attempts + 1,
                    _status_code_from_exception(exc),
                    exc,
                )
                if attempt > self.retry_attempts:
                    raise
                await asyncio.sleep(self.retry_delay_seconds)


def to_food_item(details: FoodDetails, item_id: str | None = None) -> FoodItem:
    """Convert FDC details into a food item ready to log."""
    serving = ""
    if details.serving_size:
        serving = f"{details.serving_size:g} {details.serving_size_unit or 'g'}"
    brand = details.summary.brand_name or details.summary.brand_owner
    return FoodItem(
        id=item_id or str(uuid4()),
        name=details.summary.description,
        calories=details.macros.calories,
        protein=details.macros.protein,
        fat=details.macros.fat,
        carbs=details.macros.carbs,
        serving_size=serving or "100 g",
        category=details.category,
        usda_id=details.summary.fdc_id,
        brand_name=brand,
        ingredients=details.ingredients,
    )


def map_food_category(labels: list[str]) -> FoodCategory:
    """Map free-form category labels onto the fixed category set."""
    normalized = [label.lower().strip() for label in labels if label]
    for category, keywords in _CATEGORY_KEYWORDS:
        if any(keyword in label for label in normalized for keyword in keywords):
            return category
    return FoodCategory.OTHER


def _parse_summary(food: dict[str, object]) -> FoodSummary:
    return FoodSummary(
        fdc_id=int(food["fdcId"]),
        description=str(food.get("description", "")),
        brand_owner=food.get("brandOwner"),
        brand_name=food.get("brandName"),
        data_type=food.get("dataType"),
        food_category=_category_label(food.get("foodCategory")),
    )


def _parse_details(payload: dict[str, object]) -> FoodDetails:
    summary = _parse_summary(payload)
    serving_size = payload.get("servingSize")
    if not isinstance(serving_size, int | float):
        serving_size = None
    return FoodDetails(
        summary=summary,
        macros=_extract_macros(payload.get("foodNutrients") or []),
        serving_size=float(serving_size) if serving_size is not None else None,
        serving_size_unit=payload.get("servingSizeUnit"),
        category=map_food_category(
            [summary.food_category or "", summary.description]
        ),
        ingredients=payload.get("ingredients"),
    )


def _category_label(value: object) -> str | None:
    if isinstance(value, dict):
        value = value.get("description")
    return str(value) if value else None


def _status_code_from_exception(exc: Exception) -> str:
    """Extract HTTP status code from an exception, if available."""
    response = getattr(exc, "response", None)
    status_code = getattr(response, "status_code", None)
    if isinstance(status_code, int):
        return str(status_code)
    return "n/a"


def _extract_macros(food_nutrients: list[dict[str, object]]) -> MacroTotals:
    """Extract calories, protein, fat, carbs by nutrient id, then by name."""
    by_id: dict[str, float] = {}
    by_name: dict[str, float] = {}
    for nutrient in food_nutrients:
        info = nutrient.get("nutrient") or {}
        nutrient_id = info.get("id") or nutrient.get("nutrientId")
        name = str(info.get("name") or nutrient.get("nutrientName") or "").lower()
        amount = nutrient.get("amount", nutrient.get("value"))
        if not isinstance(amount, int | float):
            continue
        for key, expected_id in _NUTRIENT_IDS.items():
            if nutrient_id == expected_id:
                by_id[key] = float(amount)
            elif key not in by_name and any(n in name for n in _NUTRIENT_NAMES[key]):
                by_name[key] = float(amount)
    values = {key: by_id.get(key, by_name.get(key, 0.0)) for key in _NUTRIENT_IDS}
    return MacroTotals(
        calories=values["calories"],
        protein=values["protein"],
        carbs=values["carbs"],
        fat=values["fat"],
    )
