"""Packaged food lookups by barcode against Open Food Facts."""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from uuid import uuid4

from calorie_tracker.adapters.open_food_facts_client import OpenFoodFactsClient
from calorie_tracker.domain.nutrition import FoodCategory, FoodItem
from calorie_tracker.errors import ValidationError
from calorie_tracker.services.cache import Cache

_BARCODE_PATTERN = re.compile(r"^\d{8,14}$")
KJ_PER_KCAL = 4.184
# Bare energy values above this are assumed to be kJ rather than kcal.
_BARE_ENERGY_KJ_THRESHOLD = 400
DEFAULT_CALORIES = 100.0

# Matched as substrings of the product's category tags, in this order.
_CATEGORY_TAGS: tuple[tuple[str, FoodCategory], ...] = (
    ("en:beverages", FoodCategory.BEVERAGE),
    ("en:plant-based-foods-and-beverages", FoodCategory.VEGETABLE),
    ("en:plant-based-foods", FoodCategory.VEGETABLE),
    ("en:fruits", FoodCategory.FRUIT),
    ("en:cereals-and-potatoes", FoodCategory.GRAIN),
    ("en:breads", FoodCategory.GRAIN),
    ("en:dairy", FoodCategory.DAIRY),
    ("en:milk", FoodCategory.DAIRY),
    ("en:yogurts", FoodCategory.DAIRY),
    ("en:meats", FoodCategory.PROTEIN),
    ("en:seafood", FoodCategory.PROTEIN),
    ("en:eggs", FoodCategory.PROTEIN),
    ("en:snacks", FoodCategory.SNACK),
    ("en:desserts", FoodCategory.SNACK),
    ("en:sweet-snacks", FoodCategory.SNACK),
    ("en:salty-snacks", FoodCategory.SNACK),
    ("en:chocolates", FoodCategory.SNACK),
    ("en:cakes", FoodCategory.SNACK),
    ("en:biscuits-and-cakes", FoodCategory.SNACK),
    ("en:candies", FoodCategory.SNACK),
)

_logger = logging.getLogger(__name__)


def _new_id() -> str:
    return str(uuid4())


@dataclass
class BarcodeLookupService:
    """Looks up packaged foods by barcode with cached products."""

    client: OpenFoodFactsClient
    cache: Cache
    ttl_seconds: int = 7 * 24 * 3600
    id_factory: Callable[[], str] = field(default=_new_id)

    async def get_food(self, barcode: str) -> FoodItem | None:
        """Return the product as a loggable food item, or None when unknown."""
        cleaned = barcode.strip()
        if not is_valid_barcode(cleaned):
            raise ValidationError("Invalid barcode")
        cache_key = f"off:product:{cleaned}"
        product = self.cache.get(cache_key)
        if not isinstance(product, dict):
            payload = await self.client.get_product(cleaned)
            product = _found_product(payload)
            if product is None:
                _logger.info("Barcode %s not found", cleaned)
                return None
            self.cache.set(cache_key, product, ttl_seconds=self.ttl_seconds)
            _logger.info("Barcode %s resolved to %r", cleaned, product_name(product))
        return to_food_item(product, self.id_factory())


def is_valid_barcode(barcode: str) -> bool:
    """EAN-8 up to GTIN-14: eight to fourteen digits."""
    return bool(_BARCODE_PATTERN.match(barcode))


def to_food_item(product: dict[str, object], item_id: str) -> FoodItem:
    """Convert an Open Food Facts product into per-100 g food values."""
    nutriments = product.get("nutriments") or {}
    protein = _number(nutriments, "proteins_100g")
    fat = _number(nutriments, "fat_100g")
    carbs = _number(nutriments, "carbohydrates_100g")
    serving = product.get("serving_size") or product.get("quantity") or "100g"
    return FoodItem(
        id=item_id,
        name=product_name(product),
        calories=energy_kcal(nutriments, protein, fat, carbs),
        protein=protein,
        fat=fat,
        carbs=carbs,
        serving_size=str(serving),
        category=map_category_tags(product.get("categories_tags") or []),
        brand_name=product.get("brands") or None,
        ingredients=product.get("ingredients_text") or None,
    )


def product_name(product: dict[str, object]) -> str:
    name = product.get("product_name_th") or product.get("product_name")
    return str(name) if name else "Unknown Product"


def energy_kcal(
    nutriments: dict[str, object], protein: float, fat: float, carbs: float
) -> float:
    """Calories per 100 g from the first usable energy field.

    Falls back to kJ fields, then to an estimate from the macros, and
    finally to a flat default when nothing is known.
    """
    kcal = _number(nutriments, "energy-kcal_100g") or _number(
        nutriments, "energy_kcal_100g"
    )
    if kcal > 0:
        return kcal
    kilojoules = _number(nutriments, "energy-kj_100g") or _number(
        nutriments, "energy_kj_100g"
    )
    if kilojoules > 0:
        return float(round(kilojoules / KJ_PER_KCAL))
    bare = _number(nutriments, "energy_100g") or _number(nutriments, "energy")
    if bare > 0:
        if bare > _BARE_ENERGY_KJ_THRESHOLD:
            return float(round(bare / KJ_PER_KCAL))
        return bare
    estimated = round(protein * 4 + carbs * 4 + fat * 9)
    if estimated > 0:
        return float(estimated)
    return DEFAULT_CALORIES


def map_category_tags(tags: list[str]) -> FoodCategory:
    for tag in tags:
        for prefix, category in _CATEGORY_TAGS:
            if prefix in tag:
                return category
    return FoodCategory.OTHER


def _found_product(payload: dict[str, object]) -> dict[str, object] | None:
    product = payload.get("product")
    if payload.get("status") != 1 or not isinstance(product, dict):
        return None
    if not product.get("nutriments"):
        return None
    return product


def _number(values: dict[str, object], key: str) -> float:
    value = values.get(key)
    if isinstance(value, bool) or not isinstance(value, int | float):
        return 0.0
    return float(value)
