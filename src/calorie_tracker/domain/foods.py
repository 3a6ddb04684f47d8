"""Domain models for food database lookups."""

from dataclasses import dataclass

from calorie_tracker.domain.nutrition import FoodCategory, MacroTotals


@dataclass(frozen=True)
class FoodSummary:
    """Search hit from USDA FoodData Central."""

    fdc_id: int
    description: str
    brand_owner: str | None
    brand_name: str | None
    data_type: str | None
    food_category: str | None = None


@dataclass(frozen=True)
class FoodDetails:
    """Full food details with macros per serving basis."""

    summary: FoodSummary
    macros: MacroTotals
    serving_size: float | None
    serving_size_unit: str | None
    category: FoodCategory
    ingredients: str | None = None
