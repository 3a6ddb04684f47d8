"""Input checks shared by client and server mutations."""

import math
from dataclasses import fields

from calorie_tracker.domain.nutrition import FoodItem, parse_day
from calorie_tracker.errors import ValidationError


def validate_day(day: str) -> None:
    try:
        parse_day(day)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid ISO date: {day!r}") from exc


def validate_positive(value: float, label: str) -> None:
    """Reject non-numbers, NaN, infinities and values <= 0."""
    if (
        isinstance(value, bool)
        or not isinstance(value, int | float)
        or not math.isfinite(value)
    ):
        raise ValidationError(f"{label} must be a number")
    if value <= 0:
        raise ValidationError(f"{label} must be positive")


def validate_quantity(quantity: float) -> None:
    validate_positive(quantity, "Quantity")


def validate_name(name: str) -> None:
    if not name or not name.strip():
        raise ValidationError("Food name is required")


def validate_food(food: FoodItem) -> None:
    validate_name(food.name)
    for nutrient in ("calories", "protein", "fat", "carbs"):
        if getattr(food, nutrient) < 0:
            raise ValidationError(f"Food {nutrient} cannot be negative")


def validate_changes(
    target: type | object, changes: dict[str, object], label: str
) -> None:
    """Reject keyword changes that do not name a dataclass field of ``target``."""
    unknown = set(changes) - {f.name for f in fields(target)}
    if unknown:
        raise ValidationError(f"Unknown {label} fields: {', '.join(sorted(unknown))}")
