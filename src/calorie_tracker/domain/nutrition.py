"""Domain models for daily nutrition tracking."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import StrEnum


class FoodCategory(StrEnum):
    """Fixed set of food categories."""

    PROTEIN = "protein"
    VEGETABLE = "vegetable"
    FRUIT = "fruit"
    GRAIN = "grain"
    DAIRY = "dairy"
    SNACK = "snack"
    BEVERAGE = "beverage"
    OTHER = "other"


class MealType(StrEnum):
    """Meal slot a food was eaten in."""

    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACK = "snack"


@dataclass(frozen=True)
class MacroTotals:
    """Calories and macronutrients in grams."""

    calories: float = 0.0
    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0


@dataclass(frozen=True)
class FoodItem:
    """Nutritional record recorded into a meal entry."""

    id: str
    name: str
    calories: float
    protein: float
    fat: float
    carbs: float
    serving_size: str
    category: FoodCategory = FoodCategory.OTHER
    usda_id: int | None = None
    brand_name: str | None = None
    ingredients: str | None = None
    template_id: str | None = None
    recorded_at: datetime | None = None


@dataclass(frozen=True)
class FoodTemplate:
    """Saved food that meal items can be created from."""

    id: str
    name: str
    calories: float
    protein: float
    fat: float
    carbs: float
    serving_size: str
    category: FoodCategory = FoodCategory.OTHER
    favorite: bool = True
    created_at: datetime | None = None
    usda_id: int | None = None
    brand_name: str | None = None
    ingredients: str | None = None
    data_type: str | None = None
    meal_category: str | None = None


@dataclass(frozen=True)
class MealEntry:
    """One food item logged at a quantity for a date and meal type."""

    id: str
    food_item: FoodItem
    quantity: float
    meal_type: MealType
    date: str


@dataclass(frozen=True)
class DailyLog:
    """Aggregate nutrition record for a single calendar date."""

    date: str
    last_modified: datetime
    meals: tuple[MealEntry, ...] = ()
    totals: MacroTotals = field(default_factory=MacroTotals)
    water_intake: float = 0.0
    mood_rating: int | None = None
    notes: str | None = None
    weight: float | None = None

    @classmethod
    def empty(cls, day: str, now: datetime) -> "DailyLog":
        """Return a zeroed log for a date."""
        return cls(date=day, last_modified=now)


@dataclass(frozen=True)
class WeightEntry:
    """Body weight in kilograms recorded for a date."""

    date: str
    weight: float
    note: str | None = None


@dataclass(frozen=True)
class NutritionGoals:
    """Daily targets; water in mL and weight in kg."""

    calories: float = 2000
    protein: float = 100
    carbs: float = 250
    fat: float = 70
    water: float = 2000
    weight: float | None = 70
    last_modified: datetime | None = None


@dataclass(frozen=True)
class TodayStats:
    """Totals for the current date with progress against goals."""

    calories: float
    protein: float
    carbs: float
    fat: float
    water: float
    percent_calories: int
    percent_protein: int
    percent_carbs: int
    percent_fat: int
    percent_water: int


@dataclass(frozen=True)
class NutritionDocument:
    """Complete nutrition state for one user."""

    daily_logs: dict[str, DailyLog] = field(default_factory=dict)
    goals: NutritionGoals = field(default_factory=NutritionGoals)
    food_templates: list[FoodTemplate] = field(default_factory=list)
    weight_history: list[WeightEntry] = field(default_factory=list)
    updated_at: datetime | None = None


def compute_totals(meals: tuple[MealEntry, ...]) -> MacroTotals:
    """Sum food nutrients times quantity over every meal."""
    calories = protein = carbs = fat = 0.0
    for meal in meals:
        calories += meal.food_item.calories * meal.quantity
        protein += meal.food_item.protein * meal.quantity
        carbs += meal.food_item.carbs * meal.quantity
        fat += meal.food_item.fat * meal.quantity
    return MacroTotals(calories=calories, protein=protein, carbs=carbs, fat=fat)


def parse_day(value: str) -> date:
    """Parse an ISO calendar date string."""
    return date.fromisoformat(value)
