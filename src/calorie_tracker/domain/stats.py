"""Domain models for progress statistics and achievements."""

from dataclasses import dataclass
from enum import StrEnum

from calorie_tracker.domain.nutrition import FoodCategory, MealType


class StatsRange(StrEnum):
    """Reporting window ending today."""

    WEEK = "week"
    MONTH = "month"
    THREE_MONTHS = "3months"
    SIX_MONTHS = "6months"
    YEAR = "year"


class AchievementType(StrEnum):
    STREAK = "STREAK"
    CONSISTENCY = "CONSISTENCY"
    WATER = "WATER"
    NUTRITION = "NUTRITION"
    WEIGHT = "WEIGHT"


@dataclass(frozen=True)
class TrendPoint:
    """Calories for one day, or the daily average over a bucket of days."""

    date: str
    calories: float
    goal: float


@dataclass(frozen=True)
class NutrientShare:
    name: str
    value: float
    percentage: int


@dataclass(frozen=True)
class MealTypeSummary:
    """Meal count and average calories per meal for one meal type."""

    meal_type: MealType
    count: int
    avg_calories: float


@dataclass(frozen=True)
class TopFood:
    name: str
    count: int
    calories: float
    category: FoodCategory


@dataclass(frozen=True)
class WeightTracking:
    """Weeks in a row, counting back from today, with a weight logged."""

    consecutive_weeks: int
    logged_days: int


@dataclass(frozen=True)
class Achievement:
    id: str
    title: str
    description: str
    type: AchievementType
    progress: float
    complete: bool


@dataclass(frozen=True)
class HabitMetrics:
    """Streaks and goal counters that drive the achievements."""

    current_streak: int
    meal_consistency_score: int
    water_streak: int
    protein_days_hit: int
    weight_tracking: WeightTracking


@dataclass(frozen=True)
class AchievementSummary:
    achievements: list[Achievement]
    metrics: HabitMetrics
    achievements_completed: int
    total_achievements: int


@dataclass(frozen=True)
class StatsSummary:
    """Aggregated statistics for a reporting window."""

    time_range: StatsRange
    start_date: str
    end_date: str
    metrics: HabitMetrics
    achievements: list[Achievement]
    total_entries: int
    avg_calories: float
    avg_protein: float
    avg_fat: float
    avg_carbs: float
    calorie_trend: list[TrendPoint]
    nutrient_distribution: list[NutrientShare]
    meal_distribution: list[MealTypeSummary]
    top_foods: list[TopFood]
