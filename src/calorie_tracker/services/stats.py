"""Progress statistics and achievements computed from a nutrition document."""

import calendar
import logging
from dataclasses import dataclass, replace
from datetime import date, timedelta
from typing import Protocol

from calorie_tracker.domain.nutrition import DailyLog, MealType, NutritionDocument
from calorie_tracker.domain.stats import (
    Achievement,
    AchievementSummary,
    AchievementType,
    HabitMetrics,
    MealTypeSummary,
    NutrientShare,
    StatsRange,
    StatsSummary,
    TopFood,
    TrendPoint,
    WeightTracking,
)
from calorie_tracker.services.clock import Clock, utc_now

_WINDOW_DAYS = {StatsRange.WEEK: 6, StatsRange.MONTH: 29}
_WINDOW_MONTHS = {
    StatsRange.THREE_MONTHS: 3,
    StatsRange.SIX_MONTHS: 6,
    StatsRange.YEAR: 12,
}
# Longer windows report the calorie trend as averages over buckets of days.
_TREND_BUCKET_DAYS = {
    StatsRange.THREE_MONTHS: 7,
    StatsRange.SIX_MONTHS: 7,
    StatsRange.YEAR: 30,
}
_MAIN_MEALS = frozenset({MealType.BREAKFAST, MealType.LUNCH, MealType.DINNER})

GOAL_LOOKBACK_DAYS = 30
WEIGHT_LOOKBACK_WEEKS = 12
STREAK_TARGET_DAYS = 7
HYDRATION_TARGET_DAYS = 7
PROTEIN_TARGET_DAYS = 10
WEIGHT_TARGET_WEEKS = 4
CONSISTENCY_TARGET = 80
TOP_FOODS_LIMIT = 5

_logger = logging.getLogger(__name__)


class NutritionDocumentSource(Protocol):
    """Anything that can load a user's nutrition document."""

    def get_document(self, user_id: str) -> NutritionDocument:
        """Return the user's document."""


@dataclass
class StatsService:
    """Service for computing progress statistics for a user."""

    documents: NutritionDocumentSource
    clock: Clock = utc_now

    def get_stats(
        self, user_id: str, time_range: StatsRange = StatsRange.WEEK
    ) -> StatsSummary:
        """Return statistics for the window ending today."""
        document = self.documents.get_document(user_id)
        return summarize(document, self.clock().date(), time_range)

    def get_achievements(self, user_id: str) -> AchievementSummary:
        """Return achievements measured over the last thirty days."""
        document = self.documents.get_document(user_id)
        today = self.clock().date()
        metrics = habit_metrics(
            document, today - timedelta(days=GOAL_LOOKBACK_DAYS), today
        )
        achievements = build_achievements(metrics)
        return AchievementSummary(
            achievements=achievements,
            metrics=metrics,
            achievements_completed=sum(1 for item in achievements if item.complete),
            total_achievements=len(achievements),
        )


def parse_range(value: str | None) -> StatsRange:
    """Parse a time range name, falling back to a week for unknown names."""
    if not value:
        return StatsRange.WEEK
    try:
        return StatsRange(value)
    except ValueError:
        _logger.info("Unknown stats range %r, using week", value)
        return StatsRange.WEEK


def range_start(today: date, time_range: StatsRange) -> date:
    """First day of the window that ends today."""
    months = _WINDOW_MONTHS.get(time_range)
    if months is not None:
        return months_before(today, months)
    return today - timedelta(days=_WINDOW_DAYS[time_range])


def months_before(day: date, months: int) -> date:
    """Same day of month ``months`` earlier, clamped to the month's length."""
    year, month_index = divmod(day.year * 12 + day.month - 1 - months, 12)
    month = month_index + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def summarize(
    document: NutritionDocument, today: date, time_range: StatsRange
) -> StatsSummary:
    """Aggregate the document over the window ending ``today``."""
    start = range_start(today, time_range)
    days = _days_between(start, today)
    logs = document.daily_logs
    in_range = [logs[day.isoformat()] for day in days if day.isoformat() in logs]
    metrics = habit_metrics(document, start, today)

    total_days = max(len(days), 1)
    calories = sum(log.totals.calories for log in in_range)
    protein = sum(log.totals.protein for log in in_range)
    fat = sum(log.totals.fat for log in in_range)
    carbs = sum(log.totals.carbs for log in in_range)

    return StatsSummary(
        time_range=time_range,
        start_date=start.isoformat(),
        end_date=today.isoformat(),
        metrics=metrics,
        achievements=build_achievements(metrics),
        total_entries=sum(len(log.meals) for log in logs.values()),
        avg_calories=calories / total_days,
        avg_protein=protein / total_days,
        avg_fat=fat / total_days,
        avg_carbs=carbs / total_days,
        calorie_trend=_calorie_trend(logs, days, time_range, document.goals.calories),
        nutrient_distribution=_nutrient_distribution(protein, fat, carbs),
        meal_distribution=_meal_distribution(in_range),
        top_foods=_top_foods(logs),
    )


def habit_metrics(
    document: NutritionDocument, start: date, today: date
) -> HabitMetrics:
    logs = document.daily_logs
    return HabitMetrics(
        current_streak=current_streak(logs, today),
        meal_consistency_score=meal_consistency_score(logs, start, today),
        water_streak=water_goal_streak(logs, today, document.goals.water),
        protein_days_hit=protein_goal_days(logs, today, document.goals.protein),
        weight_tracking=weight_tracking(document, today),
    )


def current_streak(logs: dict[str, DailyLog], today: date) -> int:
    """Consecutive days up to today with a meal or water logged."""
    streak = 0
    day = today
    while True:
        log = logs.get(day.isoformat())
        if log is None or not (log.meals or log.water_intake > 0):
            return streak
        streak += 1
        day -= timedelta(days=1)


def meal_consistency_score(logs: dict[str, DailyLog], start: date, end: date) -> int:
    """Score 0-100: 60 points for days with meals, 40 for days with all three."""
    days = _days_between(start, end)
    if not days:
        return 0
    with_meals = 0
    with_main_meals = 0
    for day in days:
        log = logs.get(day.isoformat())
        if log is None or not log.meals:
            continue
        with_meals += 1
        if _MAIN_MEALS <= {meal.meal_type for meal in log.meals}:
            with_main_meals += 1
    score = round(with_meals / len(days) * 60 + with_main_meals / len(days) * 40)
    return min(100, score)


def water_goal_streak(logs: dict[str, DailyLog], today: date, goal: float) -> int:
    streak = 0
    for offset in range(GOAL_LOOKBACK_DAYS):
        log = logs.get((today - timedelta(days=offset)).isoformat())
        if log is None or log.water_intake < goal:
            break
        streak += 1
    return streak


def protein_goal_days(logs: dict[str, DailyLog], today: date, goal: float) -> int:
    hit = 0
    for offset in range(GOAL_LOOKBACK_DAYS):
        log = logs.get((today - timedelta(days=offset)).isoformat())
        if log is not None and log.totals.protein >= goal:
            hit += 1
    return hit


def weight_tracking(document: NutritionDocument, today: date) -> WeightTracking:
    """Count whole weeks back from today that each have a weight entry."""
    weighed = {
        day for day, log in document.daily_logs.items() if log.weight is not None
    }
    weighed.update(entry.date for entry in document.weight_history)
    weeks = 0
    logged_days = 0
    for week in range(WEIGHT_LOOKBACK_WEEKS):
        week_days = {
            (today - timedelta(days=week * 7 + offset)).isoformat()
            for offset in range(7)
        }
        logged = len(week_days & weighed)
        if not logged:
            break
        weeks += 1
        logged_days += logged
    return WeightTracking(consecutive_weeks=weeks, logged_days=logged_days)


def build_achievements(metrics: HabitMetrics) -> list[Achievement]:
    weeks = metrics.weight_tracking.consecutive_weeks
    return [
        Achievement(
            id="streak",
            title="Current Streak",
            description=f"{metrics.current_streak} days in a row",
            type=AchievementType.STREAK,
            progress=_progress(metrics.current_streak, STREAK_TARGET_DAYS),
            complete=metrics.current_streak >= STREAK_TARGET_DAYS,
        ),
        Achievement(
            id="consistency",
            title="Meal Consistency",
            description="Regularly log all your meals",
            type=AchievementType.CONSISTENCY,
            progress=float(metrics.meal_consistency_score),
            complete=metrics.meal_consistency_score >= CONSISTENCY_TARGET,
        ),
        Achievement(
            id="hydration",
            title="Hydration Master",
            description=f"Reach water goal {HYDRATION_TARGET_DAYS} days in a row",
            type=AchievementType.WATER,
            progress=_progress(metrics.water_streak, HYDRATION_TARGET_DAYS),
            complete=metrics.water_streak >= HYDRATION_TARGET_DAYS,
        ),
        Achievement(
            id="protein",
            title="Protein Champion",
            description=f"Hit protein targets for {PROTEIN_TARGET_DAYS} days",
            type=AchievementType.NUTRITION,
            progress=_progress(metrics.protein_days_hit, PROTEIN_TARGET_DAYS),
            complete=metrics.protein_days_hit >= PROTEIN_TARGET_DAYS,
        ),
        Achievement(
            id="weight",
            title="Weight Tracker",
            description=f"Log weight for {WEIGHT_TARGET_WEEKS} consecutive weeks",
            type=AchievementType.WEIGHT,
            progress=_progress(weeks, WEIGHT_TARGET_WEEKS),
            complete=weeks >= WEIGHT_TARGET_WEEKS,
        ),
    ]


def _progress(value: int, target: int) -> float:
    return min(100.0, value / target * 100)


def _days_between(start: date, end: date) -> list[date]:
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


def _calories_on(logs: dict[str, DailyLog], day: date) -> float:
    log = logs.get(day.isoformat())
    return log.totals.calories if log is not None else 0.0


def _calorie_trend(
    logs: dict[str, DailyLog],
    days: list[date],
    time_range: StatsRange,
    goal: float,
) -> list[TrendPoint]:
    bucket = _TREND_BUCKET_DAYS.get(time_range)
    if bucket is None:
        return [
            TrendPoint(
                date=day.isoformat(), calories=_calories_on(logs, day), goal=goal
            )
            for day in days
        ]
    points = []
    for index in range(0, len(days), bucket):
        chunk = days[index : index + bucket]
        logged = [value for value in (_calories_on(logs, d) for d in chunk) if value]
        average = sum(logged) / len(logged) if logged else 0.0
        points.append(
            TrendPoint(date=chunk[0].isoformat(), calories=round(average), goal=goal)
        )
    return points


def _nutrient_distribution(
    protein: float, fat: float, carbs: float
) -> list[NutrientShare]:
    total = protein + fat + carbs
    shares = []
    for name, value in (("Protein", protein), ("Fat", fat), ("Carbs", carbs)):
        percentage = round(value / total * 100) if total > 0 else 0
        shares.append(NutrientShare(name=name, value=value, percentage=percentage))
    return shares


def _meal_distribution(logs: list[DailyLog]) -> list[MealTypeSummary]:
    counts = dict.fromkeys(MealType, 0)
    calories = dict.fromkeys(MealType, 0.0)
    for log in logs:
        for meal in log.meals:
            counts[meal.meal_type] += 1
            calories[meal.meal_type] += meal.food_item.calories * meal.quantity
    return [
        MealTypeSummary(
            meal_type=meal_type,
            count=counts[meal_type],
            avg_calories=round(calories[meal_type] / counts[meal_type])
            if counts[meal_type]
            else 0,
        )
        for meal_type in MealType
    ]


def _top_foods(logs: dict[str, DailyLog]) -> list[TopFood]:
    """Most frequently logged foods across the whole history."""
    foods: dict[str, TopFood] = {}
    for day in sorted(logs):
        for meal in logs[day].meals:
            name = meal.food_item.name
            current = foods.get(name)
            if current is None:
                foods[name] = TopFood(
                    name=name,
                    count=1,
                    calories=meal.food_item.calories,
                    category=meal.food_item.category,
                )
            else:
                foods[name] = replace(current, count=current.count + 1)
    ranked = sorted(foods.values(), key=lambda food: food.count, reverse=True)
    return ranked[:TOP_FOODS_LIMIT]
