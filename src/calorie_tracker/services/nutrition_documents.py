"""Server-side storage of each user's nutrition document."""

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Protocol

from calorie_tracker.domain.nutrition import (
    DailyLog,
    MealEntry,
    NutritionDocument,
    NutritionGoals,
    compute_totals,
)
from calorie_tracker.domain.sync import FetchResult
from calorie_tracker.domain.validation import (
    validate_day,
    validate_food,
    validate_positive,
    validate_quantity,
)
from calorie_tracker.errors import ValidationError
from calorie_tracker.services.clock import Clock, utc_now

_logger = logging.getLogger(__name__)


class NutritionDocumentRepository(Protocol):
    """Persistence interface for nutrition documents."""

    def get_document(self, user_id: str) -> NutritionDocument | None:
        """Return the stored document for a user."""

    def save_document(self, user_id: str, document: NutritionDocument) -> None:
        """Insert or replace the document for a user."""


def default_goals(now: datetime) -> NutritionGoals:
    """Goals given to a user the first time their document is created."""
    return NutritionGoals(
        calories=2000,
        protein=120,
        carbs=250,
        fat=65,
        water=2000,
        last_modified=now,
    )


@dataclass
class NutritionDocumentService:
    """Reads and mutates nutrition documents on behalf of API callers."""

    repository: NutritionDocumentRepository
    clock: Clock = utc_now

    def get_document(self, user_id: str) -> NutritionDocument:
        """Return the user's document, creating a default one if absent."""
        document = self.repository.get_document(user_id)
        if document is not None:
            return document
        now = self.clock()
        document = NutritionDocument(goals=default_goals(now), updated_at=now)
        self.repository.save_document(user_id, document)
        _logger.info("Created default nutrition document for user %s", user_id)
        return document

    def fetch(self, user_id: str, last_sync: datetime | None) -> FetchResult:
        """Return the document only when it changed after ``last_sync``."""
        document = self.get_document(user_id)
        updated_at = document.updated_at or self.clock()
        if last_sync is not None and updated_at <= last_sync:
            return FetchResult(has_updates=False, last_sync=updated_at)
        return FetchResult(has_updates=True, last_sync=updated_at, document=document)

    def save(self, user_id: str, document: NutritionDocument) -> datetime:
        """Replace the stored document and stamp it with the server time."""
        current = self.repository.get_document(user_id)
        if (
            current is not None
            and current.updated_at is not None
            and document.updated_at is not None
            and current.updated_at > document.updated_at
        ):
            _logger.warning(
                "Overwriting newer server document for user %s (%s > %s)",
                user_id,
                current.updated_at.isoformat(),
                document.updated_at.isoformat(),
            )
        now = self.clock()
        self.repository.save_document(user_id, replace(document, updated_at=now))
        return now

    def update_goals(self, user_id: str, goals: NutritionGoals) -> NutritionGoals:
        """Replace the user's goals."""
        for name in ("calories", "protein", "carbs", "fat", "water"):
            validate_positive(getattr(goals, name), f"Goal {name}")
        document = self.get_document(user_id)
        now = self.clock()
        stored = replace(goals, last_modified=goals.last_modified or now)
        self.repository.save_document(
            user_id, replace(document, goals=stored, updated_at=now)
        )
        return stored

    def add_water(self, user_id: str, day: str, amount_ml: float) -> DailyLog:
        """Add water in mL to a day, creating the day if needed."""
        validate_day(day)
        validate_positive(amount_ml, "Water amount")
        document = self.get_document(user_id)
        now = self.clock()
        log = document.daily_logs.get(day) or DailyLog.empty(day, now)
        log = replace(log, water_intake=log.water_intake + amount_ml, last_modified=now)
        self._store_log(user_id, document, log, now)
        return log

    def add_meal(self, user_id: str, meal: MealEntry) -> DailyLog:
        """Append a meal to its day and recompute the day's totals."""
        if not meal.id:
            raise ValidationError("Meal id is required")
        validate_day(meal.date)
        validate_quantity(meal.quantity)
        validate_food(meal.food_item)
        document = self.get_document(user_id)
        now = self.clock()
        log = document.daily_logs.get(meal.date) or DailyLog.empty(meal.date, now)
        meals = (*log.meals, meal)
        log = replace(
            log, meals=meals, totals=compute_totals(meals), last_modified=now
        )
        self._store_log(user_id, document, log, now)
        return log

    def remove_meal(self, user_id: str, day: str, meal_id: str) -> DailyLog | None:
        """Remove a meal from a day; returns None when the day has no log."""
        validate_day(day)
        document = self.repository.get_document(user_id)
        if document is None or day not in document.daily_logs:
            return None
        log = document.daily_logs[day]
        meals = tuple(meal for meal in log.meals if meal.id != meal_id)
        if len(meals) == len(log.meals):
            return log
        now = self.clock()
        log = replace(
            log, meals=meals, totals=compute_totals(meals), last_modified=now
        )
        self._store_log(user_id, document, log, now)
        return log

    def _store_log(
        self,
        user_id: str,
        document: NutritionDocument,
        log: DailyLog,
        now: datetime,
    ) -> None:
        daily_logs = {**document.daily_logs, log.date: log}
        self.repository.save_document(
            user_id, replace(document, daily_logs=daily_logs, updated_at=now)
        )
