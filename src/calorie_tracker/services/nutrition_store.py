"""Daily nutrition aggregator with local persistence."""

import json
import logging
import math
from collections.abc import Callable
from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from calorie_tracker.adapters.key_value_storage import KeyValueStorage
from calorie_tracker.api.schemas import NutritionDocumentModel
from calorie_tracker.domain.nutrition import (
    DailyLog,
    FoodCategory,
    FoodItem,
    FoodTemplate,
    MealEntry,
    MealType,
    NutritionDocument,
    NutritionGoals,
    TodayStats,
    WeightEntry,
    compute_totals,
)
from calorie_tracker.domain.sync import MergeOutcome
from calorie_tracker.domain.toasts import ToastVariant
from calorie_tracker.domain.validation import (
    validate_changes,
    validate_day,
    validate_food,
    validate_name,
    validate_positive,
    validate_quantity,
)
from calorie_tracker.errors import StorageQuotaExceededError, ValidationError
from calorie_tracker.services.clock import Clock, utc_now
from calorie_tracker.services.toasts import Notifier

STORAGE_KEY = "nutrition-storage"
RECENT_MEALS_LIMIT = 5
TOAST_DURATION_SECONDS = 3.0
MIN_MOOD = 1
MAX_MOOD = 5
GOAL_COMPLETE_PERCENT = 100

_MESSAGES: dict[str, tuple[str, str | None]] = {
    "meal.added": ("Meal added", "{name} ({calories} kcal) added to your log"),
    "meal.removed": ("Meal removed", "{name} ({calories} kcal) removed from your log"),
    "meal.updated": ("Meal updated", "{name} was updated"),
    "meals.cleared": ("Data cleared", "Meals for {date} were cleared"),
    "mood.saved": ("Mood saved", "Your mood for {date} was recorded"),
    "water.added": ("Water added", "{current} of {goal} mL ({percentage}%)"),
    "water.goal": ("Water goal reached", "You drank your {goal} mL goal today"),
    "water.reset": ("Water reset", "Water intake for {date} was reset"),
    "weight.saved": ("Weight saved", "{weight} kg recorded for {date}"),
    "goals.updated": ("Goals updated", "Your nutrition goals were saved"),
}

_GOAL_FIELDS = {f.name for f in fields(NutritionGoals)} - {"last_modified"}

_logger = logging.getLogger(__name__)


def _new_id() -> str:
    return str(uuid4())


@dataclass
class NutritionStore:
    """Owns the date to DailyLog mapping and is its only writer.

    Every mutation recomputes totals from the full meal list, persists the
    state locally, flags it for the next sync push and shows a toast.
    """

    storage: KeyValueStorage
    notifier: Notifier | None = None
    clock: Clock = utc_now
    id_factory: Callable[[], str] = _new_id
    daily_logs: dict[str, DailyLog] = field(default_factory=dict)
    goals: NutritionGoals = field(default_factory=NutritionGoals)
    food_templates: list[FoodTemplate] = field(default_factory=list)
    weight_history: list[WeightEntry] = field(default_factory=list)
    current_date: str = ""
    dirty: bool = False
    revision: int = 0
    last_synced_at: datetime | None = None

    def __post_init__(self) -> None:
        if not self.current_date:
            self.current_date = self.clock().date().isoformat()

    # Persistence

    def load(self) -> bool:
        """Restore persisted state; returns False when nothing usable is stored."""
        try:
            raw = self.storage.get_item(STORAGE_KEY)
        except OSError:
            _logger.exception("Failed to read persisted nutrition state")
            return False
        if raw is None:
            return False
        try:
            payload = json.loads(raw)
            document = NutritionDocumentModel.model_validate(
                payload["document"]
            ).to_domain()
        except (ValueError, KeyError, TypeError, PydanticValidationError):
            _logger.warning("Ignoring corrupt persisted nutrition state")
            return False
        self.daily_logs = dict(document.daily_logs)
        self.goals = document.goals
        self.food_templates = list(document.food_templates)
        self.weight_history = list(document.weight_history)
        self.current_date = payload.get("currentDate") or self.current_date
        self.dirty = bool(payload.get("dirty", False))
        last_synced = payload.get("lastSyncedAt")
        self.last_synced_at = (
            datetime.fromisoformat(last_synced) if last_synced else None
        )
        return True

    def document(self) -> NutritionDocument:
        """Return the full state as a document for the remote API."""
        return NutritionDocument(
            daily_logs=dict(self.daily_logs),
            goals=self.goals,
            food_templates=list(self.food_templates),
            weight_history=list(self.weight_history),
            updated_at=self.clock(),
        )

    def mark_synced(self, synced_at: datetime, revision: int | None = None) -> None:
        """Clear the dirty flag after a successful push.

        When ``revision`` is given the flag is only cleared if no mutation
        happened after that revision was pushed.
        """
        if revision is None or revision == self.revision:
            self.dirty = False
        else:
            _logger.debug(
                "State changed during push (revision %s, now %s), staying dirty",
                revision,
                self.revision,
            )
        self.last_synced_at = synced_at
        self._persist()

    def _persist(self) -> None:
        payload = {
            "document": NutritionDocumentModel.from_domain(self.document()).to_wire(),
            "currentDate": self.current_date,
            "dirty": self.dirty,
            "lastSyncedAt": (
                self.last_synced_at.isoformat() if self.last_synced_at else None
            ),
        }
        try:
            self.storage.set_item(STORAGE_KEY, json.dumps(payload))
        except (StorageQuotaExceededError, OSError):
            _logger.exception("Failed to persist nutrition state")

    def _mark_dirty(self) -> None:
        self.dirty = True
        self.revision += 1

    def _commit(self, log: DailyLog) -> DailyLog:
        self.daily_logs[log.date] = log
        self._mark_dirty()
        self._persist()
        return log

    def _bucket(self, day: str) -> DailyLog:
        existing = self.daily_logs.get(day)
        if existing is not None:
            return existing
        return DailyLog.empty(day, self.clock())

    def _notify(
        self, key: str, variant: ToastVariant = ToastVariant.DEFAULT, **params: object
    ) -> None:
        if self.notifier is None:
            return
        title, description = _MESSAGES[key]
        self.notifier.push(
            title.format(**params),
            description.format(**params) if description else None,
            variant,
            TOAST_DURATION_SECONDS,
        )

    # Meals

    def add_meal(self, entry: MealEntry) -> DailyLog:
        """Append a meal to its date and recompute that day's totals."""
        day = entry.date or self.current_date
        validate_day(day)
        validate_quantity(entry.quantity)
        validate_food(entry.food_item)
        food_item = entry.food_item
        if food_item.recorded_at is None:
            food_item = replace(food_item, recorded_at=self.clock())
        meal = replace(
            entry, id=entry.id or self.id_factory(), date=day, food_item=food_item
        )
        bucket = self._bucket(day)
        meals = (*bucket.meals, meal)
        log = self._commit(
            replace(
                bucket,
                meals=meals,
                totals=compute_totals(meals),
                last_modified=self.clock(),
            )
        )
        self._notify(
            "meal.added",
            name=food_item.name,
            calories=round(food_item.calories * meal.quantity),
        )
        return log

    def remove_meal(self, meal_id: str) -> MealEntry | None:
        """Remove a meal by id from whichever day holds it."""
        for day, log in self.daily_logs.items():
            for meal in log.meals:
                if meal.id != meal_id:
                    continue
                meals = tuple(m for m in log.meals if m.id != meal_id)
                self._commit(
                    replace(
                        log,
                        meals=meals,
                        totals=compute_totals(meals),
                        last_modified=self.clock(),
                    )
                )
                self._notify(
                    "meal.removed",
                    name=meal.food_item.name,
                    calories=round(meal.food_item.calories * meal.quantity),
                )
                _logger.debug("Removed meal %s from %s", meal_id, day)
                return meal
        return None

    def update_meal_entry(
        self,
        meal_id: str,
        *,
        quantity: float | None = None,
        meal_type: MealType | None = None,
        food_item: FoodItem | None = None,
    ) -> MealEntry | None:
        """Change a logged meal in place and recompute its day's totals."""
        if quantity is not None:
            validate_quantity(quantity)
        if food_item is not None:
            validate_food(food_item)
        for log in self.daily_logs.values():
            for index, meal in enumerate(log.meals):
                if meal.id != meal_id:
                    continue
                updated = replace(
                    meal,
                    quantity=meal.quantity if quantity is None else quantity,
                    meal_type=meal.meal_type if meal_type is None else meal_type,
                    food_item=meal.food_item if food_item is None else food_item,
                )
                meals = (*log.meals[:index], updated, *log.meals[index + 1 :])
                self._commit(
                    replace(
                        log,
                        meals=meals,
                        totals=compute_totals(meals),
                        last_modified=self.clock(),
                    )
                )
                self._notify("meal.updated", name=updated.food_item.name)
                return updated
        return None

    def clear_meals(self, day: str | None = None) -> DailyLog:
        """Empty the meals of one date and zero its totals."""
        target = day or self.current_date
        validate_day(target)
        bucket = self._bucket(target)
        log = self._commit(
            replace(
                bucket,
                meals=(),
                totals=compute_totals(()),
                last_modified=self.clock(),
            )
        )
        self._notify("meals.cleared", date=target)
        return log

    def meals_for_date(self, day: str | None = None) -> list[MealEntry]:
        log = self.daily_logs.get(day or self.current_date)
        return list(log.meals) if log else []

    def recent_meals(self, limit: int = RECENT_MEALS_LIMIT) -> list[MealEntry]:
        """Return meals across all days, newest date first."""
        meals = [meal for log in self.daily_logs.values() for meal in log.meals]
        meals.sort(key=lambda meal: meal.date, reverse=True)
        return meals[:limit]

    def is_day_empty(self, day: str | None = None) -> bool:
        log = self.daily_logs.get(day or self.current_date)
        return log is None or not log.meals

    def set_current_date(self, day: str) -> None:
        validate_day(day)
        self.current_date = day
        self._persist()

    # Mood

    def update_mood(self, day: str, rating: int, note: str | None = None) -> DailyLog:
        """Record a 1-5 mood rating and note without touching meals."""
        validate_day(day)
        if isinstance(rating, bool) or not isinstance(rating, int):
            raise ValidationError("Mood rating must be an integer")
        if not MIN_MOOD <= rating <= MAX_MOOD:
            raise ValidationError(
                f"Mood rating must be between {MIN_MOOD} and {MAX_MOOD}"
            )
        bucket = self._bucket(day)
        log = self._commit(
            replace(bucket, mood_rating=rating, notes=note, last_modified=self.clock())
        )
        self._notify("mood.saved", date=day)
        return log

    def get_mood(self, day: str | None = None) -> tuple[int | None, str | None] | None:
        log = self.daily_logs.get(day or self.current_date)
        if log is None:
            return None
        return log.mood_rating, log.notes

    # Water

    def add_water(self, day: str, amount_ml: float) -> DailyLog:
        """Add water in mL to a date."""
        validate_day(day)
        validate_positive(amount_ml, "Water amount")
        bucket = self._bucket(day)
        log = self._commit(
            replace(
                bucket,
                water_intake=bucket.water_intake + amount_ml,
                last_modified=self.clock(),
            )
        )
        goal = self.goals.water
        percentage = _percent(log.water_intake, goal)
        if percentage >= GOAL_COMPLETE_PERCENT:
            self._notify("water.goal", goal=_format_number(goal))
        else:
            self._notify(
                "water.added",
                current=_format_number(log.water_intake),
                goal=_format_number(goal),
                percentage=percentage,
            )
        return log

    def reset_water(self, day: str) -> DailyLog | None:
        """Zero a date's water intake; no-op for dates without a log."""
        log = self.daily_logs.get(day)
        if log is None:
            return None
        updated = self._commit(
            replace(log, water_intake=0.0, last_modified=self.clock())
        )
        self._notify("water.reset", date=day)
        return updated

    def get_water_intake(self, day: str | None = None) -> float:
        log = self.daily_logs.get(day or self.current_date)
        return log.water_intake if log else 0.0

    # Weight

    def add_weight_entry(self, entry: WeightEntry) -> None:
        """Record weight for a date, replacing any entry for the same date."""
        validate_day(entry.date)
        if entry.weight <= 0:
            raise ValidationError("Weight must be positive")
        history = [e for e in self.weight_history if e.date != entry.date]
        history.append(entry)
        history.sort(key=lambda e: e.date, reverse=True)
        self.weight_history = history
        bucket = self._bucket(entry.date)
        self._commit(
            replace(bucket, weight=entry.weight, last_modified=self.clock())
        )
        self._notify(
            "weight.saved", weight=_format_number(entry.weight), date=entry.date
        )

    def update_weight_entry(
        self, day: str, weight: float, note: str | None = None
    ) -> None:
        self.add_weight_entry(WeightEntry(date=day, weight=weight, note=note))

    def get_weight_entry(self, day: str) -> WeightEntry | None:
        """Return the entry for a date, falling back to the daily log weight."""
        for entry in self.weight_history:
            if entry.date == day:
                return entry
        log = self.daily_logs.get(day)
        if log is not None and log.weight:
            return WeightEntry(date=day, weight=log.weight)
        return None

    def get_weight_entries(self, limit: int | None = None) -> list[WeightEntry]:
        entries = sorted(self.weight_history, key=lambda e: e.date, reverse=True)
        return entries[:limit] if limit else entries

    # Goals

    def update_goals(self, **changes: float | None) -> NutritionGoals:
        """Merge changes into the goals."""
        unknown = set(changes) - _GOAL_FIELDS
        if unknown:
            raise ValidationError(f"Unknown goal fields: {', '.join(sorted(unknown))}")
        for name, value in changes.items():
            if value is not None:
                validate_positive(value, f"Goal {name}")
        self.goals = replace(self.goals, **changes, last_modified=self.clock())
        self._mark_dirty()
        self._persist()
        self._notify("goals.updated")
        return self.goals

    def today_stats(self) -> TodayStats:
        """Totals for the current date with percentages of each goal."""
        log = self.daily_logs.get(self.current_date)
        totals = log.totals if log else compute_totals(())
        water = log.water_intake if log else 0.0
        return TodayStats(
            calories=totals.calories,
            protein=totals.protein,
            carbs=totals.carbs,
            fat=totals.fat,
            water=water,
            percent_calories=_percent(totals.calories, self.goals.calories),
            percent_protein=_percent(totals.protein, self.goals.protein),
            percent_carbs=_percent(totals.carbs, self.goals.carbs),
            percent_fat=_percent(totals.fat, self.goals.fat),
            percent_water=_percent(water, self.goals.water),
        )

    # Food templates

    def add_food_template(self, template: FoodTemplate) -> FoodTemplate:
        validate_name(template.name)
        stored = replace(
            template,
            id=template.id or self.id_factory(),
            created_at=template.created_at or self.clock(),
        )
        self.food_templates.append(stored)
        self._mark_dirty()
        self._persist()
        return stored

    def update_food_template(
        self, template_id: str, **changes: object
    ) -> FoodTemplate | None:
        changes.pop("id", None)
        validate_changes(FoodTemplate, changes, "template")
        for index, template in enumerate(self.food_templates):
            if template.id == template_id:
                updated = replace(template, **changes)
                self.food_templates[index] = updated
                self._mark_dirty()
                self._persist()
                return updated
        return None

    def remove_food_template(self, template_id: str) -> bool:
        remaining = [t for t in self.food_templates if t.id != template_id]
        if len(remaining) == len(self.food_templates):
            return False
        self.food_templates = remaining
        self._mark_dirty()
        self._persist()
        return True

    def create_meal_item_from_template(
        self, template_id: str, **overrides: object
    ) -> FoodItem | None:
        """Build a meal food item copied from a saved template."""
        template = next((t for t in self.food_templates if t.id == template_id), None)
        if template is None:
            return None
        item = FoodItem(
            id=self.id_factory(),
            name=template.name,
            calories=template.calories,
            protein=template.protein,
            fat=template.fat,
            carbs=template.carbs,
            serving_size=template.serving_size,
            category=template.category,
            usda_id=template.usda_id,
            brand_name=template.brand_name,
            ingredients=template.ingredients,
            template_id=template.id,
            recorded_at=self.clock(),
        )
        if not overrides:
            return item
        validate_changes(item, overrides, "food item")
        return replace(item, **overrides)

    def create_meal_food(  # noqa: PLR0913
        self,
        name: str,
        calories: float,
        protein: float,
        fat: float,
        carbs: float,
        serving_size: str = "",
        category: FoodCategory = FoodCategory.OTHER,
    ) -> FoodItem:
        """Build a meal food item from scratch."""
        item = FoodItem(
            id=self.id_factory(),
            name=name,
            calories=calories,
            protein=protein,
            fat=fat,
            carbs=carbs,
            serving_size=serving_size,
            category=category,
            recorded_at=self.clock(),
        )
        validate_food(item)
        return item

    # Sync

    def merge_remote(self, document: NutritionDocument) -> MergeOutcome:
        """Merge server state per date bucket, last write wins.

        Ties go to the remote copy. Local buckets that are newer, or missing
        on the server, keep the store dirty so the next sync pushes them.
        """
        applied: list[str] = []
        kept: list[str] = []
        for day, remote_log in document.daily_logs.items():
            local_log = self.daily_logs.get(day)
            if local_log is None or remote_log.last_modified >= local_log.last_modified:
                self.daily_logs[day] = remote_log
                applied.append(day)
            else:
                kept.append(day)
        kept.extend(day for day in self.daily_logs if day not in document.daily_logs)

        goals_from_remote = False
        remote_goals = document.goals
        local_stamp = self.goals.last_modified
        if local_stamp is None or (
            remote_goals.last_modified is not None
            and remote_goals.last_modified >= local_stamp
        ):
            self.goals = remote_goals
            goals_from_remote = True

        known_templates = {t.id for t in self.food_templates}
        self.food_templates.extend(
            t for t in document.food_templates if t.id not in known_templates
        )
        known_weights = {e.date for e in self.weight_history}
        missing_weights = [
            e for e in document.weight_history if e.date not in known_weights
        ]
        if missing_weights:
            self.weight_history = sorted(
                [*self.weight_history, *missing_weights],
                key=lambda e: e.date,
                reverse=True,
            )

        if kept or not goals_from_remote:
            self._mark_dirty()
        self._persist()
        return MergeOutcome(
            remote_applied=tuple(applied),
            local_kept=tuple(kept),
            goals_from_remote=goals_from_remote,
        )


def _percent(value: float, goal: float | None) -> int:
    if not goal:
        return 0
    return min(GOAL_COMPLETE_PERCENT, math.floor(value / goal * 100 + 0.5))


def _format_number(value: float) -> str:
    return f"{value:g}"
