"""Wire models for the nutrition API, camelCase on the wire."""

from dataclasses import asdict
from datetime import UTC, datetime
from typing import Annotated, Any
from uuid import uuid4

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from calorie_tracker.domain.foods import FoodSummary
from calorie_tracker.domain.nutrition import (
    DailyLog,
    FoodCategory,
    FoodItem,
    FoodTemplate,
    MealEntry,
    MealType,
    NutritionDocument,
    NutritionGoals,
    WeightEntry,
    compute_totals,
)
from calorie_tracker.domain.stats import (
    AchievementSummary,
    AchievementType,
    StatsRange,
    StatsSummary,
)

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


def _new_id() -> str:
    return str(uuid4())


def _coerce_category(value: object) -> object:
    known = {category.value for category in FoodCategory}
    if isinstance(value, str) and value not in known:
        return FoodCategory.OTHER
    return value


class WireModel(BaseModel):
    """Base model accepting either field names or camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, object]:
        """Dump to a JSON-compatible dict using camelCase keys."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class FoodItemModel(WireModel):
    id: str = Field(default_factory=_new_id)
    name: str
    calories: float = 0.0
    protein: float = 0.0
    fat: float = 0.0
    carbs: float = 0.0
    serving_size: str = ""
    category: FoodCategory = FoodCategory.OTHER
    usda_id: int | None = None
    brand_name: str | None = None
    ingredients: str | None = None
    template_id: str | None = None
    recorded_at: UtcDatetime | None = None

    @field_validator("category", mode="before")
    @classmethod
    def coerce_category(cls, value: object) -> object:
        return _coerce_category(value)

    def to_domain(self) -> FoodItem:
        return FoodItem(**self.model_dump())

    @classmethod
    def from_domain(cls, item: FoodItem) -> "FoodItemModel":
        return cls(**asdict(item))


class FoodTemplateModel(WireModel):
    id: str = Field(default_factory=_new_id)
    name: str
    calories: float = 0.0
    protein: float = 0.0
    fat: float = 0.0
    carbs: float = 0.0
    serving_size: str = ""
    category: FoodCategory = FoodCategory.OTHER
    favorite: bool = True
    created_at: UtcDatetime | None = None
    usda_id: int | None = None
    brand_name: str | None = None
    ingredients: str | None = None
    data_type: str | None = None
    meal_category: str | None = None

    @field_validator("category", mode="before")
    @classmethod
    def coerce_category(cls, value: object) -> object:
        return _coerce_category(value)

    def to_domain(self) -> FoodTemplate:
        return FoodTemplate(**self.model_dump())

    @classmethod
    def from_domain(cls, template: FoodTemplate) -> "FoodTemplateModel":
        return cls(**asdict(template))


class MealEntryModel(WireModel):
    id: str = Field(default_factory=_new_id)
    food_item: FoodItemModel
    quantity: float = 1.0
    meal_type: MealType = MealType.SNACK
    date: str

    def to_domain(self) -> MealEntry:
        return MealEntry(
            id=self.id,
            food_item=self.food_item.to_domain(),
            quantity=self.quantity,
            meal_type=self.meal_type,
            date=self.date,
        )

    @classmethod
    def from_domain(cls, meal: MealEntry) -> "MealEntryModel":
        return cls(
            id=meal.id,
            food_item=FoodItemModel.from_domain(meal.food_item),
            quantity=meal.quantity,
            meal_type=meal.meal_type,
            date=meal.date,
        )


class DailyLogModel(WireModel):
    date: str
    meals: list[MealEntryModel] = Field(default_factory=list)
    total_calories: float = 0.0
    total_protein: float = 0.0
    total_fat: float = 0.0
    total_carbs: float = 0.0
    water_intake: float = 0.0
    mood_rating: int | None = None
    notes: str | None = None
    weight: float | None = None
    last_modified: UtcDatetime | None = None

    def to_domain(self) -> DailyLog:
        """Build a log; totals are recomputed from the meals, not trusted."""
        meals = tuple(meal.to_domain() for meal in self.meals)
        return DailyLog(
            date=self.date,
            last_modified=self.last_modified or EPOCH,
            meals=meals,
            totals=compute_totals(meals),
            water_intake=self.water_intake,
            mood_rating=self.mood_rating,
            notes=self.notes,
            weight=self.weight,
        )

    @classmethod
    def from_domain(cls, log: DailyLog) -> "DailyLogModel":
        return cls(
            date=log.date,
            meals=[MealEntryModel.from_domain(meal) for meal in log.meals],
            total_calories=log.totals.calories,
            total_protein=log.totals.protein,
            total_fat=log.totals.fat,
            total_carbs=log.totals.carbs,
            water_intake=log.water_intake,
            mood_rating=log.mood_rating,
            notes=log.notes,
            weight=log.weight,
            last_modified=log.last_modified,
        )


class GoalsModel(WireModel):
    calories: float = 2000
    protein: float = 100
    carbs: float = 250
    fat: float = 70
    water: float = 2000
    weight: float | None = 70
    last_modified: UtcDatetime | None = None

    def to_domain(self) -> NutritionGoals:
        return NutritionGoals(**self.model_dump())

    @classmethod
    def from_domain(cls, goals: NutritionGoals) -> "GoalsModel":
        return cls(**asdict(goals))


class WeightEntryModel(WireModel):
    date: str
    weight: float
    note: str | None = None

    def to_domain(self) -> WeightEntry:
        return WeightEntry(date=self.date, weight=self.weight, note=self.note)

    @classmethod
    def from_domain(cls, entry: WeightEntry) -> "WeightEntryModel":
        return cls(date=entry.date, weight=entry.weight, note=entry.note)


class NutritionDocumentModel(WireModel):
    daily_logs: dict[str, DailyLogModel] = Field(default_factory=dict)
    goals: GoalsModel = Field(default_factory=GoalsModel)
    favorite_foods: list[FoodTemplateModel] = Field(default_factory=list)
    weight_history: list[WeightEntryModel] = Field(default_factory=list)
    updated_at: UtcDatetime | None = None

    def to_domain(self) -> NutritionDocument:
        return NutritionDocument(
            daily_logs={day: log.to_domain() for day, log in self.daily_logs.items()},
            goals=self.goals.to_domain(),
            food_templates=[food.to_domain() for food in self.favorite_foods],
            weight_history=[entry.to_domain() for entry in self.weight_history],
            updated_at=self.updated_at,
        )

    @classmethod
    def from_domain(cls, document: NutritionDocument) -> "NutritionDocumentModel":
        return cls(
            daily_logs={
                day: DailyLogModel.from_domain(log)
                for day, log in document.daily_logs.items()
            },
            goals=GoalsModel.from_domain(document.goals),
            favorite_foods=[
                FoodTemplateModel.from_domain(food) for food in document.food_templates
            ],
            weight_history=[
                WeightEntryModel.from_domain(entry) for entry in document.weight_history
            ],
            updated_at=document.updated_at,
        )


class ApiEnvelope(WireModel):
    """Response body shared by every nutrition endpoint."""

    success: bool
    message: str | None = None
    error: str | None = None
    data: dict[str, Any] | None = None
    has_updates: bool | None = None
    last_sync: UtcDatetime | None = None


class WaterUpdate(WireModel):
    date: str
    amount: float


class AnalyzeFoodRequest(WireModel):
    """Image as a data URL or raw base64 string."""

    image: str


class FoodSummaryModel(WireModel):
    fdc_id: int
    description: str
    brand_owner: str | None = None
    brand_name: str | None = None
    data_type: str | None = None
    food_category: str | None = None

    @classmethod
    def from_domain(cls, summary: FoodSummary) -> "FoodSummaryModel":
        return cls(**asdict(summary))


class WeightTrackingModel(WireModel):
    consecutive_weeks: int
    logged_days: int


class HabitMetricsModel(WireModel):
    current_streak: int
    meal_consistency_score: int
    water_streak: int
    protein_days_hit: int
    weight_tracking: WeightTrackingModel


class AchievementModel(WireModel):
    id: str
    title: str
    description: str
    type: AchievementType
    progress: float
    complete: bool


class TrendPointModel(WireModel):
    date: str
    calories: float
    goal: float


class NutrientShareModel(WireModel):
    name: str
    value: float
    percentage: int


class MealTypeSummaryModel(WireModel):
    meal_type: MealType
    count: int
    avg_calories: float


class TopFoodModel(WireModel):
    name: str
    count: int
    calories: float
    category: FoodCategory


class StatsSummaryModel(WireModel):
    """Statistics for one reporting window."""

    time_range: StatsRange
    start_date: str
    end_date: str
    metrics: HabitMetricsModel
    achievements: list[AchievementModel]
    total_entries: int
    avg_calories: float
    avg_protein: float
    avg_fat: float
    avg_carbs: float
    calorie_trend: list[TrendPointModel]
    nutrient_distribution: list[NutrientShareModel]
    meal_distribution: list[MealTypeSummaryModel]
    top_foods: list[TopFoodModel]

    @classmethod
    def from_domain(cls, summary: StatsSummary) -> "StatsSummaryModel":
        return cls.model_validate(asdict(summary))


class AchievementSummaryModel(WireModel):
    achievements: list[AchievementModel]
    metrics: HabitMetricsModel
    achievements_completed: int
    total_achievements: int

    @classmethod
    def from_domain(cls, summary: AchievementSummary) -> "AchievementSummaryModel":
        return cls.model_validate(asdict(summary))
