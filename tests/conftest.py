"""Shared test fixtures."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest

from calorie_tracker.adapters.fdc_client import FdcClient
from calorie_tracker.adapters.key_value_storage import InMemoryKeyValueStorage
from calorie_tracker.adapters.nutrition_api_client import NutritionApiClient
from calorie_tracker.adapters.open_food_facts_client import OpenFoodFactsClient
from calorie_tracker.config import Settings
from calorie_tracker.containers import AppContainer
from calorie_tracker.domain.nutrition import (
    FoodCategory,
    FoodItem,
    MealEntry,
    MealType,
    NutritionDocument,
    NutritionGoals,
)
from calorie_tracker.domain.sync import FetchResult
from calorie_tracker.services.barcodes import BarcodeLookupService
from calorie_tracker.services.cache import PersistentCache
from calorie_tracker.services.food_analysis import (
    FoodAnalysisClient,
    FoodAnalysisService,
)
from calorie_tracker.services.foods import FoodSearchService
from calorie_tracker.services.nutrition_documents import (
    NutritionDocumentRepository,
    NutritionDocumentService,
)
from calorie_tracker.services.nutrition_store import NutritionStore
from calorie_tracker.services.stats import StatsService
from calorie_tracker.services.toasts import ToastQueue

START = datetime(2024, 1, 1, 9, 0, tzinfo=UTC)


@dataclass
class FakeClock:
    """Clock that only moves when told to."""

    now: datetime = START

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@dataclass
class _ManualTimer:
    due: float
    callback: Callable[[], None]
    interval: float | None = None
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class ManualScheduler:
    """Scheduler driven by virtual time for deterministic timer tests."""

    time: float = 0.0
    timers: list[_ManualTimer] = field(default_factory=list)

    def call_later(self, delay: float, callback: Callable[[], None]) -> _ManualTimer:
        timer = _ManualTimer(due=self.time + delay, callback=callback)
        self.timers.append(timer)
        return timer

    def call_every(self, interval: float, callback: Callable[[], None]) -> _ManualTimer:
        timer = _ManualTimer(
            due=self.time + interval, callback=callback, interval=interval
        )
        self.timers.append(timer)
        return timer

    def advance(self, seconds: float) -> None:
        target = self.time + seconds
        while True:
            pending = [
                t for t in self.timers if not t.cancelled and t.due <= target
            ]
            if not pending:
                break
            timer = min(pending, key=lambda t: t.due)
            self.time = timer.due
            if timer.interval is None:
                self.timers.remove(timer)
            else:
                timer.due += timer.interval
            timer.callback()
        self.time = target

    @property
    def pending(self) -> list[_ManualTimer]:
        return [t for t in self.timers if not t.cancelled]


@dataclass
class FakeNutritionApiClient(NutritionApiClient):
    """Fake nutrition API that records calls and replays queued results."""

    results: list[FetchResult | Exception] = field(default_factory=list)
    gate: asyncio.Event | None = None
    save_gate: asyncio.Event | None = None
    fetches: list[tuple[str, datetime | None]] = field(default_factory=list)
    saved: list[NutritionDocument] = field(default_factory=list)
    goals: list[NutritionGoals] = field(default_factory=list)
    water: list[tuple[str, float]] = field(default_factory=list)
    save_time: datetime = START

    async def fetch(self, user_id: str, last_sync: datetime | None) -> FetchResult:
        self.fetches.append((user_id, last_sync))
        if self.gate is not None:
            await self.gate.wait()
        if self.results:
            result = self.results.pop(0)
            if isinstance(result, Exception):
                raise result
            return result
        return FetchResult(has_updates=False, last_sync=last_sync)

    async def save(self, user_id: str, document: NutritionDocument) -> datetime | None:
        self.saved.append(document)
        if self.save_gate is not None:
            await self.save_gate.wait()
        return self.save_time

    async def update_goals(self, user_id: str, goals: NutritionGoals) -> None:
        self.goals.append(goals)

    async def add_water(self, user_id: str, day: str, amount_ml: float) -> None:
        self.water.append((day, amount_ml))


@dataclass
class FakeFdcClient(FdcClient):
    """Fake FDC client with in-memory responses."""

    search_calls: int = 0
    food_calls: int = 0
    search_requests: list[tuple[int, int, list[str] | None]] = field(
        default_factory=list
    )
    search_payload: dict[str, object] = field(
        default_factory=lambda: {
            "foods": [
                {
                    "fdcId": 171077,
                    "description": "Chicken, broilers or fryers, breast, roasted",
                    "dataType": "SR Legacy",
                    "foodCategory": "Poultry Products",
                }
            ]
        }
    )
    food_payload: dict[str, object] = field(
        default_factory=lambda: {
            "fdcId": 171077,
            "description": "Chicken, broilers or fryers, breast, roasted",
            "dataType": "SR Legacy",
            "foodCategory": {"description": "Poultry Products"},
            "foodNutrients": [
                {"nutrient": {"id": 1008, "name": "Energy"}, "amount": 165},
                {"nutrient": {"id": 1003, "name": "Protein"}, "amount": 31},
                {
                    "nutrient": {"id": 1004, "name": "Total lipid (fat)"},
                    "amount": 3.6,
                },
                {
                    "nutrient": {"id": 1005, "name": "Carbohydrate, by difference"},
                    "amount": 0,
                },
            ],
        }
    )

    async def search_foods(
        self,
        query: str,
        page_size: int = 10,
        page_number: int = 1,
        data_types: list[str] | None = None,
    ) -> dict[str, object]:
        self.search_calls += 1
        self.search_requests.append((page_size, page_number, data_types))
        return self.search_payload

    async def get_food(self, fdc_id: int) -> dict[str, object]:
        self.food_calls += 1
        return self.food_payload


@dataclass
class FakeOpenFoodFactsClient(OpenFoodFactsClient):
    """Fake Open Food Facts client keyed by barcode."""

    calls: list[str] = field(default_factory=list)
    products: dict[str, dict[str, object]] = field(
        default_factory=lambda: {
            "8851959131012": {
                "product_name": "Coca-Cola",
                "brands": "Coca-Cola",
                "serving_size": "325 ml",
                "categories_tags": ["en:beverages", "en:sodas"],
                "nutriments": {
                    "energy-kcal_100g": 42,
                    "proteins_100g": 0,
                    "fat_100g": 0,
                    "carbohydrates_100g": 10.6,
                },
            }
        }
    )

    async def get_product(self, barcode: str) -> dict[str, object]:
        self.calls.append(barcode)
        product = self.products.get(barcode)
        if product is None:
            return {"status": 0, "code": barcode}
        return {"status": 1, "code": barcode, "product": product}


@dataclass
class FakeFoodAnalysisClient(FoodAnalysisClient):
    """Fake analysis client returning a fixed dish."""

    calls: list[dict[str, object]] = field(default_factory=list)
    payload: dict[str, object] = field(
        default_factory=lambda: {
            "food_name": "Pad Thai",
            "description": "Rice noodles with shrimp, egg and peanuts",
            "nutritional_info": {
                "calories": 450,
                "protein": 18,
                "fat": 16,
                "carbs": 58,
                "serving_size": "1 plate (250 g)",
            },
            "category": "grain",
        }
    )

    async def analyze_image(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        image_bytes: bytes,
        schema: dict[str, object],
        prompt: str,
    ) -> dict[str, object]:
        self.calls.append({"model": model, "image_bytes": image_bytes})
        return self.payload


@dataclass
class InMemoryNutritionDocumentRepository(NutritionDocumentRepository):
    """In-memory nutrition document repository for tests."""

    documents: dict[str, NutritionDocument] = field(default_factory=dict)

    def get_document(self, user_id: str) -> NutritionDocument | None:
        return self.documents.get(user_id)

    def save_document(self, user_id: str, document: NutritionDocument) -> None:
        self.documents[user_id] = document


def make_food(  # noqa: PLR0913
    name: str = "Rice",
    calories: float = 100,
    protein: float = 10,
    carbs: float = 5,
    fat: float = 2,
    food_id: str = "food-1",
) -> FoodItem:
    return FoodItem(
        id=food_id,
        name=name,
        calories=calories,
        protein=protein,
        fat=fat,
        carbs=carbs,
        serving_size="1 cup",
        category=FoodCategory.GRAIN,
    )


def make_meal(
    day: str = "2024-01-01",
    quantity: float = 1,
    meal_id: str = "",
    food: FoodItem | None = None,
) -> MealEntry:
    return MealEntry(
        id=meal_id,
        food_item=food or make_food(),
        quantity=quantity,
        meal_type=MealType.LUNCH,
        date=day,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        api_token="api-token",
        supabase_url="https://example.supabase.co",
        supabase_service_key="service-key",
        openai_api_key="openai-key",
        fdc_api_key="fdc-key",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def storage() -> InMemoryKeyValueStorage:
    return InMemoryKeyValueStorage()


@pytest.fixture
def toasts(scheduler: ManualScheduler) -> ToastQueue:
    return ToastQueue(scheduler)


@pytest.fixture
def store(
    storage: InMemoryKeyValueStorage, toasts: ToastQueue, clock: FakeClock
) -> NutritionStore:
    ids = iter(f"id-{n}" for n in range(1, 1000))
    return NutritionStore(
        storage, notifier=toasts, clock=clock, id_factory=lambda: next(ids)
    )


@pytest.fixture
def container(settings: Settings, clock: FakeClock) -> AppContainer:
    document_service = NutritionDocumentService(
        InMemoryNutritionDocumentRepository(), clock=clock
    )
    food_cache = PersistentCache(InMemoryKeyValueStorage(), clock=clock)
    food_search_service = FoodSearchService(
        fdc_client=FakeFdcClient(),
        cache=food_cache,
        retry_delay_seconds=0,
    )
    food_analysis_service = FoodAnalysisService(
        client=FakeFoodAnalysisClient(),
        model="gpt-4.1-mini",
        reasoning_effort=None,
        store=False,
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        document_service=document_service,
        food_search_service=food_search_service,
        food_analysis_service=food_analysis_service,
        barcode_service=BarcodeLookupService(
            client=FakeOpenFoodFactsClient(), cache=food_cache
        ),
        stats_service=StatsService(document_service, clock=clock),
        close_resources=close_resources,
    )
