"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from calorie_tracker.adapters.fdc_client import HttpxFdcClient
from calorie_tracker.adapters.key_value_storage import (
    FileKeyValueStorage,
    InMemoryKeyValueStorage,
    KeyValueStorage,
)
from calorie_tracker.adapters.nutrition_api_client import (
    HttpxNutritionApiClient,
    NutritionApiClient,
)
from calorie_tracker.adapters.open_food_facts_client import HttpxOpenFoodFactsClient
from calorie_tracker.adapters.openai_food_client import OpenAIFoodAnalysisClient
from calorie_tracker.adapters.supabase_nutrition_repository import (
    SupabaseNutritionDocumentRepository,
)
from calorie_tracker.config import Settings
from calorie_tracker.domain.sync import AuthStatus
from calorie_tracker.services.auth import SessionProvider
from calorie_tracker.services.barcodes import BarcodeLookupService
from calorie_tracker.services.cache import PersistentCache
from calorie_tracker.services.food_analysis import FoodAnalysisService
from calorie_tracker.services.foods import FoodSearchService
from calorie_tracker.services.nutrition_documents import NutritionDocumentService
from calorie_tracker.services.nutrition_store import NutritionStore
from calorie_tracker.services.scheduling import AsyncioScheduler, Scheduler
from calorie_tracker.services.stats import StatsService
from calorie_tracker.services.sync import SyncService
from calorie_tracker.services.toasts import ToastQueue


@dataclass
class AppContainer:
    """Holds server-wide dependencies."""

    settings: Settings
    document_service: NutritionDocumentService
    food_search_service: FoodSearchService
    food_analysis_service: FoodAnalysisService
    barcode_service: BarcodeLookupService
    stats_service: StatsService
    close_resources: Callable[[], Awaitable[None]]


@dataclass
class TrackerContainer:
    """Holds the client-side tracker core."""

    settings: Settings
    storage: KeyValueStorage
    cache: PersistentCache
    toasts: ToastQueue
    store: NutritionStore
    session: SessionProvider
    sync_service: SyncService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default server dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    document_service = NutritionDocumentService(
        SupabaseNutritionDocumentRepository(supabase_client)
    )
    fdc_client = HttpxFdcClient.create(
        api_key=resolved_settings.fdc_api_key,
        base_url=resolved_settings.fdc_base_url,
    )
    food_cache = PersistentCache(InMemoryKeyValueStorage())
    food_search_service = FoodSearchService(
        fdc_client=fdc_client,
        cache=food_cache,
        search_ttl_seconds=resolved_settings.search_cache_ttl_seconds,
        food_ttl_seconds=resolved_settings.food_cache_ttl_seconds,
    )
    off_client = HttpxOpenFoodFactsClient.create(
        resolved_settings.open_food_facts_base_url
    )
    barcode_service = BarcodeLookupService(
        client=off_client,
        cache=food_cache,
        ttl_seconds=resolved_settings.barcode_cache_ttl_seconds,
    )
    openai_client = OpenAIFoodAnalysisClient.create(
        resolved_settings.openai_api_key,
        image_detail=resolved_settings.openai_image_detail,
    )
    food_analysis_service = FoodAnalysisService(
        client=openai_client,
        model=resolved_settings.openai_model,
        reasoning_effort=resolved_settings.openai_reasoning_effort,
        store=resolved_settings.openai_store,
    )

    async def close_resources() -> None:
        await fdc_client.close()
        await off_client.close()
        await openai_client.close()

    return AppContainer(
        settings=resolved_settings,
        document_service=document_service,
        food_search_service=food_search_service,
        food_analysis_service=food_analysis_service,
        barcode_service=barcode_service,
        stats_service=StatsService(document_service),
        close_resources=close_resources,
    )


def build_tracker(
    settings: Settings | None = None,
    *,
    storage: KeyValueStorage | None = None,
    scheduler: Scheduler | None = None,
    api_client: NutritionApiClient | None = None,
) -> TrackerContainer:
    """Create the client-side tracker with persisted state restored."""
    resolved_settings = settings or Settings()
    resolved_storage = storage or FileKeyValueStorage.open(
        resolved_settings.storage_path,
        quota_bytes=resolved_settings.storage_quota_bytes,
    )
    resolved_scheduler = scheduler or AsyncioScheduler()
    owned_client: HttpxNutritionApiClient | None = None
    if api_client is None:
        owned_client = HttpxNutritionApiClient.create(
            resolved_settings.nutrition_api_base_url, resolved_settings.api_token
        )
        api_client = owned_client
    cache = PersistentCache(resolved_storage)
    cache.clear_expired()
    toasts = ToastQueue(
        resolved_scheduler, default_duration=resolved_settings.toast_duration_seconds
    )
    store = NutritionStore(resolved_storage, notifier=toasts)
    store.load()
    session = SessionProvider()
    sync_service = SyncService(
        store=store,
        client=api_client,
        scheduler=resolved_scheduler,
        interval_seconds=resolved_settings.sync_interval_seconds,
    )
    sync_service.attach(session)

    def handle_sign_out(status: AuthStatus, _: str | None) -> None:
        if status is AuthStatus.UNAUTHENTICATED:
            cache.clear_all()

    session.subscribe(handle_sign_out)

    async def close_resources() -> None:
        await sync_service.close()
        toasts.close()
        if owned_client is not None:
            await owned_client.close()

    return TrackerContainer(
        settings=resolved_settings,
        storage=resolved_storage,
        cache=cache,
        toasts=toasts,
        store=store,
        session=session,
        sync_service=sync_service,
        close_resources=close_resources,
    )
