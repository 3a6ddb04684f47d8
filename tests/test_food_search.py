"""Tests for the food search service."""

import asyncio

import httpx
import pytest

from calorie_tracker.adapters.key_value_storage import InMemoryKeyValueStorage
from calorie_tracker.domain.nutrition import FoodCategory
from calorie_tracker.errors import ValidationError
from calorie_tracker.services.cache import PersistentCache
from calorie_tracker.services.foods import (
    FoodSearchService,
    map_food_category,
    to_food_item,
)
from tests.conftest import FakeClock, FakeFdcClient


def _service(client: FakeFdcClient, clock: FakeClock) -> FoodSearchService:
    return FoodSearchService(
        fdc_client=client,
        cache=PersistentCache(InMemoryKeyValueStorage(), clock=clock),
        retry_delay_seconds=0,
    )


def test_search_uses_cache(clock: FakeClock) -> None:
    client = FakeFdcClient()
    service = _service(client, clock)

    results = asyncio.run(service.search("Chicken", limit=1))
    cached = asyncio.run(service.search("chicken ", limit=1))

    assert results[0].fdc_id == 171077
    assert results[0].food_category == "Poultry Products"
    assert cached == results
    assert client.search_calls == 1


def test_search_pages_and_filters_by_data_type(clock: FakeClock) -> None:
    client = FakeFdcClient()
    service = _service(client, clock)

    asyncio.run(service.search("apple", limit=10, page=2))
    asyncio.run(
        service.search("apple", limit=10, page=2, data_types=["Foundation", "Branded"])
    )
    asyncio.run(
        service.search("apple", limit=10, page=2, data_types=["Branded", "Foundation"])
    )

    assert client.search_requests == [
        (10, 2, None),
        (10, 2, ["Branded", "Foundation"]),
    ]
    with pytest.raises(ValidationError):
        asyncio.run(service.search("apple", page=0))


def test_search_cache_expires(clock: FakeClock) -> None:
    client = FakeFdcClient()
    service = _service(client, clock)

    asyncio.run(service.search("chicken"))
    clock.advance(service.search_ttl_seconds + 1)
    asyncio.run(service.search("chicken"))

    assert client.search_calls == 2


def test_blank_query_returns_nothing(clock: FakeClock) -> None:
    client = FakeFdcClient()

    assert asyncio.run(_service(client, clock).search("   ")) == []
    assert client.search_calls == 0


def test_get_food_returns_macros(clock: FakeClock) -> None:
    client = FakeFdcClient()
    service = _service(client, clock)

    details = asyncio.run(service.get_food(171077))
    asyncio.run(service.get_food(171077))

    assert details.macros.calories == 165
    assert details.macros.protein == 31
    assert details.macros.fat == 3.6
    assert details.category is FoodCategory.PROTEIN
    assert client.food_calls == 1


def test_macros_fall_back_to_nutrient_names(clock: FakeClock) -> None:
    client = FakeFdcClient(
        food_payload={
            "fdcId": 1,
            "description": "Apple juice",
            "servingSize": 240,
            "servingSizeUnit": "ml",
            "foodNutrients": [
                {"nutrientName": "Energy", "value": 110},
                {"nutrientName": "Carbohydrate, by difference", "value": 27},
                {"nutrientName": "Protein", "value": "n/a"},
            ],
        }
    )

    details = asyncio.run(_service(client, clock).get_food(1))
    item = to_food_item(details, item_id="item-1")

    assert details.macros.calories == 110
    assert details.macros.carbs == 27
    assert details.macros.protein == 0
    assert item.serving_size == "240 ml"
    assert item.category is FoodCategory.BEVERAGE
    assert item.id == "item-1"


def test_failed_lookup_is_retried_once(clock: FakeClock) -> None:
    class FlakyFdcClient(FakeFdcClient):
        async def get_food(self, fdc_id: int) -> dict[str, object]:
            self.food_calls += 1
            if self.food_calls == 1:
                raise httpx.ConnectError("offline")
            return self.food_payload

    client = FlakyFdcClient()

    details = asyncio.run(_service(client, clock).get_food(171077))

    assert details.summary.fdc_id == 171077
    assert client.food_calls == 2


def test_persistent_failure_propagates(clock: FakeClock) -> None:
    class DownFdcClient(FakeFdcClient):
        async def search_foods(self, query: str, **_: object) -> dict[str, object]:
            self.search_calls += 1
            raise httpx.ConnectError("offline")

    client = DownFdcClient()

    with pytest.raises(httpx.ConnectError):
        asyncio.run(_service(client, clock).search("rice"))
    assert client.search_calls == 2


@pytest.mark.parametrize(
    ("labels", "expected"),
    [
        (["Beef Products"], FoodCategory.PROTEIN),
        (["Cheese"], FoodCategory.DAIRY),
        (["Breakfast Cereals"], FoodCategory.GRAIN),
        (["Beverages"], FoodCategory.BEVERAGE),
        (["Spices and Herbs"], FoodCategory.OTHER),
    ],
)
def test_map_food_category(labels: list[str], expected: FoodCategory) -> None:
    assert map_food_category(labels) is expected
