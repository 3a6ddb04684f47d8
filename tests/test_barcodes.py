"""Tests for barcode lookups."""

import asyncio

import pytest

from calorie_tracker.adapters.key_value_storage import InMemoryKeyValueStorage
from calorie_tracker.domain.nutrition import FoodCategory
from calorie_tracker.errors import ValidationError
from calorie_tracker.services.barcodes import (
    BarcodeLookupService,
    energy_kcal,
    is_valid_barcode,
    map_category_tags,
    to_food_item,
)
from calorie_tracker.services.cache import PersistentCache
from tests.conftest import FakeClock, FakeOpenFoodFactsClient

COLA = "8851959131012"


def _service(
    client: FakeOpenFoodFactsClient, clock: FakeClock
) -> BarcodeLookupService:
    return BarcodeLookupService(
        client=client,
        cache=PersistentCache(InMemoryKeyValueStorage(), clock=clock),
        id_factory=lambda: "food-1",
    )


def test_get_food_maps_product_and_caches(clock: FakeClock) -> None:
    client = FakeOpenFoodFactsClient()
    service = _service(client, clock)

    food = asyncio.run(service.get_food(COLA))
    again = asyncio.run(service.get_food(f" {COLA} "))

    assert food is not None
    assert food.id == "food-1"
    assert food.name == "Coca-Cola"
    assert food.calories == 42
    assert food.carbs == 10.6
    assert food.serving_size == "325 ml"
    assert food.category is FoodCategory.BEVERAGE
    assert food.brand_name == "Coca-Cola"
    assert again == food
    assert client.calls == [COLA]


def test_unknown_barcode_returns_none_without_caching(clock: FakeClock) -> None:
    client = FakeOpenFoodFactsClient()
    service = _service(client, clock)

    assert asyncio.run(service.get_food("0000000000000")) is None
    assert asyncio.run(service.get_food("0000000000000")) is None
    assert client.calls == ["0000000000000", "0000000000000"]


def test_product_without_nutriments_is_not_found(clock: FakeClock) -> None:
    client = FakeOpenFoodFactsClient(products={COLA: {"product_name": "Cola"}})

    assert asyncio.run(_service(client, clock).get_food(COLA)) is None


@pytest.mark.parametrize("barcode", ["", "1234567", "123456789012345", "12ab5678"])
def test_invalid_barcodes_are_rejected(clock: FakeClock, barcode: str) -> None:
    client = FakeOpenFoodFactsClient()

    assert not is_valid_barcode(barcode)
    with pytest.raises(ValidationError):
        asyncio.run(_service(client, clock).get_food(barcode))
    assert client.calls == []


@pytest.mark.parametrize(
    ("nutriments", "expected"),
    [
        ({"energy-kcal_100g": 52, "energy-kj_100g": 900}, 52),
        ({"energy_kcal_100g": 61}, 61),
        ({"energy-kj_100g": 1046}, 250),
        ({"energy_100g": 1674}, 400),
        ({"energy": 250}, 250),
        ({"proteins_100g": 10, "fat_100g": 5, "carbohydrates_100g": 20}, 165),
        ({}, 100),
    ],
)
def test_energy_fallbacks(nutriments: dict[str, object], expected: float) -> None:
    protein = float(nutriments.get("proteins_100g", 0))
    fat = float(nutriments.get("fat_100g", 0))
    carbs = float(nutriments.get("carbohydrates_100g", 0))

    assert energy_kcal(nutriments, protein, fat, carbs) == expected


@pytest.mark.parametrize(
    ("tags", "expected"),
    [
        (["en:plant-based-foods-and-beverages", "en:fruits"], FoodCategory.VEGETABLE),
        (["en:sweet-snacks", "en:biscuits"], FoodCategory.SNACK),
        (["en:dairies", "en:yogurts"], FoodCategory.DAIRY),
        (["fr:boissons"], FoodCategory.OTHER),
        ([], FoodCategory.OTHER),
    ],
)
def test_map_category_tags(tags: list[str], expected: FoodCategory) -> None:
    assert map_category_tags(tags) is expected


def test_to_food_item_name_and_serving_fallbacks() -> None:
    localized = to_food_item(
        {
            "product_name": "Instant noodles",
            "product_name_th": "มาม่า",
            "quantity": "60 g",
            "nutriments": {"energy-kcal_100g": 320},
        },
        "food-2",
    )
    bare = to_food_item({"nutriments": {"energy-kcal_100g": 10}}, "food-3")

    assert localized.name == "มาม่า"
    assert localized.serving_size == "60 g"
    assert bare.name == "Unknown Product"
    assert bare.serving_size == "100g"
    assert bare.brand_name is None
