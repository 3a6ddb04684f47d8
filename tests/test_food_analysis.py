"""Tests for food image analysis."""

import asyncio
import base64

import pytest

from calorie_tracker.domain.analysis import FoodAnalysis, NutritionalInfo
from calorie_tracker.domain.nutrition import FoodCategory
from calorie_tracker.errors import ValidationError
from calorie_tracker.services.food_analysis import (
    FOOD_ANALYSIS_SCHEMA,
    FoodAnalysisService,
    decode_image,
    suggested_food_item,
)
from tests.conftest import FakeFoodAnalysisClient

PNG_BYTES = b"\x89PNG\r\n\x1a\nrest"


def _service(client: FakeFoodAnalysisClient) -> FoodAnalysisService:
    return FoodAnalysisService(
        client=client, model="gpt-4.1-mini", reasoning_effort=None, store=False
    )


def test_analyze_sends_image_bytes() -> None:
    client = FakeFoodAnalysisClient()

    analysis = asyncio.run(_service(client).analyze(PNG_BYTES))

    assert analysis.food_name == "Pad Thai"
    assert analysis.nutritional_info.calories == 450
    assert client.calls[0]["image_bytes"] == PNG_BYTES


def test_analyze_rejects_empty_image() -> None:
    with pytest.raises(ValidationError):
        asyncio.run(_service(FakeFoodAnalysisClient()).analyze(b""))


def test_decode_image_accepts_data_url_and_bare_base64() -> None:
    encoded = base64.b64encode(PNG_BYTES).decode()

    assert decode_image(f"data:image/png;base64,{encoded}") == PNG_BYTES
    assert decode_image(encoded) == PNG_BYTES
    with pytest.raises(ValidationError):
        decode_image("not base64!")


def test_suggested_item_maps_unknown_category() -> None:
    analysis = FoodAnalysis(
        food_name="Iced latte",
        description="",
        nutritional_info=NutritionalInfo(
            calories=120, protein=6, fat=4, carbs=15, serving_size="1 cup"
        ),
        category="Coffee drink",
    )

    item = suggested_food_item(analysis, item_id="item-1")

    assert item.category is FoodCategory.BEVERAGE
    assert item.ingredients is None
    assert item.serving_size == "1 cup"


def test_schema_lists_every_category() -> None:
    categories = FOOD_ANALYSIS_SCHEMA["properties"]["category"]["enum"]

    assert set(categories) == {category.value for category in FoodCategory}
