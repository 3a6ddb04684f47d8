"""Food image analysis using LLMs."""

import base64
import binascii
from dataclasses import dataclass
from typing import Protocol
from uuid import uuid4

from calorie_tracker.domain.analysis import FoodAnalysis
from calorie_tracker.domain.nutrition import FoodCategory, FoodItem
from calorie_tracker.errors import ValidationError
from calorie_tracker.services.foods import map_food_category

FOOD_ANALYSIS_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "food_name": {"type": "string"},
        "description": {"type": "string"},
        "nutritional_info": {
            "type": "object",
            "properties": {
                "calories": {"type": "number", "minimum": 0},
                "protein": {"type": "number", "minimum": 0},
                "fat": {"type": "number", "minimum": 0},
                "carbs": {"type": "number", "minimum": 0},
                "serving_size": {"type": "string"},
            },
            "required": ["calories", "protein", "fat", "carbs", "serving_size"],
            "additionalProperties": False,
        },
        "category": {
            "type": "string",
            "enum": [category.value for category in FoodCategory],
        },
    },
    "required": ["food_name", "description", "nutritional_info", "category"],
    "additionalProperties": False,
}

_PROMPT = (
    "Analyze the food in this image. "
    "Return the dish name, a short description of its main ingredients, "
    "estimated calories and grams of protein, fat and carbs for one serving, "
    "the serving size with approximate grams, and the best matching category."
)


class FoodAnalysisClient(Protocol):
    """Interface for LLM food image analysis."""

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
        """Return analysis data matching ``schema`` for one photo."""


@dataclass
class FoodAnalysisService:
    """Service that prepares analysis prompts and validates results."""

    client: FoodAnalysisClient
    model: str
    reasoning_effort: str | None
    store: bool

    async def analyze(self, image_bytes: bytes) -> FoodAnalysis:
        """Estimate the nutrition of the food shown in an image."""
        if not image_bytes:
            raise ValidationError("Image is empty")
        raw = await self.client.analyze_image(
            model=self.model,
            reasoning_effort=self.reasoning_effort,
            store=self.store,
            image_bytes=image_bytes,
            schema=FOOD_ANALYSIS_SCHEMA,
            prompt=_PROMPT,
        )
        return FoodAnalysis.model_validate(raw)

    async def analyze_base64(self, image: str) -> FoodAnalysis:
        """Analyze an image given as a data URL or bare base64 string."""
        return await self.analyze(decode_image(image))


def suggested_food_item(analysis: FoodAnalysis, item_id: str | None = None) -> FoodItem:
    """Turn an analysis into a food item the user can confirm and log."""
    info = analysis.nutritional_info
    return FoodItem(
        id=item_id or str(uuid4()),
        name=analysis.food_name,
        calories=info.calories,
        protein=info.protein,
        fat=info.fat,
        carbs=info.carbs,
        serving_size=info.serving_size,
        category=_category(analysis.category),
        ingredients=analysis.description or None,
    )


def decode_image(image: str) -> bytes:
    """Decode a data URL or bare base64 payload into bytes."""
    _, separator, encoded = image.partition(";base64,")
    payload = encoded if separator else image
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError("Image is not valid base64") from exc


def _category(value: str) -> FoodCategory:
    try:
        return FoodCategory(value.lower().strip())
    except ValueError:
        return map_food_category([value])

