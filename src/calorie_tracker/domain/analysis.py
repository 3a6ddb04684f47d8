"""Models for food image analysis results."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _AnalysisModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NutritionalInfo(_AnalysisModel):
    """Estimated nutrition for one serving shown in the image."""

    calories: float = Field(ge=0.0)
    protein: float = Field(ge=0.0)
    fat: float = Field(ge=0.0)
    carbs: float = Field(ge=0.0)
    serving_size: str


class FoodAnalysis(_AnalysisModel):
    """Structured output for food image analysis."""

    food_name: str
    description: str
    nutritional_info: NutritionalInfo
    category: str
