"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    api_token: str
    supabase_url: str
    supabase_service_key: str
    openai_api_key: str
    openai_model: str = "gpt-4.1-mini"
    openai_reasoning_effort: str | None = None
    openai_store: bool = False
    openai_image_detail: str = "auto"
    fdc_api_key: str
    fdc_base_url: str = "https://api.nal.usda.gov/fdc/v1"
    open_food_facts_base_url: str = "https://world.openfoodfacts.org/api/v0"
    nutrition_api_base_url: str = "http://localhost:8000"
    storage_path: str = ".calorie-tracker/storage.json"
    storage_quota_bytes: int = 5 * 1024 * 1024
    sync_interval_seconds: float = 30.0
    toast_duration_seconds: float = 4.0
    search_cache_ttl_seconds: int = 3600
    food_cache_ttl_seconds: int = 7 * 24 * 3600
    barcode_cache_ttl_seconds: int = 7 * 24 * 3600
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
