"""HTTP client for the remote nutrition API."""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

import httpx
from pydantic import ValidationError as PydanticValidationError

from calorie_tracker.api.schemas import (
    ApiEnvelope,
    GoalsModel,
    NutritionDocumentModel,
    WaterUpdate,
)
from calorie_tracker.domain.nutrition import NutritionDocument, NutritionGoals
from calorie_tracker.domain.sync import FetchResult
from calorie_tracker.errors import NutritionApiError


class NutritionApiClient(Protocol):
    """Interface for the remote nutrition document API."""

    async def fetch(self, user_id: str, last_sync: datetime | None) -> FetchResult:
        """Return the server document, or no data when nothing changed."""

    async def save(self, user_id: str, document: NutritionDocument) -> datetime | None:
        """Upload the full document and return the server sync time."""

    async def update_goals(self, user_id: str, goals: NutritionGoals) -> None:
        """Replace the user's goals on the server."""

    async def add_water(self, user_id: str, day: str, amount_ml: float) -> None:
        """Add water intake to a day on the server."""


@dataclass
class HttpxNutritionApiClient(NutritionApiClient):
    """HTTPX-backed nutrition API client."""

    base_url: str
    api_token: str
    http_client: httpx.AsyncClient
    timeout: float = 15

    @classmethod
    def create(cls, base_url: str, api_token: str) -> "HttpxNutritionApiClient":
        """Create a client with a managed httpx session."""
        return cls(
            base_url=base_url.rstrip("/"),
            api_token=api_token,
            http_client=httpx.AsyncClient(),
        )

    async def fetch(self, user_id: str, last_sync: datetime | None) -> FetchResult:
        """GET the nutrition document."""
        params = {"lastSync": last_sync.isoformat()} if last_sync else None
        envelope = await self._request("GET", "/api/nutrition", user_id, params=params)
        if envelope.has_updates is False or envelope.data is None:
            return FetchResult(has_updates=False, last_sync=envelope.last_sync)
        try:
            model = NutritionDocumentModel.model_validate(envelope.data)
        except PydanticValidationError as exc:
            raise NutritionApiError(f"Malformed nutrition document: {exc}") from exc
        document = model.to_domain()
        return FetchResult(
            has_updates=True,
            last_sync=document.updated_at or envelope.last_sync,
            document=document,
        )

    async def save(self, user_id: str, document: NutritionDocument) -> datetime | None:
        """POST the full nutrition document."""
        payload = NutritionDocumentModel.from_domain(document).to_wire()
        envelope = await self._request("POST", "/api/nutrition", user_id, json=payload)
        return envelope.last_sync

    async def update_goals(self, user_id: str, goals: NutritionGoals) -> None:
        """PUT new goals."""
        payload = GoalsModel.from_domain(goals).to_wire()
        await self._request("PUT", "/api/nutrition/goals", user_id, json=payload)

    async def add_water(self, user_id: str, day: str, amount_ml: float) -> None:
        """PUT a water increment."""
        payload = WaterUpdate(date=day, amount=amount_ml).to_wire()
        await self._request("PUT", "/api/nutrition/water", user_id, json=payload)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        user_id: str,
        *,
        params: dict[str, str] | None = None,
        json: dict[str, object] | None = None,
    ) -> ApiEnvelope:
        try:
            response = await self.http_client.request(
                method,
                f"{self.base_url}{path}",
                params=params,
                json=json,
                headers={"X-Api-Token": self.api_token, "X-User-Id": user_id},
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            raise NutritionApiError(f"{method} {path} failed: {exc}") from exc
        try:
            envelope = ApiEnvelope.model_validate(response.json())
        except (ValueError, PydanticValidationError):
            envelope = None
        if response.is_error or envelope is None or not envelope.success:
            message = (
                (envelope.error or envelope.message)
                if envelope is not None
                else response.reason_phrase
            )
            raise NutritionApiError(
                f"{method} {path} returned {response.status_code}: {message}",
                status_code=response.status_code,
            )
        return envelope
