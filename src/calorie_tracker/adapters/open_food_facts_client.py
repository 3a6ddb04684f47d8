"""Open Food Facts product API client."""

from dataclasses import dataclass
from typing import Protocol

import httpx

USER_AGENT = "calorie-tracker/0.1"


class OpenFoodFactsClient(Protocol):
    """Interface for Open Food Facts product lookups."""

    async def get_product(self, barcode: str) -> dict[str, object]:
        """Fetch a product by barcode and return raw API data."""


@dataclass
class HttpxOpenFoodFactsClient(OpenFoodFactsClient):
    """HTTPX-backed Open Food Facts client."""

    base_url: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(cls, base_url: str) -> "HttpxOpenFoodFactsClient":
        """Create a client with a managed httpx session."""
        return cls(
            base_url=base_url,
            http_client=httpx.AsyncClient(headers={"User-Agent": USER_AGENT}),
        )

    async def get_product(self, barcode: str) -> dict[str, object]:
        """Fetch a product; unknown barcodes come back with ``status`` 0."""
        response = await self.http_client.get(
            f"{self.base_url}/product/{barcode}.json",
            timeout=15,
        )
        if response.status_code == httpx.codes.NOT_FOUND:
            return {"status": 0, "code": barcode}
        response.raise_for_status()
        return response.json()

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
