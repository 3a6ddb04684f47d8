"""OpenAI Responses API client for food photos."""

import base64
import json
import logging
from dataclasses import dataclass

from openai import AsyncOpenAI

from calorie_tracker.errors import FoodAnalysisError
from calorie_tracker.services.food_analysis import FoodAnalysisClient

SCHEMA_NAME = "food_analysis"
DEFAULT_IMAGE_DETAIL = "auto"
DEFAULT_MAX_OUTPUT_TOKENS = 1024

_logger = logging.getLogger(__name__)


@dataclass
class OpenAIFoodAnalysisClient(FoodAnalysisClient):
    """Sends a food photo to the Responses API and returns the parsed analysis."""

    client: AsyncOpenAI
    image_detail: str = DEFAULT_IMAGE_DETAIL
    max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS

    @classmethod
    def create(
        cls, api_key: str, image_detail: str = DEFAULT_IMAGE_DETAIL
    ) -> "OpenAIFoodAnalysisClient":
        return cls(client=AsyncOpenAI(api_key=api_key), image_detail=image_detail)

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
        """Ask the model for a strict-schema analysis of one photo."""
        request_payload: dict[str, object] = {
            "model": model,
            "input": [food_photo_message(prompt, image_bytes, self.image_detail)],
            "text": {
                "format": {
                    "type": "json_schema",
                    "name": SCHEMA_NAME,
                    "strict": True,
                    "schema": schema,
                }
            },
            "max_output_tokens": self.max_output_tokens,
            "store": store,
        }
        if reasoning_effort:
            request_payload["reasoning"] = {"effort": reasoning_effort}

        response = await self.client.responses.create(**request_payload)
        return parse_analysis_output(response.output_text)

    async def close(self) -> None:
        await self.client.close()


def food_photo_message(
    prompt: str, image_bytes: bytes, detail: str
) -> dict[str, object]:
    """Build the user message carrying the prompt and the photo as a data URL."""
    return {
        "role": "user",
        "content": [
            {"type": "input_text", "text": prompt},
            {
                "type": "input_image",
                "image_url": image_data_url(image_bytes),
                "detail": detail,
            },
        ],
    }


def parse_analysis_output(output_text: str | None) -> dict[str, object]:
    """Decode the model's JSON output, rejecting refusals and truncated text."""
    if not output_text:
        raise FoodAnalysisError("Model returned no analysis")
    try:
        parsed = json.loads(output_text)
    except json.JSONDecodeError as exc:
        _logger.warning("Malformed analysis output: %.200s", output_text)
        raise FoodAnalysisError("Model returned malformed analysis") from exc
    if not isinstance(parsed, dict):
        raise FoodAnalysisError("Model analysis is not an object")
    return parsed


def image_data_url(image_bytes: bytes) -> str:
    """Encode an image as a base64 data URL with a sniffed MIME type."""
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{detect_mime_type(image_bytes)};base64,{encoded}"


def detect_mime_type(image_bytes: bytes) -> str:
    """Infer the image MIME type from its file signature, defaulting to JPEG."""
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    if image_bytes[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    if image_bytes[4:12] in (b"ftypheic", b"ftypheix", b"ftypmif1"):
        return "image/heic"
    return "image/jpeg"
