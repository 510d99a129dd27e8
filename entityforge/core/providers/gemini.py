"""Google Gemini provider implementation (google-genai SDK)."""

import base64
import json
import logging

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from ..errors import ConfigurationError, ParseError, UpstreamError
from .base import LLMProvider, extract_json_from_text


logger = logging.getLogger(__name__)

# JSON-schema keys the Gemini response_schema does not accept
_UNSUPPORTED_SCHEMA_KEYS = {"additionalProperties", "$schema", "title"}


def _to_gemini_schema(schema: dict) -> dict:
    """Strip JSON-schema keywords Gemini rejects, recursively."""
    cleaned = {}
    for key, value in schema.items():
        if key in _UNSUPPORTED_SCHEMA_KEYS:
            continue
        if key == "properties" and isinstance(value, dict):
            cleaned[key] = {name: _to_gemini_schema(sub) for name, sub in value.items()}
        elif key == "items" and isinstance(value, dict):
            cleaned[key] = _to_gemini_schema(value)
        else:
            cleaned[key] = value
    return cleaned


def _sniff_mime(image: bytes) -> str:
    if image.startswith(b"\xff\xd8"):
        return "image/jpeg"
    if image[:4] == b"RIFF" and image[8:12] == b"WEBP":
        return "image/webp"
    return "image/png"


def _first_inline_image(response) -> bytes:
    """Pull the first inline image part out of a generate_content response."""
    candidates = response.candidates or []
    if not candidates or not candidates[0].content or not candidates[0].content.parts:
        finish_reason = candidates[0].finish_reason if candidates else None
        raise UpstreamError(f"No image data in response (finish_reason={finish_reason})")

    for part in candidates[0].content.parts:
        if part.inline_data is not None and part.inline_data.data:
            data = part.inline_data.data
            if isinstance(data, str):
                data = base64.b64decode(data)
            return data

    finish_reason = candidates[0].finish_reason
    if finish_reason is not None and "SAFETY" in str(finish_reason):
        raise UpstreamError("Image generation blocked by safety filters")
    raise UpstreamError(f"No image data in response (finish_reason={finish_reason})")


class GeminiProvider(LLMProvider):
    """Google Gemini provider: flash-lite for text, flash-image for images."""

    name = "gemini"

    def __init__(self, api_key: str = "", **kwargs) -> None:
        if not api_key:
            raise ConfigurationError(
                "GEMINI_API_KEY not found. Set it as an environment variable.\n"
                "  export GEMINI_API_KEY=..."
            )
        super().__init__(api_key, **kwargs)

    @property
    def default_text_model(self) -> str:
        return "gemini-2.5-flash-lite"

    @property
    def default_image_model(self) -> str:
        return "gemini-2.5-flash-image"

    def _get_client(self) -> genai.Client:
        if self._cached_async_client is None:
            self._cached_async_client = genai.Client(api_key=self._api_key)
        return self._cached_async_client

    async def close_async(self) -> None:
        # genai.Client owns its transports; dropping the reference is enough
        self._cached_async_client = None

    async def _generate(self, model: str, contents, config: types.GenerateContentConfig | None = None):
        client = self._get_client()
        try:
            return await client.aio.models.generate_content(
                model=model, contents=contents, config=config
            )
        except genai_errors.APIError as e:
            raise UpstreamError(f"Gemini API error: {e}") from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"Gemini transport error: {e}") from e

    async def _structured_once(
        self,
        prompt: str,
        response_schema: dict,
        schema_name: str,
        model: str,
    ) -> dict:
        # Free-form object schemas are not accepted; fall back to JSON mode only
        if response_schema.get("properties"):
            config = types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=_to_gemini_schema(response_schema),
            )
        else:
            config = types.GenerateContentConfig(response_mime_type="application/json")

        response = await self._generate(model, prompt, config)
        self._log(
            "complete_structured",
            {"model": model, "schema": schema_name, "prompt": prompt},
            response,
        )

        text = response.text or ""
        data = extract_json_from_text(text)
        if data is None:
            try:
                json.loads(text)
            except json.JSONDecodeError as e:
                raise ParseError(f"Response is not valid JSON: {e}") from e
            raise ParseError("Response did not contain a JSON object")
        return data

    async def complete_text(self, prompt: str, model: str | None = None) -> str:
        model = model or self.default_text_model
        response = await self._generate(model, prompt)
        self._log("complete_text", {"model": model, "prompt": prompt}, response)
        return response.text or ""

    async def generate_image(self, prompt: str, model: str | None = None) -> bytes:
        model = model or self.default_image_model
        config = types.GenerateContentConfig(response_modalities=["TEXT", "IMAGE"])
        response = await self._generate(model, prompt, config)
        self._log("generate_image", {"model": model, "prompt": prompt}, "<image payload omitted>")
        return _first_inline_image(response)

    async def edit_image(
        self, image: bytes, instruction: str, model: str | None = None
    ) -> bytes:
        model = model or self.default_image_model
        contents = [
            types.Part.from_bytes(data=image, mime_type=_sniff_mime(image)),
            instruction,
        ]
        config = types.GenerateContentConfig(response_modalities=["TEXT", "IMAGE"])
        response = await self._generate(model, contents, config)
        self._log(
            "edit_image",
            {"model": model, "instruction": instruction, "image_bytes": len(image)},
            "<image payload omitted>",
        )
        return _first_inline_image(response)
