"""OpenAI provider implementation (Responses API + Images API)."""

import base64
import json
import logging
import time

import openai
from openai import AsyncOpenAI

from ..errors import ConfigurationError, ParseError, UpstreamError
from .base import LLMProvider


logger = logging.getLogger(__name__)


def _supports_strict(schema: dict) -> bool:
    """Strict mode needs every property required and no extra properties."""
    properties = schema.get("properties") or {}
    return (
        bool(properties)
        and schema.get("additionalProperties") is False
        and set(schema.get("required", [])) == set(properties)
    )


def _extract_output_text(response) -> str:
    output_text = ""
    for item in response.output:
        if hasattr(item, "type") and item.type == "message":
            for content_item in item.content:
                if (
                    hasattr(content_item, "type")
                    and content_item.type == "output_text"
                    and hasattr(content_item, "text")
                ):
                    output_text = content_item.text
    return output_text


def _decode_image(response) -> bytes:
    if not response.data or not response.data[0].b64_json:
        raise UpstreamError("No image data in response")
    return base64.b64decode(response.data[0].b64_json)


class OpenAIProvider(LLMProvider):
    """OpenAI provider using the Responses API for text and gpt-image for images."""

    name = "openai"

    def __init__(self, api_key: str = "", **kwargs) -> None:
        if not api_key:
            raise ConfigurationError(
                "OPENAI_API_KEY not found. Set it as an environment variable.\n"
                "  export OPENAI_API_KEY=sk-..."
            )
        super().__init__(api_key, **kwargs)

    @property
    def default_text_model(self) -> str:
        return "gpt-5-mini"

    @property
    def default_image_model(self) -> str:
        return "gpt-image-1"

    def _get_async_client(self) -> AsyncOpenAI:
        if self._cached_async_client is None:
            self._cached_async_client = AsyncOpenAI(api_key=self._api_key)
        return self._cached_async_client

    async def _structured_once(
        self,
        prompt: str,
        response_schema: dict,
        schema_name: str,
        model: str,
    ) -> dict:
        client = self._get_async_client()

        request_params = {
            "model": model,
            "input": prompt,
            "text": {
                "format": {
                    "type": "json_schema",
                    "name": schema_name,
                    "strict": _supports_strict(response_schema),
                    "schema": response_schema,
                }
            },
        }

        logger.info(f"[LLM] prompt length: {len(prompt)} chars")
        api_start = time.time()
        try:
            response = await client.responses.create(**request_params)
        except openai.OpenAIError as e:
            raise UpstreamError(f"OpenAI API error: {e}") from e
        logger.info(f"[LLM] API response received in {time.time() - api_start:.2f}s")

        self._log("complete_structured", request_params, response)

        text = _extract_output_text(response)
        try:
            data = json.loads(text) if text else None
        except json.JSONDecodeError as e:
            raise ParseError(f"Response is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ParseError("Response did not contain a JSON object")
        return data

    async def complete_text(self, prompt: str, model: str | None = None) -> str:
        model = model or self.default_text_model
        client = self._get_async_client()

        request_params = {"model": model, "input": prompt}
        try:
            response = await client.responses.create(**request_params)
        except openai.OpenAIError as e:
            raise UpstreamError(f"OpenAI API error: {e}") from e

        self._log("complete_text", request_params, response)
        return _extract_output_text(response)

    async def generate_image(self, prompt: str, model: str | None = None) -> bytes:
        model = model or self.default_image_model
        client = self._get_async_client()

        request_params = {"model": model, "prompt": prompt, "size": "1024x1024"}
        try:
            response = await client.images.generate(**request_params)
        except openai.OpenAIError as e:
            raise UpstreamError(f"OpenAI image error: {e}") from e

        self._log("generate_image", request_params, "<image payload omitted>")
        return _decode_image(response)

    async def edit_image(
        self, image: bytes, instruction: str, model: str | None = None
    ) -> bytes:
        model = model or self.default_image_model
        client = self._get_async_client()

        try:
            response = await client.images.edit(
                model=model,
                image=("entity.png", image, "image/png"),
                prompt=instruction,
            )
        except openai.OpenAIError as e:
            raise UpstreamError(f"OpenAI image edit error: {e}") from e

        self._log(
            "edit_image",
            {"model": model, "instruction": instruction, "image_bytes": len(image)},
            "<image payload omitted>",
        )
        return _decode_image(response)
