"""Claude (Anthropic) provider implementation.

Covers structured and text completion only; Anthropic models do not produce
images, so pair this provider with an image-capable one.
"""

import json
import logging

import anthropic

from ..errors import ConfigurationError, ParseError, UpstreamError
from .base import LLMProvider, extract_json_from_text


logger = logging.getLogger(__name__)


class ClaudeProvider(LLMProvider):
    """Claude (Anthropic) provider.

    Supports both API key (sk-ant-...) and OAuth access token authentication.
    """

    name = "claude"
    supports_images = False

    def __init__(self, api_key: str = "", **kwargs) -> None:
        if not api_key:
            raise ConfigurationError(
                "Anthropic credentials not found. Set one of:\n"
                "  export ANTHROPIC_API_KEY=sk-ant-...       # API key\n"
                "  export ANTHROPIC_ACCESS_TOKEN=...         # OAuth token"
            )
        super().__init__(api_key, **kwargs)

    @property
    def default_text_model(self) -> str:
        return "claude-haiku-4-5-20251001"

    @property
    def default_image_model(self) -> str:
        return ""

    def _is_oauth_token(self) -> bool:
        """Check if the credential is an OAuth access token (not an API key)."""
        return not self._api_key.startswith("sk-ant-")

    def _get_async_client(self) -> anthropic.AsyncAnthropic:
        if self._cached_async_client is None:
            if self._is_oauth_token():
                self._cached_async_client = anthropic.AsyncAnthropic(
                    auth_token=self._api_key,
                )
            else:
                self._cached_async_client = anthropic.AsyncAnthropic(
                    api_key=self._api_key
                )
        return self._cached_async_client

    def _build_json_prompt(self, prompt: str, response_schema: dict) -> str:
        """Add JSON schema instruction to prompt."""
        return (
            f"{prompt}\n\n"
            f"Respond with valid JSON matching this schema:\n"
            f"```json\n{json.dumps(response_schema, indent=2)}\n```\n"
            f"Return ONLY the JSON object, no other text."
        )

    async def _create_message(self, model: str, content: str, max_tokens: int = 4096):
        client = self._get_async_client()
        try:
            return await client.messages.create(
                model=model,
                max_tokens=max_tokens,
                messages=[{"role": "user", "content": content}],
            )
        except anthropic.AnthropicError as e:
            raise UpstreamError(f"Anthropic API error: {e}") from e

    async def _structured_once(
        self,
        prompt: str,
        response_schema: dict,
        schema_name: str,
        model: str,
    ) -> dict:
        full_prompt = self._build_json_prompt(prompt, response_schema)
        response = await self._create_message(model, full_prompt)

        # Extract structured data from text response
        structured_data = None
        for block in response.content:
            if block.type == "text":
                structured_data = extract_json_from_text(block.text)
                if structured_data:
                    break

        self._log(
            "complete_structured",
            {"model": model, "schema": schema_name, "prompt_length": len(full_prompt)},
            response,
        )

        if structured_data is None:
            raise ParseError("Claude response did not contain a JSON object")
        return structured_data

    async def complete_text(self, prompt: str, model: str | None = None) -> str:
        model = model or self.default_text_model
        response = await self._create_message(model, prompt)
        self._log("complete_text", {"model": model, "prompt_length": len(prompt)}, response)
        return "".join(block.text for block in response.content if block.type == "text")

    async def generate_image(self, prompt: str, model: str | None = None) -> bytes:
        raise ConfigurationError(
            "The claude provider cannot generate images; "
            "set pipeline.image_provider to openai or gemini"
        )

    async def edit_image(
        self, image: bytes, instruction: str, model: str | None = None
    ) -> bytes:
        raise ConfigurationError(
            "The claude provider cannot edit images; "
            "set pipeline.image_provider to openai or gemini"
        )
