"""Tests for provider adapters with the vendor SDK clients mocked out."""

import asyncio
import base64
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import anthropic
import httpx
import openai
import pytest
from google.genai import errors as genai_errors

from entityforge.config import EntityForgeConfig
from entityforge.core.errors import ConfigurationError, ParseError, UpstreamError
from entityforge.core.providers import get_provider
from entityforge.core.providers.base import extract_json_from_text
from entityforge.core.providers.claude import ClaudeProvider
from entityforge.core.providers.gemini import GeminiProvider, _to_gemini_schema
from entityforge.core.providers.openai import OpenAIProvider, _supports_strict


PNG = b"\x89PNG\r\n\x1a\n" + b"\x01" * 8


def _openai_text_response(text):
    content = SimpleNamespace(type="output_text", text=text)
    return SimpleNamespace(output=[SimpleNamespace(type="message", content=[content])])


def _openai_image_response(data):
    return SimpleNamespace(
        data=[SimpleNamespace(b64_json=base64.b64encode(data).decode() if data else None)]
    )


def _claude_response(text):
    return SimpleNamespace(content=[SimpleNamespace(type="text", text=text)])


def _gemini_image_response(data, finish_reason="STOP"):
    parts = [SimpleNamespace(inline_data=None, text="here you go")]
    if data is not None:
        parts.append(SimpleNamespace(inline_data=SimpleNamespace(data=data)))
    return SimpleNamespace(
        candidates=[
            SimpleNamespace(content=SimpleNamespace(parts=parts), finish_reason=finish_reason)
        ]
    )


class TestExtractJson:
    def test_plain(self):
        assert extract_json_from_text('{"a": 1}') == {"a": 1}

    def test_code_fence(self):
        assert extract_json_from_text('Sure!\n```json\n{"a": 1}\n```') == {"a": 1}

    def test_bare_fence(self):
        assert extract_json_from_text('```\n{"a": 2}\n```') == {"a": 2}

    def test_no_json(self):
        assert extract_json_from_text("no json here") is None
        assert extract_json_from_text("[1, 2]") is None


class TestGetProvider:
    def test_unknown(self):
        with pytest.raises(ConfigurationError, match="Unknown provider"):
            get_provider("llama")

    def test_missing_credentials(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
            get_provider("openai")

    def test_logging_options_passed(self, monkeypatch, tmp_path):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
        config = EntityForgeConfig.model_validate(
            {"logging": {"log_llm_calls": True, "logs_dir": str(tmp_path)}}
        )
        provider = get_provider("claude", config)
        assert isinstance(provider, ClaudeProvider)
        assert provider._log_calls is True
        assert provider._logs_dir == tmp_path


class TestRetryWithValidation:
    def test_retries_until_valid(self):
        provider = ClaudeProvider("sk-ant-test")
        responses = [{"ok": False}, {"ok": True}]
        prompts = []
        retries = []

        async def fake_once(prompt, response_schema, schema_name, model):
            prompts.append(prompt)
            return responses.pop(0)

        provider._structured_once = fake_once
        result = asyncio.run(
            provider.complete_structured(
                "make a thing",
                {"type": "object"},
                validator=lambda d: (d["ok"], "## ERROR\nProblem: not ok"),
                max_retries=2,
                on_retry=lambda attempt, max_r, summary: retries.append((attempt, summary)),
            )
        )

        assert result == {"ok": True}
        assert prompts[1].startswith("## ERROR\nProblem: not ok")
        assert prompts[1].endswith("make a thing")
        assert retries == [(1, "not ok")]

    def test_exhausted_returns_last(self):
        provider = ClaudeProvider("sk-ant-test")

        async def fake_once(prompt, response_schema, schema_name, model):
            return {"ok": False}

        provider._structured_once = fake_once
        retries = []
        result = asyncio.run(
            provider.complete_structured(
                "p",
                {"type": "object"},
                validator=lambda d: (False, "Problem: still bad"),
                max_retries=1,
                on_retry=lambda attempt, max_r, summary: retries.append(summary),
            )
        )
        assert result == {"ok": False}
        assert retries == ["still bad", "EXHAUSTED: still bad"]


class TestOpenAIProvider:
    def test_requires_key(self):
        with pytest.raises(ConfigurationError):
            OpenAIProvider("")

    def test_supports_strict(self):
        assert _supports_strict(
            {
                "properties": {"a": {}},
                "required": ["a"],
                "additionalProperties": False,
            }
        )
        assert not _supports_strict({"properties": {"a": {}}, "required": []})
        assert not _supports_strict({"type": "object"})

    @patch("entityforge.core.providers.openai.AsyncOpenAI")
    def test_structured(self, mock_client_cls):
        client = MagicMock()
        client.responses.create = AsyncMock(return_value=_openai_text_response('{"name": "Sword"}'))
        mock_client_cls.return_value = client

        provider = OpenAIProvider("sk-test")
        result = asyncio.run(
            provider.complete_structured("p", {"type": "object"}, schema_name="item_entity")
        )

        assert result == {"name": "Sword"}
        params = client.responses.create.call_args.kwargs
        assert params["model"] == "gpt-5-mini"
        assert params["text"]["format"]["name"] == "item_entity"
        assert params["text"]["format"]["strict"] is False

    @patch("entityforge.core.providers.openai.AsyncOpenAI")
    def test_structured_invalid_json(self, mock_client_cls):
        client = MagicMock()
        client.responses.create = AsyncMock(return_value=_openai_text_response("not json"))
        mock_client_cls.return_value = client

        with pytest.raises(ParseError):
            asyncio.run(OpenAIProvider("sk-test").complete_structured("p", {"type": "object"}))

    @patch("entityforge.core.providers.openai.AsyncOpenAI")
    def test_api_error_wrapped(self, mock_client_cls):
        client = MagicMock()
        client.responses.create = AsyncMock(side_effect=openai.OpenAIError("boom"))
        mock_client_cls.return_value = client

        with pytest.raises(UpstreamError, match="boom"):
            asyncio.run(OpenAIProvider("sk-test").complete_text("p"))

    @patch("entityforge.core.providers.openai.AsyncOpenAI")
    def test_generate_image(self, mock_client_cls):
        client = MagicMock()
        client.images.generate = AsyncMock(return_value=_openai_image_response(PNG))
        mock_client_cls.return_value = client

        assert asyncio.run(OpenAIProvider("sk-test").generate_image("a sword")) == PNG
        assert client.images.generate.call_args.kwargs["model"] == "gpt-image-1"

    @patch("entityforge.core.providers.openai.AsyncOpenAI")
    def test_generate_image_empty(self, mock_client_cls):
        client = MagicMock()
        client.images.generate = AsyncMock(return_value=_openai_image_response(None))
        mock_client_cls.return_value = client

        with pytest.raises(UpstreamError, match="No image data"):
            asyncio.run(OpenAIProvider("sk-test").generate_image("a sword"))

    @patch("entityforge.core.providers.openai.AsyncOpenAI")
    def test_logs_calls(self, mock_client_cls, tmp_path):
        client = MagicMock()
        client.responses.create = AsyncMock(return_value=_openai_text_response("hello"))
        mock_client_cls.return_value = client

        provider = OpenAIProvider("sk-test", log_calls=True, logs_dir=tmp_path)
        assert asyncio.run(provider.complete_text("p")) == "hello"
        assert len(list(tmp_path.glob("*_openai_complete_text.json"))) == 1


class TestClaudeProvider:
    @patch("entityforge.core.providers.claude.anthropic.AsyncAnthropic")
    def test_structured_from_code_fence(self, mock_client_cls):
        client = MagicMock()
        client.messages.create = AsyncMock(
            return_value=_claude_response('```json\n{"name": "Hans"}\n```')
        )
        mock_client_cls.return_value = client

        result = asyncio.run(
            ClaudeProvider("sk-ant-test").complete_structured("p", {"type": "object"})
        )
        assert result == {"name": "Hans"}
        prompt = client.messages.create.call_args.kwargs["messages"][0]["content"]
        assert "Respond with valid JSON" in prompt
        mock_client_cls.assert_called_once_with(api_key="sk-ant-test")

    @patch("entityforge.core.providers.claude.anthropic.AsyncAnthropic")
    def test_oauth_token(self, mock_client_cls):
        client = MagicMock()
        client.messages.create = AsyncMock(return_value=_claude_response("summary"))
        mock_client_cls.return_value = client

        assert asyncio.run(ClaudeProvider("oauth-token").complete_text("p")) == "summary"
        mock_client_cls.assert_called_once_with(auth_token="oauth-token")

    @patch("entityforge.core.providers.claude.anthropic.AsyncAnthropic")
    def test_no_json(self, mock_client_cls):
        client = MagicMock()
        client.messages.create = AsyncMock(return_value=_claude_response("I cannot"))
        mock_client_cls.return_value = client

        with pytest.raises(ParseError):
            asyncio.run(ClaudeProvider("sk-ant-test").complete_structured("p", {"type": "object"}))

    @patch("entityforge.core.providers.claude.anthropic.AsyncAnthropic")
    def test_api_error_wrapped(self, mock_client_cls):
        client = MagicMock()
        client.messages.create = AsyncMock(side_effect=anthropic.AnthropicError("overloaded"))
        mock_client_cls.return_value = client

        with pytest.raises(UpstreamError, match="overloaded"):
            asyncio.run(ClaudeProvider("sk-ant-test").complete_text("p"))

    def test_capability_flag(self):
        assert ClaudeProvider.supports_images is False
        assert OpenAIProvider.supports_images is True
        assert GeminiProvider.supports_images is True

    def test_no_images(self):
        provider = ClaudeProvider("sk-ant-test")
        with pytest.raises(ConfigurationError):
            asyncio.run(provider.generate_image("a sword"))
        with pytest.raises(ConfigurationError):
            asyncio.run(provider.edit_image(PNG, "add rust"))


class TestGeminiProvider:
    def test_schema_cleanup(self):
        schema = {
            "type": "object",
            "title": "Entity",
            "additionalProperties": False,
            "properties": {
                "tags": {"type": "array", "items": {"type": "string", "title": "Tag"}},
            },
        }
        assert _to_gemini_schema(schema) == {
            "type": "object",
            "properties": {"tags": {"type": "array", "items": {"type": "string"}}},
        }

    @patch("entityforge.core.providers.gemini.genai.Client")
    def test_structured(self, mock_client_cls):
        client = MagicMock()
        client.aio.models.generate_content = AsyncMock(
            return_value=SimpleNamespace(text='{"name": "Ravenford"}')
        )
        mock_client_cls.return_value = client

        result = asyncio.run(
            GeminiProvider("key").complete_structured("p", {"type": "object"})
        )
        assert result == {"name": "Ravenford"}
        kwargs = client.aio.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-2.5-flash-lite"
        assert kwargs["config"].response_mime_type == "application/json"

    @patch("entityforge.core.providers.gemini.genai.Client")
    def test_structured_invalid(self, mock_client_cls):
        client = MagicMock()
        client.aio.models.generate_content = AsyncMock(return_value=SimpleNamespace(text="nope"))
        mock_client_cls.return_value = client

        with pytest.raises(ParseError):
            asyncio.run(GeminiProvider("key").complete_structured("p", {"type": "object"}))

    @patch("entityforge.core.providers.gemini.genai.Client")
    def test_generate_image(self, mock_client_cls):
        client = MagicMock()
        client.aio.models.generate_content = AsyncMock(return_value=_gemini_image_response(PNG))
        mock_client_cls.return_value = client

        assert asyncio.run(GeminiProvider("key").generate_image("a sword")) == PNG
        kwargs = client.aio.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-2.5-flash-image"

    @patch("entityforge.core.providers.gemini.genai.Client")
    def test_safety_block(self, mock_client_cls):
        client = MagicMock()
        client.aio.models.generate_content = AsyncMock(
            return_value=_gemini_image_response(None, finish_reason="IMAGE_SAFETY")
        )
        mock_client_cls.return_value = client

        with pytest.raises(UpstreamError, match="safety"):
            asyncio.run(GeminiProvider("key").generate_image("a sword"))

    @patch("entityforge.core.providers.gemini.genai.Client")
    def test_edit_image_sends_inline_image(self, mock_client_cls):
        client = MagicMock()
        client.aio.models.generate_content = AsyncMock(return_value=_gemini_image_response(PNG))
        mock_client_cls.return_value = client

        result = asyncio.run(GeminiProvider("key").edit_image(PNG, "add rust"))
        assert result == PNG
        contents = client.aio.models.generate_content.call_args.kwargs["contents"]
        assert contents[1] == "add rust"
        assert contents[0].inline_data.mime_type == "image/png"

    @patch("entityforge.core.providers.gemini.genai.Client")
    def test_api_error_wrapped(self, mock_client_cls):
        client = MagicMock()
        client.aio.models.generate_content = AsyncMock(
            side_effect=genai_errors.ServerError(
                503, {"error": {"code": 503, "message": "unavailable", "status": "UNAVAILABLE"}}
            )
        )
        mock_client_cls.return_value = client

        with pytest.raises(UpstreamError, match="Gemini API error") as exc_info:
            asyncio.run(GeminiProvider("key").complete_text("p"))
        assert isinstance(exc_info.value.__cause__, genai_errors.APIError)

    @patch("entityforge.core.providers.gemini.genai.Client")
    def test_transport_error_wrapped(self, mock_client_cls):
        client = MagicMock()
        client.aio.models.generate_content = AsyncMock(
            side_effect=httpx.ConnectError("connection reset")
        )
        mock_client_cls.return_value = client

        with pytest.raises(UpstreamError, match="connection reset"):
            asyncio.run(GeminiProvider("key").complete_structured("p", {"type": "object"}))
        with pytest.raises(UpstreamError, match="Gemini transport error"):
            asyncio.run(GeminiProvider("key").generate_image("a sword"))

    @patch("entityforge.core.providers.gemini.genai.Client")
    def test_read_timeout_wrapped(self, mock_client_cls):
        client = MagicMock()
        client.aio.models.generate_content = AsyncMock(side_effect=httpx.ReadTimeout("read timed out"))
        mock_client_cls.return_value = client

        with pytest.raises(UpstreamError, match="read timed out"):
            asyncio.run(GeminiProvider("key").edit_image(PNG, "add rust"))

    def test_requires_key(self):
        with pytest.raises(ConfigurationError):
            GeminiProvider("")
