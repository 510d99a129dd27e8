"""Abstract base class for generative-model providers.

A provider exposes the four capability ports the pipeline consumes:
structured completion, text completion, image generation and image editing.
Vendor wire formats stay inside the concrete subclasses.
"""

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable


logger = logging.getLogger(__name__)


# Type for validation callbacks: takes response data, returns (is_valid, error_message)
ValidatorCallback = Callable[[dict], tuple[bool, str]]

# Type for retry notification callbacks: (attempt, max_retries, short_error_summary)
RetryCallback = Callable[[int, int, str], None]


def _log_request_response(
    logs_dir: Path,
    provider: str,
    function_name: str,
    request: dict,
    response: Any,
) -> None:
    """Log full request and response to a JSON file."""
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    log_file = logs_dir / f"{timestamp}_{provider}_{function_name}.json"

    # Convert response to dict if possible
    if hasattr(response, "model_dump"):
        try:
            response_dict = response.model_dump(mode="json", warnings=False)
        except Exception:
            response_dict = str(response)
    else:
        response_dict = str(response)

    log_data = {
        "timestamp": datetime.now().isoformat(),
        "function": function_name,
        "provider": provider,
        "request": request,
        "response": response_dict,
    }

    with open(log_file, "w") as f:
        json.dump(log_data, f, indent=2, default=str)


def _extract_error_summary(error_msg: str) -> str:
    """Extract a concise error summary from validation error message."""
    if not error_msg:
        return "validation error"

    for line in error_msg.strip().split("\n"):
        line = line.strip()
        if line and not line.startswith("#") and not line.startswith("---"):
            if "Problem:" in line:
                return line.replace("Problem:", "").strip()[:60]
            return line[:60]

    return "validation error"


def extract_json_from_text(text: str) -> dict | None:
    """Try to extract a JSON object from text, handling markdown code fences."""
    try:
        data = json.loads(text)
        return data if isinstance(data, dict) else None
    except json.JSONDecodeError:
        pass

    # Try to find JSON in code block
    if "```json" in text:
        start = text.find("```json") + 7
        end = text.find("```", start)
        if end > start:
            try:
                return json.loads(text[start:end].strip())
            except json.JSONDecodeError:
                pass

    if "```" in text:
        start = text.find("```") + 3
        # Skip language identifier if present
        newline = text.find("\n", start)
        if newline > start:
            start = newline + 1
        end = text.find("```", start)
        if end > start:
            try:
                return json.loads(text[start:end].strip())
            except json.JSONDecodeError:
                pass

    return None


class LLMProvider(ABC):
    """Abstract base class for generative-model providers.

    All providers must implement these methods with the same signatures
    to ensure drop-in compatibility.

    Args:
        api_key: API key or access token for the provider.
        log_calls: Dump every request/response pair to a JSON file.
        logs_dir: Directory for those dumps.
    """

    name = "base"
    # False for providers that only offer the text ports
    supports_images = True

    def __init__(
        self,
        api_key: str,
        log_calls: bool = False,
        logs_dir: Path | str = "./logs",
    ) -> None:
        self._api_key = api_key
        self._log_calls = log_calls
        self._logs_dir = Path(logs_dir)
        self._cached_async_client = None

    async def close_async(self) -> None:
        """Close the cached async client to release connections cleanly.

        Must be called before the event loop shuts down to avoid
        'Event loop is closed' errors from orphaned httpx connections.
        """
        if self._cached_async_client is not None:
            await self._cached_async_client.close()
            self._cached_async_client = None

    def _log(self, function_name: str, request: dict, response: Any) -> None:
        if self._log_calls:
            _log_request_response(
                self._logs_dir, self.name, function_name, request, response
            )

    @property
    @abstractmethod
    def default_text_model(self) -> str:
        """Default model for structured and text completion."""
        ...

    @property
    @abstractmethod
    def default_image_model(self) -> str:
        """Default model for image generation and editing."""
        ...

    @abstractmethod
    async def _structured_once(
        self,
        prompt: str,
        response_schema: dict,
        schema_name: str,
        model: str,
    ) -> dict:
        """One structured-completion round trip, no validation."""
        ...

    async def complete_structured(
        self,
        prompt: str,
        response_schema: dict,
        schema_name: str = "response",
        model: str | None = None,
        validator: ValidatorCallback | None = None,
        max_retries: int = 0,
        on_retry: RetryCallback | None = None,
    ) -> dict:
        """Structured completion constrained to a JSON schema.

        Raises:
            UpstreamError: On transport failure or non-success response.
            ParseError: If the response is not a JSON object.
        """
        model = model or self.default_text_model
        logger.info(f"[LLM] {self.name} complete_structured - model={model}, schema={schema_name}")
        return await self._retry_with_validation(
            lambda effective_prompt: self._structured_once(
                effective_prompt, response_schema, schema_name, model
            ),
            prompt,
            validator,
            max_retries,
            on_retry,
        )

    @abstractmethod
    async def complete_text(self, prompt: str, model: str | None = None) -> str:
        """Free-text completion."""
        ...

    @abstractmethod
    async def generate_image(self, prompt: str, model: str | None = None) -> bytes:
        """Text-to-image. Returns raw image bytes."""
        ...

    @abstractmethod
    async def edit_image(
        self, image: bytes, instruction: str, model: str | None = None
    ) -> bytes:
        """Image-plus-instruction to image. Returns raw image bytes."""
        ...

    async def _retry_with_validation(
        self,
        call_fn: Callable[[str], Awaitable[dict]],
        prompt: str,
        validator: ValidatorCallback | None,
        max_retries: int,
        on_retry: RetryCallback | None,
    ) -> dict:
        """Validation-retry loop shared by all providers.

        Only schema-invalid responses are retried; transport errors propagate
        on the first failure.

        Args:
            call_fn: Callable(effective_prompt) -> awaitable result dict.
                     Called each attempt with the (possibly error-prepended) prompt.
            prompt: Base prompt text used as the suffix on validation retries.
            validator: Optional validator callback.
            max_retries: Max validation retries.
            on_retry: Optional retry notification callback.

        Returns:
            Validated result dict (or last attempt if retries exhausted).
        """
        effective_prompt = prompt
        attempts = 0
        last_error_summary = ""
        result: dict = {}

        while attempts <= max_retries:
            result = await call_fn(effective_prompt)

            if validator is None:
                return result

            is_valid, error_msg = validator(result)
            if is_valid:
                return result

            attempts += 1
            last_error_summary = _extract_error_summary(error_msg)

            if attempts <= max_retries:
                if on_retry:
                    on_retry(attempts, max_retries, last_error_summary)
                effective_prompt = f"{error_msg}\n\n---\n\n{prompt}"

        if on_retry and max_retries > 0:
            on_retry(max_retries + 1, max_retries, f"EXHAUSTED: {last_error_summary}")
        return result
