"""Generative-model providers.

Each provider adapts one vendor SDK to the LLMProvider capability ports.
Providers are imported lazily so only the selected vendor SDK is loaded.
"""

from ...config import EntityForgeConfig, PROVIDER_NAMES, get_api_key
from ..errors import ConfigurationError
from .base import LLMProvider, RetryCallback, ValidatorCallback


def get_provider(name: str, config: EntityForgeConfig | None = None) -> LLMProvider:
    """Build a provider by name using credentials from the environment.

    Raises:
        ConfigurationError: Unknown provider name or missing credential.
    """
    config = config or EntityForgeConfig()
    options = {
        "log_calls": config.logging.log_llm_calls,
        "logs_dir": config.logging.logs_dir,
    }
    api_key = get_api_key(name)

    if name == "openai":
        from .openai import OpenAIProvider

        return OpenAIProvider(api_key, **options)
    if name == "claude":
        from .claude import ClaudeProvider

        return ClaudeProvider(api_key, **options)
    if name == "gemini":
        from .gemini import GeminiProvider

        return GeminiProvider(api_key, **options)

    raise ConfigurationError(
        f"Unknown provider '{name}'. Choose one of: {', '.join(PROVIDER_NAMES)}"
    )


__all__ = [
    "LLMProvider",
    "ValidatorCallback",
    "RetryCallback",
    "get_provider",
]
