"""Configuration for EntityForge.

Resolution order: built-in defaults < JSON config file < environment.
Credentials are read from the environment only and never persisted.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from .core.errors import ConfigurationError


logger = logging.getLogger(__name__)

CONFIG_PATH = Path.home() / ".config" / "entityforge" / "config.json"

PROVIDER_NAMES = ("openai", "claude", "gemini")
IMAGE_PROVIDER_NAMES = ("openai", "gemini")

# Environment variables checked in order for each provider's credential
API_KEY_ENV_VARS = {
    "openai": ("OPENAI_API_KEY",),
    "claude": ("ANTHROPIC_API_KEY", "ANTHROPIC_ACCESS_TOKEN"),
    "gemini": ("GEMINI_API_KEY", "GOOGLE_API_KEY"),
}


class PipelineConfig(BaseModel):
    provider: str = "gemini"
    image_provider: str | None = None
    text_model: str | None = None
    image_model: str | None = None
    stage_timeout_seconds: float | None = 60.0
    max_retries: int = Field(default=0, ge=0)
    learn_new_attributes: bool = False
    default_region: str = "medieval_kingdom_001"

    @property
    def resolved_image_provider(self) -> str:
        return self.image_provider or self.provider


class LoggingConfig(BaseModel):
    log_llm_calls: bool = False
    logs_dir: str = "./logs"


class EntityForgeConfig(BaseModel):
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _apply_env(data: dict[str, Any]) -> dict[str, Any]:
    pipeline = data.setdefault("pipeline", {})
    if value := os.environ.get("ENTITYFORGE_PROVIDER"):
        pipeline["provider"] = value
    if value := os.environ.get("ENTITYFORGE_IMAGE_PROVIDER"):
        pipeline["image_provider"] = value
    if value := os.environ.get("ENTITYFORGE_STAGE_TIMEOUT"):
        pipeline["stage_timeout_seconds"] = value
    return data


def load_config(path: Path | None = None) -> EntityForgeConfig:
    """Load config from file and environment.

    Raises:
        ConfigurationError: If the file or environment holds invalid values.
    """
    load_dotenv()
    path = path or CONFIG_PATH

    data: dict[str, Any] = {}
    if path.exists():
        try:
            with open(path) as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid config file {path}: {e}") from e

    try:
        config = EntityForgeConfig.model_validate(_apply_env(data))
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e

    for name in (config.pipeline.provider, config.pipeline.resolved_image_provider):
        if name not in PROVIDER_NAMES:
            raise ConfigurationError(
                f"Unknown provider '{name}'. Choose one of: {', '.join(PROVIDER_NAMES)}"
            )
    if config.pipeline.resolved_image_provider not in IMAGE_PROVIDER_NAMES:
        raise ConfigurationError(
            f"The {config.pipeline.resolved_image_provider} provider cannot generate images; "
            f"set pipeline.image_provider to one of: {', '.join(IMAGE_PROVIDER_NAMES)}"
        )
    return config


def save_config(config: EntityForgeConfig, path: Path | None = None) -> Path:
    path = path or CONFIG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(config.model_dump(mode="json"), f, indent=2)
    logger.info(f"[Config] saved to {path}")
    return path


def set_value(config: EntityForgeConfig, key: str, raw: str) -> EntityForgeConfig:
    """Return a copy of config with a dotted key set from its string form.

    Raises:
        KeyError: If the key does not name a config field.
        ValueError: If the value cannot be converted to the field's type.
    """
    section_name, _, field_name = key.partition(".")
    section = getattr(config, section_name, None)
    if not isinstance(section, BaseModel) or field_name not in type(section).model_fields:
        raise KeyError(key)

    field_info = type(section).model_fields[field_name]
    annotation = field_info.annotation
    value: Any = raw
    if raw.lower() in ("none", "null") and not field_info.is_required():
        value = None
    elif annotation is bool:
        if raw.lower() not in ("true", "false", "1", "0", "yes", "no"):
            raise ValueError(f"Invalid boolean: {raw}")
        value = raw.lower() in ("true", "1", "yes")
    elif annotation is int:
        try:
            value = int(raw)
        except ValueError:
            raise ValueError(f"Invalid integer: {raw}") from None
    elif annotation in (float, float | None):
        try:
            value = float(raw)
        except ValueError:
            raise ValueError(f"Invalid number: {raw}") from None

    if field_name in ("provider", "image_provider") and value is not None:
        if value not in PROVIDER_NAMES:
            raise ValueError(
                f"Unknown provider '{value}'. Choose one of: {', '.join(PROVIDER_NAMES)}"
            )

    data = config.model_dump()
    data[section_name][field_name] = value
    try:
        updated = EntityForgeConfig.model_validate(data)
    except ValidationError as e:
        raise ValueError(str(e)) from e

    image_provider = updated.pipeline.resolved_image_provider
    if image_provider not in IMAGE_PROVIDER_NAMES:
        raise ValueError(
            f"The {image_provider} provider cannot generate images; "
            f"set pipeline.image_provider to one of: {', '.join(IMAGE_PROVIDER_NAMES)} first"
        )
    return updated


def get_api_key(provider: str) -> str:
    """Return the credential for a provider from the environment, or ""."""
    for var in API_KEY_ENV_VARS.get(provider, ()):
        if value := os.environ.get(var):
            return value
    return ""
