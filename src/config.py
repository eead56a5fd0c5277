"""Configuration module using pydantic-settings."""

import logging
from pathlib import Path
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.utils.prompt_builder import (
    DEFAULT_MATCHING_SYSTEM_PROMPT,
    DEFAULT_MATCHING_USER_PROMPT,
    DEFAULT_OUTFIT_SYSTEM_PROMPT,
    DEFAULT_OUTFIT_USER_PROMPT,
)

logger = logging.getLogger(__name__)


class LLMConfig(BaseSettings):
    """OpenAI-compatible chat model used to write image prompts."""

    api_key: str = Field(..., description="API key for the chat completions endpoint")
    base_url: str = Field("https://api.openai.com/v1", description="API base URL")
    model: str = Field("gpt-4o", description="Vision-capable chat model")
    timeout: int = Field(60, ge=10, le=300, description="Request timeout in seconds")
    max_tokens: int = Field(1000, ge=1, le=16384, description="Maximum tokens in response")
    temperature: float = Field(0.1, ge=0.0, le=2.0, description="Sampling temperature")

    model_config = SettingsConfigDict(env_prefix="LLM_", case_sensitive=False)


class GeminiConfig(BaseSettings):
    """Google Gemini API configuration."""

    api_key: str = Field(..., description="Gemini API key")
    model: str = Field(
        "gemini-2.5-flash-image",
        description="Gemini model name",
    )
    timeout: int = Field(120, ge=1, description="Request timeout in seconds")
    aspect_ratio: str = Field("9:16", description="Generated image aspect ratio")

    model_config = SettingsConfigDict(env_prefix="GEMINI_", case_sensitive=False)


class TelegramConfig(BaseSettings):
    """Telegram bot configuration."""

    bot_token: str = Field(..., description="Telegram bot token")
    admin_user_id: int = Field(0, description="User allowed to run admin commands (0 disables)")

    model_config = SettingsConfigDict(env_prefix="TELEGRAM_", case_sensitive=False)

    def file_url(self, file_path: str) -> str:
        """Build a download URL for a file stored on Telegram servers."""
        return f"https://api.telegram.org/file/bot{self.bot_token}/{file_path}"


class RedisConfig(BaseSettings):
    """Redis configuration."""

    host: str = Field("localhost", description="Redis host")
    port: int = Field(6379, ge=1, le=65535, description="Redis port")
    db: int = Field(0, ge=0, description="Redis database number")

    model_config = SettingsConfigDict(env_prefix="REDIS_", case_sensitive=False)


class RateLimitConfig(BaseSettings):
    """Fallback admission limits, used when Redis holds no stored settings."""

    requests_per_minute: int = Field(20, ge=1, le=100, description="Jobs dispatched per minute")
    max_concurrent_requests: int = Field(5, ge=1, le=20, description="Parallel generation calls")

    model_config = SettingsConfigDict(env_prefix="RATE_LIMIT_", case_sensitive=False)


class QueueConfig(BaseSettings):
    """Dispatch loop tuning."""

    epoch_seconds: float = Field(60.0, gt=0, description="Rate limit accounting window")
    error_backoff_seconds: float = Field(1.0, ge=0, description="Pause after a failed loop iteration")
    download_timeout: int = Field(30, ge=1, description="Source image download timeout in seconds")

    model_config = SettingsConfigDict(env_prefix="QUEUE_", case_sensitive=False)


class PromptsConfig(BaseSettings):
    """Prompt templates for both request kinds."""

    outfit_generation_system: str = Field(DEFAULT_OUTFIT_SYSTEM_PROMPT)
    outfit_generation_user: str = Field(DEFAULT_OUTFIT_USER_PROMPT)
    matching_items_system: str = Field(DEFAULT_MATCHING_SYSTEM_PROMPT)
    matching_items_user: str = Field(DEFAULT_MATCHING_USER_PROMPT)

    model_config = SettingsConfigDict(env_prefix="PROMPT_", case_sensitive=False)


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Logging level")

    model_config = SettingsConfigDict(env_prefix="LOG_", case_sensitive=False)


class AppConfig(BaseSettings):
    """Main application configuration."""

    telegram: TelegramConfig
    llm: LLMConfig
    gemini: GeminiConfig
    redis: RedisConfig = Field(default_factory=RedisConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    prompts: PromptsConfig = Field(default_factory=PromptsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Build configuration from environment variables only."""
        return cls(
            telegram=TelegramConfig(),
            llm=LLMConfig(),
            gemini=GeminiConfig(),
        )

    @classmethod
    def from_yaml(cls, yaml_path: Path | str) -> "AppConfig":
        """Load configuration from YAML file.

        Sections present in the file are merged with environment variables,
        so secrets such as ``TELEGRAM_BOT_TOKEN`` can stay out of the file.
        """
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")

        import yaml

        with yaml_path.open("r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f) or {}

        sections: dict[str, type[BaseSettings]] = {
            "telegram": TelegramConfig,
            "llm": LLMConfig,
            "gemini": GeminiConfig,
            "redis": RedisConfig,
            "rate_limit": RateLimitConfig,
            "queue": QueueConfig,
            "prompts": PromptsConfig,
            "logging": LoggingConfig,
        }

        # Nested settings classes pick up their own env vars for missing keys
        config_data: dict[str, Any] = {}
        for key, section_cls in sections.items():
            values = yaml_data.get(key) or {}
            if not isinstance(values, dict):
                raise ValueError(f"Config section '{key}' must be a mapping")
            config_data[key] = section_cls(**values)

        return cls(**config_data)


# Global config instance
_config: AppConfig | None = None


def get_config() -> AppConfig:
    """Get application configuration (singleton)."""
    global _config
    if _config is None:
        config_path = Path("config.yaml")
        if config_path.exists():
            _config = AppConfig.from_yaml(config_path)
        else:
            _config = AppConfig.from_env()
        logger.info("Configuration loaded successfully")
    return _config
