"""Configuration for greenlight, read from environment variables and ``.env``."""

import logging
from functools import cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class EnvConfig(BaseSettings):
    """Environment variable configuration using pydantic-settings."""

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=True,
        extra='allow',
    )

    # Logging
    GREENLIGHT_LOGGING_LEVEL: str = Field(default='info')
    CDP_LOGGING_LEVEL: str = Field(default='WARNING')
    GREENLIGHT_DEBUG_LOG_FILE: str | None = Field(default=None)

    # Browser endpoint
    GREENLIGHT_DEBUG_HOST: str = Field(default='localhost')
    GREENLIGHT_DEBUG_PORT: int = Field(default=9222)
    GREENLIGHT_HEADLESS: bool | None = Field(default=None)
    GREENLIGHT_EXECUTABLE_PATH: str | None = Field(default=None)
    GREENLIGHT_CONNECT_TIMEOUT: float = Field(default=20.0, gt=0)

    # Locator polling
    GREENLIGHT_LOCATOR_TIMEOUT: float = Field(default=30.0, gt=0)
    GREENLIGHT_POLL_INTERVAL: float = Field(default=0.35, gt=0)


@cache
def get_config() -> EnvConfig:
    """Load the environment configuration once per process.

    Call ``get_config.cache_clear()`` after changing the environment to reload.
    """
    config = EnvConfig()
    logger.debug(
        f'Loaded config: debug endpoint {config.GREENLIGHT_DEBUG_HOST}:{config.GREENLIGHT_DEBUG_PORT}, '
        f'locator timeout {config.GREENLIGHT_LOCATOR_TIMEOUT}s, poll interval {config.GREENLIGHT_POLL_INTERVAL}s'
    )
    return config
