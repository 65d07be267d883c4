"""
Configuration for agenthub services.

Settings are read from case-sensitive environment variables, optionally from
the .env file named by LOAD_ENV_FILE.
"""

from __future__ import annotations

import os
import pathlib
from typing import TypeVar

import lazy_object_proxy
import pydantic
import pydantic_settings

T = TypeVar('T', bound='AgentHubSettings')


class AgentHubSettings(pydantic_settings.BaseSettings):
    """Shared configuration for the protocol layer and search index."""

    model_config = pydantic_settings.SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=True,  # Fail fast on misconfiguration
        extra='forbid',  # Reject unknown .env entries
    )

    # Root of the agent's data directory (history.jsonl, projects/)
    CLAUDE_DATA_DIR: pathlib.Path = pathlib.Path.home() / '.claude'

    # Resolving an unknown or already-resolved control request raises when True,
    # and is a logged no-op when False (production)
    STRICT_CONTROL_PROTOCOL: bool = True

    # Transcript scanning stops once slug and branch are known and this many
    # summaries have been collected
    SUMMARY_SCAN_LIMIT: int = 10

    # Seconds to wait for the agent's first line; None or 0 disables
    FIRST_EVENT_TIMEOUT_SECONDS: float | None = 120.0

    @pydantic.field_validator('SUMMARY_SCAN_LIMIT')
    @classmethod
    def validate_summary_scan_limit(cls, v: int) -> int:
        """Validate the summary scan limit is positive."""
        if v < 1:
            raise ValueError('SUMMARY_SCAN_LIMIT must be at least 1')
        return v

    @pydantic.field_validator('FIRST_EVENT_TIMEOUT_SECONDS')
    @classmethod
    def validate_first_event_timeout(cls, v: float | None) -> float | None:
        """Normalize a zero timeout to None (disabled)."""
        if v is not None and v < 0:
            raise ValueError('FIRST_EVENT_TIMEOUT_SECONDS must not be negative')
        return v or None


def get_settings(settings_class: type[T], env_file: str | None = None) -> T:
    """
    Instantiate settings, reading an explicit .env file when one is named.

    The file is env_file, else $LOAD_ENV_FILE. Without either, the process
    environment and a ./.env file, if present, are read.

    Raises:
        FileNotFoundError: The named .env file does not exist
    """
    named = env_file or os.getenv('LOAD_ENV_FILE')
    if not named:
        return settings_class()

    env_path = pathlib.Path(named).resolve()
    if not env_path.is_file():
        raise FileNotFoundError(f'Environment file not found: {env_path}')
    return settings_class(_env_file=env_path)


def lazy_settings(settings_class: type[T]) -> T:
    """Proxy that builds the settings on first attribute access, so importing never reads the environment."""
    return lazy_object_proxy.Proxy(lambda: get_settings(settings_class))
