"""Configuration for agenthub."""

from __future__ import annotations

from agenthub.config.base import AgentHubSettings, get_settings, lazy_settings

# Module-level singleton (lazy-loaded)
settings = lazy_settings(AgentHubSettings)

__all__ = ['AgentHubSettings', 'get_settings', 'lazy_settings', 'settings']
