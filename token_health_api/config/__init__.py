"""Configuration for the Token Health API."""

from token_health_api.config.settings import APISettings

__all__ = ["APISettings"]
