"""
Configuration module for the marketplace ranking engine.

This module provides centralized configuration management using pydantic-settings.
All environment variables and configuration values should be accessed through this module.

Usage:
    from config import get_settings, settings

    # Get settings instance (cached)
    settings = get_settings()

    # Access values
    backend = settings.storage_backend
    is_dev = settings.is_development
"""

from config.settings import Settings, get_settings

# Convenience: create a default settings instance
# Note: This will raise if an environment value fails validation
try:
    settings = get_settings()
except Exception:
    settings = None  # Allow import even if env is misconfigured (for testing)

__all__ = ["Settings", "get_settings", "settings"]
