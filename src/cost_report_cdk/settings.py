"""Settings and configuration access.

This module provides a clean interface for accessing application settings.
Settings are automatically loaded from .env file via pydantic-settings.

Usage:
    Basic usage:
        >>> from cost_report_cdk.settings import get_settings
        >>> settings = get_settings()
        >>> print(settings.app_name)
        Cost Report Infrastructure CDK

    Pick the config.yaml block to deploy:
        >>> settings = get_settings()
        >>> print(settings.stack_environment)
        FINOPS

    Testing with custom settings:
        >>> def test_example(monkeypatch):
        ...     monkeypatch.setenv("STACK_ENVIRONMENT", "sandbox")
        ...     get_settings.cache_clear()  # Clear cache
        ...     assert get_settings().stack_environment == "SANDBOX"
"""

from functools import lru_cache

from .config import Settings


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Priority order (highest to lowest):
        1. Environment variables
        2. .env file in project root
        3. Default values from config.py

    Returns:
        Settings: Cached settings instance with validated configuration

    Note:
        In tests, call get_settings.cache_clear() after changing environment
        variables to force reload of settings.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
