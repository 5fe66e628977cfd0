"""Configuration management for Support Hub.

Usage:
    >>> from support_hub.config import get_settings
    >>> settings = get_settings()
    >>> settings.franchise_api_base_url
"""

from support_hub.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
