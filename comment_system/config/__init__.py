"""Configuration module."""

from comment_system.config.settings import Settings, get_settings


__all__ = ["Settings", "get_settings"]
