"""
Package: config
Description: Application configuration loaded from the environment.
"""

from .settings import Settings, SettingsProvider, get_settings, reload_settings

__all__ = ["Settings", "SettingsProvider", "get_settings", "reload_settings"]
