"""
Configuration management for keen-client

Handles defaults, environment overrides and JSON config files.
"""

from .loader import ConfigurationLoader
from .defaults import DEFAULT_SETTINGS, TEST_SETTINGS

__all__ = ["ConfigurationLoader", "DEFAULT_SETTINGS", "TEST_SETTINGS"]
