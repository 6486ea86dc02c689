"""Configuration management for livecommentary.

Loads and validates YAML-based configuration with Pydantic models.
Supports environment variable overrides for sensitive values like
the model endpoint API key.
"""

from livecommentary.config.settings import AppSettings, load_settings

__all__ = ["AppSettings", "load_settings"]
