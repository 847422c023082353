"""
Configuration Module

Provides centralized configuration management using Pydantic Settings.
Supports environment variables and a local .env file.
"""

from nisabwatch.config.settings import Settings, settings

__all__ = ["Settings", "settings"]
