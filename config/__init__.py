"""
Configuration module - Application settings instance.
"""

from config.settings import Settings, settings

__all__ = ["Settings", "settings"]
