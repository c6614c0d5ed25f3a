# Configuration package
"""
Configuration package for the Study Portal
Exports settings from settings.py for easy import
"""
from .settings import settings, validate_settings

__all__ = ["settings", "validate_settings"]
