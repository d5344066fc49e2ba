"""
Storage Layer.

This package persists the user's default settings in an INI file.
"""

from .config_manager import ConfigManager

__all__ = ["ConfigManager"]
