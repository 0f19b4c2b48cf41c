"""
Storage Layer.

This package manages the persistent INI configuration file.
"""

from .config_manager import ConfigManager

__all__ = ["ConfigManager"]
