"""
Configuration module for settings and service connections.
"""
from .settings import Settings, get_settings

__all__ = [
    'Settings',
    'get_settings',
]
