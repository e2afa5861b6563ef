"""Configuration for upy-package."""
from .settings import CONFIG, Settings

__all__ = ['CONFIG', 'Settings']
