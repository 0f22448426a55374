"""Config package initialization."""

from .settings import Config, ConfigurationError, config

__all__ = ['Config', 'ConfigurationError', 'config']
