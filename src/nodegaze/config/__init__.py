"""Configuration loading."""

from nodegaze.config.settings import AppConfig

__all__ = ["AppConfig"]
