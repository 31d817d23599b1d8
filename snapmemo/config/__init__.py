"""Configuration loading and validation."""

from snapmemo.config.config_loader import ConfigLoader, config

__all__ = ["ConfigLoader", "config"]
