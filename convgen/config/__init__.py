"""Configuration module for convgen."""

from .models import ConvgenConfig, load_config, save_config

__all__ = ["ConvgenConfig", "load_config", "save_config"]
