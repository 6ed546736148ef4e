"""Utility modules: configuration loading and logging setup."""

from .config import get_config_value, load_config, mask_credential
from .logger import get_logger, setup_logging

__all__ = ["get_config_value", "load_config", "mask_credential", "get_logger", "setup_logging"]
