"""Utility functions for configuration and logging."""

from image_deduper.utils.config import Config
from image_deduper.utils.logger import set_log_level, setup_logger

__all__ = ["Config", "set_log_level", "setup_logger"]
