"""Configuration management for image-deduper."""

import copy
import json
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from image_deduper.core.exceptions import ConfigError
from image_deduper.utils.logger import setup_logger

logger = setup_logger(__name__)


class Config:
    """Manages user configuration and settings."""

    DEFAULT_CONFIG_DIR = Path.home() / ".image-deduper"
    DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.json"

    DEFAULT_SETTINGS: Dict[str, Any] = {
        "grid_size": [8, 8],  # width, height of the sampling grid
        "similarity_threshold": 0.95,  # fraction of matching bits
        "max_workers": None,  # None lets the thread pool decide
        "recursive": True,
        "skip_hidden": True,
    }

    def __init__(self, config_file: Optional[Path] = None):
        """
        Initialize configuration.

        Args:
            config_file: Path to config file (default: ~/.image-deduper/config.json)
        """
        self.config_file = Path(config_file) if config_file else self.DEFAULT_CONFIG_FILE
        self.settings: Dict[str, Any] = {}
        self.load()

    def load(self) -> None:
        """Load configuration from file or create with defaults."""
        if self.config_file.exists():
            try:
                with open(self.config_file, "r", encoding="utf-8") as f:
                    loaded = json.load(f)
                if not isinstance(loaded, dict):
                    raise ValueError("top-level value must be an object")
                self.settings = copy.deepcopy(self.DEFAULT_SETTINGS)
                self.settings.update(loaded)
                logger.debug(f"Loaded configuration from {self.config_file}")
            except (json.JSONDecodeError, ValueError) as e:
                logger.warning(f"Invalid config file: {e}. Using defaults.")
                self.settings = copy.deepcopy(self.DEFAULT_SETTINGS)
        else:
            logger.info("No config file found. Creating with defaults.")
            self.settings = copy.deepcopy(self.DEFAULT_SETTINGS)
            self.save()

    def save(self) -> None:
        """Save configuration to file."""
        self.config_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_file, "w", encoding="utf-8") as f:
            json.dump(self.settings, f, indent=2)
        logger.debug(f"Saved configuration to {self.config_file}")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Args:
            key: Configuration key (supports dot notation)
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key.split(".")
        value = self.settings
        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
                if value is None:
                    return default
            else:
                return default
        return value

    def set(self, key: str, value: Any) -> None:
        """
        Set a configuration value.

        Args:
            key: Configuration key (supports dot notation)
            value: Value to set
        """
        keys = key.split(".")
        target = self.settings
        for k in keys[:-1]:
            if k not in target or not isinstance(target[k], dict):
                target[k] = {}
            target = target[k]
        target[keys[-1]] = value
        self.save()

    def get_threshold(self) -> float:
        """
        Get the similarity threshold.

        Returns:
            Threshold in the half-open range (0, 1]

        Raises:
            ConfigError: If the stored value is not a number in (0, 1]
        """
        return validate_threshold(self.get("similarity_threshold", 0.95))

    def get_grid_size(self) -> Tuple[int, int]:
        """
        Get the sampling grid size as (width, height).

        Raises:
            ConfigError: If the stored value is not a pair of positive ints
        """
        return validate_grid_size(self.get("grid_size", [8, 8]))

    def get_max_workers(self) -> Optional[int]:
        """Get the fingerprinting worker count (None means executor default)."""
        workers = self.get("max_workers")
        if workers is None:
            return None
        if isinstance(workers, bool) or not isinstance(workers, int) or workers < 1:
            raise ConfigError(f"max_workers must be a positive integer, got {workers!r}")
        return workers


def validate_threshold(value: Any) -> float:
    """
    Check a similarity threshold.

    Args:
        value: Candidate threshold

    Returns:
        The threshold as a float

    Raises:
        ConfigError: If value is not a number in (0, 1]
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"Similarity threshold must be a number, got {value!r}")
    if not 0 < value <= 1:
        raise ConfigError(f"Similarity threshold must be in (0, 1], got {value}")
    return float(value)


def validate_grid_size(value: Any) -> Tuple[int, int]:
    """Check a (width, height) grid size and return it as a tuple."""
    try:
        width, height = value
    except (TypeError, ValueError):
        raise ConfigError(f"Grid size must be a (width, height) pair, got {value!r}")

    for dimension in (width, height):
        if isinstance(dimension, bool) or not isinstance(dimension, int) or dimension < 1:
            raise ConfigError(f"Grid dimensions must be positive integers, got {value!r}")
    return width, height
