# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Configuration loading and validation for the module dependency graph."""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".module_graph.yml"


class ConfigurationError(Exception):
    """Raised when configuration validation fails critically."""

    pass


class Config:
    """Configuration for DependencyGraph.

    Loads configuration from .module_graph.yml with validation and defaults.
    Invalid or unknown values are logged and replaced by defaults; a broken
    configuration file never prevents the graph from being built.
    """

    DEFAULTS = {
        # Base for path normalization. Empty means the working directory
        # at the time the graph is constructed.
        "root": "",
        # Cross-check edges against import metadata on add/update
        "strict": False,
        # Loads/updates slower than this are logged as warnings
        "log_slow_operations_ms": 200,
    }

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_path: Path to configuration file. If None, uses default location.
        """
        if config_path is None:
            config_path = Path.cwd() / CONFIG_FILENAME

        self.config_path = config_path
        self._config: Dict[str, Any] = {}
        self._load_config()

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "Config":
        """Build a configuration from in-memory values, without reading a file.

        Raises:
            ConfigurationError: If values is not a dict.
        """
        if not isinstance(values, dict):
            raise ConfigurationError(f"Configuration must be a dict, got {type(values)}")
        config = cls.__new__(cls)
        config.config_path = None
        config._config = cls.DEFAULTS.copy()
        config._validate_and_merge(values)
        return config

    def _load_config(self) -> None:
        """Load and validate configuration from file."""
        if not self.config_path.exists():
            logger.info(f"Configuration file not found at {self.config_path}, using defaults")
            self._config = self.DEFAULTS.copy()
            return

        try:
            with open(self.config_path, encoding="utf-8") as f:
                loaded_config = yaml.safe_load(f)

            if loaded_config is None:
                logger.warning("Configuration file is empty, using defaults")
                self._config = self.DEFAULTS.copy()
                return

            if not isinstance(loaded_config, dict):
                logger.warning(
                    f"Configuration file must contain a YAML dictionary, "
                    f"got {type(loaded_config)}, using defaults"
                )
                self._config = self.DEFAULTS.copy()
                return

            self._config = self.DEFAULTS.copy()
            self._validate_and_merge(loaded_config)

        except yaml.YAMLError as e:
            logger.warning(
                f"Error parsing configuration file {self.config_path}: {e}, using defaults"
            )
            self._config = self.DEFAULTS.copy()
        except OSError as e:
            logger.warning(
                f"Unable to read configuration file {self.config_path}: {e}, using defaults"
            )
            self._config = self.DEFAULTS.copy()

    def _validate_and_merge(self, loaded_config: Dict[str, Any]) -> None:
        """Validate loaded configuration and merge with defaults.

        Invalid parameters are logged as warnings and defaults are used.
        """
        for key, value in loaded_config.items():
            if key not in self.DEFAULTS:
                logger.warning(f"Unknown configuration parameter '{key}', ignoring")
                continue

            if not self._validate_parameter(key, value):
                logger.warning(
                    f"Invalid value for '{key}': {value}, using default {self.DEFAULTS[key]}"
                )
                continue

            self._config[key] = value

    def _validate_parameter(self, key: str, value: Any) -> bool:
        """Validate a configuration parameter.

        Returns:
            True if valid, False if invalid
        """
        expected_type = type(self.DEFAULTS[key])
        # bool is an int subclass; reject it for numeric parameters
        if expected_type is int and isinstance(value, bool):
            return False
        if not isinstance(value, expected_type):
            return False

        if key == "log_slow_operations_ms":
            return value > 0
        elif key == "root":
            return "\0" not in value

        return True

    @property
    def root(self) -> str:
        """Root directory for path normalization ("" = working directory)."""
        value = self._config["root"]
        assert isinstance(value, str)
        return value

    @property
    def strict(self) -> bool:
        """Whether strict import-metadata validation is enabled."""
        value = self._config["strict"]
        assert isinstance(value, bool)
        return value

    @property
    def log_slow_operations_ms(self) -> int:
        """Threshold in milliseconds above which operations log a warning."""
        value = self._config["log_slow_operations_ms"]
        assert isinstance(value, int)
        return value
