"""
Configuration loading.
"""

import copy
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .exceptions import ConfigurationError

CONFIG_ENV_VAR = "CRUCIBLE_CONFIG"

DEFAULT_CONFIG: Dict[str, Any] = {
    "thresholds": {
        "packet_loss_alert_percent": 2.0,
        "jitter_alert_ms": 50.0,
    },
    "ingestion": {
        "poll_interval_seconds": 1.0,
        "rolling_window": 10,
        "strict_validation": False,
    },
    "extrahop": {
        "api_url": None,
        "timeout_seconds": 30,
        "max_requests_per_minute": 100,
    },
    "reports": {
        "output_dir": "reports",
    },
    "logging": {
        "log_dir": "logs",
        "level": "INFO",
        "format": "standard",
    },
}

REQUIRED_SECTIONS = ("thresholds", "ingestion")


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    result = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _merge(result[key], value)
        else:
            result[key] = value
    return result


class Config:
    """Crucible Monitor configuration (config.yaml merged over built-in defaults)."""

    def __init__(self, config_path: Optional[str] = None) -> None:
        """
        Load the configuration.

        Args:
            config_path: Path to a YAML file. When None, $CRUCIBLE_CONFIG is
                used, then config.yaml at the project root; if neither
                exists the built-in defaults apply.

        Raises:
            FileNotFoundError: An explicitly requested file does not exist
            ConfigurationError: The file is malformed or incomplete
        """
        explicit = config_path is not None or bool(os.getenv(CONFIG_ENV_VAR))
        if config_path is None:
            config_path = os.getenv(CONFIG_ENV_VAR) or Path(__file__).parent.parent / "config.yaml"

        self.config_path = Path(config_path)
        if self.config_path.exists():
            self.config = _merge(DEFAULT_CONFIG, self._load_config())
        elif explicit:
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")
        else:
            self.config_path = None
            self.config = copy.deepcopy(DEFAULT_CONFIG)

    def _load_config(self) -> Dict[str, Any]:
        try:
            with open(self.config_path, encoding="utf-8") as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"YAML syntax error in {self.config_path}: {e}") from e

        if config is None:
            raise ConfigurationError(
                f"Configuration file {self.config_path} is empty. "
                f"Required sections: {', '.join(REQUIRED_SECTIONS)}"
            )
        if not isinstance(config, dict):
            raise ConfigurationError(f"Configuration file {self.config_path} must contain a mapping")

        self._validate_config(config)
        return config

    def _validate_config(self, config: Dict[str, Any]) -> None:
        """
        Validate the structure of a loaded file.

        Raises:
            ConfigurationError: If a required section is missing or a
                threshold is not a non-negative number
        """
        missing_sections = [section for section in REQUIRED_SECTIONS if section not in config]
        if missing_sections:
            raise ConfigurationError(
                f"Missing sections in {self.config_path}: {', '.join(missing_sections)}\n"
                f"Required sections: {', '.join(REQUIRED_SECTIONS)}"
            )

        for section in ("thresholds", "ingestion", "extrahop", "reports", "logging"):
            if section in config and not isinstance(config[section], dict):
                raise ConfigurationError(f"Section '{section}' must be a mapping")

        for key, value in config["thresholds"].items():
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigurationError(
                    f"Threshold '{key}' must be a number, got {type(value).__name__} ({value})"
                )
            if value < 0:
                raise ConfigurationError(f"Threshold '{key}' cannot be negative: {value}")

        ingestion = config["ingestion"]
        interval = ingestion.get("poll_interval_seconds", 1.0)
        if not isinstance(interval, (int, float)) or interval <= 0:
            raise ConfigurationError(f"'ingestion.poll_interval_seconds' must be a positive number, got {interval!r}")
        window = ingestion.get("rolling_window", 10)
        if isinstance(window, bool) or not isinstance(window, int) or window < 1:
            raise ConfigurationError(f"'ingestion.rolling_window' must be a positive integer, got {window!r}")

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Look up a value by dotted path.

        Args:
            key_path: e.g. "thresholds.jitter_alert_ms"
            default: Returned when any part of the path is missing
        """
        value = self.config
        for key in key_path.split("."):
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value

    @property
    def thresholds(self) -> Dict[str, float]:
        return self.config.get("thresholds", {})

    @property
    def ingestion_config(self) -> Dict[str, Any]:
        return self.config.get("ingestion", {})

    @property
    def extrahop_config(self) -> Dict[str, Any]:
        return self.config.get("extrahop", {})

    @property
    def report_config(self) -> Dict[str, Any]:
        return self.config.get("reports", {})

    @property
    def logging_config(self) -> Dict[str, Any]:
        return self.config.get("logging", {})


def get_config(config_path: Optional[str] = None) -> Config:
    """
    Create a Config instance.

    Raises:
        FileNotFoundError: If an explicit configuration file does not exist
        ConfigurationError: If the configuration is invalid
    """
    return Config(config_path)
