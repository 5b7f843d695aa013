"""
Centralized logging configuration.

Console logging goes to stderr; file logs rotate and are created with 0600
permissions. Session timeline events (lag spikes, state transitions, loss
alerts) get their own rotating log so a session can be reviewed without
the rest of the application noise.
"""

import logging
import logging.config
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Optional

import yaml

from ..exceptions import ConfigurationError

EVENTS_LOGGER = "crucible.events"
VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
VALID_FORMATS = ("standard", "json")


class SecureRotatingFileHandler(logging.handlers.RotatingFileHandler):
    """
    Rotating file handler that restricts log files to their owner (0600).
    """

    def _open(self):
        stream = super()._open()
        try:
            os.chmod(self.baseFilename, 0o600)
        except OSError as e:
            logging.warning(f"Could not set secure permissions on {self.baseFilename}: {e}")
        return stream


def _validate_log_level(log_level: str) -> str:
    """
    Normalize a log level name.

    Raises:
        ConfigurationError: If the level is unknown
    """
    log_level = log_level.upper()
    if log_level not in VALID_LEVELS:
        raise ConfigurationError(f"Invalid log level: {log_level}. Must be one of {list(VALID_LEVELS)}")
    return log_level


def _create_log_directory(log_dir: str) -> Path:
    log_path = Path(log_dir).resolve()
    log_path.mkdir(parents=True, exist_ok=True)
    try:
        os.chmod(log_path, 0o700)
    except OSError as e:
        logging.warning(f"Could not set secure permissions on {log_path}: {e}")
    return log_path


def build_logging_config(
    log_path: Optional[Path],
    log_level: str = "INFO",
    enable_console: bool = True,
    enable_file: bool = True,
    enable_events: bool = True,
    log_format: str = "standard",
) -> dict:
    """
    Build the dictConfig dictionary.

    Args:
        log_path: Directory for log files; required when file or event
            logging is enabled
        log_level: Root log level
        enable_console: Log to stderr
        enable_file: Log to crucible.log with rotation
        enable_events: Write session events to events.log
        log_format: "standard" or "json" (python-json-logger)

    Raises:
        ConfigurationError: On an unknown level or format
    """
    log_level = _validate_log_level(log_level)
    if log_format not in VALID_FORMATS:
        raise ConfigurationError(f"Invalid log format: {log_format}. Must be one of {list(VALID_FORMATS)}")

    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "events": {
                "format": "%(asctime)s [EVENT] %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {},
        "loggers": {},
        "root": {
            "level": log_level,
            "handlers": [],
        },
    }

    if log_format == "json":
        config["formatters"]["json"] = {
            "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
            "format": "%(asctime)s %(name)s %(levelname)s %(message)s",
        }

    if enable_console:
        config["handlers"]["console"] = {
            "class": "logging.StreamHandler",
            "level": log_level,
            "formatter": log_format,
            "stream": "ext://sys.stderr",
        }
        config["root"]["handlers"].append("console")

    if enable_file:
        config["handlers"]["file"] = {
            "()": SecureRotatingFileHandler,
            "level": log_level,
            "formatter": log_format,
            "filename": str(log_path / "crucible.log"),
            "maxBytes": 10485760,  # 10MB
            "backupCount": 5,
            "encoding": "utf8",
        }
        config["root"]["handlers"].append("file")

    if enable_events:
        config["handlers"]["events_file"] = {
            "()": SecureRotatingFileHandler,
            "level": "INFO",
            "formatter": "json" if log_format == "json" else "events",
            "filename": str(log_path / "events.log"),
            "maxBytes": 10485760,  # 10MB
            "backupCount": 10,
            "encoding": "utf8",
        }
        # Events also reach the root handlers
        config["loggers"][EVENTS_LOGGER] = {
            "level": "INFO",
            "handlers": ["events_file"],
            "propagate": True,
        }

    return config


def setup_logging(
    log_dir: str = "logs",
    log_level: str = "INFO",
    enable_console: bool = True,
    enable_file: bool = True,
    enable_events: bool = True,
    log_format: str = "standard",
    config_file: Optional[str] = None,
) -> None:
    """
    Setup centralized logging configuration.

    Args:
        log_dir: Directory for log files (default: "logs")
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        enable_console: Enable console (stderr) logging
        enable_file: Enable file logging with rotation
        enable_events: Enable the separate session events log
        log_format: Log format ("standard" or "json")
        config_file: Optional path to a YAML logging config (overrides other params)

    Raises:
        ConfigurationError: If configuration is invalid
        OSError: If log directory creation fails
    """
    if config_file and os.path.exists(config_file):
        _setup_logging_from_file(config_file, log_dir)
        return

    if log_level.upper() == "DEBUG":
        print("WARNING: DEBUG logging enabled, per-sample telemetry will be logged.", file=sys.stderr)

    log_path = _create_log_directory(log_dir) if (enable_file or enable_events) else None
    config = build_logging_config(
        log_path,
        log_level=log_level,
        enable_console=enable_console,
        enable_file=enable_file,
        enable_events=enable_events,
        log_format=log_format,
    )
    logging.config.dictConfig(config)

    logger = logging.getLogger(__name__)
    logger.info(
        f"Logging initialized: level={log_level.upper()}, console={enable_console}, "
        f"file={enable_file}, events={enable_events}, format={log_format}"
    )
    if log_path:
        logger.info(f"Log directory: {log_path}")


def _setup_logging_from_file(config_file: str, log_dir: str) -> None:
    """
    Setup logging from a YAML dictConfig file.

    Relative handler filenames are resolved against `log_dir`, and plain
    RotatingFileHandlers are swapped for SecureRotatingFileHandler.

    Raises:
        ConfigurationError: If the file is not valid YAML
    """
    with open(config_file, "r") as f:
        try:
            config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in logging configuration: {e}") from e

    log_path = _create_log_directory(log_dir)

    for handler_config in config.get("handlers", {}).values():
        filename = handler_config.get("filename")
        if filename and not os.path.isabs(filename):
            handler_config["filename"] = str(log_path / Path(filename).name)

        if handler_config.get("class") == "logging.handlers.RotatingFileHandler":
            handler_config["()"] = SecureRotatingFileHandler
            del handler_config["class"]

    logging.config.dictConfig(config)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging initialized from config file: {config_file}")


def get_events_logger() -> logging.Logger:
    """Logger for session timeline events."""
    return logging.getLogger(EVENTS_LOGGER)


def shutdown_logging() -> None:
    """Flush and close all handlers."""
    logging.shutdown()
