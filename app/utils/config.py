"""
Configuration utilities for the application.
"""

import os
from pathlib import Path
from typing import Optional, Tuple

from crucible.config import Config, get_config


def get_data_dir() -> Path:
    """
    Returns the data directory path from environment variable or default.
    """
    data_dir = Path(os.getenv("DATA_DIR", "/data"))
    return data_dir


def get_logs_dir() -> Path:
    """Returns the logs directory path."""
    return get_data_dir() / "logs"


def get_reports_dir() -> Path:
    """Returns the reports directory path."""
    return get_data_dir() / "reports"


def get_app_config() -> Config:
    """Classifier configuration (CRUCIBLE_CONFIG, then config.yaml, then defaults)."""
    return get_config()


def get_extrahop_credentials(config: Optional[Config] = None) -> Optional[Tuple[str, str]]:
    """
    Appliance URL and API key from EXTRAHOP_API_URL / EXTRAHOP_API_KEY.
    The URL falls back to extrahop.api_url of the configuration; the key is
    only read from the environment.

    Returns:
        (api_url, api_key), or None when either is missing
    """
    api_url = os.getenv("EXTRAHOP_API_URL", "").strip()
    if not api_url and config is not None:
        api_url = (config.get("extrahop.api_url") or "").strip()
    api_key = os.getenv("EXTRAHOP_API_KEY", "").strip()
    if not api_url or not api_key:
        return None
    return api_url, api_key
