"""Configuration module."""

from .constants import (
    DEFAULT_MAX_WORKERS,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    DEFAULT_WINDOW_SECONDS,
    EXPORT_FORMATS,
    FETCH_STAGES,
    MIN_WINDOW_SECONDS,
    ODATA_VERSION,
)
from .settings import RetrySettings, Settings, clear_settings_cache, get_settings
from .sops_loader import check_sops_installed, decrypt_sops_file, load_config_file

__all__ = [
    # Time window
    "DEFAULT_WINDOW_SECONDS",
    "MIN_WINDOW_SECONDS",
    # Monitor feed
    "ODATA_VERSION",
    "DEFAULT_REQUEST_TIMEOUT_SECONDS",
    "FETCH_STAGES",
    # Execution
    "DEFAULT_MAX_WORKERS",
    "EXPORT_FORMATS",
    # Settings
    "Settings",
    "RetrySettings",
    "get_settings",
    "clear_settings_cache",
    # Config loading
    "load_config_file",
    "decrypt_sops_file",
    "check_sops_installed",
]
