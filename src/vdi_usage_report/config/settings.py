"""
Application settings and configuration management.

Supports loading from:
1. SOPS-encrypted YAML files (config.enc.yaml)
2. Environment variables (fallback)
"""

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

from .constants import (
    DEFAULT_MAX_WORKERS,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    ODATA_VERSION,
)

logger = logging.getLogger(__name__)


def _safe_int(key: str, default: int) -> int:
    """Safely parse int from env var, using default on error."""
    try:
        return int(os.environ.get(key, str(default)))
    except ValueError:
        return default


def _safe_float(key: str, default: float) -> float:
    """Safely parse float from env var, using default on error."""
    try:
        return float(os.environ.get(key, str(default)))
    except ValueError:
        return default


def _safe_bool(key: str, default: bool) -> bool:
    """Safely parse bool from env var."""
    return os.environ.get(key, str(default).lower()).lower() == "true"


def _split_controllers(value: Any) -> list[str]:
    """Accept a list or a comma-separated string of controller addresses."""
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [str(v).strip() for v in value if str(v).strip()]


# =============================================================================
# Retry Settings
# =============================================================================


@dataclass
class RetrySettings:
    """Retry behaviour for requests against the Monitor feed."""

    max_retries: int = 3
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0

    def validate(self) -> list[str]:
        """Validate settings values. Returns list of errors."""
        errors = []

        if self.max_retries < 0:
            errors.append(f"max_retries must be >= 0, got {self.max_retries}")
        if self.base_delay_seconds < 0:
            errors.append(
                f"base_delay_seconds must be >= 0, got {self.base_delay_seconds}"
            )
        if self.max_delay_seconds < self.base_delay_seconds:
            errors.append(
                f"max_delay_seconds must be >= base_delay_seconds, "
                f"got {self.max_delay_seconds}"
            )

        return errors

    def to_dict(self) -> dict:
        return {
            "max_retries": self.max_retries,
            "base_delay_seconds": self.base_delay_seconds,
            "max_delay_seconds": self.max_delay_seconds,
        }

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> "RetrySettings":
        """Create from configuration dictionary."""
        return cls(
            max_retries=config.get("max_retries", 3),
            base_delay_seconds=config.get("base_delay_seconds", 1.0),
            max_delay_seconds=config.get("max_delay_seconds", 30.0),
        )

    @classmethod
    def from_env(cls) -> "RetrySettings":
        """Create from environment variables."""
        return cls(
            max_retries=_safe_int("USAGE_REPORT_MAX_RETRIES", 3),
            base_delay_seconds=_safe_float("USAGE_REPORT_RETRY_BASE_DELAY", 1.0),
            max_delay_seconds=_safe_float("USAGE_REPORT_RETRY_MAX_DELAY", 30.0),
        )


# =============================================================================
# Main Settings
# =============================================================================


@dataclass
class Settings:
    """Application settings for usage report generation."""

    # Controllers to query
    controllers: list[str] = field(default_factory=list)

    # Monitor Service credentials
    username: str = ""
    password: str = ""

    # Transport
    use_https: bool = False
    odata_version: str = ODATA_VERSION
    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS

    # Execution
    max_workers: int = DEFAULT_MAX_WORKERS

    retry: RetrySettings = field(default_factory=RetrySettings)

    @property
    def has_credential(self) -> bool:
        return bool(self.username)

    def validate(self) -> list[str]:
        """Validate required settings are present. Returns list of errors."""
        errors = []

        if not self.controllers:
            errors.append("controllers is required")

        if self.password and not self.username:
            errors.append("monitor.username is required when a password is set")

        if self.request_timeout_seconds <= 0:
            errors.append(
                f"request_timeout_seconds must be > 0, "
                f"got {self.request_timeout_seconds}"
            )

        if self.max_workers < 1:
            errors.append(f"max_workers must be >= 1, got {self.max_workers}")

        # Validate nested settings
        errors.extend(self.retry.validate())

        return errors

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> "Settings":
        """Create Settings from configuration dictionary (e.g., from SOPS)."""
        monitor = config.get("monitor", {})
        execution = config.get("execution", {})

        return cls(
            controllers=_split_controllers(config.get("controllers")),
            username=monitor.get("username", ""),
            password=monitor.get("password", ""),
            use_https=monitor.get("use_https", False),
            odata_version=monitor.get("odata_version", ODATA_VERSION),
            request_timeout_seconds=monitor.get(
                "timeout_seconds", DEFAULT_REQUEST_TIMEOUT_SECONDS
            ),
            max_workers=execution.get("max_workers", DEFAULT_MAX_WORKERS),
            retry=RetrySettings.from_dict(config.get("retry", {})),
        )

    @classmethod
    def from_env(cls) -> "Settings":
        """Create Settings from environment variables."""
        return cls(
            controllers=_split_controllers(
                os.environ.get("USAGE_REPORT_CONTROLLERS", "")
            ),
            username=os.environ.get("USAGE_REPORT_USERNAME", ""),
            password=os.environ.get("USAGE_REPORT_PASSWORD", ""),
            use_https=_safe_bool("USAGE_REPORT_USE_HTTPS", False),
            odata_version=os.environ.get("USAGE_REPORT_ODATA_VERSION", ODATA_VERSION),
            request_timeout_seconds=_safe_float(
                "USAGE_REPORT_TIMEOUT_SECONDS", DEFAULT_REQUEST_TIMEOUT_SECONDS
            ),
            max_workers=_safe_int("USAGE_REPORT_MAX_WORKERS", DEFAULT_MAX_WORKERS),
            retry=RetrySettings.from_env(),
        )


# Default config file path
DEFAULT_CONFIG_PATH = Path("config.enc.yaml")


@lru_cache
def get_settings(config_path: Optional[str] = None) -> Settings:
    """
    Get cached settings instance.

    Loads from the config file if available (decrypting SOPS files),
    otherwise from env vars. A missing explicit config_path is logged
    as a warning before the env fallback.

    Args:
        config_path: Optional path to a plain or SOPS-encrypted YAML file

    Returns:
        Settings instance
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    if path.exists():
        try:
            from .sops_loader import load_config_file

            config = load_config_file(path)
            return Settings.from_dict(config)
        except (FileNotFoundError, RuntimeError) as e:
            logger.warning(
                f"Failed to load config from {path}: {e}. "
                f"Falling back to environment variables"
            )
    elif config_path:
        logger.warning(
            f"Config file {path} not found. Falling back to environment variables"
        )

    return Settings.from_env()


def clear_settings_cache() -> None:
    """Clear the cached settings (useful for testing)."""
    get_settings.cache_clear()
