"""
Configuration file loader.

Reads controller lists and Monitor credentials from YAML, decrypting
SOPS-encrypted files (``*.enc.yaml``) on the fly.
"""

import logging
import subprocess
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)


def is_encrypted_config(file_path: Path) -> bool:
    """SOPS-encrypted configs follow the ``name.enc.yaml`` convention."""
    return ".enc." in file_path.name


def decrypt_sops_file(file_path: Path) -> dict[str, Any]:
    """
    Decrypt a SOPS-encrypted file and return parsed YAML.

    Args:
        file_path: Path to the encrypted file

    Returns:
        Decrypted configuration as dictionary

    Raises:
        FileNotFoundError: If file doesn't exist
        RuntimeError: If SOPS decryption fails
    """
    if not file_path.exists():
        raise FileNotFoundError(f"Encrypted config file not found: {file_path}")

    try:
        result = subprocess.run(
            ["sops", "-d", str(file_path)],
            capture_output=True,
            text=True,
            check=True,
        )
    except subprocess.CalledProcessError as e:
        raise RuntimeError(f"SOPS decryption failed: {e.stderr}") from e
    except FileNotFoundError:
        raise RuntimeError(
            "SOPS not installed. Install with: brew install sops (macOS) "
            "or download from https://github.com/getsops/sops/releases"
        )

    return _parse_yaml(result.stdout, file_path)


def load_config_file(file_path: Path) -> dict[str, Any]:
    """
    Load a configuration file, decrypting it first when needed.

    Args:
        file_path: Path to a plain or SOPS-encrypted YAML file

    Returns:
        Configuration dictionary (empty for an empty file)

    Raises:
        FileNotFoundError: If file doesn't exist
        RuntimeError: If decryption or parsing fails
    """
    if is_encrypted_config(file_path):
        return decrypt_sops_file(file_path)

    if not file_path.exists():
        raise FileNotFoundError(f"Config file not found: {file_path}")

    logger.debug(f"Loading plain config from {file_path}")
    return _parse_yaml(file_path.read_text(encoding="utf-8"), file_path)


def _parse_yaml(text: str, file_path: Path) -> dict[str, Any]:
    try:
        config = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise RuntimeError(f"Invalid YAML in {file_path}: {e}") from e

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise RuntimeError(
            f"Config {file_path} must be a mapping, got {type(config).__name__}"
        )
    return config


def check_sops_installed() -> bool:
    """Check if SOPS is installed and accessible."""
    try:
        subprocess.run(
            ["sops", "--version"],
            capture_output=True,
            check=True,
        )
        return True
    except (subprocess.CalledProcessError, FileNotFoundError):
        return False
