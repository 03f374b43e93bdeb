"""
Unit tests for settings and config file loading.
"""

import logging
from pathlib import Path

import pytest

from vdi_usage_report.config import (
    RetrySettings,
    Settings,
    get_settings,
    load_config_file,
)
from vdi_usage_report.config.sops_loader import is_encrypted_config


@pytest.fixture
def env(monkeypatch):
    """Clear usage-report env vars, then let the test set its own."""
    for key in [
        "USAGE_REPORT_CONTROLLERS",
        "USAGE_REPORT_USERNAME",
        "USAGE_REPORT_PASSWORD",
        "USAGE_REPORT_USE_HTTPS",
        "USAGE_REPORT_TIMEOUT_SECONDS",
        "USAGE_REPORT_MAX_WORKERS",
        "USAGE_REPORT_MAX_RETRIES",
    ]:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


class TestFromEnv:
    """Tests for environment-based settings."""

    def test_defaults(self, env):
        """With no env vars, defaults apply."""
        settings = Settings.from_env()

        assert settings.controllers == []
        assert settings.username == ""
        assert settings.use_https is False
        assert settings.max_workers == 4
        assert settings.retry.max_retries == 3

    def test_controllers_are_split(self, env):
        """Comma-separated controllers are split and trimmed."""
        env.setenv("USAGE_REPORT_CONTROLLERS", "ddc01, ddc02 ,,ddc03")

        assert Settings.from_env().controllers == ["ddc01", "ddc02", "ddc03"]

    def test_typed_values(self, env):
        """Numeric and boolean values are parsed."""
        env.setenv("USAGE_REPORT_USE_HTTPS", "true")
        env.setenv("USAGE_REPORT_TIMEOUT_SECONDS", "15.5")
        env.setenv("USAGE_REPORT_MAX_WORKERS", "8")
        env.setenv("USAGE_REPORT_MAX_RETRIES", "1")

        settings = Settings.from_env()

        assert settings.use_https is True
        assert settings.request_timeout_seconds == 15.5
        assert settings.max_workers == 8
        assert settings.retry.max_retries == 1

    def test_bad_numbers_fall_back(self, env):
        """Unparseable numbers use defaults."""
        env.setenv("USAGE_REPORT_MAX_WORKERS", "many")

        assert Settings.from_env().max_workers == 4


class TestFromDict:
    """Tests for dictionary-based settings."""

    def test_full_config(self):
        """All sections are read."""
        settings = Settings.from_dict(
            {
                "controllers": ["ddc01", "ddc02"],
                "monitor": {
                    "username": "CORP\\svc-report",
                    "password": "secret",
                    "use_https": True,
                    "odata_version": "v4",
                    "timeout_seconds": 30,
                },
                "execution": {"max_workers": 2},
                "retry": {"max_retries": 5},
            }
        )

        assert settings.controllers == ["ddc01", "ddc02"]
        assert settings.username == "CORP\\svc-report"
        assert settings.has_credential
        assert settings.odata_version == "v4"
        assert settings.request_timeout_seconds == 30
        assert settings.max_workers == 2
        assert settings.retry.max_retries == 5

    def test_controllers_as_string(self):
        """A comma-separated controller string is accepted."""
        assert Settings.from_dict({"controllers": "ddc01,ddc02"}).controllers == [
            "ddc01",
            "ddc02",
        ]


class TestValidate:
    """Tests for settings validation."""

    def test_valid_settings(self):
        """Complete settings produce no errors."""
        assert Settings(controllers=["ddc01"]).validate() == []

    def test_missing_controllers(self):
        """Controllers are required."""
        assert "controllers is required" in Settings().validate()

    def test_password_without_username(self):
        """A password alone is rejected."""
        errors = Settings(controllers=["ddc01"], password="x").validate()

        assert any("username" in e for e in errors)

    def test_bad_workers_and_retry(self):
        """Nested retry errors are included."""
        settings = Settings(
            controllers=["ddc01"],
            max_workers=0,
            retry=RetrySettings(max_retries=-1),
        )

        errors = settings.validate()

        assert any("max_workers" in e for e in errors)
        assert any("max_retries" in e for e in errors)


class TestConfigFiles:
    """Tests for loading settings from YAML files."""

    def test_plain_yaml(self, tmp_path):
        """Plain YAML files are read directly."""
        path = tmp_path / "config.yaml"
        path.write_text("controllers:\n  - ddc01\nexecution:\n  max_workers: 3\n")

        assert load_config_file(path) == {
            "controllers": ["ddc01"],
            "execution": {"max_workers": 3},
        }

    def test_empty_yaml(self, tmp_path):
        """An empty file is an empty config."""
        path = tmp_path / "config.yaml"
        path.write_text("")

        assert load_config_file(path) == {}

    def test_non_mapping_yaml(self, tmp_path):
        """Top-level lists are rejected."""
        path = tmp_path / "config.yaml"
        path.write_text("- ddc01\n")

        with pytest.raises(RuntimeError, match="must be a mapping"):
            load_config_file(path)

    def test_missing_file(self, tmp_path):
        """Missing files raise FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_config_file(tmp_path / "absent.yaml")

    def test_encrypted_naming(self):
        """*.enc.yaml files are treated as SOPS-encrypted."""
        assert is_encrypted_config(Path("config.enc.yaml"))
        assert not is_encrypted_config(Path("config.yaml"))

    def test_get_settings_reads_plain_file(self, tmp_path, env):
        """get_settings loads from an explicit config path."""
        path = tmp_path / "config.yaml"
        path.write_text("controllers: ddc01,ddc02\nmonitor:\n  username: svc\n")

        settings = get_settings(str(path))

        assert settings.controllers == ["ddc01", "ddc02"]
        assert settings.username == "svc"

    def test_get_settings_falls_back_to_env(self, tmp_path, env):
        """Without a config file, env vars are used."""
        env.setenv("USAGE_REPORT_CONTROLLERS", "ddc09")

        settings = get_settings(str(tmp_path / "missing.enc.yaml"))

        assert settings.controllers == ["ddc09"]

    def test_missing_explicit_config_is_logged(self, tmp_path, env, caplog):
        """An explicit config path that does not exist is reported."""
        missing = tmp_path / "missing.enc.yaml"

        with caplog.at_level(logging.WARNING, logger="vdi_usage_report.config.settings"):
            get_settings(str(missing))

        assert f"Config file {missing} not found" in caplog.text

    def test_missing_default_config_is_quiet(self, tmp_path, env, monkeypatch, caplog):
        """Falling back from the default path does not warn."""
        monkeypatch.chdir(tmp_path)

        with caplog.at_level(logging.WARNING, logger="vdi_usage_report.config.settings"):
            get_settings()

        assert "not found" not in caplog.text
