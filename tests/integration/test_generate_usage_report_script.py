"""
Integration tests for the generate_usage_report.py script.

The OData client is patched with an in-memory data source.
"""

import json
import sys
from pathlib import Path
from unittest.mock import patch

import pandas as pd
import pytest

# Add scripts to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "scripts"))

import generate_usage_report as cli
from tests.integration.fakes import FakeDataSource
from vdi_usage_report.exceptions import CollectionError


@pytest.fixture
def no_env(monkeypatch, tmp_path):
    """Run with no configured controllers and no config file."""
    for key in ["USAGE_REPORT_CONTROLLERS", "USAGE_REPORT_USERNAME", "USAGE_REPORT_PASSWORD"]:
        monkeypatch.delenv(key, raising=False)
    return ["--config", str(tmp_path / "missing.enc.yaml")]


@pytest.fixture
def fake_client(office_controller):
    source = FakeDataSource(
        controllers={"ddc01": office_controller, "ddc02": office_controller}
    )
    with patch.object(cli, "MonitorODataClient") as client_cls:
        client_cls.from_settings.return_value = source
        yield source


class TestArguments:
    """Tests for argument parsing."""

    def test_parse_controllers(self):
        """Repeated and comma-separated values are flattened."""
        assert cli.parse_controllers(["ddc01,ddc02", " ddc03 ", ","]) == [
            "ddc01",
            "ddc02",
            "ddc03",
        ]
        assert cli.parse_controllers(None) == []

    def test_defaults(self):
        args = cli.build_parser().parse_args([])

        assert args.format == "json"
        assert args.output is None
        assert args.start is None

    def test_format_choices(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["--format", "xml"])


class TestMain:
    """Tests for exit codes and output."""

    def test_no_controllers_is_usage_error(self, no_env):
        assert cli.main(no_env) == cli.EXIT_USAGE

    def test_invalid_workers(self, no_env):
        assert cli.main(no_env + ["--controllers", "ddc01", "--workers", "-1"]) == (
            cli.EXIT_USAGE
        )

    def test_prints_json(self, no_env, fake_client, capsys):
        """A clean run prints the report and exits 0."""
        code = cli.main(no_env + ["--controllers", "ddc01,ddc02"])

        assert code == cli.EXIT_OK
        data = json.loads(capsys.readouterr().out)
        assert [c["address"] for c in data["controllers"]] == ["ddc01", "ddc02"]
        assert data["controllers"][0]["deliveryGroups"][0]["name"] == "Group A"
        assert fake_client.closed

    def test_writes_csv(self, no_env, fake_client, tmp_path):
        output = tmp_path / "reports" / "usage.csv"

        code = cli.main(
            no_env + ["--controllers", "ddc01", "--format", "csv", "--output", str(output)]
        )

        assert code == cli.EXIT_OK
        df = pd.read_csv(output)
        assert df["delivery_group"].tolist() == ["Group A", "Group B"]

    def test_credentials_from_arguments(self, no_env, fake_client):
        cli.main(no_env + ["--controllers", "ddc01", "--username", "svc", "--password", "pw"])

        assert fake_client.credentials[0].username == "svc"

    def test_invalid_window_is_usage_error(self, no_env, fake_client):
        code = cli.main(
            no_env + ["--controllers", "ddc01", "--start", "2024-01-15", "--end", "2024-01-14"]
        )

        assert code == cli.EXIT_USAGE
        assert fake_client.calls == []

    def test_controller_failure_exit_code(self, no_env, fake_client, capsys):
        """Failed controllers still appear in the output, with exit code 2."""
        fake_client.failures[("ddc02", "machines")] = CollectionError(
            "ddc02", stage="machines", reason="HTTP 500"
        )

        code = cli.main(no_env + ["--controllers", "ddc01,ddc02"])

        assert code == cli.EXIT_CONTROLLER_FAILURES
        data = json.loads(capsys.readouterr().out)
        assert data["controllers"][1]["error"]["kind"] == "collection"
