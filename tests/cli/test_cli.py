"""Tests for the exporter command line interface."""

from pathlib import Path

import pytest
from click.testing import CliRunner

from acc_exporter.cli import main as cli_main
from acc_exporter.cli.main import cli
from acc_exporter.server import ListenerState


class RecordingServer:
    """MetricsServer replacement that records how it was built."""

    instances: list["RecordingServer"] = []

    def __init__(self, app, settings, *, error_log=None) -> None:
        self.app = app
        self.settings = settings
        self.error_log = error_log
        self.served = False
        RecordingServer.instances.append(self)

    def serve_forever(self) -> ListenerState:
        self.served = True
        return ListenerState.STOPPED


@pytest.fixture
def recording_server(monkeypatch: pytest.MonkeyPatch):
    RecordingServer.instances = []
    monkeypatch.setattr(cli_main, "MetricsServer", RecordingServer)
    return RecordingServer


class TestDump:
    """Test suite for the dump command."""

    def test_prints_document(self, metrics_db: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["dump", "--database", str(metrics_db)])

        assert result.exit_code == 0, result.output
        assert result.output.startswith("# HELP acc_z_pk Z_PK\n")
        assert "acc_zbytesserved 12345\n" in result.output

    def test_missing_database(self, tmp_path: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["dump", "--database", str(tmp_path / "missing.db")])

        assert result.exit_code == 1
        assert "Error: Database file is not readable" in result.output

    def test_config_file(self, metrics_db: Path, tmp_path: Path):
        config_path = tmp_path / "exporter.yaml"
        config_path.write_text(
            f"database_path: '{metrics_db}'\nmetric_prefix: cache_\n", encoding="utf-8"
        )

        runner = CliRunner()
        result = runner.invoke(cli, ["dump", "--config", str(config_path)])

        assert result.exit_code == 0, result.output
        assert result.output.startswith("# HELP cache_z_pk Z_PK\n")


class TestServe:
    """Test suite for the serve command."""

    def test_builds_server_from_options(
        self,
        recording_server,
        metrics_db: Path,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
    ):
        monkeypatch.setenv("ACC_EXPORTER_ERROR_LOG_PATH", str(tmp_path / "err.log"))

        runner = CliRunner()
        result = runner.invoke(
            cli,
            ["serve", "--database", str(metrics_db), "--port", "9300", "--host", "127.0.0.1"],
        )

        assert result.exit_code == 0, result.output
        (server,) = recording_server.instances
        assert server.served is True
        assert server.settings.port == 9300
        assert server.settings.host == "127.0.0.1"
        assert server.settings.database_path == metrics_db
        assert server.app.state.error_log is server.error_log

    def test_invalid_configuration_is_a_usage_error(self, recording_server, tmp_path: Path):
        config_path = tmp_path / "exporter.yaml"
        config_path.write_text("port: not-a-port\n", encoding="utf-8")

        runner = CliRunner()
        result = runner.invoke(cli, ["serve", "--config", str(config_path)])

        assert result.exit_code == 2
        assert "Configuration validation failed" in result.output
        assert recording_server.instances == []
