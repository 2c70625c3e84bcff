"""
Tests for the command-line interface.
"""

import os
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from core.constants import EXIT_CONFIGURATION_ERROR, EXIT_FAILURE, EXIT_INTERRUPTED, EXIT_OK, EXIT_SQL_FAILED
from core.exceptions import SQLExecutionFailed
from core.state_manager import BootstrapState
from orchestrator.cli import build_config, create_parser, main, validate_args
from orchestrator.models import BootstrapResult


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture(autouse=True)
def quiet_environment(monkeypatch):
    """No logging reconfiguration, no .env, no PGBOOT_* leakage."""
    for key in list(os.environ):
        if key.startswith("PGBOOT_"):
            monkeypatch.delenv(key)
    with patch("orchestrator.cli.setup_logging"), patch("orchestrator.cli.load_dotenv"):
        yield


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "instance.yaml"
    path.write_text(
        f"data_dir: {tmp_path / 'data'}\n"
        "port: 5433\n"
        "settings:\n"
        "  max_connections: 100\n"
        "  shared_buffers: 128MB\n"
        "  enabled: true\n"
    )
    return path


@pytest.fixture
def mock_orchestrator():
    with patch("orchestrator.cli.BootstrapOrchestrator") as cls:
        instance = cls.return_value
        instance.run.return_value = BootstrapResult(
            run_id="bootstrap_test",
            started_at=datetime.now(timezone.utc),
            final_state=BootstrapState.FRESHLY_INITIALIZED,
            success=True,
        )
        instance.last_result = None
        yield cls


# ============================================================
# PARSER AND VALIDATION
# ============================================================

class TestParser:

    def test_defaults(self):
        args = create_parser().parse_args([])

        assert args.config is None
        assert args.port is None
        assert args.refresh_config is None
        assert args.log_level == "INFO"

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            create_parser().parse_args(["--version"])

        assert exc_info.value.code == 0
        assert "pg-bootstrap 0.1.0" in capsys.readouterr().out

    def test_missing_config_file(self, tmp_path):
        args = create_parser().parse_args(["--config", str(tmp_path / "absent.yaml")])

        assert validate_args(args) == [f"--config file not found: {tmp_path / 'absent.yaml'}"]

    def test_port_out_of_range(self):
        args = create_parser().parse_args(["--port", "0"])

        assert validate_args(args) == ["--port must be in 1..65535"]


class TestBuildConfig:

    def test_flags_override_file(self, config_file, tmp_path):
        args = create_parser().parse_args([
            "--config", str(config_file),
            "--port", "6000",
            "--socket-dir", str(tmp_path / "sock"),
            "--refresh-config",
        ])

        config = build_config(args)

        assert config.port == 6000
        assert config.socket_dir == str(tmp_path / "sock")
        assert config.refresh_config is True
        assert config.data_dir == str(tmp_path / "data")

    def test_from_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PGBOOT_DATA_DIR", str(tmp_path / "envdata"))
        monkeypatch.setenv("PGBOOT_PORT", "5599")

        config = build_config(create_parser().parse_args(["--superuser", "admin"]))

        assert config.data_dir == str(tmp_path / "envdata")
        assert config.port == 5599
        assert config.superuser == "admin"


# ============================================================
# MAIN
# ============================================================

class TestMain:

    def test_show_stages(self, capsys):
        assert main(["--show-stages"]) == EXIT_OK

        out = capsys.readouterr().out
        assert "resolve_paths" in out
        assert out.index("start_transient") < out.index("provision_databases") < out.index("stop_transient")

    def test_invalid_args(self, tmp_path):
        assert main(["--config", str(tmp_path / "absent.yaml")]) == EXIT_CONFIGURATION_ERROR

    def test_missing_data_dir(self):
        assert main([]) == EXIT_CONFIGURATION_ERROR

    def test_invalid_config_value(self, tmp_path):
        path = tmp_path / "instance.yaml"
        path.write_text(f"data_dir: {tmp_path / 'data'}\nstart_timeout: '30'\n")

        assert main(["--config", str(path), "--check"]) == EXIT_CONFIGURATION_ERROR

    def test_render_config(self, config_file, capsys, mock_orchestrator):
        assert main(["--config", str(config_file), "--render-config"]) == EXIT_OK

        assert capsys.readouterr().out == (
            "max_connections = 100\nshared_buffers = '128MB'\nenabled = yes\n"
        )
        mock_orchestrator.assert_not_called()

    def test_check(self, config_file, capsys):
        assert main(["--config", str(config_file), "--check"]) == EXIT_OK

        assert capsys.readouterr().out.strip() == "uninitialized"

    def test_run_success(self, config_file, mock_orchestrator):
        assert main(["--config", str(config_file)]) == EXIT_OK

        mock_orchestrator.return_value.run.assert_called_once()
        config = mock_orchestrator.call_args.kwargs["config"]
        assert config.port == 5433

    def test_bootstrap_error_exit_code(self, config_file, mock_orchestrator):
        mock_orchestrator.return_value.run.side_effect = SQLExecutionFailed("bad sql", database="app")

        assert main(["--config", str(config_file)]) == EXIT_SQL_FAILED

    def test_keyboard_interrupt(self, config_file, mock_orchestrator):
        mock_orchestrator.return_value.run.side_effect = KeyboardInterrupt()

        assert main(["--config", str(config_file)]) == EXIT_INTERRUPTED

    def test_unexpected_error(self, config_file, mock_orchestrator):
        mock_orchestrator.return_value.run.side_effect = RuntimeError("boom")

        assert main(["--config", str(config_file)]) == EXIT_FAILURE

    def test_loads_dotenv(self, config_file, mock_orchestrator):
        with patch("orchestrator.cli.load_dotenv") as load_dotenv:
            main(["--config", str(config_file)])

        load_dotenv.assert_called_once()
