"""
Tests for the click command line.

The webserver command is exercised with the supervisor replaced, so no signal
handlers are installed in the test process.
"""

from __future__ import annotations

import yaml
from click.testing import CliRunner

from cloudapp import cli as cli_module


def _config_file(tmp_path, port: int = 9100):
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "logger": {"level": "INFO"},
                "info": {"title": "cli-test"},
                "server": {"host": "127.0.0.1", "port": port},
            }
        ),
        encoding="utf-8",
    )
    return path


def test_config_command_prints_resolved_config(tmp_path):
    path = _config_file(tmp_path)

    result = CliRunner().invoke(cli_module.cli, ["--config", str(path), "config"])

    assert result.exit_code == 0, result.output
    printed = yaml.safe_load(result.output[result.output.index("logger:\n"):])
    assert printed["server"]["port"] == 9100
    assert printed["server"]["shutdown_timeout"] == 30
    assert printed["info"]["title"] == "cli-test"


def test_missing_config_exits_with_error(tmp_path):
    result = CliRunner().invoke(
        cli_module.cli, ["--config", str(tmp_path / "absent.yaml"), "config"]
    )

    assert result.exit_code == 1


def test_webserver_is_the_default_command(tmp_path, monkeypatch):
    path = _config_file(tmp_path)
    seen = {}

    def fake_serve(server, stop_event):
        seen["server"] = server
        return 0

    monkeypatch.setattr(cli_module, "install_signal_handlers", lambda event: None)
    monkeypatch.setattr(cli_module, "serve_until_stopped", fake_serve)

    result = CliRunner().invoke(cli_module.cli, ["--config", str(path)])

    assert result.exit_code == 0, result.output
    assert seen["server"].address == "127.0.0.1:9100"
    assert seen["server"].app.title == "cli-test"


def test_webserver_overrides_and_exit_code(tmp_path, monkeypatch):
    path = _config_file(tmp_path)
    seen = {}

    def fake_serve(server, stop_event):
        seen["server"] = server
        return 1

    monkeypatch.setattr(cli_module, "install_signal_handlers", lambda event: None)
    monkeypatch.setattr(cli_module, "serve_until_stopped", fake_serve)

    result = CliRunner().invoke(
        cli_module.cli,
        ["--config", str(path), "webserver", "--host", "::1", "--port", "9200"],
    )

    assert result.exit_code == 1
    assert seen["server"].address == "[::1]:9200"
