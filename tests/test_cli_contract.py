"""
Contract test for the CLI surface

- render-config prints the config without touching the host
- invalid overrides are usage errors (exit 2) and never start a run
"""

from typer.testing import CliRunner

from provisioner.main import app


def test_version_command() -> None:
    runner = CliRunner()

    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert result.stdout.startswith("agent-provisioner v0.1.0")


def test_render_config_uses_env_overrides() -> None:
    """
    ZBX_* variables feed the same options as the flags
    """
    runner = CliRunner()

    result = runner.invoke(
        app,
        ["render-config", "--server", "zbx.example.net"],
        env={"ZBX_PORT": "20051", "ZBX_DEBUG": "4", "ZBX_METADATA": "linux-db"},
    )

    assert result.exit_code == 0
    lines = result.stdout.splitlines()
    assert lines[0] == "ServerActive=zbx.example.net:20051"
    assert "ListenPort=20050" in lines
    assert "DebugLevel=4" in lines
    assert "HostMetadata=linux-db" in lines


def test_render_config_explicit_listen_port() -> None:
    runner = CliRunner()

    result = runner.invoke(app, ["render-config", "--server", "zbx.example.net", "--listen-port", "10070"])

    assert result.exit_code == 0
    assert "ListenPort=10070" in result.stdout.splitlines()


def test_invalid_debug_level_is_usage_error() -> None:
    runner = CliRunner()

    result = runner.invoke(app, ["render-config", "--server", "zbx.example.net", "--debug-level", "9"])

    assert result.exit_code == 2


def test_install_rejects_bad_overrides_before_running() -> None:
    runner = CliRunner()

    empty_servers = runner.invoke(app, ["install"], env={"ZBX_SERVERS": " , "})
    bad_port = runner.invoke(app, ["install"], env={"ZBX_PORT": "70000"})

    assert empty_servers.exit_code == 2
    assert bad_port.exit_code == 2
    assert "run_start" not in empty_servers.stdout
    assert "run_start" not in bad_port.stdout
