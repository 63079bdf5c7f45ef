"""
Contract test for the service state machine

The run only succeeds when the service is running after start AND after one
verification restart.
"""

import pytest

from conftest import parse_events
from provisioner.errors import ServiceError
from provisioner.model import ServiceState
from provisioner.service import ServiceController, SystemdServiceManager, WindowsServiceManager


def _controller(runner, log, tmp_path, *, unit=True):
    units = tmp_path / "units"
    units.mkdir()
    if unit:
        (units / "zabbix-agent2.service").write_text("[Unit]\n", encoding="utf-8")
    manager = SystemdServiceManager("zabbix-agent2", runner, [units])
    return ServiceController(manager, log=log, settle_s=0.0, sleep=lambda s: None)


def test_start_and_verify_reach_running(runner, log, tmp_path, capsys) -> None:
    # stop_for_reconfigure sees it stopped, then running after start and restart
    runner.on("systemctl", "is-active", returncode=[3, 0])
    controller = _controller(runner, log, tmp_path)

    controller.mark_installed()
    controller.stop_for_reconfigure()
    controller.require_unit()
    controller.start()
    controller.verify_restart()

    assert controller.state is ServiceState.RUNNING
    assert controller.restarted is True
    assert not runner.ran("systemctl", "stop")
    assert runner.ran("systemctl", "enable", "--now", "zabbix-agent2")
    assert runner.ran("systemctl", "restart", "zabbix-agent2")

    transitions = [
        (e["from_state"], e["to_state"])
        for e in parse_events(capsys.readouterr().out)
        if e["event_type"] == "service_transition"
    ]
    assert transitions == [
        ("not_installed", "stopped"),
        ("stopped", "starting"),
        ("starting", "running"),
        ("running", "starting"),
        ("starting", "running"),
    ]


def test_running_service_is_stopped_before_reconfigure(runner, log, tmp_path) -> None:
    controller = _controller(runner, log, tmp_path)

    controller.mark_installed()
    controller.stop_for_reconfigure()

    assert runner.ran("systemctl", "daemon-reload")
    assert runner.ran("systemctl", "stop", "zabbix-agent2")


def test_failure_after_restart_is_fatal(runner, log, tmp_path, capsys) -> None:
    runner.on("systemctl", "is-active", returncode=[3, 0, 3])
    journal = "".join(f"zabbix_agent2[811]: starting plugin number {n:03d} ok\n" for n in range(99))
    journal += "zabbix_agent2[811]: cannot bind to port 10050\n"
    runner.on("journalctl", stdout=journal)
    controller = _controller(runner, log, tmp_path)

    controller.mark_installed()
    controller.stop_for_reconfigure()
    controller.start()
    with pytest.raises(ServiceError, match="not running after verification restart"):
        controller.verify_restart()

    assert controller.state is ServiceState.FAILED
    diagnostics = [e for e in parse_events(capsys.readouterr().out) if e["event_type"] == "service_diagnostics"]
    # the newest journal line (the actual failure) survives truncation
    assert diagnostics[0]["output"].endswith("zabbix_agent2[811]: cannot bind to port 10050")


def test_enable_failure_is_fatal(runner, log, tmp_path) -> None:
    runner.on("systemctl", "enable", returncode=1)
    controller = _controller(runner, log, tmp_path)
    controller.mark_installed()

    with pytest.raises(ServiceError, match="failed to enable/start"):
        controller.start()
    assert controller.state is ServiceState.FAILED


def test_missing_unit_is_fatal(runner, log, tmp_path) -> None:
    controller = _controller(runner, log, tmp_path, unit=False)

    with pytest.raises(ServiceError, match="not found on disk"):
        controller.require_unit()


def test_illegal_transitions_raise(runner, log, tmp_path) -> None:
    controller = _controller(runner, log, tmp_path)

    with pytest.raises(ServiceError, match="illegal service transition not_installed -> starting"):
        controller.start()

    controller.mark_installed()
    controller.start()
    controller.verify_restart()
    with pytest.raises(ServiceError, match="already verified"):
        controller.verify_restart()


def test_windows_manager_reads_sc_state(runner, tmp_path) -> None:
    binary = tmp_path / "zabbix_agent2.exe"
    binary.write_bytes(b"MZ")
    runner.on("sc", "query", stdout="SERVICE_NAME: Zabbix Agent 2\n        STATE              : 4  RUNNING\n")
    manager = WindowsServiceManager("Zabbix Agent 2", runner, binary)

    assert manager.is_active() is True
    assert manager.unit_present() is True
    assert manager.enable_and_start() is True
    assert runner.calls[-2] == ("sc", "config", "Zabbix Agent 2", "start=", "auto")
