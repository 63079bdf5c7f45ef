"""
provisioner.service
AUTHOR: carter-vin

Service lifecycle for the agent

- ServiceManager: thin command wrappers (systemd, Windows SCM)
- ServiceController: the run's state machine on top of a manager

State machine:
  not_installed -> stopped -> starting -> {running, failed}
  running -> starting -> {running, failed}   (one verification restart)
failed and the post-restart running are terminal for the run.
"""

from __future__ import annotations

import abc
import time
from pathlib import Path
from typing import Callable, Sequence

from provisioner.errors import ServiceError
from provisioner.logging import EventLog
from provisioner.model import AgentLayout, Family, HostEnvironment, ServiceState
from provisioner.runner import CommandRunner


class ServiceManager(abc.ABC):
    """
    Interface to the host's service manager for a single service
    """

    def __init__(self, service_name: str, runner: CommandRunner) -> None:
        self.service_name = service_name
        self.runner = runner

    @abc.abstractmethod
    def is_active(self) -> bool:
        """Return True when the service is running."""

    @abc.abstractmethod
    def unit_present(self) -> bool:
        """Return True when the service definition exists on disk."""

    @abc.abstractmethod
    def stop(self) -> bool:
        """Stop the service."""

    @abc.abstractmethod
    def enable_and_start(self) -> bool:
        """Enable at boot and start now."""

    @abc.abstractmethod
    def restart(self) -> bool:
        """Restart the service."""

    def reload(self) -> None:
        """Re-read service definitions (if applicable)."""

    def diagnostics(self) -> str:
        """Recent service output for failure reports."""
        return ""


class SystemdServiceManager(ServiceManager):
    """Service management through systemctl."""

    def __init__(self, service_name: str, runner: CommandRunner, unit_dirs: Sequence[Path]) -> None:
        super().__init__(service_name, runner)
        self.unit_dirs = tuple(unit_dirs)

    def _systemctl(self, *args: str) -> bool:
        return self.runner(["systemctl", *args]).ok

    def is_active(self) -> bool:
        return self._systemctl("is-active", "--quiet", self.service_name)

    def unit_present(self) -> bool:
        # The filesystem is more reliable than parsing list-unit-files
        unit = f"{self.service_name}.service"
        return any((d / unit).is_file() for d in self.unit_dirs)

    def stop(self) -> bool:
        return self._systemctl("stop", self.service_name)

    def enable_and_start(self) -> bool:
        return self._systemctl("enable", "--now", self.service_name)

    def restart(self) -> bool:
        return self._systemctl("restart", self.service_name)

    def reload(self) -> None:
        self._systemctl("daemon-reload")

    def diagnostics(self) -> str:
        result = self.runner(["journalctl", "-u", self.service_name, "-n", "100", "--no-pager"])
        return result.stdout


class WindowsServiceManager(ServiceManager):
    """Service management through sc.exe."""

    def __init__(self, service_name: str, runner: CommandRunner, binary: Path) -> None:
        super().__init__(service_name, runner)
        self.binary = binary

    def is_active(self) -> bool:
        result = self.runner(["sc", "query", self.service_name])
        return result.ok and "RUNNING" in result.stdout

    def unit_present(self) -> bool:
        return self.binary.is_file() and self.runner(["sc", "query", self.service_name]).ok

    def stop(self) -> bool:
        return self.runner(["sc", "stop", self.service_name]).ok

    def enable_and_start(self) -> bool:
        if not self.runner(["sc", "config", self.service_name, "start=", "auto"]).ok:
            return False
        return self.runner(["sc", "start", self.service_name]).ok

    def restart(self) -> bool:
        # SCM has no restart verb; stop may fail if already stopped
        self.stop()
        return self.runner(["sc", "start", self.service_name]).ok

    def diagnostics(self) -> str:
        return self.runner(["sc", "queryex", self.service_name]).stdout


def resolve_service_manager(
    env: HostEnvironment,
    layout: AgentLayout,
    runner: CommandRunner,
    *,
    unit_dirs: Sequence[Path],
) -> ServiceManager:
    if env.family is Family.WINDOWS:
        return WindowsServiceManager(layout.service_name, runner, Path(layout.binary))
    return SystemdServiceManager(layout.service_name, runner, unit_dirs)


# Allowed transitions; anything else is a programming error surfaced as ServiceError
_TRANSITIONS = {
    ServiceState.NOT_INSTALLED: {ServiceState.STOPPED},
    ServiceState.STOPPED: {ServiceState.STARTING},
    ServiceState.STARTING: {ServiceState.RUNNING, ServiceState.FAILED},
    ServiceState.RUNNING: {ServiceState.STARTING},
    ServiceState.FAILED: set(),
}


class ServiceController:
    """
    Drive the agent service from installed to verified running
    """

    def __init__(
        self,
        manager: ServiceManager,
        *,
        log: EventLog,
        settle_s: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.manager = manager
        self.log = log
        self.settle_s = settle_s
        self.sleep = sleep
        self.state = ServiceState.NOT_INSTALLED
        self.restarted = False

    def _transition(self, new_state: ServiceState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise ServiceError(f"illegal service transition {self.state.value} -> {new_state.value}")
        if self.state is ServiceState.RUNNING and self.restarted:
            raise ServiceError("service already verified; no further transitions")
        self.log.emit(
            "service_transition",
            service=self.manager.service_name,
            from_state=self.state.value,
            to_state=new_state.value,
        )
        self.state = new_state

    def _fail(self, message: str) -> None:
        self._transition(ServiceState.FAILED)
        self.log.emit(
            "service_diagnostics",
            service=self.manager.service_name,
            output=self.manager.diagnostics().strip()[-2000:],
        )
        raise ServiceError(message)

    def mark_installed(self) -> None:
        self._transition(ServiceState.STOPPED)

    def stop_for_reconfigure(self) -> None:
        """
        Reload definitions and stop a running service before the config changes

        Failures are tolerated: the service may not exist yet.
        """
        self.manager.reload()
        if self.manager.is_active():
            self.manager.stop()

    def require_unit(self) -> None:
        if not self.manager.unit_present():
            raise ServiceError(f"{self.manager.service_name} service definition not found on disk (installation incomplete)")

    def start(self) -> None:
        """
        Enable at boot, start, settle, require running
        """
        self.manager.reload()
        self._transition(ServiceState.STARTING)
        if not self.manager.enable_and_start():
            self._fail(f"{self.manager.service_name} failed to enable/start")
        self.sleep(self.settle_s)
        if not self.manager.is_active():
            self._fail(f"{self.manager.service_name} not running after start")
        self._transition(ServiceState.RUNNING)

    def verify_restart(self) -> None:
        """
        One restart cycle, settle, require running (terminal)
        """
        if self.state is not ServiceState.RUNNING:
            raise ServiceError("verification restart requires a running service")
        self._transition(ServiceState.STARTING)
        self.restarted = True
        if not self.manager.restart():
            self._fail(f"{self.manager.service_name} failed to restart")
        self.sleep(self.settle_s)
        if not self.manager.is_active():
            self._fail(f"{self.manager.service_name} not running after verification restart")
        self._transition(ServiceState.RUNNING)
