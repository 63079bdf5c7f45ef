"""
provisioner.orchestrator
AUTHOR: carter-vin

Sequences one provisioning run and maps fatal errors to exit codes

Order (each step completes before the next starts):
1) preconditions (privileges, disk)
2) environment probe -> strategy + service manager
3) already installed and active -> exit 0, nothing touched
4) collector selection
5) install (primary, else fallback)
6) stop before write, back up + write config, unit present, start
7) settle, verification restart, settle, require running
"""

from __future__ import annotations

import shutil
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from provisioner.agent_config import AgentSettings, ConfigWrite, write_agent_config
from provisioner.config import ProvisionConfig
from provisioner.errors import InstallError, ProvisionError
from provisioner.fetch import ArtifactFetcher, HttpFetcher
from provisioner.installer import install_agent
from provisioner.logging import EventLog
from provisioner.model import (
    CollectorSelection,
    HostEnvironment,
    InstallOutcome,
    PackagePlan,
    ServiceState,
)
from provisioner.probes.collector import Connect, select_collector, tcp_connect
from provisioner.probes.host import HostIdentity, probe_environment, read_host_identity
from provisioner.probes.preconditions import check_preconditions, free_disk_mb, is_elevated
from provisioner.runner import CommandRunner, SubprocessRunner
from provisioner.service import ServiceController, resolve_service_manager
from provisioner.strategies import resolve_strategy

AGENT_VERSION = "0.1.0"

EXIT_OK = 0


@dataclass
class Collaborators:
    """
    Everything a run touches outside the process
    """

    log: EventLog
    runner: CommandRunner
    fetcher: ArtifactFetcher
    identify: Callable[[], HostIdentity] = read_host_identity
    which: Callable[[str], Optional[str]] = shutil.which
    connect: Connect = tcp_connect
    elevated: Callable[[], bool] = is_elevated
    free_mb: Callable[[Path], int] = free_disk_mb
    sleep: Callable[[float], None] = time.sleep
    now: Callable[[], datetime] = datetime.now

    @classmethod
    def for_host(cls, config: ProvisionConfig) -> "Collaborators":
        log = EventLog(agent_version=AGENT_VERSION, transcript_path=config.transcript_path)
        return cls(
            log=log,
            runner=SubprocessRunner(log),
            fetcher=HttpFetcher(
                timeout_s=config.download_timeout_s,
                retries=config.download_retries,
                retry_delay_s=config.retry_delay_s,
            ),
        )


@dataclass(frozen=True)
class RunSummary:
    environment: HostEnvironment
    short_circuit: bool = False
    selection: Optional[CollectorSelection] = None
    plan: Optional[PackagePlan] = None
    outcome: Optional[InstallOutcome] = None
    config_write: Optional[ConfigWrite] = None
    service_state: Optional[ServiceState] = None
    warnings: tuple[str, ...] = field(default_factory=tuple)


def provision(config: ProvisionConfig, collab: Collaborators) -> RunSummary:
    """
    Run every step; raises ProvisionError on the first fatal condition
    """
    log = collab.log

    free = check_preconditions(
        min_disk_mb=config.min_disk_mb,
        disk_path=config.disk_check_path,
        elevated=collab.elevated,
        free_mb=collab.free_mb,
    )
    log.emit("preconditions_checked", free_disk_mb=free, min_disk_mb=config.min_disk_mb)

    env = probe_environment(collab.identify(), collab.which)
    log.emit("environment_detected", stream=env.is_stream, **env.to_dict())

    strategy = resolve_strategy(env, collab.runner, release=config.release)
    layout = strategy.layout
    if config.config_dir is not None:
        layout = layout.relocated(config.config_dir)
    manager = resolve_service_manager(env, layout, collab.runner, unit_dirs=config.unit_dirs)

    if collab.which(layout.binary) and manager.is_active():
        log.emit("already_active", service=layout.service_name)
        return RunSummary(environment=env, short_circuit=True, service_state=ServiceState.RUNNING)

    selection = select_collector(
        config.candidates(),
        timeout_s=config.probe_timeout_s,
        log=log,
        connect=collab.connect,
    )

    plan, outcome = install_agent(strategy, collab.fetcher, scratch_dir=config.scratch_dir, log=log)

    if not collab.which(layout.binary):
        raise InstallError(f"{layout.binary} not found on PATH after installation")

    controller = ServiceController(manager, log=log, settle_s=config.settle_s, sleep=collab.sleep)
    controller.mark_installed()
    controller.stop_for_reconfigure()

    written = write_agent_config(
        selection,
        AgentSettings.from_config(config),
        layout,
        log=log,
        now=collab.now,
    )

    controller.require_unit()
    controller.start()
    controller.verify_restart()

    return RunSummary(
        environment=env,
        selection=selection,
        plan=plan,
        outcome=outcome,
        config_write=written,
        service_state=controller.state,
        warnings=tuple(log.warnings),
    )


def run(config: ProvisionConfig, collab: Collaborators) -> int:
    """
    Top-level dispatch: one run, one exit code
    """
    log = collab.log
    log.emit(
        "run_start",
        servers=list(config.servers),
        port=config.port,
        listen_port=config.listen_port,
    )

    try:
        summary = provision(config, collab)
    except ProvisionError as e:
        log.emit("run_failed", category=e.category, error_type=type(e).__name__, message=str(e))
        return e.exit_code
    else:
        fields = {
            "short_circuit": summary.short_circuit,
            "family": summary.environment.family.value,
            "warnings": list(summary.warnings),
        }
        if summary.selection is not None:
            fields["collector"] = summary.selection.candidate.address
        if summary.outcome is not None:
            fields["install_path"] = summary.outcome.path.value
        if summary.service_state is not None:
            fields["service_state"] = summary.service_state.value
        log.emit("run_succeeded", **fields)
        return EXIT_OK
    finally:
        log.emit("run_shutdown")
