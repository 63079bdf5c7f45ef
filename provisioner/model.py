"""
provisioner.model
AUTHOR: carter-vin

Run data model: host environment, collector selection, package plan,
install outcome, service state and agent file layout.

Design goals:
- Frozen dataclasses; values are built once and passed along
- Closed enums for family / arch / package manager / state
- Explicit to_dict() for event payloads (no accidental __dict__ serialization)
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Optional

AGENT_PACKAGE = "zabbix-agent2"
PLUGIN_PREFIX = "zabbix-agent2-plugin-"


class Family(str, Enum):
    DEBIAN = "debian"
    RHEL = "rhel"
    SUSE = "suse"
    WINDOWS = "windows"


class Arch(str, Enum):
    X86_64 = "x86_64"
    AARCH64 = "aarch64"
    PPC64LE = "ppc64le"
    S390X = "s390x"
    I386 = "i386"
    ARMHF = "armhf"


class PackageManager(str, Enum):
    APT = "apt"
    DNF = "dnf"
    YUM = "yum"
    ZYPPER = "zypper"
    MSI = "msi"


class InstallPath(str, Enum):
    PRIMARY = "primary"
    FALLBACK = "fallback"


class ServiceState(str, Enum):
    NOT_INSTALLED = "not_installed"
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    FAILED = "failed"


@dataclass(frozen=True)
class HostEnvironment:
    """
    Normalized host description
    - only ever built for a supported family + arch
    """

    family: Family
    distro_id: str
    version_full: str
    version_major: str
    codename: str
    arch: Arch
    package_manager: PackageManager
    pretty_name: str = ""

    @property
    def is_stream(self) -> bool:
        return "stream" in self.pretty_name.lower()

    def to_dict(self) -> dict[str, Any]:
        return {
            "family": self.family.value,
            "distro_id": self.distro_id,
            "version_full": self.version_full,
            "version_major": self.version_major,
            "codename": self.codename,
            "arch": self.arch.value,
            "package_manager": self.package_manager.value,
        }


@dataclass(frozen=True)
class CollectorCandidate:
    hostname: str
    port: int

    @property
    def address(self) -> str:
        return f"{self.hostname}:{self.port}"


@dataclass(frozen=True)
class CollectorSelection:
    """
    The one reachable collector for this run
    - attempts: number of candidates probed, including the selected one
    """

    candidate: CollectorCandidate
    attempts: int = 1

    @property
    def hostname(self) -> str:
        return self.candidate.hostname

    @property
    def port(self) -> int:
        return self.candidate.port


@dataclass(frozen=True)
class PackagePlan:
    primary_package: str = AGENT_PACKAGE
    plugin_packages: frozenset[str] = field(default_factory=frozenset)

    @property
    def packages(self) -> list[str]:
        # Primary first, plugins sorted for deterministic command lines
        return [self.primary_package, *sorted(self.plugin_packages)]


@dataclass(frozen=True)
class InstallOutcome:
    path: InstallPath
    installed_artifacts: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path.value,
            "installed_artifacts": list(self.installed_artifacts),
        }


@dataclass(frozen=True)
class AgentLayout:
    """
    Where the agent lives on a given family
    """

    binary: str
    config_path: Path
    include_dirs: tuple[Path, ...]
    log_file: str
    control_socket: str
    service_name: str
    pid_file: Optional[str] = None
    path_sep: str = "/"

    def relocated(self, config_dir: Path) -> "AgentLayout":
        """
        Same layout with the config file and include dirs under config_dir
        """
        base = self.config_path.parent
        return replace(
            self,
            config_path=config_dir / self.config_path.name,
            include_dirs=tuple(config_dir / d.relative_to(base) for d in self.include_dirs),
        )


LINUX_LAYOUT = AgentLayout(
    binary="zabbix_agent2",
    config_path=Path("/etc/zabbix/zabbix_agent2.conf"),
    include_dirs=(
        Path("/etc/zabbix/zabbix_agent2.d"),
        Path("/etc/zabbix/zabbix_agent2.d/plugins.d"),
    ),
    log_file="/var/log/zabbix/zabbix_agent2.log",
    control_socket="/tmp/agent.sock",
    service_name="zabbix-agent2",
    pid_file="/var/run/zabbix/zabbix_agent2.pid",
)

WINDOWS_LAYOUT = AgentLayout(
    binary=r"C:\Program Files\Zabbix Agent 2\zabbix_agent2.exe",
    config_path=Path(r"C:\Program Files\Zabbix Agent 2\zabbix_agent2.conf"),
    include_dirs=(
        Path(r"C:\Program Files\Zabbix Agent 2\zabbix_agent2.d"),
        Path(r"C:\Program Files\Zabbix Agent 2\zabbix_agent2.d\plugins.d"),
    ),
    log_file=r"C:\Program Files\Zabbix Agent 2\zabbix_agent2.log",
    control_socket=r"\\.\pipe\agent.sock",
    service_name="Zabbix Agent 2",
    path_sep="\\",
)
