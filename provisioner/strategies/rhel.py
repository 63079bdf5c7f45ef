"""
provisioner.strategies.rhel
AUTHOR: carter-vin

RHEL family (RHEL, Alma, Rocky, CentOS Stream, Oracle Linux): rpm + dnf/yum
"""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

from provisioner.errors import InstallError
from provisioner.model import PLUGIN_PREFIX, Family, PackageManager
from provisioner.strategies.base import REPO_BASE, PackageStrategy

_RPM_ARCHES = {"x86_64", "aarch64", "ppc64le", "s390x", "noarch", "i686"}


def strip_arch(name: str) -> str:
    """
    yum prints name.arch; keep the name
    """
    base, dot, suffix = name.rpartition(".")
    if dot and suffix in _RPM_ARCHES:
        return base
    return name


def parse_locations(output: str) -> list[str]:
    return [
        line.strip()
        for line in output.splitlines()
        if line.strip().startswith(("http://", "https://"))
    ]


def parse_yum_list(output: str) -> list[str]:
    names = []
    for line in output.splitlines():
        parts = line.split()
        if parts and parts[0].startswith(PLUGIN_PREFIX):
            names.append(strip_arch(parts[0]))
    return names


class RhelStrategy(PackageStrategy):
    family = Family.RHEL
    artifact_suffix = ".rpm"

    @property
    def tool(self) -> str:
        return "yum" if self.env.package_manager is PackageManager.YUM else "dnf"

    def release_urls(self) -> list[str]:
        major = self.env.version_major
        arch = self.env.arch.value
        return [
            f"{REPO_BASE}/{self.release}/rhel/{major}/{arch}/"
            f"zabbix-release-latest-{self.release}.el{major}.noarch.rpm"
        ]

    def register_repository(self, artifact: Path) -> None:
        self._require(["rpm", "-Uvh", str(artifact)], "release package registration")

    def refresh_index(self) -> None:
        self._run([self.tool, "clean", "all", "-y"])
        result = self._run([self.tool, "makecache", "-y"])
        if result.ok:
            return
        if self.tool == "yum":
            # EL7 yum wants "makecache fast"
            self._require(["yum", "makecache", "fast"], "yum makecache")
            return
        raise InstallError(f"dnf makecache failed (exit {result.returncode})")

    def list_plugins(self) -> list[str]:
        pattern = f"{PLUGIN_PREFIX}*"
        if self.tool == "yum":
            result = self._require(["yum", "list", "available", pattern], "plugin query")
            return parse_yum_list(result.stdout)

        # repoquery lives in dnf-plugins-core on older releases
        self._run(["dnf", "-y", "install", "dnf-plugins-core"])
        result = self._require(
            ["dnf", "repoquery", "--qf", "%{name}", "--available", pattern],
            "plugin query",
        )
        return [line.strip() for line in result.stdout.splitlines() if line.strip().startswith(PLUGIN_PREFIX)]

    def install(self, packages: Sequence[str]) -> bool:
        return self._run([self.tool, "install", "-y", *packages]).ok

    def locate(self, package: str) -> list[str]:
        if self.tool == "yum":
            argv = ["repoquery", "--location", package]
        else:
            argv = ["dnf", "repoquery", "--latest-limit", "1", "--location", package]
        result = self._run(argv)
        if not result.ok:
            return []
        return parse_locations(result.stdout)

    def install_local(self, artifacts: Sequence[Path]) -> bool:
        return self._run(["rpm", "-Uvh", "--replacepkgs", "--replacefiles", *map(str, artifacts)]).ok

    def is_installed(self, package: str) -> bool:
        return self._run(["rpm", "-q", package]).ok
