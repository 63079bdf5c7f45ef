"""
provisioner.strategies.debian
AUTHOR: carter-vin

Debian / Ubuntu: dpkg-registered release package + apt-get
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Sequence

from provisioner.model import PLUGIN_PREFIX, Family
from provisioner.strategies.base import REPO_BASE, PackageStrategy

NONINTERACTIVE = {"DEBIAN_FRONTEND": "noninteractive"}

# Codename -> release the Zabbix pool publishes for it
UBUNTU_RELEASES = {
    "noble": "24.04",
    "jammy": "22.04",
    "focal": "20.04",
    "bionic": "18.04",
}

# apt-get --print-uris lines look like: 'http://host/pool/x.deb' x.deb 1234 SHA256:...
_PRINT_URI = re.compile(r"^'(?P<uri>[^']+)'")


def parse_print_uris(output: str) -> list[str]:
    uris = []
    for line in output.splitlines():
        match = _PRINT_URI.match(line.strip())
        if match and match.group("uri").endswith(".deb"):
            uris.append(match.group("uri"))
    return uris


def parse_apt_search(output: str) -> list[str]:
    """
    apt-cache search prints "name - description"; keep the name
    """
    return [line.split()[0] for line in output.splitlines() if line.strip()]


class DebianStrategy(PackageStrategy):
    family = Family.DEBIAN
    artifact_suffix = ".deb"

    @property
    def is_ubuntu(self) -> bool:
        return self.env.distro_id == "ubuntu"

    def release_urls(self) -> list[str]:
        distro = "ubuntu" if self.is_ubuntu else "debian"
        pool = f"{REPO_BASE}/{self.release}/{distro}/pool/main/z/zabbix-release"

        def url(tag: str) -> str:
            return f"{pool}/zabbix-release_latest_{self.release}+{tag}_all.deb"

        if not self.is_ubuntu:
            return [url(f"debian{self.env.version_major}")]

        mapped = UBUNTU_RELEASES.get(self.env.codename, f"{self.env.version_major}.04")
        urls = [url(f"ubuntu{self.env.version_full}"), url(f"ubuntu{mapped}")]
        # Preserve order, drop the duplicate when both resolve to the same release
        return list(dict.fromkeys(urls))

    def register_repository(self, artifact: Path) -> None:
        self._require(["dpkg", "-i", str(artifact)], "release package registration")

    def refresh_index(self) -> None:
        self._require(["apt-get", "update"], "apt-get update")

    def list_plugins(self) -> list[str]:
        result = self._require(
            ["apt-cache", "--names-only", "search", f"^{PLUGIN_PREFIX}"],
            "plugin query",
        )
        return parse_apt_search(result.stdout)

    def install(self, packages: Sequence[str]) -> bool:
        return self._run(["apt-get", "install", "-y", *packages], env=NONINTERACTIVE).ok

    def locate(self, package: str) -> list[str]:
        result = self._run(["apt-get", "download", "--print-uris", package])
        if not result.ok:
            return []
        return parse_print_uris(result.stdout)

    def install_local(self, artifacts: Sequence[Path]) -> bool:
        # dpkg may stop on unmet dependencies; apt-get -f resolves them
        self._run(["dpkg", "-i", "--force-overwrite", *map(str, artifacts)])
        return self._run(["apt-get", "-f", "install", "-y"], env=NONINTERACTIVE).ok

    def is_installed(self, package: str) -> bool:
        result = self._run(["dpkg-query", "-W", "-f=${Status}", package])
        return result.ok and "install ok installed" in result.stdout
