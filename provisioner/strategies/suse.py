"""
provisioner.strategies.suse
AUTHOR: carter-vin

SLES: rpm-registered release package + zypper

zypper's XML output (-x) is parsed instead of its tables:
- search: <solvable name=".." edition=".." arch=".." repository=".."/>
- repos:  <repo alias=".." name=".." enabled="1"><url>..</url></repo>
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Sequence

from provisioner.errors import InstallError
from provisioner.model import PLUGIN_PREFIX, Family
from provisioner.strategies.base import REPO_BASE, PackageStrategy

# zypper exit code for "search found nothing"
ZYPPER_NO_MATCH = 104


def _parse_xml(output: str) -> ET.Element:
    try:
        return ET.fromstring(output.strip())
    except ET.ParseError as e:
        raise ValueError(f"unparseable zypper output: {e}") from e


def parse_solvables(output: str) -> list[dict[str, str]]:
    if not output.strip():
        return []
    return [dict(node.attrib) for node in _parse_xml(output).iter("solvable")]


def parse_repos(output: str) -> list[dict[str, str]]:
    """
    Flatten <repo> nodes into dicts with their <url> text under "url"
    """
    if not output.strip():
        return []
    repos = []
    for node in _parse_xml(output).iter("repo"):
        repo = dict(node.attrib)
        url = node.find("url")
        repo["url"] = (url.text or "").strip() if url is not None else ""
        repos.append(repo)
    return repos


def solvable_location(solvable: dict[str, str], repos: list[dict[str, str]]) -> str | None:
    """
    Build the rpm URL for a search hit from its repository base URL
    """
    repo_ref = solvable.get("repository", "")
    for repo in repos:
        if repo_ref in (repo.get("alias"), repo.get("name")) and repo.get("url", "").startswith(("http://", "https://")):
            name = solvable["name"]
            return f"{repo['url'].rstrip('/')}/{name}-{solvable['edition']}.{solvable['arch']}.rpm"
    return None


class SuseStrategy(PackageStrategy):
    family = Family.SUSE
    artifact_suffix = ".rpm"
    optional_packages = ("mongodb-tools", "msodbcsql17")

    def _repos(self) -> list[dict[str, str]]:
        result = self._run(["zypper", "-x", "lr", "-u"])
        if not result.ok:
            return []
        return parse_repos(result.stdout)

    def prepare(self) -> None:
        if not any(repo.get("enabled") == "1" for repo in self._repos()):
            raise InstallError("no enabled SUSE repository (check SUSEConnect registration)")

    def release_urls(self) -> list[str]:
        major = self.env.version_major
        arch = self.env.arch.value
        return [
            f"{REPO_BASE}/{self.release}/sles/{major}/{arch}/"
            f"zabbix-release-latest-{self.release}.sles{major}.noarch.rpm"
        ]

    def register_repository(self, artifact: Path) -> None:
        self._require(["rpm", "-Uvh", "--nosignature", str(artifact)], "release package registration")

    def refresh_index(self) -> None:
        self._require(["zypper", "--gpg-auto-import-keys", "-n", "refresh"], "zypper refresh")

    def install_optional(self) -> list[str]:
        if not self.optional_packages:
            return []
        result = self._run(["zypper", "-n", "install", *self.optional_packages])
        return [] if result.ok else list(self.optional_packages)

    def list_plugins(self) -> list[str]:
        result = self._run(["zypper", "-x", "se", "-t", "package", f"{PLUGIN_PREFIX}*"])
        if result.returncode == ZYPPER_NO_MATCH:
            return []
        if not result.ok:
            raise RuntimeError(f"zypper search failed (exit {result.returncode})")
        return [s["name"] for s in parse_solvables(result.stdout) if s.get("name", "").startswith(PLUGIN_PREFIX)]

    def install(self, packages: Sequence[str]) -> bool:
        return self._run(["zypper", "--non-interactive", "install", "-y", *packages]).ok

    def locate(self, package: str) -> list[str]:
        result = self._run(["zypper", "-x", "se", "-s", "--match-exact", "-t", "package", package])
        if not result.ok:
            return []
        repos = self._repos()
        locations = []
        for solvable in parse_solvables(result.stdout):
            if solvable.get("name") != package:
                continue
            location = solvable_location(solvable, repos)
            if location:
                locations.append(location)
        # zypper lists newest first; one location per package
        return locations[:1]

    def install_local(self, artifacts: Sequence[Path]) -> bool:
        return self._run(["rpm", "-Uvh", "--replacepkgs", "--replacefiles", *map(str, artifacts)]).ok

    def is_installed(self, package: str) -> bool:
        return self._run(["rpm", "-q", package]).ok
