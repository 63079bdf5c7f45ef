"""
provisioner.strategies.base
AUTHOR: carter-vin

Package strategy interface, one implementation per OS family

Each strategy owns everything family-specific about getting the agent on disk:
- repository release URL templates (version / arch parameterized)
- registering the release artifact and refreshing the index
- the install verb
- the plugin query and the per-package location query (package index)
- local install of downloaded artifacts and the presence check

Strategies run commands through the injected CommandRunner; they never
download anything themselves (the installer owns the fetcher).
"""

from __future__ import annotations

import abc
from pathlib import Path
from typing import ClassVar, Iterable, Mapping, Optional, Sequence

from provisioner.config import DEFAULT_RELEASE
from provisioner.errors import InstallError
from provisioner.model import LINUX_LAYOUT, AgentLayout, Family, HostEnvironment
from provisioner.runner import CommandResult, CommandRunner

REPO_BASE = "https://repo.zabbix.com/zabbix"


class PackageStrategy(abc.ABC):
    family: ClassVar[Family]
    artifact_suffix: ClassVar[str]
    layout: ClassVar[AgentLayout] = LINUX_LAYOUT
    optional_packages: ClassVar[tuple[str, ...]] = ()

    def __init__(self, env: HostEnvironment, runner: CommandRunner, *, release: str = DEFAULT_RELEASE) -> None:
        self.env = env
        self.runner = runner
        self.release = release

    # -----------------------------
    # COMMAND HELPERS
    # -----------------------------
    def _run(
        self,
        argv: Sequence[str],
        *,
        env: Optional[Mapping[str, str]] = None,
        cwd: Optional[Path] = None,
    ) -> CommandResult:
        return self.runner(argv, env=env, cwd=cwd)

    def _require(self, argv: Sequence[str], what: str, *, env: Optional[Mapping[str, str]] = None) -> CommandResult:
        """
        Run a command whose failure ends the run
        """
        result = self._run(argv, env=env)
        if not result.ok:
            detail = (result.stderr or result.stdout).strip().splitlines()[-1:] or ["no output"]
            raise InstallError(f"{what} failed (exit {result.returncode}): {detail[0]}")
        return result

    # -----------------------------
    # PRIMARY PATH
    # -----------------------------
    def prepare(self) -> None:
        """
        Family-specific preflight before touching the repository
        """

    @abc.abstractmethod
    def release_urls(self) -> list[str]:
        """
        Candidate repository release artifact URLs, most specific first
        """

    @abc.abstractmethod
    def register_repository(self, artifact: Path) -> None:
        """
        Register a downloaded release artifact with the local package manager
        """

    def refresh_index(self) -> None:
        """
        Refresh package metadata after registration
        """

    def install_optional(self) -> list[str]:
        """
        Install auxiliary packages; return the ones that failed (never raises)
        """
        return []

    @abc.abstractmethod
    def list_plugins(self) -> Iterable[str]:
        """
        Names from the package index matching the plugin prefix

        May raise on query failure; plugin discovery absorbs it.
        """

    @abc.abstractmethod
    def install(self, packages: Sequence[str]) -> bool:
        """
        Run the package manager install verb; False on failure
        """

    # -----------------------------
    # FALLBACK PATH
    # -----------------------------
    @abc.abstractmethod
    def locate(self, package: str) -> list[str]:
        """
        Download locations for the latest version of package (may be empty)
        """

    @abc.abstractmethod
    def install_local(self, artifacts: Sequence[Path]) -> bool:
        """
        Install downloaded artifacts together, preferring replacement
        """

    @abc.abstractmethod
    def is_installed(self, package: str) -> bool:
        """
        Ask the package database whether package is present
        """
