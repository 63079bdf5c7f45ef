"""
provisioner.strategies.windows
AUTHOR: carter-vin

Windows: the agent ships as a single MSI (plugins bundled), no package index

- "registration" stages the downloaded MSI
- install runs msiexec quietly against the staged MSI
- locations are the MSI build URLs; plugin discovery is always empty
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

from provisioner.model import AGENT_PACKAGE, WINDOWS_LAYOUT, Family
from provisioner.strategies.base import PackageStrategy

CDN_BASE = "https://cdn.zabbix.com/zabbix/binaries/stable"


class WindowsStrategy(PackageStrategy):
    family = Family.WINDOWS
    artifact_suffix = ".msi"
    layout = WINDOWS_LAYOUT

    staged: Optional[Path] = None

    def _msi_urls(self) -> list[str]:
        base = f"{CDN_BASE}/{self.release}/latest"
        stem = f"zabbix_agent2-{self.release}-latest-windows-amd64"
        return [f"{base}/{stem}-openssl.msi", f"{base}/{stem}.msi"]

    def _msiexec(self, msi: Path) -> bool:
        log_path = msi.with_suffix(".install.log")
        return self._run(["msiexec", "/i", str(msi), "/qn", "/norestart", "/l*v", str(log_path)]).ok

    def release_urls(self) -> list[str]:
        return self._msi_urls()

    def register_repository(self, artifact: Path) -> None:
        self.staged = artifact

    def list_plugins(self) -> list[str]:
        return []

    def install(self, packages: Sequence[str]) -> bool:
        if self.staged is None:
            return False
        return self._msiexec(self.staged)

    def locate(self, package: str) -> list[str]:
        if package != AGENT_PACKAGE:
            return []
        return self._msi_urls()[:1]

    def install_local(self, artifacts: Sequence[Path]) -> bool:
        return all(self._msiexec(msi) for msi in artifacts)

    def is_installed(self, package: str) -> bool:
        return Path(self.layout.binary).exists()
