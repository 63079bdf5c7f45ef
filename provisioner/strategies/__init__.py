"""provisioner.strategies package exports."""

from __future__ import annotations

from provisioner.config import DEFAULT_RELEASE
from provisioner.model import Family, HostEnvironment
from provisioner.runner import CommandRunner
from provisioner.strategies.base import PackageStrategy
from provisioner.strategies.debian import DebianStrategy
from provisioner.strategies.rhel import RhelStrategy
from provisioner.strategies.suse import SuseStrategy
from provisioner.strategies.windows import WindowsStrategy

STRATEGIES: dict[Family, type[PackageStrategy]] = {
    Family.DEBIAN: DebianStrategy,
    Family.RHEL: RhelStrategy,
    Family.SUSE: SuseStrategy,
    Family.WINDOWS: WindowsStrategy,
}


def resolve_strategy(
    env: HostEnvironment,
    runner: CommandRunner,
    *,
    release: str = DEFAULT_RELEASE,
) -> PackageStrategy:
    """
    Pick the package strategy for the detected family
    """
    return STRATEGIES[env.family](env, runner, release=release)


__all__ = [
    "DebianStrategy",
    "PackageStrategy",
    "RhelStrategy",
    "STRATEGIES",
    "SuseStrategy",
    "WindowsStrategy",
    "resolve_strategy",
]
