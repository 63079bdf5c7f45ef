"""
provisioner.probes.host

AUTHOR: carter-vin

- HostIdentity: raw identification data (os-release, platform strings)
- probe_environment: normalize it into a HostEnvironment or refuse the host

Design goals:
- Deterministic mapping, no network calls
- Refuse early: nothing has been mutated when this raises
"""

from __future__ import annotations

import platform
import shlex
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Mapping, Optional

from provisioner.errors import EnvironmentUnsupportedError
from provisioner.model import Arch, Family, HostEnvironment, PackageManager

OS_RELEASE_PATH = Path("/etc/os-release")

_FAMILY_BY_ID = {
    "ubuntu": Family.DEBIAN,
    "debian": Family.DEBIAN,
    "rhel": Family.RHEL,
    "centos": Family.RHEL,
    "rocky": Family.RHEL,
    "almalinux": Family.RHEL,
    "ol": Family.RHEL,
    "oracle": Family.RHEL,
    "sles": Family.SUSE,
    "suse": Family.SUSE,
}

# Distros with no official repository path for this installer
_EXCLUDED_IDS = {"fedora", "amzn", "amazon", "tumbleweed", "leap"}

_ARCH_ALIASES = {
    "x86_64": Arch.X86_64,
    "amd64": Arch.X86_64,
    "aarch64": Arch.AARCH64,
    "arm64": Arch.AARCH64,
    "ppc64le": Arch.PPC64LE,
    "s390x": Arch.S390X,
    "i386": Arch.I386,
    "i486": Arch.I386,
    "i586": Arch.I386,
    "i686": Arch.I386,
    "x86": Arch.I386,
    "armv6l": Arch.ARMHF,
    "armv7l": Arch.ARMHF,
}

_EXCLUDED_ARCHES = {Arch.I386, Arch.ARMHF}
_WINDOWS_ARCHES = {Arch.X86_64}

# Probe order matters: apt-get first, yum only when dnf is absent
_PACKAGE_MANAGERS = (
    ("apt-get", PackageManager.APT),
    ("dnf", PackageManager.DNF),
    ("yum", PackageManager.YUM),
    ("zypper", PackageManager.ZYPPER),
)


@dataclass(frozen=True)
class HostIdentity:
    """
    Raw host identification data, unparsed beyond key/value splitting
    """

    system: str
    machine: str
    os_release: Mapping[str, str] = field(default_factory=dict)
    windows_version: str = ""


def parse_os_release(contents: str) -> dict[str, str]:
    """
    Parse os-release KEY=value lines, unquoting values
    """
    values: dict[str, str] = {}
    for line in contents.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, raw = line.split("=", 1)
        try:
            parts = shlex.split(raw)
            value = " ".join(parts)
        except ValueError:
            value = raw.strip().strip("'\"")
        values[key.strip()] = value
    return values


def read_host_identity(os_release_path: Path = OS_RELEASE_PATH) -> HostIdentity:
    """
    Collect identification data from the running host

    Raises EnvironmentUnsupportedError when os-release exists but is unreadable
    """
    system = platform.system()
    os_release: dict[str, str] = {}
    if system != "Windows" and os_release_path.exists():
        try:
            os_release = parse_os_release(os_release_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as e:
            raise EnvironmentUnsupportedError(f"cannot read {os_release_path}: {e}") from e

    return HostIdentity(
        system=system,
        machine=platform.machine(),
        os_release=os_release,
        windows_version=platform.version() if system == "Windows" else "",
    )


def normalize_arch(raw: str) -> Arch:
    arch = _ARCH_ALIASES.get(raw.strip().lower())
    if arch is None:
        raise EnvironmentUnsupportedError(f"unknown architecture: {raw!r}")
    return arch


def detect_family(distro_id: str, id_like: str) -> Optional[Family]:
    """
    Map ID directly, then fall back to ID_LIKE keywords

    Returns None when nothing matches.
    Raises for distros that are known but excluded.
    """
    distro_id = distro_id.lower()

    if distro_id in _EXCLUDED_IDS or distro_id.startswith("opensuse"):
        raise EnvironmentUnsupportedError(
            f"{distro_id} is not supported by the official repository path; "
            "use the OS packages, an agent container, or another repository"
        )

    family = _FAMILY_BY_ID.get(distro_id)
    if family is None and distro_id.startswith("sle"):
        family = Family.SUSE
    if family is not None:
        return family

    id_like = id_like.lower()
    if "debian" in id_like:
        family = Family.DEBIAN
    if ("rhel" in id_like or "fedora" in id_like) and family is None:
        family = Family.RHEL
    if "suse" in id_like:
        family = Family.SUSE
    return family


def detect_package_manager(which: Callable[[str], Optional[str]]) -> Optional[PackageManager]:
    for executable, manager in _PACKAGE_MANAGERS:
        if which(executable):
            return manager
    return None


def probe_environment(
    identity: HostIdentity,
    which: Callable[[str], Optional[str]] = shutil.which,
) -> HostEnvironment:
    """
    Normalize host identity into a HostEnvironment

    Raises EnvironmentUnsupportedError for:
    - missing os-release on non-Windows hosts
    - unmapped or excluded distro families
    - excluded or unknown architectures
    - no supported package manager
    """
    arch = normalize_arch(identity.machine)

    if identity.system == "Windows":
        if arch not in _WINDOWS_ARCHES:
            raise EnvironmentUnsupportedError(f"architecture {arch.value} not supported on Windows")
        version = identity.windows_version
        return HostEnvironment(
            family=Family.WINDOWS,
            distro_id="windows",
            version_full=version,
            version_major=version.split(".")[0] if version else "",
            codename="",
            arch=arch,
            package_manager=PackageManager.MSI,
            pretty_name=f"Windows {version}".strip(),
        )

    release = identity.os_release
    if not release:
        raise EnvironmentUnsupportedError(f"{OS_RELEASE_PATH} not found")

    distro_id = release.get("ID", "").lower()
    family = detect_family(distro_id, release.get("ID_LIKE", ""))
    if family is None:
        raise EnvironmentUnsupportedError(
            f"unsupported distribution family (ID={distro_id or 'n/a'} "
            f"ID_LIKE={release.get('ID_LIKE') or 'n/a'})"
        )

    if arch in _EXCLUDED_ARCHES:
        raise EnvironmentUnsupportedError(
            f"architecture {identity.machine} ({arch.value}) not supported by the official agent packages"
        )

    manager = detect_package_manager(which)
    if manager is None:
        raise EnvironmentUnsupportedError("no supported package manager found")

    version_full = release.get("VERSION_ID", "")
    return HostEnvironment(
        family=family,
        distro_id=distro_id,
        version_full=version_full,
        version_major=version_full.split(".")[0],
        codename=release.get("VERSION_CODENAME", "").lower(),
        arch=arch,
        package_manager=manager,
        pretty_name=release.get("PRETTY_NAME", "") or release.get("VERSION", ""),
    )
