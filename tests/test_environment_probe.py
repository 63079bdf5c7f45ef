"""
Contract test for host environment normalization

Unsupported hosts must be refused before anything is mutated.
"""

import pytest

from provisioner.errors import EnvironmentUnsupportedError
from provisioner.model import Arch, Family, PackageManager
from provisioner.probes.host import HostIdentity, parse_os_release, probe_environment


def _which(*present):
    return lambda name: f"/usr/bin/{name}" if name in present else None


def _linux(machine="x86_64", **release):
    return HostIdentity(system="Linux", machine=machine, os_release=release)


def test_ubuntu_maps_to_debian_family() -> None:
    """
    ubuntu ID, amd64 machine string, apt-get present
    """
    identity = _linux(
        machine="amd64",
        ID="ubuntu",
        VERSION_ID="22.04",
        VERSION_CODENAME="jammy",
        PRETTY_NAME="Ubuntu 22.04.4 LTS",
    )

    env = probe_environment(identity, _which("apt-get"))

    assert env.family is Family.DEBIAN
    assert env.arch is Arch.X86_64
    assert env.package_manager is PackageManager.APT
    assert env.version_major == "22"
    assert env.codename == "jammy"
    assert env.is_stream is False


def test_id_like_fallback_and_stream_flag() -> None:
    """
    Unmapped ID falls back to ID_LIKE; dnf wins over yum
    """
    identity = _linux(
        machine="aarch64",
        ID="eurolinux",
        ID_LIKE="rhel fedora centos",
        VERSION_ID="9.3",
        PRETTY_NAME="EuroLinux 9 Stream",
    )

    env = probe_environment(identity, _which("dnf", "yum"))

    assert env.family is Family.RHEL
    assert env.arch is Arch.AARCH64
    assert env.package_manager is PackageManager.DNF
    assert env.version_major == "9"
    assert env.is_stream is True


def test_suse_in_id_like_wins() -> None:
    identity = _linux(ID="custom", ID_LIKE="fedora suse", VERSION_ID="15.5")
    env = probe_environment(identity, _which("zypper"))
    assert env.family is Family.SUSE


@pytest.mark.parametrize("distro_id", ["fedora", "amzn", "opensuse-leap", "tumbleweed"])
def test_excluded_distributions_are_refused(distro_id) -> None:
    with pytest.raises(EnvironmentUnsupportedError, match="not supported"):
        probe_environment(_linux(ID=distro_id, VERSION_ID="1"), _which("dnf", "zypper"))


@pytest.mark.parametrize("machine", ["i686", "armv7l"])
def test_excluded_architectures_are_refused(machine) -> None:
    with pytest.raises(EnvironmentUnsupportedError, match="architecture"):
        probe_environment(_linux(machine=machine, ID="debian", VERSION_ID="12"), _which("apt-get"))


def test_unknown_architecture_is_refused() -> None:
    with pytest.raises(EnvironmentUnsupportedError, match="unknown architecture"):
        probe_environment(_linux(machine="riscv64", ID="debian", VERSION_ID="12"), _which("apt-get"))


def test_missing_os_release_is_fatal() -> None:
    with pytest.raises(EnvironmentUnsupportedError, match="os-release"):
        probe_environment(HostIdentity(system="Linux", machine="x86_64"), _which("apt-get"))


def test_unmapped_family_is_fatal() -> None:
    with pytest.raises(EnvironmentUnsupportedError, match="unsupported distribution family"):
        probe_environment(_linux(ID="gentoo"), _which("apt-get"))


def test_no_package_manager_is_fatal() -> None:
    with pytest.raises(EnvironmentUnsupportedError, match="package manager"):
        probe_environment(_linux(ID="debian", VERSION_ID="12"), _which())


def test_windows_needs_no_os_release() -> None:
    identity = HostIdentity(system="Windows", machine="AMD64", windows_version="10.0.20348")

    env = probe_environment(identity, _which())

    assert env.family is Family.WINDOWS
    assert env.package_manager is PackageManager.MSI
    assert env.version_major == "10"


def test_parse_os_release_unquotes_values() -> None:
    contents = '# comment\nID="rocky"\nID_LIKE="rhel centos fedora"\nVERSION_ID=\'9.4\'\n\nbroken line\n'

    values = parse_os_release(contents)

    assert values == {"ID": "rocky", "ID_LIKE": "rhel centos fedora", "VERSION_ID": "9.4"}
