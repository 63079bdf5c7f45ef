"""
Contract test for the installer executor

Primary install first; the direct-artifact fallback runs only when the
install verb fails, and succeeds with at least one downloaded artifact.
"""

import pytest

from conftest import FakeFetcher, parse_events
from provisioner.errors import InstallError
from provisioner.installer import install_agent, resolve_release_url
from provisioner.model import InstallPath
from provisioner.strategies import DebianStrategy

AGENT_URI = "https://repo.example/pool/z/zabbix-agent2_7.0.3-1+ubuntu22.04_amd64.deb"
PRINT_URIS = f"'{AGENT_URI}' zabbix-agent2_7.0.3-1+ubuntu22.04_amd64.deb 5123 SHA256:ab\n"


def _debian_runner(runner):
    runner.on("apt-cache", stdout="zabbix-agent2-plugin-mongodb - Zabbix Agent2 MongoDB plugin\n")
    runner.on("dpkg-query", stdout="install ok installed")
    return runner


def test_primary_install(ubuntu_env, runner, fetcher, log, tmp_path) -> None:
    strategy = DebianStrategy(ubuntu_env, _debian_runner(runner))

    plan, outcome = install_agent(strategy, fetcher, scratch_dir=tmp_path / "scratch", log=log)

    assert plan.packages == ["zabbix-agent2", "zabbix-agent2-plugin-mongodb"]
    assert outcome.path is InstallPath.PRIMARY
    assert runner.ran("dpkg", "-i")
    assert runner.ran("apt-get", "update")
    assert runner.ran("apt-get", "install", "-y", "zabbix-agent2", "zabbix-agent2-plugin-mongodb")
    assert not runner.ran("apt-get", "download")
    assert len(fetcher.downloads) == 1


def test_fallback_with_one_artifact_succeeds(ubuntu_env, runner, fetcher, log, tmp_path, capsys) -> None:
    """
    Install verb fails, only the agent resolves -> fallback installs it
    """
    _debian_runner(runner)
    runner.on("apt-get", "install", returncode=100)
    runner.on("apt-get", "download", "--print-uris", "zabbix-agent2", stdout=PRINT_URIS)
    strategy = DebianStrategy(ubuntu_env, runner)

    _, outcome = install_agent(strategy, fetcher, scratch_dir=tmp_path / "scratch", log=log)

    assert outcome.path is InstallPath.FALLBACK
    assert outcome.installed_artifacts == ("zabbix-agent2_7.0.3-1+ubuntu22.04_amd64.deb",)
    assert fetcher.downloads[-1] == AGENT_URI
    assert runner.ran("dpkg", "-i", "--force-overwrite")
    assert runner.ran("apt-get", "-f", "install", "-y")

    types = [e["event_type"] for e in parse_events(capsys.readouterr().out)]
    assert types.index("install_primary_failed") < types.index("fallback_started") < types.index("package_installed")


def test_fallback_with_zero_artifacts_fails(ubuntu_env, runner, log, tmp_path) -> None:
    _debian_runner(runner)
    runner.on("apt-get", "install", returncode=100)
    runner.on("apt-get", "download", "--print-uris", "zabbix-agent2", stdout=PRINT_URIS)
    fetcher = FakeFetcher(failing={AGENT_URI})

    with pytest.raises(InstallError, match="no artifacts"):
        install_agent(DebianStrategy(ubuntu_env, runner), fetcher, scratch_dir=tmp_path / "scratch", log=log)

    assert not runner.ran("dpkg", "-i", "--force-overwrite")
    assert "artifact_download_failed" in log.warnings


def test_fallback_without_agent_location_fails(ubuntu_env, runner, fetcher, log, tmp_path) -> None:
    _debian_runner(runner)
    runner.on("apt-get", "install", returncode=100)

    with pytest.raises(InstallError, match="could not resolve a download location for zabbix-agent2"):
        install_agent(DebianStrategy(ubuntu_env, runner), fetcher, scratch_dir=tmp_path / "scratch", log=log)


def test_agent_absent_after_fallback_fails(ubuntu_env, runner, fetcher, log, tmp_path) -> None:
    _debian_runner(runner)
    runner.on("apt-get", "install", returncode=100)
    runner.on("apt-get", "download", "--print-uris", "zabbix-agent2", stdout=PRINT_URIS)
    runner.on("dpkg-query", returncode=1)

    with pytest.raises(InstallError, match="not installed after fallback"):
        install_agent(DebianStrategy(ubuntu_env, runner), fetcher, scratch_dir=tmp_path / "scratch", log=log)


def test_missing_release_artifact_is_fatal(ubuntu_env, runner) -> None:
    strategy = DebianStrategy(ubuntu_env, runner)
    fetcher = FakeFetcher(missing=set(strategy.release_urls()))

    with pytest.raises(InstallError, match="release artifact unavailable"):
        resolve_release_url(strategy, fetcher)
