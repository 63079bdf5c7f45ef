"""
provisioner.installer
AUTHOR: carter-vin

Installer executor: primary path, then fallback by direct artifact download

Primary:
- family preflight, resolve + download the repository release artifact,
  register it, refresh the index, optional auxiliaries, plugin discovery
- one install invocation for the agent + plugins

Fallback (only when the install verb fails):
- one latest location per package from the package index
- download to a clean scratch dir (skip empty / failed entries)
- one local install for everything downloaded, then re-verify the agent

Failure semantics:
- InstallError when the agent package is absent after every attempt
"""

from __future__ import annotations

import shutil
from pathlib import Path, PurePosixPath
from urllib.parse import urlparse

from provisioner.errors import InstallError
from provisioner.fetch import ArtifactFetcher, DownloadError
from provisioner.logging import EventLog
from provisioner.model import AGENT_PACKAGE, InstallOutcome, InstallPath, PackagePlan
from provisioner.plugins import discover_plugins
from provisioner.probes.base import attempt
from provisioner.strategies.base import PackageStrategy


def artifact_filename(url: str, fallback: str) -> str:
    name = PurePosixPath(urlparse(url).path).name
    return name or fallback


def resolve_release_url(strategy: PackageStrategy, fetcher: ArtifactFetcher) -> str:
    """
    First release artifact URL that exists upstream
    """
    urls = strategy.release_urls()
    for url in urls:
        if fetcher.exists(url):
            return url
    raise InstallError("repository release artifact unavailable: " + ", ".join(urls))


def register_repository(
    strategy: PackageStrategy,
    fetcher: ArtifactFetcher,
    *,
    scratch_dir: Path,
    log: EventLog,
) -> str:
    """
    Download and register the upstream repository release artifact
    """
    strategy.prepare()
    url = resolve_release_url(strategy, fetcher)

    dest = scratch_dir / artifact_filename(url, f"zabbix-release{strategy.artifact_suffix}")
    try:
        fetcher.download(url, dest)
    except DownloadError as e:
        raise InstallError(str(e)) from e

    strategy.register_repository(dest)
    strategy.refresh_index()
    log.emit("repository_registered", url=url, family=strategy.family.value)

    failed = strategy.install_optional()
    if failed:
        log.warn("optional_install_failed", packages=failed)
    return url


def _prepare_scratch(path: Path, *, clean: bool = False) -> None:
    """
    Create (optionally emptied) scratch dir; InstallError when unusable
    """
    if clean:
        shutil.rmtree(path, ignore_errors=True)
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise InstallError(f"scratch directory {path} unusable: {e}") from e


def run_fallback(
    strategy: PackageStrategy,
    fetcher: ArtifactFetcher,
    plan: PackagePlan,
    *,
    scratch_dir: Path,
    log: EventLog,
) -> InstallOutcome:
    """
    Resolve, download and locally install one artifact per package
    """
    log.emit("fallback_started", packages=plan.packages, scratch_dir=str(scratch_dir))
    _prepare_scratch(scratch_dir, clean=True)

    locations: list[str] = []
    for package in plan.packages:
        outcome = attempt("locate", strategy.locate, package)
        found = [u.strip() for u in outcome.value_or([]) if u and u.strip()]
        log.emit("artifact_resolved", package=package, locations=found[:1])
        if found:
            locations.append(found[0])
        elif package == plan.primary_package:
            raise InstallError(f"could not resolve a download location for {package}")

    downloaded: list[Path] = []
    for url in locations:
        dest = scratch_dir / artifact_filename(url, f"artifact-{len(downloaded)}{strategy.artifact_suffix}")
        try:
            fetcher.download(url, dest)
        except DownloadError as e:
            log.warn("artifact_download_failed", url=url, message=str(e))
            continue
        downloaded.append(dest)
        log.emit("artifact_downloaded", url=url, path=str(dest))

    if not downloaded:
        raise InstallError("fallback downloaded no artifacts")

    # Conflicts are tolerated here; the presence check below decides
    strategy.install_local(downloaded)

    if not strategy.is_installed(plan.primary_package):
        raise InstallError(f"{plan.primary_package} not installed after fallback; check repository access and dependencies")

    return InstallOutcome(
        path=InstallPath.FALLBACK,
        installed_artifacts=tuple(p.name for p in downloaded),
    )


def install_agent(
    strategy: PackageStrategy,
    fetcher: ArtifactFetcher,
    *,
    scratch_dir: Path,
    log: EventLog,
    primary_package: str = AGENT_PACKAGE,
) -> tuple[PackagePlan, InstallOutcome]:
    """
    Primary install, falling back to direct artifacts when it fails
    """
    _prepare_scratch(scratch_dir)
    register_repository(strategy, fetcher, scratch_dir=scratch_dir, log=log)

    plugins = discover_plugins(strategy, log)
    plan = PackagePlan(primary_package=primary_package, plugin_packages=plugins)

    if strategy.install(plan.packages):
        if not strategy.is_installed(plan.primary_package):
            raise InstallError(f"{plan.primary_package} not installed; check repository access and dependencies")
        outcome = InstallOutcome(path=InstallPath.PRIMARY, installed_artifacts=tuple(plan.packages))
    else:
        log.emit("install_primary_failed", path=InstallPath.PRIMARY.value, packages=plan.packages)
        outcome = run_fallback(strategy, fetcher, plan, scratch_dir=scratch_dir, log=log)

    log.emit("package_installed", **outcome.to_dict())
    return plan, outcome
