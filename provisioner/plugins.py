"""
provisioner.plugins
AUTHOR: carter-vin

Plugin discovery (best-effort)

- Plugins are optional extras: a failed query yields an empty set
- Names are prefix-filtered, arch suffixes stripped, deduplicated
"""

from __future__ import annotations

from typing import Iterable

from provisioner.logging import EventLog
from provisioner.model import PLUGIN_PREFIX
from provisioner.probes.base import attempt
from provisioner.strategies.base import PackageStrategy
from provisioner.strategies.rhel import strip_arch


def normalize_plugin_names(names: Iterable[str]) -> frozenset[str]:
    cleaned = set()
    for name in names:
        name = strip_arch(name.strip())
        if name.startswith(PLUGIN_PREFIX) and len(name) > len(PLUGIN_PREFIX):
            cleaned.add(name)
    return frozenset(cleaned)


def discover_plugins(strategy: PackageStrategy, log: EventLog) -> frozenset[str]:
    """
    Query the package index for plugin packages; never raises
    """
    outcome = attempt("plugin_discovery", strategy.list_plugins)

    if not outcome.ok:
        log.warn(
            "plugins_discovered",
            count=0,
            error_type=outcome.error_type,
            message=outcome.error_message,
        )
        return frozenset()

    plugins = normalize_plugin_names(outcome.value or [])
    log.emit("plugins_discovered", count=len(plugins), plugins=sorted(plugins))
    return plugins
