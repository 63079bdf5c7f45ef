"""
provisioner.errors
AUTHOR: carter-vin

Fatal error taxonomy for a provisioning run

Contract:
- every fatal condition raises a ProvisionError subclass at the failure site
- the orchestrator catches ProvisionError once and maps it to an exit code
- non-fatal degradations never raise (see probes.base.attempt)
"""

from __future__ import annotations


class ProvisionError(Exception):
    """
    Base for all fatal run errors
    - category: stable tag used in run_failed events
    - exit_code: process exit code for this failure
    """

    category = "provision"
    exit_code = 1


class PreconditionError(ProvisionError):
    """Missing privileges or insufficient disk space."""

    category = "precondition"


class EnvironmentUnsupportedError(ProvisionError):
    """Undetectable or excluded OS family / architecture."""

    category = "environment_unsupported"


class ConnectivityError(ProvisionError):
    """No candidate collector reachable."""

    category = "connectivity"


class InstallError(ProvisionError):
    """Primary and fallback install paths both failed."""

    category = "install"


class ServiceError(ProvisionError):
    """Service unit missing or service not running after start/restart."""

    category = "service"


class ConfigWriteError(ProvisionError):
    """Agent configuration (or its include dirs) could not be written."""

    category = "config_write"
