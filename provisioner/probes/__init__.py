"""provisioner.probes package exports."""

from provisioner.probes.base import Outcome, attempt
from provisioner.probes.collector import select_collector
from provisioner.probes.host import probe_environment, read_host_identity
from provisioner.probes.preconditions import check_preconditions

__all__ = [
    "Outcome",
    "attempt",
    "check_preconditions",
    "probe_environment",
    "read_host_identity",
    "select_collector",
]
