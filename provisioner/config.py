"""
provisioner.config
AUTHOR: carter-vin

Run configuration, built once at process start

Design goals:
- One frozen object passed explicitly into every component
- Validation up front (ValueError), so the CLI can report bad overrides
- No component reads os.environ; the CLI binds env vars to options
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from provisioner.logging import DEFAULT_TRANSCRIPT_PATH
from provisioner.model import CollectorCandidate

DEFAULT_SERVERS = (
    "zbxdc1.claranet.com.br",
    "zbxdc2.claranet.com.br",
    "zbxdc3.claranet.com.br",
)
DEFAULT_PORT = 10051
DEFAULT_DEBUG_LEVEL = 3
DEFAULT_HOST_METADATA = "linux"
DEFAULT_RELEASE = "7.0"

DEFAULT_SCRATCH_DIR = Path("/tmp/zbx-fallback")
DEFAULT_UNIT_DIRS = (
    Path("/usr/lib/systemd/system"),
    Path("/etc/systemd/system"),
    Path("/lib/systemd/system"),
)


def parse_server_list(raw: str) -> tuple[str, ...]:
    """
    Split a comma-separated server list, dropping blanks, keeping order
    """
    return tuple(part.strip() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class ProvisionConfig:
    """
    Everything a run needs to know up front

    Collector:
    - servers: candidate hostnames, probed in order
    - port: collector (ServerActive) port
    Agent:
    - listen_port: agent port (defaults to port - 1)
    - debug_level: agent DebugLevel 0..5
    - host_metadata: HostMetadata tag
    Timing:
    - probe_timeout_s, settle_s, download_timeout_s, download_retries, retry_delay_s
    """

    servers: tuple[str, ...] = DEFAULT_SERVERS
    port: int = DEFAULT_PORT
    listen_port: int = DEFAULT_PORT - 1
    debug_level: int = DEFAULT_DEBUG_LEVEL
    host_metadata: str = DEFAULT_HOST_METADATA
    release: str = DEFAULT_RELEASE

    probe_timeout_s: float = 3.0
    settle_s: float = 2.0
    download_timeout_s: float = 20.0
    download_retries: int = 3
    retry_delay_s: float = 2.0

    min_disk_mb: int = 100
    disk_check_path: Path = Path("/")
    transcript_path: Optional[Path] = DEFAULT_TRANSCRIPT_PATH
    scratch_dir: Path = DEFAULT_SCRATCH_DIR
    config_dir: Optional[Path] = None
    unit_dirs: tuple[Path, ...] = DEFAULT_UNIT_DIRS

    @classmethod
    def build(
        cls,
        *,
        servers: Optional[Iterable[str]] = None,
        port: int = DEFAULT_PORT,
        listen_port: Optional[int] = None,
        debug_level: int = DEFAULT_DEBUG_LEVEL,
        host_metadata: str = DEFAULT_HOST_METADATA,
        **extra,
    ) -> "ProvisionConfig":
        """
        Validate overrides and derive defaults (listen_port = port - 1)

        Raises ValueError on invalid input
        """
        server_list = tuple(servers) if servers is not None else DEFAULT_SERVERS
        if not server_list:
            raise ValueError("at least one collector server is required")

        if not 1 < port <= 65535:
            raise ValueError(f"collector port out of range: {port}")

        if listen_port is None:
            listen_port = port - 1
        if not 0 < listen_port <= 65535:
            raise ValueError(f"listen port out of range: {listen_port}")

        if not 0 <= debug_level <= 5:
            raise ValueError(f"debug level must be 0..5: {debug_level}")

        host_metadata = host_metadata.strip()
        if not host_metadata:
            raise ValueError("host metadata must be non-empty")
        if "\n" in host_metadata or "\r" in host_metadata:
            raise ValueError("host metadata must be a single line")

        return cls(
            servers=server_list,
            port=port,
            listen_port=listen_port,
            debug_level=debug_level,
            host_metadata=host_metadata,
            **extra,
        )

    def candidates(self) -> list[CollectorCandidate]:
        return [CollectorCandidate(hostname=host, port=self.port) for host in self.servers]
