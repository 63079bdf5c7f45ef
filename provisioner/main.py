"""
provisioner.main
------------
AUTHOR: carter-vin

PURPOSE:
- One CLI entrypoint for provisioning the monitoring agent on this host
- Overrides come from options or their bound ZBX_* environment variables

Key contract:
- `agent-provisioner install` exits 0 on success (or already running), 1 on a fatal error
- invalid overrides are usage errors (exit 2)
- `detect` and `render-config` never change the host
"""

from __future__ import annotations

import json
import platform
import sys
from pathlib import Path
from typing import Optional

import typer

from provisioner.agent_config import AgentSettings, build_agent_config, render_agent_config
from provisioner.config import (
    DEFAULT_DEBUG_LEVEL,
    DEFAULT_HOST_METADATA,
    DEFAULT_PORT,
    DEFAULT_RELEASE,
    DEFAULT_SCRATCH_DIR,
    ProvisionConfig,
    parse_server_list,
)
from provisioner.errors import EnvironmentUnsupportedError
from provisioner.logging import DEFAULT_TRANSCRIPT_PATH
from provisioner.model import LINUX_LAYOUT, WINDOWS_LAYOUT, CollectorCandidate, CollectorSelection
from provisioner.orchestrator import AGENT_VERSION, Collaborators, run
from provisioner.probes.host import probe_environment, read_host_identity

app = typer.Typer(
    add_completion=False,
    help="agent-provisioner: install and configure the monitoring agent on this host",
)


# -----------------------------
# ROOT COMMAND BEHAVIOR
# -----------------------------
@app.callback(invoke_without_command=True)
def main(ctx: typer.Context) -> None:
    """
    Print a hint when no subcommand is given
    """
    if ctx.invoked_subcommand is None:
        typer.echo("No command provided. Try: agent-provisioner --help")


# -----------------------------
# CLI COMMANDS
# -----------------------------
@app.command()
def version() -> None:
    """
    Print provisioner version & runtime env
    """
    typer.echo(f"agent-provisioner v{AGENT_VERSION}")
    typer.echo(f"python={sys.version.split()[0]}")
    typer.echo(f"os={platform.system()} {platform.release()}")
    typer.echo(f"machine={platform.machine()}")


@app.command("detect")
def detect() -> None:
    """
    Print the normalized host environment as JSON (read-only)
    """
    try:
        env = probe_environment(read_host_identity())
    except EnvironmentUnsupportedError as e:
        typer.echo(f"unsupported environment: {e}", err=True)
        raise typer.Exit(code=e.exit_code)

    payload = {**env.to_dict(), "pretty_name": env.pretty_name, "stream": env.is_stream}
    typer.echo(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


@app.command("render-config")
def render_config(
    server: str = typer.Option(..., "--server", help="Collector hostname to write into the config."),
    port: int = typer.Option(DEFAULT_PORT, "--port", envvar="ZBX_PORT", help="Collector port."),
    listen_port: Optional[int] = typer.Option(
        None,
        "--listen-port",
        envvar="ZBX_LISTEN",
        help="Agent listen port (default: port - 1).",
    ),
    debug_level: int = typer.Option(DEFAULT_DEBUG_LEVEL, "--debug-level", envvar="ZBX_DEBUG", help="Agent DebugLevel (0..5)."),
    host_metadata: str = typer.Option(DEFAULT_HOST_METADATA, "--metadata", envvar="ZBX_METADATA", help="HostMetadata value."),
    windows: bool = typer.Option(False, "--windows", help="Render with the Windows file layout."),
) -> None:
    """
    Print the agent configuration that would be written (no disk changes)
    """
    config = _build_config(
        servers=server,
        port=port,
        listen_port=listen_port,
        debug_level=debug_level,
        host_metadata=host_metadata,
    )
    selection = CollectorSelection(candidate=CollectorCandidate(hostname=config.servers[0], port=config.port))
    layout = WINDOWS_LAYOUT if windows else LINUX_LAYOUT
    entries = build_agent_config(selection, AgentSettings.from_config(config), layout)
    typer.echo(render_agent_config(entries), nl=False)


@app.command("install")
def install(
    servers: Optional[str] = typer.Option(
        None,
        "--servers",
        envvar="ZBX_SERVERS",
        help="Comma-separated collector hostnames, probed in order.",
    ),
    port: int = typer.Option(DEFAULT_PORT, "--port", envvar="ZBX_PORT", help="Collector port."),
    listen_port: Optional[int] = typer.Option(
        None,
        "--listen-port",
        envvar="ZBX_LISTEN",
        help="Agent listen port (default: port - 1).",
    ),
    debug_level: int = typer.Option(DEFAULT_DEBUG_LEVEL, "--debug-level", envvar="ZBX_DEBUG", help="Agent DebugLevel (0..5)."),
    host_metadata: str = typer.Option(DEFAULT_HOST_METADATA, "--metadata", envvar="ZBX_METADATA", help="HostMetadata value."),
    release: str = typer.Option(DEFAULT_RELEASE, "--release", help="Upstream release series."),
    transcript: str = typer.Option(
        str(DEFAULT_TRANSCRIPT_PATH),
        "--transcript",
        help="File that receives a copy of every event line.",
    ),
    scratch_dir: str = typer.Option(
        str(DEFAULT_SCRATCH_DIR),
        "--scratch-dir",
        help="Working directory for downloaded artifacts.",
    ),
) -> None:
    """
    Provision the agent: select a collector, install, configure, verify

    Failure semantics:
    - every fatal condition is reported as a run_failed event, exit 1
    """
    config = _build_config(
        servers=servers,
        port=port,
        listen_port=listen_port,
        debug_level=debug_level,
        host_metadata=host_metadata,
        release=release,
        transcript_path=Path(transcript),
        scratch_dir=Path(scratch_dir),
    )
    code = run(config, Collaborators.for_host(config))
    raise typer.Exit(code=code)


def _build_config(*, servers: Optional[str], **fields) -> ProvisionConfig:
    """
    Validate overrides once; bad values are usage errors
    """
    try:
        server_list = parse_server_list(servers) if servers is not None else None
        return ProvisionConfig.build(servers=server_list, **fields)
    except ValueError as e:
        raise typer.BadParameter(str(e))


if __name__ == "__main__":
    app()
