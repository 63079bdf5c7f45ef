"""
provisioner.agent_config

AUTHOR: carter-vin

OUTPUT:
- flat key=value agent configuration, one entry per line
- keys may repeat (Include)

Design goals:
- Render fully in memory; same inputs -> byte-identical output
- Back up any existing file before overwriting (best-effort)
- Atomic replace: a reader never sees a half-written file
"""

from __future__ import annotations

import os
import shutil
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from provisioner.config import ProvisionConfig
from provisioner.errors import ConfigWriteError
from provisioner.logging import EventLog
from provisioner.model import AgentLayout, CollectorSelection

BACKUP_TIMESTAMP = "%Y%m%d%H%M%S"

AgentConfig = tuple[tuple[str, str], ...]


@dataclass(frozen=True)
class AgentSettings:
    """
    Operator-tunable values that end up in the file
    """

    listen_port: int
    debug_level: int = 3
    host_metadata: str = "linux"

    @classmethod
    def from_config(cls, config: ProvisionConfig) -> "AgentSettings":
        return cls(
            listen_port=config.listen_port,
            debug_level=config.debug_level,
            host_metadata=config.host_metadata,
        )


@dataclass(frozen=True)
class ConfigWrite:
    path: Path
    backup_path: Optional[Path]
    bytes: int


def build_agent_config(
    selection: CollectorSelection,
    settings: AgentSettings,
    layout: AgentLayout,
) -> AgentConfig:
    """
    Ordered key/value pairs; ServerActive and Server come from the selection
    """
    include_dir, plugins_dir = layout.include_dirs[0], layout.include_dirs[-1]
    sep = layout.path_sep

    entries: list[tuple[str, str]] = [
        ("ServerActive", f"{selection.hostname}:{selection.port}"),
        ("Server", selection.hostname),
        ("HostnameItem", "system.hostname"),
    ]
    if layout.pid_file:
        entries.append(("PidFile", layout.pid_file))
    entries += [
        ("LogType", "file"),
        ("LogFile", layout.log_file),
        ("LogFileSize", "0"),
        ("DebugLevel", str(settings.debug_level)),
        ("ListenPort", str(settings.listen_port)),
        ("HostMetadata", settings.host_metadata),
        ("RefreshActiveChecks", "300"),
        ("BufferSend", "60"),
        ("BufferSize", "1000"),
        ("EnablePersistentBuffer", "0"),
        ("Timeout", "30"),
        ("Include", f"{include_dir}{sep}*.conf"),
        ("UnsafeUserParameters", "1"),
        ("ControlSocket", layout.control_socket),
        ("Plugins.Log.MaxLinesPerSecond", "7"),
        ("AllowKey", "system.run[*]"),
        ("Plugins.SystemRun.LogRemoteCommands", "1"),
        ("Include", f"{plugins_dir}{sep}*.conf"),
    ]
    return tuple(entries)


def render_agent_config(entries: AgentConfig) -> str:
    for key, value in entries:
        if "\n" in key or "\n" in value or "=" in key:
            raise ValueError(f"invalid config entry: {key!r}")
    return "".join(f"{key}={value}\n" for key, value in entries)


def backup_path_for(path: Path, now: datetime, *, serial: int = 0) -> Path:
    stamp = now.strftime(BACKUP_TIMESTAMP)
    if serial:
        stamp = f"{stamp}.{serial}"
    return path.with_name(f"{path.name}.{stamp}.bak")


def backup_existing(path: Path, *, now: datetime, log: EventLog) -> Optional[Path]:
    """
    Copy an existing config aside; failure is logged, never raised

    A backup from the same second is never overwritten: a serial is appended.
    """
    if not path.exists():
        return None

    serial = 0
    backup = backup_path_for(path, now)
    while backup.exists():
        serial += 1
        backup = backup_path_for(path, now, serial=serial)

    try:
        shutil.copy2(path, backup)
    except OSError as e:
        log.warn("config_backup_failed", path=str(path), error_type=type(e).__name__, message=str(e))
        return None

    log.emit("config_backup_created", path=str(path), backup_path=str(backup))
    return backup


def atomic_write_text(path: Path, text: str, *, mode: int = 0o644) -> None:
    """
    Write to a temp file beside path, then os.replace over it
    """
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp, mode)
        os.replace(tmp, path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


def write_agent_config(
    selection: CollectorSelection,
    settings: AgentSettings,
    layout: AgentLayout,
    *,
    log: EventLog,
    now: Callable[[], datetime] = datetime.now,
) -> ConfigWrite:
    """
    Render, back up the old file, then atomically install the new one

    Failure semantics (all ConfigWriteError):
    - render errors raise before anything on disk changes
    - IO errors on the directories or the write itself
    """
    try:
        text = render_agent_config(build_agent_config(selection, settings, layout))
    except ValueError as e:
        raise ConfigWriteError(str(e)) from e

    try:
        for directory in layout.include_dirs:
            directory.mkdir(mode=0o755, parents=True, exist_ok=True)
        layout.config_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ConfigWriteError(f"cannot create config directories: {e}") from e

    backup = backup_existing(layout.config_path, now=now(), log=log)
    try:
        atomic_write_text(layout.config_path, text)
    except OSError as e:
        raise ConfigWriteError(f"cannot write {layout.config_path}: {e}") from e

    written = ConfigWrite(path=layout.config_path, backup_path=backup, bytes=len(text.encode("utf-8")))
    log.emit(
        "config_written",
        path=str(written.path),
        bytes=written.bytes,
        server_active=f"{selection.hostname}:{selection.port}",
        listen_port=settings.listen_port,
    )
    return written
