"""
provisioner.probes.preconditions
AUTHOR: carter-vin

Checks that run before anything touches the network or the disk
- elevated privileges (root / Administrator)
- free space on the root filesystem
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import Callable

from provisioner.errors import PreconditionError

MB = 1024 * 1024


def is_elevated() -> bool:
    """
    True when running as root (POSIX) or Administrator (Windows)
    """
    geteuid = getattr(os, "geteuid", None)
    if geteuid is not None:
        return geteuid() == 0

    import ctypes  # Windows only

    try:
        return bool(ctypes.windll.shell32.IsUserAnAdmin())
    except (AttributeError, OSError):
        return False


def free_disk_mb(path: Path) -> int:
    return shutil.disk_usage(path).free // MB


def check_preconditions(
    *,
    min_disk_mb: int,
    disk_path: Path,
    elevated: Callable[[], bool] = is_elevated,
    free_mb: Callable[[Path], int] = free_disk_mb,
) -> int:
    """
    Raise PreconditionError unless privileged and min_disk_mb is free

    Returns free space in MB for the event log
    """
    if not elevated():
        raise PreconditionError("must be run with elevated privileges (root)")

    try:
        available = free_mb(disk_path)
    except OSError as e:
        raise PreconditionError(f"cannot determine free space on {disk_path}: {e}") from e

    if available < min_disk_mb:
        raise PreconditionError(
            f"insufficient disk space on {disk_path}: {available}MB free, {min_disk_mb}MB required"
        )
    return available
