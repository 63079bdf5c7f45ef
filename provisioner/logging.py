"""
provisioner.logging
AUTHOR: carter-vin

Structured JSON event logging for provisioning runs

Contract:
- One JSON object per line to stdout
- Same line appended to the run transcript when one is configured
- Stable event vocabulary (allowlist)
- UTC timestamps only
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

# Event types
VALID_EVENT_TYPES = {
    "run_start",
    "preconditions_checked",
    "environment_detected",
    "already_active",
    "collector_probe",
    "collector_selected",
    "command_run",
    "repository_registered",
    "optional_install_failed",
    "plugins_discovered",
    "install_primary_failed",
    "fallback_started",
    "artifact_resolved",
    "artifact_downloaded",
    "artifact_download_failed",
    "package_installed",
    "config_backup_created",
    "config_backup_failed",
    "config_written",
    "service_transition",
    "service_diagnostics",
    "run_failed",
    "run_succeeded",
    "run_shutdown",
}

DEFAULT_TRANSCRIPT_PATH = Path("/tmp/install_zabbix.log")


def _truncate_message(value: str, *, limit: int = 200) -> str:
    """
    Cap message length to keep events compact
    """
    if len(value) <= limit:
        return value
    return value[:limit] + f"...[truncated {len(value) - limit} chars]"


def _truncate_output(value: str, *, limit: int = 2000) -> str:
    """
    Cap command / service output, keeping the tail (failures print last)
    """
    if len(value) <= limit:
        return value
    return f"[truncated {len(value) - limit} chars]..." + value[-limit:]


# Time: current in UTC ISO 8601
def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def format_event(event_type: str, *, agent_version: str, **fields: Any) -> str:
    """
    Build one structured event line

    Rules:
    - event_type in VALID_EVENT_TYPES
    - event_type, agent_version, timestamp always present
    - sort_keys + compact separators for format
    - message keeps its head, output keeps its tail
    """
    if event_type not in VALID_EVENT_TYPES:
        raise ValueError(f"invalid event_type: {event_type}")

    # Avoid emitting long strings in event fields
    if isinstance(fields.get("message"), str):
        fields["message"] = _truncate_message(fields["message"])
    if isinstance(fields.get("output"), str):
        fields["output"] = _truncate_output(fields["output"])

    payload: dict[str, Any] = {
        "event_type": event_type,
        "utc_now": utc_now_iso(),
        "agent_version": agent_version,
        **fields,
    }

    return json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )


def emit_event(
    event_type: str,
    *,
    agent_version: str,
    transcript_path: Optional[Path] = None,
    **fields: Any,
) -> None:
    """
    Emit structured event line to stdout (and the transcript, if any)

    Transcript write failures never stop the run; stdout still has the line.
    """
    line = format_event(event_type, agent_version=agent_version, **fields)
    print(line, flush=True)

    if transcript_path is None:
        return
    try:
        transcript_path.parent.mkdir(parents=True, exist_ok=True)
        with transcript_path.open(mode="a", encoding="utf-8", newline="\n") as f:
            f.write(line)
            f.write("\n")
    except OSError:
        pass


@dataclass
class EventLog:
    """
    Handle passed to every component so none of them needs to know
    the agent version or transcript location
    """

    agent_version: str
    transcript_path: Optional[Path] = None
    warnings: list[str] = field(default_factory=list)

    def emit(self, event_type: str, **fields: Any) -> None:
        emit_event(
            event_type,
            agent_version=self.agent_version,
            transcript_path=self.transcript_path,
            **fields,
        )

    def warn(self, event_type: str, **fields: Any) -> None:
        """
        Emit a non-fatal degradation and remember it for the run summary
        """
        self.warnings.append(event_type)
        self.emit(event_type, severity="warning", **fields)
