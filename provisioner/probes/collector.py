"""
provisioner.probes.collector
AUTHOR: carter-vin

Collector selection: first reachable candidate wins

Contract:
- candidates probed strictly in order, one at a time
- probing stops at the first success (later candidates are never contacted)
- no success -> ConnectivityError
"""

from __future__ import annotations

import socket
from typing import Callable, Sequence

from provisioner.errors import ConnectivityError
from provisioner.logging import EventLog
from provisioner.model import CollectorCandidate, CollectorSelection

# connect(hostname, port, timeout_s) -> raises OSError when unreachable
Connect = Callable[[str, int, float], None]


def tcp_connect(hostname: str, port: int, timeout_s: float) -> None:
    """
    Open and immediately close a TCP connection
    """
    with socket.create_connection((hostname, port), timeout=timeout_s):
        pass


def probe(candidate: CollectorCandidate, timeout_s: float, connect: Connect = tcp_connect) -> bool:
    try:
        connect(candidate.hostname, candidate.port, timeout_s)
    except (OSError, UnicodeError):
        # UnicodeError: hostname the IDNA codec rejects (empty or oversized label)
        return False
    return True


def select_collector(
    candidates: Sequence[CollectorCandidate],
    *,
    timeout_s: float,
    log: EventLog,
    connect: Connect = tcp_connect,
) -> CollectorSelection:
    """
    Return the first candidate reachable within timeout_s
    """
    for index, candidate in enumerate(candidates, start=1):
        reachable = probe(candidate, timeout_s, connect)
        log.emit(
            "collector_probe",
            hostname=candidate.hostname,
            port=candidate.port,
            reachable=reachable,
        )
        if reachable:
            selection = CollectorSelection(candidate=candidate, attempts=index)
            log.emit(
                "collector_selected",
                hostname=candidate.hostname,
                port=candidate.port,
                attempts=index,
            )
            return selection

    tried = ", ".join(c.hostname for c in candidates) or "none"
    port = candidates[0].port if candidates else "n/a"
    raise ConnectivityError(f"no collector reachable on port {port} (tried: {tried})")
