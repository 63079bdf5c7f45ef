"""
provisioner.fetch
AUTHOR: carter-vin

Artifact transport over HTTP (httpx)

Contract:
- download(url, dest): retried a fixed number of times, raises on final failure
- exists(url): HEAD request following redirects, never raises
- partial downloads never survive a failed attempt
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Callable, Protocol

import httpx


class DownloadError(Exception):
    """Download failed after all retries."""


class ArtifactFetcher(Protocol):
    def download(self, url: str, dest: Path) -> Path: ...

    def exists(self, url: str) -> bool: ...


class HttpFetcher:
    """
    httpx-backed fetcher with bounded retries
    """

    def __init__(
        self,
        *,
        timeout_s: float = 20.0,
        retries: int = 3,
        retry_delay_s: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.timeout_s = timeout_s
        self.retries = max(1, retries)
        self.retry_delay_s = retry_delay_s
        self.sleep = sleep
        self.transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            follow_redirects=True,
            timeout=self.timeout_s,
            transport=self.transport,
        )

    def download(self, url: str, dest: Path) -> Path:
        dest.parent.mkdir(parents=True, exist_ok=True)
        partial = dest.with_name(dest.name + ".part")
        last_error: Exception | None = None

        for attempt in range(1, self.retries + 1):
            try:
                with self._client() as client:
                    with client.stream("GET", url) as response:
                        response.raise_for_status()
                        with partial.open("wb") as f:
                            for chunk in response.iter_bytes(chunk_size=8192):
                                f.write(chunk)
                partial.replace(dest)
                return dest
            except (httpx.RequestError, httpx.HTTPStatusError, OSError) as e:
                last_error = e
                partial.unlink(missing_ok=True)
                if attempt < self.retries:
                    self.sleep(self.retry_delay_s)

        raise DownloadError(f"download failed after {self.retries} attempts: {url}: {last_error}")

    def exists(self, url: str) -> bool:
        # Fewer retries than downloads; this is a probe
        attempts = max(1, self.retries - 1)
        for attempt in range(1, attempts + 1):
            try:
                with self._client() as client:
                    response = client.head(url)
                return response.is_success
            except httpx.RequestError:
                if attempt < attempts:
                    self.sleep(self.retry_delay_s)
        return False
