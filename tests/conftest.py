"""
Shared fakes for provisioning contract tests

- ScriptedRunner: answers commands by argv prefix, records every call
- FakeFetcher: in-memory artifact store, records downloads
- parse_events: decode the JSON event lines captured from stdout
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

import pytest

from provisioner.fetch import DownloadError
from provisioner.logging import EventLog
from provisioner.model import Arch, Family, HostEnvironment, PackageManager
from provisioner.runner import CommandResult


class ScriptedRunner:
    """
    Commands match the most recently registered prefix.
    A list of return codes is consumed in order; the last one repeats.
    Unmatched commands succeed with no output.
    """

    def __init__(self) -> None:
        self.rules: list[list] = []
        self.calls: list[tuple[str, ...]] = []

    def on(self, *prefix: str, returncode=0, stdout: str = "", stderr: str = "") -> "ScriptedRunner":
        codes = list(returncode) if isinstance(returncode, (list, tuple)) else [returncode]
        self.rules.insert(0, [tuple(prefix), codes, stdout, stderr])
        return self

    def __call__(self, argv, *, env=None, cwd=None) -> CommandResult:
        args = tuple(argv)
        self.calls.append(args)
        for prefix, codes, stdout, stderr in self.rules:
            if args[: len(prefix)] == prefix:
                code = codes.pop(0) if len(codes) > 1 else codes[0]
                return CommandResult(args, code, stdout, stderr)
        return CommandResult(args, 0)

    def ran(self, *prefix: str) -> bool:
        return any(call[: len(prefix)] == prefix for call in self.calls)


class FakeFetcher:
    def __init__(self, *, missing=(), failing=()) -> None:
        self.missing = set(missing)
        self.failing = set(failing)
        self.downloads: list[str] = []
        self.checked: list[str] = []

    def exists(self, url: str) -> bool:
        self.checked.append(url)
        return url not in self.missing

    def download(self, url: str, dest: Path) -> Path:
        if url in self.failing:
            raise DownloadError(f"download failed after 3 attempts: {url}")
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(b"artifact:" + url.encode("utf-8"))
        self.downloads.append(url)
        return dest


def parse_events(out: str) -> list[dict]:
    return [json.loads(line) for line in out.splitlines() if line.startswith("{")]


FIXED_NOW = datetime(2026, 1, 2, 3, 4, 5)


@pytest.fixture
def runner() -> ScriptedRunner:
    return ScriptedRunner()


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def log(tmp_path) -> EventLog:
    return EventLog(agent_version="0.1.0", transcript_path=tmp_path / "transcript.log")


@pytest.fixture
def ubuntu_env() -> HostEnvironment:
    return HostEnvironment(
        family=Family.DEBIAN,
        distro_id="ubuntu",
        version_full="22.04",
        version_major="22",
        codename="jammy",
        arch=Arch.X86_64,
        package_manager=PackageManager.APT,
        pretty_name="Ubuntu 22.04.4 LTS",
    )
