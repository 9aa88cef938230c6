"""Data models for xhyve-runner."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, NamedTuple, Optional

from xhyve_runner.variants import GuestOS


class ArpEntry(NamedTuple):
    mac_address: str
    ip_address: str


class SpawnedProcess(NamedTuple):
    """A detached hypervisor launch. Only the pid is kept; nothing waits on it."""

    pid: int
    argv: List[str]


@dataclass
class VMConfig:
    memory: str
    cpus: int
    disk_image: Path
    uuid: str
    userboot: Optional[Path] = None
    firmware: Optional[Path] = None


@dataclass(frozen=True)
class ExecuteOptions:
    log: bool = True
    silent: bool = False
    ignore_return_code: bool = False
    timeout: Optional[float] = None


@dataclass(frozen=True)
class ExecuteOutcome:
    command: str
    exit_code: int

    @property
    def success(self) -> bool:
        return self.exit_code == 0


@dataclass
class RunnerConfig:
    guest_os: GuestOS
    release: str
    release_name: str
    resources_url: str
    disk_image_url: str
    memory: str
    cpus: int
    uuid: str
    wait_timeout: int
    ip_discovery: str
    discovery_attempts: int
    work_dir: Path
    command: Optional[str] = None
