"""VM lifecycle management for xhyve-runner."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import List, Optional

from xhyve_runner.constants import DISCOVERY_ATTEMPTS, POLL_INTERVAL
from xhyve_runner.discovery import discover_ip_address
from xhyve_runner.exceptions import ManagerError
from xhyve_runner.launcher import build_xhyve_args, query_mac_address, spawn_detached
from xhyve_runner.models import ExecuteOptions, SpawnedProcess, VMConfig
from xhyve_runner.ssh import RemoteShell
from xhyve_runner.utils import log
from xhyve_runner.variants import GuestOS, VariantPolicy, policy_for


class VMState(str, Enum):
    CREATED = "created"
    INITIALIZED = "initialized"
    RUNNING = "running"
    READY = "ready"
    STOPPED = "stopped"


class XhyveVM:
    """Drives one guest through init -> run -> wait -> execute* -> stop.

    Calls are expected to be made sequentially by a single caller.
    """

    def __init__(
        self,
        ssh_key: Path,
        xhyve_path: Path,
        vm_config: VMConfig,
        guest_os: GuestOS = GuestOS.FREEBSD,
        ip_discovery: str = "arp",
        discovery_attempts: int = DISCOVERY_ATTEMPTS,
        poll_interval: float = POLL_INTERVAL,
    ) -> None:
        self.ssh_key = ssh_key
        self.xhyve_path = xhyve_path
        self.cfg = vm_config
        self.guest_os = guest_os
        self.policy: VariantPolicy = policy_for(guest_os)
        self.ip_discovery = ip_discovery
        self.discovery_attempts = discovery_attempts
        self.poll_interval = poll_interval
        self.state = VMState.CREATED
        self._mac_address: Optional[str] = None
        self._ip_address: Optional[str] = None
        self._process: Optional[SpawnedProcess] = None

    @property
    def mac_address(self) -> Optional[str]:
        return self._mac_address

    @mac_address.setter
    def mac_address(self, value: str) -> None:
        if self._mac_address is not None:
            raise ManagerError(f"MAC address already assigned ({self._mac_address})")
        self._mac_address = value

    @property
    def ip_address(self) -> Optional[str]:
        return self._ip_address

    @ip_address.setter
    def ip_address(self, value: str) -> None:
        if self._ip_address is not None:
            raise ManagerError(f"IP address already assigned ({self._ip_address})")
        self._ip_address = value

    @property
    def pid(self) -> Optional[int]:
        """PID of the detached xhyve process, for callers that need to clean up."""
        return self._process.pid if self._process else None

    @property
    def xhyve_args(self) -> List[str]:
        return build_xhyve_args(self.xhyve_path, self.cfg, self.policy)

    def init(self) -> None:
        log("INFO", "Initializing VM")
        self.mac_address = query_mac_address(self.xhyve_args)
        self.state = VMState.INITIALIZED

    def run(self) -> None:
        if self._mac_address is None:
            raise ManagerError("VM must be initialized before it can be booted")
        log("INFO", "Booting VM")
        self._process = spawn_detached(self.xhyve_args)
        self.state = VMState.RUNNING
        self.ip_address = discover_ip_address(
            self._mac_address,
            attempts=self.discovery_attempts,
            interval=self.poll_interval,
            source=self.ip_discovery,
        )

    def wait(self, timeout: int) -> None:
        self._shell().wait_until_ready(timeout, interval=self.poll_interval)
        self.state = VMState.READY

    def execute(
        self,
        command: str,
        log_command: bool = True,
        silent: bool = False,
        ignore_return_code: bool = False,
    ) -> int:
        options = ExecuteOptions(log=log_command, silent=silent, ignore_return_code=ignore_return_code)
        return self._shell().execute(command, options).exit_code

    def stop(self) -> None:
        log("INFO", "Shutting down VM")
        self.execute(self.policy.shutdown_command)
        self.state = VMState.STOPPED
        if self._process is not None:
            log("DEBUG", f"xhyve (PID {self._process.pid}) is expected to exit once the guest powers off")

    def _shell(self) -> RemoteShell:
        if self._ip_address is None:
            raise ManagerError("VM has no IP address; call run() first")
        return RemoteShell(self.ssh_key, self._ip_address)
