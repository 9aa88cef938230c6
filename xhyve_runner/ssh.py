"""Running commands inside the guest over SSH."""

from __future__ import annotations

import subprocess
import time
from pathlib import Path
from typing import List, Optional

from xhyve_runner.constants import (
    POLL_INTERVAL,
    READINESS_PROBE,
    SSH_CONNECT_TIMEOUT,
    SSH_PROBE_TIMEOUT,
    SSH_TRANSPORT_EXIT,
    SSH_USER,
)
from xhyve_runner.exceptions import (
    LaunchError,
    ReadinessTimeout,
    RemoteExecutionFailure,
    RemoteTransportError,
)
from xhyve_runner.models import ExecuteOptions, ExecuteOutcome
from xhyve_runner.utils import has_controlling_tty, log


class RemoteShell:
    """One SSH session per command; the command text is fed on stdin."""

    def __init__(self, ssh_key: Path, ip_address: str, user: str = SSH_USER) -> None:
        self.ssh_key = ssh_key
        self.ip_address = ip_address
        self.user = user

    def command_line(self) -> List[str]:
        cmd = ["ssh"]
        if has_controlling_tty():
            cmd.append("-t")
        cmd.extend(
            [
                "-o",
                "BatchMode=yes",
                "-o",
                f"ConnectTimeout={SSH_CONNECT_TIMEOUT}",
                "-i",
                str(self.ssh_key),
                f"{self.user}@{self.ip_address}",
            ]
        )
        return cmd

    def execute(self, command: str, options: Optional[ExecuteOptions] = None) -> ExecuteOutcome:
        """Run ``command`` in the guest.

        ssh reserves exit status 255 for its own failures, so unless the
        caller ignores return codes that status raises RemoteTransportError
        rather than RemoteExecutionFailure. A remote command that itself
        exits 255 is indistinguishable and is reported the same way.
        ``subprocess.TimeoutExpired`` propagates when ``options.timeout``
        elapses.
        """
        options = options or ExecuteOptions()
        if options.log:
            log("INFO", f"Executing command inside VM: {command}")
        output = subprocess.DEVNULL if options.silent else None
        try:
            result = subprocess.run(
                self.command_line(),
                input=command,
                text=True,
                stdout=output,
                stderr=output,
                timeout=options.timeout,
                check=False,
            )
        except OSError as exc:
            raise LaunchError(f"Failed to start ssh for {self.ip_address}: {exc}") from exc
        outcome = ExecuteOutcome(command=command, exit_code=result.returncode)
        if not outcome.success and not options.ignore_return_code:
            if outcome.exit_code == SSH_TRANSPORT_EXIT:
                raise RemoteTransportError(command, self.ip_address)
            raise RemoteExecutionFailure(command, outcome.exit_code, self.ip_address)
        return outcome

    def wait_until_ready(self, timeout: int, interval: float = POLL_INTERVAL) -> None:
        """Probe the guest once per ``interval`` until a no-op command succeeds.

        An address in the ARP table only means the network stack is up; sshd
        may still be starting, so connection failures and probes that hang
        past SSH_PROBE_TIMEOUT count as not ready yet. Polling also stops
        once ``timeout`` seconds of wall time have passed.
        """
        log("INFO", "Waiting for VM be ready")
        probe = ExecuteOptions(log=False, silent=True, ignore_return_code=True, timeout=SSH_PROBE_TIMEOUT)
        deadline = time.monotonic() + timeout
        for attempt in range(timeout):
            if attempt:
                if time.monotonic() >= deadline:
                    break
                time.sleep(interval)
            try:
                ready = self.execute(READINESS_PROBE, probe).success
            except subprocess.TimeoutExpired:
                log("WARN", f"Readiness probe to {self.ip_address} timed out after {SSH_PROBE_TIMEOUT}s")
                ready = False
            if ready:
                log("SUCCESS", "VM is ready")
                return
        raise ReadinessTimeout(timeout, self.ip_address)
