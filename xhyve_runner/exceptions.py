"""Custom exceptions for xhyve-runner."""

from __future__ import annotations

from typing import Optional


class ManagerError(RuntimeError):
    """Raised on unrecoverable configuration or runtime errors."""


class LaunchError(ManagerError):
    """A host-side process (xhyve, ssh) failed to start or exited non-zero."""


class AddressDiscoveryTimeout(ManagerError):
    def __init__(self, mac_address: str, attempts: int) -> None:
        self.mac_address = mac_address
        self.attempts = attempts
        super().__init__(
            f"Failed to get IP address for MAC address: {mac_address} (gave up after {attempts} attempts)"
        )


class ReadinessTimeout(ManagerError):
    def __init__(self, timeout: int, ip_address: Optional[str] = None) -> None:
        self.timeout = timeout
        self.ip_address = ip_address
        target = f" at {ip_address}" if ip_address else ""
        super().__init__(f"Waiting for VM{target} to become ready timed out after {timeout} seconds")


class RemoteExecutionFailure(ManagerError):
    """The remote command ran but exited non-zero."""

    def __init__(self, command: str, exit_code: int, ip_address: Optional[str] = None) -> None:
        self.command = command
        self.exit_code = exit_code
        self.ip_address = ip_address
        super().__init__(f"Command inside VM ({ip_address}) failed with exit code {exit_code}: {command}")


class RemoteTransportError(ManagerError):
    """ssh itself failed (exit 255): connection refused, auth or host key rejected."""

    def __init__(self, command: str, ip_address: Optional[str] = None) -> None:
        self.command = command
        self.ip_address = ip_address
        super().__init__(f"Failed to reach VM ({ip_address}) over ssh while running: {command}")
