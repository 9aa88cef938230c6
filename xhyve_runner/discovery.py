"""Guest IP address discovery from the host ARP table or the DHCP lease file."""

from __future__ import annotations

import re
import subprocess
import time
from pathlib import Path
from typing import Callable, Optional

from xhyve_runner.constants import ARP_COMMAND, DHCPD_LEASES_FILE, DISCOVERY_ATTEMPTS, POLL_INTERVAL
from xhyve_runner.exceptions import AddressDiscoveryTimeout, ManagerError
from xhyve_runner.models import ArpEntry
from xhyve_runner.utils import log

_PARENTHESIZED_RE = re.compile(r"\((.+)\)")
_ARP_LINE_RE = re.compile(r"\((?P<ip>[^)]+)\)\s+at\s+(?P<mac>\S+)")


def extract_ip_address(arp_output: str, mac_address: str) -> Optional[str]:
    """Return the IP on the first ARP line mentioning ``mac_address``, or None.

    The MAC is matched as a substring of the whole line since the column
    layout of ``arp`` differs between platforms.
    """
    line = next((line for line in arp_output.split("\n") if mac_address in line), None)
    if line is None:
        return None
    match = _PARENTHESIZED_RE.search(line)
    if match is None:
        return None
    return match.group(1)


def parse_arp_entry(line: str) -> Optional[ArpEntry]:
    """Parse a BSD style ``? (10.0.0.2) at 40:8e:71:34:88:eb on en1`` line."""
    match = _ARP_LINE_RE.search(line)
    if match is None:
        return None
    return ArpEntry(mac_address=match.group("mac").lower(), ip_address=match.group("ip"))


def extract_ip_from_dhcpd_leases(leases: str, mac_address: str) -> Optional[str]:
    """Look up ``ip_address=`` in the first lease block mentioning ``mac_address``.

    Each step may come up empty; any gap means the lease is not there yet.
    """
    block = next((block for block in leases.split("{") if mac_address in block), None)
    if block is None:
        return None
    line = next(
        (line for line in (raw.strip() for raw in block.split("\n")) if line.startswith("ip_address=")),
        None,
    )
    if line is None:
        return None
    return line.split("=", 1)[1].strip() or None


def query_arp_table() -> str:
    """Return the output of ``arp -a -n``; a failing invocation reads as an empty table."""
    try:
        result = subprocess.run(list(ARP_COMMAND), capture_output=True, text=True, check=False)
    except OSError as exc:
        log("DEBUG", f"arp could not be run: {exc}")
        return ""
    if result.returncode != 0:
        log("DEBUG", f"arp exited with code {result.returncode}")
        return ""
    return result.stdout


def read_dhcpd_leases(path: Path = DHCPD_LEASES_FILE) -> str:
    try:
        return path.read_text()
    except FileNotFoundError:
        return ""


def _arp_lookup(mac_address: str) -> Optional[str]:
    arp_output = query_arp_table()
    ip_address = extract_ip_address(arp_output, mac_address)
    if ip_address:
        for line in arp_output.splitlines():
            if mac_address in line:
                log("DEBUG", f"ARP entry: {parse_arp_entry(line) or line.strip()}")
                break
    return ip_address


def _leases_lookup(mac_address: str) -> Optional[str]:
    return extract_ip_from_dhcpd_leases(read_dhcpd_leases(), mac_address)


_LOOKUPS = {
    "arp": _arp_lookup,
    "leases": _leases_lookup,
}


def get_lookup(source: str) -> Callable[[str], Optional[str]]:
    try:
        return _LOOKUPS[source]
    except KeyError:
        supported = ", ".join(sorted(_LOOKUPS))
        raise ManagerError(f"Unsupported IP discovery source '{source}'. Supported: {supported}") from None


def discover_ip_address(
    mac_address: str,
    attempts: int = DISCOVERY_ATTEMPTS,
    interval: float = POLL_INTERVAL,
    source: str = "arp",
) -> str:
    """Poll ``source`` until an IP address shows up for ``mac_address``.

    Makes exactly ``attempts`` lookups with a fixed ``interval`` sleep between
    two consecutive misses, then raises AddressDiscoveryTimeout.
    """
    lookup = get_lookup(source)
    log("INFO", f"Getting IP address for MAC address: '{mac_address}'")
    for attempt in range(attempts):
        if attempt:
            time.sleep(interval)
        ip_address = lookup(mac_address)
        if ip_address:
            log("INFO", f"Found IP address: '{ip_address}'")
            return ip_address
    raise AddressDiscoveryTimeout(mac_address, attempts)
