"""Building and launching the xhyve hypervisor process."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import List

from xhyve_runner.constants import MAC_ADDRESS_RE
from xhyve_runner.exceptions import LaunchError
from xhyve_runner.models import SpawnedProcess, VMConfig
from xhyve_runner.utils import log, run
from xhyve_runner.variants import VariantPolicy


def build_xhyve_args(xhyve_path: Path, cfg: VMConfig, policy: VariantPolicy) -> List[str]:
    """Return the full xhyve argv (without ``sudo``) for booting the guest."""
    # fmt: off
    args = [
        str(xhyve_path),
        "-U", cfg.uuid,
        "-A",
        "-H",
        "-m", cfg.memory,
        "-c", str(cfg.cpus),
        "-s", "0:0,hostbridge",
        "-s", f"2:0,{policy.network_device}",
        "-s", f"4:0,virtio-blk,{cfg.disk_image}",
        "-s", "31,lpc",
        "-l", "com1,stdio",
    ]
    # fmt: on
    return args + policy.render_boot_args(cfg)


def parse_mac_output(output: str) -> str:
    """Extract the address from xhyve's ``-M`` output, e.g. ``MAC: 40:8e:71:34:88:eb``."""
    _label, _, address = output.strip().rpartition(" ")
    address = address.strip().lower()
    if not MAC_ADDRESS_RE.match(address):
        raise LaunchError(f"Unexpected MAC address output from xhyve: '{output.strip()}'")
    return address


def query_mac_address(xhyve_args: List[str]) -> str:
    """Run xhyve in print-MAC-and-exit mode and return the guest's MAC address."""
    log("DEBUG", "Getting MAC address")
    cmd = ["sudo"] + xhyve_args + ["-M"]
    try:
        result = run(cmd, check=False, capture_output=True)
    except OSError as exc:
        raise LaunchError(f"Failed to start xhyve for MAC address discovery: {exc}") from exc
    if result.returncode != 0:
        if result.stderr:
            log("ERROR", f"xhyve stderr:\n{result.stderr}")
        raise LaunchError(f"MAC address discovery failed: xhyve exited with code {result.returncode}")
    mac_address = parse_mac_output(result.stdout)
    log("DEBUG", f"Found MAC address: '{mac_address}'")
    return mac_address


def spawn_detached(xhyve_args: List[str]) -> SpawnedProcess:
    """Start xhyve under sudo in its own session and hand it over to the OS.

    The guest runs for the lifetime of the job and is expected to terminate
    the hypervisor itself on shutdown, so no handle is retained.
    """
    cmd = ["sudo"] + xhyve_args
    log("DEBUG", f"Spawning: {' '.join(cmd)}")
    try:
        proc = subprocess.Popen(
            cmd,
            stdin=subprocess.DEVNULL,
            start_new_session=True,
        )
    except OSError as exc:
        raise LaunchError(f"Failed to start xhyve: {exc}") from exc
    log("INFO", f"xhyve started (PID {proc.pid})")
    return SpawnedProcess(pid=proc.pid, argv=cmd)
