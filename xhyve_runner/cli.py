"""CLI entry points for xhyve-runner."""

from __future__ import annotations

import argparse
from typing import List, Optional

from xhyve_runner.config import parse_env
from xhyve_runner.constants import FIRMWARE_NAME, RAW_DISK_NAME, USERBOOT_NAME, XHYVE_BINARY_NAME
from xhyve_runner.exceptions import (
    AddressDiscoveryTimeout,
    ManagerError,
    RemoteExecutionFailure,
    RemoteTransportError,
)
from xhyve_runner.launcher import build_xhyve_args
from xhyve_runner.models import RunnerConfig, VMConfig
from xhyve_runner.resources import build_vm_config, prepare_resources
from xhyve_runner.utils import log
from xhyve_runner.variants import policy_for
from xhyve_runner.vm import XhyveVM


def show_config(cfg: RunnerConfig) -> None:
    """Print the resolved runner configuration."""
    import dataclasses

    for field in dataclasses.fields(cfg):
        value = getattr(cfg, field.name)
        if hasattr(value, "value"):
            value = value.value
        print(f"  {field.name}: {value}")


def planned_xhyve_args(cfg: RunnerConfig) -> List[str]:
    """The command line xhyve would be started with once resources are in place."""
    directory = cfg.work_dir / "resources"
    vm_config = VMConfig(
        memory=cfg.memory,
        cpus=cfg.cpus,
        disk_image=directory / RAW_DISK_NAME,
        uuid=cfg.uuid,
        userboot=directory / USERBOOT_NAME,
        firmware=directory / FIRMWARE_NAME,
    )
    return ["sudo"] + build_xhyve_args(directory / XHYVE_BINARY_NAME, vm_config, policy_for(cfg.guest_os))


def run_job(cfg: RunnerConfig) -> int:
    resources = prepare_resources(cfg)
    vm = XhyveVM(
        resources.ssh_key,
        resources.xhyve,
        build_vm_config(cfg, resources),
        guest_os=cfg.guest_os,
        ip_discovery=cfg.ip_discovery,
        discovery_attempts=cfg.discovery_attempts,
    )
    vm.init()
    try:
        vm.run()
    except AddressDiscoveryTimeout:
        if vm.pid is not None:
            log("WARN", f"xhyve (PID {vm.pid}) was left running")
        raise
    vm.wait(cfg.wait_timeout)

    command = cfg.command or vm.policy.version_command
    retcode = 0
    try:
        vm.execute(command)
    except (RemoteExecutionFailure, RemoteTransportError) as exc:
        log("ERROR", str(exc))
        retcode = 1
    vm.stop()
    return retcode


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Boot an xhyve guest and run a CI command inside it")
    parser.add_argument("command", nargs="?", help="Command to run inside the VM (default: $RUN)")
    parser.add_argument("--show-config", action="store_true", help="Show resolved configuration and exit")
    parser.add_argument("--dry-run", action="store_true", help="Validate configuration, print the xhyve command and exit")
    parser.add_argument("--print-args", action="store_true", help="Print the xhyve command line and exit")
    args = parser.parse_args(argv)

    try:
        cfg = parse_env()
    except ManagerError as exc:
        log("ERROR", str(exc))
        return 1
    if args.command:
        cfg.command = args.command

    if args.show_config:
        show_config(cfg)
        return 0

    if args.print_args:
        print(" ".join(planned_xhyve_args(cfg)))
        return 0

    if args.dry_run:
        log("INFO", "=== Configuration ===")
        show_config(cfg)
        log("INFO", "=== xhyve command ===")
        try:
            print(" ".join(planned_xhyve_args(cfg)))
        except ManagerError as exc:
            log("ERROR", str(exc))
            return 1
        log("INFO", "=== Dry-run complete (no VM started) ===")
        return 0

    log("INFO", f"Release: {cfg.release} ({cfg.release_name})")
    log("INFO", f"Guest: {cfg.guest_os.value} | Memory: {cfg.memory} | CPUs: {cfg.cpus}")
    try:
        return run_job(cfg)
    except ManagerError as exc:
        log("ERROR", str(exc))
        return 1
    except Exception as exc:
        log("ERROR", f"Unexpected error: {exc}")
        import traceback

        traceback.print_exc()
        return 1
