"""Fetching and preparing the release artifacts a guest boots from."""

from __future__ import annotations

import os
import subprocess
import tarfile
from pathlib import Path
from typing import NamedTuple, Optional

from xhyve_runner.constants import (
    FIRMWARE_NAME,
    QEMU_IMG_BINARY_NAME,
    RAW_DISK_NAME,
    SSH_CONFIG_LINES,
    SSH_KEY_NAME,
    USERBOOT_NAME,
    XHYVE_BINARY_NAME,
)
from xhyve_runner.exceptions import ManagerError
from xhyve_runner.models import RunnerConfig, VMConfig
from xhyve_runner.utils import download_file, ensure_directory, log, run


class Resources(NamedTuple):
    directory: Path
    xhyve: Path
    qemu_img: Path
    ssh_key: Path
    userboot: Optional[Path]
    firmware: Optional[Path]
    disk_image: Path


def unarchive_resources(archive: Path, destination: Path) -> Path:
    log("INFO", f"Unarchiving resources: {archive}")
    ensure_directory(destination)
    try:
        with tarfile.open(archive) as tar:
            tar.extractall(destination, filter="data")
    except (tarfile.TarError, OSError) as exc:
        raise ManagerError(f"Failed to extract {archive}: {exc}") from exc
    return destination


def configure_ssh(ssh_key: Path, home: Optional[Path] = None) -> None:
    """Let ssh accept the fresh guest host key and restrict the private key's mode."""
    log("DEBUG", "Configuring SSH")
    if home is None:
        home_env = os.environ.get("HOME")
        if not home_env:
            raise ManagerError("Failed to get the home directory (HOME is not set)")
        home = Path(home_env)
    ssh_directory = home / ".ssh"
    if not ssh_directory.exists():
        ssh_directory.mkdir(parents=True, mode=0o700)
    with open(ssh_directory / "config", "a") as f:
        f.write("\n".join(SSH_CONFIG_LINES) + "\n")
    ssh_key.chmod(0o600)


def convert_to_raw_disk(qemu_img: Path, source: Path, destination: Path) -> Path:
    log("INFO", f"Converting {source.name} to raw disk image")
    try:
        run([str(qemu_img), "convert", "-f", "qcow2", "-O", "raw", str(source), str(destination)])
    except (subprocess.CalledProcessError, OSError) as exc:
        raise ManagerError(f"Disk conversion failed: {exc}") from exc
    return destination


def locate_resources(directory: Path, disk_image: Path) -> Resources:
    required = {
        "xhyve": directory / XHYVE_BINARY_NAME,
        "qemu-img": directory / QEMU_IMG_BINARY_NAME,
        "SSH key": directory / SSH_KEY_NAME,
    }
    missing = [f"{label} ({path})" for label, path in required.items() if not path.exists()]
    if missing:
        raise ManagerError(f"Resources archive is incomplete; missing: {', '.join(missing)}")
    userboot = directory / USERBOOT_NAME
    firmware = directory / FIRMWARE_NAME
    return Resources(
        directory=directory,
        xhyve=required["xhyve"],
        qemu_img=required["qemu-img"],
        ssh_key=required["SSH key"],
        userboot=userboot if userboot.exists() else None,
        firmware=firmware if firmware.exists() else None,
        disk_image=disk_image,
    )


def prepare_resources(cfg: RunnerConfig) -> Resources:
    """Download, unpack and convert everything needed to boot ``cfg.release``."""
    ensure_directory(cfg.work_dir)
    archive = cfg.work_dir / "resources.tar"
    qcow2_image = cfg.work_dir / "disk.qcow2"
    download_file(cfg.resources_url, archive, label="Downloading resources")
    download_file(cfg.disk_image_url, qcow2_image, label="Downloading disk image")

    directory = unarchive_resources(archive, cfg.work_dir / "resources")
    resources = locate_resources(directory, directory / RAW_DISK_NAME)
    configure_ssh(resources.ssh_key)
    convert_to_raw_disk(resources.qemu_img, qcow2_image, resources.disk_image)
    return resources


def build_vm_config(cfg: RunnerConfig, resources: Resources) -> VMConfig:
    return VMConfig(
        memory=cfg.memory,
        cpus=cfg.cpus,
        disk_image=resources.disk_image,
        uuid=cfg.uuid,
        userboot=resources.userboot,
        firmware=resources.firmware,
    )
