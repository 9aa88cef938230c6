"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from xhyve_runner.models import RunnerConfig, VMConfig
from xhyve_runner.variants import GuestOS


@pytest.fixture
def vm_config(tmp_path) -> VMConfig:
    """Return a VMConfig pointing at files under tmp_path."""
    return VMConfig(
        memory="4G",
        cpus=2,
        disk_image=tmp_path / "disk.raw",
        uuid="864ED7F0-7876-4AA7-8511-816FABCFA87F",
        userboot=tmp_path / "userboot.so",
        firmware=tmp_path / "uefi.fd",
    )


@pytest.fixture
def runner_config(tmp_path) -> RunnerConfig:
    return RunnerConfig(
        guest_os=GuestOS.FREEBSD,
        release="freebsd",
        release_name="FreeBSD",
        resources_url="https://example.com/resources.tar",
        disk_image_url="https://example.com/disk.qcow2",
        memory="4G",
        cpus=2,
        uuid="864ED7F0-7876-4AA7-8511-816FABCFA87F",
        wait_timeout=10,
        ip_discovery="arp",
        discovery_attempts=500,
        work_dir=tmp_path / "work",
        command=None,
    )


@pytest.fixture
def ssh_key(tmp_path) -> Path:
    key = tmp_path / "id_ed25519"
    key.write_text("PRIVATE KEY\n")
    return key


# All environment variables that parse_env() reads — used to ensure a clean slate.
_PARSE_ENV_VARS = [
    "GUEST_OS",
    "RELEASE",
    "RESOURCES_URL",
    "DISK_IMAGE_URL",
    "MEMORY",
    "CPUS",
    "VM_UUID",
    "WAIT_TIMEOUT",
    "IP_DISCOVERY",
    "IP_DISCOVERY_ATTEMPTS",
    "WORK_DIR",
    "RUN",
]


@pytest.fixture
def clean_env(monkeypatch):
    """Clear all environment variables that parse_env() reads."""
    for key in _PARSE_ENV_VARS:
        monkeypatch.delenv(key, raising=False)
