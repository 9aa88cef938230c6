"""Global constants and path configuration for xhyve-runner."""

from __future__ import annotations

import os
import re
from pathlib import Path

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "releases.yaml"

_WORK_DIR = os.environ.get("WORK_DIR")
WORK_DIR = Path(_WORK_DIR) if _WORK_DIR else Path.home() / ".cache" / "xhyve-runner"

TRUTHY = {"1", "true", "yes", "on"}
MAC_ADDRESS_RE = re.compile(r"^[0-9a-f]{1,2}(:[0-9a-f]{1,2}){5}$")
MEMORY_RE = re.compile(r"^\d+[KMGkmg]?$")

DEFAULT_UUID = "864ED7F0-7876-4AA7-8511-816FABCFA87F"
DEFAULT_MEMORY = "4G"
DEFAULT_CPUS = "2"
DEFAULT_WAIT_TIMEOUT = "10"
MAX_CPUS = 64

# Files shipped inside the resources tarball
XHYVE_BINARY_NAME = "xhyve"
QEMU_IMG_BINARY_NAME = "qemu-img"
USERBOOT_NAME = "userboot.so"
FIRMWARE_NAME = "uefi.fd"
SSH_KEY_NAME = "id_ed25519"
RAW_DISK_NAME = "disk.raw"

ARP_COMMAND = ("arp", "-a", "-n")
DHCPD_LEASES_FILE = Path("/var/db/dhcpd_leases")
IP_DISCOVERY_SOURCES = {"arp", "leases"}
DISCOVERY_ATTEMPTS = 500
POLL_INTERVAL = 1.0

SSH_USER = "root"
READINESS_PROBE = "true"
SSH_CONNECT_TIMEOUT = 5
SSH_PROBE_TIMEOUT = 10
SSH_TRANSPORT_EXIT = 255

SSH_CONFIG_LINES = (
    "StrictHostKeyChecking=accept-new",
    "SendEnv CI GITHUB_*",
)

_LOG_VERBOSE = os.environ.get("LOG_VERBOSE", "").lower() in TRUTHY
