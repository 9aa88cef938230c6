"""Configuration loading and environment variable parsing for xhyve-runner."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional

try:
    import yaml  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required but not installed") from exc

from xhyve_runner import constants
from xhyve_runner.constants import (
    DEFAULT_CPUS,
    DEFAULT_MEMORY,
    DEFAULT_UUID,
    DEFAULT_WAIT_TIMEOUT,
    DISCOVERY_ATTEMPTS,
    IP_DISCOVERY_SOURCES,
    MAX_CPUS,
)
from xhyve_runner.exceptions import ManagerError
from xhyve_runner.models import RunnerConfig
from xhyve_runner.utils import get_env, log, parse_int_env, validate_memory
from xhyve_runner.variants import GuestOS, parse_guest_os

CUSTOM_RELEASE = "custom"


def _read_catalog(config_path: Path) -> Dict:
    if not config_path.exists():
        raise ManagerError(f"Release catalog missing: {config_path}")
    try:
        data = yaml.safe_load(config_path.read_text()) or {}
    except yaml.YAMLError as exc:
        raise ManagerError(f"Release catalog {config_path} contains invalid YAML: {exc}")
    if not isinstance(data, dict):
        raise ManagerError(f"Release catalog {config_path} must contain a mapping")
    return data


def load_release_config(release: str, config_path: Optional[Path] = None) -> Dict[str, str]:
    if config_path is None:
        config_path = constants.DEFAULT_CONFIG_PATH
    releases = _read_catalog(config_path).get("releases") or {}
    if release not in releases:
        available = sorted(releases.keys())
        available_list = "\n    ".join(available) or "(none)"
        raise ManagerError(
            f"Unknown release '{release}'.\n"
            f"  Available releases:\n"
            f"    {available_list}"
        )
    return releases[release]


def default_release(guest_os: GuestOS, config_path: Optional[Path] = None) -> Optional[str]:
    if config_path is None:
        config_path = constants.DEFAULT_CONFIG_PATH
    defaults = _read_catalog(config_path).get("defaults") or {}
    return defaults.get(guest_os.value)


def parse_env() -> RunnerConfig:
    guest_os = parse_guest_os(get_env("GUEST_OS", "freebsd") or "freebsd")

    resources_override = (get_env("RESOURCES_URL") or "").strip() or None
    disk_image_override = (get_env("DISK_IMAGE_URL") or "").strip() or None

    release = (get_env("RELEASE") or "").strip() or default_release(guest_os)
    release_info: Dict[str, str] = {}
    if release:
        release_info = load_release_config(release)
        release_os = release_info.get("guest_os")
        if release_os and parse_guest_os(release_os) != guest_os:
            raise ManagerError(
                f"Release '{release}' is a {release_os} release but GUEST_OS is {guest_os.value}"
            )
    elif resources_override and disk_image_override:
        release = CUSTOM_RELEASE
        log("INFO", "No catalog release selected; using RESOURCES_URL and DISK_IMAGE_URL")
    else:
        raise ManagerError(
            f"No default release for GUEST_OS={guest_os.value}. "
            "Set RELEASE, or both RESOURCES_URL and DISK_IMAGE_URL."
        )

    resources_url = resources_override or release_info.get("resources_url")
    disk_image_url = disk_image_override or release_info.get("disk_image_url")
    if not resources_url or not disk_image_url:
        raise ManagerError(f"Release '{release}' must define resources_url and disk_image_url")

    memory = validate_memory(get_env("MEMORY", DEFAULT_MEMORY) or DEFAULT_MEMORY)
    cpus = parse_int_env("CPUS", DEFAULT_CPUS, max_val=MAX_CPUS)
    uuid = (get_env("VM_UUID") or "").strip() or DEFAULT_UUID
    wait_timeout = parse_int_env("WAIT_TIMEOUT", DEFAULT_WAIT_TIMEOUT)

    ip_discovery = (get_env("IP_DISCOVERY", "arp") or "arp").strip().lower()
    if ip_discovery not in IP_DISCOVERY_SOURCES:
        supported = ", ".join(sorted(IP_DISCOVERY_SOURCES))
        raise ManagerError(f"Unsupported IP_DISCOVERY '{ip_discovery}'. Supported: {supported}")
    discovery_attempts = parse_int_env("IP_DISCOVERY_ATTEMPTS", str(DISCOVERY_ATTEMPTS))

    work_dir_env = (get_env("WORK_DIR") or "").strip()
    work_dir = Path(work_dir_env).expanduser() if work_dir_env else constants.WORK_DIR

    command = (get_env("RUN") or "").strip() or None

    return RunnerConfig(
        guest_os=guest_os,
        release=release,
        release_name=release_info.get("name", release),
        resources_url=resources_url,
        disk_image_url=disk_image_url,
        memory=memory,
        cpus=cpus,
        uuid=uuid,
        wait_timeout=wait_timeout,
        ip_discovery=ip_discovery,
        discovery_attempts=discovery_attempts,
        work_dir=work_dir,
        command=command,
    )
