"""Per guest OS boot, network and shutdown policy."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Dict, List, NamedTuple, Tuple

from xhyve_runner.exceptions import ManagerError

if TYPE_CHECKING:
    from xhyve_runner.models import VMConfig


class GuestOS(str, Enum):
    FREEBSD = "freebsd"
    OPENBSD = "openbsd"


class VariantPolicy(NamedTuple):
    network_device: str
    # Placeholders are filled from the VMConfig: {userboot}, {firmware}, {disk_image}
    boot_args: Tuple[str, ...]
    shutdown_command: str
    version_command: str

    def render_boot_args(self, cfg: "VMConfig") -> List[str]:
        values = {
            "userboot": cfg.userboot,
            "firmware": cfg.firmware,
            "disk_image": cfg.disk_image,
        }
        rendered = []
        for arg in self.boot_args:
            for key, value in values.items():
                if f"{{{key}}}" in arg and value is None:
                    raise ManagerError(f"Boot argument '{arg}' requires a {key} path")
            rendered.append(arg.format(**values))
        return rendered


_POLICIES: Dict[GuestOS, VariantPolicy] = {
    GuestOS.FREEBSD: VariantPolicy(
        network_device="virtio-net",
        boot_args=("-f", "fbsd,{userboot},{disk_image},"),
        shutdown_command="shutdown -p now",
        version_command="freebsd-version",
    ),
    GuestOS.OPENBSD: VariantPolicy(
        network_device="e1000",
        boot_args=("-l", "bootrom,{firmware}"),
        shutdown_command="shutdown -h -p now",
        version_command="uname -a",
    ),
}


def policy_for(guest_os: GuestOS) -> VariantPolicy:
    return _POLICIES[guest_os]


def parse_guest_os(name: str) -> GuestOS:
    key = name.strip().lower()
    try:
        return GuestOS(key)
    except ValueError:
        supported = ", ".join(sorted(member.value for member in GuestOS))
        raise ManagerError(f"Unsupported GUEST_OS '{name}'. Supported: {supported}") from None
