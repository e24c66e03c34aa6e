"""OS, kernel and virtualization facts."""

from __future__ import annotations

import platform
from dataclasses import dataclass
from pathlib import Path

MACHINE_ID_PATHS = ("/etc/machine-id", "/var/lib/dbus/machine-id")


@dataclass(frozen=True)
class SystemInfo:
    platform: str
    platform_family: str
    platform_version: str
    os: str
    arch: str
    kernel_version: str
    kernel_arch: str
    virtualization: str
    host_id: str


def _os_release() -> dict[str, str]:
    try:
        return platform.freedesktop_os_release()
    except OSError:
        return {}


def _read_first(paths: tuple[str, ...]) -> str:
    for candidate in paths:
        try:
            value = Path(candidate).read_text(encoding="utf-8").strip()
        except OSError:
            continue
        if value:
            return value
    return ""


def detect_virtualization() -> str:
    """Best-effort container/hypervisor detection; empty when bare metal."""
    if Path("/.dockerenv").exists():
        return "docker"
    try:
        cgroup = Path("/proc/1/cgroup").read_text(encoding="utf-8")
    except OSError:
        cgroup = ""
    for marker in ("docker", "lxc", "kubepods"):
        if marker in cgroup:
            return marker
    hypervisor = _read_first(("/sys/hypervisor/type",))
    if hypervisor:
        return hypervisor
    product = _read_first(("/sys/class/dmi/id/product_name",)).lower()
    for name in ("kvm", "vmware", "virtualbox", "qemu", "hvm domu", "google compute engine"):
        if name in product:
            return name.split()[0]
    return ""


def collect_system_info() -> SystemInfo:
    release = _os_release()
    system = platform.system()
    machine = platform.machine()
    family = (release.get("ID_LIKE") or release.get("ID") or "").split()
    return SystemInfo(
        platform=release.get("ID", system.lower()),
        platform_family=family[0] if family else system.lower(),
        platform_version=release.get("VERSION_ID", platform.version()),
        os=system.lower(),
        arch=machine,
        kernel_version=platform.release(),
        kernel_arch=machine,
        virtualization=detect_virtualization(),
        host_id=_read_first(MACHINE_ID_PATHS),
    )
