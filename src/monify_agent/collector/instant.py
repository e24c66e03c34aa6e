"""One-shot queries that need no background sampling."""

from __future__ import annotations

import logging
import time

import psutil

from ..models import DiskSpaceMetrics, SwapMetrics, SystemMetrics

logger = logging.getLogger(__name__)

# pseudo and read-only image filesystems that do not represent real storage
SKIP_FSTYPES = frozenset({
    "tmpfs",
    "devtmpfs",
    "devfs",
    "proc",
    "sysfs",
    "cgroup",
    "cgroup2",
    "nsfs",
    "overlay",
    "squashfs",
    "iso9660",
})


def should_skip_filesystem(fstype: str) -> bool:
    return fstype in SKIP_FSTYPES


def collect_swap() -> SwapMetrics:
    swap = psutil.swap_memory()
    return SwapMetrics(total=swap.total, used=swap.used, used_percent=swap.percent)


def collect_disk_space() -> DiskSpaceMetrics:
    """Sum disk space over every real partition.

    Partitions whose usage cannot be read are skipped.
    """
    total = used = free = 0
    for partition in psutil.disk_partitions(all=False):
        if should_skip_filesystem(partition.fstype):
            continue
        try:
            usage = psutil.disk_usage(partition.mountpoint)
        except (PermissionError, OSError) as exc:
            logger.debug("Skipping %s: %s", partition.mountpoint, exc)
            continue
        total += usage.total
        used += usage.used
        free += usage.free

    used_percent = used / total * 100 if total > 0 else 0.0
    return DiskSpaceMetrics(total=total, used=used, free=free, used_percent=used_percent)


def collect_system() -> SystemMetrics:
    boot_time = psutil.boot_time()
    try:
        process_count = len(psutil.pids())
    except (psutil.Error, OSError):
        process_count = 0
    return SystemMetrics(
        uptime=int(time.time() - boot_time),
        boot_time=int(boot_time),
        process_count=process_count,
    )
