"""Filesystem inventory."""

from __future__ import annotations

import logging
import os

import psutil

from ..collector.instant import should_skip_filesystem
from ..models import DiskInventory

logger = logging.getLogger(__name__)


def _inodes_total(mountpoint: str) -> int:
    statvfs = getattr(os, "statvfs", None)
    if statvfs is None:
        return 0
    try:
        return statvfs(mountpoint).f_files
    except OSError:
        return 0


def collect_disk_inventory() -> list[DiskInventory]:
    disks: list[DiskInventory] = []
    for partition in psutil.disk_partitions(all=False):
        if should_skip_filesystem(partition.fstype):
            continue
        try:
            usage = psutil.disk_usage(partition.mountpoint)
        except (PermissionError, OSError) as exc:
            logger.debug("Skipping %s: %s", partition.mountpoint, exc)
            continue
        disks.append(DiskInventory(
            device=partition.device,
            mount=partition.mountpoint,
            fstype=partition.fstype,
            total=usage.total,
            inodes_total=_inodes_total(partition.mountpoint),
        ))
    return disks
