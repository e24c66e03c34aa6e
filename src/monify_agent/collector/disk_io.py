"""Disk I/O sampler."""

from __future__ import annotations

import time
from dataclasses import dataclass, field

import psutil

from ..models import DiskIOMetrics
from .base import BoundedSampler
from .rates import BYTES_PER_MB, mean_pair_rates


@dataclass(frozen=True)
class DeviceCounters:
    read_bytes: int
    write_bytes: int
    read_count: int
    write_count: int


@dataclass(frozen=True)
class DiskIOSample:
    timestamp: float
    devices: dict[str, DeviceCounters] = field(default_factory=dict)


def _device_counters(sample: DiskIOSample) -> dict[str, tuple[int, int, int, int]]:
    return {
        name: (c.read_bytes, c.write_bytes, c.read_count, c.write_count)
        for name, c in sample.devices.items()
    }


def reduce_disk_io(samples: list[DiskIOSample]) -> DiskIOMetrics:
    """Mean aggregate throughput across all devices over consecutive pairs."""
    read_bps, write_bps, read_ops, write_ops = mean_pair_rates(samples, _device_counters, 4)
    return DiskIOMetrics(
        read_mbps=read_bps / BYTES_PER_MB,
        write_mbps=write_bps / BYTES_PER_MB,
        read_iops=read_ops,
        write_iops=write_ops,
    )


class DiskIOSampler(BoundedSampler[DiskIOSample, DiskIOMetrics]):
    """Samples per-device I/O counters and reports aggregate rates."""

    @property
    def name(self) -> str:
        return "disk_io"

    def measure(self) -> DiskIOSample | None:
        counters = psutil.disk_io_counters(perdisk=True)
        if not counters:
            return None
        return DiskIOSample(
            timestamp=time.time(),
            devices={
                name: DeviceCounters(
                    read_bytes=io.read_bytes,
                    write_bytes=io.write_bytes,
                    read_count=io.read_count,
                    write_count=io.write_count,
                )
                for name, io in counters.items()
            },
        )

    def collect(self) -> DiskIOMetrics:
        return reduce_disk_io(self.drain())
