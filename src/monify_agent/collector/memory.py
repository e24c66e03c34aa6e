"""Memory usage sampler."""

from __future__ import annotations

import time
from dataclasses import dataclass

import psutil

from ..errors import CollectionError
from ..models import MemoryMetrics
from .base import BoundedSampler


@dataclass(frozen=True)
class MemorySample:
    total: int
    used: int
    free: int
    available: int
    used_percent: float
    cached: int
    buffers: int
    timestamp: float


def _read_memory() -> MemorySample:
    mem = psutil.virtual_memory()
    # cached/buffers are platform-specific fields
    return MemorySample(
        total=mem.total,
        used=mem.used,
        free=mem.free,
        available=mem.available,
        used_percent=mem.percent,
        cached=getattr(mem, "cached", 0),
        buffers=getattr(mem, "buffers", 0),
        timestamp=time.time(),
    )


class MemorySampler(BoundedSampler[MemorySample, MemoryMetrics]):
    """Samples virtual memory usage and averages it per field."""

    @property
    def name(self) -> str:
        return "memory"

    def measure(self) -> MemorySample:
        return _read_memory()

    def collect(self) -> MemoryMetrics:
        samples = self.drain()

        if not samples:
            # cold start: no tick yet, report the current state instead of zeros
            try:
                samples = [_read_memory()]
            except (psutil.Error, OSError) as exc:
                raise CollectionError(f"memory query failed: {exc}") from exc

        count = len(samples)
        return MemoryMetrics(
            total=sum(s.total for s in samples) // count,
            used=sum(s.used for s in samples) // count,
            free=sum(s.free for s in samples) // count,
            available=sum(s.available for s in samples) // count,
            used_percent=sum(s.used_percent for s in samples) / count,
            cached=sum(s.cached for s in samples) // count,
            buffers=sum(s.buffers for s in samples) // count,
        )
