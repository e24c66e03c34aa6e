"""CPU usage sampler."""

from __future__ import annotations

import time
from dataclasses import dataclass

import psutil

from ..errors import CollectionError
from ..models import CpuMetrics
from .base import BoundedSampler


@dataclass(frozen=True)
class CpuSample:
    usage_percent: float
    timestamp: float


class CpuSampler(BoundedSampler[CpuSample, CpuMetrics]):
    """Samples overall CPU usage; load averages are read fresh on collect."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        # first call always returns 0.0; prime the baseline
        psutil.cpu_percent(interval=None)

    @property
    def name(self) -> str:
        return "cpu"

    def measure(self) -> CpuSample:
        return CpuSample(usage_percent=psutil.cpu_percent(interval=None), timestamp=time.time())

    def collect(self) -> CpuMetrics:
        try:
            load1, load5, load15 = psutil.getloadavg()
        except (psutil.Error, OSError) as exc:
            raise CollectionError(f"load average unavailable: {exc}") from exc

        samples = self.drain()
        usage = 0.0
        if samples:
            usage = sum(s.usage_percent for s in samples) / len(samples)

        return CpuMetrics(
            usage_percent=usage,
            load_avg_1m=load1,
            load_avg_5m=load5,
            load_avg_15m=load15,
        )
