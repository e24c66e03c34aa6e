"""Dynamic collector that fans out to every sampler and instant query."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any, Callable, Mapping

import psutil

from ..config import SamplerConfig
from ..errors import CollectionError
from ..models import DynamicMetrics
from .base import BoundedSampler
from .cpu import CpuSampler
from .disk_io import DiskIOSampler
from .instant import collect_disk_space, collect_swap, collect_system
from .memory import MemorySampler
from .network import NetworkSampler

logger = logging.getLogger(__name__)

Branch = Callable[[], dict[str, Any]]

DEFAULT_QUERIES: dict[str, Callable[[], Any]] = {
    "swap": collect_swap,
    "disk_space": collect_disk_space,
    "system": collect_system,
}


class DynamicCollector:
    """Owns the four background samplers and merges one snapshot per cycle.

    Every branch (sampler reduction or instant query) runs in its own worker
    and returns a partial result; partials are merged after all branches
    finish or the deadline passes. A failed or late branch leaves its field
    absent, and :meth:`collect` itself never raises.
    """

    def __init__(
        self,
        config: SamplerConfig | None = None,
        *,
        cpu: BoundedSampler | None = None,
        memory: BoundedSampler | None = None,
        disk_io: BoundedSampler | None = None,
        network: NetworkSampler | None = None,
        queries: Mapping[str, Callable[[], Any]] | None = None,
    ) -> None:
        self._config = config or SamplerConfig()
        opts = {
            "interval_seconds": self._config.interval_seconds,
            "capacity": self._config.buffer_capacity,
        }
        self.cpu = CpuSampler(**opts) if cpu is None else cpu
        self.memory = MemorySampler(**opts) if memory is None else memory
        self.disk_io = DiskIOSampler(**opts) if disk_io is None else disk_io
        self.network = NetworkSampler(**opts) if network is None else network
        self._queries = dict(DEFAULT_QUERIES if queries is None else queries)

    @property
    def samplers(self) -> list[BoundedSampler]:
        return [self.cpu, self.memory, self.disk_io, self.network]

    def start(self) -> None:
        """Start background sampling for all samplers."""
        for sampler in self.samplers:
            sampler.start()
        logger.info("Samplers started (interval=%.1fs, capacity=%d)",
                    self._config.interval_seconds, self._config.buffer_capacity)

    def stop(self) -> None:
        """Stop background sampling for all samplers."""
        for sampler in self.samplers:
            sampler.stop()
        logger.info("Samplers stopped")

    def _collect_network(self) -> dict[str, Any]:
        report = self.network.collect()
        return {
            "network_public": report.public,
            "network_private": report.private,
            "network_health": report.health,
        }

    def _branches(self) -> dict[str, Branch]:
        branches: dict[str, Branch] = {
            "cpu": lambda: {"cpu": self.cpu.collect()},
            "memory": lambda: {"memory": self.memory.collect()},
            "disk_io": lambda: {"disk_io": self.disk_io.collect()},
            "network": self._collect_network,
        }
        for field_name, query in self._queries.items():
            branches[field_name] = lambda f=field_name, q=query: {f: q()}
        return branches

    def collect(self, timeout: float | None = None) -> DynamicMetrics:
        """Collect all dynamic metrics concurrently.

        *timeout* bounds the wait for the branches; whatever has not finished
        by then is left out of the snapshot.
        """
        branches = self._branches()
        executor = ThreadPoolExecutor(max_workers=len(branches), thread_name_prefix="dynamic")
        try:
            futures = {executor.submit(fn): name for name, fn in branches.items()}
            done, not_done = wait(futures, timeout=timeout)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        for future in not_done:
            logger.warning("%s collection did not finish before the deadline", futures[future])

        merged: dict[str, Any] = {}
        for future in done:
            name = futures[future]
            try:
                merged.update(future.result())
            except (CollectionError, psutil.Error, OSError) as exc:
                logger.debug("%s collection failed: %s", name, exc)
            except Exception:
                logger.exception("%s collection failed", name)
        return DynamicMetrics(**merged)
