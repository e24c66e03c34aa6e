"""Static collector: gathers host facts in parallel and caches the result."""

from __future__ import annotations

import dataclasses
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any, Callable, Mapping

import psutil

from ..config import CollectionConfig
from ..errors import CollectionError
from ..models import StaticMetrics
from .cloud import detect_cloud_provider
from .disks import collect_disk_inventory
from .hardware import collect_hardware_info
from .network import NetworkInfoCollector
from .system import collect_system_info

logger = logging.getLogger(__name__)

Probe = Callable[[], dict[str, Any]]


def _fields(record: Any) -> dict[str, Any]:
    return dataclasses.asdict(record)


class StaticCollector:
    """Collects rarely-changing host facts.

    Each probe (system, network, hardware, cloud, disks) runs in its own
    worker and returns a partial dictionary; partials are merged into one
    :class:`StaticMetrics`. The last result is cached together with the time
    it was taken so the agent can decide when to refresh.
    """

    def __init__(
        self,
        config: CollectionConfig | None = None,
        *,
        network_info: NetworkInfoCollector | None = None,
        probes: Mapping[str, Probe] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or CollectionConfig()
        self._network_info = network_info or NetworkInfoCollector(
            ttl_seconds=self._config.public_ip_ttl_seconds,
        )
        self._probes = dict(self._default_probes() if probes is None else probes)
        self._clock = clock
        self._lock = threading.Lock()
        self._cached: StaticMetrics | None = None
        self._last_refresh: float | None = None

    def _default_probes(self) -> dict[str, Probe]:
        return {
            "system": lambda: _fields(collect_system_info()),
            "network": lambda: _fields(self._network_info.collect()),
            "hardware": lambda: _fields(collect_hardware_info()),
            "cloud": lambda: _fields(detect_cloud_provider()),
            "disks": lambda: {"disks": collect_disk_inventory()},
        }

    @property
    def cached(self) -> StaticMetrics | None:
        with self._lock:
            return self._cached

    def should_refresh(self) -> bool:
        """True if nothing was collected yet or the cache is older than the refresh interval."""
        with self._lock:
            if self._last_refresh is None:
                return True
            return self._clock() - self._last_refresh >= self._config.static_refresh_seconds

    def collect(self, timeout: float | None = None) -> StaticMetrics:
        executor = ThreadPoolExecutor(max_workers=max(len(self._probes), 1), thread_name_prefix="static")
        try:
            futures = {executor.submit(fn): name for name, fn in self._probes.items()}
            done, not_done = wait(futures, timeout=timeout)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        for future in not_done:
            logger.warning("%s probe did not finish before the deadline", futures[future])

        merged: dict[str, Any] = {}
        for future in done:
            name = futures[future]
            try:
                partial = future.result()
            except (CollectionError, psutil.Error, OSError) as exc:
                logger.debug("%s probe failed: %s", name, exc)
                continue
            except Exception:
                logger.exception("%s probe failed", name)
                continue
            merged.update({k: v for k, v in partial.items() if k in StaticMetrics.__dataclass_fields__})

        result = StaticMetrics(**merged)
        with self._lock:
            self._cached = result
            self._last_refresh = self._clock()
        return result
