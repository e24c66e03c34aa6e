"""Tests for the dynamic collector fan-out."""

import threading
import time

from monify_agent.collector.manager import DynamicCollector
from monify_agent.collector.network import NetworkReport
from monify_agent.errors import CollectionError
from monify_agent.models import (
    CpuMetrics,
    DiskIOMetrics,
    MemoryMetrics,
    NetworkAggregateMetrics,
    NetworkHealthMetrics,
    SwapMetrics,
)

CPU = CpuMetrics(usage_percent=12.5, load_avg_1m=0.1, load_avg_5m=0.2, load_avg_15m=0.3)
MEMORY = MemoryMetrics(total=8, used=4, free=4, available=4, used_percent=50.0, cached=0, buffers=0)
SWAP = SwapMetrics(total=2, used=1, used_percent=50.0)


class FakeSampler:
    """Stands in for a BoundedSampler."""

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.started = 0
        self.stopped = 0

    def start(self):
        self.started += 1
        return True

    def stop(self):
        self.stopped += 1

    def collect(self):
        if self.error is not None:
            raise self.error
        return self.result


def _network():
    return FakeSampler(NetworkReport(
        public=NetworkAggregateMetrics(send_mbps=1.0),
        private=NetworkAggregateMetrics(recv_mbps=2.0),
        health=NetworkHealthMetrics(errors_in=3),
    ))


def _collector(**overrides):
    parts = {
        "cpu": FakeSampler(CPU),
        "memory": FakeSampler(MEMORY),
        "disk_io": FakeSampler(DiskIOMetrics(read_mbps=4.0)),
        "network": _network(),
        "queries": {"swap": lambda: SWAP},
    }
    parts.update(overrides)
    return DynamicCollector(**parts)


# ---------------------------------------------------------------------------
# DynamicCollector
# ---------------------------------------------------------------------------

class TestDynamicCollector:
    """Concurrent collection merged into one snapshot."""

    def test_all_branches_merged(self):
        snapshot = _collector().collect(timeout=5)
        assert snapshot.cpu == CPU
        assert snapshot.memory == MEMORY
        assert snapshot.swap == SWAP
        assert snapshot.disk_io.read_mbps == 4.0
        assert snapshot.network_public.send_mbps == 1.0
        assert snapshot.network_private.recv_mbps == 2.0
        assert snapshot.network_health.errors_in == 3
        assert snapshot.system is None

    def test_failed_branch_left_absent(self):
        collector = _collector(cpu=FakeSampler(error=CollectionError("no loadavg")))
        snapshot = collector.collect(timeout=5)
        assert snapshot.cpu is None
        assert snapshot.memory == MEMORY

    def test_all_branches_failing_never_raises(self):
        def boom():
            raise RuntimeError("unexpected")

        collector = _collector(
            cpu=FakeSampler(error=CollectionError("cpu")),
            memory=FakeSampler(error=OSError("memory")),
            disk_io=FakeSampler(error=RuntimeError("disk")),
            network=FakeSampler(error=CollectionError("network")),
            queries={"swap": boom},
        )
        snapshot = collector.collect(timeout=5)
        assert snapshot.is_empty()

    def test_late_branch_dropped_at_deadline(self):
        release = threading.Event()

        def slow_swap():
            release.wait(5)
            return SWAP

        collector = _collector(queries={"swap": slow_swap})
        try:
            started = time.monotonic()
            snapshot = collector.collect(timeout=0.2)
            elapsed = time.monotonic() - started
        finally:
            release.set()

        assert elapsed < 2
        assert snapshot.swap is None
        assert snapshot.cpu == CPU

    def test_start_and_stop_reach_every_sampler(self):
        collector = _collector()
        collector.start()
        collector.stop()
        for sampler in collector.samplers:
            assert sampler.started == 1
            assert sampler.stopped == 1

    def test_default_queries(self):
        collector = DynamicCollector(
            cpu=FakeSampler(CPU),
            memory=FakeSampler(MEMORY),
            disk_io=FakeSampler(DiskIOMetrics()),
            network=_network(),
        )
        assert set(collector._branches()) == {
            "cpu", "memory", "disk_io", "network", "swap", "disk_space", "system",
        }
