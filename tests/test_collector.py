"""Tests for the bounded samplers and their reducers."""

import logging
import threading
import time

import psutil
import pytest

from monify_agent.collector import memory as memory_module
from monify_agent.collector.base import BoundedSampler, SamplerState
from monify_agent.collector.cpu import CpuSample, CpuSampler
from monify_agent.collector.disk_io import DeviceCounters, DiskIOSample, reduce_disk_io
from monify_agent.collector.memory import MemorySample, MemorySampler
from monify_agent.collector.rates import BYTES_PER_MB
from monify_agent.errors import CollectionError

MB = BYTES_PER_MB


class CountingSampler(BoundedSampler[int, list]):
    """Sampler whose measurements are consecutive integers."""

    def __init__(self, *args, fail: bool = False, **kwargs):
        super().__init__(*args, **kwargs)
        self._next = 0
        self._fail = fail

    @property
    def name(self):
        return "counting"

    def measure(self):
        if self._fail:
            raise OSError("counter unavailable")
        self._next += 1
        return self._next

    def collect(self):
        return self.drain()


def _disk(ts, **devices):
    return DiskIOSample(
        timestamp=ts,
        devices={name: DeviceCounters(*values) for name, values in devices.items()},
    )


def _mem(total, used, percent, ts=0.0):
    return MemorySample(
        total=total, used=used, free=total - used, available=total - used,
        used_percent=percent, cached=0, buffers=0, timestamp=ts,
    )


# ---------------------------------------------------------------------------
# BoundedSampler
# ---------------------------------------------------------------------------

class TestBoundedSampler:
    """History buffer and lifecycle of the sampler base class."""

    def test_drain_returns_at_most_capacity(self):
        """Only the newest *capacity* samples survive."""
        sampler = CountingSampler(capacity=3)
        for _ in range(5):
            sampler.sample()
        assert len(sampler) == 3
        assert sampler.drain() == [3, 4, 5]

    def test_drain_resets_buffer(self):
        sampler = CountingSampler(capacity=10)
        sampler.sample()
        sampler.sample()
        assert sampler.drain() == [1, 2]
        assert sampler.drain() == []
        assert len(sampler) == 0

    def test_failed_measurement_is_skipped(self):
        """An OS error skips the tick without a placeholder sample."""
        sampler = CountingSampler(fail=True)
        sampler.sample()
        assert len(sampler) == 0

    def test_none_measurement_is_skipped(self):
        class EmptySampler(CountingSampler):
            def measure(self):
                return None

        sampler = EmptySampler()
        sampler.sample()
        assert len(sampler) == 0

    def test_start_is_idempotent(self):
        sampler = CountingSampler(interval_seconds=10)
        assert sampler.state is SamplerState.NOT_STARTED
        assert sampler.start() is True
        try:
            assert sampler.start() is False
            assert sampler.state is SamplerState.RUNNING
        finally:
            sampler.stop()
        assert sampler.state is SamplerState.STOPPED

    def test_stop_is_idempotent(self):
        sampler = CountingSampler(interval_seconds=10)
        sampler.stop()
        assert sampler.state is SamplerState.NOT_STARTED
        sampler.start()
        sampler.stop()
        sampler.stop()
        assert sampler.state is SamplerState.STOPPED

    def test_restart_after_stop(self):
        sampler = CountingSampler(interval_seconds=10)
        sampler.start()
        sampler.stop()
        assert sampler.start() is True
        sampler.stop()

    def test_background_loop_samples(self):
        sampler = CountingSampler(interval_seconds=0.02)
        sampler.start()
        try:
            time.sleep(0.3)
        finally:
            sampler.stop()
        assert len(sampler) > 0
        sampler_threads = [t for t in threading.enumerate() if t.name == "counting-sampler"]
        assert sampler_threads == []

    def test_unexpected_error_does_not_kill_loop(self, caplog):
        """A bug in one tick is logged and the thread keeps sampling."""
        class FlakySampler(CountingSampler):
            def measure(self):
                if self._next == 0:
                    self._next = -1
                    raise RuntimeError("parse error")
                return super().measure()

        sampler = FlakySampler(interval_seconds=0.02)
        with caplog.at_level(logging.ERROR, logger="monify_agent.collector.base"):
            sampler.start()
            try:
                time.sleep(0.3)
                assert sampler.state is SamplerState.RUNNING
                assert len(sampler) > 0
            finally:
                sampler.stop()
        assert "tick failed" in caplog.text

    def test_stop_returns_promptly_when_idle(self):
        """Stopping does not wait for the next tick."""
        sampler = CountingSampler(interval_seconds=30)
        sampler.start()
        started = time.monotonic()
        sampler.stop()
        assert time.monotonic() - started < 5


# ---------------------------------------------------------------------------
# CPU
# ---------------------------------------------------------------------------

class TestCpuSampler:
    """Mean usage plus fresh load averages."""

    def test_mean_of_samples(self, monkeypatch):
        monkeypatch.setattr(psutil, "getloadavg", lambda: (1.0, 2.0, 3.0))
        sampler = CpuSampler()
        sampler.record(CpuSample(usage_percent=10.0, timestamp=1.0))
        sampler.record(CpuSample(usage_percent=30.0, timestamp=2.0))

        result = sampler.collect()
        assert result.usage_percent == pytest.approx(20.0)
        assert (result.load_avg_1m, result.load_avg_5m, result.load_avg_15m) == (1.0, 2.0, 3.0)
        assert len(sampler) == 0

    def test_empty_batch_reports_zero_usage(self, monkeypatch):
        monkeypatch.setattr(psutil, "getloadavg", lambda: (0.5, 0.5, 0.5))
        result = CpuSampler().collect()
        assert result.usage_percent == 0.0
        assert result.load_avg_1m == 0.5

    def test_load_average_failure_is_an_error(self, monkeypatch):
        def broken():
            raise OSError("no loadavg")

        monkeypatch.setattr(psutil, "getloadavg", broken)
        sampler = CpuSampler()
        sampler.record(CpuSample(usage_percent=10.0, timestamp=1.0))
        with pytest.raises(CollectionError):
            sampler.collect()


# ---------------------------------------------------------------------------
# Memory
# ---------------------------------------------------------------------------

class TestMemorySampler:
    """Per-field averages, with a fresh query on an empty batch."""

    def test_mean_truncates_integer_fields(self):
        sampler = MemorySampler()
        sampler.record(_mem(total=3, used=1, percent=10.0))
        sampler.record(_mem(total=4, used=2, percent=20.0))

        result = sampler.collect()
        assert result.total == 3
        assert result.used == 1
        assert result.used_percent == pytest.approx(15.0)

    def test_divides_by_sample_count_not_capacity(self):
        sampler = MemorySampler(capacity=600)
        sampler.record(_mem(total=1000, used=500, percent=50.0))
        result = sampler.collect()
        assert result.total == 1000
        assert result.used_percent == pytest.approx(50.0)

    def test_empty_batch_queries_fresh(self, monkeypatch):
        monkeypatch.setattr(memory_module, "_read_memory", lambda: _mem(total=8, used=2, percent=25.0))
        result = MemorySampler().collect()
        assert result.total == 8
        assert result.used_percent == 25.0

    def test_fresh_query_failure_is_an_error(self, monkeypatch):
        def broken():
            raise OSError("no meminfo")

        monkeypatch.setattr(memory_module, "_read_memory", broken)
        with pytest.raises(CollectionError):
            MemorySampler().collect()


# ---------------------------------------------------------------------------
# Disk I/O
# ---------------------------------------------------------------------------

class TestDiskIOReducer:
    """Mean of per-pair aggregate rates."""

    def test_mean_of_pair_rates(self):
        samples = [
            _disk(0.0, sda=(0, 0, 0, 0)),
            _disk(1.0, sda=(1 * MB, 2 * MB, 10, 20)),
            _disk(3.0, sda=(5 * MB, 2 * MB, 30, 20)),
        ]
        result = reduce_disk_io(samples)
        assert result.read_mbps == pytest.approx(1.5)
        assert result.write_mbps == pytest.approx(1.0)
        assert result.read_iops == pytest.approx(10.0)
        assert result.write_iops == pytest.approx(10.0)

    def test_devices_summed_within_pair(self):
        samples = [
            _disk(0.0, sda=(0, 0, 0, 0), sdb=(0, 0, 0, 0)),
            _disk(1.0, sda=(1 * MB, 0, 1, 0), sdb=(2 * MB, 0, 2, 0)),
        ]
        result = reduce_disk_io(samples)
        assert result.read_mbps == pytest.approx(3.0)
        assert result.read_iops == pytest.approx(3.0)

    def test_fewer_than_two_samples_is_zero(self):
        assert reduce_disk_io([]).read_mbps == 0.0
        single = reduce_disk_io([_disk(0.0, sda=(MB, MB, 1, 1))])
        assert (single.read_mbps, single.write_mbps, single.read_iops, single.write_iops) == (0, 0, 0, 0)

    def test_device_in_one_sample_is_ignored(self):
        samples = [
            _disk(0.0, sda=(0, 0, 0, 0)),
            _disk(1.0, sda=(1 * MB, 0, 0, 0), sdb=(100 * MB, 0, 0, 0)),
        ]
        assert reduce_disk_io(samples).read_mbps == pytest.approx(1.0)

    def test_non_positive_elapsed_pair_skipped(self):
        samples = [
            _disk(1.0, sda=(0, 0, 0, 0)),
            _disk(1.0, sda=(10 * MB, 0, 0, 0)),
        ]
        assert reduce_disk_io(samples).read_mbps == 0.0

    def test_counter_reset_pair_skipped(self):
        samples = [
            _disk(0.0, sda=(100 * MB, 0, 0, 0)),
            _disk(1.0, sda=(50 * MB, 0, 0, 0)),
            _disk(2.0, sda=(51 * MB, 0, 0, 0)),
        ]
        assert reduce_disk_io(samples).read_mbps == pytest.approx(1.0)
