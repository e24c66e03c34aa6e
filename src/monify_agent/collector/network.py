"""Network I/O sampler with public/private bandwidth split."""

from __future__ import annotations

import time
from dataclasses import dataclass, field

import psutil

from ..models import NetworkAggregateMetrics, NetworkHealthMetrics
from .base import BoundedSampler
from .classifier import PRIVATE, PUBLIC, InterfaceClassifier
from .rates import BITS_PER_MEGABIT, BYTES_PER_GB, mean_pair_rates


@dataclass(frozen=True)
class InterfaceCounters:
    bytes_sent: int
    bytes_recv: int
    errors_in: int = 0
    errors_out: int = 0
    drops_in: int = 0
    drops_out: int = 0


@dataclass(frozen=True)
class NetworkSample:
    timestamp: float
    interfaces: dict[str, InterfaceCounters] = field(default_factory=dict)


@dataclass(frozen=True)
class NetworkReport:
    """Everything the network sampler reports for one cycle."""

    public: NetworkAggregateMetrics
    private: NetworkAggregateMetrics
    health: NetworkHealthMetrics


def reduce_bandwidth(samples: list[NetworkSample], names: set[str]) -> NetworkAggregateMetrics:
    """Bandwidth for the interfaces in *names* over a drained batch.

    Cumulative totals come from the most recent sample; rates are averaged
    pairwise and are zero with fewer than two samples.
    """
    if not samples:
        return NetworkAggregateMetrics()

    latest = samples[-1]
    total_sent = sum(c.bytes_sent for n, c in latest.interfaces.items() if n in names)
    total_recv = sum(c.bytes_recv for n, c in latest.interfaces.items() if n in names)

    def counters(sample: NetworkSample) -> dict[str, tuple[int, int]]:
        return {n: (c.bytes_sent, c.bytes_recv) for n, c in sample.interfaces.items() if n in names}

    sent_bps, recv_bps = mean_pair_rates(samples, counters, 2)
    return NetworkAggregateMetrics(
        send_mbps=sent_bps * 8 / BITS_PER_MEGABIT,
        recv_mbps=recv_bps * 8 / BITS_PER_MEGABIT,
        total_sent_gb=total_sent / BYTES_PER_GB,
        total_recv_gb=total_recv / BYTES_PER_GB,
    )


def reduce_health(sample: NetworkSample | None) -> NetworkHealthMetrics:
    """Error and drop totals summed over every interface, whatever its type."""
    if sample is None:
        return NetworkHealthMetrics()
    counters = sample.interfaces.values()
    return NetworkHealthMetrics(
        errors_in=sum(c.errors_in for c in counters),
        errors_out=sum(c.errors_out for c in counters),
        drops_in=sum(c.drops_in for c in counters),
        drops_out=sum(c.drops_out for c in counters),
    )


class NetworkSampler(BoundedSampler[NetworkSample, NetworkReport]):
    """Samples per-interface counters and splits bandwidth by interface type.

    Interfaces are classified by :class:`InterfaceClassifier` the first time
    they appear in a measurement.
    """

    def __init__(self, *args, classifier: InterfaceClassifier | None = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._classifier = classifier or InterfaceClassifier()
        self._latest: NetworkSample | None = None

    @property
    def name(self) -> str:
        return "network"

    @property
    def classifier(self) -> InterfaceClassifier:
        return self._classifier

    def measure(self) -> NetworkSample:
        counters = psutil.net_io_counters(pernic=True)
        return NetworkSample(
            timestamp=time.time(),
            interfaces={
                name: InterfaceCounters(
                    bytes_sent=nio.bytes_sent,
                    bytes_recv=nio.bytes_recv,
                    errors_in=nio.errin,
                    errors_out=nio.errout,
                    drops_in=nio.dropin,
                    drops_out=nio.dropout,
                )
                for name, nio in counters.items()
            },
        )

    def record(self, sample: NetworkSample) -> None:
        for name in sample.interfaces:
            self._classifier.classify(name)
        with self._lock:
            self._samples.append(sample)
            self._latest = sample

    def _names_of_type(self, kind: str) -> set[str]:
        return {name for name, label in self._classifier.snapshot().items() if label == kind}

    def collect_by_type(self, kind: str) -> NetworkAggregateMetrics:
        """Drain the buffer and report bandwidth for interfaces of *kind*.

        Each call drains the shared buffer, so a second call in the same
        cycle sees no samples. Use :meth:`collect` to get both types from
        one drain.
        """
        if kind not in (PUBLIC, PRIVATE):
            raise ValueError(f"unknown interface type: {kind!r}")
        return reduce_bandwidth(self.drain(), self._names_of_type(kind))

    def collect_public(self) -> NetworkAggregateMetrics:
        return self.collect_by_type(PUBLIC)

    def collect_private(self) -> NetworkAggregateMetrics:
        return self.collect_by_type(PRIVATE)

    def collect_health(self) -> NetworkHealthMetrics:
        """Health counters from the latest sample observed; does not drain."""
        with self._lock:
            latest = self._latest
        return reduce_health(latest)

    def collect(self) -> NetworkReport:
        """Drain once and compute public, private and health from that batch."""
        samples = self.drain()
        labels = self._classifier.snapshot()
        public = {n for n, label in labels.items() if label == PUBLIC}
        private = {n for n, label in labels.items() if label == PRIVATE}
        return NetworkReport(
            public=reduce_bandwidth(samples, public),
            private=reduce_bandwidth(samples, private),
            health=self.collect_health(),
        )
