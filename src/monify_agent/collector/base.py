"""Base class for background samplers with a bounded, drainable history."""

from __future__ import annotations

import abc
import enum
import logging
import threading
from collections import deque
from typing import Generic, TypeVar

import psutil

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 1.0
DEFAULT_CAPACITY = 600

S = TypeVar("S")
R = TypeVar("R")


class SamplerState(enum.Enum):
    NOT_STARTED = "not-started"
    RUNNING = "running"
    STOPPED = "stopped"


class BoundedSampler(abc.ABC, Generic[S, R]):
    """Takes one measurement per tick in a daemon thread and keeps the last
    *capacity* samples.

    The buffer holds the samples accumulated since the last :meth:`drain`;
    :meth:`collect` drains it and reduces the batch to a single result.
    Start/stop transitions and buffer access share one lock, so a second
    :meth:`start` while running is a no-op instead of leaking a loop.
    """

    def __init__(
        self,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        capacity: int = DEFAULT_CAPACITY,
    ) -> None:
        self._interval = interval_seconds
        self._capacity = capacity
        self._lock = threading.Lock()
        self._samples: deque[S] = deque(maxlen=capacity)
        self._state = SamplerState.NOT_STARTED
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Sampler name used in logs and thread names."""

    @abc.abstractmethod
    def measure(self) -> S | None:
        """Take one raw OS measurement. Returning None skips the tick."""

    @abc.abstractmethod
    def collect(self) -> R:
        """Drain the buffer and reduce it to a result."""

    @property
    def state(self) -> SamplerState:
        with self._lock:
            return self._state

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        with self._lock:
            return len(self._samples)

    def sample(self) -> None:
        """Take one measurement and append it; failures skip the tick."""
        try:
            measured = self.measure()
        except (psutil.Error, OSError) as exc:
            logger.debug("%s sampler: measurement failed: %s", self.name, exc)
            return
        except Exception:
            logger.exception("%s sampler: tick failed", self.name)
            return
        if measured is not None:
            self.record(measured)

    def record(self, sample: S) -> None:
        """Append *sample*, evicting the oldest one once over capacity."""
        with self._lock:
            self._samples.append(sample)

    def drain(self) -> list[S]:
        """Atomically copy out and clear the buffer."""
        with self._lock:
            batch = list(self._samples)
            self._samples.clear()
        return batch

    def _run(self, stop_event: threading.Event) -> None:
        """Background thread loop."""
        while not stop_event.wait(self._interval):
            self.sample()

    def start(self) -> bool:
        """Start sampling in the background. Returns False if already running."""
        with self._lock:
            if self._state is SamplerState.RUNNING:
                return False
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run,
                args=(self._stop_event,),
                daemon=True,
                name=f"{self.name}-sampler",
            )
            self._state = SamplerState.RUNNING
            self._thread.start()
        logger.debug("%s sampler started (interval=%.1fs, capacity=%d)",
                     self.name, self._interval, self._capacity)
        return True

    def stop(self, timeout: float | None = 5.0) -> None:
        """Stop background sampling. Safe to call repeatedly."""
        with self._lock:
            if self._state is not SamplerState.RUNNING:
                return
            self._state = SamplerState.STOPPED
            self._stop_event.set()
            thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        logger.debug("%s sampler stopped", self.name)
