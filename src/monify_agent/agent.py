"""Agent control loop: periodic collect-and-send with auth-failure shutdown."""

from __future__ import annotations

import enum
import logging
import socket
import subprocess
import threading
import time
from datetime import datetime, timezone
from typing import Callable

from . import __version__
from .collector.manager import DynamicCollector
from .config import AgentConfig
from .errors import AuthenticationError, MonifyError, SendError
from .facts.manager import StaticCollector
from .models import AgentStatus, MetricPayload, ServerCommand, StaticMetrics
from .sender import Sender, create_sender

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_AUTH_FAILED = 3

UNINSTALL_COMMAND = "uninstall"


class AgentState(enum.Enum):
    NOT_STARTED = "not-started"
    RUNNING = "running"
    AUTH_FAILED = "auth-failed"
    STOPPED = "stopped"


class Agent:
    """Runs the collect-and-send cycle on a fixed interval.

    :meth:`run` blocks in the caller's thread until :meth:`stop` is called or
    the collector rejects the token, and returns the process exit code.
    Each cycle shares one deadline between collection and transmission; a
    cycle that fails is counted and the next tick proceeds as usual. Missed
    ticks are skipped, never backfilled.
    """

    def __init__(
        self,
        config: AgentConfig,
        *,
        sender: Sender | None = None,
        static_collector: StaticCollector | None = None,
        dynamic_collector: DynamicCollector | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._sender = sender or create_sender(config)
        self._static = static_collector or StaticCollector(config.collection)
        self._dynamic = dynamic_collector or DynamicCollector(config.sampler)
        self._clock = clock

        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._state = AgentState.NOT_STARTED
        self._sender_closed = False
        self._hostname = _local_hostname()
        self._pending_static: StaticMetrics | None = None
        self._started_at: float | None = None
        self._last_collection: datetime | None = None
        self._last_send: datetime | None = None
        self._metrics_count = 0
        self._error_count = 0

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> AgentState:
        with self._lock:
            return self._state

    @property
    def hostname(self) -> str:
        with self._lock:
            return self._hostname

    def get_status(self) -> AgentStatus:
        with self._lock:
            uptime = 0
            if self._started_at is not None:
                uptime = int(self._clock() - self._started_at)
            return AgentStatus(
                hostname=self._hostname,
                version=__version__,
                uptime=uptime,
                last_collection=self._last_collection,
                last_send=self._last_send,
                metrics_count=self._metrics_count,
                error_count=self._error_count,
                status=self._state.value,
            )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        """Run until stopped. Returns :data:`EXIT_AUTH_FAILED` after a 401."""
        with self._lock:
            if self._state is not AgentState.NOT_STARTED:
                raise MonifyError(f"agent cannot start from state {self._state.value}")
            self._state = AgentState.RUNNING
            self._started_at = self._clock()

        interval = self._config.collection.interval_seconds
        logger.info("Agent %s starting (mode=%s, interval=%.0fs)",
                    __version__, self._config.mode, interval)
        self._dynamic.start()
        try:
            initial = self._static.collect(timeout=self._config.collection.cycle_timeout_seconds)
            self._remember_hostname(initial)
            # the first payload carries the startup snapshot
            self._pending_static = initial
            logger.info("Agent running on %s", self.hostname)

            next_tick = self._clock()
            self.collect_and_send()
            while True:
                next_tick += interval
                now = self._clock()
                while next_tick <= now:
                    next_tick += interval
                if self._stop_event.wait(next_tick - now):
                    break
                self.collect_and_send()
        finally:
            self._shutdown()

        if self.state is AgentState.AUTH_FAILED:
            return EXIT_AUTH_FAILED
        return EXIT_OK

    def stop(self) -> None:
        """Ask :meth:`run` to return at the next wake-up. Safe from signal handlers."""
        self._stop_event.set()

    def _shutdown(self) -> None:
        with self._lock:
            if self._state is AgentState.RUNNING:
                self._state = AgentState.STOPPED
        self._dynamic.stop()
        self._close_sender()
        logger.info("Agent stopped (state=%s)", self.state.value)

    def _close_sender(self) -> None:
        with self._lock:
            if self._sender_closed:
                return
            self._sender_closed = True
        self._sender.close()

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    def _remember_hostname(self, static: StaticMetrics | None) -> None:
        if static is not None and static.hostname:
            with self._lock:
                self._hostname = static.hostname

    def collect_and_send(self) -> bool:
        """Run one cycle. Returns True when the payload was delivered."""
        deadline = self._clock() + self._config.collection.cycle_timeout_seconds

        static_info, self._pending_static = self._pending_static, None
        if self._static.should_refresh():
            try:
                static_info = self._static.collect(timeout=max(deadline - self._clock(), 0.0))
            except MonifyError as exc:
                logger.error("Static facts refresh failed: %s", exc)
            else:
                self._remember_hostname(static_info)
                logger.debug("Static facts refreshed")

        try:
            metrics = self._dynamic.collect(timeout=max(deadline - self._clock(), 0.0))
        except MonifyError as exc:
            logger.error("Metric collection failed: %s", exc)
            self._count_error()
            return False
        if metrics.is_empty():
            logger.warning("Dynamic snapshot is empty; sending it anyway")
        with self._lock:
            self._last_collection = datetime.now(timezone.utc)

        remaining = deadline - self._clock()
        if remaining <= 0:
            logger.error("Cycle deadline passed before the payload could be sent")
            self._count_error()
            return False

        payload = MetricPayload(hostname=self.hostname, metrics=metrics, static_info=static_info)
        try:
            response = self._sender.send(payload, timeout=remaining)
        except AuthenticationError as exc:
            self._handle_auth_failure(exc)
            return False
        except SendError as exc:
            logger.error("Failed to send metrics: %s", exc)
            self._count_error()
            return False

        with self._lock:
            self._last_send = datetime.now(timezone.utc)
            self._metrics_count += 1
        logger.debug("Metrics sent (status=%s)", response.status)
        if response.message:
            logger.info("Server: %s", response.message)
        self._process_commands(response.commands)
        return True

    def _count_error(self) -> None:
        with self._lock:
            self._error_count += 1

    def _handle_auth_failure(self, exc: AuthenticationError) -> None:
        with self._lock:
            self._state = AgentState.AUTH_FAILED
        logger.error("%s", exc)
        logger.error("The agent token was rejected. Set a new one with 'sudo monify login' "
                     "and restart the service.")
        self._stop_event.set()
        self._dynamic.stop()
        self._close_sender()

    # ------------------------------------------------------------------
    # Server commands
    # ------------------------------------------------------------------

    def _process_commands(self, commands: list[ServerCommand]) -> None:
        for command in commands:
            if command.command == UNINSTALL_COMMAND:
                delay = self._config.commands.uninstall_delay_seconds
                logger.warning("Uninstall requested by the server; running in %.0fs", delay)
                timer = threading.Timer(delay, self._run_uninstall)
                timer.daemon = True
                timer.start()
            else:
                logger.debug("Ignoring unknown server command %r", command.command)

    def _run_uninstall(self) -> None:
        cmd = self._config.commands.uninstall_command
        try:
            subprocess.Popen(cmd, shell=True, start_new_session=True)  # noqa: S602
        except OSError as exc:
            logger.error("Failed to launch uninstall command: %s", exc)


def _local_hostname() -> str:
    try:
        return socket.gethostname()
    except OSError:
        return "unknown"
