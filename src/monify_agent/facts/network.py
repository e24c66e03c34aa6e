"""Network facts: hostname, addresses and the cached public IP."""

from __future__ import annotations

import ipaddress
import logging
import socket
import threading
import time
from dataclasses import dataclass, field
from typing import Callable

import httpx
import psutil

from ..collector.classifier import is_private_address, parse_address

logger = logging.getLogger(__name__)

PUBLIC_IP_ENDPOINTS = (
    "https://api.ipify.org",
    "https://icanhazip.com",
    "https://ifconfig.me",
)


@dataclass(frozen=True)
class NetworkInfo:
    hostname: str
    fqdn: str
    timezone: str
    public_ip: str
    internal_ips: list[str] = field(default_factory=list)


def internal_ips() -> list[str]:
    """Private (RFC 1918 / ULA) addresses bound to any interface."""
    ips: list[str] = []
    for addrs in psutil.net_if_addrs().values():
        for addr in addrs:
            if addr.family not in (socket.AF_INET, socket.AF_INET6):
                continue
            ip = parse_address(addr.address)
            if ip is None or ip.is_loopback or ip.is_unspecified:
                continue
            if is_private_address(ip):
                ips.append(str(ip))
    return ips


def fqdn(hostname: str) -> str:
    name = socket.getfqdn(hostname)
    return name.rstrip(".") or hostname


def local_timezone() -> str:
    return time.strftime("%Z")


class NetworkInfoCollector:
    """Collects network facts, caching the public IP for *ttl_seconds*.

    The public IP lookup hits external services, so it is refreshed on its
    own shorter schedule, independent of the hourly static refresh.
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        *,
        client: httpx.Client | None = None,
        endpoints: tuple[str, ...] = PUBLIC_IP_ENDPOINTS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._client = client
        self._endpoints = endpoints
        self._clock = clock
        self._lock = threading.Lock()
        self._public_ip = ""
        self._fetched_at: float | None = None

    def collect(self) -> NetworkInfo:
        try:
            hostname = socket.gethostname()
        except OSError:
            hostname = "unknown"
        return NetworkInfo(
            hostname=hostname,
            fqdn=fqdn(hostname),
            timezone=local_timezone(),
            public_ip=self.public_ip(),
            internal_ips=internal_ips(),
        )

    def public_ip(self) -> str:
        """Return the cached public IP, refetching once the TTL has expired."""
        with self._lock:
            if (
                self._public_ip
                and self._fetched_at is not None
                and self._clock() - self._fetched_at < self._ttl
            ):
                return self._public_ip

        ip = self._fetch_public_ip()

        with self._lock:
            self._public_ip = ip
            self._fetched_at = self._clock()
        return ip

    def _fetch_public_ip(self) -> str:
        client = self._client or httpx.Client(timeout=3.0)
        try:
            for endpoint in self._endpoints:
                try:
                    resp = client.get(endpoint)
                    resp.raise_for_status()
                except httpx.HTTPError as exc:
                    logger.debug("Public IP lookup via %s failed: %s", endpoint, exc)
                    continue
                candidate = resp.text.strip()
                try:
                    ipaddress.ip_address(candidate)
                except ValueError:
                    continue
                return candidate
        finally:
            if client is not self._client:
                client.close()
        return ""
