"""Sticky public/private classification of network interfaces."""

from __future__ import annotations

import ipaddress
import logging
import socket
import threading
from typing import Callable

import psutil

logger = logging.getLogger(__name__)

PUBLIC = "public"
PRIVATE = "private"

PRIVATE_NETWORKS = tuple(
    ipaddress.ip_network(block)
    for block in ("10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16", "fd00::/8")
)

AddressLookup = Callable[[str], list[str]]


def is_private_address(address: ipaddress.IPv4Address | ipaddress.IPv6Address) -> bool:
    """True for RFC 1918 IPv4 and fd00::/8 unique-local IPv6 addresses."""
    return any(address.version == net.version and address in net for net in PRIVATE_NETWORKS)


def parse_address(raw: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    """Parse a plain or CIDR address string, ignoring an IPv6 zone suffix."""
    text = raw.split("/", 1)[0].split("%", 1)[0].strip()
    try:
        return ipaddress.ip_address(text)
    except ValueError:
        return None


def interface_addresses(name: str) -> list[str]:
    """Return the IPv4/IPv6 addresses bound to interface *name*."""
    addrs = psutil.net_if_addrs().get(name)
    if addrs is None:
        raise LookupError(f"no such interface: {name}")
    return [a.address for a in addrs if a.family in (socket.AF_INET, socket.AF_INET6)]


def classify_addresses(addresses: list[str]) -> str:
    """Classify by the first usable address; no usable address means private."""
    for raw in addresses:
        address = parse_address(raw)
        if address is None or address.is_loopback or address.is_unspecified:
            continue
        return PRIVATE if is_private_address(address) else PUBLIC
    return PRIVATE


class InterfaceClassifier:
    """Labels each interface once, on first sight, and never revisits it."""

    def __init__(self, lookup: AddressLookup | None = None) -> None:
        self._lookup = lookup or interface_addresses
        self._lock = threading.Lock()
        self._cache: dict[str, str] = {}

    def classify(self, name: str) -> str:
        with self._lock:
            cached = self._cache.get(name)
            if cached is not None:
                return cached
            try:
                label = classify_addresses(self._lookup(name))
            except (LookupError, OSError, psutil.Error) as exc:
                logger.debug("Address lookup for %s failed: %s", name, exc)
                label = PRIVATE
            self._cache[name] = label
            logger.debug("Interface %s classified as %s", name, label)
            return label

    def snapshot(self) -> dict[str, str]:
        """Return a copy of the classification cache."""
        with self._lock:
            return dict(self._cache)
