"""Result records produced by collectors and the payload sent to the server."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def _compact(value: Any) -> Any:
    """Recursively drop ``None`` entries so absent fields are omitted."""
    if isinstance(value, dict):
        return {k: _compact(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [_compact(v) for v in value]
    return value


def to_dict(record: Any) -> dict[str, Any]:
    """Serialize a result record to a plain dictionary without absent fields."""
    return _compact(dataclasses.asdict(record))


# ---------------------------------------------------------------------------
# Dynamic metrics
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CpuMetrics:
    usage_percent: float
    load_avg_1m: float
    load_avg_5m: float
    load_avg_15m: float


@dataclass(frozen=True)
class MemoryMetrics:
    total: int
    used: int
    free: int
    available: int
    used_percent: float
    cached: int
    buffers: int


@dataclass(frozen=True)
class SwapMetrics:
    total: int
    used: int
    used_percent: float


@dataclass(frozen=True)
class DiskSpaceMetrics:
    """Disk space summed over all real partitions."""

    total: int
    used: int
    free: int
    used_percent: float


@dataclass(frozen=True)
class DiskIOMetrics:
    """Aggregate disk throughput across all devices."""

    read_mbps: float = 0.0
    write_mbps: float = 0.0
    read_iops: float = 0.0
    write_iops: float = 0.0


@dataclass(frozen=True)
class NetworkAggregateMetrics:
    """Bandwidth for one interface class (public or private)."""

    send_mbps: float = 0.0
    recv_mbps: float = 0.0
    total_sent_gb: float = 0.0
    total_recv_gb: float = 0.0


@dataclass(frozen=True)
class NetworkHealthMetrics:
    errors_in: int = 0
    errors_out: int = 0
    drops_in: int = 0
    drops_out: int = 0


@dataclass(frozen=True)
class SystemMetrics:
    uptime: int
    boot_time: int
    process_count: int


@dataclass(frozen=True)
class DynamicMetrics:
    """Frequently-changing metrics for one cycle.

    Every field is optional: a sub-collection that failed or did not finish
    before the cycle deadline is simply left as ``None``.
    """

    cpu: CpuMetrics | None = None
    memory: MemoryMetrics | None = None
    swap: SwapMetrics | None = None
    disk_space: DiskSpaceMetrics | None = None
    disk_io: DiskIOMetrics | None = None
    network_public: NetworkAggregateMetrics | None = None
    network_private: NetworkAggregateMetrics | None = None
    network_health: NetworkHealthMetrics | None = None
    system: SystemMetrics | None = None

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in dataclasses.fields(self))


# ---------------------------------------------------------------------------
# Static facts
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DiskInventory:
    device: str
    mount: str
    fstype: str
    total: int
    inodes_total: int = 0


@dataclass(frozen=True)
class StaticMetrics:
    """Rarely-changing host facts, refreshed about once an hour."""

    # system
    platform: str | None = None
    platform_family: str | None = None
    platform_version: str | None = None
    os: str | None = None
    arch: str | None = None
    kernel_version: str | None = None
    kernel_arch: str | None = None
    virtualization: str | None = None
    host_id: str | None = None
    # network
    internal_ips: list[str] | None = None
    public_ip: str | None = None
    hostname: str | None = None
    fqdn: str | None = None
    timezone: str | None = None
    # hardware
    cpu_model: str | None = None
    cpu_cores: int | None = None
    cpu_threads: int | None = None
    total_memory: int | None = None
    # cloud
    region: str | None = None
    instance_type: str | None = None
    # inventory
    disks: list[DiskInventory] | None = None


# ---------------------------------------------------------------------------
# Wire payload and server response
# ---------------------------------------------------------------------------

@dataclass
class MetricPayload:
    hostname: str
    metrics: DynamicMetrics
    static_info: StaticMetrics | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "hostname": self.hostname,
            "timestamp": self.timestamp.isoformat(),
            "metrics": to_dict(self.metrics),
        }
        if self.static_info is not None:
            data["static_info"] = to_dict(self.static_info)
        return data


@dataclass
class ServerCommand:
    command: str
    params: dict[str, Any] = field(default_factory=dict)


@dataclass
class ServerResponse:
    status: str = "success"
    message: str = ""
    commands: list[ServerCommand] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ServerResponse:
        """Build a response from decoded JSON; malformed entries are dropped."""
        raw_commands = data.get("commands")
        if not isinstance(raw_commands, list):
            raw_commands = []
        commands = []
        for raw in raw_commands:
            if not isinstance(raw, dict) or not raw.get("command"):
                continue
            params = raw.get("params")
            commands.append(ServerCommand(
                command=str(raw["command"]),
                params=dict(params) if isinstance(params, dict) else {},
            ))
        return cls(
            status=str(data.get("status") or "success"),
            message=str(data.get("message") or ""),
            commands=commands,
        )


@dataclass
class AgentStatus:
    hostname: str
    version: str
    uptime: int
    last_collection: datetime | None
    last_send: datetime | None
    metrics_count: int
    error_count: int
    status: str
