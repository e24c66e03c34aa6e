"""Background samplers, reducers and the dynamic collector."""

from .base import BoundedSampler, SamplerState
from .cpu import CpuSampler
from .disk_io import DiskIOSampler
from .manager import DynamicCollector
from .memory import MemorySampler
from .network import NetworkSampler

__all__ = [
    "BoundedSampler",
    "CpuSampler",
    "DiskIOSampler",
    "DynamicCollector",
    "MemorySampler",
    "NetworkSampler",
    "SamplerState",
]
