"""CPU and memory hardware facts."""

from __future__ import annotations

import platform
from dataclasses import dataclass
from pathlib import Path

import psutil


@dataclass(frozen=True)
class HardwareInfo:
    cpu_model: str
    cpu_cores: int
    cpu_threads: int
    total_memory: int


def cpu_model_name() -> str:
    """Read the CPU model from /proc/cpuinfo, falling back to the platform."""
    try:
        with open(Path("/proc/cpuinfo"), encoding="utf-8") as fh:
            for line in fh:
                key, _, value = line.partition(":")
                if key.strip() in ("model name", "Model", "Hardware"):
                    return value.strip()
    except OSError:
        pass
    return platform.processor()


def collect_hardware_info() -> HardwareInfo:
    return HardwareInfo(
        cpu_model=cpu_model_name(),
        cpu_cores=psutil.cpu_count(logical=False) or 0,
        cpu_threads=psutil.cpu_count(logical=True) or 0,
        total_memory=psutil.virtual_memory().total,
    )
