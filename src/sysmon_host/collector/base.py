"""Base interfaces for raw samplers and resource collectors."""

from __future__ import annotations

import abc
from dataclasses import asdict, dataclass, is_dataclass
from datetime import datetime
from typing import Any

AGGREGATE_CPU_KEY = "all"

CPU_FIELDS = (
    "user",
    "nice",
    "system",
    "idle",
    "iowait",
    "irq",
    "softirq",
    "steal",
    "guest",
    "guest_nice",
)
MEMORY_FIELDS = ("total", "used", "free", "shared", "buffers", "cache", "available")
DISK_FIELDS = ("rbyte", "rtick", "wbyte", "wtick", "iotick")
NETWORK_FIELDS = ("rx", "tx")


@dataclass
class AbsoluteSample:
    """Cumulative counters of one resource captured at *timestamp*."""

    key: str
    counters: dict[str, int]
    timestamp: float


def format_time(timestamp: float) -> str:
    """Render a capture time as ISO-8601 with the local UTC offset."""
    return datetime.fromtimestamp(timestamp).astimezone().isoformat()


class RawSampler(abc.ABC):
    """Source of absolute counters and gauges for every resource kind.

    Implementations raise :class:`~sysmon_host.errors.SamplingFailed` when
    a resource cannot be enumerated or read.
    """

    @abc.abstractmethod
    def cpu_times(self) -> list[AbsoluteSample]:
        """Tick counters for the aggregate CPU (key ``"all"``) and each core."""

    @abc.abstractmethod
    def cpu_clocks(self) -> list[float] | None:
        """Current clock of each core in MHz, or None when not available."""

    @abc.abstractmethod
    def process_counts(self) -> tuple[int, int]:
        """Number of running and blocked processes."""

    @abc.abstractmethod
    def memory(self) -> dict[str, int]:
        """Live memory gauges in bytes, keyed by :data:`MEMORY_FIELDS`."""

    @abc.abstractmethod
    def disks(self) -> list[AbsoluteSample]:
        """Byte and tick counters for each block device."""

    @abc.abstractmethod
    def networks(self) -> list[AbsoluteSample]:
        """Received and transmitted byte counters for each interface."""


class BaseCollector(abc.ABC):
    """Abstract base class for system resource collectors."""

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Resource kind, also the command type tag it answers to."""

    @abc.abstractmethod
    def collect(self) -> Any:
        """Sample the resource and return a stat dataclass."""

    def to_dict(self, stat: Any) -> dict[str, Any]:
        """Serialize a stat dataclass, rendering its ``time`` as a string."""
        if not is_dataclass(stat):
            raise TypeError(f"{self.name} collector returned {type(stat).__name__}, not a dataclass")
        data = asdict(stat)
        if "time" in data:
            data["time"] = format_time(data["time"])
        return data
