"""Memory resource collector."""

from __future__ import annotations

import time
from dataclasses import dataclass

from .base import MEMORY_FIELDS, BaseCollector, RawSampler


@dataclass
class MemoryStat:
    """Live memory gauges in bytes."""

    time: float
    total: int = 0
    used: int = 0
    free: int = 0
    shared: int = 0
    buffers: int = 0
    cache: int = 0
    available: int = 0


class MemoryCollector(BaseCollector):
    """Collects memory usage. Values are gauges, so no deltas are taken."""

    def __init__(self, sampler: RawSampler) -> None:
        self._sampler = sampler

    @property
    def name(self) -> str:
        return "memory"

    def collect(self) -> MemoryStat:
        now = time.time()
        gauges = self._sampler.memory()
        return MemoryStat(time=now, **{f: int(gauges.get(f, 0)) for f in MEMORY_FIELDS})
