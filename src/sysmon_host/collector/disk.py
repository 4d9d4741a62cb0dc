"""Block device I/O collector."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Iterable

from .base import DISK_FIELDS, BaseCollector, RawSampler
from .delta import DeltaStore


@dataclass
class DiskUtilization:
    name: str
    rbyte: int = 0
    rtick: int = 0
    wbyte: int = 0
    wtick: int = 0
    iotick: int = 0


@dataclass
class DiskStat:
    time: float
    disks: list[DiskUtilization] = field(default_factory=list)


class DiskCollector(BaseCollector):
    """Collects per-device read/write byte and tick deltas.

    Devices named in *exclude* are dropped before any state is kept for them.
    """

    def __init__(self, sampler: RawSampler, store: DeltaStore, exclude: Iterable[str] = ()) -> None:
        self._sampler = sampler
        self._store = store
        self._exclude = frozenset(exclude)

    @property
    def name(self) -> str:
        return "disk"

    def collect(self) -> DiskStat:
        samples = [s for s in self._sampler.disks() if s.key not in self._exclude]
        # Capture time of the batch, or now when it is empty.
        now = max((s.timestamp for s in samples), default=None) or time.time()
        deltas = self._store.diff_all(self.name, samples)
        return DiskStat(
            time=now,
            disks=[
                DiskUtilization(name=s.key, **{f: d.get(f, 0) for f in DISK_FIELDS})
                for s, d in zip(samples, deltas)
            ],
        )
