"""Network resource collector."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Iterable

from .base import NETWORK_FIELDS, BaseCollector, RawSampler
from .delta import DeltaStore


@dataclass
class NetworkUtilization:
    name: str
    rx: int = 0
    tx: int = 0


@dataclass
class NetworkStat:
    time: float
    networks: list[NetworkUtilization] = field(default_factory=list)


class NetworkCollector(BaseCollector):
    """Collects per-interface received/transmitted byte deltas."""

    def __init__(self, sampler: RawSampler, store: DeltaStore, exclude: Iterable[str] = ()) -> None:
        self._sampler = sampler
        self._store = store
        self._exclude = frozenset(exclude)

    @property
    def name(self) -> str:
        return "network"

    def collect(self) -> NetworkStat:
        samples = [s for s in self._sampler.networks() if s.key not in self._exclude]
        # Capture time of the batch, or now when it is empty.
        now = max((s.timestamp for s in samples), default=None) or time.time()
        deltas = self._store.diff_all(self.name, samples)
        return NetworkStat(
            time=now,
            networks=[
                NetworkUtilization(name=s.key, **{f: d.get(f, 0) for f in NETWORK_FIELDS})
                for s, d in zip(samples, deltas)
            ],
        )
