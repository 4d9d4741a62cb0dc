"""CPU resource collector."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..errors import SamplingFailed
from .base import AGGREGATE_CPU_KEY, CPU_FIELDS, BaseCollector, RawSampler
from .delta import DeltaStore

logger = logging.getLogger(__name__)


@dataclass
class CpuUtilization:
    """Tick deltas of one CPU since the previous request.

    *clock* is a gauge in kHz and is None when per-core clocks are not
    known for every core.
    """

    name: str
    user: int = 0
    nice: int = 0
    system: int = 0
    idle: int = 0
    iowait: int = 0
    irq: int = 0
    softirq: int = 0
    steal: int = 0
    guest: int = 0
    guest_nice: int = 0
    clock: int | None = None


@dataclass
class CpuStat:
    time: float
    all: CpuUtilization
    cores: list[CpuUtilization] = field(default_factory=list)
    running: int = 0
    blocked: int = 0


def _utilization(name: str, delta: dict[str, int]) -> CpuUtilization:
    return CpuUtilization(name=name, **{f: delta.get(f, 0) for f in CPU_FIELDS})


class CpuCollector(BaseCollector):
    """Collects CPU tick deltas, clock speed and run queue figures.

    The aggregate CPU is diffed under its own key rather than summed from
    the cores. Counting running and blocked processes walks the process
    table; with *count_processes* off both figures are reported as 0.
    """

    def __init__(self, sampler: RawSampler, store: DeltaStore, count_processes: bool = True) -> None:
        self._sampler = sampler
        self._store = store
        self._count_processes = count_processes

    @property
    def name(self) -> str:
        return "cpu"

    def collect(self) -> CpuStat:
        samples = self._sampler.cpu_times()
        clocks = self._sampler.cpu_clocks()
        running = blocked = 0
        if self._count_processes:
            running, blocked = self._sampler.process_counts()

        aggregate = [s for s in samples if s.key == AGGREGATE_CPU_KEY]
        cores = [s for s in samples if s.key != AGGREGATE_CPU_KEY]
        if len(aggregate) != 1:
            raise SamplingFailed(self.name, "parse", f"expected one aggregate CPU sample, got {len(aggregate)}")

        stat = CpuStat(
            time=aggregate[0].timestamp,
            all=_utilization(AGGREGATE_CPU_KEY, self._store.diff(self.name, aggregate[0])),
            cores=[_utilization(s.key, d) for s, d in zip(cores, self._store.diff_all(self.name, cores))],
            running=running,
            blocked=blocked,
        )
        self._apply_clocks(stat, clocks)
        return stat

    def _apply_clocks(self, stat: CpuStat, clocks: list[float] | None) -> None:
        if not clocks or len(clocks) != len(stat.cores):
            if clocks:
                logger.debug("Got %d core clocks for %d cores; clock unavailable", len(clocks), len(stat.cores))
            return
        khz = [int(round(mhz * 1000)) for mhz in clocks]
        for core, clock in zip(stat.cores, khz):
            core.clock = clock
        stat.all.clock = sum(khz) // len(khz)
