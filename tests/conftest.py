"""Shared fixtures: a scripted raw sampler and a fresh delta store."""

from __future__ import annotations

import pytest

from sysmon_host.collector.base import AbsoluteSample, RawSampler
from sysmon_host.collector.delta import DeltaStore
from sysmon_host.errors import SamplingFailed

CAPTURE_TIME = 1_700_000_000.0


class ScriptedSampler(RawSampler):
    """RawSampler whose counters are set directly by the test.

    Assign to ``failures[<method name>]`` to make that method raise.
    """

    def __init__(self) -> None:
        self.cpu: dict[str, dict[str, int]] = {
            "all": {"user": 100, "idle": 500},
            "0": {"user": 60, "idle": 240},
            "1": {"user": 40, "idle": 260},
        }
        self.clocks: list[float] | None = [2400.0, 2600.0]
        self.procs: tuple[int, int] = (3, 1)
        self.mem: dict[str, int] = {
            "total": 8000,
            "used": 3000,
            "free": 1000,
            "shared": 100,
            "buffers": 200,
            "cache": 3800,
            "available": 4500,
        }
        self.disk: dict[str, dict[str, int]] = {}
        self.net: dict[str, dict[str, int]] = {}
        self.failures: dict[str, SamplingFailed] = {}
        self.calls: list[str] = []

    def _check(self, method: str) -> None:
        self.calls.append(method)
        if method in self.failures:
            raise self.failures[method]

    @staticmethod
    def _samples(table: dict[str, dict[str, int]]) -> list[AbsoluteSample]:
        return [AbsoluteSample(key, dict(counters), CAPTURE_TIME) for key, counters in table.items()]

    def cpu_times(self) -> list[AbsoluteSample]:
        self._check("cpu_times")
        return self._samples(self.cpu)

    def cpu_clocks(self) -> list[float] | None:
        self._check("cpu_clocks")
        return None if self.clocks is None else list(self.clocks)

    def process_counts(self) -> tuple[int, int]:
        self._check("process_counts")
        return self.procs

    def memory(self) -> dict[str, int]:
        self._check("memory")
        return dict(self.mem)

    def disks(self) -> list[AbsoluteSample]:
        self._check("disks")
        return self._samples(self.disk)

    def networks(self) -> list[AbsoluteSample]:
        self._check("networks")
        return self._samples(self.net)


@pytest.fixture
def sampler() -> ScriptedSampler:
    return ScriptedSampler()


@pytest.fixture
def store() -> DeltaStore:
    return DeltaStore()
