"""psutil-backed raw sampler.

psutil reports CPU times in seconds; they are converted back to clock ticks
(USER_HZ) so the deltas match what the kernel exposes in ``/proc/stat``.
"""

from __future__ import annotations

import logging
import os
import time
from contextlib import contextmanager
from typing import Any, Iterator

import psutil

from ..errors import SamplingFailed
from .base import AGGREGATE_CPU_KEY, CPU_FIELDS, AbsoluteSample, RawSampler

logger = logging.getLogger(__name__)

try:
    CLOCK_TICKS: int = os.sysconf("SC_CLK_TCK")
except (AttributeError, ValueError, OSError):
    CLOCK_TICKS = 100


@contextmanager
def sampling(kind: str) -> Iterator[None]:
    """Translate platform errors raised while sampling *kind* into SamplingFailed."""
    try:
        yield
    except SamplingFailed:
        raise
    except (FileNotFoundError, psutil.NoSuchProcess) as exc:
        raise SamplingFailed(kind, "missing", str(exc)) from exc
    except (PermissionError, psutil.AccessDenied) as exc:
        raise SamplingFailed(kind, "permission", str(exc)) from exc
    except NotImplementedError as exc:
        raise SamplingFailed(kind, "unsupported", str(exc)) from exc
    except (ValueError, TypeError, KeyError, IndexError) as exc:
        raise SamplingFailed(kind, "parse", str(exc)) from exc
    except psutil.Error as exc:
        raise SamplingFailed(kind, "tool", str(exc)) from exc
    except OSError as exc:
        raise SamplingFailed(kind, "missing", str(exc)) from exc


def _ticks(seconds: float) -> int:
    return int(round(seconds * CLOCK_TICKS))


def _cpu_counters(times: Any) -> dict[str, int]:
    # guest/guest_nice/steal/iowait only exist on Linux.
    return {f: _ticks(getattr(times, f, 0.0)) for f in CPU_FIELDS}


class PsutilSampler(RawSampler):
    """Reads absolute counters through psutil."""

    def cpu_times(self) -> list[AbsoluteSample]:
        with sampling("cpu"):
            now = time.time()
            total = psutil.cpu_times()
            per_core = psutil.cpu_times(percpu=True)
            samples = [AbsoluteSample(AGGREGATE_CPU_KEY, _cpu_counters(total), now)]
            samples.extend(
                AbsoluteSample(str(idx), _cpu_counters(core), now)
                for idx, core in enumerate(per_core)
            )
        return samples

    def cpu_clocks(self) -> list[float] | None:
        if not hasattr(psutil, "cpu_freq"):
            return None
        try:
            freqs = psutil.cpu_freq(percpu=True)
        except (psutil.Error, OSError, NotImplementedError, ValueError) as exc:
            # cpufreq is often absent in VMs and containers.
            logger.debug("Core clocks unavailable: %s", exc)
            return None
        if not freqs:
            return None
        return [float(f.current) for f in freqs]

    def process_counts(self) -> tuple[int, int]:
        # Walks the whole process table once per cpu request.
        running = blocked = 0
        with sampling("cpu"):
            for proc in psutil.process_iter(["status"]):
                status = proc.info.get("status")
                if status == psutil.STATUS_RUNNING:
                    running += 1
                elif status == psutil.STATUS_DISK_SLEEP:
                    blocked += 1
        return running, blocked

    def memory(self) -> dict[str, int]:
        with sampling("memory"):
            mem = psutil.virtual_memory()
            return {
                "total": int(mem.total),
                "used": int(mem.used),
                "free": int(mem.free),
                "shared": int(getattr(mem, "shared", 0)),
                "buffers": int(getattr(mem, "buffers", 0)),
                "cache": int(getattr(mem, "cached", 0)),
                "available": int(mem.available),
            }

    def disks(self) -> list[AbsoluteSample]:
        with sampling("disk"):
            now = time.time()
            counters = psutil.disk_io_counters(perdisk=True) or {}
            return [
                AbsoluteSample(
                    name,
                    {
                        "rbyte": int(io.read_bytes),
                        "rtick": int(io.read_time),
                        "wbyte": int(io.write_bytes),
                        "wtick": int(io.write_time),
                        # busy_time is Linux/FreeBSD only.
                        "iotick": int(getattr(io, "busy_time", 0)),
                    },
                    now,
                )
                for name, io in sorted(counters.items())
            ]

    def networks(self) -> list[AbsoluteSample]:
        with sampling("network"):
            now = time.time()
            counters = psutil.net_io_counters(pernic=True) or {}
            return [
                AbsoluteSample(name, {"rx": int(nio.bytes_recv), "tx": int(nio.bytes_sent)}, now)
                for name, nio in sorted(counters.items())
            ]
