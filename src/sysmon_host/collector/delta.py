"""Per-resource state that turns cumulative counters into deltas.

The store keeps the last :class:`AbsoluteSample` seen for every
``(kind, key)`` pair for the lifetime of the process. Each new sample is
compared against the stored one and then replaces it.

The first observation of a key is compared against an all-zero sample, so
the first delta reported for any resource equals its absolute counters.
Consumers should discard or down-weight that first value.

When a counter goes backwards (driver reset, device re-enumerated under the
same name) the outcome depends on the :class:`RegressionPolicy`:

``wrap``
    Unsigned subtraction modulo ``2**counter_bits``. A reset therefore
    reports a huge delta. This matches the legacy host.
``clamp``
    The regressed field reports 0.
``reset``
    The whole sample is treated as a first observation and its absolute
    counters are reported.

Keys that stop being reported are never evicted.
"""

from __future__ import annotations

import enum
import logging
from typing import Iterable, Mapping

from ..errors import ConfigError
from .base import AbsoluteSample

logger = logging.getLogger(__name__)


class RegressionPolicy(str, enum.Enum):
    """How a counter that went backwards is reported."""

    WRAP = "wrap"
    CLAMP = "clamp"
    RESET = "reset"


class DeltaStore:
    """Keyed store of previous absolute samples.

    Owned by the dispatch loop and handed to every collector that reports
    cumulative counters. Not thread-safe; the host is single-threaded.
    """

    def __init__(
        self,
        policy: RegressionPolicy | str = RegressionPolicy.WRAP,
        counter_bits: int = 64,
    ) -> None:
        try:
            self._policy = RegressionPolicy(policy)
        except ValueError:
            choices = ", ".join(p.value for p in RegressionPolicy)
            raise ConfigError(f"Unknown regression policy {policy!r} (expected one of: {choices})") from None
        if counter_bits <= 0:
            raise ConfigError(f"counter_bits must be positive, got {counter_bits}")
        self._modulus = 1 << counter_bits
        self._previous: dict[tuple[str, str], AbsoluteSample] = {}

    @property
    def policy(self) -> RegressionPolicy:
        return self._policy

    def get(self, kind: str, key: str) -> AbsoluteSample | None:
        """Return the last sample stored for *key*, if any."""
        return self._previous.get((kind, key))

    def keys(self, kind: str) -> list[str]:
        return [key for (k, key) in self._previous if k == kind]

    def reset(self) -> None:
        """Forget every stored sample."""
        self._previous.clear()

    def __len__(self) -> int:
        return len(self._previous)

    def __contains__(self, item: object) -> bool:
        return item in self._previous

    def diff(self, kind: str, sample: AbsoluteSample) -> dict[str, int]:
        """Return ``sample - previous`` for every counter and store *sample*."""
        previous = self._previous.get((kind, sample.key))
        self._previous[(kind, sample.key)] = sample
        if previous is None:
            return self._subtract(sample.counters, {})

        delta, regressed = self._subtract_checked(sample.counters, previous.counters)
        if regressed:
            logger.info(
                "Counter regression on %s/%s (%s); policy=%s",
                kind,
                sample.key,
                ", ".join(regressed),
                self._policy.value,
            )
            if self._policy is RegressionPolicy.RESET:
                return self._subtract(sample.counters, {})
        return delta

    def diff_all(self, kind: str, samples: Iterable[AbsoluteSample]) -> list[dict[str, int]]:
        """Apply :meth:`diff` to every sample of an already complete batch."""
        return [self.diff(kind, sample) for sample in samples]

    def _subtract(self, current: Mapping[str, int], previous: Mapping[str, int]) -> dict[str, int]:
        delta, _ = self._subtract_checked(current, previous)
        return delta

    def _subtract_checked(
        self, current: Mapping[str, int], previous: Mapping[str, int]
    ) -> tuple[dict[str, int], list[str]]:
        delta: dict[str, int] = {}
        regressed: list[str] = []
        for field, value in current.items():
            base = previous.get(field, 0)
            if value >= base:
                delta[field] = (value - base) % self._modulus
                continue
            regressed.append(field)
            if self._policy is RegressionPolicy.CLAMP:
                delta[field] = 0
            else:
                delta[field] = (value - base) % self._modulus
        return delta, regressed
