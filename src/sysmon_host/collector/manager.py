"""Collector manager that wires collectors into the command registry."""

from __future__ import annotations

import functools
import logging

from ..config import CollectorConfig
from ..protocol.commands import CollectorCommand, CommandRegistry, register_builtin_commands
from .base import BaseCollector, RawSampler
from .cpu import CpuCollector
from .delta import DeltaStore
from .disk import DiskCollector
from .memory import MemoryCollector
from .network import NetworkCollector

logger = logging.getLogger(__name__)


class CollectorManager:
    """Builds the enabled collectors around one sampler and one delta store.

    Instantiate it with a :class:`CollectorConfig`, then call
    :meth:`build_registry` once before the dispatch loop starts. Every
    collector shares the same :class:`DeltaStore`, which the caller may
    supply to inspect or reset it.
    """

    def __init__(
        self,
        config: CollectorConfig,
        sampler: RawSampler | None = None,
        store: DeltaStore | None = None,
    ) -> None:
        if sampler is None:
            from .sampler import PsutilSampler
            sampler = PsutilSampler()
        self._config = config
        self._sampler = sampler
        self._store = store if store is not None else DeltaStore()
        self._collectors: list[BaseCollector] = []

        if config.cpu:
            self._collectors.append(CpuCollector(sampler, self._store, count_processes=config.count_processes))
        if config.memory:
            self._collectors.append(MemoryCollector(sampler))
        if config.disk:
            self._collectors.append(DiskCollector(sampler, self._store, exclude=config.exclude_disks))
        if config.network:
            self._collectors.append(NetworkCollector(sampler, self._store, exclude=config.exclude_interfaces))

    @property
    def collectors(self) -> list[BaseCollector]:
        return list(self._collectors)

    @property
    def store(self) -> DeltaStore:
        return self._store

    def build_registry(self) -> CommandRegistry:
        """Return a registry holding the built-in commands and every collector."""
        registry = CommandRegistry()
        register_builtin_commands(registry)
        for collector in self._collectors:
            registry.register(collector.name, functools.partial(CollectorCommand, collector))
        logger.info("Registered command types: %s", ", ".join(registry.tags()))
        return registry
