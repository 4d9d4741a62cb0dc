"""Configuration loading and validation for sysmon_host."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError

DEFAULT_CONFIG_NAME = "sysmon_host.yaml"
DEFAULT_HOST_NAME = "com.github.ihiroky.system_monitor"

ON_ERROR_CHOICES = ("exit", "respond")
REGRESSION_CHOICES = ("wrap", "clamp", "reset")


@dataclass
class HostConfig:
    """Dispatch loop settings."""

    name: str = DEFAULT_HOST_NAME
    on_error: str = "exit"
    max_frame_bytes: int = 1024 * 1024


@dataclass
class DeltaConfig:
    """Counter delta settings."""

    regression_policy: str = "wrap"
    counter_bits: int = 64


@dataclass
class CollectorConfig:
    """System resource collector settings."""

    cpu: bool = True
    memory: bool = True
    disk: bool = True
    network: bool = True
    count_processes: bool = True
    exclude_disks: list[str] = field(default_factory=list)
    exclude_interfaces: list[str] = field(default_factory=list)


@dataclass
class LoggingConfig:
    """Logging settings. Records always go to stderr, never stdout."""

    level: str = "INFO"
    file: str = ""


@dataclass
class SysmonConfig:
    """Top-level sysmon_host configuration."""

    host: HostConfig = field(default_factory=HostConfig)
    delta: DeltaConfig = field(default_factory=DeltaConfig)
    collector: CollectorConfig = field(default_factory=CollectorConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Apply environment variable overrides using SYSMON_HOST_ prefix."""
    env_map = {
        "SYSMON_HOST_ON_ERROR": ("host", "on_error"),
        "SYSMON_HOST_MAX_FRAME_BYTES": ("host", "max_frame_bytes"),
        "SYSMON_HOST_REGRESSION_POLICY": ("delta", "regression_policy"),
        "SYSMON_HOST_LOG_LEVEL": ("logging", "level"),
        "SYSMON_HOST_LOG_FILE": ("logging", "file"),
    }
    for env_key, path in env_map.items():
        value = os.environ.get(env_key)
        if value is not None:
            obj = data
            for part in path[:-1]:
                obj = obj.setdefault(part, {})
            final_key = path[-1]
            if final_key == "max_frame_bytes":
                try:
                    obj[final_key] = int(value)
                except ValueError:
                    raise ConfigError(f"{env_key} must be an integer, got {value!r}") from None
            else:
                obj[final_key] = value
    return data


def _section(cls: type, data: Any) -> Any:
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Section for {cls.__name__} must be a mapping, got {type(data).__name__}")
    return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


def _validate(cfg: SysmonConfig) -> SysmonConfig:
    if cfg.host.on_error not in ON_ERROR_CHOICES:
        raise ConfigError(f"host.on_error must be one of {ON_ERROR_CHOICES}, got {cfg.host.on_error!r}")
    if not isinstance(cfg.host.max_frame_bytes, int) or cfg.host.max_frame_bytes <= 0:
        raise ConfigError(f"host.max_frame_bytes must be a positive integer, got {cfg.host.max_frame_bytes!r}")
    if cfg.delta.regression_policy not in REGRESSION_CHOICES:
        raise ConfigError(
            f"delta.regression_policy must be one of {REGRESSION_CHOICES}, got {cfg.delta.regression_policy!r}"
        )
    if not isinstance(cfg.delta.counter_bits, int) or cfg.delta.counter_bits <= 0:
        raise ConfigError(f"delta.counter_bits must be a positive integer, got {cfg.delta.counter_bits!r}")
    if not isinstance(logging.getLevelName(str(cfg.logging.level).upper()), int):
        raise ConfigError(f"logging.level is not a known level: {cfg.logging.level!r}")
    return cfg


def _dict_to_config(data: dict[str, Any]) -> SysmonConfig:
    """Convert a raw dictionary to a validated SysmonConfig."""
    return _validate(SysmonConfig(
        host=_section(HostConfig, data.get("host")),
        delta=_section(DeltaConfig, data.get("delta")),
        collector=_section(CollectorConfig, data.get("collector")),
        logging=_section(LoggingConfig, data.get("logging")),
    ))


def load_config(path: str | Path | None = None) -> SysmonConfig:
    """Load configuration from a YAML file with environment overrides.

    When *path* is None, ``$SYSMON_HOST_CONFIG`` is used if set, otherwise
    ``sysmon_host.yaml`` in the current directory. A missing file yields the
    defaults.
    """
    data: dict[str, Any] = {}
    if path is None:
        path = Path(os.environ.get("SYSMON_HOST_CONFIG") or DEFAULT_CONFIG_NAME)
    else:
        path = Path(path)

    if path.exists():
        with open(path, encoding="utf-8") as fh:
            try:
                loaded = yaml.safe_load(fh)
            except yaml.YAMLError as exc:
                raise ConfigError(f"Cannot parse {path}: {exc}") from exc
            if isinstance(loaded, dict):
                data = loaded

    data = _apply_env_overrides(data)
    return _dict_to_config(data)
