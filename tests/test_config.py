"""Tests for the configuration module."""

import os
import tempfile

import pytest
import yaml

from sysmon_host.config import SysmonConfig, load_config
from sysmon_host.errors import ConfigError


def _write_yaml(data) -> str:
    with tempfile.NamedTemporaryFile("w", suffix=".yaml", delete=False) as fh:
        yaml.dump(data, fh)
        return fh.name


def test_load_config_defaults():
    """Loading from a non-existent file returns defaults."""
    cfg = load_config("/tmp/nonexistent_sysmon_host.yaml")
    assert isinstance(cfg, SysmonConfig)
    assert cfg.host.name == "com.github.ihiroky.system_monitor"
    assert cfg.host.on_error == "exit"
    assert cfg.host.max_frame_bytes == 1024 * 1024
    assert cfg.delta.regression_policy == "wrap"
    assert cfg.delta.counter_bits == 64
    assert cfg.collector.cpu is True
    assert cfg.collector.disk is True
    assert cfg.collector.exclude_interfaces == []
    assert cfg.collector.count_processes is True
    assert cfg.logging.level == "INFO"


def test_load_config_from_yaml():
    """Loading from a YAML file populates values and ignores unknown keys."""
    path = _write_yaml({
        "host": {"on_error": "respond", "max_frame_bytes": 4096},
        "delta": {"regression_policy": "clamp"},
        "collector": {"network": False, "count_processes": False, "exclude_disks": ["loop0", "loop1"]},
        "logging": {"level": "debug", "file": "/tmp/sysmon.log"},
        "unrelated": {"anything": 1},
    })
    try:
        cfg = load_config(path)
        assert cfg.host.on_error == "respond"
        assert cfg.host.max_frame_bytes == 4096
        assert cfg.delta.regression_policy == "clamp"
        assert cfg.collector.network is False
        assert cfg.collector.count_processes is False
        assert cfg.collector.exclude_disks == ["loop0", "loop1"]
        assert cfg.logging.level == "debug"
    finally:
        os.unlink(path)


def test_empty_yaml_yields_defaults():
    with tempfile.NamedTemporaryFile("w", suffix=".yaml", delete=False) as fh:
        path = fh.name
    try:
        assert load_config(path) == SysmonConfig()
    finally:
        os.unlink(path)


def test_env_override():
    """Environment variables override YAML values."""
    path = _write_yaml({"host": {"on_error": "exit"}})
    try:
        os.environ["SYSMON_HOST_ON_ERROR"] = "respond"
        os.environ["SYSMON_HOST_MAX_FRAME_BYTES"] = "2048"
        os.environ["SYSMON_HOST_REGRESSION_POLICY"] = "reset"
        cfg = load_config(path)
        assert cfg.host.on_error == "respond"
        assert cfg.host.max_frame_bytes == 2048
        assert cfg.delta.regression_policy == "reset"
    finally:
        os.environ.pop("SYSMON_HOST_ON_ERROR", None)
        os.environ.pop("SYSMON_HOST_MAX_FRAME_BYTES", None)
        os.environ.pop("SYSMON_HOST_REGRESSION_POLICY", None)
        os.unlink(path)


def test_config_path_from_environment():
    path = _write_yaml({"collector": {"memory": False}})
    try:
        os.environ["SYSMON_HOST_CONFIG"] = path
        assert load_config().collector.memory is False
    finally:
        os.environ.pop("SYSMON_HOST_CONFIG", None)
        os.unlink(path)


@pytest.mark.parametrize(
    "data",
    [
        {"host": {"on_error": "retry"}},
        {"host": {"max_frame_bytes": 0}},
        {"delta": {"regression_policy": "saturate"}},
        {"delta": {"counter_bits": -1}},
        {"logging": {"level": "CHATTY"}},
        {"collector": ["cpu"]},
    ],
)
def test_invalid_values_raise_config_error(data):
    path = _write_yaml(data)
    try:
        with pytest.raises(ConfigError):
            load_config(path)
    finally:
        os.unlink(path)


def test_non_integer_env_override():
    os.environ["SYSMON_HOST_MAX_FRAME_BYTES"] = "lots"
    try:
        with pytest.raises(ConfigError):
            load_config("/tmp/nonexistent_sysmon_host.yaml")
    finally:
        os.environ.pop("SYSMON_HOST_MAX_FRAME_BYTES", None)
