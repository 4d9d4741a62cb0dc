"""Tests for the sysmon-host command line."""

import json
import logging
import os
import tempfile
from pathlib import Path

import pytest

from sysmon_host import __version__, cli
from sysmon_host.cli import _flatten, _launched_by_browser, build_manifest, configure_logging, main
from sysmon_host.config import LoggingConfig
from sysmon_host.errors import ConfigError


@pytest.fixture(autouse=True)
def _keep_pytest_logging(monkeypatch):
    """main() reconfigures the root logger; keep pytest's handlers in place."""
    monkeypatch.setattr(cli, "configure_logging", lambda config: None)


def test_version(capsys):
    with pytest.raises(SystemExit) as info:
        main(["version"])
    assert info.value.code == 0
    assert __version__ in capsys.readouterr().out


def test_manifest_chrome():
    with tempfile.TemporaryDirectory() as tmpdir:
        output = Path(tmpdir) / "host.json"
        with pytest.raises(SystemExit) as info:
            main([
                "--config", str(Path(tmpdir) / "missing.yaml"),
                "manifest",
                "--extension-id", "abcdefghijklmnop",
                "--extension-id", "ponmlkjihgfedcba",
                "--path", "/usr/local/bin/sysmon-host",
                "--output", str(output),
            ])
        assert info.value.code == 0
        manifest = json.loads(output.read_text(encoding="utf-8"))
    assert manifest == {
        "name": "com.github.ihiroky.system_monitor",
        "description": "System monitor native messaging host",
        "path": "/usr/local/bin/sysmon-host",
        "type": "stdio",
        "allowed_origins": [
            "chrome-extension://abcdefghijklmnop/",
            "chrome-extension://ponmlkjihgfedcba/",
        ],
    }


def test_manifest_firefox():
    manifest = build_manifest("org.example.host", "/opt/host", ["sysmon@example.org"], browser="firefox")
    assert manifest["allowed_extensions"] == ["sysmon@example.org"]
    assert "allowed_origins" not in manifest


def test_query_json(capsys):
    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(SystemExit) as info:
            main([
                "--config", os.path.join(tmpdir, "missing.yaml"),
                "query", "echo", "os", "gpu", "--message", "hi", "--json",
            ])
    assert info.value.code == 0
    lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert lines[0] == {"type": "echo", "stat": "hi"}
    assert lines[1]["type"] == "os"
    assert lines[2]["error"]["kind"] == "UnknownCommandType"


def test_query_table(capsys):
    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(SystemExit):
            main(["--config", os.path.join(tmpdir, "missing.yaml"), "query", "memory"])
    out = capsys.readouterr().out
    assert "Round 1" in out
    assert "total" in out


def test_invalid_config_is_reported(capsys):
    with tempfile.NamedTemporaryFile("w", suffix=".yaml", delete=False) as fh:
        fh.write("host:\n  on_error: retry\n")
        path = fh.name
    try:
        with pytest.raises(SystemExit) as info:
            main(["--config", path, "version"])
        assert info.value.code == 2
        assert "on_error" in capsys.readouterr().err
    finally:
        os.unlink(path)


@pytest.mark.parametrize(
    "argv, expected",
    [
        (["chrome-extension://abcdefghijklmnop/"], True),
        (["chrome-extension://abcdefghijklmnop/", "--parent-window=0"], True),
        (["/home/me/.mozilla/native-messaging-hosts/host.json", "sysmon@example.org"], True),
        ([], False),
        (["serve"], False),
        (["query", "cpu"], False),
        (["--config", "x.yaml", "serve"], False),
    ],
)
def test_launched_by_browser(argv, expected):
    assert _launched_by_browser(argv) is expected


def test_browser_launch_serves(monkeypatch):
    calls = []
    monkeypatch.setattr(cli, "_serve", lambda cfg, origin="": calls.append(origin) or 0)
    with pytest.raises(SystemExit) as info:
        main(["chrome-extension://abcdefghijklmnop/"])
    assert info.value.code == 0
    assert calls == ["chrome-extension://abcdefghijklmnop/"]


def test_browser_launch_with_invalid_config_exits(monkeypatch):
    def _invalid(path=None):
        raise ConfigError("host.on_error must be one of ['exit', 'respond'], got 'retry'")

    served = []
    monkeypatch.setattr(cli, "load_config", _invalid)
    monkeypatch.setattr(cli, "_serve", lambda cfg, origin="": served.append(origin) or 0)
    with pytest.raises(SystemExit) as info:
        main(["chrome-extension://abcdefghijklmnop/"])
    assert info.value.code == 1
    assert served == []


def test_flatten_uses_item_names():
    stat = {"time": "t", "disks": [{"name": "sda", "rbyte": 1}], "all": {"name": "all", "user": 2}}
    assert _flatten(stat) == [("time", "t"), ("disks[sda].rbyte", 1), ("all.user", 2)]
    assert _flatten("ping") == [("value", "ping")]


def test_configure_logging_never_writes_stdout(capsys):
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "logs" / "host.log"
            configure_logging(LoggingConfig(level="DEBUG", file=str(path)))
            logging.getLogger("sysmon_host.test").debug("hello from the host")
            for handler in root.handlers:
                handler.flush()
            assert "hello from the host" in path.read_text(encoding="utf-8")
            captured = capsys.readouterr()
            assert captured.out == ""
            assert "hello from the host" in captured.err
            for handler in root.handlers:
                handler.close()
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
