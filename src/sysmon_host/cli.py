"""CLI interface for sysmon_host."""

from __future__ import annotations

import argparse
import json
import logging
import os
import shutil
import sys
import time
from pathlib import Path
from typing import Any

from . import __version__
from .config import LoggingConfig, SysmonConfig, load_config
from .errors import ConfigError
from .host import EXIT_FATAL

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

COMMANDS = ("serve", "query", "manifest", "version")


def configure_logging(config: LoggingConfig) -> None:
    """Send log records to stderr and optionally a file.

    stdout carries protocol frames and must never receive log output.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    logging.basicConfig(
        level=getattr(logging, str(config.level).upper(), logging.INFO),
        format=LOG_FORMAT,
        stream=sys.stderr,
    )
    if config.file:
        path = Path(config.file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(file_handler)


def _build_host(cfg: SysmonConfig):
    from .collector.delta import DeltaStore
    from .collector.manager import CollectorManager
    from .host import NativeMessagingHost

    store = DeltaStore(cfg.delta.regression_policy, counter_bits=cfg.delta.counter_bits)
    manager = CollectorManager(cfg.collector, store=store)
    return NativeMessagingHost(
        manager.build_registry(),
        on_error=cfg.host.on_error,
        max_frame_bytes=cfg.host.max_frame_bytes,
    )


def _binary_stdio() -> tuple[Any, Any]:
    if sys.platform == "win32":
        import msvcrt

        msvcrt.setmode(sys.stdin.fileno(), os.O_BINARY)
        msvcrt.setmode(sys.stdout.fileno(), os.O_BINARY)
    return sys.stdin.buffer, sys.stdout.buffer


def _serve(cfg: SysmonConfig, origin: str = "") -> int:
    if origin:
        logger.info("Launched by %s", origin)
    host = _build_host(cfg)
    stdin, stdout = _binary_stdio()
    return host.serve(stdin, stdout)


def _cmd_serve(args: argparse.Namespace, cfg: SysmonConfig) -> int:
    """Answer native messaging requests on stdin/stdout."""
    return _serve(cfg, args.origin or "")


def _flatten(value: Any, prefix: str = "") -> list[tuple[str, Any]]:
    """Flatten a stat document into dotted keys; named list items use their name."""
    if isinstance(value, dict):
        rows: list[tuple[str, Any]] = []
        for key, item in value.items():
            if key == "name" and prefix:
                continue
            rows.extend(_flatten(item, f"{prefix}.{key}" if prefix else key))
        return rows
    if isinstance(value, list):
        rows = []
        for idx, item in enumerate(value):
            label = item.get("name", idx) if isinstance(item, dict) else idx
            rows.extend(_flatten(item, f"{prefix}[{label}]"))
        return rows
    return [(prefix or "value", value)]


def _print_envelopes(envelopes: list[dict[str, Any]], round_no: int) -> None:
    """Pretty-print response envelopes to the terminal using Rich."""
    from rich.console import Console
    from rich.table import Table

    table = Table(title=f"Round {round_no}", show_lines=False)
    table.add_column("Type", style="magenta", width=8)
    table.add_column("Field", style="cyan")
    table.add_column("Value", justify="right", style="green")

    for envelope in envelopes:
        tag = str(envelope.get("type"))
        if "error" in envelope:
            error = envelope["error"]
            table.add_row(tag, error["kind"], f"[red]{error['message']}[/red]")
            continue
        for field_name, value in _flatten(envelope.get("stat")):
            table.add_row(tag, field_name, "null" if value is None else str(value))

    Console().print(table)


def _cmd_query(args: argparse.Namespace, cfg: SysmonConfig) -> int:
    """Run commands in-process and print the responses."""
    from .protocol.commands import encode_document

    cfg.host.on_error = "respond"
    host = _build_host(cfg)
    for round_no in range(1, args.repeat + 1):
        if round_no > 1:
            time.sleep(args.interval)
        envelopes = []
        for tag in args.types:
            request: dict[str, Any] = {"type": tag}
            if tag == "echo":
                request["message"] = args.message
            envelopes.append(json.loads(host.handle(encode_document(request))))
        if args.json:
            for envelope in envelopes:
                print(json.dumps(envelope, ensure_ascii=False))
        else:
            _print_envelopes(envelopes, round_no)
    return 0


def _default_host_path() -> str:
    found = shutil.which("sysmon-host")
    if found:
        return found
    return str(Path(sys.argv[0]).resolve())


def build_manifest(
    name: str, path: str, extension_ids: list[str], browser: str = "chrome"
) -> dict[str, Any]:
    """Return the native messaging host manifest for *browser*."""
    manifest: dict[str, Any] = {
        "name": name,
        "description": "System monitor native messaging host",
        "path": path,
        "type": "stdio",
    }
    if browser == "firefox":
        manifest["allowed_extensions"] = list(extension_ids)
    else:
        manifest["allowed_origins"] = [f"chrome-extension://{ext_id}/" for ext_id in extension_ids]
    return manifest


def _cmd_manifest(args: argparse.Namespace, cfg: SysmonConfig) -> int:
    """Generate the browser's native messaging host manifest."""
    manifest = build_manifest(
        cfg.host.name,
        args.path or _default_host_path(),
        args.extension_id,
        browser=args.browser,
    )
    output = args.output or f"{cfg.host.name}.json"
    Path(output).parent.mkdir(parents=True, exist_ok=True)
    with open(output, "w", encoding="utf-8") as fh:
        json.dump(manifest, fh, indent=2)
        fh.write("\n")
    print(f"Native messaging manifest written to {output}")
    print()
    print("Copy it into the browser's NativeMessagingHosts directory, e.g.:")
    if args.browser == "firefox":
        print(f"  cp {output} ~/.mozilla/native-messaging-hosts/")
    else:
        print(f"  cp {output} ~/.config/google-chrome/NativeMessagingHosts/")
    return 0


def _cmd_version(_args: argparse.Namespace, _cfg: SysmonConfig) -> int:
    print(f"sysmon_host {__version__}")
    return 0


def _launched_by_browser(argv: list[str]) -> bool:
    """Browsers start hosts with the caller origin (or manifest path) as argv[1]."""
    return bool(argv) and not argv[0].startswith("-") and argv[0] not in COMMANDS


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sysmon-host",
        description="Native messaging host that serves system telemetry to a browser extension",
    )
    parser.add_argument("--config", "-c", default=None, help="Path to sysmon_host.yaml")
    sub = parser.add_subparsers(dest="command")

    # serve
    serve_p = sub.add_parser("serve", help="Answer requests on stdin/stdout (default)")
    serve_p.add_argument("origin", nargs="?", default=None, help="Caller origin passed by the browser")
    serve_p.set_defaults(func=_cmd_serve)

    # query
    query_p = sub.add_parser("query", help="Run commands in-process and print the responses")
    query_p.add_argument("types", nargs="+", help="Command types, e.g. cpu disk network")
    query_p.add_argument("--message", default="ping", help="Message for echo commands")
    query_p.add_argument("--repeat", "-n", type=int, default=1, help="Number of rounds")
    query_p.add_argument("--interval", "-i", type=float, default=1.0, help="Seconds between rounds")
    query_p.add_argument("--json", action="store_true", help="Print raw JSON envelopes")
    query_p.set_defaults(func=_cmd_query)

    # manifest
    manifest_p = sub.add_parser("manifest", help="Generate the native messaging host manifest")
    manifest_p.add_argument(
        "--extension-id", "-e", action="append", required=True, help="Allowed extension ID (repeatable)"
    )
    manifest_p.add_argument("--browser", choices=("chrome", "firefox"), default="chrome")
    manifest_p.add_argument("--path", default=None, help="Absolute path of the host executable")
    manifest_p.add_argument("--output", "-o", default=None, help="Output file path")
    manifest_p.set_defaults(func=_cmd_manifest)

    # version
    ver_p = sub.add_parser("version", help="Print version")
    ver_p.set_defaults(func=_cmd_version)
    return parser


def main(argv: list[str] | None = None) -> None:
    """Entry point for the sysmon-host CLI."""
    if argv is None:
        argv = sys.argv[1:]

    if _launched_by_browser(argv):
        # Browser launch: argv is origin plus browser-specific flags.
        try:
            cfg = load_config()
        except ConfigError as exc:
            configure_logging(LoggingConfig())
            logger.error("Invalid configuration: %s", exc)
            sys.exit(EXIT_FATAL)
        configure_logging(cfg.logging)
        sys.exit(_serve(cfg, argv[0]))

    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        cfg = load_config(args.config)
    except ConfigError as exc:
        parser.error(str(exc))
    configure_logging(cfg.logging)

    if not hasattr(args, "func"):
        sys.exit(_serve(cfg))
    sys.exit(args.func(args, cfg))


if __name__ == "__main__":
    main()
