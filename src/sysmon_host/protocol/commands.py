"""Command registry and two-phase decoding of request documents."""

from __future__ import annotations

import abc
import json
import logging
import platform
import re
import sys
from typing import TYPE_CHECKING, Any, Callable

from ..errors import MalformedCommand, ResponseEncodingError, UnknownCommandType

if TYPE_CHECKING:
    from ..collector.base import BaseCollector

logger = logging.getLogger(__name__)

_LONE_SURROGATE = re.compile("[\ud800-\udfff]")

COMMAND_TYPE_ECHO = "echo"
COMMAND_TYPE_OS = "os"
COMMAND_TYPE_CPU = "cpu"
COMMAND_TYPE_MEMORY = "memory"
COMMAND_TYPE_DISK = "disk"
COMMAND_TYPE_NETWORK = "network"

# Resolved once; the platform cannot change while the process runs.
PLATFORM_NAME = platform.system().lower() or sys.platform


class Command(abc.ABC):
    """A request decoded from one frame, executed once and then dropped."""

    @property
    @abc.abstractmethod
    def type(self) -> str:
        """Wire-level type tag of this command."""

    def decode(self, document: dict[str, Any]) -> None:
        """Populate parameters from the request *document*.

        Commands without parameters accept any document.
        """

    @abc.abstractmethod
    def execute(self) -> Any:
        """Run the command and return a JSON-serializable result."""


class EchoCommand(Command):
    """Returns its message unchanged. Used by peers as a liveness probe."""

    def __init__(self) -> None:
        self.message = ""

    @property
    def type(self) -> str:
        return COMMAND_TYPE_ECHO

    def decode(self, document: dict[str, Any]) -> None:
        message = document.get("message", "")
        if not isinstance(message, str):
            raise MalformedCommand(
                f"echo.message must be a string, got {type(message).__name__}",
                tag=self.type,
            )
        self.message = message

    def execute(self) -> str:
        return self.message


class OsCommand(Command):
    """Reports the name of the running platform."""

    @property
    def type(self) -> str:
        return COMMAND_TYPE_OS

    def execute(self) -> str:
        return PLATFORM_NAME


class CollectorCommand(Command):
    """Runs a resource collector and returns its serialized stat."""

    def __init__(self, collector: BaseCollector) -> None:
        self._collector = collector

    @property
    def type(self) -> str:
        return self._collector.name

    def execute(self) -> dict[str, Any]:
        return self._collector.to_dict(self._collector.collect())


CommandFactory = Callable[[], Command]


class CommandRegistry:
    """Maps type tags to zero-argument command factories.

    Filled once at startup and only read afterwards.
    """

    def __init__(self) -> None:
        self._factories: dict[str, CommandFactory] = {}

    def register(self, tag: str, factory: CommandFactory) -> None:
        """Associate *tag* with *factory*. The last registration wins."""
        if tag in self._factories:
            logger.debug("Replacing factory for command type %r", tag)
        self._factories[tag] = factory

    def resolve(self, tag: str) -> Command:
        """Return a fresh command for *tag*."""
        factory = self._factories.get(tag)
        if factory is None:
            raise UnknownCommandType(tag)
        return factory()

    def tags(self) -> list[str]:
        return sorted(self._factories)

    def __contains__(self, tag: object) -> bool:
        return tag in self._factories

    def __len__(self) -> int:
        return len(self._factories)


def register_builtin_commands(registry: CommandRegistry) -> None:
    """Register the commands that need no collector."""
    registry.register(COMMAND_TYPE_ECHO, EchoCommand)
    registry.register(COMMAND_TYPE_OS, OsCommand)


def peek_type(payload: bytes) -> tuple[dict[str, Any], str]:
    """Parse *payload* and return the document together with its type tag."""
    try:
        document = json.loads(payload)
    except ValueError as exc:
        raise MalformedCommand(f"Request is not valid UTF-8 JSON: {exc}") from exc
    if not isinstance(document, dict):
        raise MalformedCommand(f"Request must be a JSON object, got {type(document).__name__}")
    tag = document.get("type")
    if not isinstance(tag, str):
        raise MalformedCommand("Request has no string 'type' field")
    return document, tag


def decode_command(payload: bytes, registry: CommandRegistry) -> Command:
    """Decode a request frame payload into a ready-to-execute command.

    The type tag is read first to pick the command, then the full document
    is decoded into that command's parameters.
    """
    document, tag = peek_type(payload)
    command = registry.resolve(tag)
    command.decode(document)
    return command


def encode_document(document: Any) -> bytes:
    """Serialize a response document as compact UTF-8 JSON.

    Lone surrogates, which a request can smuggle in through \\u escapes, have
    no UTF-8 form and are replaced with U+FFFD.
    """
    try:
        text = json.dumps(document, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as exc:
        raise ResponseEncodingError(f"Response is not JSON serializable: {exc}") from exc
    return _LONE_SURROGATE.sub("\ufffd", text).encode("utf-8")


def build_envelope(tag: str, stat: Any) -> dict[str, Any]:
    return {"type": tag, "stat": stat}


def build_error_envelope(tag: str | None, exc: BaseException) -> dict[str, Any]:
    return {"type": tag, "error": {"kind": type(exc).__name__, "message": str(exc)}}
