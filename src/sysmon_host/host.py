"""Dispatch loop of the native messaging host.

The loop is strictly sequential: read one frame, answer it with exactly one
frame, then read the next. It ends cleanly when the peer closes the input
stream.

By default any other failure ends the process, and the browser sees the
port disconnect; the extension is expected to respawn the host. With
``on_error="respond"`` a request that cannot be answered produces an error
envelope instead and the loop keeps running. Framing failures stay fatal
under both policies since the stream can no longer be trusted.
"""

from __future__ import annotations

import enum
import logging
from typing import BinaryIO

from .errors import CommandError, ConfigError, FrameError, FrameTooLarge, SamplingFailed, StreamClosed
from .protocol.commands import (
    CommandRegistry,
    build_envelope,
    build_error_envelope,
    decode_command,
    encode_document,
)
from .protocol.frame import BROWSER_MESSAGE_LIMIT, FrameCodec

logger = logging.getLogger(__name__)

# Failures confined to one request.
REQUEST_ERRORS = (CommandError, SamplingFailed, FrameTooLarge)

EXIT_OK = 0
EXIT_FATAL = 1


class ErrorPolicy(str, enum.Enum):
    """What the loop does when a single request fails."""

    EXIT = "exit"
    RESPOND = "respond"


class NativeMessagingHost:
    """Answers framed requests using the commands in *registry*."""

    def __init__(
        self,
        registry: CommandRegistry,
        *,
        on_error: ErrorPolicy | str = ErrorPolicy.EXIT,
        max_frame_bytes: int = BROWSER_MESSAGE_LIMIT,
    ) -> None:
        try:
            self._on_error = ErrorPolicy(on_error)
        except ValueError:
            raise ConfigError(f"Unknown error policy {on_error!r}") from None
        self._registry = registry
        self._inbound = FrameCodec()
        self._outbound = FrameCodec(max_size=max_frame_bytes)
        self._handled = 0

    @property
    def handled(self) -> int:
        """Number of responses written so far."""
        return self._handled

    def handle(self, payload: bytes) -> bytes:
        """Answer one request payload and return the response payload.

        Request-level errors propagate under the ``exit`` policy and are
        turned into an error envelope under ``respond``.
        """
        tag: str | None = None
        try:
            command = decode_command(payload, self._registry)
            tag = command.type
            logger.debug("Executing %s", tag)
            body = encode_document(build_envelope(tag, command.execute()))
            if len(body) > self._outbound.max_size:
                raise FrameTooLarge(len(body), self._outbound.max_size)
            return body
        except REQUEST_ERRORS as exc:
            if self._on_error is ErrorPolicy.EXIT:
                raise
            tag = tag or getattr(exc, "tag", None)
            logger.warning("Request %s failed: %s", tag or "<unknown>", exc)
            return encode_document(build_error_envelope(tag, exc))

    def serve(self, stdin: BinaryIO, stdout: BinaryIO) -> int:
        """Run the loop until the input closes. Returns a process exit status."""
        logger.info("Host started (on_error=%s)", self._on_error.value)
        while True:
            try:
                payload = self._inbound.decode(stdin)
            except StreamClosed:
                logger.info("Input stream closed after %d requests", self._handled)
                return EXIT_OK
            except FrameError as exc:
                logger.error("Failed to read frame: %s", exc)
                return EXIT_FATAL

            try:
                response = self.handle(payload)
            except REQUEST_ERRORS:
                logger.exception("Failed to answer request")
                return EXIT_FATAL

            try:
                self._outbound.write(stdout, response)
            except FrameError as exc:
                logger.error("Failed to write response: %s", exc)
                return EXIT_FATAL
            self._handled += 1
