"""Exception hierarchy shared by the framing, command and collector layers."""

from __future__ import annotations


class HostError(Exception):
    """Base class for every error raised by sysmon_host."""


class ConfigError(HostError):
    """Raised when a configuration value is not acceptable."""


# ---------------------------------------------------------------------------
# Framing
# ---------------------------------------------------------------------------

class FrameError(HostError):
    """Base class for framing violations on the duplex stream."""


class StreamClosed(FrameError):
    """The input stream ended cleanly before the next frame started.

    This is the normal termination signal of the dispatch loop.
    """


class TruncatedFrame(FrameError):
    """The input stream ended in the middle of a frame."""

    def __init__(self, expected: int, received: int, *, part: str = "payload") -> None:
        super().__init__(f"Stream ended inside frame {part}: expected {expected} bytes, got {received}")
        self.expected = expected
        self.received = received
        self.part = part


class FrameTooLarge(FrameError):
    """A frame length does not fit the wire format or the configured limit."""

    def __init__(self, length: int, limit: int) -> None:
        super().__init__(f"Frame of {length} bytes exceeds limit of {limit} bytes")
        self.length = length
        self.limit = limit


class FrameWriteError(FrameError):
    """The output stream failed while a frame was being written."""


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

class CommandError(HostError):
    """Base class for errors decoding or resolving a request document."""


class UnknownCommandType(CommandError):
    """No factory is registered for the requested type tag."""

    def __init__(self, tag: str) -> None:
        super().__init__(f"Unknown command type: {tag!r}")
        self.tag = tag


class MalformedCommand(CommandError):
    """The request document does not match the expected shape."""

    def __init__(self, message: str, *, tag: str | None = None) -> None:
        super().__init__(message)
        self.tag = tag


class ResponseEncodingError(CommandError):
    """A command result could not be serialized as a JSON response."""

    def __init__(self, message: str, *, tag: str | None = None) -> None:
        super().__init__(message)
        self.tag = tag


# ---------------------------------------------------------------------------
# Sampling
# ---------------------------------------------------------------------------

class SamplingFailed(HostError):
    """The raw sampler could not produce absolute samples for a resource kind.

    *kind* names the resource kind being sampled and *cause* classifies the
    failure: ``missing`` (file or device gone), ``permission``, ``parse``,
    ``tool`` (external utility failed) or ``unsupported`` (not available on
    this platform).
    """

    CAUSES = ("missing", "permission", "parse", "tool", "unsupported")

    def __init__(self, kind: str, cause: str, detail: str = "") -> None:
        message = f"Sampling {kind} failed ({cause})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.kind = kind
        self.cause = cause
        self.detail = detail
