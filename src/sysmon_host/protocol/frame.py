"""Length-prefixed framing over a byte-oriented duplex stream.

Frame Structure::

    [length (4 bytes, unsigned little-endian)] [payload (length bytes)]

This is the browser native messaging wire format. The length never includes
the 4-byte prefix itself, and frames are written back to back with no
delimiter, so the reader must consume exactly ``length`` bytes per frame.
"""

from __future__ import annotations

import logging
import struct
import time
from typing import BinaryIO

from ..errors import FrameTooLarge, FrameWriteError, StreamClosed, TruncatedFrame

logger = logging.getLogger(__name__)

LENGTH_PREFIX = struct.Struct("<I")
LENGTH_PREFIX_SIZE: int = LENGTH_PREFIX.size

# Largest payload representable by the 32-bit length prefix.
MAX_FRAME_SIZE: int = 0xFFFFFFFF

# Chrome refuses host-to-browser messages larger than 1 MiB.
BROWSER_MESSAGE_LIMIT: int = 1024 * 1024

# A non-blocking raw stream that returns None this many times in a row fails the write.
WRITE_RETRY_LIMIT: int = 50
WRITE_RETRY_DELAY: float = 0.01


def _read_exactly(stream: BinaryIO, size: int) -> bytes:
    """Read *size* bytes, accumulating short reads. May return fewer at EOF."""
    chunks: list[bytes] = []
    remaining = size
    while remaining > 0:
        chunk = stream.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


class FrameCodec:
    """Encodes and decodes frames, enforcing an optional size limit.

    *max_size* caps the payload length in both directions and can never
    exceed :data:`MAX_FRAME_SIZE`.
    """

    def __init__(self, max_size: int = MAX_FRAME_SIZE) -> None:
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self._max_size = min(max_size, MAX_FRAME_SIZE)

    @property
    def max_size(self) -> int:
        return self._max_size

    def encode(self, payload: bytes) -> bytes:
        """Return *payload* prefixed with its length."""
        length = len(payload)
        if length > self._max_size:
            raise FrameTooLarge(length, self._max_size)
        return LENGTH_PREFIX.pack(length) + bytes(payload)

    def decode(self, stream: BinaryIO) -> bytes:
        """Block until one complete frame has been read and return its payload.

        Raises :class:`StreamClosed` when the stream ends before the first
        length byte and :class:`TruncatedFrame` when it ends anywhere later.
        """
        header = _read_exactly(stream, LENGTH_PREFIX_SIZE)
        if not header:
            raise StreamClosed("Input stream closed")
        if len(header) < LENGTH_PREFIX_SIZE:
            raise TruncatedFrame(LENGTH_PREFIX_SIZE, len(header), part="length prefix")

        (length,) = LENGTH_PREFIX.unpack(header)
        if length > self._max_size:
            raise FrameTooLarge(length, self._max_size)

        payload = _read_exactly(stream, length)
        if len(payload) < length:
            raise TruncatedFrame(length, len(payload))
        return payload

    def write(self, stream: BinaryIO, payload: bytes) -> None:
        """Encode *payload* and write the whole frame to *stream*.

        Partial writes are retried until every byte has been handed to the
        stream, which is then flushed.
        """
        frame = memoryview(self.encode(payload))
        written = 0
        stalled = 0
        try:
            while written < len(frame):
                count = stream.write(frame[written:])
                if count is None:
                    stalled += 1
                    if stalled > WRITE_RETRY_LIMIT:
                        raise FrameWriteError(f"Output stream stayed blocked after {written} bytes")
                    time.sleep(WRITE_RETRY_DELAY)
                    continue
                stalled = 0
                if count == 0:
                    raise FrameWriteError(f"Output stream accepted no data after {written} bytes")
                written += count
            stream.flush()
        except OSError as exc:
            raise FrameWriteError(f"Failed to write frame: {exc}") from exc
        logger.debug("Wrote frame of %d bytes", len(frame) - LENGTH_PREFIX_SIZE)


_DEFAULT_CODEC = FrameCodec()


def encode_frame(payload: bytes) -> bytes:
    """Encode *payload* with the wire-maximum codec."""
    return _DEFAULT_CODEC.encode(payload)


def read_frame(stream: BinaryIO) -> bytes:
    """Read one frame from *stream* with the wire-maximum codec."""
    return _DEFAULT_CODEC.decode(stream)


def write_frame(stream: BinaryIO, payload: bytes) -> None:
    """Write one frame to *stream* with the wire-maximum codec."""
    _DEFAULT_CODEC.write(stream, payload)
