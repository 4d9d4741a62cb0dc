"""Wire protocol: frame codec and command registry."""

from .commands import CommandRegistry, decode_command
from .frame import FrameCodec

__all__ = ["CommandRegistry", "FrameCodec", "decode_command"]
