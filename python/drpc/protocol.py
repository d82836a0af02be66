"""Wire protocol for the Discord IPC endpoint.

Every frame is a 4-byte little-endian u32 opcode, a 4-byte little-endian
u32 payload length, then that many bytes of payload (compact UTF-8 JSON
for every opcode the client understands). Max payload size is 64 KiB.
"""

import json
import struct
from enum import IntEnum
from typing import List, Optional, Tuple

from .errors import FrameTooLargeError


# Maximum payload size accepted in either direction (64 KiB).
MAX_FRAME_SIZE = 64 * 1024

_HEADER = struct.Struct('<II')
HEADER_SIZE = _HEADER.size


class Opcode(IntEnum):
    HANDSHAKE = 0
    FRAME = 1
    CLOSE = 2
    PING = 3
    PONG = 4


def encode_frame(opcode: int, payload: bytes) -> bytes:
    """Encode one frame as a single contiguous buffer.

    Raises FrameTooLargeError if the payload exceeds MAX_FRAME_SIZE.
    """
    if len(payload) > MAX_FRAME_SIZE:
        raise FrameTooLargeError(len(payload), MAX_FRAME_SIZE)
    return _HEADER.pack(int(opcode), len(payload)) + bytes(payload)


def encode_json(obj: dict) -> bytes:
    """Serialize a dict as compact UTF-8 JSON."""
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False).encode('utf-8')


def decode_json(payload: bytes) -> Optional[dict]:
    """Parse a JSON object payload.

    Returns None for malformed JSON or documents that are not objects.
    """
    try:
        doc = json.loads(payload)
    except (ValueError, UnicodeDecodeError):
        return None
    if not isinstance(doc, dict):
        return None
    return doc


def _as_opcode(value: int) -> int:
    try:
        return Opcode(value)
    except ValueError:
        return value


class FrameBuffer:
    """Accumulates inbound bytes and yields complete frames.

    Consumed bytes are tracked with a cursor and only compacted once
    they make up most of the buffer, so a read that delivers many small
    frames does not copy the remainder after every frame.
    """

    def __init__(self):
        self._buf = bytearray()
        self._pos = 0

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet returned as frames."""
        return len(self._buf) - self._pos

    def feed(self, data: bytes) -> List[Tuple[int, bytes]]:
        """Append data and return the frames it completed, in order."""
        self._buf.extend(data)
        frames = []
        try:
            while self.pending >= HEADER_SIZE:
                opcode, length = _HEADER.unpack_from(self._buf, self._pos)
                if length > MAX_FRAME_SIZE:
                    raise FrameTooLargeError(length, MAX_FRAME_SIZE)
                start = self._pos + HEADER_SIZE
                if len(self._buf) < start + length:
                    break
                frames.append((_as_opcode(opcode), bytes(self._buf[start:start + length])))
                self._pos = start + length
        finally:
            self._compact()
        return frames

    def clear(self) -> None:
        """Drop all buffered data."""
        self._buf.clear()
        self._pos = 0

    def _compact(self) -> None:
        if self._pos and self._pos * 2 >= len(self._buf):
            del self._buf[:self._pos]
            self._pos = 0
