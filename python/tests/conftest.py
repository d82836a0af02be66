"""Shared fakes: an in-memory transport and a manual clock."""

import json
import struct

import pytest

from drpc.transport import Transport


def make_frame(opcode: int, payload) -> bytes:
    """Build a raw frame; dict payloads are JSON-encoded."""
    if isinstance(payload, dict):
        payload = json.dumps(payload).encode('utf-8')
    return struct.pack('<II', opcode, len(payload)) + payload


READY = make_frame(1, {"cmd": "DISPATCH", "evt": "READY", "data": {"v": 1, "user": {"username": "tester"}}})


def parse_frames(data: bytes) -> list:
    """Split written bytes into (opcode, decoded-json-or-bytes) pairs."""
    frames = []
    offset = 0
    while offset < len(data):
        opcode, length = struct.unpack_from('<II', data, offset)
        payload = data[offset + 8:offset + 8 + length]
        try:
            payload = json.loads(payload)
        except ValueError:
            pass
        frames.append((opcode, payload))
        offset += 8 + length
    return frames


class FakeTransport(Transport):
    """Transport that accepts connections to a fixed set of addresses."""

    def __init__(self, accept=("ipc-0",), accept_all=False):
        self.accept = set(accept)
        self.accept_all = accept_all
        self.attempts = []
        self.written = []
        self.incoming = []
        self.eof = False
        self.fail_writes = False
        self.address = None
        self.close_count = 0

    @property
    def connected(self) -> bool:
        return self.address is not None

    def connect(self, address, timeout):
        self.attempts.append((address, timeout))
        if not self.accept_all and address not in self.accept:
            raise ConnectionRefusedError(f"nothing at {address}")
        self.address = address
        self.eof = False

    def recv(self):
        if self.incoming:
            return self.incoming.pop(0)
        if self.eof:
            return b""
        raise BlockingIOError()

    def write(self, data):
        if isinstance(self.fail_writes, OSError):
            raise self.fail_writes
        if self.fail_writes:
            raise BrokenPipeError("pipe closed")
        self.written.append(bytes(data))

    def close(self):
        self.address = None
        self.close_count += 1

    def wait_readable(self, timeout):
        return bool(self.incoming) or self.eof

    def frames(self) -> list:
        return parse_frames(b"".join(self.written))


class FakeTimer:
    """Records every start() instead of keeping time."""

    def __init__(self):
        self.started = []
        self.active = False

    def start(self, delay):
        self.started.append(delay)
        self.active = True

    def stop(self):
        self.active = False


class ManualClock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def timer():
    return FakeTimer()
