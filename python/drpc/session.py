"""Session state machine for the Discord IPC connection.

The session owns the transport, the read buffer and the reconnect
backoff. Everything that happens to the connection is fed in as an
Event through Session.handle(); nothing here waits on I/O except the
bounded connect attempts made while resolving an endpoint.

    DISCONNECTED --initialize--> CONNECTING --resolved--> HANDSHAKE_SENT
    HANDSHAKE_SENT --DISPATCH/READY--> CONNECTED
    any --disconnect/CLOSE--> DISCONNECTED (+ reconnect timer)
    any --shutdown--> DISCONNECTED (no reconnect)
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence

from .endpoint import candidate_endpoints, resolve
from .errors import FrameTooLargeError
from .presence import Presence, build_handshake, build_presence_message
from .protocol import FrameBuffer, Opcode, decode_json, encode_frame, encode_json
from .settings import Settings

logger = logging.getLogger(__name__)


class SessionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    HANDSHAKE_SENT = "handshake_sent"
    CONNECTED = "connected"


class EventKind(Enum):
    CONNECTED = "connected"
    DATA = "data"
    DISCONNECTED = "disconnected"
    RECONNECT_TIMER = "reconnect_timer"


@dataclass(frozen=True)
class Event:
    kind: EventKind
    data: bytes = b""


class Backoff:
    """Exponential reconnect delay, doubling per failure up to max_delay."""

    def __init__(self, min_delay: float, max_delay: float):
        self.min_delay = min_delay
        self.max_delay = max_delay
        self._delay = min_delay

    @property
    def delay(self) -> float:
        """The delay the next reconnect will wait."""
        return self._delay

    def next_delay(self) -> float:
        """Return the current delay and double it for next time."""
        delay = self._delay
        self._delay = min(delay * 2, self.max_delay)
        return delay

    def reset(self) -> None:
        self._delay = self.min_delay


class DeadlineTimer:
    """One-shot timer polled by whoever drives the session."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._deadline: Optional[float] = None

    @property
    def active(self) -> bool:
        return self._deadline is not None

    def start(self, delay: float) -> None:
        self._deadline = self._clock() + delay

    def stop(self) -> None:
        self._deadline = None

    def remaining(self) -> Optional[float]:
        """Seconds until expiry (0 if due), or None when not running."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - self._clock())

    def expire(self) -> bool:
        """Stop and return True if the deadline has passed."""
        if self._deadline is None or self._clock() < self._deadline:
            return False
        self._deadline = None
        return True


class Session:
    """One client's connection to the Discord IPC endpoint.

    Not thread-safe: callers serialize access (PresenceClient holds a
    lock around every call).
    """

    def __init__(self, application_id: str, transport, timer=None,
                 settings: Optional[Settings] = None, pid: Optional[int] = None,
                 candidates: Optional[Sequence[str]] = None):
        self.application_id = application_id
        self.settings = settings or Settings()
        self.transport = transport
        self.timer = timer if timer is not None else DeadlineTimer()
        self.backoff = Backoff(self.settings.reconnect_min_delay, self.settings.reconnect_max_delay)
        self.pid = os.getpid() if pid is None else pid
        self.ready_data: Optional[dict] = None
        self._candidates = candidates
        self._buffer = FrameBuffer()
        self._state = SessionState.DISCONNECTED
        self._nonce = 1
        self._stopped = False

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is SessionState.CONNECTED

    @property
    def nonce(self) -> int:
        """The nonce the next presence message will carry."""
        return self._nonce

    # -- public operations -------------------------------------------------

    def initialize(self) -> None:
        """Start connecting. Does nothing unless DISCONNECTED."""
        if self._state is not SessionState.DISCONNECTED:
            return
        self._stopped = False
        self._connect()

    def shutdown(self) -> None:
        """Close everything and stay down until initialize() is called."""
        self._stopped = True
        self.timer.stop()
        if self.transport.connected:
            self.transport.close()
        self._buffer.clear()
        if self._state is not SessionState.DISCONNECTED:
            logger.info("Session shut down")
        self._state = SessionState.DISCONNECTED

    def update_presence(self, presence: Presence) -> None:
        """Send presence if connected; otherwise silently drop it."""
        if self._state is not SessionState.CONNECTED:
            return
        message = build_presence_message(presence, self._nonce, self.pid)
        self._nonce += 1
        self._send(Opcode.FRAME, message)

    def clear_presence(self) -> None:
        self.update_presence(Presence())

    # -- event handling ----------------------------------------------------

    def handle(self, event: Event) -> None:
        """Advance the state machine by one event."""
        if event.kind is EventKind.CONNECTED:
            self._on_connected()
        elif event.kind is EventKind.DATA:
            self._on_data(event.data)
        elif event.kind is EventKind.DISCONNECTED:
            self._drop_connection("transport disconnected")
        elif event.kind is EventKind.RECONNECT_TIMER:
            self._connect()

    def _connect(self) -> None:
        if self._state is not SessionState.DISCONNECTED or self._stopped:
            return
        self._state = SessionState.CONNECTING

        candidates = self._candidates
        if candidates is None:
            candidates = candidate_endpoints(prefix=self.settings.endpoint_prefix)
        address = resolve(self.transport, candidates, self.settings.connect_timeout)

        if address is None:
            logger.debug("No Discord IPC endpoint available")
            self._state = SessionState.DISCONNECTED
            self._schedule_reconnect()
            return
        self.handle(Event(EventKind.CONNECTED))

    def _on_connected(self) -> None:
        if self._state is not SessionState.CONNECTING:
            return
        self._state = SessionState.HANDSHAKE_SENT
        self.backoff.reset()
        self._send(Opcode.HANDSHAKE, build_handshake(self.application_id, self.settings.rpc_version))

    def _on_data(self, data: bytes) -> None:
        if self._state is SessionState.DISCONNECTED:
            return
        try:
            frames = self._buffer.feed(data)
        except FrameTooLargeError as exc:
            logger.warning("Dropping connection: %s", exc)
            self._drop_connection("oversized frame")
            return

        for opcode, payload in frames:
            if self._state is SessionState.DISCONNECTED:
                break
            self._on_frame(opcode, payload)

    def _on_frame(self, opcode: int, payload: bytes) -> None:
        if opcode == Opcode.PING:
            self._write(encode_frame(Opcode.PONG, payload))
        elif opcode == Opcode.FRAME:
            self._on_message(payload)
        elif opcode == Opcode.CLOSE:
            reason = decode_json(payload) or {}
            logger.info("Discord closed the connection: %s %s",
                        reason.get("code", ""), reason.get("message", ""))
            self._drop_connection("close frame")
        else:
            logger.debug("Ignoring frame with opcode %s", opcode)

    def _on_message(self, payload: bytes) -> None:
        message = decode_json(payload)
        if message is None:
            logger.debug("Ignoring malformed message (%d bytes)", len(payload))
            return
        if self._state is not SessionState.HANDSHAKE_SENT:
            return
        if message.get("cmd") == "DISPATCH" and message.get("evt") == "READY":
            self.ready_data = message.get("data") if isinstance(message.get("data"), dict) else None
            self._state = SessionState.CONNECTED
            logger.info("Connected to Discord")
        else:
            logger.debug("Ignoring %s/%s during handshake", message.get("cmd"), message.get("evt"))

    # -- helpers -----------------------------------------------------------

    def _send(self, opcode: Opcode, message: dict) -> None:
        try:
            frame = encode_frame(opcode, encode_json(message))
        except FrameTooLargeError as exc:
            logger.warning("Not sending %s: %s", opcode.name, exc)
            return
        self._write(frame)

    def _write(self, frame: bytes) -> None:
        try:
            self.transport.write(frame)
        except OSError as exc:
            logger.debug("Write failed: %s", exc)
            self._drop_connection("write failed")

    def _drop_connection(self, reason: str) -> None:
        if self._state is SessionState.DISCONNECTED:
            return
        logger.info("Disconnected from Discord (%s)", reason)
        if self.transport.connected:
            self.transport.close()
        self._buffer.clear()
        self.ready_data = None
        self._state = SessionState.DISCONNECTED
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self._stopped:
            return
        delay = self.backoff.next_delay()
        logger.debug("Reconnecting in %.1fs", delay)
        self.timer.start(delay)

    def __del__(self):
        # __init__ may have failed before the transport was attached
        if getattr(self, "transport", None) is not None:
            self.shutdown()
