"""Presence client -- drives a Session from transport and timer events."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from .presence import Presence
from .session import DeadlineTimer, Event, EventKind, Session, SessionState
from .settings import Settings
from .transport import Transport, default_transport

logger = logging.getLogger(__name__)


class PresenceClient:
    """Client for publishing rich presence to a local Discord client.

    Either call poll() from your own loop, or start() a background thread
    that does it. Every call into the session is serialized with a lock,
    so the public methods are safe to use from any thread.

    Usage:
        with PresenceClient("123456789012345678") as rpc:
            rpc.update_presence(Presence(state="Listening to music"))
    """

    def __init__(self, application_id: str, settings: Optional[Settings] = None,
                 transport: Optional[Transport] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.settings = settings or Settings()
        self.transport = transport or default_transport(self.settings.write_timeout)
        self._timer = DeadlineTimer(clock)
        self._session = Session(application_id, self.transport, self._timer, self.settings)
        self._lock = threading.Lock()
        self._wake = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._running = False

    @property
    def session(self) -> Session:
        return self._session

    @property
    def state(self) -> SessionState:
        return self._session.state

    @property
    def is_connected(self) -> bool:
        return self._session.is_connected

    def initialize(self) -> None:
        """Start connecting (no-op unless disconnected)."""
        with self._lock:
            self._session.initialize()
        self._wake.set()

    def shutdown(self) -> None:
        """Disconnect and cancel any pending reconnect."""
        with self._lock:
            self._session.shutdown()
        self._wake.set()

    def update_presence(self, presence: Presence) -> None:
        """Publish presence. Dropped silently while not connected."""
        with self._lock:
            self._session.update_presence(presence)

    def clear_presence(self) -> None:
        """Remove the activity from the user's profile."""
        with self._lock:
            self._session.clear_presence()

    def poll(self, timeout: Optional[float] = None) -> None:
        """Wait up to timeout seconds for I/O or the reconnect timer, then handle it."""
        if timeout is None:
            timeout = self.settings.poll_interval

        # Cleared before looking at state so a concurrent initialize() wakes us
        self._wake.clear()
        with self._lock:
            remaining = self._timer.remaining()
            listening = self.transport.connected and self._session.state is not SessionState.DISCONNECTED
        wait = timeout if remaining is None else min(timeout, remaining)

        readable = False
        if listening:
            try:
                readable = self.transport.wait_readable(wait)
            except (OSError, ValueError):
                # Closed under us by shutdown() on another thread
                readable = False
        elif wait > 0:
            self._wake.wait(wait)

        with self._lock:
            if readable and self.transport.connected:
                self._read()
            if self._timer.expire():
                self._session.handle(Event(EventKind.RECONNECT_TIMER))

    def _read(self) -> None:
        try:
            data = self.transport.recv()
        except BlockingIOError:
            return
        except OSError as exc:
            logger.debug("Read failed: %s", exc)
            data = b""
        if data:
            self._session.handle(Event(EventKind.DATA, data))
        else:
            self._session.handle(Event(EventKind.DISCONNECTED))

    # -- background loop ---------------------------------------------------

    def start(self) -> None:
        """Initialize and pump events in a daemon thread."""
        self.initialize()
        if self._running:
            return
        self._running = True
        self._thread = threading.Thread(target=self._run, name="drpc", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop the background thread and shut the session down."""
        self._running = False
        self._wake.set()
        if self._thread is not None:
            self._thread.join(timeout=5.0)
            self._thread = None
        self.shutdown()

    def _run(self) -> None:
        while self._running:
            try:
                self.poll()
            except Exception:
                logger.exception("Unexpected error in presence loop")
                time.sleep(self.settings.poll_interval)

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *args):
        self.stop()
