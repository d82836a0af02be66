"""Local transports to the Discord IPC endpoint.

Unix-family systems expose the endpoint as a Unix domain socket; Windows
exposes it as a named pipe. Both are wrapped behind the same small
interface so the session never touches sockets directly.
"""

import select
import socket
import sys
import time
from typing import Callable, Optional


# Upper bound on one write() when the peer stops reading.
DEFAULT_WRITE_TIMEOUT = 2.0


class Transport:
    """connect / recv / write / close over a named local endpoint.

    connect() and write() raise OSError on failure. recv() returns the
    bytes currently available, b"" once the peer has closed, and raises
    BlockingIOError when nothing has arrived yet.
    """

    @property
    def connected(self) -> bool:
        raise NotImplementedError

    def connect(self, address: str, timeout: float) -> None:
        raise NotImplementedError

    def recv(self) -> bytes:
        raise NotImplementedError

    def write(self, data: bytes) -> None:
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError

    def wait_readable(self, timeout: float) -> bool:
        """Block up to timeout seconds for data (or EOF) to be available."""
        raise NotImplementedError


class UnixSocketTransport(Transport):
    """Unix domain socket connection to discord-ipc-N.

    write() gives up with TimeoutError once write_timeout seconds pass
    without the peer draining the socket.
    """

    def __init__(self, write_timeout: float = DEFAULT_WRITE_TIMEOUT):
        self.write_timeout = write_timeout
        self._sock: Optional[socket.socket] = None

    @property
    def connected(self) -> bool:
        return self._sock is not None

    def connect(self, address: str, timeout: float) -> None:
        """Connect with a bounded wait, then switch to non-blocking."""
        self.close()
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.settimeout(timeout)
            sock.connect(address)
        except OSError:
            sock.close()
            raise
        sock.setblocking(False)
        self._sock = sock

    def recv(self) -> bytes:
        if self._sock is None:
            return b""
        chunks = []
        while True:
            try:
                chunk = self._sock.recv(65536)
            except BlockingIOError:
                break
            if not chunk:
                # EOF: hand back what we have, the next call reports it
                if not chunks:
                    return b""
                break
            chunks.append(chunk)
        if not chunks:
            raise BlockingIOError("No data available")
        return b"".join(chunks)

    def write(self, data: bytes) -> None:
        if self._sock is None:
            raise ConnectionError("Not connected")
        deadline = time.monotonic() + self.write_timeout
        view = memoryview(data)
        while view:
            try:
                sent = self._sock.send(view)
            except BlockingIOError:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TimeoutError(
                        f"Write timed out after {self.write_timeout}s with {len(view)} bytes unsent"
                    )
                select.select([], [self._sock], [], remaining)
                continue
            view = view[sent:]

    def close(self) -> None:
        if self._sock is not None:
            try:
                self._sock.close()
            except OSError:
                pass
            self._sock = None

    def wait_readable(self, timeout: float) -> bool:
        if self._sock is None:
            return False
        readable, _, _ = select.select([self._sock], [], [], timeout)
        return bool(readable)


def _peek_named_pipe(pipe) -> int:
    """Bytes waiting in a Windows pipe; raises OSError once it is broken."""
    import _winapi
    import msvcrt

    available, _ = _winapi.PeekNamedPipe(msvcrt.get_osfhandle(pipe.fileno()), 0)
    return available


class NamedPipeTransport(Transport):
    """Windows named pipe connection to \\\\.\\pipe\\discord-ipc-N.

    Pipes can't be select()ed and a pending ReadFile blocks writes on the
    same synchronous handle, so nothing ever reads ahead: readiness is
    polled with PeekNamedPipe and recv() only reads what is already there.
    """

    def __init__(self, opener: Callable = open,
                 peek: Callable = _peek_named_pipe,
                 poll_interval: float = 0.01):
        self._open = opener
        self._peek = peek
        self.poll_interval = poll_interval
        self._pipe = None

    @property
    def connected(self) -> bool:
        return self._pipe is not None

    def connect(self, address: str, timeout: float) -> None:
        # Opening a pipe either succeeds or fails immediately; timeout only
        # applies to sockets.
        self.close()
        self._pipe = self._open(address, "r+b", buffering=0)

    def _available(self) -> Optional[int]:
        """Bytes ready to read, or None once the server end is gone."""
        try:
            return self._peek(self._pipe)
        except OSError:
            return None

    def recv(self) -> bytes:
        if self._pipe is None:
            return b""
        available = self._available()
        if available is None:
            return b""
        if available == 0:
            raise BlockingIOError("No data available")
        return self._pipe.read(available) or b""

    def write(self, data: bytes) -> None:
        if self._pipe is None:
            raise ConnectionError("Not connected")
        view = memoryview(data)
        while view:
            view = view[self._pipe.write(view):]

    def close(self) -> None:
        if self._pipe is not None:
            try:
                self._pipe.close()
            except OSError:
                pass
            self._pipe = None

    def wait_readable(self, timeout: float) -> bool:
        if self._pipe is None:
            return False
        deadline = time.monotonic() + timeout
        while True:
            available = self._available()
            if available is None or available > 0:
                return True
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            time.sleep(min(self.poll_interval, remaining))


def default_transport(write_timeout: float = DEFAULT_WRITE_TIMEOUT) -> Transport:
    """Return the transport matching the running platform."""
    if sys.platform == "win32":
        return NamedPipeTransport()
    return UnixSocketTransport(write_timeout)
