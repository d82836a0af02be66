"""Endpoint discovery -- where the Discord client listens, and connecting to it."""

import logging
import os
import posixpath
import sys
from typing import List, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "discord-ipc"
PIPE_COUNT = 10

# Checked in order; unset or empty variables are skipped.
_TEMP_DIR_VARS = ("XDG_RUNTIME_DIR", "TMPDIR", "TMP", "TEMP")
_FALLBACK_DIR = "/tmp"


def candidate_endpoints(platform: Optional[str] = None,
                        environ: Optional[Mapping[str, str]] = None,
                        prefix: str = DEFAULT_PREFIX) -> List[str]:
    """Return every address to try, in order.

    Windows: \\\\.\\pipe\\<prefix>-0 .. -9. Everything else: <dir>/<prefix>-0
    .. -9 for each runtime/temp directory, then /tmp.
    """
    platform = sys.platform if platform is None else platform
    environ = os.environ if environ is None else environ

    if platform == "win32":
        return [f"\\\\.\\pipe\\{prefix}-{i}" for i in range(PIPE_COUNT)]

    base_dirs: List[str] = []
    for var in _TEMP_DIR_VARS:
        value = environ.get(var)
        if value:
            base_dirs.append(posixpath.normpath(value))
    base_dirs.append(_FALLBACK_DIR)

    candidates = []
    seen = set()
    for base in base_dirs:
        if base in seen:
            continue
        seen.add(base)
        candidates.extend(posixpath.join(base, f"{prefix}-{i}") for i in range(PIPE_COUNT))
    return candidates


def resolve(transport, candidates: Sequence[str], timeout: float = 0.1) -> Optional[str]:
    """Connect transport to the first candidate that accepts.

    Returns the address used, or None if every candidate failed. Each
    attempt waits at most timeout seconds.
    """
    for address in candidates:
        try:
            transport.connect(address, timeout)
        except OSError as exc:
            logger.debug("No endpoint at %s: %s", address, exc)
            continue
        logger.debug("Connected to %s", address)
        return address
    return None
