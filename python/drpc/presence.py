"""Presence values and the JSON payloads built from them.

Every optional field is left off the wire when it is empty or zero, and
grouped sub-objects (timestamps, assets, party, secrets) appear only when
at least one of their source fields is set.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


RPC_VERSION = 1


class ActivityType(IntEnum):
    PLAYING = 0
    STREAMING = 1
    LISTENING = 2
    WATCHING = 3
    CUSTOM = 4
    COMPETING = 5


class StatusDisplayType(IntEnum):
    NAME = 0
    STATE = 1
    DETAILS = 2


@dataclass(frozen=True)
class Presence:
    """What the user is currently doing.

    type is None when unset; timestamps <= 0 are unset.
    """

    type: int | None = None
    status_display_type: int = StatusDisplayType.NAME
    name: str = ""
    state: str = ""
    details: str = ""
    start_timestamp: int = 0
    end_timestamp: int = 0
    large_image_key: str = ""
    large_image_text: str = ""
    small_image_key: str = ""
    small_image_text: str = ""
    party_id: str = ""
    party_size: int = 0
    party_max: int = 0
    party_privacy: int = 0
    match_secret: str = ""
    join_secret: str = ""
    spectate_secret: str = ""
    instance: bool = False


# ---------------------------------------------------------------------------
# Field-presence helpers
# ---------------------------------------------------------------------------

def _is_set(value) -> bool:
    if isinstance(value, bool):
        return True
    if isinstance(value, int):
        return value > 0
    return bool(value)


def _compact(**fields) -> dict:
    """Keep only the fields whose values are set (non-empty / positive)."""
    return {k: v for k, v in fields.items() if _is_set(v)}


def _section(target: dict, key: str, sources: tuple, **fields) -> None:
    """Attach fields under key if any of the source values is set."""
    if any(_is_set(s) for s in sources):
        target[key] = _compact(**fields)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def build_handshake(client_id: str, version: int = RPC_VERSION) -> dict:
    """Build the handshake payload sent right after connecting."""
    return {"v": version, "client_id": client_id}


def build_activity(presence: Presence) -> dict:
    """Map a Presence to the activity object of a SET_ACTIVITY command."""
    p = presence
    activity: dict = {}

    if p.type is not None and 0 <= p.type <= 5:
        activity["type"] = int(p.type)
        activity["status_display_type"] = int(p.status_display_type)

    activity.update(_compact(name=p.name, state=p.state, details=p.details))

    _section(
        activity, "timestamps", (p.start_timestamp, p.end_timestamp),
        start=p.start_timestamp, end=p.end_timestamp,
    )
    _section(
        activity, "assets",
        (p.large_image_key, p.large_image_text, p.small_image_key, p.small_image_text),
        large_image=p.large_image_key, large_text=p.large_image_text,
        small_image=p.small_image_key, small_text=p.small_image_text,
    )

    # The size pair is only meaningful when both halves are present.
    size = [p.party_size, p.party_max] if p.party_size > 0 and p.party_max > 0 else None
    _section(
        activity, "party", (p.party_id, p.party_size, p.party_max, p.party_privacy),
        id=p.party_id, size=size, privacy=p.party_privacy,
    )
    _section(
        activity, "secrets", (p.match_secret, p.join_secret, p.spectate_secret),
        match=p.match_secret, join=p.join_secret, spectate=p.spectate_secret,
    )

    activity["instance"] = bool(p.instance)
    return activity


def build_presence_message(presence: Presence, nonce: int, pid: int) -> dict:
    """Build a complete SET_ACTIVITY command."""
    return {
        "cmd": "SET_ACTIVITY",
        "nonce": str(nonce),
        "args": {
            "pid": pid,
            "activity": build_activity(presence),
        },
    }
