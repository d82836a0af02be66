"""drpc -- publish rich presence to a local Discord client over IPC."""

from .client import PresenceClient
from .errors import DrpcError, FrameTooLargeError, SettingsError
from .logger import configure_logging
from .presence import ActivityType, Presence, StatusDisplayType
from .session import Session, SessionState
from .settings import Settings, load_settings

# Module-level convenience instance (created by connect())
_default_client: PresenceClient = None


def connect(application_id: str, settings: Settings = None) -> PresenceClient:
    """Create, start and return the module-level client."""
    global _default_client
    if _default_client is not None:
        _default_client.stop()
    _default_client = PresenceClient(application_id, settings)
    _default_client.start()
    return _default_client


def update_presence(presence: Presence) -> None:
    """Publish presence through the module-level client, if any."""
    if _default_client is not None:
        _default_client.update_presence(presence)


def clear_presence() -> None:
    """Clear presence through the module-level client, if any."""
    if _default_client is not None:
        _default_client.clear_presence()


def disconnect() -> None:
    """Stop the module-level client."""
    global _default_client
    if _default_client is not None:
        _default_client.stop()
        _default_client = None


__all__ = [
    'PresenceClient', 'Session', 'SessionState',
    'Presence', 'ActivityType', 'StatusDisplayType',
    'Settings', 'load_settings', 'configure_logging',
    'DrpcError', 'FrameTooLargeError', 'SettingsError',
    'connect', 'update_presence', 'clear_presence', 'disconnect',
]
