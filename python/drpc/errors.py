"""Exception types raised by the codec and settings layer.

Session and client operations never let these escape; they are raised
only by the lower-level helpers that callers may use directly.
"""


class DrpcError(Exception):
    """Base class for drpc errors."""


class FrameTooLargeError(DrpcError, ValueError):
    """A frame payload exceeds MAX_FRAME_SIZE."""

    def __init__(self, length: int, limit: int):
        super().__init__(f"Frame too large: {length} bytes (limit {limit})")
        self.length = length
        self.limit = limit


class SettingsError(DrpcError, ValueError):
    """One or more configuration values were rejected."""

    def __init__(self, problems):
        self.problems = list(problems)
        super().__init__("Invalid settings: " + "; ".join(self.problems))
