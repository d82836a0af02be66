"""Client settings -- defaults, YAML config files and DRPC_* overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Mapping

import yaml

from .errors import SettingsError


# Environment variable -> settings field
ENV_OVERRIDES = {
    "DRPC_RECONNECT_MIN_DELAY": "reconnect_min_delay",
    "DRPC_RECONNECT_MAX_DELAY": "reconnect_max_delay",
    "DRPC_CONNECT_TIMEOUT": "connect_timeout",
    "DRPC_WRITE_TIMEOUT": "write_timeout",
    "DRPC_ENDPOINT_PREFIX": "endpoint_prefix",
}


@dataclass(slots=True)
class Settings:
    reconnect_min_delay: float = 0.5
    reconnect_max_delay: float = 60.0
    connect_timeout: float = 0.1
    write_timeout: float = 2.0
    endpoint_prefix: str = "discord-ipc"
    rpc_version: int = 1
    poll_interval: float = 0.5

    def __post_init__(self):
        problems = self.validate()
        if problems:
            raise SettingsError(problems)

    def validate(self) -> list[str]:
        """Return a list of problems with the current values."""
        problems = []
        for name in ("reconnect_min_delay", "reconnect_max_delay", "connect_timeout",
                     "write_timeout", "poll_interval"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or isinstance(value, bool):
                problems.append(f"{name} must be a number, got {type(value).__name__}")
            elif value < 0:
                problems.append(f"{name} must be >= 0, got {value}")
        if not problems and self.reconnect_min_delay > self.reconnect_max_delay:
            problems.append(
                f"reconnect_min_delay ({self.reconnect_min_delay}) exceeds "
                f"reconnect_max_delay ({self.reconnect_max_delay})"
            )
        if not isinstance(self.endpoint_prefix, str) or not self.endpoint_prefix:
            problems.append("endpoint_prefix must be a non-empty string")
        if not isinstance(self.rpc_version, int) or isinstance(self.rpc_version, bool):
            problems.append(f"rpc_version must be an integer, got {type(self.rpc_version).__name__}")
        return problems

    def merge_in(self, **kwargs) -> list[str]:
        """Apply overrides, returning every problem instead of raising.

        Overrides are all-or-nothing: if any value is rejected, none of
        them is applied.
        """
        known = {f.name for f in fields(self)}
        all_problems = [f"Unknown setting: {key}" for key in kwargs if key not in known]
        if all_problems:
            return all_problems

        previous = {key: getattr(self, key) for key in kwargs}
        for key, value in kwargs.items():
            setattr(self, key, value)
        all_problems = self.validate()
        if all_problems:
            for key, value in previous.items():
                setattr(self, key, value)
        return all_problems


def _coerce(name: str, raw: str):
    if name == "endpoint_prefix":
        return raw
    try:
        return float(raw)
    except ValueError:
        return raw


def load_settings(path: str | Path | None = None,
                  environ: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from an optional YAML file and the environment.

    Environment variables win over the file. Raises SettingsError listing
    every rejected value.
    """
    environ = os.environ if environ is None else environ
    overrides: dict = {}

    if path is not None:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise SettingsError([f"{path}: expected a mapping at top level"])
        overrides.update(data)

    for var, name in ENV_OVERRIDES.items():
        raw = environ.get(var)
        if raw:
            overrides[name] = _coerce(name, raw)

    settings = Settings()
    problems = settings.merge_in(**overrides)
    if problems:
        raise SettingsError(problems)
    return settings
