"""Configuration management for the happenings engine."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from enum import Enum
from pathlib import Path
from typing import Any

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Performance caps for occurrence expansion
DEFAULT_MAX_EVENTS = 200  # Events considered per timeline build
DEFAULT_MAX_PER_EVENT = 40  # Occurrences produced per event
DEFAULT_WINDOW_DAYS = 90  # Window length when the caller gives none


class UnknownPatternPolicy(str, Enum):
    """What to do with events whose schedule could not be interpreted."""

    # Listed only in unknown_events, for data-quality follow-up
    SURFACE_SEPARATELY = "surface_separately"
    # Also shown in the timeline on today's date, flagged is_confident=False
    SHOW_ON_TODAY = "show_on_today"


def parse_env_file(path: Path) -> dict[str, str]:
    """Parse a .env file and return key-value pairs.

    Args:
        path: Path to .env file

    Returns:
        Dictionary of key-value pairs from the .env file.
        Empty dict if file doesn't exist or cannot be read.

    Note:
        - Skips empty lines and comments (lines starting with #)
        - Strips quotes (both single and double) from values
    """
    if not path.exists():
        return {}

    result: dict[str, str] = {}

    try:
        content = path.read_text(encoding="utf-8")
    except OSError:
        logger.debug("Failed to read .env file (continuing): %s", str(path), exc_info=True)
        return result

    for raw_line in content.splitlines():
        line = raw_line.strip()

        if not line or line.startswith("#") or "=" not in line:
            continue

        key, val = line.split("=", 1)
        key = key.strip()
        val = val.strip().strip('"').strip("'")

        if key:
            result[key] = val

    return result


def get_config_value(config: Any, key: str, default: Any = None) -> Any:
    """Get configuration value supporting both dict and attribute-style objects."""
    if isinstance(config, dict):
        return config.get(key, default)
    return getattr(config, key, default)


@dataclass(frozen=True)
class ExpansionConfig:
    """Caps and policies for timeline expansion, with explicit defaults."""

    max_events: int = DEFAULT_MAX_EVENTS
    max_per_event: int = DEFAULT_MAX_PER_EVENT
    window_days: int = DEFAULT_WINDOW_DAYS
    unknown_policy: UnknownPatternPolicy = UnknownPatternPolicy.SURFACE_SEPARATELY

    def __post_init__(self) -> None:
        for name in ("max_events", "max_per_event", "window_days"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
        if not isinstance(self.unknown_policy, UnknownPatternPolicy):
            try:
                object.__setattr__(self, "unknown_policy", UnknownPatternPolicy(self.unknown_policy))
            except ValueError as e:
                raise ConfigurationError(f"Unknown unknown_policy {self.unknown_policy!r}") from e

    @classmethod
    def from_settings(cls, settings: Any) -> ExpansionConfig:
        """Extract expansion configuration from a dict or settings object.

        Args:
            settings: Object or dict with any of the ExpansionConfig field names

        Returns:
            ExpansionConfig with values from settings or defaults
        """
        values = {}
        for f in fields(cls):
            value = get_config_value(settings, f.name)
            if value is not None:
                values[f.name] = value
        return cls(**values)

    @classmethod
    def from_env(cls) -> ExpansionConfig:
        """Build configuration from HAPPENINGS_* environment variables.

        Invalid values are logged and ignored so a bad deployment setting
        never takes the calendar down.
        """
        values: dict[str, Any] = {}

        int_vars = {
            "max_events": "HAPPENINGS_MAX_EVENTS",
            "max_per_event": "HAPPENINGS_MAX_PER_EVENT",
            "window_days": "HAPPENINGS_WINDOW_DAYS",
        }
        for name, env_var in int_vars.items():
            raw = os.environ.get(env_var)
            if not raw:
                continue
            try:
                parsed = int(raw)
            except ValueError:
                logger.warning("Invalid %s=%r; ignoring", env_var, raw)
                continue
            if parsed < 1:
                logger.warning("Invalid %s=%r (must be >= 1); ignoring", env_var, raw)
                continue
            values[name] = parsed

        policy = os.environ.get("HAPPENINGS_UNKNOWN_POLICY")
        if policy:
            try:
                values["unknown_policy"] = UnknownPatternPolicy(policy.strip().lower())
            except ValueError:
                logger.warning("Invalid HAPPENINGS_UNKNOWN_POLICY=%r; ignoring", policy)

        return cls(**values)


class ConfigManager:
    """Manages engine configuration from environment variables and .env files."""

    def __init__(self, env_file_path: Path | None = None):
        """Initialize configuration manager.

        Args:
            env_file_path: Optional path to .env file (defaults to .env in current directory)
        """
        self.env_file_path = env_file_path or Path.cwd() / ".env"

    def load_env_file(self) -> list[str]:
        """Load .env file and set environment variables.

        Only sets variables that are not already in the environment.

        Returns:
            List of environment variable keys that were loaded from .env file
        """
        if not self.env_file_path.exists():
            logger.debug("No .env file found at %s", self.env_file_path)
            return []

        set_keys = []
        for key, val in parse_env_file(self.env_file_path).items():
            if key not in os.environ:
                os.environ[key] = val
                set_keys.append(key)

        if set_keys:
            logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))

        return set_keys

    def load_expansion_config(self) -> ExpansionConfig:
        """Load .env defaults, then build ExpansionConfig from the environment."""
        self.load_env_file()
        return ExpansionConfig.from_env()
