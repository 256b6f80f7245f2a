"""Configuration loaded from environment variables."""
import base64
import binascii
import json
import os
import re
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from processor.window import MONTHS_POLICY, WINDOW_POLICIES

ENV_PREFIX = 'GCALJSON_'

_DURATION_UNITS = {
    'ns': 1e-9,
    'us': 1e-6,
    'µs': 1e-6,
    'ms': 1e-3,
    's': 1.0,
    'm': 60.0,
    'h': 3600.0,
}
_DURATION_PART = re.compile(r'(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)')


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid."""


def parse_duration(text: str) -> float:
    """
    Parse a duration such as "90s", "5m" or "1h30m" into seconds.

    Args:
        text: Sequence of decimal numbers, each with a unit suffix

    Returns:
        Duration in seconds

    Raises:
        ConfigError: If the text is not a valid duration
    """
    text = text.strip()
    if not text:
        raise ConfigError("Empty duration")
    if text == '0':
        return 0.0

    total = 0.0
    position = 0
    while position < len(text):
        match = _DURATION_PART.match(text, position)
        if not match:
            raise ConfigError(f"Invalid duration: {text!r}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()
    return total


def decode_credential(encoded: str) -> Dict[str, Any]:
    """
    Decode a base64-encoded service account JSON key.

    Raises:
        ConfigError: If the value is not base64 of a JSON object
    """
    try:
        raw = base64.b64decode(encoded.strip(), validate=True)
        info = json.loads(raw)
    except (binascii.Error, ValueError) as e:
        raise ConfigError(f"Failed to decode credentials: {e}") from e
    if not isinstance(info, dict):
        raise ConfigError("Credentials must be a JSON object")
    return info


def _positive_number(env: Mapping[str, str], name: str, default: str) -> float:
    raw = env.get(name, default)
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"Invalid {name}: {raw!r}") from None
    if value <= 0:
        raise ConfigError(f"{name} must be positive")
    return value


@dataclass(frozen=True)
class Settings:
    """Process settings, validated once at startup."""
    credential: Dict[str, Any]
    calendar_id: str
    cache_duration: float = 300.0
    window_policy: str = MONTHS_POLICY
    days_ahead: int = 90
    timezone: Optional[str] = None
    upstream_timeout: float = 30.0
    host: str = '0.0.0.0'
    port: int = 8080
    shutdown_timeout: float = 5.0
    log_level: str = 'INFO'

    @property
    def tzinfo(self) -> Optional[ZoneInfo]:
        return ZoneInfo(self.timezone) if self.timezone else None

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> 'Settings':
        """
        Read settings from environment variables.

        Args:
            env: Mapping to read instead of os.environ

        Returns:
            Validated Settings

        Raises:
            ConfigError: If a required variable is missing or a value is invalid
        """
        env = os.environ if env is None else env

        encoded = env.get(f'{ENV_PREFIX}GOOGLE_CREDENTIAL', '')
        calendar_id = env.get(f'{ENV_PREFIX}GOOGLE_CALENDAR_ID', '')
        if not encoded or not calendar_id:
            raise ConfigError(
                f"{ENV_PREFIX}GOOGLE_CREDENTIAL and "
                f"{ENV_PREFIX}GOOGLE_CALENDAR_ID must be set"
            )

        cache_duration = parse_duration(
            env.get(f'{ENV_PREFIX}CACHE_DURATION') or '5m'
        )
        if cache_duration <= 0:
            raise ConfigError(f"{ENV_PREFIX}CACHE_DURATION must be positive")

        window_policy = env.get(f'{ENV_PREFIX}WINDOW_POLICY', MONTHS_POLICY).lower()
        if window_policy not in WINDOW_POLICIES:
            raise ConfigError(
                f"{ENV_PREFIX}WINDOW_POLICY must be one of {', '.join(WINDOW_POLICIES)}"
            )

        raw_days = env.get(f'{ENV_PREFIX}DAYS_AHEAD', '90')
        if not raw_days.isdigit() or int(raw_days) <= 0:
            raise ConfigError(
                f"{ENV_PREFIX}DAYS_AHEAD must be a positive integer: {raw_days!r}"
            )
        days_ahead = int(raw_days)

        timezone = env.get(f'{ENV_PREFIX}TIMEZONE') or None
        if timezone:
            try:
                ZoneInfo(timezone)
            except (ZoneInfoNotFoundError, ValueError):
                raise ConfigError(f"Unknown timezone: {timezone}") from None

        port = env.get(f'{ENV_PREFIX}PORT', '8080')
        if not port.isdigit() or not 0 < int(port) < 65536:
            raise ConfigError(f"Invalid {ENV_PREFIX}PORT: {port!r}")

        return cls(
            credential=decode_credential(encoded),
            calendar_id=calendar_id,
            cache_duration=cache_duration,
            window_policy=window_policy,
            days_ahead=days_ahead,
            timezone=timezone,
            upstream_timeout=_positive_number(
                env, f'{ENV_PREFIX}UPSTREAM_TIMEOUT', '30'
            ),
            host=env.get(f'{ENV_PREFIX}HOST', '0.0.0.0'),
            port=int(port),
            shutdown_timeout=_positive_number(
                env, f'{ENV_PREFIX}SHUTDOWN_TIMEOUT', '5'
            ),
            log_level=env.get('LOG_LEVEL', 'INFO')
        )
