from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass

from ics_reshaper.generator import DEFAULT_FILENAME_MAX_LENGTH, DEFAULT_PRODID

ENV_PREFIX = "ICSR_"

DEFAULT_SETTINGS: dict[str, str] = {
    "default_weekly_count": "5",
    "filename_max_length": str(DEFAULT_FILENAME_MAX_LENGTH),
    "prodid": DEFAULT_PRODID,
    "log_level": "WARNING",
}
ALLOWED_SETTING_KEYS: set[str] = set(DEFAULT_SETTINGS)

_POSITIVE_INT_KEYS: set[str] = {"default_weekly_count", "filename_max_length"}
_LOG_LEVEL_VALUES: set[str] = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class ConfigError(ValueError):
    """Raised when an ICSR_* setting is unknown or has an invalid value."""


@dataclass(frozen=True)
class Settings:
    default_weekly_count: int
    filename_max_length: int
    prodid: str
    log_level: str


def env_var_name(key: str) -> str:
    return f"{ENV_PREFIX}{key.upper()}"


def validate_setting(key: str, value: str) -> None:
    if key not in ALLOWED_SETTING_KEYS:
        allowed = ", ".join(sorted(ALLOWED_SETTING_KEYS))
        raise ConfigError(f"Unknown setting key: {key}. Allowed keys: {allowed}.")

    if key in _POSITIVE_INT_KEYS:
        parsed = _parse_int(value, key)
        if parsed < 1:
            raise ConfigError(f"Invalid value for {key}: must be an integer >= 1.")
        return

    if key == "prodid":
        if not value.strip():
            raise ConfigError(f"Invalid value for {key}: must not be empty.")
        return

    if key == "log_level":
        if value.strip().upper() not in _LOG_LEVEL_VALUES:
            allowed = ", ".join(sorted(_LOG_LEVEL_VALUES))
            raise ConfigError(f"Invalid value for {key}: must be one of {allowed}.")
        return


def _parse_int(value: str, key: str) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigError(f"Invalid value for {key}: must be an integer.") from exc


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Read ICSR_* variables over the defaults. Raises ConfigError on the first bad value."""
    source = os.environ if env is None else env
    values: dict[str, str] = {}
    for key, default in DEFAULT_SETTINGS.items():
        raw = source.get(env_var_name(key))
        value = default if raw is None or not raw.strip() else raw.strip()
        validate_setting(key, value)
        values[key] = value

    return Settings(
        default_weekly_count=int(values["default_weekly_count"]),
        filename_max_length=int(values["filename_max_length"]),
        prodid=values["prodid"],
        log_level=values["log_level"].upper(),
    )


def list_settings(settings: Settings) -> list[tuple[str, str]]:
    return sorted((key, str(value)) for key, value in asdict(settings).items())
