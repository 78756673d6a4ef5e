"""
Configuration loading and validation for throttlify.

Single source of truth for throttle options, profiles and app settings.
"""

import math
import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from pathlib import Path


class ConfigurationError(Exception):
    """Raised when configuration is missing or invalid."""


class InvalidArgumentError(ConfigurationError):
    """Raised when a throttle primitive is handed an argument it cannot use."""


def _is_number(value) -> bool:
    # bool is an int subclass but never a valid limit
    if isinstance(value, bool):
        return False
    return isinstance(value, (int, float)) and not math.isnan(value)


def _check_positive(name: str, value) -> None:
    if not _is_number(value):
        raise ConfigurationError(f'"{name}" must be a number')
    if value <= 0:
        raise ConfigurationError(f'"{name}" must be greater than 0')


@dataclass(frozen=True)
class ThrottleOptions:
    """Limits for one throttled operation.

    concurrent: max calls in flight at once (None = unbounded)
    duration:   rolling window length in milliseconds
    max:        max calls admitted per window
    """
    concurrent: int | None = None
    duration: float = 60000
    max: int = 60

    def validate(self) -> 'ThrottleOptions':
        """Raise ConfigurationError unless every limit is a positive number."""
        _check_positive("duration", self.duration)
        _check_positive("max", self.max)
        if self.concurrent is not None:
            _check_positive("concurrent", self.concurrent)
        return self

    @classmethod
    def from_mapping(cls, raw: Mapping | None) -> 'ThrottleOptions':
        """Build options from a plain dict, rejecting unknown keys."""
        raw = dict(raw or {})
        known = {f.name for f in fields(cls)}
        unknown = set(raw) - known
        if unknown:
            raise ConfigurationError(f"Unknown throttle option(s): {', '.join(sorted(unknown))}")
        return cls(**raw)


PROFILES: dict[str, ThrottleOptions] = {
    "default": ThrottleOptions(duration=60000, max=60),
    "short": ThrottleOptions(duration=15000, max=10),
}

ENV_PREFIX = "THROTTLIFY_"


def get_profile(name: str) -> ThrottleOptions:
    try:
        return PROFILES[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown profile '{name}'. Available: {', '.join(sorted(PROFILES))}"
        ) from None


def _parse_env_number(key: str, value: str) -> int | float:
    try:
        number = float(value)
    except ValueError:
        raise ConfigurationError(f"{key} must be a number, got '{value}'") from None
    return int(number) if number.is_integer() else number


def apply_env_overrides(options: ThrottleOptions, environ: Mapping[str, str] | None = None) -> ThrottleOptions:
    """Override options from THROTTLIFY_CONCURRENT / _DURATION / _MAX.

    Empty values are ignored. The result is validated.
    """
    environ = os.environ if environ is None else environ
    overrides = {}
    for name in ("concurrent", "duration", "max"):
        key = ENV_PREFIX + name.upper()
        value = environ.get(key, "").strip()
        if value:
            overrides[name] = _parse_env_number(key, value)
    return replace(options, **overrides).validate()


@dataclass(frozen=True)
class LoggingConfig:
    verbose_console_logging: bool = True


@dataclass(frozen=True)
class HTTPConfig:
    timeout: float = 10.0
    user_agent: str = "throttlify/0.1.0"


@dataclass(frozen=True)
class AppConfig:
    throttle: ThrottleOptions = ThrottleOptions()
    logging: LoggingConfig = LoggingConfig()
    http: HTTPConfig = HTTPConfig()
    project_root: Path = Path(".")

    def resolve_path(self, path: str | Path) -> Path:
        """Resolve a path relative to project_root.

        - Expands ~ to home directory
        - Returns absolute paths unchanged
        - Resolves relative paths against project_root
        """
        p = Path(path).expanduser()
        if p.is_absolute():
            return p
        return self.project_root / p


def load_config(config_path: str | Path = "config.toml") -> AppConfig:
    """Load configuration from TOML file and return an AppConfig instance.

    The [throttle] section may name a base `profile`; any other keys in the
    section override that profile. Missing sections fall back to defaults.
    """
    config_file = Path(config_path)
    if not config_file.exists():
        raise ConfigurationError(f"Configuration file '{config_path}' not found.")

    try:
        with open(config_file, "rb") as f:
            raw = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in '{config_path}': {e}") from e

    project_root = config_file.resolve().parent

    throttle_raw = raw.get("throttle", {})
    if not isinstance(throttle_raw, dict):
        raise ConfigurationError(f"[throttle] in '{config_path}' must be a table")
    throttle_raw = dict(throttle_raw)
    profile = throttle_raw.pop("profile", "default")
    if not isinstance(profile, str):
        raise ConfigurationError(f"throttle.profile must be a string, got {type(profile).__name__}")
    base = get_profile(profile)
    overrides = ThrottleOptions.from_mapping(throttle_raw)
    throttle = replace(base, **{k: getattr(overrides, k) for k in throttle_raw}).validate()

    try:
        logging_cfg = LoggingConfig(**raw.get("logging", {}))
        http = HTTPConfig(**raw.get("http", {}))
    except TypeError as e:
        raise ConfigurationError(f"Invalid setting in '{config_path}': {e}") from e

    return AppConfig(
        throttle=throttle,
        logging=logging_cfg,
        http=http,
        project_root=project_root,
    )
