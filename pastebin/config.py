"""
Configuration module for the ephemeral pastebin.
Loads environment variables once at startup into an explicit Settings object.
"""
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

_TRUTHY = ("true", "1", "yes")


class ConfigError(ValueError):
    """Raised when an environment value cannot be parsed."""


def _as_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in _TRUTHY


def _as_int(name: str, value: Optional[str], default: int) -> int:
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from e


def _as_float(name: str, value: Optional[str], default: float) -> float:
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {value!r}") from e


@dataclass
class Settings:
    """Application settings. Built once and passed to create_app()."""

    REDIS_URL: str = "redis://localhost:6379"
    REDIS_TIMEOUT_SECONDS: float = 5.0
    DEBUG: bool = True
    APP_DOMAIN: Optional[str] = None
    TEST_MODE: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"
    PASTE_ID_LENGTH: int = 10
    ALLOW_MEMORY_FALLBACK: bool = True

    def __post_init__(self):
        if self.PASTE_ID_LENGTH < 10:
            raise ConfigError("PASTE_ID_LENGTH must be >= 10")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read from. Defaults to os.environ after
                loading a .env file.

        Returns:
            Populated Settings instance

        Raises:
            ConfigError: If a numeric variable is malformed
        """
        if environ is None:
            load_dotenv()
            environ = os.environ

        defaults = cls()
        return cls(
            REDIS_URL=environ.get("REDIS_URL", defaults.REDIS_URL),
            REDIS_TIMEOUT_SECONDS=_as_float(
                "REDIS_TIMEOUT_SECONDS",
                environ.get("REDIS_TIMEOUT_SECONDS"),
                defaults.REDIS_TIMEOUT_SECONDS,
            ),
            DEBUG=_as_bool(environ.get("DEBUG"), defaults.DEBUG),
            APP_DOMAIN=environ.get("APP_DOMAIN") or None,
            TEST_MODE=_as_bool(environ.get("TEST_MODE"), defaults.TEST_MODE),
            HOST=environ.get("HOST", defaults.HOST),
            PORT=_as_int("PORT", environ.get("PORT"), defaults.PORT),
            LOG_LEVEL=environ.get("LOG_LEVEL", defaults.LOG_LEVEL).upper(),
            PASTE_ID_LENGTH=_as_int(
                "PASTE_ID_LENGTH", environ.get("PASTE_ID_LENGTH"), defaults.PASTE_ID_LENGTH
            ),
            ALLOW_MEMORY_FALLBACK=_as_bool(
                environ.get("ALLOW_MEMORY_FALLBACK"), defaults.ALLOW_MEMORY_FALLBACK
            ),
        )
