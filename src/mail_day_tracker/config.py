"""Settings loaded from the environment (and an optional .env file)."""

from __future__ import annotations

import os
from dataclasses import dataclass
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from .constants import (
    CLEANUP_ACTIONS,
    DEFAULT_CLEANUP_ACTION,
    DEFAULT_COUNTRIES,
    DEFAULT_DEDUP_THRESHOLD,
    DEFAULT_IMAP_SERVER,
    DEFAULT_LOG_LEVEL,
    DEFAULT_MAILBOX,
    DEFAULT_PORT,
    DEFAULT_SYNC_INTERVAL,
)


class ConfigError(Exception):
    """Raised when required settings are missing or invalid."""


def resolve_zone(name: str) -> ZoneInfo:
    """Return the ZoneInfo for an IANA identifier or raise ConfigError."""
    if not name:
        raise ConfigError("TIMEZONE is not set")
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigError(f"loading TIMEZONE {name!r}: {exc}") from exc


def parse_countries(raw: str | None) -> tuple[str, ...]:
    """Parse a comma-separated country list, keeping order."""
    if raw is None or not raw.strip():
        return DEFAULT_COUNTRIES
    countries = tuple(c.strip() for c in raw.split(",") if c.strip())
    if not countries:
        raise ConfigError("COUNTRIES must name at least one country")
    if len(set(countries)) != len(countries):
        raise ConfigError(f"COUNTRIES contains duplicates: {', '.join(countries)}")
    return countries


def _positive_int(env: dict, key: str, default: int) -> int:
    raw = env.get(key, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise ConfigError(f"{key} must be positive, got {value}")
    return value


@dataclass(frozen=True)
class Settings:
    """Explicit configuration handed to every component."""

    imap_user: str
    imap_password: str
    timezone: str
    imap_server: str = DEFAULT_IMAP_SERVER
    mailbox: str = DEFAULT_MAILBOX
    trash_mailbox: str = ""
    cleanup_action: str = DEFAULT_CLEANUP_ACTION
    countries: tuple[str, ...] = DEFAULT_COUNTRIES
    dedup_threshold: int = DEFAULT_DEDUP_THRESHOLD
    sync_interval: int = DEFAULT_SYNC_INTERVAL
    days_api_url: str = ""
    days_api_user: str = ""
    days_api_password: str = ""
    port: int = DEFAULT_PORT
    log_level: str = DEFAULT_LOG_LEVEL

    @property
    def zone(self) -> ZoneInfo:
        return resolve_zone(self.timezone)

    @classmethod
    def from_env(cls, env: dict | None = None, dotenv: bool = True) -> Settings:
        """Build settings from ``env`` (defaults to ``os.environ``).

        Raises ConfigError for missing credentials, an unknown time zone,
        a bad country list or non-positive numbers.
        """
        if env is None:
            if dotenv:
                load_dotenv()
            env = dict(os.environ)

        user = env.get("IMAP_ACCOUNT", "").strip()
        password = env.get("IMAP_APP_PASS", "").strip()
        if not user or not password:
            raise ConfigError("Please set IMAP_ACCOUNT and IMAP_APP_PASS environment variables.")

        timezone = env.get("TIMEZONE", "").strip()
        resolve_zone(timezone)

        cleanup_action = (env.get("CLEANUP_ACTION", "").strip() or DEFAULT_CLEANUP_ACTION).lower()
        if cleanup_action not in CLEANUP_ACTIONS:
            raise ConfigError(
                f"CLEANUP_ACTION must be one of {', '.join(CLEANUP_ACTIONS)}, got {cleanup_action!r}"
            )

        return cls(
            imap_user=user,
            imap_password=password,
            timezone=timezone,
            imap_server=env.get("IMAP_SERVER", "").strip() or DEFAULT_IMAP_SERVER,
            mailbox=env.get("IMAP_MAILBOX", "").strip() or DEFAULT_MAILBOX,
            trash_mailbox=env.get("IMAP_TRASH", "").strip(),
            cleanup_action=cleanup_action,
            countries=parse_countries(env.get("COUNTRIES")),
            dedup_threshold=_positive_int(env, "DEDUP_THRESHOLD", DEFAULT_DEDUP_THRESHOLD),
            sync_interval=_positive_int(env, "SYNC_INTERVAL", DEFAULT_SYNC_INTERVAL),
            days_api_url=env.get("DAYS_API", "").strip().rstrip("/"),
            days_api_user=env.get("DAYS_API_USER", "").strip(),
            days_api_password=env.get("DAYS_API_PASS", "").strip(),
            port=_positive_int(env, "PORT", DEFAULT_PORT),
            log_level=env.get("LOG_LEVEL", "").strip() or DEFAULT_LOG_LEVEL,
        )

    def require_days_api(self) -> None:
        if not self.days_api_url:
            raise ConfigError("DAYS_API must be set to sync days")
