"""Application configuration loading.

Loads settings from .env file and environment variables with sensible defaults.
Validates configuration and provides clear error messages.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from babel import Locale, UnknownLocaleError
from babel.numbers import get_territory_currencies
from dotenv import load_dotenv

from src.models.notification import NotificationChannel

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///./charity.db"
DEFAULT_CHANNELS = "email,sms"
DEFAULT_LOCALE = "en_US"
DEFAULT_CURRENCY = "USD"


@dataclass
class AppConfig:
    """Runtime configuration for the consistency services."""

    database_url: str = DEFAULT_DATABASE_URL
    """SQLAlchemy database URL (default: local SQLite)"""

    notification_channels: list[NotificationChannel] = field(
        default_factory=lambda: [NotificationChannel.EMAIL, NotificationChannel.SMS]
    )
    """Channels a donation notification is drafted for, in order"""

    locale: str = DEFAULT_LOCALE
    """Babel locale used to format amounts in notification text"""

    currency: str = DEFAULT_CURRENCY
    """ISO 4217 currency code of donation amounts"""

    log_file: str = "logs/server.log"
    """Path to log file"""


def parse_channels(raw: str) -> list[NotificationChannel]:
    """Parse a comma-separated channel list.

    Unknown names are skipped with a warning; duplicates are dropped.
    An empty string yields no channels.
    """
    channels: list[NotificationChannel] = []
    for part in raw.split(","):
        name = part.strip().lower()
        if not name:
            continue
        try:
            channel = NotificationChannel(name)
        except ValueError:
            logger.warning("Unknown notification channel '%s' ignored", name)
            continue
        if channel not in channels:
            channels.append(channel)
    return channels


def _validate_locale(locale_str: str) -> str:
    try:
        Locale.parse(locale_str)
    except (UnknownLocaleError, ValueError) as e:
        raise ValueError(f"Invalid LOCALE '{locale_str}': {e}") from e
    return locale_str


def _currency_from_locale(locale_str: str) -> str:
    """Derive currency code from locale territory (e.g. en_US -> USD)."""
    locale = Locale.parse(locale_str)
    if locale.territory:
        currencies = get_territory_currencies(locale.territory)
        if currencies:
            return currencies[0]
    return DEFAULT_CURRENCY


def load_config() -> AppConfig:
    """
    Load configuration from .env file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (DATABASE_URL, NOTIFICATION_CHANNELS, LOCALE, ...)
    2. .env file in project root
    3. Default values

    Returns:
        AppConfig with all settings resolved

    Raises:
        ValueError: If LOCALE or CURRENCY is invalid
    """
    env_path = Path(".env")
    if env_path.exists():
        load_dotenv(env_path)

    locale_str = _validate_locale(os.getenv("LOCALE", DEFAULT_LOCALE))

    currency = os.getenv("CURRENCY", "").strip().upper() or _currency_from_locale(locale_str)
    if len(currency) != 3 or not currency.isalpha():
        raise ValueError(f"Invalid CURRENCY '{currency}': expected a 3-letter ISO 4217 code")

    return AppConfig(
        database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
        notification_channels=parse_channels(os.getenv("NOTIFICATION_CHANNELS", DEFAULT_CHANNELS)),
        locale=locale_str,
        currency=currency,
        log_file=os.getenv("LOG_FILE", "logs/server.log"),
    )


__all__ = ["AppConfig", "load_config", "parse_channels"]
