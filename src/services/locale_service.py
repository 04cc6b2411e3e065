"""Locale-aware formatting of monetary amounts.

Uses the babel library. Locale and currency come from AppConfig
(LOCALE / CURRENCY env vars); callers may override both per call.

Example:
    >>> format_amount(Decimal("400"), currency="USD", locale="en_US")
    '$400.00'
"""

import logging
from decimal import Decimal

from babel import Locale, UnknownLocaleError
from babel.numbers import format_currency as babel_format_currency
from babel.numbers import format_decimal as babel_format_decimal

from src.services.config import DEFAULT_CURRENCY, DEFAULT_LOCALE

logger = logging.getLogger(__name__)


def resolve_locale(locale_str: str | None) -> str:
    """Validate a locale string, falling back to the default.

    Args:
        locale_str: Locale string (e.g., 'en_US'); None means default

    Returns:
        A locale babel can parse
    """
    if not locale_str:
        return DEFAULT_LOCALE
    try:
        Locale.parse(locale_str)
        return locale_str
    except (UnknownLocaleError, ValueError) as e:
        logger.warning(f"Invalid locale '{locale_str}': {e}. Falling back to '{DEFAULT_LOCALE}'")
        return DEFAULT_LOCALE


def format_amount(
    amount: Decimal,
    currency: str | None = None,
    locale: str | None = None,
    include_symbol: bool = True,
) -> str:
    """Format monetary amount according to locale.

    Args:
        amount: Amount to format (kept as Decimal, no float rounding)
        currency: ISO 4217 code, default USD
        locale: Babel locale, default en_US
        include_symbol: Whether to include currency symbol (default True)

    Returns:
        Formatted currency string (e.g., '$1,234.56')
    """
    locale = resolve_locale(locale)
    if include_symbol:
        return babel_format_currency(amount, currency or DEFAULT_CURRENCY, locale=locale)
    return babel_format_decimal(amount, format="#,##0.00", locale=locale)


__all__ = ["format_amount", "resolve_locale"]
