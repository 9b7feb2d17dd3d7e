"""
Free-text price and quantity normalization.

Storefront pages render prices as display strings ("$1,234.56", "1 200,00 USD").
Every price the harness reads goes through ``parse_price`` so scraped search results
and cart rows are compared on the same footing.
"""

import re
from decimal import Decimal, InvalidOperation

_NON_NUMERIC = re.compile(r"[^\d.]")
_LEADING_NUMBER = re.compile(r"^\d*(?:\.\d*)?")
_LEADING_INTEGER = re.compile(r"^\s*[+-]?\d+")

ZERO = Decimal("0")


def parse_price(text) -> Decimal:
    """
    Strip every character that is not a digit or a dot, then parse the leading number.

    Unparseable input yields ``Decimal("0")`` instead of raising:

        >>> parse_price("$1,234.56 USD")
        Decimal('1234.56')
        >>> parse_price("N/A")
        Decimal('0')
    """
    if text is None:
        return ZERO
    cleaned = _NON_NUMERIC.sub("", str(text))
    # "1.2.3" parses as 1.2, matching a leading-prefix float parse
    number = _LEADING_NUMBER.match(cleaned).group(0)
    if not any(ch.isdigit() for ch in number):
        return ZERO
    if number.endswith("."):
        number = number[:-1]
    if number.startswith("."):
        number = "0" + number
    try:
        return Decimal(number)
    except InvalidOperation:
        return ZERO


def parse_quantity(text, default: int = 1) -> int:
    """Leading integer of a quantity input; missing, unparseable or zero gives ``default``."""
    if text is None:
        return default
    match = _LEADING_INTEGER.match(str(text))
    if not match:
        return default
    value = int(match.group(0))
    return value or default


def format_price(value: Decimal) -> str:
    return f"${value:,.2f}"
