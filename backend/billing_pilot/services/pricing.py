"""
Price and identifier normalization shared by the parsers and Stripe services.
"""

import math
import re
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Optional, Union

CURRENCY_SYMBOLS = "$€£¥"

_NON_ALNUM = re.compile(r"[^a-z0-9]")

# Largest price accepted in major units; minor units must stay exact in Decimal
MAX_PRICE = 10 ** 12


def parse_price(value: Union[str, int, float, None]) -> Optional[float]:
    """
    Parse a price-shaped value into a float in major currency units.

    Strips a leading currency symbol and ``,`` thousands separators.
    Returns None for anything that isn't a finite number between 0 and
    MAX_PRICE; callers drop the row rather than defaulting to zero.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        number = float(value)
    else:
        cleaned = str(value).strip().lstrip(CURRENCY_SYMBOLS).strip().replace(",", "")
        if not cleaned:
            return None
        try:
            number = float(cleaned)
        except ValueError:
            return None

    if math.isnan(number) or math.isinf(number) or number < 0 or number > MAX_PRICE:
        return None
    return number


def to_minor_units(price: float) -> int:
    """Convert a major-unit price to integer minor units, rounding half away from zero."""
    try:
        amount = Decimal(str(price)) * 100
        return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except InvalidOperation:
        raise ValueError(f"Invalid price: {price!r}")


def normalize_event_name(value: str) -> str:
    """Lowercase an identifier and replace every non-alphanumeric character with ``_``."""
    return _NON_ALNUM.sub("_", value.strip().lower())


def generate_event_name(product_name: str, max_length: int = 50) -> str:
    """
    Build a Stripe meter event name from a product name.

    "API Calls (v2)" -> "api_calls_v2"
    """
    name = re.sub(r"[^a-z0-9\s]", "", product_name.lower())
    name = re.sub(r"\s+", "_", name)
    name = re.sub(r"_+", "_", name).strip("_")
    return name[:max_length]
