"""
Input masks for Brazilian formats.

Pure string transforms mirroring the ones the UI applies on every keystroke.
Each mask is idempotent: mask(mask(x)) == mask(x).
"""

import re
import time
from decimal import Decimal

_NON_DIGITS = re.compile(r"\D", re.ASCII)
_NON_PLATE = re.compile(r"[^A-Z0-9]")


def _digits(value: str | None) -> str:
    return _NON_DIGITS.sub("", value or "")


def mask_phone(value: str | None) -> str:
    """(DD) DDDDD-DDDD, excess digits dropped."""
    masked = _digits(value)
    masked = re.sub(r"(\d{2})(\d)", r"(\1) \2", masked, count=1, flags=re.ASCII)
    masked = re.sub(r"(\d{5})(\d)", r"\1-\2", masked, count=1, flags=re.ASCII)
    return re.sub(r"(-\d{4})\d+?$", r"\1", masked, count=1, flags=re.ASCII)


def mask_cnpj(value: str | None) -> str:
    """DD.DDD.DDD/DDDD-DD, excess digits dropped."""
    masked = _digits(value)
    masked = re.sub(r"(\d{2})(\d)", r"\1.\2", masked, count=1, flags=re.ASCII)
    masked = re.sub(r"(\d{3})(\d)", r"\1.\2", masked, count=1, flags=re.ASCII)
    masked = re.sub(r"(\d{3})(\d)", r"\1/\2", masked, count=1, flags=re.ASCII)
    masked = re.sub(r"(\d{4})(\d)", r"\1-\2", masked, count=1, flags=re.ASCII)
    return re.sub(r"(-\d{2})\d+?$", r"\1", masked, count=1, flags=re.ASCII)


def mask_plate(value: str | None) -> str:
    """AAA-AAAA uppercase (old and Mercosul plates)."""
    masked = _NON_PLATE.sub("", (value or "").upper())
    masked = re.sub(r"(\w{3})(\w)", r"\1-\2", masked, count=1, flags=re.ASCII)
    return re.sub(r"(-\w{4})\w+?$", r"\1", masked, count=1, flags=re.ASCII)


def mask_currency(value: str | None) -> str:
    """Digits are read as cents: "1234" -> "12.34". No digits -> "0.00"."""
    digits = _digits(value)
    if not digits:
        return "0.00"
    return f"{Decimal(int(digits)).scaleb(-2):.2f}"


def display_price(unit_price: float) -> str:
    """Comma-decimal string shown in the price input ("50,00")."""
    return f"{Decimal(str(unit_price)):.2f}".replace(".", ",")


def generate_quote_number() -> str:
    """Timestamp-prefixed quote number, e.g. ORC-1760796000000."""
    return f"ORC-{int(time.time() * 1000)}"
