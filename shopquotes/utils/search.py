"""
Free-text search over quotes.

Matching is a plain substring test after normalization, so masked values
("(11) 98765-4321", "ABC-1234") match unformatted queries and vice versa.
"""

import re
import unicodedata
from typing import Iterable, Optional

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize(value: Optional[str]) -> str:
    """Lower-case, strip diacritics, keep only ASCII letters and digits."""
    text = unicodedata.normalize("NFD", (value or "").lower())
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    return _NON_ALNUM.sub("", text)


def _field(obj, name: str) -> Optional[str]:
    if obj is None:
        return None
    if isinstance(obj, dict):
        value = obj.get(name)
    else:
        value = getattr(obj, name, None)
    return None if value is None else str(value)


def _field_obj(obj, name: str):
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def searchable_fields(quote) -> list[str]:
    """Quote number, client name/phone/vehicle/plate and every item description."""
    client = _field_obj(quote, "client")
    fields = [_field(quote, "number")]
    fields.extend(_field(client, name) for name in ("name", "phone", "vehicle", "plate"))
    for item in _field_obj(quote, "items") or []:
        fields.append(_field(item, "description"))
    return [f for f in fields if f]


def quote_matches(quote, query: str) -> bool:
    q = normalize(query)
    if not q:
        return True
    return any(q in normalize(value) for value in searchable_fields(quote))


def filter_quotes(quotes: Iterable, query: Optional[str]) -> list:
    """Quotes matching query, order preserved; everything for an empty query."""
    quotes = list(quotes)
    if not normalize(query):
        return quotes
    return [quote for quote in quotes if quote_matches(quote, query)]
