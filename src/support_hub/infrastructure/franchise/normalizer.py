"""
Key normalization helpers for franchise/outlet resolution.

Franchise and outlet ids on tickets are typed by merchants on the support
form, so they arrive with whitespace, separators or stray characters. The
merchant platform only knows numeric ids; everything else is dropped before a
key is built.
"""

import re
from typing import Any, Optional

from .types import ResolutionKey

_NON_DIGIT = re.compile(r"\D")


def clean_id(value: Any) -> str:
    """
    Normalize a franchise or outlet id.

    Examples:
        >>> clean_id(" 12-3 ")
        '123'
        >>> clean_id(None)
        ''
    """
    if value is None:
        return ""
    return _NON_DIGIT.sub("", str(value).strip())


def make_resolution_key(franchise_id: Any, outlet_id: Any) -> Optional[ResolutionKey]:
    """
    Build a normalized key, or None when either id is empty after cleaning.

    Examples:
        >>> make_resolution_key(" 10 ", "20").cache_key
        '10-20'
        >>> make_resolution_key("10", "   ") is None
        True
    """
    fid = clean_id(franchise_id)
    oid = clean_id(outlet_id)
    if not fid or not oid:
        return None
    return ResolutionKey(franchise_id=fid, outlet_id=oid)


def clean_name(value: Any) -> Optional[str]:
    """Trim a stored or returned name; empty and non-string values become None."""
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None
