"""
Response parsers for the merchant platform connector.
"""

from typing import Any, Optional

from .models import FranchiseOutletInfo


def _name_or_none(value: Any) -> Optional[str]:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return None


def parse_franchise_outlet(payload: Any) -> FranchiseOutletInfo:
    """
    Parse a franchise-retrieve response body.

    The franchise name is the top-level ``name``. ``outlets`` is either a list
    (the first element carrying a ``name`` wins) or a single outlet object.

    Example:
        >>> parse_franchise_outlet({"name": " Beta Mart ", "outlets": [{"name": "Beta #3"}]})
        FranchiseOutletInfo(franchise_name='Beta Mart', outlet_name='Beta #3')
    """
    if not isinstance(payload, dict):
        return FranchiseOutletInfo()

    franchise_name = _name_or_none(payload.get("name"))

    outlet_name: Optional[str] = None
    outlets = payload.get("outlets")
    if isinstance(outlets, list):
        first = next(
            (outlet for outlet in outlets if isinstance(outlet, dict) and "name" in outlet),
            None,
        )
        if first is not None:
            outlet_name = _name_or_none(first.get("name"))
    elif isinstance(outlets, dict):
        outlet_name = _name_or_none(outlets.get("name"))

    return FranchiseOutletInfo(franchise_name=franchise_name, outlet_name=outlet_name)
