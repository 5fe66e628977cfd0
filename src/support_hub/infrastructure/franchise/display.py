"""
Rendering decisions for resolved franchise/outlet names.

The resolver only reports what it knows (``found`` plus names); turning that
into text shown in ticket lists and exports happens here.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from .normalizer import clean_name
from .types import ResolutionResult, TicketRecord

NO_OUTLET_FOUND = "No Outlet Found"


@dataclass(frozen=True)
class DisplayNames:
    """Franchise and outlet text for one ticket."""

    franchise_name: str
    outlet_name: str

    @property
    def is_placeholder(self) -> bool:
        return self.franchise_name == NO_OUTLET_FOUND and self.outlet_name == NO_OUTLET_FOUND


def display_names(
    record: TicketRecord,
    result: Optional[ResolutionResult],
    fallback_outlet_name: Optional[str] = None,
) -> DisplayNames:
    """
    Pick the names to show for a ticket.

    Precedence for each name: the name stored on the ticket, then a found
    lookup result. The outlet additionally falls back to the outlet name the
    merchant typed on the form (``fallback_outlet_name``, defaulting to the
    record's own). Anything still missing shows NO_OUTLET_FOUND.

    Example:
        >>> record = TicketRecord(id=1, key=None, outlet_name="Main St")
        >>> display_names(record, ResolutionResult.not_found())
        DisplayNames(franchise_name='No Outlet Found', outlet_name='Main St')
    """
    looked_up = result if result is not None and result.found else None

    franchise = clean_name(record.existing_franchise_name)
    if franchise is None and looked_up is not None:
        franchise = clean_name(looked_up.franchise_name)

    outlet = clean_name(record.existing_outlet_name)
    if outlet is None and looked_up is not None:
        outlet = clean_name(looked_up.outlet_name)
    if outlet is None:
        outlet = clean_name(fallback_outlet_name) or clean_name(record.outlet_name)

    return DisplayNames(
        franchise_name=franchise or NO_OUTLET_FOUND,
        outlet_name=outlet or NO_OUTLET_FOUND,
    )


def matches_query(
    values: Iterable[Optional[str]],
    result: Optional[ResolutionResult],
    query: Optional[str],
) -> bool:
    """
    Case-insensitive keyword match over ticket fields and resolved names.

    An empty query matches everything.
    """
    needle = (query or "").strip().lower()
    if not needle:
        return True

    haystack = [value for value in values if value]
    if result is not None:
        haystack.extend(name for name in (result.franchise_name, result.outlet_name) if name)

    return any(needle in str(value).lower() for value in haystack)
