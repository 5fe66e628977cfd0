"""
Batch franchise/outlet name resolver package.

Resolves display names for a batch of support tickets with the fewest calls
to the merchant platform, and writes newly found names back to the tickets.

Resolution Priority:
1. Names already stored on the ticket (no external call)
2. Tickets without a usable (franchise id, outlet id) resolve to "not found"
3. One merchant platform lookup per distinct key, shared by the whole group
4. One backfill write per ticket that newly resolved to a name
"""

from .backfill import BackfillTracker
from .core import BatchNameResolver, DuplicateRecordIdError, resolve_batch
from .lookup_strategy import LookupCache, group_by_key, resolve_via_lookup

__all__ = [
    "BackfillTracker",
    "BatchNameResolver",
    "DuplicateRecordIdError",
    "LookupCache",
    "group_by_key",
    "resolve_batch",
    "resolve_via_lookup",
]
