"""
Franchise/Outlet Name Resolution

Turns the (franchise id, outlet id) pair on each support ticket into the
franchise and outlet names shown to staff.

Components:
- BatchNameResolver / resolve_batch: Batch resolution with stored-name fast
  path, single-flight lookups and name backfill
- BackfillTracker: Request-scoped registry of pending backfill writes
- FranchiseProvider: Merchant platform lookup collaborator
- TicketNameService: Page-level wiring of repository, provider and resolver
- display_names / matches_query: Rendering decisions for resolved names
"""

from __future__ import annotations

import importlib
from typing import Any

__all__ = [
    "BackfillTracker",
    "BatchNameResolver",
    "DuplicateRecordIdError",
    "resolve_batch",
    "ResolutionKey",
    "ResolutionResult",
    "ResolutionSource",
    "TicketRecord",
    "BatchResolutionReport",
    "BatchResolutionStatistics",
    "clean_id",
    "make_resolution_key",
    "FranchiseProvider",
    "FranchiseInfoProvider",
    "TicketNameService",
    "ResolvedPage",
    "NO_OUTLET_FOUND",
    "DisplayNames",
    "display_names",
    "matches_query",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "BackfillTracker": (".resolver", "BackfillTracker"),
    "BatchNameResolver": (".resolver", "BatchNameResolver"),
    "DuplicateRecordIdError": (".resolver", "DuplicateRecordIdError"),
    "resolve_batch": (".resolver", "resolve_batch"),
    "ResolutionKey": (".types", "ResolutionKey"),
    "ResolutionResult": (".types", "ResolutionResult"),
    "ResolutionSource": (".types", "ResolutionSource"),
    "TicketRecord": (".types", "TicketRecord"),
    "BatchResolutionReport": (".types", "BatchResolutionReport"),
    "BatchResolutionStatistics": (".types", "BatchResolutionStatistics"),
    "clean_id": (".normalizer", "clean_id"),
    "make_resolution_key": (".normalizer", "make_resolution_key"),
    "FranchiseProvider": (".franchise_provider", "FranchiseProvider"),
    "FranchiseInfoProvider": (".franchise_provider", "FranchiseInfoProvider"),
    "TicketNameService": (".service", "TicketNameService"),
    "ResolvedPage": (".service", "ResolvedPage"),
    "NO_OUTLET_FOUND": (".display", "NO_OUTLET_FOUND"),
    "DisplayNames": (".display", "DisplayNames"),
    "display_names": (".display", "display_names"),
    "matches_query": (".display", "matches_query"),
}


def __getattr__(name: str) -> Any:
    if name not in _LAZY_IMPORTS:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module_name, attr_name = _LAZY_IMPORTS[name]
    module = importlib.import_module(module_name, __name__)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value


def __dir__() -> list[str]:
    return sorted(set(list(globals().keys()) + list(_LAZY_IMPORTS.keys())))
