"""
Stored-name resolution (fast path).

Tickets that already carry a resolved franchise or outlet name are answered
from those names: no lookup is made on their behalf and nothing is written
back, since the names are already durable.
"""

from typing import Dict, List, Tuple

from support_hub.utils.logging import get_logger

from ..normalizer import clean_name
from ..types import RecordId, ResolutionResult, TicketRecord

logger = get_logger(__name__)


def resolve_via_stored_names(
    records: List[TicketRecord],
) -> Tuple[Dict[RecordId, ResolutionResult], List[TicketRecord]]:
    """
    Split a batch into records answered from stored names and the rest.

    Args:
        records: Batch in caller order.

    Returns:
        Tuple of (resolved results by record id, records still unresolved)
    """
    resolved: Dict[RecordId, ResolutionResult] = {}
    remaining: List[TicketRecord] = []

    for record in records:
        franchise_name = clean_name(record.existing_franchise_name)
        outlet_name = clean_name(record.existing_outlet_name)
        if franchise_name or outlet_name:
            resolved[record.id] = ResolutionResult(
                franchise_name=franchise_name,
                outlet_name=outlet_name,
                found=True,
            )
        else:
            remaining.append(record)

    logger.debug(
        "franchise_resolver.stored_names_complete",
        hits=len(resolved),
        remaining=len(remaining),
    )
    return resolved, remaining
