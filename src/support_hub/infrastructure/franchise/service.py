"""
Ticket name service: load a page of tickets and resolve their names.

Wires the ticket repository (read + persistence) and the franchise provider
(lookup) into the batch resolver for one request.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional

from support_hub.config.settings import Settings, get_settings
from support_hub.utils.error_reporter import ResolutionErrorReporter
from support_hub.utils.logging import get_logger

from .display import DisplayNames, display_names
from .resolver import BackfillTracker, BatchNameResolver
from .resolver.invocation import call_collaborator
from .types import BatchResolutionReport, PersistFn, RecordId, TicketRecord

if TYPE_CHECKING:
    from support_hub.io.repositories.ticket_repository import TicketRepository

    from .franchise_provider import FranchiseInfoProvider

logger = get_logger(__name__)


@dataclass
class ResolvedPage:
    """A page of tickets together with their resolution report."""

    records: List[TicketRecord]
    report: BatchResolutionReport = field(
        default_factory=lambda: BatchResolutionReport(results={})
    )

    def display(self) -> Dict[RecordId, DisplayNames]:
        return {
            record.id: display_names(record, self.report.results.get(record.id))
            for record in self.records
        }


class TicketNameService:
    """
    Resolve franchise/outlet names for pages of support tickets.

    Example:
        >>> service = TicketNameService(TicketRepository(engine), FranchiseProvider())
        >>> page = await service.resolve_page(limit=50)
        >>> page.display()[ticket_id].franchise_name
        'Beta Mart'
    """

    def __init__(
        self,
        repository: "TicketRepository",
        provider: "FranchiseInfoProvider",
        *,
        error_reporter: Optional[ResolutionErrorReporter] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.repository = repository
        self.provider = provider
        self.error_reporter = error_reporter or ResolutionErrorReporter()
        self.settings = settings or get_settings()

    def _resolver(self, persist: Optional[PersistFn]) -> BatchNameResolver:
        return BatchNameResolver(
            self.provider.lookup,
            persist or self.repository.store_resolution,
            error_reporter=self.error_reporter,
            max_concurrency=self.settings.lookup_max_concurrency,
            drain_timeout=self.settings.backfill_drain_timeout,
        )

    async def resolve_page(
        self,
        limit: Optional[int] = None,
        offset: int = 0,
        *,
        only_unresolved: bool = False,
        persist: Optional[PersistFn] = None,
        backfill_tracker: Optional[BackfillTracker] = None,
    ) -> ResolvedPage:
        """
        Load one page of tickets and resolve their names.

        Args:
            limit: Page size (None = all tickets)
            offset: Tickets to skip
            only_unresolved: Only load tickets without stored names
            persist: Override the persistence collaborator (e.g. a no-op for
                dry runs); defaults to ``repository.store_resolution``
            backfill_tracker: Request-scoped tracker; when given the caller
                drains it, otherwise writes finish before this returns

        Returns:
            ResolvedPage with the loaded records and the resolution report
        """
        records = await call_collaborator(
            self.repository.fetch_records, limit, offset, only_unresolved
        )
        report = await self._resolver(persist).resolve_batch(
            records, backfill_tracker=backfill_tracker
        )

        logger.info(
            "ticket_name_service.page_resolved",
            limit=limit,
            offset=offset,
            records=len(records),
            errors=len(self.error_reporter.errors),
        )
        return ResolvedPage(records=records, report=report)
