"""
Merchant platform provider for franchise/outlet name lookup.

Adapts FranchiseClient to the LookupFn contract used by the batch resolver:
``lookup(franchise_id, outlet_id) -> ResolutionResult``.

A pair the platform does not know (404) is a definitive "not found". Every
other failure (network, authentication, bad response) propagates so the
resolver can report it as a lookup failure.

Security:
- Never logs the API token or login credentials
"""

from typing import Optional, Protocol

from support_hub.io.connectors.franchise import (
    FranchiseClient,
    FranchiseNotFoundError,
)
from support_hub.utils.logging import get_logger

from .normalizer import make_resolution_key
from .types import ResolutionResult

logger = get_logger(__name__)


class FranchiseInfoProvider(Protocol):
    """Protocol for franchise/outlet name providers."""

    def lookup(self, franchise_id: str, outlet_id: str) -> ResolutionResult:
        """
        Resolve a normalized (franchise id, outlet id) pair to names.

        Raises:
            Exception: When the lookup could not be answered.
        """
        ...


class FranchiseProvider:
    """
    Merchant platform API provider for franchise/outlet names.

    Attributes:
        client: FranchiseClient used for the HTTP calls.

    Example:
        >>> provider = FranchiseProvider()
        >>> provider.lookup("10", "20")
        ResolutionResult(franchise_name='Beta Mart', outlet_name='Beta #3', found=True)
    """

    def __init__(self, client: Optional[FranchiseClient] = None) -> None:
        self.client = client or FranchiseClient()
        if not (self.client.email and self.client.password):
            logger.warning(
                "franchise_provider.credentials_missing",
                detail="credentials not configured; every lookup will fail",
            )

    def lookup(self, franchise_id: str, outlet_id: str) -> ResolutionResult:
        key = make_resolution_key(franchise_id, outlet_id)
        if key is None:
            return ResolutionResult.not_found()

        try:
            info = self.client.retrieve_franchise_outlet(key.franchise_id, key.outlet_id)
        except FranchiseNotFoundError:
            logger.debug(
                "franchise_provider.not_found",
                franchise_id=franchise_id,
                outlet_id=outlet_id,
            )
            return ResolutionResult.not_found()

        return ResolutionResult(
            franchise_name=info.franchise_name,
            outlet_name=info.outlet_name,
            found=info.found,
        )
