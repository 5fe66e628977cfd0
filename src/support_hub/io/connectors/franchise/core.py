"""
Merchant platform HTTP client core implementation.
"""

import logging
from urllib.parse import quote

from .models import FranchiseClientError, FranchiseOutletInfo
from .parsers import parse_franchise_outlet
from .transport import FranchiseTransport

logger = logging.getLogger(__name__)


class FranchiseClient(FranchiseTransport):
    """
    Synchronous HTTP client for the merchant platform API.

    Inherits login and token handling from FranchiseTransport.
    """

    def retrieve_franchise_outlet(
        self, franchise_id: str, outlet_id: str
    ) -> FranchiseOutletInfo:
        """
        Retrieve franchise and outlet names for one (franchise id, outlet id).

        Args:
            franchise_id: Normalized franchise id
            outlet_id: Normalized outlet id

        Returns:
            FranchiseOutletInfo; ``found`` is False when the body carries no names

        Raises:
            ValueError: If either id is empty
            FranchiseNotFoundError: If the pair does not exist (404)
            FranchiseAuthenticationError: If authentication fails
            FranchiseClientError: For other API errors or invalid JSON
        """
        if not franchise_id or not outlet_id:
            raise ValueError("franchise_id and outlet_id cannot be empty")

        path = (
            f"/api/franchise-retrieve/{quote(str(franchise_id), safe='')}"
            f"/{quote(str(outlet_id), safe='')}"
        )

        logger.debug(
            "Retrieving franchise outlet",
            extra={"franchise_id": franchise_id, "outlet_id": outlet_id},
        )

        response = self._authorized_get(path)
        try:
            payload = response.json()
        except ValueError as e:
            raise FranchiseClientError(f"Invalid JSON response: {e}") from e

        info = parse_franchise_outlet(payload)
        logger.info(
            "Franchise outlet retrieved",
            extra={
                "franchise_id": franchise_id,
                "outlet_id": outlet_id,
                "found": info.found,
            },
        )
        return info
