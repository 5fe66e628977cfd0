"""
Merchant platform connector models and exceptions.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict


class FranchiseClientError(Exception):
    """Base exception for merchant platform client errors."""

    pass


class FranchiseConfigurationError(FranchiseClientError):
    """Raised when API credentials are not configured."""

    pass


class FranchiseAuthenticationError(FranchiseClientError):
    """Raised when login fails or a fresh token is rejected (401)."""

    pass


class FranchiseNotFoundError(FranchiseClientError):
    """Raised when the franchise/outlet pair does not exist (404)."""

    pass


class FranchiseOutletInfo(BaseModel):
    """Names returned by the franchise-retrieve endpoint."""

    model_config = ConfigDict(frozen=True)

    franchise_name: Optional[str] = None
    outlet_name: Optional[str] = None

    @property
    def found(self) -> bool:
        return bool(self.franchise_name or self.outlet_name)
