"""
Merchant platform connector package.
"""

from .core import FranchiseClient
from .models import (
    FranchiseAuthenticationError,
    FranchiseClientError,
    FranchiseConfigurationError,
    FranchiseNotFoundError,
    FranchiseOutletInfo,
)

__all__ = [
    "FranchiseClient",
    "FranchiseClientError",
    "FranchiseAuthenticationError",
    "FranchiseConfigurationError",
    "FranchiseNotFoundError",
    "FranchiseOutletInfo",
]
