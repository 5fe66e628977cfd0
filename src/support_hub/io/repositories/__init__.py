"""
Database repositories.
"""

from .ticket_repository import (
    TicketRepository,
    create_engine_from_settings,
    is_missing_column_error,
)

__all__ = [
    "TicketRepository",
    "create_engine_from_settings",
    "is_missing_column_error",
]
