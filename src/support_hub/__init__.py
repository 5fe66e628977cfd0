"""
Support Hub - support-ticket administration backend.

Resolves merchant franchise/outlet identifiers on support tickets to
human-readable names and backfills them to ticket storage.
"""

__version__ = "0.1.0"
