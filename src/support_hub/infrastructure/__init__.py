"""
Infrastructure Layer

Reusable services behind the support hub: franchise/outlet name resolution
for support tickets and its supporting types.

Usage:
    from support_hub.infrastructure.franchise import BatchNameResolver, resolve_batch
"""

__all__: list[str] = []
