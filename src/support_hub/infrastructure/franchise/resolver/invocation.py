"""
Calling lookup and persistence collaborators from the event loop.

Collaborators may be coroutine functions (async HTTP clients, async DB
drivers) or plain blocking callables (requests, SQLAlchemy Core). Blocking
callables run in a worker thread so one slow lookup never stalls the others.
"""

import asyncio
import inspect
from typing import Any, Callable


async def call_collaborator(fn: Callable[..., Any], *args: Any) -> Any:
    """Invoke ``fn(*args)`` without blocking the event loop and return its result."""
    if inspect.iscoroutinefunction(fn):
        return await fn(*args)

    result = await asyncio.to_thread(fn, *args)
    if inspect.isawaitable(result):
        # Callable objects wrapping a coroutine function land here
        result = await result
    return result
