"""Shared utilities and common types."""

from __future__ import annotations

import importlib
from typing import TYPE_CHECKING, Any

__all__ = [
    "ErrorKind",
    "ResolutionError",
    "ResolutionErrorReporter",
    "ResolutionErrorSummary",
]

if TYPE_CHECKING:  # pragma: no cover - imported only for typing
    from .error_reporter import (
        ErrorKind,
        ResolutionError,
        ResolutionErrorReporter,
        ResolutionErrorSummary,
    )


def __getattr__(name: str) -> Any:
    if name in __all__:
        module = importlib.import_module(".error_reporter", __name__)
        return getattr(module, name)
    raise AttributeError(f"module 'support_hub.utils' has no attribute {name!r}")
