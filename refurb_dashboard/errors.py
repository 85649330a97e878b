# refurb_dashboard/errors.py
from __future__ import annotations

from typing import Any, Optional


class DashboardError(Exception):
    """Base class for errors raised by the analytics core."""


class InvalidFilter(DashboardError, ValueError):
    """A filter value could not be parsed or is not a known field."""

    def __init__(self, message: str, *, field: Optional[str] = None, value: Any = None) -> None:
        super().__init__(message)
        self.field = field
        self.value = value


class StoreUnavailable(DashboardError):
    """The inventory store could not be reached or a query failed."""


class InsightGenerationFailed(DashboardError):
    """The narrative insight service errored, timed out or answered garbage."""


__all__ = [
    "DashboardError",
    "InvalidFilter",
    "StoreUnavailable",
    "InsightGenerationFailed",
]
