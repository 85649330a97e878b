# database/repositories/__init__.py
"""
Repository layer public API.

Usage:
    from refurb_dashboard.database.repositories import AnalyticsRepo, GroupTotals
"""

from .analytics_repo import INVENTORY_ALIAS, AnalyticsRepo, GroupTotals

__all__ = [
    "INVENTORY_ALIAS",
    "AnalyticsRepo",
    "GroupTotals",
]
