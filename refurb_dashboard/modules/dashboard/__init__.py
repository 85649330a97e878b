# refurb_dashboard/modules/dashboard/__init__.py

"""
Dashboard module package exports.
"""

from .controller import DashboardController
from .model import DashboardModel
from .view import DashboardView

__all__ = [
    "DashboardController",
    "DashboardModel",
    "DashboardView",
]
