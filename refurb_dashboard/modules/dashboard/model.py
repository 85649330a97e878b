# refurb_dashboard/modules/dashboard/model.py
from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Tuple

from ..analytics.context import RequestContext
from ..analytics.engine import AggregationEngine, DashboardData, StrategicData
from ..insights import Insights, InsightService


# --------------------------- Period helpers ---------------------------

PERIODS: List[Tuple[str, str]] = [
    ("all", "All Time"),
    ("today", "Today"),
    ("7days", "Last 7 Days"),
    ("30days", "Last 30 Days"),
    ("thisMonth", "This Month"),
    ("3months", "Last 3 Months"),
    ("ytd", "Year to Date"),
    ("custom", "Custom"),
]


def _months_back(d: date, n: int) -> date:
    idx = d.year * 12 + (d.month - 1) - n
    y, m = divmod(idx, 12)
    m += 1
    return date(y, m, min(d.day, calendar.monthrange(y, m)[1]))


def resolve_period(
    key: str,
    today: date,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> Tuple[Optional[date], Optional[date]]:
    """Resolve a preset key to (start, end); (None, None) means no date constraint."""
    k = key or "all"
    if k == "today":
        return today, today
    if k == "7days":
        return today - timedelta(days=7), today
    if k == "30days":
        return today - timedelta(days=30), today
    if k == "thisMonth":
        nxt = date(today.year + (today.month == 12), today.month % 12 + 1, 1)
        return date(today.year, today.month, 1), nxt - timedelta(days=1)
    if k == "3months":
        return _months_back(today, 3), today
    if k == "ytd":
        return date(today.year, 1, 1), today
    if k == "custom":
        return date_from, date_to
    return None, None


def filter_params(
    start: Optional[date],
    end: Optional[date],
    selections: Dict[str, str],
) -> Dict[str, Any]:
    """
    Query-string style mapping for RequestContext.from_query; "" selections are dropped.
    A selection is one stored value, so it goes in as a one-item list and is
    never split on commas.
    """
    params: Dict[str, Any] = {}
    if start is not None:
        params["startDate"] = start.isoformat()
    if end is not None:
        params["endDate"] = end.isoformat()
    for key, value in selections.items():
        if value:
            params[key] = [value]
    return params


# --------------------------- Dashboard Model ---------------------------

@dataclass
class DashboardSnapshot:
    request_id: str
    dashboard: DashboardData
    strategic: StrategicData


@dataclass
class DashboardModel:
    """
    Holds the current filter params and the last good snapshot.

    A failed load leaves `snapshot` untouched so the view can keep showing the
    previous numbers.
    """

    engine: AggregationEngine
    insights: InsightService = field(default_factory=InsightService)
    params: Dict[str, Any] = field(default_factory=dict)
    as_of: Optional[date] = None

    snapshot: Optional[DashboardSnapshot] = field(init=False, default=None)
    last_insights: Optional[Insights] = field(init=False, default=None)

    def context(self) -> RequestContext:
        """Raises InvalidFilter when `params` does not parse."""
        return RequestContext.from_query(self.params, as_of=self.as_of)

    def load(self) -> DashboardSnapshot:
        ctx = self.context()
        snap = DashboardSnapshot(
            request_id=ctx.request_id,
            dashboard=self.engine.dashboard(ctx),
            strategic=self.engine.strategic(ctx),
        )
        self.snapshot = snap
        return snap

    def filter_options(self) -> Dict[str, List[str]]:
        return self.engine.filter_options()

    def generate_insights(self, snap: DashboardSnapshot) -> Insights:
        """Blocking (may call the insight service); run it off the UI thread."""
        return self.insights.generate("executive_summary", snap.dashboard.to_dict())
