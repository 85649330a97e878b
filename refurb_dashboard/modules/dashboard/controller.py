# refurb_dashboard/modules/dashboard/controller.py
from __future__ import annotations

import logging
from datetime import date
from typing import Dict, Optional

from PySide6.QtCore import Signal, Slot
from PySide6.QtWidgets import QWidget

from ...errors import InvalidFilter, StoreUnavailable
from ..analytics.engine import AggregationEngine
from ..base_module import BaseModule
from ..insights import Insights, InsightService
from .insight_job import InsightJob
from .model import DashboardModel, DashboardSnapshot, filter_params, resolve_period
from .view import DashboardView

_log = logging.getLogger(__name__)


class DashboardController(BaseModule):
    """
    Owns the filter state, coordinates engine <-> view.

    Signals:
      - refreshed(request_id: str): a load finished and the view shows fresh numbers
      - failed(message: str): a load failed; the view keeps the previous numbers
      - insights_ready(request_id: str): the insight card caught up with that load

    Insight text is fetched on the thread pool after the numbers are shown;
    only the answer for the latest load reaches the view.
    """

    refreshed = Signal(str)
    failed = Signal(str)
    insights_ready = Signal(str)

    def __init__(
        self,
        engine: AggregationEngine,
        insights: Optional[InsightService] = None,
        as_of: Optional[date] = None,
        auto_refresh: bool = True,
    ) -> None:
        super().__init__()
        self.model = DashboardModel(engine, insights or InsightService(), as_of=as_of)
        self.view = DashboardView()
        self._insight_job = InsightJob()
        self._pending_insights: Optional[str] = None
        self._wire_view()
        if auto_refresh:
            self.load_filter_options()
            self.refresh()

    # ---------------------------- Wiring ----------------------------

    def _wire_view(self) -> None:
        self.view.filters_applied.connect(self.on_filters_applied)
        self.view.filters_cleared.connect(self.on_filters_cleared)
        self.view.retry_requested.connect(self.retry)
        self._insight_job.finished.connect(self._on_insights)
        self._insight_job.failed.connect(self._on_insights_failed)

    # ---------------------------- Filter handling ----------------------------

    @Slot(str, str, str, dict)
    def on_filters_applied(self, period_key: str, date_from: str, date_to: str, selections: Dict[str, str]) -> None:
        today = self.model.as_of or date.today()
        start, end = resolve_period(
            period_key,
            today,
            date.fromisoformat(date_from) if date_from else None,
            date.fromisoformat(date_to) if date_to else None,
        )
        self.set_params(filter_params(start, end, selections))

    @Slot()
    def on_filters_cleared(self) -> None:
        keep = {k: v for k, v in self.model.params.items() if k in ("startDate", "endDate")}
        self.set_params(keep)

    def set_params(self, params: Dict[str, object]) -> bool:
        self.model.params = dict(params)
        return self.refresh()

    def load_filter_options(self) -> None:
        try:
            self.view.set_filter_options(self.model.filter_options())
        except StoreUnavailable as e:
            self._on_store_error(e)

    # ---------------------------- Refresh pipeline ----------------------------

    @Slot()
    def retry(self) -> bool:
        self.load_filter_options()
        return self.refresh()

    @Slot()
    def refresh(self) -> bool:
        """Load dashboard + strategic views for the current params and push them to the view."""
        try:
            snap = self.model.load()
        except InvalidFilter as e:
            _log.info("Rejected filter %s=%r: %s", e.field, e.value, e)
            self.view.show_filter_error(str(e))
            self.failed.emit(str(e))
            return False
        except StoreUnavailable as e:
            self._on_store_error(e)
            return False

        self.view.show_filter_error(None)
        self.view.show_store_error(None)
        self.view.set_dashboard(snap.dashboard)
        self.view.set_strategic(snap.strategic)
        self.refreshed.emit(snap.request_id)
        self._request_insights(snap)
        return True

    def _on_store_error(self, e: StoreUnavailable) -> None:
        msg = f"Could not load dashboard data: {e}"
        self.view.show_store_error(msg)
        self.failed.emit(msg)

    # ---------------------------- Insights ----------------------------

    def _request_insights(self, snap: DashboardSnapshot) -> None:
        self._pending_insights = snap.request_id
        self.view.set_insights_pending()
        self._insight_job.run_async(snap.request_id, lambda: self.model.generate_insights(snap))

    @Slot(str, object)
    def _on_insights(self, request_id: str, insights: Insights) -> None:
        if request_id != self._pending_insights:
            return  # superseded by a newer load
        self._pending_insights = None
        self.model.last_insights = insights
        self.view.set_insights(insights)
        self.insights_ready.emit(request_id)

    @Slot(str, str)
    def _on_insights_failed(self, request_id: str, message: str) -> None:
        if request_id != self._pending_insights:
            return
        self._pending_insights = None
        _log.warning("No insights for request %s: %s", request_id, message)
        self.view.set_insights(None)

    # ---------------------------- Utilities ----------------------------

    def get_widget(self) -> QWidget:
        """Return the main QWidget to embed in your window (required by BaseModule)."""
        return self.view
