from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from PySide6.QtCore import QDate, Qt, Signal
from PySide6.QtGui import QFont
from PySide6.QtWidgets import (
    QComboBox, QDateEdit, QFrame, QGridLayout, QHBoxLayout, QLabel, QPushButton,
    QSizePolicy, QTextBrowser, QVBoxLayout, QWidget,
)

from ...utils.helpers import fmt_money, fmt_pct
from ...widgets.table_view import TableView
from ..analytics.engine import DashboardData, StrategicData
from ..analytics.metrics import Alert, Performer
from ..insights import Insights
from .model import PERIODS

# (query key, label) for the dropdown filters
FILTER_FIELDS = [
    ("status", "Status"),
    ("category", "Category"),
    ("make", "Make"),
    ("gradeCondition", "Grade"),
    ("customer", "Customer"),
    ("vendor", "Vendor"),
]

KPI_CARDS = [
    ("total_revenue", "Total Revenue", "sum of sale prices"),
    ("total_cost", "Total Cost", "fully loaded unit cost"),
    ("total_profit", "Total Profit", "revenue - cost"),
    ("profit_margin", "Profit Margin", "profit / revenue"),
    ("units_sold", "Units", "records in scope"),
    ("total_orders", "Orders", "distinct sales orders"),
    ("average_order_value", "Avg Order Value", "revenue / orders"),
]


def _money(x: Any) -> str:
    return "$" + fmt_money(x, sentinel="0.00")


class DashboardView(QWidget):
    """
    Pure-UI executive dashboard. The controller drives it through the setters.

    Signals:
        filters_applied(period_key: str, date_from: str, date_to: str, selections: dict)
        filters_cleared()
        retry_requested()
    """

    filters_applied = Signal(str, str, str, dict)
    filters_cleared = Signal()
    retry_requested = Signal()

    def __init__(self, parent=None) -> None:
        super().__init__(parent)
        self._kpi_cards: Dict[str, KPICard] = {}
        self._filter_combos: Dict[str, QComboBox] = {}
        self._build_ui()
        self._wire()

    # ---------------- UI ----------------
    def _build_ui(self) -> None:
        root = QVBoxLayout(self)
        root.setContentsMargins(8, 8, 8, 8)
        root.setSpacing(10)

        # ===== Filter bar =====
        top = QHBoxLayout()
        title = QLabel("<h2>Executive Dashboard</h2>")
        title.setTextFormat(Qt.RichText)
        top.addWidget(title)
        top.addStretch(1)

        self.cmb_period = QComboBox()
        for key, label in PERIODS:
            self.cmb_period.addItem(label, key)

        self.ed_from = QDateEdit()
        self.ed_from.setCalendarPopup(True)
        self.ed_from.setDisplayFormat("yyyy-MM-dd")
        self.ed_from.setDate(QDate.currentDate().addDays(-30))
        self.ed_to = QDateEdit()
        self.ed_to.setCalendarPopup(True)
        self.ed_to.setDisplayFormat("yyyy-MM-dd")
        self.ed_to.setDate(QDate.currentDate())
        self._toggle_custom_dates(False)

        top.addWidget(QLabel("Period:"))
        top.addWidget(self.cmb_period)
        top.addWidget(self.ed_from)
        top.addWidget(self.ed_to)
        root.addLayout(top)

        filters = QHBoxLayout()
        for key, label in FILTER_FIELDS:
            cmb = QComboBox()
            cmb.setMinimumWidth(110)
            cmb.addItem(f"All {label}", "")
            self._filter_combos[key] = cmb
            filters.addWidget(QLabel(f"{label}:"))
            filters.addWidget(cmb)
        self.btn_apply = QPushButton("Apply")
        self.btn_clear = QPushButton("Clear")
        filters.addWidget(self.btn_apply)
        filters.addWidget(self.btn_clear)
        filters.addStretch(1)
        root.addLayout(filters)

        self.lbl_filter_error = QLabel("")
        self.lbl_filter_error.setStyleSheet("color: #b00020;")
        self.lbl_filter_error.setVisible(False)
        root.addWidget(self.lbl_filter_error)

        # ===== Store error banner =====
        self.banner = QFrame()
        self.banner.setObjectName("store_error")
        self.banner.setStyleSheet(
            "QFrame#store_error { background:#fdecea; border:1px solid #f5c2c0; border-radius:8px; }"
        )
        bl = QHBoxLayout(self.banner)
        bl.setContentsMargins(12, 8, 12, 8)
        self.lbl_store_error = QLabel("")
        self.lbl_store_error.setWordWrap(True)
        self.btn_retry = QPushButton("Retry")
        bl.addWidget(self.lbl_store_error, 1)
        bl.addWidget(self.btn_retry)
        self.banner.setVisible(False)
        root.addWidget(self.banner)

        # ===== KPI Grid =====
        gridwrap = QWidget()
        self.grid = QGridLayout(gridwrap)
        self.grid.setContentsMargins(0, 0, 0, 0)
        self.grid.setHorizontalSpacing(10)
        self.grid.setVerticalSpacing(10)
        for key, title_, caption in KPI_CARDS:
            self._kpi_cards[key] = KPICard(title_, caption)
        self._reflow_kpis()
        gridwrap.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Fixed)
        root.addWidget(gridwrap)

        # ===== Profitability + alerts =====
        mid = QHBoxLayout()
        mid.setSpacing(10)
        self.tbl_waterfall = TableView(["Stage", "Amount"])
        mid.addWidget(_Card(self.tbl_waterfall, "Profitability Waterfall (sales orders)"), 1)
        self.tbl_alerts = TableView(["Severity", "Alert", "Detail"])
        mid.addWidget(_Card(self.tbl_alerts, "Alerts"), 2)
        root.addLayout(mid)

        # ===== Rankings =====
        tables = QHBoxLayout()
        tables.setSpacing(10)
        self.tbl_categories = TableView(["Category", "Revenue", "Profit", "Margin", "Units"])
        self.tbl_customers = TableView(["Customer", "Revenue", "Profit", "Margin", "Orders"])
        self.tbl_products = TableView(["Product", "Revenue", "Profit", "Margin", "Units"])
        self.tbl_vendors = TableView(["Vendor", "Revenue", "Profit", "Margin", "Units"])
        tables.addWidget(_Card(self.tbl_categories, "Categories"))
        tables.addWidget(_Card(self.tbl_customers, "Top Customers"))
        tables.addWidget(_Card(self.tbl_products, "Top Products"))
        tables.addWidget(_Card(self.tbl_vendors, "Top Vendors"))
        root.addLayout(tables)

        # ===== Insights =====
        self.txt_insights = QTextBrowser()
        self.txt_insights.setMinimumHeight(120)
        self.card_insights = _Card(self.txt_insights, "Insights")
        self.card_insights.setVisible(False)
        root.addWidget(self.card_insights)

    def _wire(self) -> None:
        self.cmb_period.currentIndexChanged.connect(self._on_period_combo)
        self.btn_apply.clicked.connect(self._apply)
        self.btn_clear.clicked.connect(self._clear)
        self.btn_retry.clicked.connect(self.retry_requested)

    # ---------------- Filter helpers ----------------
    def _on_period_combo(self) -> None:
        key = self.period_key()
        self._toggle_custom_dates(key == "custom")
        if key != "custom":
            self._apply()

    def _toggle_custom_dates(self, on: bool) -> None:
        self.ed_from.setVisible(on)
        self.ed_to.setVisible(on)

    def _apply(self) -> None:
        df = self.ed_from.date().toString("yyyy-MM-dd")
        dt = self.ed_to.date().toString("yyyy-MM-dd")
        self.filters_applied.emit(self.period_key(), df, dt, self.selections())

    def _clear(self) -> None:
        for cmb in self._filter_combos.values():
            cmb.setCurrentIndex(0)
        self.filters_cleared.emit()

    def period_key(self) -> str:
        return self.cmb_period.currentData() or "all"

    def selections(self) -> Dict[str, str]:
        return {key: (cmb.currentData() or "") for key, cmb in self._filter_combos.items()}

    # ---------------- Public setters for controller ----------------
    def set_filter_options(self, options: Dict[str, List[str]]) -> None:
        for key, cmb in self._filter_combos.items():
            current = cmb.currentData() or ""
            cmb.blockSignals(True)
            while cmb.count() > 1:
                cmb.removeItem(1)
            for value in options.get(key, []):
                cmb.addItem(value, value)
            idx = cmb.findData(current)
            cmb.setCurrentIndex(idx if idx >= 0 else 0)
            cmb.blockSignals(False)

    def set_dashboard(self, data: DashboardData) -> None:
        k = data.kpis
        self._kpi_cards["total_revenue"].set_value(_money(k.total_revenue))
        self._kpi_cards["total_cost"].set_value(_money(k.total_cost))
        self._kpi_cards["total_profit"].set_value(_money(k.total_profit))
        self._kpi_cards["profit_margin"].set_value(fmt_pct(k.profit_margin))
        self._kpi_cards["units_sold"].set_value(f"{k.units_sold:,}")
        self._kpi_cards["total_orders"].set_value(f"{k.total_orders:,}")
        self._kpi_cards["average_order_value"].set_value(_money(k.average_order_value))

        self.tbl_categories.set_rows(self._performer_rows(data.category_breakdown, "units"))
        self.tbl_customers.set_rows(self._performer_rows(data.top_customers, "count"))
        self.tbl_products.set_rows(self._performer_rows(data.top_products, "units"))
        self.tbl_vendors.set_rows(self._performer_rows(data.top_vendors, "units"))

    def set_strategic(self, data: StrategicData) -> None:
        self.tbl_waterfall.set_rows([(s.name, _money(s.value)) for s in data.waterfall.stages()])
        self.set_alerts(data.alerts)

    def set_alerts(self, alerts: Sequence[Alert]) -> None:
        self.tbl_alerts.set_rows([(a.severity.upper(), a.title, a.message) for a in alerts])

    def set_insights(self, insights: Optional[Insights]) -> None:
        if insights is None:
            self.card_insights.setVisible(False)
            return
        parts = [f"<p>{insights.summary}</p>"]
        for heading, items in (
            ("Key findings", insights.key_findings),
            ("Recommendations", insights.recommendations),
            ("Risks", insights.risks),
            ("Opportunities", insights.opportunities),
        ):
            if items:
                parts.append(f"<b>{heading}</b><ul>" + "".join(f"<li>{i}</li>" for i in items) + "</ul>")
        self.txt_insights.setHtml("".join(parts))
        self.card_insights.setVisible(True)

    def set_insights_pending(self) -> None:
        self.txt_insights.setPlainText("Generating insights...")

    def show_filter_error(self, message: Optional[str]) -> None:
        self.lbl_filter_error.setText(message or "")
        self.lbl_filter_error.setVisible(bool(message))

    def show_store_error(self, message: Optional[str]) -> None:
        self.lbl_store_error.setText(message or "")
        self.banner.setVisible(bool(message))

    def kpi_text(self, key: str) -> str:
        return self._kpi_cards[key].lbl_value.text()

    @staticmethod
    def _performer_rows(rows: Sequence[Performer], count_attr: str) -> List[tuple]:
        return [
            (p.name, _money(p.revenue), _money(p.profit), fmt_pct(p.margin), getattr(p, count_attr))
            for p in rows
        ]

    # --------------- Layout: responsive KPI grid ---------------
    def resizeEvent(self, event) -> None:  # type: ignore[override]
        super().resizeEvent(event)
        self._reflow_kpis()

    def _reflow_kpis(self) -> None:
        while self.grid.count():
            self.grid.takeAt(0)
        cols = 4 if self.width() >= 1100 else 3
        for idx, (key, _t, _c) in enumerate(KPI_CARDS):
            self.grid.addWidget(self._kpi_cards[key], idx // cols, idx % cols)


# ======================= Visual building blocks =======================

class KPICard(QFrame):
    def __init__(self, title: str, caption: str) -> None:
        super().__init__()
        self.setObjectName("kpi_card")
        self.setStyleSheet("""
            QFrame#kpi_card {
                border: 1px solid #e1e1e1;
                border-radius: 10px;
                background: #fff;
            }
        """)

        v = QVBoxLayout(self)
        v.setContentsMargins(12, 10, 12, 12)
        v.setSpacing(2)

        self.lbl_title = QLabel(title)
        f = self.lbl_title.font()
        f.setBold(True)
        self.lbl_title.setFont(f)

        self.lbl_value = QLabel("-")
        fv = QFont(self.lbl_value.font())
        fv.setPointSize(fv.pointSize() + 6)
        fv.setBold(True)
        self.lbl_value.setFont(fv)

        self.lbl_caption = QLabel(caption)
        self.lbl_caption.setStyleSheet("color: #777;")

        v.addWidget(self.lbl_title)
        v.addWidget(self.lbl_value)
        v.addWidget(self.lbl_caption)

    def set_value(self, s: str) -> None:
        self.lbl_value.setText(s)

    def set_caption(self, s: str) -> None:
        self.lbl_caption.setText(s)


class _Card(QWidget):
    """Wrap any widget in a titled card frame."""
    def __init__(self, inner: QWidget, title: str) -> None:
        super().__init__()
        v = QVBoxLayout(self)
        v.setContentsMargins(0, 0, 0, 0)
        frame = QFrame()
        frame.setFrameShape(QFrame.StyledPanel)
        frame.setStyleSheet("QFrame { border:1px solid #dcdcdc; border-radius:8px; }")
        fl = QVBoxLayout(frame)
        fl.setContentsMargins(12, 10, 12, 12)
        fl.setSpacing(6)
        fl.addWidget(QLabel(f"<b>{title}</b>"))
        fl.addWidget(inner)
        v.addWidget(frame)
