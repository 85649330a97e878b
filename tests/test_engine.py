# tests/test_engine.py
import sqlite3
import threading
from datetime import date
from decimal import Decimal

import pytest

from refurb_dashboard.errors import StoreUnavailable
from refurb_dashboard.modules.analytics.context import RequestContext
from refurb_dashboard.modules.analytics.engine import AggregationEngine
from refurb_dashboard.modules.analytics.filters import FilterSpec

from conftest import AS_OF, add_return, add_unit, sold


def _seed(conn):
    sold(conn, "1000", "600", category="Laptop", make="Dell", model_num="E7470", invoicing_name="Acme",
         vend_name="V1", sales_id="SO1", invoice_date="2024-01-10", received_date="2023-12-01",
         invent_serial_id="S1", data_area_id="UK", item_id="I1",
         purch_price_usd="500", freight_charges_usd="50", packaging_cost_usd="50")
    sold(conn, "500", "600", category="Laptop", make="Dell", model_num="E7470", invoicing_name="Beta",
         vend_name="V2", sales_id="SO2", invoice_date="2024-02-10", received_date="2024-01-01",
         purch_price_usd="550", freight_charges_usd="50")
    add_unit(conn, category="Desktop", make="HP", status="Available", final_total_cost_usd="300",
             received_date="2023-10-01", trans_type="Purchase")
    add_return(conn, serial_id="S1", area_id="UK", item_id="I1", reason_for_return="Keyboard")


def test_empty_store_returns_zeros(engine, ctx):
    d = engine.dashboard(ctx)
    assert d.kpis.total_revenue == Decimal("0")
    assert d.kpis.profit_margin == 0.0
    assert d.kpis.average_order_value == Decimal("0")
    assert d.category_breakdown == [] and d.top_customers == [] and d.revenue_over_time == []

    s = engine.strategic(ctx)
    assert s.waterfall.net_profit == Decimal("0")
    assert s.return_impact.return_rate == 0.0
    assert s.alerts == []

    aging = engine.inventory_aging(ctx)
    assert aging.total_value == Decimal("0")
    assert all(b.count == 0 for b in aging.buckets)

    f = engine.forecast(ctx)
    assert f.revenue_forecast == [] and f.historical_months == 0


def test_dashboard_view(conn, engine, ctx):
    _seed(conn)
    d = engine.dashboard(ctx)
    assert d.kpis.total_revenue == Decimal("1500")
    assert d.kpis.total_cost == Decimal("1500")
    assert d.kpis.units_sold == 3
    assert d.kpis.total_orders == 2
    assert d.kpis.average_order_value == Decimal("750")

    laptop = d.category_breakdown[0]
    assert (laptop.name, laptop.revenue, laptop.profit, laptop.units) == ("Laptop", Decimal("1500"), Decimal("300"), 2)
    assert laptop.margin == pytest.approx(20.0)
    assert [c.name for c in d.top_customers] == ["Acme", "Beta"]
    assert d.top_customers[0].count == 1

    wire = d.to_dict()
    assert wire["kpis"]["totalRevenue"] == 1500.0
    assert wire["categoryBreakdown"][0]["category"] == "Laptop"
    assert {"status": "Sold", "count": 2} in wire["statusBreakdown"]


def test_strategic_view_is_sales_orders_only(conn, engine, ctx):
    _seed(conn)
    s = engine.strategic(ctx)
    w = s.waterfall
    assert w.gross_revenue == Decimal("1500")
    assert w.purchase_cost == Decimal("1050")
    assert w.freight_cost == Decimal("100")
    assert w.gross_profit == Decimal("300")
    assert w.return_impact == Decimal("400")
    assert w.net_profit == Decimal("-100")
    assert s.return_impact.units_returned == 1
    assert s.return_impact.return_rate == pytest.approx(50.0)
    assert s.unique_customers == 2
    kinds = {a.kind for a in s.alerts}
    assert {"margin", "returns"} <= kinds
    assert s.to_dict()["waterfallStages"][0] == {"name": "Revenue", "value": 1500.0, "kind": "total"}


def test_filters_apply_to_views(conn, engine):
    _seed(conn)
    ctx = RequestContext(filters=FilterSpec.from_query({"customer": "Beta"}), as_of=AS_OF)
    d = engine.dashboard(ctx)
    assert d.kpis.total_revenue == Decimal("500")
    assert [c.name for c in d.top_customers] == ["Beta"]


def test_same_spec_same_result(conn, engine, ctx):
    _seed(conn)
    for view in ("dashboard", "strategic", "inventory_aging", "freight", "margins",
                 "orders", "customers", "products", "forecast"):
        first = getattr(engine, view)(ctx).to_dict()
        second = getattr(engine, view)(ctx).to_dict()
        assert first == second, view


def test_inventory_aging_view(conn, engine, ctx):
    _seed(conn)
    aging = engine.inventory_aging(ctx)
    assert sum(b.count for b in aging.buckets) == 3
    assert sum(b.percent_of_total for b in aging.buckets) == pytest.approx(100.0, abs=0.1)
    # unsold desktop received 2023-10-01, held 273 days at AS_OF
    assert aging.dead_stock_count == 1
    assert aging.dead_stock_value == Decimal("300")


def test_customers_and_products_views(conn, engine, ctx):
    _seed(conn)
    c = engine.customers(ctx)
    assert c.total_customers == 2
    assert c.concentration.percent == pytest.approx(100.0)
    assert c.concentration.is_concentrated
    # Acme returned every unit, Beta sold at a loss
    assert c.tiers["at-risk"] == 2
    assert [x.customer for x in c.at_risk] == ["Acme", "Beta"]

    p = engine.products(ctx)
    assert [x.product for x in p.products] == ["Dell E7470"]


def test_orders_margins_freight_views(conn, engine, ctx):
    _seed(conn)
    o = engine.orders(ctx)
    assert o.total_orders == 2
    assert o.average_items_per_order == 1.0
    m = engine.margins(ctx)
    assert m.negative_margin_items == 1
    assert m.negative_margin_value == Decimal("100")
    assert [row["period"] for row in m.monthly_margin] == ["2024-01", "2024-02"]
    f = engine.freight(ctx)
    assert f.total_freight == Decimal("100")


def test_forecast_view(conn, engine, ctx):
    _seed(conn)
    f = engine.forecast(ctx)
    assert f.historical_months == 2
    assert [row["period"] for row in f.revenue_history] == ["2024-01", "2024-02"]
    assert f.revenue_history[1]["ma3"] is None
    # 1000 then 500: the line hits zero next month and stays floored
    assert [p.period for p in f.revenue_forecast] == ["2024-03", "2024-04", "2024-05"]
    assert f.next_period_prediction == pytest.approx(0.0)
    assert f.revenue_trend.direction == "volatile"
    assert f.confidence == 100
    assert [c.customer for c in f.churn] == ["Acme", "Beta"]
    assert f.to_dict()["historicalMonths"] == 2


def test_filter_options_view(conn, engine):
    _seed(conn)
    opts = engine.filter_options()
    assert opts["category"] == ["Desktop", "Laptop"]


# ----------------------------- Failures -----------------------------

def test_store_error_maps_to_store_unavailable(ctx):
    def broken():
        raise sqlite3.OperationalError("unable to open database file")

    engine = AggregationEngine(broken, max_workers=2)
    with pytest.raises(StoreUnavailable) as ei:
        engine.dashboard(ctx)
    assert isinstance(ei.value.__cause__, sqlite3.OperationalError)


def test_missing_table_maps_to_store_unavailable(tmp_path, ctx):
    # a database file without the schema
    path = tmp_path / "empty.db"
    sqlite3.connect(path).close()
    from refurb_dashboard.database import connection_factory

    engine = AggregationEngine(connection_factory(path))
    with pytest.raises(StoreUnavailable):
        engine.dashboard(ctx)


def test_one_failing_query_fails_the_whole_view(conn, factory, ctx):
    _seed(conn)
    calls = {"n": 0}
    lock = threading.Lock()

    def flaky():
        with lock:
            calls["n"] += 1
            n = calls["n"]
        if n == 3:
            raise sqlite3.DatabaseError("disk I/O error")
        return factory()

    engine = AggregationEngine(flaky, max_workers=1)
    with pytest.raises(StoreUnavailable):
        engine.dashboard(ctx)


def test_programming_errors_propagate_unchanged(ctx):
    def bad_factory():
        raise RuntimeError("boom")

    engine = AggregationEngine(bad_factory)
    with pytest.raises(RuntimeError):
        engine.dashboard(ctx)


def test_timeout_raises_store_unavailable(factory):
    release = threading.Event()

    def slow_factory():
        release.wait(5)
        return factory()

    engine = AggregationEngine(slow_factory, max_workers=2)
    ctx = RequestContext(as_of=date(2024, 6, 30), timeout=0.2)
    try:
        with pytest.raises(StoreUnavailable, match="timed out"):
            engine.dashboard(ctx)
    finally:
        release.set()
