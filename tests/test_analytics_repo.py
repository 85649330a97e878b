# tests/test_analytics_repo.py
from datetime import date
from decimal import Decimal

from refurb_dashboard.database.repositories import AnalyticsRepo
from refurb_dashboard.modules.analytics.filters import FilterSpec, build_predicate

from conftest import add_return, add_unit, sold


def _repo(conn):
    return AnalyticsRepo(conn)


def test_empty_store_gives_zero_totals(conn):
    repo = _repo(conn)
    assert repo.kpi_totals() == {"revenue": Decimal("0"), "cost": Decimal("0"), "units": 0, "orders": 0}
    assert repo.category_breakdown() == []
    assert repo.top_customers() == []
    assert repo.revenue_over_time() == []


def test_currency_sums_are_exact(conn):
    for _ in range(10):
        sold(conn, "0.10", "0.05")
    totals = _repo(conn).kpi_totals()
    assert totals["revenue"] == Decimal("1.00")
    assert totals["cost"] == Decimal("0.50")


def test_category_breakdown_laptop_scenario(conn):
    sold(conn, "1000", "600", category="Laptop")
    sold(conn, "500", "600", category="Laptop")
    rows = _repo(conn).category_breakdown()
    assert len(rows) == 1
    laptop = rows[0]
    assert laptop.name == "Laptop"
    assert laptop.revenue == Decimal("1500")
    assert laptop.profit == Decimal("300")
    assert laptop.units == 2


def test_unknown_label_keeps_breakdowns_reconciled(conn):
    sold(conn, "100", "50", category="Laptop")
    sold(conn, "70", "20", category="")
    sold(conn, "30", "10", category=None)
    repo = _repo(conn)
    rows = {g.name: g for g in repo.category_breakdown()}
    assert rows["Unknown"].units == 2
    assert sum((g.revenue for g in rows.values()), Decimal("0")) == repo.kpi_totals()["revenue"]


def test_rankings_break_ties_by_name(conn):
    for name in ("Zed", "Alpha", "Mid"):
        sold(conn, "100", "50", invoicing_name=name, sales_id=f"SO-{name}")
    sold(conn, "500", "50", invoicing_name="Big", sales_id="SO-Big")
    names = [g.name for g in _repo(conn).top_customers()]
    assert names == ["Big", "Alpha", "Mid", "Zed"]


def test_blank_parties_excluded_from_party_groupings(conn):
    sold(conn, "100", "50", invoicing_name="", vend_name=None)
    sold(conn, "100", "50", invoicing_name="Acme", vend_name="V1")
    repo = _repo(conn)
    assert [g.name for g in repo.top_customers()] == ["Acme"]
    assert [g.name for g in repo.top_vendors()] == ["V1"]
    assert repo.kpi_totals()["units"] == 2


def test_customer_orders_are_distinct_sales_ids(conn):
    sold(conn, "100", "50", invoicing_name="Acme", sales_id="SO1")
    sold(conn, "100", "50", invoicing_name="Acme", sales_id="SO1")
    sold(conn, "100", "50", invoicing_name="Acme", sales_id="SO2")
    acme = _repo(conn).top_customers()[0]
    assert acme.units == 3
    assert acme.orders == 2


def test_top_products_label(conn):
    sold(conn, "100", "50", make=" Dell ", model_num="Latitude 5490")
    sold(conn, "100", "50", make=None, model_num="X1")
    names = sorted(g.name for g in _repo(conn).top_products())
    assert names == ["Dell Latitude 5490", "Unknown X1"]


def test_revenue_over_time_keeps_latest_dates_ascending(conn):
    for day in range(1, 6):
        sold(conn, "10", "5", invoice_date=f"2024-01-0{day}")
    sold(conn, "10", "5", invoice_date=None)
    rows = _repo(conn).revenue_over_time(limit_n=3)
    assert [g.name for g in rows] == ["2024-01-03", "2024-01-04", "2024-01-05"]


def test_status_and_grade_counts(conn):
    add_unit(conn, status="Sold", grade_condition="A")
    add_unit(conn, status="Sold", grade_condition="B")
    add_unit(conn, status="Available", grade_condition=None)
    repo = _repo(conn)
    assert repo.status_breakdown() == [{"name": "Sold", "count": 2}, {"name": "Available", "count": 1}]
    assert {"name": "Unknown", "count": 1} in repo.grade_breakdown()


def test_returns_counted_once_per_unit(conn):
    sold(conn, "300", "200", invent_serial_id="S1", data_area_id="UK", item_id="I1", category="Laptop")
    sold(conn, "300", "200", invent_serial_id="S2", data_area_id="UK", item_id="I1", category="Laptop")
    add_return(conn, serial_id="S1", area_id="UK", item_id="I1", reason_for_return="Dead pixel")
    add_return(conn, serial_id="S1", area_id="UK", item_id="I1", reason_for_return="Dead pixel")
    # same serial in another region is a different unit
    add_return(conn, serial_id="S2", area_id="US", item_id="I1", reason_for_return="Battery")

    repo = _repo(conn)
    impact = repo.return_impact()
    assert impact["units_returned"] == 1
    assert impact["revenue_at_risk"] == Decimal("300")
    assert impact["profit_lost"] == Decimal("100")
    assert repo.category_performance()[0].returns == 1
    assert repo.return_reasons() == [{"name": "Dead pixel", "count": 2, "units": 1}]


def test_sales_cost_components(conn):
    sold(conn, "1000", "700", purch_price_usd="500", parts_cost_usd="50", freight_charges_usd="40",
         resource_cost_usd="30", standardisation_cost_usd="20", packaging_cost_usd="10",
         customs_duty_usd="15", misc_cost_usd="5", invoicing_name="Acme", model_num="M1")
    comp = _repo(conn).sales_cost_components()
    assert comp["units"] == 1
    assert comp["purchase"] == Decimal("500")
    assert comp["customs"] == Decimal("15")
    assert comp["battery"] == Decimal("0")
    assert comp["unique_customers"] == 1
    assert comp["unique_products"] == 1


def test_high_cost_products_requires_min_units(conn):
    for _ in range(3):
        sold(conn, "100", "95", make="HP", model_num="Thin")
    sold(conn, "100", "99", make="Dell", model_num="Once")
    repo = _repo(conn)
    assert [g.name for g in repo.high_cost_products(min_units=2)] == ["HP Thin"]
    assert repo.high_cost_products() == []


def test_warranty_exposure(conn):
    as_of = date(2024, 6, 1)
    sold(conn, "100", "50", warranty_end_date="2024-06-15")
    sold(conn, "200", "50", warranty_end_date="2025-01-01")
    sold(conn, "300", "50", warranty_end_date="2024-01-01")
    w = _repo(conn).warranty_exposure(build_predicate(FilterSpec(), alias="i"), as_of)
    assert w == {"under_warranty": 2, "expiring_soon": 1, "value_under_warranty": Decimal("300")}


def test_negative_margin(conn):
    sold(conn, "100", "150")
    sold(conn, "100", "120")
    sold(conn, "100", "80")
    repo = _repo(conn)
    totals = repo.negative_margin_totals()
    assert totals["items"] == 2
    assert totals["loss"] == Decimal("70")
    worst = repo.negative_margin_items()
    assert [w["profit"] for w in worst] == [Decimal("-50"), Decimal("-20")]


def test_orders_views(conn):
    sold(conn, "100", "50", sales_id="SO1", invoicing_name="Acme")
    sold(conn, "100", "50", sales_id="SO1", invoicing_name="Acme")
    sold(conn, "500", "50", sales_id="SO2", invoicing_name="Beta")
    sold(conn, "100", "50", sales_id=None)
    repo = _repo(conn)
    assert repo.items_per_order() == [{"items": 1, "orders": 1}, {"items": 2, "orders": 1}]
    top = repo.top_orders()
    assert [o["sales_id"] for o in top] == ["SO2", "SO1"]
    assert top[1]["units"] == 2


def test_customer_totals_carry_order_span(conn):
    sold(conn, "100", "50", invoicing_name="Acme", sales_id="A1", invoice_date="2024-01-01")
    sold(conn, "100", "50", invoicing_name="Acme", sales_id="A2", invoice_date="2024-03-01")
    acme = _repo(conn).customer_totals()[0]
    assert (acme.first_date, acme.last_date, acme.orders) == ("2024-01-01", "2024-03-01", 2)


def test_freight_groupings(conn):
    sold(conn, "100", "50", vend_name="V1", category="Laptop", freight_charges_usd="10")
    sold(conn, "100", "50", vend_name="V2", category="Laptop", freight_charges_usd="30")
    repo = _repo(conn)
    assert [r["name"] for r in repo.freight_by_supplier()] == ["V2", "V1"]
    assert repo.freight_by_category()[0]["freight"] == Decimal("40")
    assert repo.freight_totals() == {"freight": Decimal("40"), "cost": Decimal("100")}


def test_monthly_trends_with_limit(conn):
    for m in ("01", "02", "03"):
        sold(conn, "100", "50", invoice_date=f"2024-{m}-10")
    rows = _repo(conn).monthly_trends(limit_n=2)
    assert [g.name for g in rows] == ["2024-02", "2024-03"]


def test_filter_options(conn):
    add_unit(conn, status="Sold", category="Laptop", make="Dell", grade_condition="A",
             invoicing_name="Acme", vend_name="V1")
    add_unit(conn, status="", category="Desktop", make="Dell")
    opts = _repo(conn).filter_options()
    assert opts["status"] == ["Sold"]
    assert opts["category"] == ["Desktop", "Laptop"]
    assert opts["make"] == ["Dell"]
    assert opts["gradeCondition"] == ["A"]
    assert opts["customer"] == ["Acme"]
    assert opts["vendor"] == ["V1"]


def test_predicate_applies_to_every_query(conn):
    sold(conn, "100", "50", category="Laptop", invoicing_name="Acme")
    sold(conn, "900", "50", category="Desktop", invoicing_name="Beta")
    p = build_predicate(FilterSpec.from_query({"category": "Laptop"}), alias="i")
    repo = _repo(conn)
    assert repo.kpi_totals(p)["revenue"] == Decimal("100")
    assert [g.name for g in repo.top_customers(p)] == ["Acme"]
    assert [g.name for g in repo.category_breakdown(p)] == ["Laptop"]
