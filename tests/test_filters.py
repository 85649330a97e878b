# tests/test_filters.py
from datetime import date

import pytest

from refurb_dashboard.errors import InvalidFilter
from refurb_dashboard.modules.analytics.context import RequestContext
from refurb_dashboard.modules.analytics.filters import (
    MATCH_ALL,
    FilterSpec,
    Predicate,
    build_predicate,
    column_equals,
)
from refurb_dashboard.database.repositories import AnalyticsRepo

from conftest import add_unit


# ----------------------------- FilterSpec parsing -----------------------------

def test_from_query_camel_and_snake_case():
    a = FilterSpec.from_query({"startDate": "2024-01-01", "gradeCondition": "A,B"})
    b = FilterSpec.from_query({"start_date": "2024-01-01", "grade_condition": ["A", "B"]})
    assert a == b
    assert a.start_date == date(2024, 1, 1)
    assert a.grade_condition == ("A", "B")


def test_empty_values_mean_no_constraint():
    spec = FilterSpec.from_query({"status": "", "category": [], "startDate": "", "make": None})
    assert spec.is_empty
    assert build_predicate(spec) is MATCH_ALL


def test_values_are_kept_verbatim():
    spec = FilterSpec.from_query({"customer": "Acme Ltd, acme ltd"})
    # no trimming or case folding: " acme ltd" keeps its leading space
    assert spec.customer == ("Acme Ltd", " acme ltd")


def test_malformed_date_is_rejected():
    with pytest.raises(InvalidFilter) as ei:
        FilterSpec.from_query({"startDate": "2024-13-45"})
    assert ei.value.field == "startDate"


def test_unknown_key_is_rejected():
    with pytest.raises(InvalidFilter):
        FilterSpec.from_query({"colour": "red"})


def test_start_after_end_is_rejected():
    with pytest.raises(InvalidFilter):
        FilterSpec(start_date=date(2024, 2, 1), end_date=date(2024, 1, 1))


def test_non_string_values_are_rejected():
    with pytest.raises(InvalidFilter):
        FilterSpec.from_query({"status": ["Sold", 3]})
    with pytest.raises(InvalidFilter):
        FilterSpec(status="Sold")  # must be a tuple


def test_invalid_filter_is_a_value_error():
    assert issubclass(InvalidFilter, ValueError)


def test_to_query_round_trip():
    params = {"startDate": "2024-01-01", "endDate": "2024-03-31", "category": ["Laptop", "Desktop"]}
    spec = FilterSpec.from_query(params)
    assert spec.to_query() == params
    assert FilterSpec.from_query(spec.to_query()) == spec


# ----------------------------- Predicate -----------------------------

def test_build_predicate_shape():
    spec = FilterSpec.from_query({"startDate": "2024-01-01", "category": "Laptop,Desktop", "vendor": "V1"})
    p = build_predicate(spec, alias="i")
    assert p.sql == "i.invoice_date >= ? AND i.category IN (?,?) AND i.vend_name IN (?)"
    assert p.params == ("2024-01-01", "Laptop", "Desktop", "V1")


def test_and_with_match_all_is_identity():
    p = Predicate("x = ?", (1,))
    assert p.and_(MATCH_ALL) is p
    assert MATCH_ALL.and_(p) is p


def test_request_context_from_query():
    ctx = RequestContext.from_query({"make": "Dell"}, as_of=date(2024, 1, 31), timeout=5)
    assert ctx.filters.make == ("Dell",)
    assert ctx.as_of == date(2024, 1, 31)
    assert ctx.timeout == 5
    assert len(ctx.request_id) == 12


# ----------------------------- Against the store -----------------------------

def _seed(conn):
    rows = [
        ("Laptop", "Dell", "2024-01-05"),
        ("Laptop", "HP", "2024-01-10"),
        ("Desktop", "Dell", "2024-02-01"),
        ("Monitor", "Dell", "2024-02-15"),
        (None, "Lenovo", None),
    ]
    for cat, make, d in rows:
        add_unit(conn, category=cat, make=make, invoice_date=d,
                 final_sales_price_usd="100", final_total_cost_usd="60")


def _units(conn, pred):
    return AnalyticsRepo(conn).kpi_totals(pred)["units"]


def test_composition_matches_combined_spec(conn):
    _seed(conn)
    combined = build_predicate(FilterSpec.from_query({"category": "Laptop,Desktop", "make": "Dell"}), alias="i")
    a = build_predicate(FilterSpec.from_query({"category": "Laptop,Desktop"}), alias="i")
    b = build_predicate(FilterSpec.from_query({"make": "Dell"}), alias="i")
    assert _units(conn, a & b) == _units(conn, b & a) == _units(conn, combined) == 2


def test_composition_is_associative(conn):
    _seed(conn)
    a = build_predicate(FilterSpec.from_query({"make": "Dell"}), alias="i")
    b = build_predicate(FilterSpec.from_query({"startDate": "2024-01-06"}), alias="i")
    c = column_equals("category", "Desktop", alias="i")
    assert _units(conn, (a & b) & c) == _units(conn, a & (b & c)) == 1


def test_date_range_excludes_undated_rows(conn):
    _seed(conn)
    p = build_predicate(FilterSpec.from_query({"startDate": "2024-01-01", "endDate": "2024-12-31"}), alias="i")
    assert _units(conn, p) == 4
    assert _units(conn, MATCH_ALL) == 5


def test_matching_is_case_sensitive(conn):
    _seed(conn)
    p = build_predicate(FilterSpec.from_query({"make": "dell"}), alias="i")
    assert _units(conn, p) == 0
