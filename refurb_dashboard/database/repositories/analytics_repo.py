# refurb_dashboard/database/repositories/analytics_repo.py
from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ...constants import (
    CATEGORY_PERFORMANCE_LIMIT,
    COST_BOTTLENECK_LIMIT,
    FILTER_OPTION_PARTY_LIMIT,
    FREIGHT_CATEGORY_LIMIT,
    FREIGHT_SUPPLIER_LIMIT,
    HIGH_COST_PRODUCTS_LIMIT,
    HIGH_COST_PRODUCTS_MIN_UNITS,
    NEGATIVE_MARGIN_LIMIT,
    RETURN_REASONS_LIMIT,
    REVENUE_OVER_TIME_LIMIT,
    TOP_ORDERS_LIMIT,
    TOP_PERFORMERS_LIMIT,
    UNKNOWN_LABEL,
    WARRANTY_EXPIRING_DAYS,
)
from ...modules.analytics.filters import MATCH_ALL, Predicate
from ...utils.helpers import to_decimal

# Every query aliases inventory as `i`; predicates must be built with alias="i".
INVENTORY_ALIAS = "i"

_PRICE = "i.final_sales_price_usd"
_COST = "i.final_total_cost_usd"

# A unit counts as returned once, however many RMA lines point at it.
_RETURNED = """EXISTS (
    SELECT 1 FROM returns r
    WHERE r.serial_id = i.invent_serial_id
      AND r.area_id = i.data_area_id
      AND r.item_id = i.item_id
)"""

_RETURN_JOIN = """
    JOIN inventory i
      ON i.invent_serial_id = r.serial_id
     AND i.data_area_id = r.area_id
     AND i.item_id = r.item_id
"""

_ORDER_KEY = "NULLIF(i.sales_id, '')"


def _labelled(column: str) -> str:
    return f"COALESCE(NULLIF(i.{column}, ''), '{UNKNOWN_LABEL}')"


_PRODUCT_KEY = (
    f"TRIM(COALESCE(NULLIF(TRIM(i.make), ''), '{UNKNOWN_LABEL}') || ' ' || COALESCE(TRIM(i.model_num), ''))"
)

# Float expressions used only for ORDER BY / HAVING; reported values come from dsum().
_ORDERINGS: Dict[str, str] = {
    "revenue": f"COALESCE(SUM(CAST({_PRICE} AS REAL)), 0)",
    "cost": f"COALESCE(SUM(CAST({_COST} AS REAL)), 0)",
    "profit": f"COALESCE(SUM(CAST({_PRICE} AS REAL)), 0) - COALESCE(SUM(CAST({_COST} AS REAL)), 0)",
    "units": "COUNT(*)",
    "orders": f"COUNT(DISTINCT {_ORDER_KEY})",
    "cost_ratio": (
        f"CASE WHEN COALESCE(SUM(CAST({_PRICE} AS REAL)), 0) > 0 "
        f"THEN COALESCE(SUM(CAST({_COST} AS REAL)), 0) / SUM(CAST({_PRICE} AS REAL)) ELSE 0 END"
    ),
}


def _not_blank(column: str) -> Predicate:
    return Predicate(f"i.{column} IS NOT NULL AND i.{column} <> ''")


@dataclass(frozen=True)
class GroupTotals:
    """One aggregated row per group key. Currency values are exact Decimals."""

    name: str
    revenue: Decimal
    cost: Decimal
    units: int
    orders: int = 0
    returns: int = 0
    first_date: Optional[str] = None
    last_date: Optional[str] = None

    @property
    def profit(self) -> Decimal:
        return self.revenue - self.cost


class AnalyticsRepo:
    """
    Read-only grouped aggregations over the inventory relation.

    Every public method takes a Predicate produced by the filter builder
    (alias "i") so one request's scope applies uniformly to all queries.
    Currency sums go through the `dsum` decimal aggregate registered by
    database.get_connection()/connect().
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    # ----------------------------- KPIs & trend -----------------------------

    def kpi_totals(self, pred: Predicate = MATCH_ALL) -> Dict[str, Any]:
        sql = f"""
            SELECT dsum({_PRICE}) AS revenue,
                   dsum({_COST})  AS cost,
                   COUNT(*)       AS units,
                   COUNT(DISTINCT {_ORDER_KEY}) AS orders
            FROM inventory i
            WHERE {pred.sql}
        """
        r = self._one(sql, pred.params)
        return {
            "revenue": to_decimal(r["revenue"]),
            "cost": to_decimal(r["cost"]),
            "units": int(r["units"] or 0),
            "orders": int(r["orders"] or 0),
        }

    def revenue_over_time(self, pred: Predicate = MATCH_ALL, limit_n: int = REVENUE_OVER_TIME_LIMIT) -> List[GroupTotals]:
        """Latest `limit_n` invoice dates, returned oldest first."""
        rows = self._grouped(
            "i.invoice_date",
            pred.and_(_not_blank("invoice_date")),
            order_sql="name DESC",
            limit_n=limit_n,
        )
        return list(reversed(rows))

    def monthly_trends(self, pred: Predicate = MATCH_ALL, limit_n: Optional[int] = None) -> List[GroupTotals]:
        """Per YYYY-MM of invoice date, oldest first; with `limit_n`, only the latest months."""
        rows = self._grouped(
            "substr(i.invoice_date, 1, 7)",
            pred.and_(_not_blank("invoice_date")),
            order_sql="name DESC",
            limit_n=limit_n,
            with_returns=True,
        )
        return list(reversed(rows))

    # ----------------------------- Breakdowns -----------------------------

    def category_breakdown(self, pred: Predicate = MATCH_ALL, limit_n: Optional[int] = None) -> List[GroupTotals]:
        return self._grouped(_labelled("category"), pred, limit_n=limit_n)

    def top_customers(self, pred: Predicate = MATCH_ALL, limit_n: int = TOP_PERFORMERS_LIMIT) -> List[GroupTotals]:
        return self._grouped("i.invoicing_name", pred.and_(_not_blank("invoicing_name")), limit_n=limit_n)

    def top_vendors(self, pred: Predicate = MATCH_ALL, limit_n: int = TOP_PERFORMERS_LIMIT) -> List[GroupTotals]:
        return self._grouped("i.vend_name", pred.and_(_not_blank("vend_name")), limit_n=limit_n)

    def top_products(self, pred: Predicate = MATCH_ALL, limit_n: int = TOP_PERFORMERS_LIMIT) -> List[GroupTotals]:
        return self._grouped(_PRODUCT_KEY, pred, limit_n=limit_n)

    def status_breakdown(self, pred: Predicate = MATCH_ALL) -> List[Dict[str, Any]]:
        return self._counts(_labelled("status"), pred)

    def grade_breakdown(self, pred: Predicate = MATCH_ALL) -> List[Dict[str, Any]]:
        return self._counts(_labelled("grade_condition"), pred)

    # ----------------------------- Strategic -----------------------------

    def sales_cost_components(self, pred: Predicate = MATCH_ALL) -> Dict[str, Any]:
        """Sums feeding the profitability waterfall."""
        sql = f"""
            SELECT COUNT(*) AS units,
                   dsum({_PRICE}) AS revenue,
                   dsum({_COST})  AS total_cost,
                   dsum(i.purch_price_usd)          AS purchase,
                   dsum(i.parts_cost_usd)           AS parts,
                   dsum(i.freight_charges_usd)      AS freight,
                   dsum(i.resource_cost_usd)        AS resource,
                   dsum(i.standardisation_cost_usd) AS standardisation,
                   dsum(i.packaging_cost_usd)       AS packaging,
                   dsum(i.customs_duty_usd)         AS customs,
                   dsum(i.misc_cost_usd)            AS misc,
                   dsum(i.consumable_cost_usd)      AS consumable,
                   dsum(i.battery_cost_usd)         AS battery,
                   dsum(i.lcd_cost_usd)             AS lcd,
                   dsum(i.coa_cost_usd)             AS coa,
                   COUNT(DISTINCT NULLIF(i.invoicing_name, '')) AS unique_customers,
                   COUNT(DISTINCT NULLIF(i.model_num, ''))      AS unique_products
            FROM inventory i
            WHERE {pred.sql}
        """
        r = self._one(sql, pred.params)
        out: Dict[str, Any] = {k: to_decimal(r[k]) for k in r.keys()}
        for k in ("units", "unique_customers", "unique_products"):
            out[k] = int(r[k] or 0)
        return out

    def return_impact(self, pred: Predicate = MATCH_ALL) -> Dict[str, Any]:
        sql = f"""
            SELECT COUNT(*) AS units_returned,
                   dsum({_PRICE}) AS revenue_at_risk,
                   dsum({_COST})  AS cost
            FROM inventory i
            WHERE ({pred.sql}) AND {_RETURNED}
        """
        r = self._one(sql, pred.params)
        revenue = to_decimal(r["revenue_at_risk"])
        return {
            "units_returned": int(r["units_returned"] or 0),
            "revenue_at_risk": revenue,
            "profit_lost": revenue - to_decimal(r["cost"]),
        }

    def category_performance(self, pred: Predicate = MATCH_ALL, limit_n: int = CATEGORY_PERFORMANCE_LIMIT) -> List[GroupTotals]:
        return self._grouped(_labelled("category"), pred, order="profit", limit_n=limit_n, with_returns=True)

    def regional_performance(self, pred: Predicate = MATCH_ALL) -> List[GroupTotals]:
        return self._grouped(_labelled("data_area_id"), pred, with_returns=True)

    def return_reasons(self, pred: Predicate = MATCH_ALL, limit_n: int = RETURN_REASONS_LIMIT) -> List[Dict[str, Any]]:
        return self._return_lines("reason_for_return", pred, limit_n)

    def return_solutions(self, pred: Predicate = MATCH_ALL, limit_n: int = RETURN_REASONS_LIMIT) -> List[Dict[str, Any]]:
        return self._return_lines("line_solution", pred, limit_n)

    def cost_bottlenecks(self, pred: Predicate = MATCH_ALL, limit_n: int = COST_BOTTLENECK_LIMIT) -> List[Dict[str, Any]]:
        """Per-category cost composition, highest total cost first."""
        sql = f"""
            SELECT {_labelled("category")} AS name,
                   COUNT(*) AS units,
                   dsum({_PRICE}) AS revenue,
                   dsum({_COST})  AS total_cost,
                   dsum(i.purch_price_usd)     AS purchase,
                   dsum(i.parts_cost_usd)      AS parts,
                   dsum(i.freight_charges_usd) AS freight,
                   dsum(i.packaging_cost_usd)  AS packaging
            FROM inventory i
            WHERE {pred.sql}
            GROUP BY name
            ORDER BY {_ORDERINGS["cost"]} DESC, name ASC
            LIMIT ?
        """
        out: List[Dict[str, Any]] = []
        for r in self._rows(sql, pred.params + (int(limit_n),)):
            d = {k: to_decimal(r[k]) for k in r.keys() if k not in ("name", "units")}
            d["name"] = str(r["name"])
            d["units"] = int(r["units"])
            out.append(d)
        return out

    def high_cost_products(
        self,
        pred: Predicate = MATCH_ALL,
        min_units: int = HIGH_COST_PRODUCTS_MIN_UNITS,
        limit_n: int = HIGH_COST_PRODUCTS_LIMIT,
    ) -> List[GroupTotals]:
        return self._grouped(
            _PRODUCT_KEY,
            pred,
            order="cost_ratio",
            limit_n=limit_n,
            having_sql="COUNT(*) >= ?",
            having_params=(int(min_units),),
        )

    def warranty_exposure(
        self,
        pred: Predicate,
        as_of: date,
        expiring_days: int = WARRANTY_EXPIRING_DAYS,
    ) -> Dict[str, Any]:
        today = as_of.isoformat()
        horizon = (as_of + timedelta(days=expiring_days)).isoformat()
        sql = f"""
            SELECT
              COALESCE(SUM(CASE WHEN i.warranty_end_date >= ? THEN 1 ELSE 0 END), 0) AS under_warranty,
              COALESCE(SUM(CASE WHEN i.warranty_end_date >= ? AND i.warranty_end_date <= ? THEN 1 ELSE 0 END), 0)
                AS expiring_soon,
              dsum(CASE WHEN i.warranty_end_date >= ? THEN {_PRICE} END) AS value_under_warranty
            FROM inventory i
            WHERE ({pred.sql}) AND i.warranty_end_date IS NOT NULL AND i.warranty_end_date <> ''
        """
        r = self._one(sql, (today, today, horizon, today) + pred.params)
        return {
            "under_warranty": int(r["under_warranty"]),
            "expiring_soon": int(r["expiring_soon"]),
            "value_under_warranty": to_decimal(r["value_under_warranty"]),
        }

    # ----------------------------- Inventory aging -----------------------------

    def aging_rows(self, pred: Predicate = MATCH_ALL) -> List[Dict[str, Any]]:
        """Per-unit rows for day-held bucketing (done in Python, against RequestContext.as_of)."""
        sql = f"""
            SELECT {_labelled("category")} AS category,
                   i.purch_date, i.received_date, i.invoice_date,
                   {_COST} AS cost
            FROM inventory i
            WHERE {pred.sql}
            ORDER BY i.id
        """
        return [
            {
                "category": str(r["category"]),
                "purch_date": r["purch_date"],
                "received_date": r["received_date"],
                "invoice_date": r["invoice_date"],
                "cost": to_decimal(r["cost"]),
            }
            for r in self._rows(sql, pred.params)
        ]

    # ----------------------------- Freight -----------------------------

    def freight_totals(self, pred: Predicate = MATCH_ALL) -> Dict[str, Decimal]:
        sql = f"""
            SELECT dsum(i.freight_charges_usd) AS freight, dsum({_COST}) AS cost
            FROM inventory i
            WHERE {pred.sql}
        """
        r = self._one(sql, pred.params)
        return {"freight": to_decimal(r["freight"]), "cost": to_decimal(r["cost"])}

    def freight_by_supplier(self, pred: Predicate = MATCH_ALL, limit_n: int = FREIGHT_SUPPLIER_LIMIT) -> List[Dict[str, Any]]:
        return self._freight("i.vend_name", pred.and_(_not_blank("vend_name")), limit_n)

    def freight_by_category(self, pred: Predicate = MATCH_ALL, limit_n: int = FREIGHT_CATEGORY_LIMIT) -> List[Dict[str, Any]]:
        return self._freight(_labelled("category"), pred, limit_n)

    # ----------------------------- Margins -----------------------------

    def margin_by_make(self, pred: Predicate = MATCH_ALL, limit_n: Optional[int] = None) -> List[GroupTotals]:
        return self._grouped(_labelled("make"), pred, limit_n=limit_n)

    def negative_margin_totals(self, pred: Predicate = MATCH_ALL) -> Dict[str, Any]:
        sql = f"""
            SELECT COUNT(*) AS items, dsum({_PRICE}) AS revenue, dsum({_COST}) AS cost
            FROM inventory i
            WHERE ({pred.sql})
              AND {_PRICE} IS NOT NULL AND {_PRICE} <> ''
              AND CAST({_PRICE} AS REAL) < CAST({_COST} AS REAL)
        """
        r = self._one(sql, pred.params)
        revenue, cost = to_decimal(r["revenue"]), to_decimal(r["cost"])
        return {"items": int(r["items"] or 0), "revenue": revenue, "cost": cost, "loss": cost - revenue}

    def negative_margin_items(self, pred: Predicate = MATCH_ALL, limit_n: int = NEGATIVE_MARGIN_LIMIT) -> List[Dict[str, Any]]:
        sql = f"""
            SELECT i.id, i.invent_serial_id, {_PRODUCT_KEY} AS product,
                   {_labelled("category")} AS category,
                   i.invoicing_name AS customer, i.invoice_date,
                   {_PRICE} AS revenue, {_COST} AS cost
            FROM inventory i
            WHERE ({pred.sql})
              AND {_PRICE} IS NOT NULL AND {_PRICE} <> ''
              AND CAST({_PRICE} AS REAL) < CAST({_COST} AS REAL)
            ORDER BY CAST({_COST} AS REAL) - CAST({_PRICE} AS REAL) DESC, i.id ASC
            LIMIT ?
        """
        out: List[Dict[str, Any]] = []
        for r in self._rows(sql, pred.params + (int(limit_n),)):
            revenue, cost = to_decimal(r["revenue"]), to_decimal(r["cost"])
            out.append({
                "id": int(r["id"]),
                "serial": r["invent_serial_id"],
                "product": str(r["product"]),
                "category": str(r["category"]),
                "customer": r["customer"],
                "invoice_date": r["invoice_date"],
                "revenue": revenue,
                "cost": cost,
                "profit": revenue - cost,
            })
        return out

    # ----------------------------- Orders -----------------------------

    def orders_by_customer(self, pred: Predicate = MATCH_ALL, limit_n: int = TOP_PERFORMERS_LIMIT) -> List[GroupTotals]:
        return self._grouped("i.invoicing_name", pred.and_(_not_blank("invoicing_name")), order="orders", limit_n=limit_n)

    def orders_by_status(self, pred: Predicate = MATCH_ALL) -> List[GroupTotals]:
        return self._grouped(_labelled("status"), pred, order="orders")

    def top_orders(self, pred: Predicate = MATCH_ALL, limit_n: int = TOP_ORDERS_LIMIT) -> List[Dict[str, Any]]:
        sql = f"""
            SELECT i.sales_id AS sales_id,
                   MAX(i.invoicing_name) AS customer,
                   MAX(i.invoice_date)   AS invoice_date,
                   COUNT(*)              AS units,
                   dsum({_PRICE}) AS revenue,
                   dsum({_COST})  AS cost
            FROM inventory i
            WHERE ({pred.sql}) AND i.sales_id IS NOT NULL AND i.sales_id <> ''
            GROUP BY i.sales_id
            ORDER BY {_ORDERINGS["revenue"]} DESC, i.sales_id ASC
            LIMIT ?
        """
        out: List[Dict[str, Any]] = []
        for r in self._rows(sql, pred.params + (int(limit_n),)):
            revenue, cost = to_decimal(r["revenue"]), to_decimal(r["cost"])
            out.append({
                "sales_id": str(r["sales_id"]),
                "customer": r["customer"],
                "invoice_date": r["invoice_date"],
                "units": int(r["units"]),
                "revenue": revenue,
                "profit": revenue - cost,
            })
        return out

    def items_per_order(self, pred: Predicate = MATCH_ALL) -> List[Dict[str, int]]:
        """Histogram: how many orders contain N units."""
        sql = f"""
            SELECT n AS items, COUNT(*) AS orders
            FROM (
                SELECT COUNT(*) AS n
                FROM inventory i
                WHERE ({pred.sql}) AND i.sales_id IS NOT NULL AND i.sales_id <> ''
                GROUP BY i.sales_id
            )
            GROUP BY n
            ORDER BY n ASC
        """
        return [{"items": int(r["items"]), "orders": int(r["orders"])} for r in self._rows(sql, pred.params)]

    # ----------------------------- Customers & products -----------------------------

    def customer_totals(self, pred: Predicate = MATCH_ALL, limit_n: Optional[int] = None) -> List[GroupTotals]:
        """Every customer (revenue desc) with order span and returned units."""
        return self._grouped(
            "i.invoicing_name",
            pred.and_(_not_blank("invoicing_name")),
            limit_n=limit_n,
            with_returns=True,
            with_dates=True,
        )

    def product_totals(self, pred: Predicate = MATCH_ALL, limit_n: Optional[int] = None) -> List[GroupTotals]:
        return self._grouped(_PRODUCT_KEY, pred, limit_n=limit_n, with_returns=True)

    # ----------------------------- Filter options -----------------------------

    def filter_options(self, party_limit: int = FILTER_OPTION_PARTY_LIMIT) -> Dict[str, List[str]]:
        """Distinct non-empty values for the filter panel."""
        out: Dict[str, List[str]] = {}
        for key, column, limit_n in (
            ("status", "status", None),
            ("category", "category", None),
            ("make", "make", None),
            ("gradeCondition", "grade_condition", None),
            ("customer", "invoicing_name", party_limit),
            ("vendor", "vend_name", party_limit),
        ):
            sql = f"""
                SELECT DISTINCT {column} AS v
                FROM inventory
                WHERE {column} IS NOT NULL AND {column} <> ''
                ORDER BY {column} ASC
            """
            params: Tuple[Any, ...] = ()
            if limit_n is not None:
                sql += " LIMIT ?"
                params = (int(limit_n),)
            out[key] = [str(r["v"]) for r in self._rows(sql, params)]
        return out

    # ----------------------------- Internals -----------------------------

    def _grouped(
        self,
        key_sql: str,
        pred: Predicate,
        *,
        order: str = "revenue",
        order_sql: Optional[str] = None,
        limit_n: Optional[int] = None,
        having_sql: Optional[str] = None,
        having_params: Sequence[Any] = (),
        with_returns: bool = False,
        with_dates: bool = False,
    ) -> List[GroupTotals]:
        """
        GROUP BY `key_sql` with exact sums. Ranking is by `order` descending,
        ties broken by name ascending; `order_sql` overrides the whole clause.

        The ranking (and LIMIT cut) uses the float sums in _ORDERINGS, not the
        reported dsum() Decimals, so groups whose totals differ only below
        float precision may be ordered differently from the numbers shown.
        """
        returns_col = f"SUM(CASE WHEN {_RETURNED} THEN 1 ELSE 0 END)" if with_returns else "0"
        dates_cols = (
            "MIN(NULLIF(i.invoice_date, '')) AS first_date, MAX(NULLIF(i.invoice_date, '')) AS last_date"
            if with_dates
            else "NULL AS first_date, NULL AS last_date"
        )
        sql = f"""
            SELECT {key_sql} AS name,
                   dsum({_PRICE}) AS revenue,
                   dsum({_COST})  AS cost,
                   COUNT(*) AS units,
                   COUNT(DISTINCT {_ORDER_KEY}) AS orders,
                   {returns_col} AS returns,
                   {dates_cols}
            FROM inventory i
            WHERE {pred.sql}
            GROUP BY name
        """
        params: List[Any] = list(pred.params)
        if having_sql:
            sql += f" HAVING {having_sql}"
            params.extend(having_params)
        sql += f" ORDER BY {order_sql or f'{_ORDERINGS[order]} DESC, name ASC'}"
        if limit_n is not None:
            sql += " LIMIT ?"
            params.append(int(limit_n))
        return [self._group_row(r) for r in self._rows(sql, params)]

    def _counts(self, key_sql: str, pred: Predicate) -> List[Dict[str, Any]]:
        sql = f"""
            SELECT {key_sql} AS name, COUNT(*) AS n
            FROM inventory i
            WHERE {pred.sql}
            GROUP BY name
            ORDER BY n DESC, name ASC
        """
        return [{"name": str(r["name"]), "count": int(r["n"])} for r in self._rows(sql, pred.params)]

    def _return_lines(self, column: str, pred: Predicate, limit_n: int) -> List[Dict[str, Any]]:
        sql = f"""
            SELECT COALESCE(NULLIF(r.{column}, ''), '{UNKNOWN_LABEL}') AS name,
                   COUNT(*) AS lines,
                   COUNT(DISTINCT i.id) AS units
            FROM returns r
            {_RETURN_JOIN}
            WHERE {pred.sql}
            GROUP BY name
            ORDER BY lines DESC, name ASC
            LIMIT ?
        """
        return [
            {"name": str(r["name"]), "count": int(r["lines"]), "units": int(r["units"])}
            for r in self._rows(sql, pred.params + (int(limit_n),))
        ]

    def _freight(self, key_sql: str, pred: Predicate, limit_n: int) -> List[Dict[str, Any]]:
        sql = f"""
            SELECT {key_sql} AS name,
                   COUNT(*) AS units,
                   dsum(i.freight_charges_usd) AS freight,
                   dsum({_COST}) AS cost
            FROM inventory i
            WHERE {pred.sql}
            GROUP BY name
            ORDER BY COALESCE(SUM(CAST(i.freight_charges_usd AS REAL)), 0) DESC, name ASC
            LIMIT ?
        """
        return [
            {
                "name": str(r["name"]),
                "units": int(r["units"]),
                "freight": to_decimal(r["freight"]),
                "cost": to_decimal(r["cost"]),
            }
            for r in self._rows(sql, pred.params + (int(limit_n),))
        ]

    @staticmethod
    def _group_row(r: sqlite3.Row) -> GroupTotals:
        return GroupTotals(
            name=str(r["name"]),
            revenue=to_decimal(r["revenue"]),
            cost=to_decimal(r["cost"]),
            units=int(r["units"] or 0),
            orders=int(r["orders"] or 0),
            returns=int(r["returns"] or 0),
            first_date=r["first_date"],
            last_date=r["last_date"],
        )

    def _one(self, sql: str, params: Sequence[Any]) -> sqlite3.Row:
        return self.conn.execute(sql, tuple(params)).fetchone()

    def _rows(self, sql: str, params: Sequence[Any]) -> List[sqlite3.Row]:
        return list(self.conn.execute(sql, tuple(params)))
