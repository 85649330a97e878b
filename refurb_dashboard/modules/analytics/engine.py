# refurb_dashboard/modules/analytics/engine.py
from __future__ import annotations

import logging
import sqlite3
import threading
import time
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from ...config import ENGINE_MAX_WORKERS
from ...constants import (
    CUSTOMER_RANKING_LIMIT,
    MONTHLY_MARGIN_LIMIT,
    MOVING_AVERAGE_WINDOWS,
    ORDERS_BY_CUSTOMER_LIMIT,
    PRODUCT_MATRIX_LIMIT,
    SALES_ORDER_TRANS_TYPE,
)
from ...database import ConnectionFactory
from ...database.repositories.analytics_repo import INVENTORY_ALIAS, AnalyticsRepo, GroupTotals
from ...errors import StoreUnavailable
from ...utils.helpers import to_wire
from . import forecasting, metrics, scoring
from .context import RequestContext
from .filters import Predicate, build_predicate, column_equals

_log = logging.getLogger(__name__)

Job = Callable[[AnalyticsRepo], Any]


# --------------------------- Result shapes ---------------------------

@dataclass(frozen=True)
class TimePoint:
    date: str
    revenue: Decimal
    profit: Decimal
    cost: Decimal
    units: int


@dataclass(frozen=True)
class DashboardData:
    kpis: metrics.KPISummary
    revenue_over_time: List[TimePoint]
    category_breakdown: List[metrics.Performer]
    top_customers: List[metrics.Performer]
    top_products: List[metrics.Performer]
    top_vendors: List[metrics.Performer]
    status_breakdown: List[Dict[str, Any]]
    grade_breakdown: List[Dict[str, Any]]

    def to_dict(self) -> Dict[str, Any]:
        d = to_wire(self)
        d["categoryBreakdown"] = [p.to_dict("category") for p in self.category_breakdown]
        d["statusBreakdown"] = [{"status": r["name"], "count": r["count"]} for r in self.status_breakdown]
        d["gradeBreakdown"] = [{"grade": r["name"], "count": r["count"]} for r in self.grade_breakdown]
        return d


@dataclass(frozen=True)
class StrategicData:
    waterfall: metrics.ProfitabilityWaterfall
    return_impact: metrics.ReturnImpact
    category_performance: List[Dict[str, Any]]
    regional_performance: List[Dict[str, Any]]
    monthly_trends: List[Dict[str, Any]]
    return_reasons: List[Dict[str, Any]]
    return_solutions: List[Dict[str, Any]]
    cost_bottlenecks: List[Dict[str, Any]]
    high_cost_products: List[metrics.CostBottleneck]
    warranty: Dict[str, Any]
    unique_customers: int
    unique_products: int
    alerts: List[metrics.Alert]

    def to_dict(self) -> Dict[str, Any]:
        d = to_wire(self)
        d["waterfallStages"] = to_wire(self.waterfall.stages())
        return d


@dataclass(frozen=True)
class MarginData:
    overall_margin: float
    by_category: List[metrics.Performer]
    by_make: List[metrics.Performer]
    negative_margin_items: int
    negative_margin_value: Decimal
    worst_items: List[Dict[str, Any]]
    monthly_margin: List[Dict[str, Any]]

    def to_dict(self) -> Dict[str, Any]:
        return to_wire(self)


@dataclass(frozen=True)
class OrdersData:
    total_orders: int
    average_order_value: Decimal
    average_items_per_order: float
    monthly_orders: List[Dict[str, Any]]
    orders_by_customer: List[metrics.Performer]
    orders_by_status: List[Dict[str, Any]]
    top_orders: List[Dict[str, Any]]
    items_per_order: List[Dict[str, Any]]

    def to_dict(self) -> Dict[str, Any]:
        return to_wire(self)


@dataclass(frozen=True)
class CustomersData:
    total_customers: int
    top_by_revenue: List[metrics.Performer]
    top_by_profit: List[metrics.Performer]
    top_by_volume: List[metrics.Performer]
    concentration: metrics.Concentration
    tiers: Dict[str, int]
    at_risk: List[scoring.CustomerProfile]
    churn: List[metrics.ChurnRisk]

    def to_dict(self) -> Dict[str, Any]:
        return to_wire(self)


@dataclass(frozen=True)
class ProductsData:
    products: List[scoring.ProductScore]
    quadrants: Dict[str, List[scoring.ProductScore]]

    def to_dict(self) -> Dict[str, Any]:
        return to_wire(self)


@dataclass(frozen=True)
class ForecastData:
    historical_months: int
    revenue_history: List[Dict[str, Any]]
    revenue_trend: forecasting.Trend
    volume_trend: forecasting.Trend
    margin_trend: forecasting.Trend
    return_rate_trend: forecasting.Trend
    seasonality: forecasting.Seasonality
    revenue_forecast: List[forecasting.ForecastPoint]
    next_period_prediction: float
    next_quarter_prediction: float
    confidence: int
    churn: List[metrics.ChurnRisk] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return to_wire(self)


# --------------------------- Engine ---------------------------

class AggregationEngine:
    """
    Runs each view's independent repository queries concurrently and
    assembles the derived metrics once all of them are in.

    One connection per query, opened on the worker thread through
    `connection_factory`. Any store failure or a timeout aborts the whole
    call with StoreUnavailable; partial results are never returned.
    """

    def __init__(self, connection_factory: ConnectionFactory, max_workers: int = ENGINE_MAX_WORKERS) -> None:
        self._factory = connection_factory
        self.max_workers = max(1, int(max_workers))

    # --------------------------- Predicates ---------------------------

    @staticmethod
    def _predicate(ctx: RequestContext) -> Predicate:
        return build_predicate(ctx.filters, alias=INVENTORY_ALIAS)

    @classmethod
    def _sales_predicate(cls, ctx: RequestContext) -> Predicate:
        return cls._predicate(ctx).and_(column_equals("trans_type", SALES_ORDER_TRANS_TYPE, alias=INVENTORY_ALIAS))

    # --------------------------- Views ---------------------------

    def dashboard(self, ctx: RequestContext) -> DashboardData:
        p = self._predicate(ctx)
        r = self._run(ctx, "dashboard", {
            "kpis": lambda repo: repo.kpi_totals(p),
            "over_time": lambda repo: repo.revenue_over_time(p),
            "categories": lambda repo: repo.category_breakdown(p),
            "customers": lambda repo: repo.top_customers(p),
            "products": lambda repo: repo.top_products(p),
            "vendors": lambda repo: repo.top_vendors(p),
            "status": lambda repo: repo.status_breakdown(p),
            "grade": lambda repo: repo.grade_breakdown(p),
        })
        return DashboardData(
            kpis=metrics.build_kpis(r["kpis"]),
            revenue_over_time=[TimePoint(g.name, g.revenue, g.profit, g.cost, g.units) for g in r["over_time"]],
            category_breakdown=metrics.to_performers(r["categories"]),
            top_customers=metrics.to_performers(r["customers"], count="orders"),
            top_products=metrics.to_performers(r["products"]),
            top_vendors=metrics.to_performers(r["vendors"]),
            status_breakdown=r["status"],
            grade_breakdown=r["grade"],
        )

    def strategic(self, ctx: RequestContext) -> StrategicData:
        p = self._sales_predicate(ctx)
        r = self._run(ctx, "strategic", {
            "components": lambda repo: repo.sales_cost_components(p),
            "impact": lambda repo: repo.return_impact(p),
            "categories": lambda repo: repo.category_performance(p),
            "regions": lambda repo: repo.regional_performance(p),
            "monthly": lambda repo: repo.monthly_trends(p),
            "reasons": lambda repo: repo.return_reasons(p),
            "solutions": lambda repo: repo.return_solutions(p),
            "bottlenecks": lambda repo: repo.cost_bottlenecks(p),
            "high_cost": lambda repo: repo.high_cost_products(p),
            "warranty": lambda repo: repo.warranty_exposure(p, ctx.as_of),
        })
        comp = r["components"]
        impact = metrics.build_return_impact(comp["units"], r["impact"])
        waterfall = metrics.build_waterfall(comp, impact.profit_lost)
        return StrategicData(
            waterfall=waterfall,
            return_impact=impact,
            category_performance=[_with_rates(g) for g in r["categories"]],
            regional_performance=[_with_rates(g) for g in r["regions"]],
            monthly_trends=[_with_rates(g, key="period") for g in r["monthly"]],
            return_reasons=r["reasons"],
            return_solutions=r["solutions"],
            cost_bottlenecks=metrics.category_cost_composition(r["bottlenecks"]),
            high_cost_products=metrics.flag_cost_bottlenecks(r["high_cost"]),
            warranty=r["warranty"],
            unique_customers=comp["unique_customers"],
            unique_products=comp["unique_products"],
            alerts=scoring.strategic_alerts(waterfall, impact, r["categories"]),
        )

    def inventory_aging(self, ctx: RequestContext) -> metrics.AgingReport:
        p = self._predicate(ctx)
        r = self._run(ctx, "inventory_aging", {"rows": lambda repo: repo.aging_rows(p)})
        return metrics.build_aging(r["rows"], ctx.as_of)

    def freight(self, ctx: RequestContext) -> scoring.FreightSummary:
        p = self._predicate(ctx)
        r = self._run(ctx, "freight", {
            "totals": lambda repo: repo.freight_totals(p),
            "suppliers": lambda repo: repo.freight_by_supplier(p),
            "categories": lambda repo: repo.freight_by_category(p),
        })
        return scoring.build_freight_summary(r["totals"], r["suppliers"], r["categories"])

    def margins(self, ctx: RequestContext) -> MarginData:
        p = self._predicate(ctx)
        r = self._run(ctx, "margins", {
            "kpis": lambda repo: repo.kpi_totals(p),
            "categories": lambda repo: repo.category_breakdown(p),
            "makes": lambda repo: repo.margin_by_make(p),
            "negative": lambda repo: repo.negative_margin_totals(p),
            "worst": lambda repo: repo.negative_margin_items(p),
            "monthly": lambda repo: repo.monthly_trends(p, limit_n=MONTHLY_MARGIN_LIMIT),
        })
        kpis = metrics.build_kpis(r["kpis"])
        return MarginData(
            overall_margin=kpis.profit_margin,
            by_category=metrics.to_performers(r["categories"]),
            by_make=metrics.to_performers(r["makes"]),
            negative_margin_items=r["negative"]["items"],
            negative_margin_value=r["negative"]["loss"],
            worst_items=r["worst"],
            monthly_margin=[
                {"period": g.name, "revenue": g.revenue, "profit": g.profit,
                 "margin": metrics.profit_margin(g.profit, g.revenue)}
                for g in r["monthly"]
            ],
        )

    def orders(self, ctx: RequestContext) -> OrdersData:
        p = self._predicate(ctx)
        r = self._run(ctx, "orders", {
            "kpis": lambda repo: repo.kpi_totals(p),
            "monthly": lambda repo: repo.monthly_trends(p),
            "customers": lambda repo: repo.orders_by_customer(p, limit_n=ORDERS_BY_CUSTOMER_LIMIT),
            "status": lambda repo: repo.orders_by_status(p),
            "top": lambda repo: repo.top_orders(p),
            "sizes": lambda repo: repo.items_per_order(p),
        })
        kpis = metrics.build_kpis(r["kpis"])
        return OrdersData(
            total_orders=kpis.total_orders,
            average_order_value=kpis.average_order_value,
            average_items_per_order=scoring.average_items_per_order(r["sizes"]),
            monthly_orders=[
                {"period": g.name, "orders": g.orders, "units": g.units, "revenue": g.revenue}
                for g in r["monthly"]
            ],
            orders_by_customer=metrics.to_performers(r["customers"], count="orders"),
            orders_by_status=[{"status": g.name, "orders": g.orders, "units": g.units} for g in r["status"]],
            top_orders=r["top"],
            items_per_order=scoring.bucket_items_per_order(r["sizes"]),
        )

    def customers(self, ctx: RequestContext) -> CustomersData:
        p = self._predicate(ctx)
        r = self._run(ctx, "customers", {
            "kpis": lambda repo: repo.kpi_totals(p),
            "customers": lambda repo: repo.customer_totals(p),
        })
        rows: List[GroupTotals] = r["customers"]
        performers = metrics.to_performers(rows, count="orders")
        profiles = scoring.profile_customers(rows)
        return CustomersData(
            total_customers=len(rows),
            top_by_revenue=performers[:CUSTOMER_RANKING_LIMIT],
            top_by_profit=sorted(performers, key=lambda x: (-x.profit, x.name))[:CUSTOMER_RANKING_LIMIT],
            top_by_volume=sorted(performers, key=lambda x: (-x.units, x.name))[:CUSTOMER_RANKING_LIMIT],
            concentration=metrics.customer_concentration([g.revenue for g in rows], r["kpis"]["revenue"]),
            tiers=scoring.tier_counts(profiles),
            at_risk=[c for c in profiles if c.tier == "at-risk"][:10],
            churn=metrics.score_churn(rows, ctx.as_of),
        )

    def products(self, ctx: RequestContext) -> ProductsData:
        p = self._sales_predicate(ctx)
        r = self._run(ctx, "products", {
            "products": lambda repo: repo.product_totals(p, limit_n=PRODUCT_MATRIX_LIMIT),
        })
        scores = scoring.score_product_quadrants(r["products"])
        return ProductsData(products=scores, quadrants=scoring.group_quadrants(scores))

    def forecast(self, ctx: RequestContext) -> ForecastData:
        p = self._predicate(ctx)
        r = self._run(ctx, "forecast", {
            "monthly": lambda repo: repo.monthly_trends(p),
            "customers": lambda repo: repo.customer_totals(p),
        })
        months: List[GroupTotals] = r["monthly"]
        periods = [g.name for g in months]
        revenue = [float(g.revenue) for g in months]
        units = [float(g.units) for g in months]
        margins = [metrics.profit_margin(g.profit, g.revenue) for g in months]
        returns = [metrics.return_rate(g.returns, g.units) for g in months]

        averages = {w: forecasting.moving_average(revenue, w) for w in MOVING_AVERAGE_WINDOWS}
        history = []
        for i, g in enumerate(months):
            row: Dict[str, Any] = {"period": g.name, "value": g.revenue}
            for w in MOVING_AVERAGE_WINDOWS:
                row[f"ma{w}"] = averages[w][i]
            history.append(row)

        points = forecasting.forecast_series(periods, revenue)
        return ForecastData(
            historical_months=len(months),
            revenue_history=history,
            revenue_trend=forecasting.analyze_trend(revenue),
            volume_trend=forecasting.analyze_trend(units),
            margin_trend=forecasting.analyze_trend(margins),
            return_rate_trend=forecasting.analyze_trend(returns),
            seasonality=forecasting.detect_seasonality(list(zip(periods, revenue))),
            revenue_forecast=points,
            next_period_prediction=points[0].predicted if points else 0.0,
            next_quarter_prediction=sum(pt.predicted for pt in points),
            confidence=round(forecasting.linear_regression(revenue).r2 * 100),
            churn=metrics.score_churn(r["customers"], ctx.as_of),
        )

    def filter_options(self, ctx: Optional[RequestContext] = None) -> Dict[str, List[str]]:
        ctx = ctx or RequestContext()
        return self._run(ctx, "filter_options", {"options": lambda repo: repo.filter_options()})["options"]

    # --------------------------- Fan-out / fan-in ---------------------------

    def _run(self, ctx: RequestContext, view: str, jobs: Dict[str, Job]) -> Dict[str, Any]:
        started = time.monotonic()
        open_conns: List[sqlite3.Connection] = []
        lock = threading.Lock()
        abandoned = threading.Event()

        def task(job: Job) -> Any:
            if abandoned.is_set():
                raise StoreUnavailable("request abandoned")
            conn = self._factory()
            with lock:
                open_conns.append(conn)
            try:
                if abandoned.is_set():
                    raise StoreUnavailable("request abandoned")
                return job(AnalyticsRepo(conn))
            finally:
                with lock:
                    open_conns.remove(conn)
                conn.close()

        def abandon() -> None:
            abandoned.set()
            with lock:
                for c in open_conns:
                    c.interrupt()

        pool = ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(jobs)),
            thread_name_prefix=f"agg-{view}",
        )
        try:
            futures = {name: pool.submit(task, job) for name, job in jobs.items()}
            done, pending = wait(futures.values(), timeout=ctx.timeout, return_when=FIRST_EXCEPTION)

            failed = next((f for f in done if f.exception() is not None), None)
            if failed is not None:
                abandon()
                exc = failed.exception()
                if isinstance(exc, StoreUnavailable):
                    raise exc
                if isinstance(exc, (sqlite3.Error, OSError)):
                    _log.error("[%s] %s query failed: %s", ctx.request_id, view, exc)
                    raise StoreUnavailable(f"{view}: {exc}") from exc
                raise exc
            if pending:
                abandon()
                _log.error("[%s] %s timed out after %.1fs", ctx.request_id, view, ctx.timeout)
                raise StoreUnavailable(f"{view}: timed out after {ctx.timeout:g}s")

            results = {name: f.result() for name, f in futures.items()}
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        _log.debug(
            "[%s] %s: %d queries in %.3fs", ctx.request_id, view, len(jobs), time.monotonic() - started
        )
        return results


def _with_rates(g: GroupTotals, key: str = "name") -> Dict[str, Any]:
    return {
        key: g.name,
        "units": g.units,
        "revenue": g.revenue,
        "cost": g.cost,
        "profit": g.profit,
        "margin": metrics.profit_margin(g.profit, g.revenue),
        "returns": g.returns,
        "return_rate": metrics.return_rate(g.returns, g.units),
    }
