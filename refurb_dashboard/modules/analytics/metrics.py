# refurb_dashboard/modules/analytics/metrics.py
"""
Derived metrics: pure functions over aggregation rows.

Nothing here touches the database or the clock; "now" always comes in as an
explicit `as_of` date. Currency stays Decimal end to end; percentages and
ratios are floats.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from ...constants import (
    AGING_BUCKETS,
    CAPITAL_LOCKUP_LIMIT,
    CHURN_BASE_PROBABILITY,
    CHURN_CADENCE_MULTIPLIER,
    CHURN_LIST_LIMIT,
    CHURN_MAX_PROBABILITY,
    CHURN_MIN_DAYS,
    CHURN_RAMP_DAYS,
    CONCENTRATION_RISK_PCT,
    CONCENTRATION_TOP_N,
    DEAD_STOCK_ALERT_SHARE,
    DEAD_STOCK_DAYS,
    HIGH_COST_RATIO_PCT,
    SLOW_MOVING_ALERT_SHARE,
    SLOW_MOVING_DAYS,
)
from ...database.repositories.analytics_repo import GroupTotals
from ...utils.helpers import ZERO, fmt_money, parse_iso, to_decimal, to_wire


# ----------------------------- Ratios -----------------------------

def ratio_pct(numerator: Any, denominator: Any) -> float:
    num, den = to_decimal(numerator), to_decimal(denominator)
    if den == 0:
        return 0.0
    return float(num / den * 100)


def profit_margin(profit: Any, revenue: Any) -> float:
    """profit / revenue x 100; 0 when revenue is 0."""
    return ratio_pct(profit, revenue)


def return_rate(returned: int, sold: int) -> float:
    """returned / sold x 100; 0 when nothing was sold."""
    if not sold:
        return 0.0
    return returned / sold * 100


def cost_ratio(total_cost: Any, revenue: Any) -> float:
    """totalCost / revenue x 100; 0 when revenue is 0."""
    return ratio_pct(total_cost, revenue)


@dataclass(frozen=True)
class Alert:
    kind: str
    severity: str  # "critical" | "high" | "warning" | "medium"
    title: str
    message: str
    value: float = 0.0


# ----------------------------- KPIs -----------------------------

@dataclass(frozen=True)
class KPISummary:
    total_revenue: Decimal
    total_cost: Decimal
    total_profit: Decimal
    profit_margin: float
    units_sold: int
    average_order_value: Decimal
    total_orders: int

    def to_dict(self) -> Dict[str, Any]:
        return to_wire(self)


def build_kpis(totals: Mapping[str, Any]) -> KPISummary:
    revenue = to_decimal(totals.get("revenue"))
    cost = to_decimal(totals.get("cost"))
    orders = int(totals.get("orders") or 0)
    profit = revenue - cost
    return KPISummary(
        total_revenue=revenue,
        total_cost=cost,
        total_profit=profit,
        profit_margin=profit_margin(profit, revenue),
        units_sold=int(totals.get("units") or 0),
        average_order_value=(revenue / orders) if orders else ZERO,
        total_orders=orders,
    )


# ----------------------------- Rankings -----------------------------

@dataclass(frozen=True)
class Performer:
    """One CategoryBreakdown / TopPerformer row."""

    name: str
    revenue: Decimal
    profit: Decimal
    units: int
    count: int
    margin: float

    def to_dict(self, key: str = "name") -> Dict[str, Any]:
        d = to_wire(self)
        if key != "name":
            d[key] = d.pop("name")
        return d


def to_performers(rows: Iterable[GroupTotals], count: str = "units") -> List[Performer]:
    """
    `count` picks what the row's count means: "units" for categories,
    products and vendors, "orders" for customers.
    """
    out: List[Performer] = []
    for r in rows:
        out.append(Performer(
            name=r.name,
            revenue=r.revenue,
            profit=r.profit,
            units=r.units,
            count=r.orders if count == "orders" else r.units,
            margin=profit_margin(r.profit, r.revenue),
        ))
    return out


# ----------------------------- Waterfall -----------------------------

@dataclass(frozen=True)
class WaterfallStage:
    name: str
    value: Decimal
    kind: str  # "total" | "cost" | "subtotal"


@dataclass(frozen=True)
class ProfitabilityWaterfall:
    gross_revenue: Decimal
    purchase_cost: Decimal
    parts_cost: Decimal
    freight_cost: Decimal
    labor_cost: Decimal
    packaging_cost: Decimal
    other_costs: Decimal
    gross_profit: Decimal
    gross_margin: float
    return_impact: Decimal
    net_profit: Decimal
    net_margin: float

    @property
    def total_costs(self) -> Decimal:
        return (
            self.purchase_cost + self.parts_cost + self.freight_cost
            + self.labor_cost + self.packaging_cost + self.other_costs
        )

    def stages(self) -> List[WaterfallStage]:
        """
        Signed bar sequence: costs negative, checkpoints positive (as computed).
        Packaging has no bar of its own and is drawn inside "Other".
        """
        return [
            WaterfallStage("Revenue", self.gross_revenue, "total"),
            WaterfallStage("Purchase", -self.purchase_cost, "cost"),
            WaterfallStage("Parts", -self.parts_cost, "cost"),
            WaterfallStage("Freight", -self.freight_cost, "cost"),
            WaterfallStage("Labor", -self.labor_cost, "cost"),
            WaterfallStage("Other", -(self.packaging_cost + self.other_costs), "cost"),
            WaterfallStage("Gross Profit", self.gross_profit, "subtotal"),
            WaterfallStage("Returns", -self.return_impact, "cost"),
            WaterfallStage("Net Profit", self.net_profit, "subtotal"),
        ]

    def to_dict(self) -> Dict[str, Any]:
        return to_wire(self)


def build_waterfall(components: Mapping[str, Any], return_impact: Any) -> ProfitabilityWaterfall:
    """
    components: sums from AnalyticsRepo.sales_cost_components().
    Labor = resource + standardisation; Other = misc + consumable + battery +
    lcd + coa + customs duty.
    """
    c = {k: to_decimal(components.get(k)) for k in (
        "revenue", "purchase", "parts", "freight", "resource", "standardisation",
        "packaging", "misc", "consumable", "battery", "lcd", "coa", "customs",
    )}
    labor = c["resource"] + c["standardisation"]
    other = c["misc"] + c["consumable"] + c["battery"] + c["lcd"] + c["coa"] + c["customs"]
    revenue = c["revenue"]
    gross = revenue - (c["purchase"] + c["parts"] + c["freight"] + labor + c["packaging"] + other)
    impact = to_decimal(return_impact)
    net = gross - impact
    return ProfitabilityWaterfall(
        gross_revenue=revenue,
        purchase_cost=c["purchase"],
        parts_cost=c["parts"],
        freight_cost=c["freight"],
        labor_cost=labor,
        packaging_cost=c["packaging"],
        other_costs=other,
        gross_profit=gross,
        gross_margin=profit_margin(gross, revenue),
        return_impact=impact,
        net_profit=net,
        net_margin=profit_margin(net, revenue),
    )


@dataclass(frozen=True)
class ReturnImpact:
    units_sold: int
    units_returned: int
    return_rate: float
    revenue_at_risk: Decimal
    profit_lost: Decimal


def build_return_impact(units_sold: int, impact: Mapping[str, Any]) -> ReturnImpact:
    returned = int(impact.get("units_returned") or 0)
    return ReturnImpact(
        units_sold=int(units_sold or 0),
        units_returned=returned,
        return_rate=return_rate(returned, units_sold),
        revenue_at_risk=to_decimal(impact.get("revenue_at_risk")),
        profit_lost=to_decimal(impact.get("profit_lost")),
    )


# ----------------------------- Cost bottlenecks -----------------------------

@dataclass(frozen=True)
class CostBottleneck:
    name: str
    revenue: Decimal
    total_cost: Decimal
    units: int
    cost_ratio: float
    high_cost_ratio: bool


def flag_cost_bottlenecks(rows: Iterable[GroupTotals], threshold: float = HIGH_COST_RATIO_PCT) -> List[CostBottleneck]:
    """Mark rows whose cost ratio is at or above `threshold`; nothing is dropped."""
    out: List[CostBottleneck] = []
    for r in rows:
        ratio = cost_ratio(r.cost, r.revenue)
        out.append(CostBottleneck(r.name, r.revenue, r.cost, r.units, ratio, ratio >= threshold))
    return out


def category_cost_composition(rows: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Per-category component shares of total cost (percent) plus the cost ratio."""
    out: List[Dict[str, Any]] = []
    for r in rows:
        total = to_decimal(r.get("total_cost"))
        d: Dict[str, Any] = {"name": r["name"], "units": int(r.get("units") or 0), "total_cost": total}
        for comp in ("purchase", "parts", "freight", "packaging"):
            d[f"{comp}_share"] = ratio_pct(r.get(comp), total)
        ratio = cost_ratio(total, r.get("revenue"))
        d["cost_ratio"] = ratio
        d["high_cost_ratio"] = ratio >= HIGH_COST_RATIO_PCT
        out.append(d)
    return out


# ----------------------------- Inventory aging -----------------------------

@dataclass(frozen=True)
class AgingBucket:
    range: str
    count: int
    value: Decimal
    percent_of_total: float


@dataclass(frozen=True)
class AgingReport:
    total_value: Decimal
    average_days_held: int
    buckets: List[AgingBucket]
    dead_stock_count: int
    dead_stock_value: Decimal
    slow_moving_count: int
    slow_moving_value: Decimal
    capital_lockup_by_category: List[Dict[str, Any]] = field(default_factory=list)
    alerts: List[Alert] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return to_wire(self)


def days_held(row: Mapping[str, Any], as_of: date) -> Optional[int]:
    """
    Days from receipt (purchase date when receipt is missing) to sale, or to
    `as_of` while unsold. None when the unit has no usable start date.
    """
    start = parse_iso(row.get("received_date")) or parse_iso(row.get("purch_date"))
    if start is None:
        return None
    end = parse_iso(row.get("invoice_date")) or as_of
    return max(0, (end - start).days)


def _bucket_index(days: int) -> int:
    for i, (_label, lo, hi) in enumerate(AGING_BUCKETS):
        if days >= lo and (hi is None or days <= hi):
            return i
    return len(AGING_BUCKETS) - 1


def build_aging(rows: Iterable[Mapping[str, Any]], as_of: date) -> AgingReport:
    """
    Partition units by days held. Units without a start date are left out of
    every bucket and of the totals, so bucket percentages always sum to 100
    for a non-empty set (by value, or by count when all values are zero).
    """
    counts = [0] * len(AGING_BUCKETS)
    values = [ZERO] * len(AGING_BUCKETS)
    total_days = 0
    dead_n, dead_v = 0, ZERO
    slow_n, slow_v = 0, ZERO
    by_cat: Dict[str, Dict[str, Any]] = {}

    for row in rows:
        d = days_held(row, as_of)
        if d is None:
            continue
        cost = to_decimal(row.get("cost"))
        i = _bucket_index(d)
        counts[i] += 1
        values[i] += cost
        total_days += d

        unsold = parse_iso(row.get("invoice_date")) is None
        if unsold and d > DEAD_STOCK_DAYS:
            dead_n += 1
            dead_v += cost
        elif unsold and d > SLOW_MOVING_DAYS:
            slow_n += 1
            slow_v += cost

        cat = by_cat.setdefault(str(row.get("category") or "Unknown"), {"value": ZERO, "days": 0, "count": 0})
        cat["value"] += cost
        cat["days"] += d
        cat["count"] += 1

    total_count = sum(counts)
    total_value = sum(values, ZERO)

    buckets: List[AgingBucket] = []
    for (label, _lo, _hi), n, v in zip(AGING_BUCKETS, counts, values):
        if total_value != 0:
            pct = float(v / total_value * 100)
        elif total_count:
            pct = n / total_count * 100
        else:
            pct = 0.0
        buckets.append(AgingBucket(label, n, v, pct))

    lockup = sorted(
        (
            {"category": name, "value": c["value"], "avg_days": round(c["days"] / c["count"]) if c["count"] else 0}
            for name, c in by_cat.items()
        ),
        key=lambda x: (-x["value"], x["category"]),
    )[:CAPITAL_LOCKUP_LIMIT]

    alerts: List[Alert] = []
    if total_value > 0 and dead_v > total_value * Decimal(str(DEAD_STOCK_ALERT_SHARE)):
        alerts.append(Alert(
            "dead_stock", "high", "High Dead Stock Value",
            f"${fmt_money(dead_v)} in inventory unsold for {DEAD_STOCK_DAYS}+ days",
            float(dead_v),
        ))
    if total_value > 0 and slow_v > total_value * Decimal(str(SLOW_MOVING_ALERT_SHARE)):
        alerts.append(Alert(
            "slow_moving", "medium", "Slow-Moving Inventory",
            f"${fmt_money(slow_v)} in inventory unsold for {SLOW_MOVING_DAYS}-{DEAD_STOCK_DAYS} days",
            float(slow_v),
        ))

    return AgingReport(
        total_value=total_value,
        average_days_held=round(total_days / total_count) if total_count else 0,
        buckets=buckets,
        dead_stock_count=dead_n,
        dead_stock_value=dead_v,
        slow_moving_count=slow_n,
        slow_moving_value=slow_v,
        capital_lockup_by_category=lockup,
        alerts=alerts,
    )


# ----------------------------- Concentration -----------------------------

@dataclass(frozen=True)
class Concentration:
    top_n: int
    top_revenue: Decimal
    total_revenue: Decimal
    percent: float
    is_concentrated: bool


def customer_concentration(
    revenues: Sequence[Any],
    total_revenue: Any,
    top_n: int = CONCENTRATION_TOP_N,
    threshold: float = CONCENTRATION_RISK_PCT,
) -> Concentration:
    """Share of `total_revenue` held by the `top_n` largest of `revenues`."""
    ranked = sorted((to_decimal(r) for r in revenues), reverse=True)
    top = sum(ranked[:top_n], ZERO)
    pct = ratio_pct(top, total_revenue)
    return Concentration(top_n, top, to_decimal(total_revenue), pct, pct > threshold)


# ----------------------------- Churn -----------------------------

@dataclass(frozen=True)
class ChurnRisk:
    customer: str
    last_order: str
    days_since_last: int
    cadence_days: Optional[float]
    threshold_days: float
    orders: int
    historical_revenue: Decimal
    churn_probability: float


def order_cadence(first: Optional[date], last: Optional[date], orders: int) -> Optional[float]:
    """Average days between orders; None when there is no second order to measure."""
    if first is None or last is None or orders < 2:
        return None
    return (last - first).days / (orders - 1)


def score_churn(customers: Iterable[GroupTotals], as_of: date, limit_n: int = CHURN_LIST_LIMIT) -> List[ChurnRisk]:
    """
    Recency-vs-cadence heuristic:

      threshold   = max(CHURN_MIN_DAYS, cadence x CHURN_CADENCE_MULTIPLIER)
                    (CHURN_MIN_DAYS alone for single-order customers)
      at risk     when days since last order > threshold
      probability = min(0.95, 0.3 + (days_since - threshold) / 180)

    Increasing in recency for a fixed cadence; same input, same output.
    """
    out: List[ChurnRisk] = []
    for c in customers:
        last = parse_iso(c.last_date)
        if last is None:
            continue
        since = (as_of - last).days
        cadence = order_cadence(parse_iso(c.first_date), last, c.orders)
        threshold = float(CHURN_MIN_DAYS)
        if cadence is not None:
            threshold = max(threshold, cadence * CHURN_CADENCE_MULTIPLIER)
        if since <= threshold:
            continue
        prob = min(CHURN_MAX_PROBABILITY, CHURN_BASE_PROBABILITY + (since - threshold) / CHURN_RAMP_DAYS)
        out.append(ChurnRisk(
            customer=c.name,
            last_order=last.isoformat(),
            days_since_last=since,
            cadence_days=round(cadence, 1) if cadence is not None else None,
            threshold_days=round(threshold, 1),
            orders=c.orders,
            historical_revenue=c.revenue,
            churn_probability=round(prob, 4),
        ))
    out.sort(key=lambda r: (-r.churn_probability, -r.historical_revenue, r.customer))
    return out[:limit_n]
