# refurb_dashboard/modules/analytics/scoring.py
"""Segmentation, scoring and alert rules layered on the basic metrics."""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Sequence

from ...constants import (
    FREIGHT_CONCENTRATION_ALERT_PCT,
    NET_MARGIN_WARNING_PCT,
    RETURN_RATE_CRITICAL_PCT,
    RETURN_RATE_WARNING_PCT,
)
from ...database.repositories.analytics_repo import GroupTotals
from ...utils.helpers import ZERO, fmt_money, to_decimal, to_wire
from .metrics import (
    Alert,
    ProfitabilityWaterfall,
    ReturnImpact,
    ratio_pct,
    profit_margin,
    return_rate,
)


# ----------------------------- Customers -----------------------------

def classify_customer_tier(revenue: Any, margin: float, returns_pct: float) -> str:
    rev = to_decimal(revenue)
    if rev > 100_000 and margin > 15 and returns_pct < 5:
        return "platinum"
    if rev > 50_000 and margin > 10:
        return "gold"
    if rev > 10_000 and margin > 5:
        return "silver"
    if returns_pct > 15 or margin < 0:
        return "at-risk"
    return "bronze"


def customer_risk_level(margin: float, returns_pct: float) -> str:
    if returns_pct > 15 or margin < 0:
        return "high"
    if returns_pct > 10 or margin < 5:
        return "medium"
    return "low"


@dataclass(frozen=True)
class CustomerProfile:
    customer: str
    revenue: Decimal
    profit: Decimal
    units: int
    orders: int
    margin: float
    return_rate: float
    tier: str
    risk_level: str
    last_order: str


def profile_customers(rows: Iterable[GroupTotals]) -> List[CustomerProfile]:
    out: List[CustomerProfile] = []
    for r in rows:
        m = profit_margin(r.profit, r.revenue)
        rr = return_rate(r.returns, r.units)
        out.append(CustomerProfile(
            customer=r.name,
            revenue=r.revenue,
            profit=r.profit,
            units=r.units,
            orders=r.orders,
            margin=m,
            return_rate=rr,
            tier=classify_customer_tier(r.revenue, m, rr),
            risk_level=customer_risk_level(m, rr),
            last_order=r.last_date or "",
        ))
    return out


def tier_counts(profiles: Iterable[CustomerProfile]) -> Dict[str, int]:
    counts = {t: 0 for t in ("platinum", "gold", "silver", "bronze", "at-risk")}
    for p in profiles:
        counts[p.tier] += 1
    return counts


# ----------------------------- Products -----------------------------

@dataclass(frozen=True)
class ProductScore:
    product: str
    revenue: Decimal
    profit: Decimal
    units: int
    margin: float
    return_rate: float
    risk_score: float
    reward_score: float
    quadrant: str


def product_risk_score(returns_pct: float, margin: float) -> float:
    """0-100, higher is riskier: returns weigh 5x, thin and negative margins add flat penalties."""
    score = returns_pct * 5
    if margin < 5:
        score += 30
    if margin < 0:
        score += 50
    return min(100.0, score)


def quadrant_for(reward: float, risk: float) -> str:
    if reward > 50 and risk < 30:
        return "star"
    if reward > 30 and risk < 50:
        return "cash-cow"
    if reward > 30 and risk >= 50:
        return "question-mark"
    return "dog"


def score_product_quadrants(rows: Sequence[GroupTotals]) -> List[ProductScore]:
    """
    Reward = profit share of the best product (50) + volume share of the
    busiest product (50). Products keep the input order.
    """
    max_profit = max((r.profit for r in rows), default=ZERO)
    max_units = max((r.units for r in rows), default=0)
    out: List[ProductScore] = []
    for r in rows:
        m = profit_margin(r.profit, r.revenue)
        rr = return_rate(r.returns, r.units)
        risk = product_risk_score(rr, m)
        profit_score = float(r.profit / max_profit * 50) if max_profit > 0 else 0.0
        volume_score = (r.units / max_units * 50) if max_units > 0 else 0.0
        reward = min(100.0, profit_score + volume_score)
        out.append(ProductScore(r.name, r.revenue, r.profit, r.units, m, rr, risk, reward, quadrant_for(reward, risk)))
    return out


def group_quadrants(scores: Iterable[ProductScore], limit_n: int = 10) -> Dict[str, List[ProductScore]]:
    groups: Dict[str, List[ProductScore]] = {"star": [], "cash-cow": [], "question-mark": [], "dog": []}
    for s in scores:
        if len(groups[s.quadrant]) < limit_n:
            groups[s.quadrant].append(s)
    return groups


# ----------------------------- Freight -----------------------------

@dataclass(frozen=True)
class FreightSummary:
    total_freight: Decimal
    total_cost: Decimal
    freight_pct_of_cost: float
    top3_concentration: float
    by_supplier: List[Dict[str, Any]]
    by_category: List[Dict[str, Any]]
    alerts: List[Alert]

    def to_dict(self) -> Dict[str, Any]:
        return to_wire(self)


def _freight_rows(rows: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    out = []
    for r in rows:
        freight = to_decimal(r.get("freight"))
        units = int(r.get("units") or 0)
        out.append({
            "name": r["name"],
            "units": units,
            "freight": freight,
            "freight_per_unit": (freight / units) if units else ZERO,
            "pct_of_cost": ratio_pct(freight, r.get("cost")),
        })
    return out


def build_freight_summary(
    totals: Mapping[str, Any],
    by_supplier: Sequence[Mapping[str, Any]],
    by_category: Sequence[Mapping[str, Any]],
) -> FreightSummary:
    freight = to_decimal(totals.get("freight"))
    cost = to_decimal(totals.get("cost"))
    top3 = sum((to_decimal(r.get("freight")) for r in by_supplier[:3]), ZERO)
    concentration = ratio_pct(top3, freight)
    alerts: List[Alert] = []
    if concentration > FREIGHT_CONCENTRATION_ALERT_PCT:
        alerts.append(Alert(
            "freight_concentration", "warning", "Freight Supplier Concentration",
            f"Top 3 suppliers account for {concentration:.0f}% of freight spend",
            concentration,
        ))
    return FreightSummary(
        total_freight=freight,
        total_cost=cost,
        freight_pct_of_cost=ratio_pct(freight, cost),
        top3_concentration=concentration,
        by_supplier=_freight_rows(by_supplier),
        by_category=_freight_rows(by_category),
        alerts=alerts,
    )


# ----------------------------- Orders -----------------------------

ITEMS_PER_ORDER_RANGES = (("1", 1, 1), ("2-5", 2, 5), ("6-10", 6, 10), ("11+", 11, None))


def bucket_items_per_order(histogram: Iterable[Mapping[str, int]]) -> List[Dict[str, Any]]:
    counts = {label: 0 for label, _lo, _hi in ITEMS_PER_ORDER_RANGES}
    for h in histogram:
        n = int(h["items"])
        for label, lo, hi in ITEMS_PER_ORDER_RANGES:
            if n >= lo and (hi is None or n <= hi):
                counts[label] += int(h["orders"])
                break
    return [{"range": label, "orders": counts[label]} for label, _lo, _hi in ITEMS_PER_ORDER_RANGES]


def average_items_per_order(histogram: Iterable[Mapping[str, int]]) -> float:
    units = orders = 0
    for h in histogram:
        units += int(h["items"]) * int(h["orders"])
        orders += int(h["orders"])
    return units / orders if orders else 0.0


# ----------------------------- Strategic alerts -----------------------------

def strategic_alerts(
    waterfall: ProfitabilityWaterfall,
    impact: ReturnImpact,
    categories: Iterable[GroupTotals],
) -> List[Alert]:
    alerts: List[Alert] = []
    if waterfall.gross_revenue > 0 and waterfall.net_margin < NET_MARGIN_WARNING_PCT:
        alerts.append(Alert(
            "margin",
            "critical" if waterfall.net_margin < 0 else "warning",
            "Net Margin Below Target",
            f"Net margin is {waterfall.net_margin:.1f}% after return impact",
            waterfall.net_margin,
        ))
    if impact.return_rate > RETURN_RATE_WARNING_PCT:
        alerts.append(Alert(
            "returns",
            "critical" if impact.return_rate > RETURN_RATE_CRITICAL_PCT else "warning",
            "Elevated Return Rate",
            f"{impact.return_rate:.1f}% of units sold came back, "
            f"${fmt_money(impact.profit_lost)} profit lost",
            impact.return_rate,
        ))
    for c in categories:
        if c.profit < 0:
            alerts.append(Alert(
                "category",
                "critical",
                f"Negative Margin: {c.name}",
                f"{c.name} lost ${fmt_money(-c.profit)} on {c.units} units",
                float(c.profit),
            ))
    return alerts
