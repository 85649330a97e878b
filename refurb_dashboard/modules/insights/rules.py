# refurb_dashboard/modules/insights/rules.py
"""
Deterministic insight text used when the narrative service is absent or fails.

Each context reads the wire form of the matching engine view
(e.g. `engine.freight(ctx).to_dict()`), so keys are camelCase.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, Mapping

from ...utils.helpers import fmt_money
from .models import Insights

MARGIN_TARGET_PCT = 15.0
FREIGHT_SHARE_PCT = 10.0
FREIGHT_CONCENTRATION_PCT = 50.0
HOLDING_TARGET_DAYS = 90
CUSTOMER_CONCENTRATION_PCT = 40.0


def _num(data: Mapping[str, Any], key: str) -> float:
    value = data.get(key)
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _executive_summary(data: Mapping[str, Any], out: Insights) -> None:
    kpis = data.get("kpis") or {}
    margin = _num(kpis, "profitMargin")
    out.summary = (
        f"Total revenue is ${fmt_money(_num(kpis, 'totalRevenue'))} with a {margin:.1f}% "
        f"profit margin across {int(_num(kpis, 'unitsSold'))} units sold."
    )
    if margin < MARGIN_TARGET_PCT:
        out.key_findings.append(f"Profit margin of {margin:.1f}% is below the target threshold of 15%")
        out.recommendations.append("Review pricing strategy and negotiate better supplier terms to improve margins")
    aov = _num(kpis, "averageOrderValue")
    if aov > 0:
        out.key_findings.append(f"Average order value is ${fmt_money(aov)}")


def _freight(data: Mapping[str, Any], out: Insights) -> None:
    share = _num(data, "freightPctOfCost")
    if share > FREIGHT_SHARE_PCT:
        out.key_findings.append(f"Freight costs represent {share:.1f}% of total costs")
        out.recommendations.append("Consolidate shipments and negotiate volume discounts with carriers")
    concentration = _num(data, "top3Concentration")
    if concentration > FREIGHT_CONCENTRATION_PCT:
        out.risks.append(f"High supplier concentration: {concentration:.0f}% of freight from top 3 suppliers")


def _inventory(data: Mapping[str, Any], out: Insights) -> None:
    dead = _num(data, "deadStockValue")
    if dead > 0:
        out.risks.append(f"Dead stock valued at ${fmt_money(dead)} requires attention")
        out.recommendations.append("Consider liquidation strategies or promotional campaigns for aging inventory")
    days = int(_num(data, "averageDaysHeld"))
    if days > HOLDING_TARGET_DAYS:
        out.key_findings.append(f"Average inventory holding period of {days} days exceeds 90-day target")


def _margins(data: Mapping[str, Any], out: Insights) -> None:
    items = int(_num(data, "negativeMarginItems"))
    if items > 0:
        out.risks.append(
            f"{items} items sold at negative margin totaling "
            f"${fmt_money(_num(data, 'negativeMarginValue'))} in losses"
        )
        out.recommendations.append("Review pricing for negative margin products and consider discontinuation")


def _customers(data: Mapping[str, Any], out: Insights) -> None:
    pct = _num(data.get("concentration") or {}, "percent")
    if pct > CUSTOMER_CONCENTRATION_PCT:
        out.risks.append(f"Top 5 customers account for {pct:.0f}% of revenue - high concentration risk")
        out.recommendations.append("Diversify customer base through targeted marketing and new customer acquisition")


_RULES: Dict[str, Callable[[Mapping[str, Any], Insights], None]] = {
    "executive_summary": _executive_summary,
    "freight": _freight,
    "inventory": _inventory,
    "margins": _margins,
    "customers": _customers,
}


def rule_based_insights(context: str, data: Mapping[str, Any]) -> Insights:
    out = Insights(source="rules")
    rule = _RULES.get(context)
    if rule is None:
        out.summary = "Analysis complete. Review the data for detailed insights."
    else:
        rule(data or {}, out)

    if not out.key_findings:
        out.key_findings.append("Data patterns are within expected ranges")
    if not out.summary:
        label = context.replace("_", " ")
        out.summary = f"{label[:1].upper()}{label[1:]} analysis indicates stable operations with opportunities for optimization."
    if not out.opportunities:
        out.opportunities.append("Continue monitoring key metrics for emerging trends")
    return out
