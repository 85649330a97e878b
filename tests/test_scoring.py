# tests/test_scoring.py
from decimal import Decimal

import pytest

from refurb_dashboard.database.repositories import GroupTotals
from refurb_dashboard.modules.analytics import metrics as m
from refurb_dashboard.modules.analytics import scoring as s


# ----------------------------- Customers -----------------------------

@pytest.mark.parametrize(
    "revenue, margin, returns_pct, tier",
    [
        (150_000, 20.0, 2.0, "platinum"),
        (150_000, 20.0, 6.0, "gold"),  # returns too high for platinum
        (60_000, 12.0, 0.0, "gold"),
        (20_000, 6.0, 0.0, "silver"),
        (5_000, 10.0, 20.0, "at-risk"),
        (5_000, -1.0, 0.0, "at-risk"),
        (5_000, 10.0, 0.0, "bronze"),
    ],
)
def test_customer_tiers(revenue, margin, returns_pct, tier):
    assert s.classify_customer_tier(Decimal(revenue), margin, returns_pct) == tier


def test_customer_risk_level():
    assert s.customer_risk_level(20.0, 16.0) == "high"
    assert s.customer_risk_level(-0.5, 0.0) == "high"
    assert s.customer_risk_level(20.0, 11.0) == "medium"
    assert s.customer_risk_level(4.0, 0.0) == "medium"
    assert s.customer_risk_level(20.0, 2.0) == "low"


def test_profile_customers_and_tier_counts():
    rows = [
        GroupTotals("Acme", Decimal("200000"), Decimal("150000"), 100, orders=8, returns=1, last_date="2024-06-01"),
        GroupTotals("Beta", Decimal("800"), Decimal("900"), 4, orders=2),
    ]
    acme, beta = s.profile_customers(rows)
    assert acme.tier == "platinum"
    assert acme.margin == pytest.approx(25.0)
    assert acme.return_rate == pytest.approx(1.0)
    assert acme.last_order == "2024-06-01"
    assert beta.tier == "at-risk"
    assert beta.risk_level == "high"
    assert beta.last_order == ""
    assert s.tier_counts([acme, beta]) == {"platinum": 1, "gold": 0, "silver": 0, "bronze": 0, "at-risk": 1}


# ----------------------------- Products -----------------------------

def test_product_risk_score():
    assert s.product_risk_score(0.0, 20.0) == 0.0
    assert s.product_risk_score(2.0, 20.0) == 10.0
    assert s.product_risk_score(0.0, 3.0) == 30.0
    assert s.product_risk_score(0.0, -3.0) == 80.0
    assert s.product_risk_score(30.0, -3.0) == 100.0  # capped


def test_product_quadrants():
    rows = [
        GroupTotals("Star", Decimal("1000"), Decimal("500"), 10),              # reward 100, risk 0
        GroupTotals("Cow", Decimal("1000"), Decimal("600"), 1),                # reward 45, risk 0
        GroupTotals("Question", Decimal("500"), Decimal("250"), 5, returns=3),  # reward 50, risk 100
        GroupTotals("Dog", Decimal("200"), Decimal("100"), 2),                 # reward 20
    ]
    scores = s.score_product_quadrants(rows)
    assert [x.product for x in scores] == ["Star", "Cow", "Question", "Dog"]
    assert [x.quadrant for x in scores] == ["star", "cash-cow", "question-mark", "dog"]
    assert scores[0].reward_score == pytest.approx(100.0)
    assert scores[1].reward_score == pytest.approx(45.0)
    assert scores[2].risk_score == 100.0

    groups = s.group_quadrants(scores + scores, limit_n=1)
    assert [len(v) for v in groups.values()] == [1, 1, 1, 1]


def test_product_quadrants_without_profit():
    rows = [GroupTotals("Loss", Decimal("100"), Decimal("150"), 3)]
    (only,) = s.score_product_quadrants(rows)
    assert only.reward_score == pytest.approx(50.0)  # volume only
    assert only.quadrant == "question-mark"  # risk 80
    assert s.score_product_quadrants([]) == []


# ----------------------------- Freight -----------------------------

def test_freight_summary_flags_supplier_concentration():
    suppliers = [
        {"name": "A", "freight": Decimal("40"), "units": 4, "cost": Decimal("400")},
        {"name": "B", "freight": Decimal("30"), "units": 0, "cost": Decimal("300")},
        {"name": "C", "freight": Decimal("20"), "units": 2, "cost": Decimal("200")},
        {"name": "D", "freight": Decimal("10"), "units": 1, "cost": Decimal("100")},
    ]
    summary = s.build_freight_summary({"freight": Decimal("100"), "cost": Decimal("1000")}, suppliers, [])
    assert summary.freight_pct_of_cost == pytest.approx(10.0)
    assert summary.top3_concentration == pytest.approx(90.0)
    assert [a.kind for a in summary.alerts] == ["freight_concentration"]
    assert summary.by_supplier[0]["freight_per_unit"] == Decimal("10")
    assert summary.by_supplier[1]["freight_per_unit"] == Decimal("0")
    assert summary.by_supplier[0]["pct_of_cost"] == pytest.approx(10.0)

    wire = summary.to_dict()
    assert wire["freightPctOfCost"] == 10.0
    assert wire["bySupplier"][0]["freightPerUnit"] == 10.0


def test_freight_summary_quiet_when_spread_out():
    suppliers = [{"name": n, "freight": Decimal("10"), "units": 1, "cost": Decimal("50")} for n in "ABCDEF"]
    summary = s.build_freight_summary({"freight": Decimal("60"), "cost": Decimal("300")}, suppliers, [])
    assert summary.top3_concentration == pytest.approx(50.0)
    assert summary.alerts == []


def test_freight_summary_empty():
    summary = s.build_freight_summary({}, [], [])
    assert summary.total_freight == Decimal("0")
    assert summary.freight_pct_of_cost == 0.0
    assert summary.alerts == []


# ----------------------------- Orders -----------------------------

def test_items_per_order_buckets():
    hist = [{"items": 1, "orders": 4}, {"items": 3, "orders": 2}, {"items": 5, "orders": 1}, {"items": 12, "orders": 1}]
    assert s.bucket_items_per_order(hist) == [
        {"range": "1", "orders": 4},
        {"range": "2-5", "orders": 3},
        {"range": "6-10", "orders": 0},
        {"range": "11+", "orders": 1},
    ]
    assert s.average_items_per_order(hist) == pytest.approx((4 + 6 + 5 + 12) / 8)
    assert s.average_items_per_order([]) == 0.0


# ----------------------------- Strategic alerts -----------------------------

def test_strategic_alerts():
    waterfall = m.build_waterfall({"revenue": Decimal("1000"), "purchase": Decimal("980")}, Decimal("0"))
    impact = m.build_return_impact(100, {"units_returned": 12, "profit_lost": Decimal("1500")})
    categories = [
        GroupTotals("Laptop", Decimal("1000"), Decimal("800"), 3),
        GroupTotals("Tablet", Decimal("100"), Decimal("150"), 2),
    ]
    alerts = s.strategic_alerts(waterfall, impact, categories)
    assert [(a.kind, a.severity) for a in alerts] == [
        ("margin", "warning"),
        ("returns", "critical"),
        ("category", "critical"),
    ]
    assert "$1,500.00" in alerts[1].message
    assert alerts[2].message == "Tablet lost $50.00 on 2 units"


def test_strategic_alerts_quiet_for_healthy_numbers():
    waterfall = m.build_waterfall({"revenue": Decimal("1000"), "purchase": Decimal("500")}, Decimal("0"))
    impact = m.build_return_impact(100, {"units_returned": 2})
    assert s.strategic_alerts(waterfall, impact, []) == []


def test_strategic_alerts_skip_margin_without_revenue():
    waterfall = m.build_waterfall({}, Decimal("0"))
    impact = m.build_return_impact(0, {})
    assert s.strategic_alerts(waterfall, impact, []) == []
