# refurb_dashboard/constants.py

DATA_DIR = "data"
DB_FILE_NAME = "refurb_inventory.db"

TABLE_SCHEMA_VERSION = "schema_version"
SCHEMA_VERSION = "1.0.0"

# Only sales-order lines feed the strategic (waterfall / return impact) views.
SALES_ORDER_TRANS_TYPE = "SalesOrder"

UNKNOWN_LABEL = "Unknown"

# ----------------------------- Ranking caps -----------------------------

REVENUE_OVER_TIME_LIMIT = 30
TOP_PERFORMERS_LIMIT = 10
CATEGORY_PERFORMANCE_LIMIT = 10
RETURN_REASONS_LIMIT = 10
COST_BOTTLENECK_LIMIT = 15
HIGH_COST_PRODUCTS_LIMIT = 10
HIGH_COST_PRODUCTS_MIN_UNITS = 10
FREIGHT_SUPPLIER_LIMIT = 20
FREIGHT_CATEGORY_LIMIT = 15
MONTHLY_MARGIN_LIMIT = 12
ORDERS_BY_CUSTOMER_LIMIT = 15
TOP_ORDERS_LIMIT = 10
CUSTOMER_RANKING_LIMIT = 15
NEGATIVE_MARGIN_LIMIT = 20
CAPITAL_LOCKUP_LIMIT = 10
CHURN_LIST_LIMIT = 10
FILTER_OPTION_PARTY_LIMIT = 100
PRODUCT_MATRIX_LIMIT = 50

# ----------------------------- Thresholds -----------------------------

HIGH_COST_RATIO_PCT = 80.0
CONCENTRATION_TOP_N = 5
CONCENTRATION_RISK_PCT = 50.0
FREIGHT_CONCENTRATION_ALERT_PCT = 65.0

DEAD_STOCK_DAYS = 180
SLOW_MOVING_DAYS = 90
DEAD_STOCK_ALERT_SHARE = 0.10
SLOW_MOVING_ALERT_SHARE = 0.15

# (label, low, high) inclusive; None means open ended.
AGING_BUCKETS = (
    ("0-30", 0, 30),
    ("31-60", 31, 60),
    ("61-90", 61, 90),
    ("91-180", 91, 180),
    ("181+", 181, None),
)

NET_MARGIN_WARNING_PCT = 5.0
RETURN_RATE_WARNING_PCT = 5.0
RETURN_RATE_CRITICAL_PCT = 10.0

CHURN_MIN_DAYS = 90
CHURN_CADENCE_MULTIPLIER = 2
CHURN_BASE_PROBABILITY = 0.3
CHURN_MAX_PROBABILITY = 0.95
CHURN_RAMP_DAYS = 180

WARRANTY_EXPIRING_DAYS = 30

FORECAST_PERIODS = 3
MOVING_AVERAGE_WINDOWS = (3, 6, 12)

APP_NAME = "Refurb Inventory Dashboard"
STYLE_FILE = "styles.qss"
