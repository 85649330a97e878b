from pathlib import Path
import logging
import sqlite3
import sys

_log = logging.getLogger(__name__)

SQL = r"""
/* ======================== INVENTORY ======================== */

/* One row per physical unit. Currency columns hold decimal text (USD). */
CREATE TABLE IF NOT EXISTS inventory (
    id                        INTEGER PRIMARY KEY AUTOINCREMENT,
    invent_serial_id          TEXT,
    item_id                   TEXT,
    data_area_id              TEXT,
    deal_ref                  TEXT,

    category                  TEXT,
    make                      TEXT,
    model_num                 TEXT,
    grade_condition           TEXT,
    status                    TEXT,

    purch_price_usd           TEXT,
    parts_cost_usd            TEXT,
    freight_charges_usd       TEXT,
    resource_cost_usd         TEXT,
    standardisation_cost_usd  TEXT,
    packaging_cost_usd        TEXT,
    customs_duty_usd          TEXT,
    misc_cost_usd             TEXT,
    consumable_cost_usd       TEXT,
    battery_cost_usd          TEXT,
    lcd_cost_usd              TEXT,
    coa_cost_usd              TEXT,

    final_sales_price_usd     TEXT,
    final_total_cost_usd      TEXT,
    invoice_date              TEXT,
    sales_order_date          TEXT,
    sales_id                  TEXT,
    trans_type                TEXT,

    vend_name                 TEXT,
    invoicing_name            TEXT,

    purch_date                TEXT,
    received_date             TEXT,
    manufacturing_date        TEXT,
    warranty_start_date       TEXT,
    warranty_end_date         TEXT
);

CREATE INDEX IF NOT EXISTS idx_inventory_invoice_date ON inventory(invoice_date);
CREATE INDEX IF NOT EXISTS idx_inventory_category     ON inventory(category);
CREATE INDEX IF NOT EXISTS idx_inventory_customer     ON inventory(invoicing_name);
CREATE INDEX IF NOT EXISTS idx_inventory_vendor       ON inventory(vend_name);
CREATE INDEX IF NOT EXISTS idx_inventory_sales_id     ON inventory(sales_id);
CREATE INDEX IF NOT EXISTS idx_inventory_return_key
    ON inventory(invent_serial_id, data_area_id, item_id);

/* ======================== RETURNS ======================== */

CREATE TABLE IF NOT EXISTS returns (
    id                 INTEGER PRIMARY KEY AUTOINCREMENT,
    serial_id          TEXT,
    area_id            TEXT,
    item_id            TEXT,
    reason_for_return  TEXT,
    line_solution      TEXT,
    rma_status         TEXT,
    created_on         TEXT,
    final_customer     TEXT
);

CREATE INDEX IF NOT EXISTS idx_returns_key ON returns(serial_id, area_id, item_id);
"""

INVENTORY_COLUMNS = (
    "invent_serial_id", "item_id", "data_area_id", "deal_ref",
    "category", "make", "model_num", "grade_condition", "status",
    "purch_price_usd", "parts_cost_usd", "freight_charges_usd",
    "resource_cost_usd", "standardisation_cost_usd", "packaging_cost_usd",
    "customs_duty_usd", "misc_cost_usd", "consumable_cost_usd",
    "battery_cost_usd", "lcd_cost_usd", "coa_cost_usd",
    "final_sales_price_usd", "final_total_cost_usd", "invoice_date",
    "sales_order_date", "sales_id", "trans_type",
    "vend_name", "invoicing_name",
    "purch_date", "received_date", "manufacturing_date",
    "warranty_start_date", "warranty_end_date",
)

RETURN_COLUMNS = (
    "serial_id", "area_id", "item_id", "reason_for_return",
    "line_solution", "rma_status", "created_on", "final_customer",
)


def apply_schema(conn: sqlite3.Connection) -> None:
    """Apply the (idempotent) schema on an open connection."""
    conn.executescript(SQL)


def init_schema(db_path: Path | str) -> None:
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    with sqlite3.connect(db_path) as conn:
        conn.execute("PRAGMA journal_mode=WAL;")
        apply_schema(conn)
        conn.commit()
    _log.info("schema applied to %s", db_path)


if __name__ == "__main__":
    target = sys.argv[1] if len(sys.argv) > 1 else Path(__file__).resolve().parents[1] / "data" / "refurb_inventory.db"
    init_schema(target)
