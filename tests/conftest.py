# refurb_dashboard/tests/conftest.py
# ---------------------------------------------------------------------
# Ground rules:
# - pytest-qt owns QApplication (use qapp/qtbot fixtures)
# - Every test gets its own SQLite file under tmp_path (schema applied)
# - Seed rows through add_unit()/add_return(); unspecified columns stay NULL
# - The engine gets a connection factory pointing at the same file
# - Silence benign Qt signal warnings
# ---------------------------------------------------------------------

from __future__ import annotations

import os
import re
import sqlite3
from datetime import date
from pathlib import Path
from typing import Any

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from PySide6 import QtCore

from refurb_dashboard.database import connection_factory, get_connection
from refurb_dashboard.database.schema import INVENTORY_COLUMNS, RETURN_COLUMNS
from refurb_dashboard.modules.analytics.context import RequestContext
from refurb_dashboard.modules.analytics.engine import AggregationEngine

AS_OF = date(2024, 6, 30)


# ---------- Qt: let pytest-qt own the app ----------
@pytest.fixture(scope="session")
def app(qapp):
    return qapp


# ---------- Silence benign Qt warnings ----------
_BENIGN_QT_PATTERNS = [
    r"^QObject::connect: .* already connected",
    r"^QObject::disconnect: Unexpected null parameter",
    r"^QBasicTimer::stop: Failed\. Platform timer not running\.",
]


@pytest.fixture(autouse=True, scope="session")
def _silence_benign_qt():
    """Filter common harmless Qt messages during tests."""
    rx = [re.compile(p) for p in _BENIGN_QT_PATTERNS]

    def handler(msg_type, context, message):
        text = str(message)
        if any(r.search(text) for r in rx):
            return
        print(text)

    original = QtCore.qInstallMessageHandler(handler)
    try:
        yield
    finally:
        QtCore.qInstallMessageHandler(original)


# ---------- Seeding helpers ----------
def add_unit(conn: sqlite3.Connection, **cols: Any) -> int:
    """Insert one inventory row; keys must be inventory column names."""
    unknown = set(cols) - set(INVENTORY_COLUMNS)
    if unknown:
        raise KeyError(f"not inventory columns: {sorted(unknown)}")
    names = list(cols)
    sql = f"INSERT INTO inventory ({', '.join(names)}) VALUES ({', '.join('?' for _ in names)})"
    cur = conn.execute(sql, [cols[n] for n in names])
    conn.commit()
    return int(cur.lastrowid)


def add_return(conn: sqlite3.Connection, **cols: Any) -> int:
    unknown = set(cols) - set(RETURN_COLUMNS)
    if unknown:
        raise KeyError(f"not returns columns: {sorted(unknown)}")
    names = list(cols)
    sql = f"INSERT INTO returns ({', '.join(names)}) VALUES ({', '.join('?' for _ in names)})"
    cur = conn.execute(sql, [cols[n] for n in names])
    conn.commit()
    return int(cur.lastrowid)


def sold(conn: sqlite3.Connection, price: str, cost: str, **cols: Any) -> int:
    """Shorthand for a sold sales-order unit."""
    base = {
        "final_sales_price_usd": price,
        "final_total_cost_usd": cost,
        "trans_type": "SalesOrder",
        "status": "Sold",
    }
    base.update(cols)
    return add_unit(conn, **base)


# ---------- DB fixtures ----------
@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "refurb_test.db"


@pytest.fixture()
def conn(db_path: Path):
    con = get_connection(db_path)
    try:
        yield con
    finally:
        con.close()


@pytest.fixture()
def factory(conn, db_path: Path):
    # depends on `conn` so the schema exists before the engine connects
    return connection_factory(db_path)


@pytest.fixture()
def engine(factory) -> AggregationEngine:
    return AggregationEngine(factory, max_workers=4)


@pytest.fixture()
def ctx() -> RequestContext:
    return RequestContext(as_of=AS_OF)
