# database/__init__.py
from __future__ import annotations

from decimal import Decimal
from functools import partial
from pathlib import Path
import sqlite3
from typing import Callable, Optional

from ..config import DB_PATH, QUERY_TIMEOUT_SECONDS
from ..constants import SCHEMA_VERSION
from ..utils.helpers import to_decimal
from . import schema as schema_module
from .versioning import ensure_version

# Decimal parameters are stored as their exact text form.
sqlite3.register_adapter(Decimal, str)

ConnectionFactory = Callable[[], sqlite3.Connection]


class DecimalSum:
    """
    SQLite aggregate `dsum(x)`: exact decimal sum of currency text.

    Returns the total as text so no float conversion happens inside SQLite;
    repositories turn it back into Decimal.
    """

    def __init__(self) -> None:
        self.total = Decimal("0")

    def step(self, value) -> None:
        self.total += to_decimal(value)

    def finalize(self) -> str:
        return str(self.total)


def _configure(conn: sqlite3.Connection) -> sqlite3.Connection:
    conn.row_factory = sqlite3.Row
    conn.create_aggregate("dsum", 1, DecimalSum)
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def connect(db_path: Path | str, *, timeout: float = QUERY_TIMEOUT_SECONDS) -> sqlite3.Connection:
    """
    Open a plain read connection on an existing database.

    Used by the aggregation engine: one connection per query task, created on
    the worker thread that runs it.
    """
    conn = sqlite3.connect(str(db_path), timeout=timeout)
    return _configure(conn)


def get_connection(db_path: Optional[Path | str] = None) -> sqlite3.Connection:
    """
    Returns a sqlite3.Connection with:
      - WAL mode
      - foreign_keys ON
      - row_factory = sqlite3.Row (so rows behave like dicts and tuples)
      - the `dsum` decimal aggregate registered
    Ensures schema & version row are applied idempotently.
    """
    path = Path(db_path) if db_path is not None else DB_PATH
    path.parent.mkdir(parents=True, exist_ok=True)

    conn = _configure(sqlite3.connect(str(path)))
    conn.execute("PRAGMA journal_mode = WAL;")
    schema_module.apply_schema(conn)
    ensure_version(conn, SCHEMA_VERSION)
    conn.commit()
    return conn


def connection_factory(db_path: Optional[Path | str] = None) -> ConnectionFactory:
    """Factory handed to the engine; each call opens a fresh connection."""
    return partial(connect, Path(db_path) if db_path is not None else DB_PATH)


__all__ = [
    "ConnectionFactory",
    "DecimalSum",
    "connect",
    "connection_factory",
    "get_connection",
]
