# utils/helpers.py
from dataclasses import fields, is_dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
import logging
from typing import Any, Optional, Union

NumberLike = Union[float, int, str, Decimal]

_log = logging.getLogger(__name__)

ZERO = Decimal("0")
CENT = Decimal("0.01")


def today_str() -> str:
    """Return today's date as ISO string (YYYY-MM-DD)."""
    return date.today().isoformat()


def to_decimal(v: Optional[Any]) -> Decimal:
    """
    Convert a stored currency value to Decimal.

    None and empty strings count as zero. Floats go through str() so that
    0.1 stays 0.1 rather than its binary expansion.
    """
    if v is None or v == "":
        return ZERO
    if isinstance(v, Decimal):
        return v
    if isinstance(v, float):
        v = repr(v)
    try:
        return Decimal(str(v).strip())
    except InvalidOperation as e:
        raise ValueError(f"Could not parse {v!r} as a currency amount.") from e


def money(v: Decimal) -> Decimal:
    """Quantize to cents for presentation (USD, two decimals)."""
    return v.quantize(CENT)


def parse_iso(d: Optional[str]) -> Optional[date]:
    """Lenient ISO date parse for stored values; returns None for blanks or junk."""
    if not d:
        return None
    try:
        return datetime.strptime(str(d)[:10], "%Y-%m-%d").date()
    except ValueError:
        _log.debug("parse_iso: ignoring unparseable stored date %r", d)
        return None


def month_key(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def add_months(period: str, n: int) -> str:
    """'2024-11' + 3 -> '2025-02'."""
    y, m = (int(x) for x in period.split("-"))
    idx = y * 12 + (m - 1) + n
    return f"{idx // 12:04d}-{idx % 12 + 1:02d}"


def fmt_money(
    v: NumberLike,
    places: int = 2,
    *,
    strict: bool = False,
    sentinel: Optional[str] = None,
) -> str:
    """
    Format a number as money with thousands separators and a fixed number of decimals.

    Behavior on parse failure:
      - By default (strict=False, sentinel=None), returns str(v).
      - If `sentinel` is provided (e.g., "N/A"), returns that sentinel instead.
      - If `strict=True`, raises ValueError on parse failures.
    """
    try:
        x = Decimal(str(v)) if not isinstance(v, Decimal) else v
        if not x.is_finite():
            raise InvalidOperation
    except (InvalidOperation, ValueError) as e:
        _log.debug("fmt_money: failed to parse %r as a number: %s", v, e)
        if strict:
            raise ValueError(f"Could not parse {v!r} as a number.") from e
        return str(sentinel) if sentinel is not None else str(v)
    return f"{x:,.{places}f}"


def fmt_pct(v: NumberLike, places: int = 1) -> str:
    return f"{float(v):.{places}f}%"


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(p[:1].upper() + p[1:] for p in rest)


def to_wire(obj: Any) -> Any:
    """
    Recursively turn dataclasses/dicts/lists into JSON-ready values:
    camelCase keys, Decimal -> float at cent precision, dates -> ISO text.
    """
    if is_dataclass(obj) and not isinstance(obj, type):
        return {_camel(f.name): to_wire(getattr(obj, f.name)) for f in fields(obj)}
    if isinstance(obj, dict):
        return {(_camel(k) if isinstance(k, str) else k): to_wire(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_wire(v) for v in obj]
    if isinstance(obj, Decimal):
        return float(money(obj))
    if isinstance(obj, float):
        return round(obj, 2)
    if isinstance(obj, date):
        return obj.isoformat()
    return obj
