# refurb_dashboard/utils/validators.py
from datetime import date, datetime
from typing import Iterable, Optional, Tuple, Union


# ---- Filter value parsing ----

def try_parse_iso_date(x) -> Tuple[bool, Optional[date]]:
    """
    Best-effort parse of an ISO 'YYYY-MM-DD' string (or date) to a date.

    Returns:
        (ok: bool, value: date|None)

    Blank input is ok=True with value None (no constraint).
    """
    if x is None or (isinstance(x, str) and not x.strip()):
        return True, None
    if isinstance(x, datetime):
        return True, x.date()
    if isinstance(x, date):
        return True, x
    try:
        return True, datetime.strptime(str(x).strip(), "%Y-%m-%d").date()
    except ValueError:
        return False, None


def split_values(x: Union[None, str, Iterable[str]]) -> Tuple[str, ...]:
    """
    Comma-separated string or iterable of strings -> tuple of non-empty values.

    Values are kept verbatim (no case folding, no trimming of inner text);
    only empty items are dropped so that "" and [] mean "no constraint".
    """
    if x is None:
        return ()
    if isinstance(x, str):
        items = x.split(",")
    else:
        items = []
        for v in x:
            if not isinstance(v, str):
                raise ValueError(f"Filter values must be strings, got {v!r}.")
            items.append(v)
    return tuple(v for v in items if v != "")
