# refurb_dashboard/modules/analytics/filters.py
from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from ...errors import InvalidFilter
from ...utils.validators import try_parse_iso_date, split_values


# Set-valued FilterSpec field -> inventory column
SET_FIELD_COLUMNS: Dict[str, str] = {
    "status": "status",
    "category": "category",
    "make": "make",
    "customer": "invoicing_name",
    "vendor": "vend_name",
    "grade_condition": "grade_condition",
}

DATE_COLUMN = "invoice_date"

# Wire (query-string) name -> FilterSpec field; snake_case aliases accepted.
_QUERY_KEYS: Dict[str, str] = {
    "startDate": "start_date",
    "start_date": "start_date",
    "endDate": "end_date",
    "end_date": "end_date",
    "status": "status",
    "category": "category",
    "make": "make",
    "customer": "customer",
    "vendor": "vendor",
    "gradeCondition": "grade_condition",
    "grade_condition": "grade_condition",
}

_WIRE_NAMES: Dict[str, str] = {
    "start_date": "startDate",
    "end_date": "endDate",
    "grade_condition": "gradeCondition",
}


@dataclass(frozen=True)
class FilterSpec:
    """
    Immutable snapshot of the user's selected scope.

    Within a field values are OR'd; across fields AND'd. An empty tuple or a
    None date means "no constraint" on that field.
    """

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: Tuple[str, ...] = ()
    category: Tuple[str, ...] = ()
    make: Tuple[str, ...] = ()
    customer: Tuple[str, ...] = ()
    vendor: Tuple[str, ...] = ()
    grade_condition: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        for name in SET_FIELD_COLUMNS:
            value = getattr(self, name)
            if isinstance(value, str) or not isinstance(value, tuple):
                raise InvalidFilter(f"{name} must be a tuple of strings", field=name, value=value)
            if any(not isinstance(v, str) or v == "" for v in value):
                raise InvalidFilter(f"{name} must only hold non-empty strings", field=name, value=value)
        for name in ("start_date", "end_date"):
            value = getattr(self, name)
            if value is not None and not isinstance(value, date):
                raise InvalidFilter(f"{name} must be a date", field=name, value=value)
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise InvalidFilter(
                f"startDate {self.start_date} is after endDate {self.end_date}",
                field="start_date",
                value=self.start_date,
            )

    # --------------------------- Construction ---------------------------

    @classmethod
    def from_query(cls, params: Optional[Mapping[str, Any]]) -> "FilterSpec":
        """
        Build a FilterSpec from request parameters.

        Set-valued fields take a comma-separated string or a list of strings,
        matched verbatim. Empty values are the same as omitting the field.
        Raises InvalidFilter for unknown keys and unparseable dates.
        """
        kwargs: Dict[str, Any] = {}
        for key, raw in (params or {}).items():
            name = _QUERY_KEYS.get(key)
            if name is None:
                raise InvalidFilter(f"Unknown filter field {key!r}", field=key, value=raw)
            if raw is None:
                continue
            if name in ("start_date", "end_date"):
                ok, parsed = try_parse_iso_date(raw)
                if not ok:
                    raise InvalidFilter(f"{key} must be a YYYY-MM-DD date, got {raw!r}", field=key, value=raw)
                kwargs[name] = parsed
            else:
                try:
                    kwargs[name] = split_values(raw)
                except (TypeError, ValueError) as e:
                    raise InvalidFilter(str(e), field=key, value=raw) from e
        return cls(**kwargs)

    def to_query(self) -> Dict[str, Any]:
        """Wire form: camelCase keys, only constrained fields, lists for sets."""
        out: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if not value:
                continue
            key = _WIRE_NAMES.get(f.name, f.name)
            out[key] = value.isoformat() if isinstance(value, date) else list(value)
        return out

    @property
    def is_empty(self) -> bool:
        return not any(getattr(self, f.name) for f in fields(self))


@dataclass(frozen=True)
class Predicate:
    """A parameterized SQL boolean expression ready for a WHERE clause."""

    sql: str = "1=1"
    params: Tuple[Any, ...] = ()

    def and_(self, other: "Predicate") -> "Predicate":
        if self.sql == "1=1":
            return other
        if other.sql == "1=1":
            return self
        return Predicate(f"({self.sql}) AND ({other.sql})", self.params + other.params)

    def __and__(self, other: "Predicate") -> "Predicate":
        return self.and_(other)


MATCH_ALL = Predicate()


def _col(alias: Optional[str], column: str) -> str:
    return f"{alias}.{column}" if alias else column


def _in_list(column: str, values: Iterable[str]) -> Predicate:
    vals = tuple(values)
    marks = ",".join("?" for _ in vals)
    return Predicate(f"{column} IN ({marks})", vals)


def build_predicate(spec: FilterSpec, alias: Optional[str] = None) -> Predicate:
    """
    Translate a FilterSpec into a single conjunction over the inventory table.

    `alias` qualifies columns when the inventory table is joined (e.g. "i").
    Omitted fields contribute nothing, so an empty spec matches every row.
    """
    parts: List[str] = []
    params: List[Any] = []

    if spec.start_date is not None:
        parts.append(f"{_col(alias, DATE_COLUMN)} >= ?")
        params.append(spec.start_date.isoformat())
    if spec.end_date is not None:
        parts.append(f"{_col(alias, DATE_COLUMN)} <= ?")
        params.append(spec.end_date.isoformat())

    for name, column in SET_FIELD_COLUMNS.items():
        values = getattr(spec, name)
        if not values:
            continue
        p = _in_list(_col(alias, column), values)
        parts.append(p.sql)
        params.extend(p.params)

    if not parts:
        return MATCH_ALL
    return Predicate(" AND ".join(parts), tuple(params))


def column_equals(column: str, value: Any, alias: Optional[str] = None) -> Predicate:
    """Extra fixed condition (e.g. trans_type = 'SalesOrder') to AND onto a filter."""
    return Predicate(f"{_col(alias, column)} = ?", (value,))


__all__ = [
    "FilterSpec",
    "Predicate",
    "MATCH_ALL",
    "build_predicate",
    "column_equals",
]
