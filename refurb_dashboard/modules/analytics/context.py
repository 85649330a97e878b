# refurb_dashboard/modules/analytics/context.py
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Mapping, Optional

from ...config import QUERY_TIMEOUT_SECONDS
from .filters import FilterSpec


def _new_request_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass(frozen=True)
class RequestContext:
    """
    Everything one dashboard request needs, passed explicitly.

    `as_of` is the "now" for aging, churn and warranty windows so that a
    request is reproducible end to end.
    """

    filters: FilterSpec = field(default_factory=FilterSpec)
    as_of: date = field(default_factory=date.today)
    request_id: str = field(default_factory=_new_request_id)
    timeout: float = QUERY_TIMEOUT_SECONDS

    @classmethod
    def from_query(
        cls,
        params: Optional[Mapping[str, Any]] = None,
        *,
        as_of: Optional[date] = None,
        timeout: Optional[float] = None,
    ) -> "RequestContext":
        kwargs = {"filters": FilterSpec.from_query(params)}
        if as_of is not None:
            kwargs["as_of"] = as_of
        if timeout is not None:
            kwargs["timeout"] = timeout
        return cls(**kwargs)
