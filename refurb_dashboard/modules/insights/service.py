# refurb_dashboard/modules/insights/service.py
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from ...errors import InsightGenerationFailed
from .client import InsightClient
from .models import Insights
from .rules import rule_based_insights

_log = logging.getLogger(__name__)


class InsightService:
    """Service text when available, rule-based text otherwise. Never raises for service faults."""

    def __init__(self, client: Optional[InsightClient] = None) -> None:
        self.client = client or InsightClient()

    def generate(self, context: str, data: Mapping[str, Any]) -> Insights:
        if not self.client.configured:
            return rule_based_insights(context, data)
        try:
            return self.client.generate(context, data)
        except InsightGenerationFailed as e:
            _log.warning("Falling back to rule-based insights for %r: %s", context, e)
            return rule_based_insights(context, data)
