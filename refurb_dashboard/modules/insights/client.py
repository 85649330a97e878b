# refurb_dashboard/modules/insights/client.py
from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Optional

import httpx

from ...config import INSIGHTS_TIMEOUT_SECONDS, INSIGHTS_URL
from ...errors import InsightGenerationFailed
from .models import Insights

_log = logging.getLogger(__name__)


class InsightClient:
    """
    Thin HTTP client for the narrative insight service.

    POSTs {"context": ..., "data": ...} and expects back
    {summary, keyFindings[], recommendations[], risks[], opportunities[], generatedAt}.
    Every failure mode surfaces as InsightGenerationFailed.
    """

    def __init__(
        self,
        url: Optional[str] = INSIGHTS_URL,
        *,
        timeout: float = INSIGHTS_TIMEOUT_SECONDS,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.url)

    def generate(self, context: str, data: Mapping[str, Any]) -> Insights:
        if not self.url:
            raise InsightGenerationFailed("No insight service URL configured")

        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                resp = client.post(self.url, json={"context": context, "data": data})
        except httpx.TimeoutException as e:
            _log.warning("Insight request for %r timed out after %.1fs", context, self.timeout)
            raise InsightGenerationFailed(f"Insight service timed out: {e}") from e
        except httpx.HTTPError as e:
            _log.warning("Insight request for %r failed: %s", context, e)
            raise InsightGenerationFailed(f"Insight service unreachable: {e}") from e

        if resp.status_code // 100 != 2:
            _log.warning("Insight service answered %s for %r", resp.status_code, context)
            raise InsightGenerationFailed(f"Insight service returned HTTP {resp.status_code}")

        try:
            body = resp.json()
        except (json.JSONDecodeError, ValueError) as e:
            _log.warning("Insight service sent a non-JSON body for %r", context)
            raise InsightGenerationFailed("Insight service returned malformed JSON") from e

        return Insights.from_wire(body)
