# refurb_dashboard/modules/insights/models.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping

from ...errors import InsightGenerationFailed
from ...utils.helpers import to_wire


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Insights:
    """Narrative block shown next to a dashboard view."""

    summary: str = ""
    key_findings: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    risks: List[str] = field(default_factory=list)
    opportunities: List[str] = field(default_factory=list)
    generated_at: str = field(default_factory=_now_iso)
    source: str = "rules"  # "service" | "rules"

    def to_dict(self) -> Dict[str, Any]:
        return to_wire(self)

    @classmethod
    def from_wire(cls, body: Any) -> "Insights":
        """Validate a service response body. Raises InsightGenerationFailed on a bad shape."""
        if not isinstance(body, Mapping):
            raise InsightGenerationFailed(f"Expected a JSON object, got {type(body).__name__}")
        summary = body.get("summary")
        if not isinstance(summary, str):
            raise InsightGenerationFailed("Response has no summary")

        lists: Dict[str, List[str]] = {}
        for key, attr in (
            ("keyFindings", "key_findings"),
            ("recommendations", "recommendations"),
            ("risks", "risks"),
            ("opportunities", "opportunities"),
        ):
            value = body.get(key, [])
            if not isinstance(value, list) or any(not isinstance(v, str) for v in value):
                raise InsightGenerationFailed(f"{key} must be a list of strings")
            lists[attr] = list(value)

        generated_at = body.get("generatedAt")
        return cls(
            summary=summary,
            generated_at=generated_at if isinstance(generated_at, str) and generated_at else _now_iso(),
            source="service",
            **lists,
        )
