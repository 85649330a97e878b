from .client import InsightClient
from .models import Insights
from .rules import rule_based_insights
from .service import InsightService

__all__ = ["InsightClient", "InsightService", "Insights", "rule_based_insights"]
