"""Analytics Service: dashboard aggregates with privacy protection.

Every aggregate is gated by a minimum sample size (k-anonymity threshold,
default 5) before it reaches the dashboard.

This service provides:
- Distribution summaries of categorical product fields
- Engagement ranking of review notes (likes and replies)
- Batch-relative score normalization to [0, 100]
- K-anonymity enforcement on all aggregate outputs

Endpoints:
- GET /health - Health check
- GET /ready - Readiness check
- GET /distributions/<field> - Field distribution
- GET /notes/top - Top notes by engagement
- GET /filters/<field> - Filter options
"""

from .config import AnalyticsConfig, K_ANONYMITY_THRESHOLD, DEFAULT_REPLY_WEIGHT
from .k_anonymity import (
    KAnonymityEnforcer,
    GateResult,
    Allowed,
    Suppressed,
    enforce_k_anonymity,
)
from .distribution import DistributionAggregator
from .engagement import EngagementScorer
from .normalization import ScoreNormalizer
from .pipeline import DashboardPipeline, aggregate_distribution, score_and_rank_notes
from .catalog_store import CatalogStore
from .handler import AnalyticsHandler, app

__all__ = [
    "AnalyticsConfig",
    "K_ANONYMITY_THRESHOLD",
    "DEFAULT_REPLY_WEIGHT",
    "KAnonymityEnforcer",
    "GateResult",
    "Allowed",
    "Suppressed",
    "enforce_k_anonymity",
    "DistributionAggregator",
    "EngagementScorer",
    "ScoreNormalizer",
    "DashboardPipeline",
    "aggregate_distribution",
    "score_and_rank_notes",
    "CatalogStore",
    "AnalyticsHandler",
    "app",
]
