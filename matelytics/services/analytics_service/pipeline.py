"""Dashboard pipeline: the call contracts consumed by the facade.

Every aggregate leaves this module through the k-anonymity gate.

- aggregate_distribution: grouped counts -> DistributionAggregator -> gate
- score_and_rank_notes: notes -> EngagementScorer -> ScoreNormalizer -> gate
"""
import logging
from typing import List, Optional, Sequence

from matelytics.shared.models import Distribution, Note, ScoredNote
from .config import AnalyticsConfig
from .distribution import DistributionAggregator, FieldValues
from .engagement import EngagementScorer
from .k_anonymity import GateResult, KAnonymityEnforcer
from .normalization import ScoreNormalizer

logger = logging.getLogger(__name__)


class DashboardPipeline:
    """Aggregation, scoring and gating bound to one configuration.

    Stateless apart from its frozen config, so one instance can serve
    concurrent requests.
    """

    def __init__(self, config: Optional[AnalyticsConfig] = None):
        self.config = config or AnalyticsConfig()
        self.aggregator = DistributionAggregator(self.config.unspecified_label)
        self.scorer = EngagementScorer(self.config.reply_weight)
        self.normalizer = ScoreNormalizer()
        self.k_enforcer = KAnonymityEnforcer(self.config.k_anonymity_threshold)

    def aggregate_distribution(
        self,
        field_values: FieldValues,
        top_n: Optional[int] = None,
        sample_size: Optional[int] = None,
        context: Optional[str] = None,
    ) -> GateResult[Distribution]:
        """Aggregate grouped counts for one field and gate the result.

        Args:
            field_values: Raw (value, count) pairs from the store
            top_n: Optional truncation of the bucket list
            sample_size: Distinct contributors behind the counts. Defaults
                to the total number of records considered.
            context: Description of the query for logging

        Raises:
            DataIntegrityError: On negative or malformed counts
        """
        distribution = self.aggregator.aggregate(field_values, top_n=top_n)
        size = distribution.total if sample_size is None else sample_size
        return self.k_enforcer.check_and_suppress(
            data=distribution,
            sample_size=size,
            context=context or "distribution",
        )

    def score_and_rank_notes(
        self,
        notes: Sequence[Note],
        limit: Optional[int] = None,
        context: Optional[str] = None,
    ) -> GateResult[List[ScoredNote]]:
        """Score, normalize, rank and gate a batch of notes.

        The sample size is the number of distinct authors in the batch.
        Ranking is by descending normalized score; equal scores keep their
        input order.

        Args:
            notes: Complete batch of notes for one view
            limit: Keep only the first N ranked notes (default from config)
            context: Description of the query for logging
        """
        limit = limit if limit is not None else self.config.default_top_notes
        if limit is not None and limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")

        scored = self.scorer.score_batch(notes)
        normalized = self.normalizer.normalize(scored)
        ranked = sorted(normalized, key=lambda s: -s.normalized_score)
        if limit is not None:
            ranked = ranked[:limit]

        sample_size = len({n.author_id for n in notes})

        logger.info(
            "NOTES_RANKED",
            extra={
                "note_count": len(scored),
                "returned": len(ranked),
                "sample_size": sample_size,
            }
        )

        return self.k_enforcer.check_and_suppress(
            data=ranked,
            sample_size=sample_size,
            context=context or "ranked_notes",
        )


def aggregate_distribution(
    field_values: FieldValues,
    top_n: Optional[int] = None,
    sample_size: Optional[int] = None,
    config: Optional[AnalyticsConfig] = None,
) -> GateResult[Distribution]:
    """One-off form of DashboardPipeline.aggregate_distribution."""
    return DashboardPipeline(config).aggregate_distribution(
        field_values, top_n=top_n, sample_size=sample_size
    )


def score_and_rank_notes(
    notes: Sequence[Note],
    limit: Optional[int] = None,
    config: Optional[AnalyticsConfig] = None,
) -> GateResult[List[ScoredNote]]:
    """One-off form of DashboardPipeline.score_and_rank_notes."""
    return DashboardPipeline(config).score_and_rank_notes(notes, limit=limit)
