"""Score Normalizer: batch-relative rescaling to [0, 100]."""
import logging
from typing import List, Sequence

from matelytics.shared.models import ScoredNote

logger = logging.getLogger(__name__)


class ScoreNormalizer:
    """Rescales interaction scores against the maximum of their batch.

    The same note gets a different normalized score in a different batch.
    """

    def normalize(self, scored_notes: Sequence[ScoredNote]) -> List[ScoredNote]:
        """Normalize a complete batch.

        Args:
            scored_notes: Every note displayed together

        Returns:
            New ScoredNotes, same order, with normalized_score set. All zero
            when the batch is empty or every interaction score is 0.
        """
        max_score = max((s.interaction_score for s in scored_notes), default=0)
        if max_score == 0:
            return [s.with_normalized_score(0.0) for s in scored_notes]

        normalized = [
            s.with_normalized_score(s.interaction_score / max_score * 100)
            for s in scored_notes
        ]
        logger.debug(
            "SCORES_NORMALIZED",
            extra={"note_count": len(normalized), "max_score": max_score}
        )
        return normalized
