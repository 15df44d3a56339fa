"""Engagement Scorer.

interaction_score = likes * 1 + replies * reply_weight

Replies weigh more than likes. The score is strictly increasing in each
counter independently; missing counters count as zero.
"""
import logging
from typing import Iterable, List

from matelytics.shared.models import Note, ScoredNote
from .config import DEFAULT_REPLY_WEIGHT

logger = logging.getLogger(__name__)

LIKE_WEIGHT = 1


class EngagementScorer:
    """Computes the raw interaction score of review notes."""

    def __init__(self, reply_weight: int = DEFAULT_REPLY_WEIGHT):
        """Initialize scorer.

        Args:
            reply_weight: Points per reply, an integer greater than 1

        Raises:
            ValueError: If reply_weight is not an integer > 1
        """
        if isinstance(reply_weight, bool) or not isinstance(reply_weight, int):
            raise ValueError(f"reply_weight must be an integer, got {reply_weight!r}")
        if reply_weight <= LIKE_WEIGHT:
            raise ValueError(f"reply_weight must be > {LIKE_WEIGHT}, got {reply_weight}")
        self.reply_weight = reply_weight

    def score(self, note: Note) -> int:
        likes = note.likes or 0
        replies = note.replies or 0
        return likes * LIKE_WEIGHT + replies * self.reply_weight

    def score_batch(self, notes: Iterable[Note]) -> List[ScoredNote]:
        """Score every note in a batch, keeping input order.

        Returned notes are not normalized yet (normalized_score 0.0).
        """
        scored = [
            ScoredNote(note=note, interaction_score=self.score(note))
            for note in notes
        ]
        logger.debug(
            "NOTES_SCORED",
            extra={"note_count": len(scored), "reply_weight": self.reply_weight}
        )
        return scored
