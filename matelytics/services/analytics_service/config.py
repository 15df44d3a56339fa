"""Analytics Service configuration.

Thresholds are passed explicitly into every aggregation call so that
different tenants or test scenarios can use different values concurrently.
"""
import os
from dataclasses import dataclass
from typing import Optional

from matelytics.shared.models import UNSPECIFIED_LABEL

# Minimum number of distinct contributors behind any exposed aggregate
K_ANONYMITY_THRESHOLD = 5

# Weight of one reply relative to one like
DEFAULT_REPLY_WEIGHT = 3


@dataclass(frozen=True)
class AnalyticsConfig:
    """Configuration for dashboard aggregation."""
    k_anonymity_threshold: int = K_ANONYMITY_THRESHOLD
    reply_weight: int = DEFAULT_REPLY_WEIGHT
    unspecified_label: str = UNSPECIFIED_LABEL
    default_top_notes: Optional[int] = None

    def __post_init__(self):
        if self.k_anonymity_threshold < 1:
            raise ValueError(
                f"k_anonymity_threshold must be >= 1, got {self.k_anonymity_threshold}"
            )
        if isinstance(self.reply_weight, bool) or not isinstance(self.reply_weight, int):
            raise ValueError(f"reply_weight must be an integer, got {self.reply_weight!r}")
        if self.reply_weight <= 1:
            raise ValueError(f"reply_weight must be > 1, got {self.reply_weight}")
        if not self.unspecified_label:
            raise ValueError("unspecified_label must not be empty")
        if self.default_top_notes is not None and self.default_top_notes < 1:
            raise ValueError(
                f"default_top_notes must be >= 1, got {self.default_top_notes}"
            )

    @classmethod
    def from_env(cls) -> "AnalyticsConfig":
        """Create config from environment variables.

        Environment variables:
            K_ANONYMITY_THRESHOLD: Minimum sample size (default 5)
            REPLY_WEIGHT: Points per reply (default 3)
            UNSPECIFIED_LABEL: Label for missing values (default unspecified)
            DEFAULT_TOP_NOTES: Notes returned when no limit given (default all)
        """
        top_notes = os.getenv("DEFAULT_TOP_NOTES", "")
        return cls(
            k_anonymity_threshold=int(
                os.getenv("K_ANONYMITY_THRESHOLD", str(K_ANONYMITY_THRESHOLD))
            ),
            reply_weight=int(os.getenv("REPLY_WEIGHT", str(DEFAULT_REPLY_WEIGHT))),
            unspecified_label=os.getenv("UNSPECIFIED_LABEL", UNSPECIFIED_LABEL),
            default_top_notes=int(top_notes) if top_notes else None,
        )
