"""Shared domain models for matelytics."""
from .catalog import (
    UNSPECIFIED_LABEL,
    ProductField,
    ProductRecord,
    Note,
    ScoredNote,
    DistributionBucket,
    Distribution,
)

__all__ = [
    "UNSPECIFIED_LABEL",
    "ProductField",
    "ProductRecord",
    "Note",
    "ScoredNote",
    "DistributionBucket",
    "Distribution",
]
