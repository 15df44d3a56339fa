"""Distribution Aggregator.

Shapes raw grouped counts (as returned by the store's grouping primitive)
into ordered, display-ready buckets.
"""
import logging
from collections import Counter
from collections.abc import Mapping as MappingABC
from typing import Any, Iterable, Mapping, Optional, Tuple, Union

from matelytics.shared.errors import DataIntegrityError
from matelytics.shared.models import (
    UNSPECIFIED_LABEL,
    Distribution,
    DistributionBucket,
)

logger = logging.getLogger(__name__)

FieldValues = Union[Mapping[Any, int], Iterable[Tuple[Any, int]]]


def _pairs(field_values: FieldValues) -> Iterable[Tuple[Any, int]]:
    if isinstance(field_values, MappingABC):
        return field_values.items()
    return field_values


# Grouping key for missing values; real values are keyed by (type name, value)
_MISSING = ("", None)


def _group_key(value: Any) -> Tuple[str, Any]:
    if value is None or value == "":
        return _MISSING
    return (type(value).__name__, value)


def _sort_key(bucket: DistributionBucket) -> Tuple[int, str, bool]:
    return (-bucket.count, str(bucket.value), bucket.unspecified)


class DistributionAggregator:
    """Turns value -> count pairs for one field into sorted buckets."""

    def __init__(self, unspecified_label: str = UNSPECIFIED_LABEL):
        self.unspecified_label = unspecified_label

    def _bucket(self, key: Tuple[str, Any], count: int) -> DistributionBucket:
        if key == _MISSING:
            return DistributionBucket(self.unspecified_label, count, unspecified=True)
        return DistributionBucket(key[1], count)

    def aggregate(
        self,
        field_values: FieldValues,
        top_n: Optional[int] = None,
    ) -> Distribution:
        """Build an ordered distribution.

        Buckets are sorted by descending count, ties by ascending value.
        Null and empty values are merged into one bucket flagged
        ``unspecified`` and labelled with the unspecified label. Values of
        different types never merge, so True and 1, or a real value equal
        to the label, stay separate buckets.

        Args:
            field_values: Mapping or (value, count) pairs for one field
            top_n: Keep only the first N buckets (default: all). The total
                still covers every input pair.

        Returns:
            Distribution with buckets, true total and the truncated remainder

        Raises:
            DataIntegrityError: If any count is negative or not an integer,
                or a value is not hashable
            ValueError: If top_n is not a positive integer
        """
        if top_n is not None and top_n < 1:
            raise ValueError(f"top_n must be >= 1, got {top_n}")

        counts: Counter = Counter()
        for pair in _pairs(field_values):
            try:
                value, count = pair
            except (TypeError, ValueError):
                raise DataIntegrityError(f"Malformed grouped count: {pair!r}")
            if isinstance(count, bool) or not isinstance(count, int):
                logger.error(
                    "DATA_INTEGRITY_ERROR",
                    extra={"reason": "non_integer_count", "value": str(value)}
                )
                raise DataIntegrityError(
                    f"Count for {value!r} must be an integer, got {count!r}"
                )
            if count < 0:
                logger.error(
                    "DATA_INTEGRITY_ERROR",
                    extra={"reason": "negative_count", "value": str(value)}
                )
                raise DataIntegrityError(
                    f"Count for {value!r} must be non-negative, got {count}"
                )
            try:
                counts[_group_key(value)] += count
            except TypeError:
                logger.error(
                    "DATA_INTEGRITY_ERROR",
                    extra={"reason": "unhashable_value", "value": str(value)}
                )
                raise DataIntegrityError(f"Grouped value {value!r} is not hashable")

        buckets = sorted(
            (self._bucket(key, c) for key, c in counts.items()),
            key=_sort_key,
        )
        total = sum(b.count for b in buckets)

        shown = buckets if top_n is None else buckets[:top_n]
        other_count = total - sum(b.count for b in shown)

        logger.info(
            "DISTRIBUTION_AGGREGATED",
            extra={
                "distinct_values": len(buckets),
                "returned": len(shown),
                "total": total,
                "top_n": top_n,
            }
        )

        return Distribution(
            buckets=tuple(shown),
            total=total,
            other_count=other_count,
        )
