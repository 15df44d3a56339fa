"""K-anonymity enforcement for dashboard aggregates.

Suppress an aggregate when fewer than k distinct contributors back it, so
small cohorts cannot be re-identified from dashboard numbers. This is a
minimum-sample-size gate, not formal k-anonymity over quasi-identifiers.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from matelytics.shared.errors import DataIntegrityError
from .config import K_ANONYMITY_THRESHOLD

logger = logging.getLogger(__name__)

T = TypeVar('T')


class GateResult(ABC, Generic[T]):
    """Outcome of the k-anonymity gate: ``Allowed`` or ``Suppressed``."""
    ok = False
    k_anonymity_ok = False

    @abstractmethod
    def to_dict(self, serializer: Optional[Callable[[T], Any]] = None) -> Dict[str, Any]:
        """JSON-ready payload for the dashboard."""


@dataclass(frozen=True)
class Allowed(GateResult[T]):
    """Aggregate passed the gate.

    Attributes:
        data: The computed payload
        sample_size: Distinct contributors behind the payload
    """
    data: T
    sample_size: int
    ok = True
    k_anonymity_ok = True

    def to_dict(self, serializer: Optional[Callable[[T], Any]] = None) -> Dict[str, Any]:
        return {
            "ok": True,
            "data": serializer(self.data) if serializer else self.data,
            "sampleSize": self.sample_size,
            "kAnonymityOk": True,
        }


@dataclass(frozen=True)
class Suppressed(GateResult[T]):
    """Aggregate withheld for privacy.

    Carries no payload and no exact sample size. ``has_data`` tells
    "withheld" apart from "nothing to show".
    """
    reason: str
    has_data: bool = False
    ok = False
    k_anonymity_ok = False

    def to_dict(self, serializer: Optional[Callable[[T], Any]] = None) -> Dict[str, Any]:
        return {
            "ok": False,
            "kAnonymityOk": False,
            "reason": self.reason,
            "hasData": self.has_data,
        }


class KAnonymityEnforcer:
    """Enforces the minimum sample size on aggregated data.

    Every dashboard aggregate must pass through ``check_and_suppress``
    before it reaches a caller.
    """

    def __init__(self, k_threshold: int = K_ANONYMITY_THRESHOLD):
        """Initialize enforcer.

        Args:
            k_threshold: Minimum sample size (default 5)

        Raises:
            ValueError: If k_threshold is below 1
        """
        if k_threshold < 1:
            raise ValueError(f"k_threshold must be >= 1, got {k_threshold}")
        self.k_threshold = k_threshold

        logger.debug(
            "K_ANONYMITY_ENFORCER_INITIALIZED",
            extra={"k_threshold": k_threshold}
        )

    def check_and_suppress(
        self,
        data: T,
        sample_size: int,
        context: Optional[str] = None,
    ) -> GateResult[T]:
        """Check sample size and suppress if below threshold.

        Args:
            data: The aggregated data to potentially suppress
            sample_size: Distinct contributors behind the data
            context: Description of the query for logging

        Returns:
            Allowed with the data, or Suppressed without it

        Raises:
            DataIntegrityError: If sample_size is negative

        Logs:
            - K_ANONYMITY_SUPPRESSED: When data is suppressed
            - K_ANONYMITY_PASSED: When data passes threshold
        """
        if sample_size < 0:
            logger.error(
                "DATA_INTEGRITY_ERROR",
                extra={"sample_size": sample_size, "context": context}
            )
            raise DataIntegrityError(f"Sample size must be >= 0, got {sample_size}")

        if sample_size < self.k_threshold:
            logger.warning(
                "K_ANONYMITY_SUPPRESSED",
                extra={
                    "sample_size": sample_size,
                    "k_threshold": self.k_threshold,
                    "context": context,
                    "action": "DATA_SUPPRESSED",
                }
            )
            return Suppressed(
                reason=(
                    f"Sample size below k-anonymity threshold ({self.k_threshold})"
                ),
                has_data=sample_size > 0,
            )

        logger.info(
            "K_ANONYMITY_PASSED",
            extra={
                "sample_size": sample_size,
                "k_threshold": self.k_threshold,
                "context": context,
            }
        )
        return Allowed(data=data, sample_size=sample_size)


def enforce_k_anonymity(
    data: T,
    sample_size: int,
    k_threshold: int = K_ANONYMITY_THRESHOLD,
) -> GateResult[T]:
    """Convenience function for one-off k-anonymity checks.

    Args:
        data: Data to potentially suppress
        sample_size: Distinct contributors behind the data
        k_threshold: Minimum sample size

    Returns:
        Allowed or Suppressed
    """
    enforcer = KAnonymityEnforcer(k_threshold)
    return enforcer.check_and_suppress(data, sample_size)
