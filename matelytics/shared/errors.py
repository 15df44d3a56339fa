"""Error taxonomy for dashboard aggregation.

Integrity errors abort the whole aggregation call. Privacy suppression is
never an error: it is returned as a ``Suppressed`` gate result.
"""


class AnalyticsError(Exception):
    """Base exception for analytics errors."""
    pass


class DataIntegrityError(AnalyticsError, ValueError):
    """Input data violates an integrity rule (negative count, bad record)."""
    pass
