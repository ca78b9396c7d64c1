"""
errors.py — Exceptions raised by the analytics engine.

These are the only conditions under which a computation refuses to
produce a result. Routes translate them into 422 responses.
"""


class AnalyticsError(ValueError):
    """Base class for analytics engine failures."""


class EmptySampleError(AnalyticsError):
    """A statistic was requested for a sample with no values."""

    def __init__(self, what: str = "dataset"):
        super().__init__(f"Cannot calculate statistics for empty {what}.")


class EmptyCohortError(AnalyticsError):
    """No student records were supplied for the requested course."""

    def __init__(self, course_id: str = ""):
        self.course_id = course_id
        msg = "No student data found"
        if course_id:
            msg += f" for course '{course_id}'"
        super().__init__(msg + ".")


class InvalidWeightConfigurationError(AnalyticsError):
    """Engagement weights do not sum to 1.0."""
