"""
cohort.py — Cohort roll-up and per-student comparison.

Reduces a course's StudentPerformanceRecords into cohort averages and a
letter-grade distribution, then places each student against the cohort:
percentile rank, distance from the average grade, engagement score and
strength / improvement-area tags.

Engagement score (0–1), fixed weights:
- Login frequency (cap 7 / week): 20%
- Time on platform (cap 300 min / week): 20%
- Lesson completion rate: 30%
- Assignment submission rate: 20%
- Forum participation (cap 5 posts): 10%
"""

import logging
import math
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, NamedTuple, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from core.errors import EmptyCohortError, EmptySampleError, InvalidWeightConfigurationError
from core.grading import GRADE_BANDS, band_display, is_valid_grade
from core.models import (
    CohortComparison,
    CohortMetrics,
    EngagementMetrics,
    GradeBand,
    PerformanceChange,
    StudentComparison,
    StudentPerformanceRecord,
)
from core.stats import percentile

logger = logging.getLogger(__name__)


def _safe_float(val) -> float:
    try:
        v = float(val)
        return 0.0 if (np.isnan(v) or np.isinf(v)) else round(v, 2)
    except (TypeError, ValueError):
        return 0.0


# ── Engagement ──────────────────────────────────────────────────────

def validate_weights(weights: Mapping[str, float]) -> Mapping[str, float]:
    """Weights must be non-negative and sum to 1.0."""
    if any(w < 0 for w in weights.values()):
        raise InvalidWeightConfigurationError("Engagement weights must be non-negative.")
    total = sum(weights.values())
    if not math.isclose(total, 1.0, abs_tol=1e-9):
        raise InvalidWeightConfigurationError(
            f"Engagement weights must sum to 1.0, got {total:.4f}."
        )
    return MappingProxyType(dict(weights))


ENGAGEMENT_WEIGHTS = validate_weights({
    "login_frequency": 0.20,
    "time_spent_on_platform": 0.20,
    "lesson_completion_rate": 0.30,
    "assignment_submission_rate": 0.20,
    "forum_participation": 0.10,
})

# Value that saturates each signal at 1.0. Rates are already 0–1.
ENGAGEMENT_CAPS = MappingProxyType({
    "login_frequency": 7.0,
    "time_spent_on_platform": 300.0,
    "lesson_completion_rate": 1.0,
    "assignment_submission_rate": 1.0,
    "forum_participation": 5.0,
})


def _normalize(value: float, cap: float) -> float:
    return min(max(value / cap, 0.0), 1.0)


def calculate_engagement_score(metrics: EngagementMetrics) -> float:
    """Weighted engagement score, always within [0, 1]."""
    score = sum(
        _normalize(getattr(metrics, signal), ENGAGEMENT_CAPS[signal]) * weight
        for signal, weight in ENGAGEMENT_WEIGHTS.items()
    )
    return min(max(score, 0.0), 1.0)


# ── Percentile rank ─────────────────────────────────────────────────

def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_percentile_rank(grade: float, grades: Sequence[float]) -> int:
    """
    Mean-rank percentile of ``grade`` within ``grades``.

    percentile = round((below + 0.5 * equal) / total * 100), so a student
    tied with others sits in the middle of the tie, not above or below it.
    """
    arr = np.asarray(grades, dtype=float)
    if arr.size == 0:
        raise EmptySampleError("cohort grade sample")
    below = int((arr < grade).sum())
    equal = int((arr == grade).sum())
    return _round_half_up((below + 0.5 * equal) * 100 / arr.size)


# ── Cohort metrics ──────────────────────────────────────────────────

def calculate_grade_distribution(grades: Sequence[float]) -> List[GradeBand]:
    """Letter-grade bands for the valid grades; empty bands are omitted."""
    valid = [float(g) for g in grades if is_valid_grade(g)]
    if not valid:
        return []

    ascending = list(reversed(GRADE_BANDS))
    edges = [band[0] for band in ascending] + [np.inf]
    labels = [band[1] for band in ascending]
    banded = pd.cut(pd.Series(valid), bins=edges, labels=labels, right=False)
    counts = banded.value_counts()

    distribution = []
    for _, label, _ in GRADE_BANDS:
        count = int(counts.get(label, 0))
        if count == 0:
            continue
        distribution.append(GradeBand(
            range=band_display(label),
            count=count,
            percentage=_round_half_up(count / len(valid) * 100),
        ))
    return distribution


def _valid_grades(records: Sequence[StudentPerformanceRecord]) -> List[float]:
    return sorted(r.current_grade for r in records if is_valid_grade(r.current_grade))


def calculate_cohort_metrics(records: Sequence[StudentPerformanceRecord]) -> CohortMetrics:
    """Equal-weight cohort averages plus the grade distribution."""
    if not records:
        raise EmptyCohortError()

    df = pd.DataFrame([
        {
            "attendance": r.attendance_rate,
            "completion": r.engagement_metrics.lesson_completion_rate,
            "engagement": calculate_engagement_score(r.engagement_metrics),
        }
        for r in records
    ])
    grades = _valid_grades(records)
    if len(grades) < len(records):
        logger.debug("%d records without a valid grade", len(records) - len(grades))

    return CohortMetrics(
        average_grade=_safe_float(np.mean(grades)) if grades else 0.0,
        median_grade=_safe_float(percentile(np.asarray(grades), 50)) if grades else 0.0,
        grade_distribution=calculate_grade_distribution(grades),
        attendance_rate=_safe_float(df["attendance"].mean()),
        completion_rate=_safe_float(df["completion"].mean()),
        engagement_score=_safe_float(df["engagement"].mean()),
        student_count=len(records),
    )


# ── Strengths and improvement areas ─────────────────────────────────

class StudentView(NamedTuple):
    record: StudentPerformanceRecord
    cohort: CohortMetrics
    engagement: float


class ClassificationRule(NamedTuple):
    tag: str
    is_strength: Callable[[StudentView], bool]
    is_weakness: Callable[[StudentView], bool]


GRADE_MARGIN = 10.0
RATE_MARGIN = 0.1


def _valid_grade(view: StudentView) -> Optional[float]:
    grade = view.record.current_grade
    return grade if is_valid_grade(grade) else None


def _late_rate(view: StudentView) -> Optional[float]:
    scores = view.record.assignment_scores
    if not scores:
        return None
    return sum(1 for a in scores if a.is_late) / len(scores)


def _relative_rule(
    tag: str,
    value: Callable[[StudentView], Optional[float]],
    baseline: Callable[[StudentView], float],
    margin: float,
) -> ClassificationRule:
    return ClassificationRule(
        tag,
        lambda v: value(v) is not None and value(v) > baseline(v) + margin,
        lambda v: value(v) is not None and value(v) < baseline(v) - margin,
    )


def _threshold_rule(
    tag: str,
    value: Callable[[StudentView], Optional[float]],
    strength: Callable[[float], bool],
    weakness: Callable[[float], bool],
) -> ClassificationRule:
    return ClassificationRule(
        tag,
        lambda v: value(v) is not None and strength(value(v)),
        lambda v: value(v) is not None and weakness(value(v)),
    )


# Evaluated in order; each rule is independent of the others.
CLASSIFICATION_RULES: Tuple[ClassificationRule, ...] = (
    _relative_rule(
        "Academic Performance",
        _valid_grade,
        lambda v: v.cohort.average_grade,
        GRADE_MARGIN,
    ),
    _relative_rule(
        "Attendance",
        lambda v: v.record.attendance_rate,
        lambda v: v.cohort.attendance_rate,
        RATE_MARGIN,
    ),
    _relative_rule(
        "Engagement",
        lambda v: v.engagement,
        lambda v: v.cohort.engagement_score,
        RATE_MARGIN,
    ),
    _relative_rule(
        "Lesson Completion",
        lambda v: v.record.engagement_metrics.lesson_completion_rate,
        lambda v: v.cohort.completion_rate,
        RATE_MARGIN,
    ),
    _threshold_rule(
        "Assignment Submission",
        lambda v: v.record.engagement_metrics.assignment_submission_rate,
        lambda rate: rate > 0.9,
        lambda rate: rate < 0.7,
    ),
    _threshold_rule(
        "Time Management",
        _late_rate,
        lambda rate: rate < 0.1,
        lambda rate: rate > 0.3,
    ),
    ClassificationRule(
        "Learning Progress",
        lambda v: v.record.learning_velocity.completion_trend == "improving",
        lambda v: v.record.learning_velocity.completion_trend == "declining",
    ),
)


def identify_strengths_and_weaknesses(
    record: StudentPerformanceRecord,
    cohort: CohortMetrics,
    engagement: float,
) -> Tuple[List[str], List[str]]:
    """Return (strengths, improvement_areas) tag lists for one student."""
    view = StudentView(record, cohort, engagement)
    strengths: List[str] = []
    improvement_areas: List[str] = []
    for rule in CLASSIFICATION_RULES:
        if rule.is_strength(view):
            strengths.append(rule.tag)
        elif rule.is_weakness(view):
            improvement_areas.append(rule.tag)
    return strengths, improvement_areas


# ── Cohort analysis ─────────────────────────────────────────────────

def generate_student_comparisons(
    records: Sequence[StudentPerformanceRecord],
    cohort: CohortMetrics,
) -> List[StudentComparison]:
    grades = _valid_grades(records)
    comparisons = []
    for record in records:
        engagement = calculate_engagement_score(record.engagement_metrics)
        graded = bool(grades) and is_valid_grade(record.current_grade)
        rank = calculate_percentile_rank(record.current_grade, grades) if graded else None
        relative = record.current_grade - cohort.average_grade if graded else 0.0
        strengths, improvement_areas = identify_strengths_and_weaknesses(record, cohort, engagement)
        comparisons.append(StudentComparison(
            student_id=record.student_id,
            percentile_rank=rank,
            performance_relative_to_average=_safe_float(relative),
            engagement_score=_safe_float(engagement),
            strengths=strengths,
            improvement_areas=improvement_areas,
        ))
    return comparisons


def analyze_cohort_performance(
    records: Sequence[StudentPerformanceRecord],
    course_id: str,
    timeframe: str = "month",
) -> CohortComparison:
    """Cohort metrics and per-student comparisons for one course."""
    course_records = [r for r in records if r.course_id == course_id]
    if not course_records:
        raise EmptyCohortError(course_id)

    metrics = calculate_cohort_metrics(course_records)
    logger.debug("Cohort %s: %d students, mean grade %.2f",
                 course_id, metrics.student_count, metrics.average_grade)
    return CohortComparison(
        course_id=course_id,
        timeframe=timeframe,
        metrics=metrics,
        student_comparisons=generate_student_comparisons(course_records, metrics),
    )


def compare_performance_over_time(
    current: Sequence[StudentPerformanceRecord],
    previous: Sequence[StudentPerformanceRecord],
    course_id: str,
) -> PerformanceChange:
    """Change in cohort averages and per-student grades between two periods."""
    current_cohort = analyze_cohort_performance(current, course_id)
    previous_cohort = analyze_cohort_performance(previous, course_id)

    previous_grades: Dict[str, float] = {
        r.student_id: r.current_grade
        for r in previous
        if r.course_id == course_id and is_valid_grade(r.current_grade)
    }
    improved = declined = 0
    current_students = [r for r in current if r.course_id == course_id]
    for record in current_students:
        before = previous_grades.get(record.student_id)
        if before is None or not is_valid_grade(record.current_grade):
            continue
        if record.current_grade > before:
            improved += 1
        elif record.current_grade < before:
            declined += 1

    now, then = current_cohort.metrics, previous_cohort.metrics
    return PerformanceChange(
        improvement=_round_half_up(improved / len(current_students) * 100),
        students_improved=improved,
        students_declined=declined,
        average_grade_change=_safe_float(now.average_grade - then.average_grade),
        attendance_change=_safe_float(now.attendance_rate - then.attendance_rate),
        engagement_change=_safe_float(now.engagement_score - then.engagement_score),
    )
